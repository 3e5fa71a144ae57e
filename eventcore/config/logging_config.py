# eventcore/config/logging_config.py
# =============================================================================
# File: eventcore/config/logging_config.py
# Description: Logging configuration using the Rich framework, with JSON
#              output for production and a plain fallback for pipes/files
# =============================================================================

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    value = os.getenv(key, '').lower()
    return value in ('true', '1', 'yes', 'on') if value else default


def get_env_int(key: str, default: int) -> int:
    """Get integer value from environment variable."""
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


EVENTCORE_THEME = Theme({
    "debug": "magenta dim",
    "info": "green",
    "warning": "dark_goldenrod",
    "error": "red",
    "critical": "bold red",
    "timestamp": "grey70",
    "logger_name": "grey35",
    "frame": "bright_blue",
})

PLAIN_FORMAT = "[%(asctime)s] [%(levelname)-8s] [%(name)-40s] %(message)s"
PLAIN_DATEFMT = "%Y-%m-%d %H:%M:%S"


class EventCoreRichHandler(RichHandler):
    """RichHandler with a compact single-line runtime layout"""

    def __init__(self, *args, **kwargs):
        kwargs.setdefault('show_time', False)
        kwargs.setdefault('show_level', False)
        kwargs.setdefault('show_path', False)
        kwargs.setdefault('enable_link_path', False)
        kwargs.setdefault('markup', True)
        kwargs.setdefault('rich_tracebacks', True)
        kwargs.setdefault('tracebacks_show_locals', False)
        super().__init__(*args, **kwargs)

    def format(self, record: logging.LogRecord) -> str:
        time_str = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')

        level_style = record.levelname.lower() if record.levelname in (
            'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL') else 'white'
        level_str = f"[{level_style}]{record.levelname:>7}[/{level_style}]"

        logger_name = record.name
        if len(logger_name) > 30:
            parts = logger_name.split('.')
            if len(parts) > 2:
                logger_name = f"{parts[0]}...{parts[-1]}"
        logger_str = f"[logger_name]{logger_name:>30}[/logger_name]"

        message = record.getMessage()
        if get_env_bool('LOG_CALLER_INFO', False) and record.pathname:
            message = f"{message} [{record.filename}:{record.lineno}]"

        return f"[timestamp]{time_str}[/timestamp] {level_str} {logger_str}  {message}"


class ProductionFormatter(logging.Formatter):
    """JSON formatter for production environments"""

    EXTRA_FIELDS = ("event_type", "aggregate_type", "aggregate_ref", "attempt_id", "request_id")

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if get_env_bool('LOG_JSON_INCLUDE_EXTRAS', True):
            for field in self.EXTRA_FIELDS:
                if hasattr(record, field):
                    log_obj[field] = getattr(record, field)

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


def get_logger_level_from_env(logger_name: str, default_level: int) -> int:
    """Get logger level from a LOGLEVEL_<NAME> environment variable."""
    # e.g., "eventcore.apply_engine" -> "LOGLEVEL_EVENTCORE_APPLY_ENGINE"
    env_name = f"LOGLEVEL_{logger_name.replace('.', '_').upper()}"

    level_str = os.getenv(env_name, '').upper()
    if level_str:
        level_map = {
            'DEBUG': logging.DEBUG,
            'INFO': logging.INFO,
            'WARNING': logging.WARNING,
            'WARN': logging.WARNING,
            'ERROR': logging.ERROR,
            'CRITICAL': logging.CRITICAL,
        }
        return level_map.get(level_str, default_level)

    return default_level


def setup_logging(
        service_name: str = "eventcore",
        log_level: Optional[str] = None,
        log_file: Optional[str] = None,
        enable_json: Optional[bool] = None,
) -> None:
    """
    Configure logging for an eventcore process.

    Args:
        service_name: Name of the service (e.g., "api")
        log_level: Override log level (default: LOG_LEVEL env or INFO)
        log_file: Optional log file path (default: LOG_FILE env)
        enable_json: Enable JSON formatting (default: LOG_JSON_FORMAT env)
    """
    level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_file = log_file or os.getenv("LOG_FILE")

    if enable_json is None:
        enable_json = get_env_bool('LOG_JSON_FORMAT', False)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    use_rich = not enable_json and (sys.stdout.isatty() or get_env_bool("FORCE_COLOR", False))

    if use_rich:
        console = Console(
            theme=EVENTCORE_THEME,
            force_terminal=get_env_bool("FORCE_COLOR", False),
            width=get_env_int('LOG_CONSOLE_WIDTH', 0) or None,
        )
        root_logger.addHandler(EventCoreRichHandler(console=console))

    elif enable_json:
        json_handler = logging.StreamHandler(sys.stdout)
        json_handler.setFormatter(ProductionFormatter())
        root_logger.addHandler(json_handler)

    else:
        plain_handler = logging.StreamHandler(sys.stdout)
        plain_handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt=PLAIN_DATEFMT))
        root_logger.addHandler(plain_handler)

    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=get_env_int('LOG_MAX_SIZE_MB', 100) * 1024 * 1024,
            backupCount=get_env_int('LOG_BACKUP_COUNT', 5),
            encoding=os.getenv('LOG_FILE_ENCODING', 'utf-8'),
        )
        # Always use plain formatter for files
        file_handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt=PLAIN_DATEFMT))
        root_logger.addHandler(file_handler)

    default_noise_config = {
        "asyncio": logging.WARNING,
        "asyncpg": logging.WARNING,
        "httpx": logging.WARNING,
        "httpcore": logging.WARNING,
        "uvicorn.access": logging.WARNING,
        "eventcore.apply_engine": logging.INFO,
        "eventcore.infra.pg_client": logging.INFO,
    }

    for logger_name, default_level in default_noise_config.items():
        logging.getLogger(logger_name).setLevel(get_logger_level_from_env(logger_name, default_level))

    logging.getLogger(f"{service_name}.startup").info(f"Logging configured for {service_name} service")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)

