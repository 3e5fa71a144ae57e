# =============================================================================
# File: tests/unit/test_logging_config.py
# Description: Logging setup - Rich, JSON and plain handlers
# =============================================================================

import io
import json
import logging
import logging.handlers
import sys

import pytest

from eventcore.config.logging_config import (
    EventCoreRichHandler,
    ProductionFormatter,
    get_logger_level_from_env,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="eventcore.apply_engine",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="Persisted %s",
        args=("UserCreated",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_production_formatter_emits_json_with_event_context():
    line = ProductionFormatter().format(make_record(event_type="UserCreated", aggregate_ref=4, attempt_id="abc"))

    data = json.loads(line)
    assert data["message"] == "Persisted UserCreated"
    assert data["level"] == "INFO"
    assert data["logger"] == "eventcore.apply_engine"
    assert data["event_type"] == "UserCreated"
    assert data["aggregate_ref"] == 4
    assert data["attempt_id"] == "abc"
    assert "request_id" not in data


def test_logger_level_override_from_env(monkeypatch):
    monkeypatch.setenv("LOGLEVEL_EVENTCORE_APPLY_ENGINE", "debug")

    assert get_logger_level_from_env("eventcore.apply_engine", logging.INFO) == logging.DEBUG
    assert get_logger_level_from_env("eventcore.other", logging.WARNING) == logging.WARNING


def test_setup_logging_json(monkeypatch, restore_root_logger):
    monkeypatch.delenv("LOG_FILE", raising=False)
    setup_logging(service_name="test", log_level="warning", enable_json=True)

    root = restore_root_logger
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, ProductionFormatter)


def test_setup_logging_plain_when_not_a_tty(monkeypatch, restore_root_logger):
    monkeypatch.delenv("LOG_FILE", raising=False)
    monkeypatch.delenv("FORCE_COLOR", raising=False)
    monkeypatch.setattr(sys, "stdout", io.StringIO())

    setup_logging(enable_json=False)

    [handler] = restore_root_logger.handlers
    assert not isinstance(handler, EventCoreRichHandler)
    assert not isinstance(handler.formatter, ProductionFormatter)


def test_setup_logging_rich_when_forced(monkeypatch, restore_root_logger):
    monkeypatch.delenv("LOG_FILE", raising=False)
    monkeypatch.setenv("FORCE_COLOR", "1")

    setup_logging(enable_json=False)

    assert isinstance(restore_root_logger.handlers[0], EventCoreRichHandler)


def test_setup_logging_adds_rotating_file(monkeypatch, tmp_path, restore_root_logger):
    log_file = tmp_path / "eventcore.log"
    setup_logging(log_file=str(log_file), enable_json=True)

    handler_types = {type(h) for h in restore_root_logger.handlers}
    assert logging.handlers.RotatingFileHandler in handler_types

    for handler in restore_root_logger.handlers:
        handler.close()
