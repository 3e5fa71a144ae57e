# eventcore/server.py
# =============================================================================
# File: eventcore/server.py
# Description: FastAPI application entry point
# =============================================================================

from __future__ import annotations

import os
import logging
from typing import Optional

from eventcore.core import __version__
from eventcore.core.app_state import AppState
from eventcore.core.exceptions import setup_exception_handlers
from eventcore.core.fastapi_types import FastAPI
from eventcore.core.lifespan import lifespan
from eventcore.core.routes import setup_routes
from eventcore.config.logging_config import setup_logging
from eventcore.infra.event_store.apply_engine import ApplyEngine

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================
setup_logging(
    service_name="api",
    log_file=os.getenv("LOG_FILE") or None,
    enable_json=os.getenv("ENVIRONMENT") == "production",
)

logger = logging.getLogger("eventcore.server")


# =============================================================================
# FASTAPI APP
# =============================================================================
def create_app(engine: Optional[ApplyEngine] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        engine: Apply engine to serve requests with; when omitted one is
                built on PostgreSQL during startup
    """
    application = FastAPI(
        title=f"eventcore API v{__version__}",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )

    application.state = AppState()
    if engine is not None:
        application.state.apply_engine = engine
        application.state.record_store = engine.store

    setup_routes(application)
    setup_exception_handlers(application)
    return application


app = create_app()

__all__ = ["app", "create_app", "__version__"]


# =============================================================================
# Development entry point
# =============================================================================
def main() -> None:
    import subprocess

    port = os.getenv("PORT", "5001")
    host = os.getenv("HOST", "0.0.0.0")
    reload = os.getenv("RELOAD", "false").lower() == "true"

    logger.info(f"Starting eventcore API on {host}:{port} (reload={reload})")

    cmd = [
        "granian",
        "--interface", "asgi",
        "eventcore.server:app",
        "--host", host,
        "--port", str(port),
    ]

    if reload:
        cmd.extend(["--reload", "--reload-paths", "eventcore/"])

    subprocess.run(cmd, check=False)


if __name__ == "__main__":
    main()
