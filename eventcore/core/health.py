# eventcore/core/health.py
# =============================================================================
# File: eventcore/core/health.py
# Description: Health check endpoints for the application
# =============================================================================

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from eventcore.core import __version__
from eventcore.core.app_state import get_start_time
from eventcore.core.fastapi_types import FastAPI
from eventcore.infra.event_store.aggregate_binding import registered_bindings
from eventcore.infra.persistence import pg_client

logger = logging.getLogger("eventcore.health")


def register_health_endpoints(app: FastAPI) -> None:
    """Register health check endpoints directly on the app"""

    @app.get("/health", tags=["System"])
    async def health_check() -> Dict[str, Any]:
        """Health check with write path status"""
        return await get_health_status(app)


async def get_health_status(app: FastAPI) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    engine = getattr(app.state, "apply_engine", None)

    health_data = {
        "status": "healthy" if engine is not None else "degraded",
        "version": __version__,
        "timestamp": now.isoformat(),
        "uptime_seconds": round((now - get_start_time()).total_seconds(), 1),
        "apply_engine": "enabled" if engine is not None else "disabled",
        "event_bindings": len(registered_bindings()),
    }

    if getattr(app.state, "owns_db_pool", False):
        database = await pg_client.health_check()
        health_data["database"] = database
        if database.get("status") != "healthy":
            health_data["status"] = "degraded"

    return health_data
