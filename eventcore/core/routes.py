# eventcore/core/routes.py
# =============================================================================
# File: eventcore/core/routes.py
# Description: Route registration for FastAPI application
# =============================================================================

import logging
from eventcore.core.fastapi_types import FastAPI

from eventcore.api.routers.user_account_router import router as user_account_router
from eventcore.core.health import register_health_endpoints

logger = logging.getLogger("eventcore.routes")


def setup_routes(app: FastAPI) -> None:
    """Register all routers with the FastAPI application"""

    app.include_router(user_account_router, prefix="/users", tags=["Users"])
    register_health_endpoints(app)

    logger.info("Routes registered")
