# =============================================================================
# File: eventcore/core/lifespan.py
# Description: Application lifespan management (startup/shutdown)
# =============================================================================

import asyncio
import logging
from contextlib import asynccontextmanager

from eventcore.config.pg_client_config import get_postgres_config
from eventcore.core import __version__
from eventcore.core.fastapi_types import FastAPI
from eventcore.infra.event_store.aggregate_binding import validate_bindings
from eventcore.infra.event_store.apply_engine import ApplyEngine
from eventcore.infra.event_store.pg_record_store import PostgresRecordStore
from eventcore.infra.persistence import pg_client

# Importing the domain registers its event bindings
import eventcore.user_account  # noqa: F401

logger = logging.getLogger("eventcore.lifespan")


async def initialize_database(app_instance: FastAPI) -> None:
    """Open the PostgreSQL pool and apply the schema file"""
    await pg_client.init_db_pool()
    app_instance.state.owns_db_pool = True

    if get_postgres_config().run_schemas_on_startup:
        await pg_client.run_schema_from_file()


async def initialize_write_path(app_instance: FastAPI) -> None:
    """Build the record store and apply engine unless already injected"""
    if app_instance.state.apply_engine is not None:
        logger.info("Using injected apply engine")
        return

    await initialize_database(app_instance)
    store = PostgresRecordStore()
    app_instance.state.record_store = store
    app_instance.state.apply_engine = ApplyEngine(store)
    logger.info("Apply engine initialized on PostgreSQL record store")


# =============================================================================
# LIFESPAN (Startup/Shutdown)
# =============================================================================
@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    """Application lifespan manager with structured initialization"""

    logger.info(f"eventcore v{__version__} API starting up...")

    try:
        # Phase 1: Event bindings
        logger.info("Phase 1: Validating event bindings...")
        validate_bindings(package="eventcore")

        # Phase 2: Write path (database, record store, engine)
        logger.info("Phase 2: Initializing write path...")
        await initialize_write_path(app_instance)

        logger.info("=" * 60)
        logger.info(f"eventcore v{__version__} ready to serve requests")
        logger.info("=" * 60)

        yield

    except Exception as startup_error:
        logger.error(f"Critical error during startup: {startup_error}", exc_info=True)
        raise

    finally:
        logger.info(f"eventcore v{__version__} API shutting down...")
        if app_instance.state.owns_db_pool:
            try:
                async with asyncio.timeout(30.0):
                    await pg_client.close_db_pool()
                app_instance.state.owns_db_pool = False
            except TimeoutError:
                logger.error("Shutdown timed out after 30s, forcing exit")
        logger.info(f"eventcore v{__version__} API stopped")

# =============================================================================
# EOF
# =============================================================================
