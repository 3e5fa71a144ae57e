# eventcore/core/app_state.py
# =============================================================================
# File: eventcore/core/app_state.py
# Description: Application state definition and global state management
# =============================================================================

from datetime import datetime, timezone
from typing import Optional

from eventcore.infra.event_store.apply_engine import ApplyEngine
from eventcore.infra.event_store.record_store import RecordStore


# =============================================================================
# APP STATE TYPE DEFINITION
# =============================================================================
class AppState:
    """Type definition for FastAPI app.state with proper type hints"""

    def __init__(self):
        # Write path
        self.record_store: Optional[RecordStore] = None
        self.apply_engine: Optional[ApplyEngine] = None

        # Set when the PostgreSQL pool was opened by this application
        self.owns_db_pool: bool = False


# =============================================================================
# GLOBAL STATE
# =============================================================================
_START_TIME = datetime.now(timezone.utc)


def get_start_time() -> datetime:
    """Get application start time"""
    return _START_TIME
