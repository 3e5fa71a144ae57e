# eventcore/config/event_store_config.py
# =============================================================================
# File: eventcore/config/event_store_config.py
# Description: Apply engine configuration for eventcore
# =============================================================================

from functools import lru_cache
from pydantic import Field
from pydantic_settings import SettingsConfigDict

from eventcore.common.base.base_config import BaseConfig, BASE_CONFIG_DICT


class EventStoreConfig(BaseConfig):
    """
    Apply engine configuration.

    Locking:
    - Events against an existing aggregate take an exclusive row lock for
      the whole transaction. ``lock_timeout_ms`` bounds how long an
      application waits for a lock held by a concurrent transaction before
      failing with LockTimeout.
    - Events that create a new aggregate take no lock.
    """

    model_config = SettingsConfigDict(
        **BASE_CONFIG_DICT,
        env_prefix='EVENTCORE_',
    )

    # =========================================================================
    # Locking
    # =========================================================================
    lock_timeout_ms: int = Field(default=5000, ge=1)
    """Maximum wait for the aggregate row lock, in milliseconds"""

    # =========================================================================
    # Diagnostics
    # =========================================================================
    log_transitions: bool = True
    """Log each apply state transition at DEBUG level"""

    @property
    def lock_timeout_seconds(self) -> float:
        return self.lock_timeout_ms / 1000.0


@lru_cache(maxsize=1)
def get_event_store_config() -> EventStoreConfig:
    """Get apply engine configuration singleton (cached)."""
    return EventStoreConfig()


def reset_event_store_config() -> None:
    """Reset config singleton (for testing)."""
    get_event_store_config.cache_clear()
