# eventcore/config/pg_client_config.py
# =============================================================================
# File: eventcore/config/pg_client_config.py
# Description: Database configuration for the PostgreSQL record store pool
# =============================================================================

from functools import lru_cache
import os
from pathlib import Path
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import SettingsConfigDict

from eventcore.common.base.base_config import BaseConfig, BASE_CONFIG_DICT
from eventcore.config.logging_config import get_logger

log = get_logger("eventcore.config.pg_client")

DEFAULT_SCHEMA_FILE = Path(__file__).resolve().parent.parent / "database" / "eventcore.sql"


class PoolConfig(BaseModel):
    """PostgreSQL connection pool configuration (nested model)"""
    min_size: int = Field(default=5, description="Minimum pool size")
    max_size: int = Field(default=20, description="Maximum pool size")
    timeout: float = Field(default=5.0, description="Pool acquisition timeout in seconds")
    command_timeout: float = Field(default=10.0, description="Default command timeout")
    max_queries: int = Field(default=50000, description="Close connection after this many queries")
    max_inactive_connection_lifetime: float = Field(default=300.0)

    def to_asyncpg_params(self) -> Dict[str, Any]:
        """Convert to asyncpg pool parameters"""
        return {
            'min_size': self.min_size,
            'max_size': self.max_size,
            'timeout': self.timeout,
            'command_timeout': self.command_timeout,
            'max_queries': self.max_queries,
            'max_inactive_connection_lifetime': self.max_inactive_connection_lifetime,
        }


class PostgresConfig(BaseConfig):
    """PostgreSQL database configuration for eventcore"""

    model_config = SettingsConfigDict(
        **BASE_CONFIG_DICT,
        env_prefix='PG_',
        populate_by_name=True,
    )

    # Connection string
    main_dsn: Optional[SecretStr] = Field(
        default=None,
        alias="POSTGRES_DSN",
        description="Main database DSN"
    )

    # Pool configuration
    pool_min_size: int = Field(default=5, description="Pool min size")
    pool_max_size: int = Field(default=20, description="Pool max size")
    pool_timeout: float = Field(default=5.0, description="Pool timeout")
    pool_command_timeout: float = Field(default=10.0, description="Pool command timeout")
    max_total_connections: int = Field(default=100)

    # Schema
    run_schemas_on_startup: bool = Field(default=True)
    schema_file: str = Field(default=str(DEFAULT_SCHEMA_FILE))

    # Monitoring
    long_transaction_threshold_ms: float = Field(default=2000.0)

    @property
    def main_pool(self) -> PoolConfig:
        """Get main pool configuration"""
        return PoolConfig(
            min_size=self.pool_min_size,
            max_size=self.pool_max_size,
            timeout=self.pool_timeout,
            command_timeout=self.pool_command_timeout,
        )

    def get_main_dsn(self) -> Optional[str]:
        """Get main DSN (raw value)"""
        if self.main_dsn is None:
            return None
        return self.main_dsn.get_secret_value()


def get_worker_count() -> int:
    """Get the number of server worker processes sharing the database"""
    if workers := os.environ.get('WEB_CONCURRENCY'):
        return int(workers)
    return 1


def calculate_pool_size(
        base_min: int,
        base_max: int,
        worker_count: int,
        max_total_connections: int = 100
) -> tuple[int, int]:
    """Calculate pool size so all workers together stay under max_connections."""
    available_connections = int(max_total_connections * 0.8)
    max_per_worker = max(1, available_connections // worker_count)
    adjusted_max = min(base_max, max_per_worker)
    adjusted_min = min(base_min, adjusted_max // 2)
    adjusted_min = max(1, adjusted_min)
    adjusted_max = max(2, adjusted_max)

    log.info(
        f"Pool sizing: {worker_count} workers, "
        f"base {base_min}-{base_max} -> adjusted {adjusted_min}-{adjusted_max}"
    )

    return adjusted_min, adjusted_max


# =============================================================================
# Factory Function
# =============================================================================

@lru_cache(maxsize=1)
def get_postgres_config() -> PostgresConfig:
    """Get PostgreSQL configuration singleton (cached)."""
    config = PostgresConfig()

    worker_count = get_worker_count()
    if worker_count > 1:
        pool_min, pool_max = calculate_pool_size(
            config.pool_min_size,
            config.pool_max_size,
            worker_count,
            config.max_total_connections
        )
        config = config.model_copy(update={"pool_min_size": pool_min, "pool_max_size": pool_max})

    log.info(f"Database pool configured: {config.pool_min_size}-{config.pool_max_size}")

    return config


def reset_postgres_config() -> None:
    """Reset config singleton (for testing)."""
    get_postgres_config.cache_clear()
