# =============================================================================
# File: eventcore/infra/persistence/pg_client.py
# =============================================================================
# AsyncPG pool helper: pool lifecycle, transaction context, schema loading
# =============================================================================

from __future__ import annotations

import asyncio
import json
import logging
import pathlib
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import asyncpg

from eventcore.config.pg_client_config import PostgresConfig, get_postgres_config

log = logging.getLogger("eventcore.infra.pg_client")

_POOL: Optional[asyncpg.Pool] = None
_POOL_LOCK = asyncio.Lock()
_CONFIG: Optional[PostgresConfig] = None


def get_config() -> PostgresConfig:
    """Get database configuration"""
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = get_postgres_config()
    return _CONFIG


def get_postgres_dsn() -> str:
    """Get PostgreSQL DSN for the main database"""
    dsn = get_config().get_main_dsn()
    if not dsn:
        raise RuntimeError("POSTGRES_DSN is not set. Please define it in your environment or .env file.")
    return dsn


# =============================================================================
# Pool Management
# =============================================================================

async def _init_connection(conn: asyncpg.Connection) -> None:
    """Initialize connection with JSONB codec for automatic dict<->JSONB conversion"""
    await conn.set_type_codec(
        'jsonb',
        encoder=json.dumps,
        decoder=json.loads,
        schema='pg_catalog'
    )


async def init_db_pool(dsn_or_url: Optional[str] = None, **pool_kwargs: Any) -> asyncpg.Pool:
    """Initialize the global asyncpg pool. Idempotent."""
    global _POOL

    async with _POOL_LOCK:
        if _POOL is not None and not _POOL.is_closing():
            return _POOL

        dsn = dsn_or_url or get_postgres_dsn()
        params = get_config().main_pool.to_asyncpg_params()
        params.update({"init": _init_connection, **pool_kwargs})

        log.info(f"Initializing PostgreSQL pool (hidden DSN): {dsn.split('@')[-1]}")
        try:
            pool = await asyncpg.create_pool(dsn=dsn, **params)
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except (OSError, asyncpg.PostgresError) as e:
            log.critical(f"Failed to init PostgreSQL pool: {e}", exc_info=True)
            raise RuntimeError(f"PostgreSQL pool init error: {e}") from e

        _POOL = pool
        log.info(f"PostgreSQL pool initialized. Min/Max size: {params['min_size']}/{params['max_size']}")

    return _POOL


async def get_pool(ensure_initialized: bool = True) -> asyncpg.Pool:
    """Get the global pool, init if needed (default)."""
    if _POOL is None or _POOL.is_closing():
        if not ensure_initialized:
            raise RuntimeError("PostgreSQL pool not available")
        await init_db_pool()
    return _POOL  # type: ignore[return-value]


async def close_db_pool() -> None:
    """Close the global pool gracefully."""
    global _POOL

    async with _POOL_LOCK:
        pool, _POOL = _POOL, None
        if pool is None:
            return
        log.info("Closing PostgreSQL pool...")
        try:
            await pool.close()
            log.info("PostgreSQL pool closed.")
        except (OSError, asyncpg.PostgresError) as e:
            log.error(f"Error closing pool: {e}", exc_info=True)


# =============================================================================
# Transaction Context Manager
# =============================================================================

@asynccontextmanager
async def transaction(timeout: Optional[float] = None) -> AsyncIterator[asyncpg.Connection]:
    """
    Create a database transaction context manager.

    Usage:
        async with transaction() as conn:
            await conn.execute("INSERT INTO ...")

    The transaction commits on clean exit and rolls back on exception;
    row locks taken inside it are released when it ends.

    Args:
        timeout: Optional connection acquisition timeout in seconds

    Yields:
        The connection object (not transaction)
    """
    pool = await get_pool()
    conn = await pool.acquire(timeout=timeout)
    tx_start = time.perf_counter()

    try:
        async with conn.transaction():
            yield conn

        tx_duration_ms = (time.perf_counter() - tx_start) * 1000
        long_tx_threshold = get_config().long_transaction_threshold_ms
        if tx_duration_ms > long_tx_threshold:
            log.warning(
                f"[LONG TRANSACTION] transaction took {tx_duration_ms:.0f}ms "
                f"(threshold: {long_tx_threshold:.0f}ms)"
            )
    except Exception as e:
        log.debug(f"Transaction rolled back: {type(e).__name__}: {e}")
        raise
    finally:
        await pool.release(conn)


# =============================================================================
# Schema & Health
# =============================================================================

async def run_schema_from_file(file_path_str: Optional[str] = None) -> None:
    """Execute a SQL schema file (statements must be idempotent)."""
    path = pathlib.Path(file_path_str or get_config().schema_file)
    if not path.exists():
        log.warning(f"Schema file {path} not found, skipping")
        return

    sql = path.read_text(encoding="utf-8")
    if not sql.strip():
        log.warning(f"Schema file {path} is empty")
        return

    pool = await get_pool()
    async with pool.acquire() as conn:
        await conn.execute(sql)
    log.info(f"Schema from {path} applied successfully")


async def health_check() -> Dict[str, Any]:
    """Check pool availability and round-trip latency."""
    if _POOL is None or _POOL.is_closing():
        return {"status": "unavailable"}

    started = time.perf_counter()
    try:
        async with _POOL.acquire() as conn:
            await conn.fetchval("SELECT 1")
    except (OSError, asyncpg.PostgresError) as e:
        log.error(f"PostgreSQL health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}

    return {
        "status": "healthy",
        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
        "pool_size": _POOL.get_size(),
        "pool_idle": _POOL.get_idle_size(),
    }
