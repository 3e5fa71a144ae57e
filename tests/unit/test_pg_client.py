# =============================================================================
# File: tests/unit/test_pg_client.py
# Description: Pool transaction helper and schema loading
# =============================================================================

from contextlib import asynccontextmanager

import pytest

from eventcore.config.pg_client_config import PostgresConfig
from eventcore.infra.persistence import pg_client


class FakeConnection:
    def __init__(self):
        self.executed = []
        self.committed = 0
        self.rolled_back = 0

    @asynccontextmanager
    async def transaction(self):
        try:
            yield
        except BaseException:
            self.rolled_back += 1
            raise
        else:
            self.committed += 1

    async def execute(self, query, *args, timeout=None):
        self.executed.append(query)
        return "OK"

    async def fetchval(self, query):
        return 1


class FakePool:
    def __init__(self):
        self.conn = FakeConnection()
        self.released = 0

    def is_closing(self):
        return False

    async def acquire(self, timeout=None):
        return self.conn

    async def release(self, conn):
        self.released += 1


@pytest.fixture
def pool(monkeypatch):
    fake = FakePool()
    monkeypatch.setattr(pg_client, "_POOL", fake)
    monkeypatch.setattr(pg_client, "_CONFIG", PostgresConfig(long_transaction_threshold_ms=2000))
    return fake


@pytest.mark.asyncio
async def test_transaction_commits_and_releases(pool):
    async with pg_client.transaction() as conn:
        assert conn is pool.conn
        await conn.execute("UPDATE users SET name = 'x'")

    assert pool.conn.committed == 1
    assert pool.conn.executed == ["UPDATE users SET name = 'x'"]
    assert pool.released == 1


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error(pool):
    with pytest.raises(ValueError):
        async with pg_client.transaction():
            raise ValueError("boom")

    assert pool.conn.rolled_back == 1
    assert pool.released == 1


@pytest.mark.asyncio
async def test_missing_schema_file_is_skipped(pool, tmp_path):
    await pg_client.run_schema_from_file(str(tmp_path / "absent.sql"))
    assert pool.conn.executed == []


@pytest.mark.asyncio
async def test_get_pool_without_init_raises(monkeypatch):
    monkeypatch.setattr(pg_client, "_POOL", None)

    with pytest.raises(RuntimeError):
        await pg_client.get_pool(ensure_initialized=False)


def test_missing_dsn_is_reported(monkeypatch):
    monkeypatch.setattr(pg_client, "_CONFIG", PostgresConfig(POSTGRES_DSN=None))

    with pytest.raises(RuntimeError, match="POSTGRES_DSN"):
        pg_client.get_postgres_dsn()
