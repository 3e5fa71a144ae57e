# =============================================================================
# File: tests/unit/test_config.py
# Description: pydantic-settings configuration classes
# =============================================================================

from pathlib import Path

import pytest
from pydantic import SecretStr, ValidationError

from eventcore.config.event_store_config import EventStoreConfig, get_event_store_config, reset_event_store_config
from eventcore.config.pg_client_config import (
    PostgresConfig,
    calculate_pool_size,
    get_postgres_config,
    reset_postgres_config,
)


@pytest.fixture(autouse=True)
def fresh_config_singletons():
    reset_event_store_config()
    reset_postgres_config()
    yield
    reset_event_store_config()
    reset_postgres_config()


def test_event_store_defaults(monkeypatch):
    monkeypatch.delenv("EVENTCORE_LOCK_TIMEOUT_MS", raising=False)
    config = EventStoreConfig()

    assert config.lock_timeout_ms == 5000
    assert config.lock_timeout_seconds == 5.0
    assert config.log_transitions is True


def test_event_store_reads_prefixed_env(monkeypatch):
    monkeypatch.setenv("EVENTCORE_LOCK_TIMEOUT_MS", "250")
    monkeypatch.setenv("EVENTCORE_LOG_TRANSITIONS", "false")

    config = get_event_store_config()

    assert config.lock_timeout_seconds == 0.25
    assert config.log_transitions is False
    assert get_event_store_config() is config


def test_lock_timeout_must_be_positive():
    with pytest.raises(ValidationError):
        EventStoreConfig(lock_timeout_ms=0)


def test_postgres_dsn_from_unprefixed_env(monkeypatch):
    monkeypatch.setenv("POSTGRES_DSN", "postgresql://app:secret@db:5432/eventcore")
    monkeypatch.delenv("WEB_CONCURRENCY", raising=False)

    config = get_postgres_config()

    assert isinstance(config.main_dsn, SecretStr)
    assert config.get_main_dsn() == "postgresql://app:secret@db:5432/eventcore"
    assert "secret" not in repr(config)
    assert config.to_dict()["main_dsn"] != "postgresql://app:secret@db:5432/eventcore"
    assert config.to_dict(mask_secrets=False)["main_dsn"] == "postgresql://app:secret@db:5432/eventcore"


def test_postgres_pool_params(monkeypatch):
    monkeypatch.setenv("PG_POOL_MAX_SIZE", "8")
    config = PostgresConfig()

    params = config.main_pool.to_asyncpg_params()
    assert params["max_size"] == 8
    assert params["min_size"] == 5


def test_schema_file_ships_with_package():
    schema = Path(PostgresConfig().schema_file)
    assert schema.name == "eventcore.sql"
    assert schema.exists()
    assert "CREATE TABLE IF NOT EXISTS user_events" in schema.read_text(encoding="utf-8")


def test_pool_size_split_across_workers(monkeypatch):
    monkeypatch.setenv("WEB_CONCURRENCY", "4")

    assert calculate_pool_size(5, 50, 4, max_total_connections=100) == (5, 20)
    config = get_postgres_config()
    assert config.pool_max_size <= 20
