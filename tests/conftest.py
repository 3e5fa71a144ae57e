# =============================================================================
# File: tests/conftest.py
# Description: Shared fixtures - in-memory record store and apply engine
# =============================================================================

from __future__ import annotations

import pytest

from eventcore.config.event_store_config import EventStoreConfig
from eventcore.infra.event_store.apply_engine import ApplyEngine, ApplyState
from eventcore.user_account.aggregate import User
from tests.fakes.fake_record_store import FakeRecordStore


@pytest.fixture
def store() -> FakeRecordStore:
    store = FakeRecordStore()
    store.add_unique_constraint("users", "email", name="users_email_key", normalize=str.lower)
    return store


@pytest.fixture
def engine_config() -> EventStoreConfig:
    return EventStoreConfig(lock_timeout_ms=2000, log_transitions=True)


@pytest.fixture
def transitions() -> list:
    """(event_type, state) pairs seen by the engine's transition listener."""
    return []


@pytest.fixture
def engine(store, engine_config, transitions) -> ApplyEngine:
    def record(attempt, state: ApplyState) -> None:
        transitions.append((attempt.event_type, state))

    return ApplyEngine(store, config=engine_config, listeners=[record])


@pytest.fixture
def alice(store) -> User:
    """A committed user record."""
    return store.seed(User(name="Alice", email="alice@example.com"))
