# =============================================================================
# File: tests/unit/test_user_account_api.py
# Description: HTTP surface of the user account write path
# =============================================================================

import warnings

import pytest
from fastapi.testclient import TestClient

from eventcore.common.exceptions.exceptions import LockTimeout
from eventcore.server import create_app


@pytest.fixture
def client(engine):
    with TestClient(create_app(engine)) as client:
        yield client


def create_user(client, name="Alice", email="alice@example.com"):
    response = client.post("/users/create", json={"name": name, "email": email})
    assert response.status_code == 201, response.text
    return response.json()


def test_create_user(client, store):
    body = create_user(client)

    user_id = body["user"]["id"]
    assert body["user"]["name"] == "Alice"
    assert body["event"]["event_type"] == "UserCreated"
    assert body["event"]["aggregate_ref"] == user_id
    assert body["event"]["payload"] == {"name": "Alice", "email": "alice@example.com"}
    assert store.row("users", user_id)["email"] == "alice@example.com"


def test_create_user_rejected_state_is_422(client, store):
    response = client.post("/users/create", json={"name": "Alice", "email": "no-at-sign"})

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "AggregatePersistenceFailure"
    assert body["event_type"] == "UserCreated"
    assert body["errors"] == {"email": "is invalid"}
    assert store.table_rows("users") == []


def test_duplicate_email_is_422(client):
    create_user(client)
    response = client.post("/users/create", json={"name": "Again", "email": "ALICE@example.com"})

    assert response.status_code == 422
    assert response.json()["errors"] == {"constraint": "users_email_key"}


def test_request_validation_error(client):
    response = client.post("/users/create", json={"name": "Alice"})

    assert response.status_code == 422
    assert response.json()["detail"][0]["loc"] == ["body", "email"]


def test_unprocessable_responses_emit_no_status_deprecation(client):
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        client.post("/users/create", json={"name": "Alice"})
        client.post("/users/create", json={"name": "Alice", "email": "no-at-sign"})

    assert not [w for w in caught if "HTTP_422" in str(w.message)]


def test_rename_user(client):
    user_id = create_user(client)["user"]["id"]

    response = client.post("/users/rename", json={"user_id": user_id, "name": "Bob"})

    assert response.status_code == 200
    assert response.json()["user"]["name"] == "Bob"
    assert response.json()["event"]["event_type"] == "UserRenamed"


def test_rename_unknown_user_is_404(client):
    response = client.post("/users/rename", json={"user_id": 999, "name": "Bob"})

    assert response.status_code == 404
    assert response.json() == {
        "error": "AggregateNotFound",
        "detail": "User 999 not found",
        "event_type": "UserRenamed",
        "aggregate_ref": 999,
    }


def test_destroy_user(client, store):
    user_id = create_user(client)["user"]["id"]

    response = client.delete("/users/destroy", params={"user_id": user_id, "reason": "requested"})

    assert response.status_code == 200
    assert response.json()["user"]["deleted_at"] is not None
    assert response.json()["event"]["payload"] == {"reason": "requested"}
    assert store.row("users", user_id)["deleted_at"] is not None


def test_renaming_deleted_user_is_409(client):
    user_id = create_user(client)["user"]["id"]
    client.delete("/users/destroy", params={"user_id": user_id})

    response = client.post("/users/rename", json={"user_id": user_id, "name": "Ghost"})

    assert response.status_code == 409
    assert response.json()["error"] == "UserDeletedError"


def test_lock_timeout_is_409(client, store):
    user_id = create_user(client)["user"]["id"]
    store.configure_failure("lock_aggregate", LockTimeout("lock wait exceeded"))

    response = client.post("/users/rename", json={"user_id": user_id, "name": "Bob"})

    assert response.status_code == 409
    assert response.json()["error"] == "LockTimeout"
    assert response.json()["aggregate_ref"] == user_id


def test_event_history(client):
    user_id = create_user(client)["user"]["id"]
    client.post("/users/rename", json={"user_id": user_id, "name": "Bob"})

    response = client.get(f"/users/{user_id}/events")

    assert response.status_code == 200
    body = response.json()
    assert body["user_id"] == user_id
    assert [e["event_type"] for e in body["events"]] == ["UserCreated", "UserRenamed"]


def test_event_history_of_unknown_user_is_404(client):
    assert client.get("/users/555/events").status_code == 404


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["apply_engine"] == "enabled"
    assert body["event_bindings"] >= 3
    assert "database" not in body
