"""End-to-end tests for the notification and event endpoints."""

from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[4]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from siteledger.config import reset_settings_cache
from siteledger.infrastructure.database import create_session_factory
from siteledger.main import create_app
from conftest import ACTOR_ID, ADMIN_ID, seed_defaults

ADMIN_HEADERS = {"X-User-Id": ADMIN_ID, "X-User-Role": "admin"}
ACTOR_HEADERS = {"X-User-Id": ACTOR_ID, "X-User-Role": "site_engineer"}


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    reset_settings_cache()
    app = create_app()
    with TestClient(app) as test_client:
        seed_defaults(create_session_factory(app.state.engine))
        yield test_client
    reset_settings_cache()


def _post_expense(client, project_id="P1", amount=500):
    return client.post(
        f"/projects/{project_id}/events/expenses",
        json={"kind": "expense_added", "amount": amount, "category": "Cement"},
        headers=ACTOR_HEADERS,
    )


def test_expense_event_is_listed_for_the_admin(client):
    response = _post_expense(client)

    assert response.status_code == 202
    body = response.json()
    assert body["dispatched"] is True

    listed = client.get("/notifications/", headers=ADMIN_HEADERS)
    assert listed.status_code == 200
    [notification] = listed.json()
    assert notification["id"] == body["notification_id"]
    assert notification["title"] == "Expense Added"
    assert notification["message"] == "Umesh added an expense of ₹500 in Riverside Villa"
    assert notification["is_read"] is False


def test_project_without_admin_is_accepted_but_not_dispatched(client):
    response = _post_expense(client, project_id="P2")

    assert response.status_code == 202
    assert response.json()["dispatched"] is False
    assert response.json()["error_type"] == "RecipientNotFoundError"
    assert client.get("/notifications/", headers=ADMIN_HEADERS).json() == []


def test_invalid_event_payloads_are_rejected(client):
    wrong_kind = client.post(
        "/projects/P1/events/phases",
        json={"kind": "expense_added", "name": "Roof"},
        headers=ACTOR_HEADERS,
    )
    no_identity = client.post("/projects/P1/events/created")

    assert wrong_kind.status_code == 422
    assert no_identity.status_code == 422


def test_non_admin_cannot_read_notifications(client):
    response = client.get("/notifications/", headers=ACTOR_HEADERS)

    assert response.status_code == 403


def test_mark_read_endpoints(client):
    first = _post_expense(client).json()["notification_id"]
    _post_expense(client, amount=10)
    _post_expense(client, amount=20)
    assert client.get("/notifications/unread-count", headers=ADMIN_HEADERS).json() == {"unread": 3}

    once = client.post(f"/notifications/{first}/read", headers=ADMIN_HEADERS)
    twice = client.post(f"/notifications/{first}/read", headers=ADMIN_HEADERS)
    remaining = client.post("/notifications/read-all", headers=ADMIN_HEADERS)

    assert once.json() == {"updated": 1}
    assert twice.json() == {"updated": 0}
    assert remaining.json() == {"updated": 2}
    assert client.get("/notifications/unread-count", headers=ADMIN_HEADERS).json() == {"unread": 0}
    listed = client.get("/notifications/", headers=ADMIN_HEADERS).json()
    assert all(notification["is_read"] for notification in listed)


def test_user_events_use_the_users_admin(client):
    joined = client.post(f"/users/{ACTOR_ID}/events/joined", headers=ACTOR_HEADERS)
    bulk = client.post(
        f"/users/{ACTOR_ID}/events/bulk-expenses",
        json={"entries": [{"amount": 100, "type": "expense"}, {"amount": 50, "type": "income"}]},
        headers=ACTOR_HEADERS,
    )

    assert joined.json()["dispatched"] is True
    assert bulk.json()["dispatched"] is True
    messages = [n["message"] for n in client.get("/notifications/", headers=ADMIN_HEADERS).json()]
    assert "Umesh joined the team" in messages
    assert (
        "Umesh uploaded 2 transactions (1 expense, 1 income) totaling ₹150" in messages
    )


def test_websocket_streams_changes(client):
    _post_expense(client, amount=1)

    with client.websocket_connect(f"/notifications/ws?user_id={ADMIN_ID}&role=admin") as ws:
        init = ws.receive_json()
        assert init["type"] == "init"
        assert len(init["data"]) == 1

        created = _post_expense(client, amount=2).json()["notification_id"]
        inserted = ws.receive_json()
        assert inserted["type"] == "notification.insert"
        assert inserted["data"]["id"] == created

        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}

        ws.send_json({"type": "ack", "ids": [created]})
        updated = ws.receive_json()
        assert updated["type"] == "notification.update"
        assert updated["data"]["is_read"] is True


def test_websocket_rejects_non_admins(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"/notifications/ws?user_id={ACTOR_ID}&role=engineer") as ws:
            ws.receive_json()
