from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import headers, make_world
from rentflow.auth import create_access_token
from rentflow.config import settings
from rentflow.main import app
from rentflow.models import UserRole
from rentflow.timeutil import utcnow


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def live_world(db):
    # Move-in two hours ago, so the reporting window is open right now.
    return make_world(db, start=utcnow() - timedelta(hours=2))


def _report(client, w, who=None):
    return client.post(
        "/api/move-in-issues",
        json={"offer_id": w.offer_id, "title": "Dirty", "description": "Not cleaned", "evidence": ["a.png"]},
        headers=headers(who or w.tenant),
    )


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["scheduler_mode"] == "off"
    assert body["scheduler_running"] is False
    assert r.headers.get("X-Request-ID")


def test_requires_authentication(client, live_world):
    r = client.get(f"/api/offers/{live_world.offer_id}/move-in/status")
    assert r.status_code == 401
    assert r.json()["error"] == "unauthorized"


def test_bearer_token_is_accepted(client, live_world):
    token = create_access_token(user_id=live_world.tenant.user_id, role=UserRole.TENANT)
    r = client.get(
        f"/api/offers/{live_world.offer_id}/move-in/status",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert r.status_code == 200
    assert r.json()["status"] == "PENDING"


def test_issue_flow_over_http(client, live_world):
    w = live_world

    r = _report(client, w)
    assert r.status_code == 201, r.text
    issue_id = r.json()["issue"]["id"]
    assert r.json()["reused"] is False

    again = _report(client, w, who=w.landlord)
    assert again.status_code == 200
    assert again.json()["reused"] is True
    assert again.json()["issue"]["id"] == issue_id

    r = client.post(
        f"/api/move-in-issues/{issue_id}/comments",
        json={"content": "Cleaner booked"},
        headers=headers(w.landlord),
    )
    assert r.status_code == 201

    r = client.put(
        f"/api/move-in-issues/{issue_id}/status",
        json={"status": "IN_PROGRESS"},
        headers=headers(w.landlord),
    )
    assert r.status_code == 200
    assert r.json()["status"] == "IN_PROGRESS"

    r = client.get(f"/api/move-in-issues/{issue_id}", headers=headers(w.cotenant))
    assert r.status_code == 200
    body = r.json()
    assert [c["content"] for c in body["comments"]] == ["Not cleaned", "Cleaner booked"]
    assert body["comments"][0]["evidence_type"] == "IMAGE"

    r = client.post(
        f"/api/move-in-issues/{issue_id}/request-admin-review",
        json={"reason": "Still dirty"},
        headers=headers(w.tenant),
    )
    assert r.status_code == 200
    assert r.json()["content"] == "[ADMIN_REVIEW_REQUEST] Still dirty"

    r = client.post(
        f"/api/move-in-issues/{issue_id}/admin-decision",
        json={"decision": "ACCEPTED", "refund_amount": 300, "notes": "ok"},
        headers=headers(w.admin),
    )
    assert r.status_code == 200, r.text
    assert r.json()["issue"]["status"] == "ADMIN_APPROVED"
    assert r.json()["actions"]["lease_cancelled"] is True

    r = client.post(
        f"/api/move-in-issues/{issue_id}/admin-decision",
        json={"decision": "REJECTED"},
        headers=headers(w.admin),
    )
    assert r.status_code == 400
    assert r.json() == {"error": "already_decided", "message": "issue already has an admin decision"}

    r = client.get(f"/api/move-in-issues/{issue_id}/decision-summary", headers=headers(w.admin))
    assert r.status_code == 200
    assert r.json()["lease_status"] == "CANCELLED"

    r = client.get("/api/admin/audit-logs", headers=headers(w.admin))
    assert r.status_code == 200
    assert [a["action"] for a in r.json()] == ["ADMIN_DECISION_ACCEPTED"]
    assert r.json()[0]["details"]["refund_amount"] == 300.0


def test_error_bodies(client, live_world):
    w = live_world
    r = client.get("/api/move-in-issues/424242", headers=headers(w.tenant))
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"

    r = _report(client, w, who=w.outsider)
    assert r.status_code == 403
    assert r.json()["error"] == "forbidden"

    r = client.post(
        "/api/move-in-issues",
        json={"offer_id": w.offer_id, "title": " ", "description": "x"},
        headers=headers(w.tenant),
    )
    assert r.status_code == 400
    assert r.json()["error"] == "validation_error"

    r = client.post("/api/move-in-issues", json={"title": "x"}, headers=headers(w.tenant))
    assert r.status_code == 422


def test_expired_window_over_http(client, db):
    w = make_world(db, start=utcnow() - timedelta(hours=30))
    r = _report(client, w)
    assert r.status_code == 400
    assert r.json()["error"] == "window_expired"


def test_admin_queue(client, live_world):
    w = live_world
    issue_id = _report(client, w).json()["issue"]["id"]

    r = client.get("/api/admin/move-in/issues", headers=headers(w.admin))
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 1
    assert body["items"][0]["id"] == issue_id
    assert body["page"] == 1

    r = client.get("/api/admin/move-in/issues?status=RESOLVED", headers=headers(w.admin))
    assert r.json()["total"] == 0

    r = client.get("/api/admin/move-in/issues", headers=headers(w.tenant))
    assert r.status_code == 403


def test_verify_and_ui_state(client, live_world):
    w = live_world
    r = client.get(f"/api/offers/{w.offer_id}/move-in/ui-state", headers=headers(w.tenant))
    assert r.status_code == 200
    state = r.json()
    assert state["phase"] == "WINDOW_OPEN"
    assert state["can_confirm"] is True
    assert state["can_report_issue"] is True

    r = client.post(f"/api/offers/{w.offer_id}/move-in/verify", headers=headers(w.landlord))
    assert r.status_code == 403

    r = client.post(f"/api/offers/{w.offer_id}/move-in/verify", headers=headers(w.tenant))
    assert r.status_code == 200
    assert r.json()["move_in_verification_status"] == "SUCCESS"

    r = client.post(f"/api/offers/{w.offer_id}/move-in/verify", headers=headers(w.tenant))
    assert r.status_code == 400

    r = client.get("/api/notifications", headers=headers(w.landlord))
    assert [n["title"] for n in r.json()] == ["Tenant verified move-in"]


def test_issue_lists_and_manual_triggers(client, live_world):
    w = live_world
    issue = _report(client, w).json()["issue"]

    r = client.get(f"/api/offers/{w.offer_id}/move-in/issues", headers=headers(w.landlord))
    assert [i["id"] for i in r.json()] == [issue["id"]]
    r = client.get(f"/api/leases/{issue['lease_id']}/move-in-issues", headers=headers(w.tenant))
    assert [i["id"] for i in r.json()] == [issue["id"]]

    for path in ("reminders", "finalize", "automation"):
        assert client.post(f"/api/move-in/_run/{path}", headers=headers(w.tenant)).status_code == 403
        r = client.post(f"/api/move-in/_run/{path}", headers=headers(w.admin))
        assert r.status_code == 200
        assert r.json()["ok"] is True


def test_incoming_request_id_is_echoed(client):
    r = client.get("/api/health", headers={"X-Request-ID": "trace-123"})
    assert r.headers["X-Request-ID"] == "trace-123"


def test_dev_header_names_come_from_settings(client, live_world, monkeypatch):
    monkeypatch.setattr(settings, "dev_header_user_id", "X-Dev-User")
    url = f"/api/offers/{live_world.offer_id}/move-in/status"

    r = client.get(url, headers={"X-Dev-User": str(live_world.tenant.user_id)})
    assert r.status_code == 200
    assert client.get(url, headers=headers(live_world.tenant)).status_code == 401


@pytest.mark.parametrize(
    "body, code",
    [
        ({"decision": "ACCEPTED", "refund_amount": "lots"}, "invalid_refund"),
        ({"refund_amount": 100}, "invalid_decision"),
        ({"decision": "MAYBE"}, "invalid_decision"),
    ],
)
def test_bad_admin_decision_body_is_400(client, live_world, body, code):
    issue_id = _report(client, live_world).json()["issue"]["id"]
    r = client.post(
        f"/api/move-in-issues/{issue_id}/admin-decision",
        json=body,
        headers=headers(live_world.admin),
    )
    assert r.status_code == 400
    assert r.json()["error"] == code
