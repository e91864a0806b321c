"""
Tests for the FastAPI layer: routing, header auth and error mapping.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from helpdesk_engine.api import app as app_module
from helpdesk_engine.api.app import create_app
from helpdesk_engine.services import build_helpdesk


ADMIN = {"X-User-Id": "admin-1"}
ERIN = {"X-User-Id": "emp-e"}
GINA = {"X-User-Id": "emp-g"}

NEW_TICKET = {
    "subject": "Laptop will not boot",
    "description": "Black screen after the BIOS logo",
    "priority": "high",
    "category": "hardware",
}


@pytest.fixture
def client(settings, transport, user_repo, clock):
    service = build_helpdesk(settings, transport=transport, user_repo=user_repo, clock=clock)
    with TestClient(create_app(settings, service=service)) as client:
        yield client


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_missing_header_is_unauthorized(client):
    response = client.get("/api/tickets")
    assert response.status_code == 401
    assert response.json() == {"message": "Unauthorized"}


def test_unknown_user_is_unauthorized(client):
    response = client.get("/api/tickets", headers={"X-User-Id": "nobody"})
    assert response.status_code == 401


def test_provision_then_fetch_current_user(client):
    response = client.post(
        "/api/auth/provision",
        json={"sub": "new-1", "email": "nia@corp.test", "first_name": "Nia"},
        headers={"X-User-Id": "new-1"}
    )
    assert response.status_code == 200
    assert response.json()["role"] == "employee"

    response = client.get("/api/auth/user", headers={"X-User-Id": "new-1"})
    assert response.status_code == 200
    assert response.json()["email"] == "nia@corp.test"


def test_provision_requires_identity(client):
    response = client.post("/api/auth/provision", json={"sub": "admin-1", "email": "someone@else.test"})
    assert response.status_code == 401

    team = client.get("/api/team", headers=ADMIN).json()
    assert next(u for u in team if u["id"] == "admin-1")["email"] == "admin@corp.test"


def test_provision_cannot_rewrite_another_user(settings, transport, user_repo):
    service = build_helpdesk(settings, transport=transport, user_repo=user_repo)
    with TestClient(create_app(settings, service=service)) as client:
        response = client.post(
            "/api/auth/provision",
            json={"sub": "admin-1", "email": "gina2@corp.test"},
            headers=GINA
        )
        assert response.status_code == 403
        client.post("/api/tickets", json=NEW_TICKET, headers=ERIN)

    assert [m["recipients"] for m in transport.sent] == [["admin@corp.test"]]


def test_provision_refreshes_own_profile(client):
    response = client.post(
        "/api/auth/provision",
        json={"sub": "emp-g", "email": "gina@corp.test", "first_name": "Georgina"},
        headers=GINA
    )
    assert response.status_code == 200
    assert response.json()["first_name"] == "Georgina"
    assert response.json()["role"] == "employee"


class TestTicketRoutes:
    """Test ticket endpoints"""

    def test_create_returns_201(self, client):
        response = client.post("/api/tickets", json=NEW_TICKET, headers=ERIN)
        assert response.status_code == 201

        body = response.json()
        assert body["ticket_number"] == "TKT-0001"
        assert body["status"] == "open"
        assert body["created_by"] == "emp-e"
        assert body["closed_at"] is None

    def test_create_with_missing_fields_returns_400(self, client):
        response = client.post("/api/tickets", json={"subject": "Help"}, headers=ERIN)
        assert response.status_code == 400
        assert response.json()["errors"] == ["category", "description", "priority"]

    def test_non_object_body_returns_400(self, client):
        response = client.post("/api/tickets", json=["not", "an", "object"], headers=ERIN)
        assert response.status_code == 400

    def test_outsider_gets_403(self, client):
        ticket = client.post("/api/tickets", json=NEW_TICKET, headers=ERIN).json()
        response = client.get(f"/api/tickets/{ticket['id']}", headers=GINA)
        assert response.status_code == 403
        assert response.json() == {"message": "Access denied"}

    def test_missing_ticket_gets_404(self, client):
        response = client.get("/api/tickets/999", headers=ADMIN)
        assert response.status_code == 404
        assert response.json() == {"message": "Ticket not found"}

    def test_listing_is_scoped(self, client):
        client.post("/api/tickets", json=NEW_TICKET, headers=ERIN)
        client.post("/api/tickets", json=NEW_TICKET, headers=GINA)

        assert len(client.get("/api/tickets", headers=ADMIN).json()) == 2
        mine = client.get("/api/tickets", headers=ERIN).json()
        assert [t["created_by"] for t in mine] == ["emp-e"]

    def test_assign_and_close(self, client, transport):
        ticket = client.post("/api/tickets", json=NEW_TICKET, headers=ERIN).json()

        response = client.patch(
            f"/api/tickets/{ticket['id']}",
            json={"assigned_to": "emp-f", "status": "closed"},
            headers=ADMIN
        )
        assert response.status_code == 200
        assert response.json()["closed_at"] is not None

        detail = client.get(f"/api/tickets/{ticket['id']}", headers=ERIN).json()
        assert detail["assignee"]["id"] == "emp-f"
        assert detail["status"] == "closed"

    def test_creator_cannot_update(self, client):
        ticket = client.post("/api/tickets", json=NEW_TICKET, headers=ERIN).json()
        response = client.patch(f"/api/tickets/{ticket['id']}", json={"status": "closed"}, headers=ERIN)
        assert response.status_code == 403

    def test_delete_returns_204(self, client):
        ticket = client.post("/api/tickets", json=NEW_TICKET, headers=ERIN).json()

        assert client.delete(f"/api/tickets/{ticket['id']}", headers=ERIN).status_code == 403
        assert client.delete(f"/api/tickets/{ticket['id']}", headers=ADMIN).status_code == 204
        assert client.get(f"/api/tickets/{ticket['id']}", headers=ADMIN).status_code == 404


class TestCommentRoutes:
    """Test comment endpoints"""

    def test_add_and_list(self, client):
        ticket = client.post("/api/tickets", json=NEW_TICKET, headers=ERIN).json()

        response = client.post(
            f"/api/tickets/{ticket['id']}/comments",
            json={"content": "Tried a hard reset"},
            headers=ERIN
        )
        assert response.status_code == 201
        assert response.json()["user_id"] == "emp-e"

        comments = client.get(f"/api/tickets/{ticket['id']}/comments", headers=ADMIN).json()
        assert [c["content"] for c in comments] == ["Tried a hard reset"]

    def test_empty_comment_returns_400(self, client):
        ticket = client.post("/api/tickets", json=NEW_TICKET, headers=ERIN).json()
        response = client.post(f"/api/tickets/{ticket['id']}/comments", json={}, headers=ERIN)
        assert response.status_code == 400
        assert response.json()["errors"] == ["content"]


class TestAdminRoutes:
    """Test stats and team endpoints"""

    def test_stats(self, client):
        client.post("/api/tickets", json=NEW_TICKET, headers=ERIN)

        response = client.get("/api/stats", headers=ADMIN)
        assert response.status_code == 200
        assert response.json() == {"total": 1, "open": 1, "in_progress": 0, "resolved": 0, "closed": 0}

        assert client.get("/api/stats", headers=ERIN).status_code == 403

    def test_role_update(self, client):
        response = client.patch("/api/team/emp-g/role", json={"role": "admin"}, headers=ADMIN)
        assert response.status_code == 200
        assert response.json()["role"] == "admin"

        assert client.get("/api/team", headers=GINA).status_code == 200

    def test_invalid_role_returns_400(self, client):
        response = client.patch("/api/team/emp-g/role", json={"role": "owner"}, headers=ADMIN)
        assert response.status_code == 400
        assert response.json()["errors"] == ["role"]


def test_notifications_flushed_on_shutdown(settings, transport, user_repo):
    service = build_helpdesk(settings, transport=transport, user_repo=user_repo)
    with TestClient(create_app(settings, service=service)) as client:
        client.post("/api/tickets", json=NEW_TICKET, headers=ERIN)

    assert [m["recipients"] for m in transport.sent] == [["admin@corp.test"]]
    assert transport.sent[0]["sender"] == "helpdesk@corp.test"


def test_import_builds_no_app():
    assert not hasattr(app_module, "app")


def test_explicit_settings_skip_environment(settings, transport, user_repo):
    service = build_helpdesk(settings, transport=transport, user_repo=user_repo)
    with patch("helpdesk_engine.api.app.load_settings") as load_settings:
        create_app(settings, service=service)
    load_settings.assert_not_called()
