from __future__ import annotations

import httpx
import pytest
from fastapi import APIRouter

from conftest import auth_headers, token_for
from core.api import create_api_app
from core.app import HelpdeskApp


@pytest.mark.asyncio
async def test_health(api: httpx.AsyncClient) -> None:
    response = await api.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["x-request-id"] == "req-123"

    generated = await api.get("/health")
    assert len(generated.headers["x-request-id"]) == 12


@pytest.mark.asyncio
async def test_authentication_failures(api: httpx.AsyncClient, helpdesk: HelpdeskApp, make_user) -> None:
    missing = await api.get("/admin/users")
    assert missing.status_code == 401
    assert "message" in missing.json()

    bad = await api.get("/admin/users", headers={"Authorization": "Bearer not-a-jwt"})
    assert bad.status_code == 401

    forged = await api.get(
        "/admin/users",
        headers={"Authorization": f"Bearer {token_for('someone', secret='wrong-secret')}"},
    )
    assert forged.status_code == 401

    ghost = await api.get("/tickets", headers=auth_headers("deleted-user-id"))
    assert ghost.status_code == 401

    user = await make_user("user")
    forbidden = await api.get("/admin/users", headers=auth_headers(user))
    assert forbidden.status_code == 403


@pytest.mark.asyncio
async def test_admin_user_management(api: httpx.AsyncClient, make_user) -> None:
    admin = await make_user("admin")
    headers = auth_headers(admin)

    created = await api.post(
        "/admin/users",
        json={"name": "Eve", "email": "eve@example.com", "password": "pw123456", "categoryInInterest": ["c1"]},
        headers=headers,
    )
    assert created.status_code == 201
    user = created.json()["user"]
    assert user["categoryInInterest"] == ["c1"]
    assert "password" not in user

    duplicate = await api.post(
        "/admin/users",
        json={"name": "Eve", "email": "EVE@example.com", "password": "x"},
        headers=headers,
    )
    assert duplicate.status_code == 409
    assert duplicate.json() == {"message": "User with this email already exists"}

    role = await api.put(f"/admin/users/{user['id']}/role", json={"role": "agent"}, headers=headers)
    assert role.status_code == 200
    assert role.json()["user"]["role"] == "agent"

    reset = await api.put(
        f"/admin/users/{user['id']}/reset-password",
        json={"newPassword": "another-secret"},
        headers=headers,
    )
    assert reset.status_code == 200
    assert reset.json() == {"message": "Password reset successfully"}

    empty_bulk = await api.request("DELETE", "/admin/users/bulk", json={"userIds": []}, headers=headers)
    assert empty_bulk.status_code == 400

    bulk_roles = await api.put(
        "/admin/users/bulk/roles",
        json={"userIds": [user["id"]], "newRole": "admin"},
        headers=headers,
    )
    assert bulk_roles.status_code == 200
    assert bulk_roles.json()["modifiedCount"] == 1

    bulk = await api.request("DELETE", "/admin/users/bulk", json={"userIds": [user["id"]]}, headers=headers)
    assert bulk.status_code == 200
    assert bulk.json()["deletedCount"] == 1

    missing = await api.delete(f"/admin/users/{user['id']}", headers=headers)
    assert missing.status_code == 404

    listed = await api.get("/admin/users", headers=headers)
    assert [u["id"] for u in listed.json()["users"]] == [admin.id]


@pytest.mark.asyncio
async def test_request_body_validation_is_a_bad_request(api: httpx.AsyncClient, make_user) -> None:
    admin = await make_user("admin")
    response = await api.put(
        "/auth/approve-upgrade/some-id",
        json={"approved": {"nested": True}},
        headers=auth_headers(admin),
    )
    assert response.status_code == 400
    assert "approved" in response.json()["message"]


@pytest.mark.asyncio
async def test_maintenance_endpoints(api: httpx.AsyncClient, make_user) -> None:
    admin = await make_user("admin")
    headers = auth_headers(admin)

    assert (await api.get("/admin/export/passwords", headers=headers)).status_code == 400
    exported = await api.get("/admin/export/categories", headers=headers)
    assert exported.status_code == 200
    assert exported.json()["data"] == {"categories": []}

    assert (await api.delete("/admin/database/users", headers=headers)).status_code == 400
    cleared = await api.delete("/admin/database/ticketcomments", headers=headers)
    assert cleared.status_code == 200

    db_stats = await api.get("/admin/database/stats", headers=headers)
    assert any(item["name"] == "tickets" for item in db_stats.json()["dbStats"])

    health = await api.get("/admin/system/health", headers=headers)
    assert health.json()["database"]["status"] == "connected"
    assert health.json()["cache"] == {"status": "connected", "backend": "memory"}

    logs = await api.get("/admin/audit-logs", params={"limit": 10}, headers=headers)
    assert [entry["action"] for entry in logs.json()["logs"]] == ["collection_clear"]
    assert logs.json()["logs"][0]["actor"] == admin.id

    stats = await api.get("/admin/dashboard/stats", headers=headers)
    assert stats.json()["stats"]["totalAdmins"] == 1


@pytest.mark.asyncio
async def test_ticket_workflow_over_http(api: httpx.AsyncClient, make_user) -> None:
    user = await make_user("user")
    agent = await make_user("agent")
    other_agent = await make_user("agent")

    created = await api.post(
        "/tickets",
        json={"title": "Cannot print", "description": "Printer offline", "priority": "high", "tags": ["Print"]},
        headers=auth_headers(user),
    )
    assert created.status_code == 201
    ticket_id = created.json()["ticket"]["id"]

    assert (await api.patch(f"/tickets/{ticket_id}/assign", json={}, headers=auth_headers(user))).status_code == 403

    claimed = await api.patch(f"/tickets/{ticket_id}/assign", json={}, headers=auth_headers(agent))
    assert claimed.status_code == 200
    assert claimed.json()["ticket"]["assignedTo"]["id"] == agent.id
    assert claimed.json()["ticket"]["status"] == "open"

    second = await api.patch(f"/tickets/{ticket_id}/assign", json={}, headers=auth_headers(other_agent))
    assert second.status_code == 409

    not_mine = await api.patch(f"/tickets/{ticket_id}", json={"status": "answered"}, headers=auth_headers(other_agent))
    assert not_mine.status_code == 403

    closed = await api.patch(f"/tickets/{ticket_id}", json={"status": "closed"}, headers=auth_headers(agent))
    assert closed.status_code == 200
    assert closed.json()["ticket"]["status"] == "closed"

    reopen = await api.patch(f"/tickets/{ticket_id}", json={"status": "open"}, headers=auth_headers(agent))
    assert reopen.status_code == 409

    comment = await api.post(
        f"/tickets/{ticket_id}/comments",
        json={"content": "Fixed the driver", "isInternal": True},
        headers=auth_headers(agent),
    )
    assert comment.status_code == 201
    user_comments = await api.get(f"/tickets/{ticket_id}/comments", headers=auth_headers(user))
    assert user_comments.json()["comments"] == []

    agents = await api.get("/tickets/agents", headers=auth_headers(agent))
    assert {a["id"] for a in agents.json()["agents"]} == {agent.id, other_agent.id}

    overview = await api.get("/dashboard/agent/overview", headers=auth_headers(agent))
    assert overview.status_code == 200
    body = overview.json()
    assert body["assignedTickets"] == 1
    assert body["totalResolved"] == 1
    assert body["resolvedToday"] == 1
    assert body["pendingTickets"] == 0


@pytest.mark.asyncio
async def test_me_and_profile_update(api: httpx.AsyncClient, make_user) -> None:
    user = await make_user("user", name="Old Name")

    me = await api.get("/auth/me", headers=auth_headers(user))
    assert me.status_code == 200
    assert me.json()["user"]["id"] == user.id
    assert "password" not in me.json()["user"]

    updated = await api.put(
        "/auth/profile",
        json={"name": "New Name", "language": "de", "categoryInInterest": ["c1"], "role": "admin"},
        headers=auth_headers(user),
    )
    assert updated.status_code == 200
    profile = updated.json()["user"]
    assert profile["name"] == "New Name"
    assert profile["language"] == "de"
    assert profile["categoryInInterest"] == ["c1"]
    assert profile["role"] == "user"

    blank = await api.put("/auth/profile", json={"name": "  "}, headers=auth_headers(user))
    assert blank.status_code == 400
    assert (await api.get("/auth/me")).status_code == 401


@pytest.mark.asyncio
async def test_user_and_admin_dashboards(api: httpx.AsyncClient, make_user) -> None:
    user = await make_user("user")
    admin = await make_user("admin")
    for title in ("First", "Second"):
        await api.post("/tickets", json={"title": title, "description": "x"}, headers=auth_headers(user))

    stats = await api.get("/dashboard/user/stats", headers=auth_headers(user))
    assert stats.status_code == 200
    assert stats.json()["stats"]["totalTickets"] == 2
    assert stats.json()["stats"]["openTickets"] == 2
    assert stats.json()["stats"]["resolvedTickets"] == 0
    assert len(stats.json()["recentTickets"]) == 2

    assert (await api.get("/dashboard/admin/overview", headers=auth_headers(user))).status_code == 403
    overview = await api.get("/dashboard/admin/overview", headers=auth_headers(admin))
    assert overview.status_code == 200
    assert overview.json()["stats"]["totalTickets"] == 2
    assert overview.json()["usersByRole"] == {"user": 1, "agent": 0, "admin": 1}
    assert overview.json()["ticketsByStatus"]["open"] == 2


@pytest.mark.asyncio
async def test_dashboard_tickets_are_paged_and_scoped(api: httpx.AsyncClient, make_user) -> None:
    owner = await make_user("user")
    stranger = await make_user("user")
    agent = await make_user("agent")
    for title, priority in (("Printer jam", "low"), ("VPN down", "high"), ("Mail slow", "medium")):
        await api.post(
            "/tickets",
            json={"title": title, "description": "help", "priority": priority},
            headers=auth_headers(owner),
        )
    await api.post("/tickets", json={"title": "Other", "description": "x"}, headers=auth_headers(stranger))

    first = await api.get("/dashboard/tickets", params={"limit": 2, "sortBy": "priority"}, headers=auth_headers(owner))
    assert first.status_code == 200
    body = first.json()
    assert [t["title"] for t in body["tickets"]] == ["VPN down", "Mail slow"]
    assert body["total"] == 3
    assert body["currentPage"] == 1
    assert body["totalPages"] == 2

    second = await api.get(
        "/dashboard/tickets",
        params={"limit": 2, "page": 2, "sortBy": "priority"},
        headers=auth_headers(owner),
    )
    assert [t["title"] for t in second.json()["tickets"]] == ["Printer jam"]

    searched = await api.get("/dashboard/tickets", params={"search": "vpn"}, headers=auth_headers(agent))
    assert [t["title"] for t in searched.json()["tickets"]] == ["VPN down"]
    everything = await api.get("/dashboard/tickets", params={"status": "open"}, headers=auth_headers(agent))
    assert everything.json()["total"] == 4

    bad_sort = await api.get("/dashboard/tickets", params={"sortBy": "random"}, headers=auth_headers(owner))
    assert bad_sort.status_code == 400


@pytest.mark.asyncio
async def test_forbidden_patch_leaves_ticket_untouched(api: httpx.AsyncClient, make_user) -> None:
    user = await make_user("user")
    created = await api.post(
        "/tickets",
        json={"title": "Old", "description": "Body"},
        headers=auth_headers(user),
    )
    ticket_id = created.json()["ticket"]["id"]

    patched = await api.patch(
        f"/tickets/{ticket_id}",
        json={"title": "New", "status": "resolved"},
        headers=auth_headers(user),
    )
    assert patched.status_code == 403

    fetched = await api.get(f"/tickets/{ticket_id}", headers=auth_headers(user))
    assert fetched.json()["ticket"]["title"] == "Old"
    assert fetched.json()["ticket"]["status"] == "open"


@pytest.mark.asyncio
async def test_questions_over_http(api: httpx.AsyncClient, make_user) -> None:
    author = await make_user("user")
    voter = await make_user("user")

    created = await api.post(
        "/questions",
        json={"title": "Reset MFA", "description": "How?", "tags": ["mfa"]},
        headers=auth_headers(author),
    )
    assert created.status_code == 201
    question_id = created.json()["question"]["id"]

    for _ in range(2):
        voted = await api.post(f"/questions/{question_id}/vote", json={"type": "up"}, headers=auth_headers(voter))
        assert voted.status_code == 200
        assert voted.json()["score"] == 1

    answered = await api.post(
        f"/questions/{question_id}/answer",
        json={"content": "Ask the helpdesk"},
        headers=auth_headers(voter),
    )
    assert answered.status_code == 201
    assert len(answered.json()["question"]["answers"]) == 1

    listed = await api.get("/questions", params={"search": "mfa", "limit": 5}, headers=auth_headers(voter))
    body = listed.json()
    assert [q["id"] for q in body["questions"]] == [question_id]
    assert body["pagination"]["total"] == 1


@pytest.mark.asyncio
async def test_upgrade_flow_over_http(api: httpx.AsyncClient, make_user) -> None:
    user = await make_user("user")
    admin = await make_user("admin")

    requested = await api.post("/auth/request-upgrade", headers=auth_headers(user))
    assert requested.status_code == 201
    request_id = requested.json()["request"]["id"]

    assert (await api.get("/auth/upgrade-requests", headers=auth_headers(user))).status_code == 403
    pending = await api.get("/auth/upgrade-requests", params={"status": "pending"}, headers=auth_headers(admin))
    assert [r["id"] for r in pending.json()["requests"]] == [request_id]

    approved = await api.put(f"/auth/approve-upgrade/{request_id}", json={"approved": True}, headers=auth_headers(admin))
    assert approved.status_code == 200
    assert approved.json()["request"]["status"] == "approved"

    again = await api.put(f"/auth/approve-upgrade/{request_id}", json={"approved": False}, headers=auth_headers(admin))
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_unexpected_errors_hide_details_unless_enabled(helpdesk: HelpdeskApp) -> None:
    boom = APIRouter()

    @boom.get("/boom")
    async def explode() -> None:
        raise RuntimeError("database password is hunter2")

    for expose, expected in ((False, {"message": "Unexpected server error"}),
                             (True, {"message": "Unexpected server error", "error": "database password is hunter2"})):
        helpdesk.config.server.expose_error_details = expose
        app = create_api_app(helpdesk, manage_lifecycle=False)
        app.include_router(boom)
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
            response = await client.get("/boom")
        assert response.status_code == 500
        assert response.json() == expected
