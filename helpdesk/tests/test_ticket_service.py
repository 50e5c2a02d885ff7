from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest

from core.app import HelpdeskApp
from core.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    TicketStateError,
    ValidationError,
)


@pytest.mark.asyncio
async def test_create_ticket_normalizes_input(helpdesk: HelpdeskApp, make_user) -> None:
    user = await make_user("user")
    ticket = await helpdesk.ticket_service.create_ticket(
        user,
        title="  Printer jam ",
        description="Paper stuck",
        tags=["Hardware", " hardware", "urgent", ""],
    )

    assert ticket["title"] == "Printer jam"
    assert ticket["status"] == "open"
    assert ticket["priority"] == "medium"
    assert ticket["tags"] == ["hardware", "urgent"]
    assert ticket["assignedTo"] is None
    assert ticket["createdBy"] == user.summary()

    with pytest.raises(ValidationError):
        await helpdesk.ticket_service.create_ticket(user, title="", description="x")
    with pytest.raises(ValidationError):
        await helpdesk.ticket_service.create_ticket(user, title="x", description="y", priority="urgent")
    with pytest.raises(ValidationError):
        await helpdesk.ticket_service.create_ticket(user, title="x", description="y", category_id="nope")


@pytest.mark.asyncio
async def test_claim_assigns_without_changing_status(helpdesk: HelpdeskApp, make_user) -> None:
    user = await make_user("user")
    agent = await make_user("agent")
    ticket = await helpdesk.ticket_service.create_ticket(user, title="VPN", description="Cannot connect")

    claimed = await helpdesk.ticket_service.claim_ticket(agent, ticket["id"])

    assert claimed["assignedTo"]["id"] == agent.id
    assert claimed["status"] == "open"
    assert claimed["assignedAt"] is not None

    other = await make_user("agent")
    with pytest.raises(ConflictError):
        await helpdesk.ticket_service.claim_ticket(other, ticket["id"])
    with pytest.raises(NotFoundError):
        await helpdesk.ticket_service.claim_ticket(agent, "missing")


@pytest.mark.asyncio
async def test_concurrent_claims_have_a_single_winner(helpdesk: HelpdeskApp, make_user) -> None:
    user = await make_user("user")
    agents = [await make_user("agent") for _ in range(4)]
    ticket = await helpdesk.ticket_service.create_ticket(user, title="Race", description="Who wins")

    results = await asyncio.gather(
        *(helpdesk.ticket_service.claim_ticket(agent, ticket["id"]) for agent in agents),
        return_exceptions=True,
    )

    winners = [item for item in results if isinstance(item, dict)]
    losers = [item for item in results if isinstance(item, ConflictError)]
    assert len(winners) == 1
    assert len(losers) == 3
    stored = await helpdesk.ticket_repo.get_by_id(ticket["id"])
    assert stored is not None
    assert stored.assigned_to_id == winners[0]["assignedTo"]["id"]


@pytest.mark.asyncio
async def test_claim_permissions(helpdesk: HelpdeskApp, make_user) -> None:
    user = await make_user("user")
    agent = await make_user("agent")
    admin = await make_user("admin")
    ticket = await helpdesk.ticket_service.create_ticket(user, title="Email", description="Bounces")

    with pytest.raises(PermissionDeniedError):
        await helpdesk.ticket_service.claim_ticket(user, ticket["id"])
    with pytest.raises(PermissionDeniedError):
        await helpdesk.ticket_service.claim_ticket(agent, ticket["id"], assignee_id=admin.id)
    with pytest.raises(ValidationError):
        await helpdesk.ticket_service.claim_ticket(admin, ticket["id"], assignee_id=user.id)

    assigned = await helpdesk.ticket_service.claim_ticket(admin, ticket["id"], assignee_id=agent.id)
    assert assigned["assignedTo"]["id"] == agent.id


@pytest.mark.asyncio
async def test_non_open_ticket_cannot_be_claimed(helpdesk: HelpdeskApp, make_user) -> None:
    user = await make_user("user")
    agent = await make_user("agent")
    admin = await make_user("admin")
    ticket = await helpdesk.ticket_service.create_ticket(user, title="Old", description="Answered already")
    await helpdesk.ticket_service.change_status(admin, ticket["id"], "answered")

    with pytest.raises(ConflictError):
        await helpdesk.ticket_service.claim_ticket(agent, ticket["id"])


@pytest.mark.asyncio
async def test_status_changes_follow_assignment(helpdesk: HelpdeskApp, make_user) -> None:
    user = await make_user("user")
    agent = await make_user("agent")
    other_agent = await make_user("agent")
    ticket = await helpdesk.ticket_service.create_ticket(user, title="Slow laptop", description="Very slow")

    with pytest.raises(PermissionDeniedError):
        await helpdesk.ticket_service.change_status(agent, ticket["id"], "answered")

    await helpdesk.ticket_service.claim_ticket(agent, ticket["id"])
    with pytest.raises(PermissionDeniedError):
        await helpdesk.ticket_service.change_status(other_agent, ticket["id"], "answered")
    with pytest.raises(ValidationError):
        await helpdesk.ticket_service.change_status(agent, ticket["id"], "assigned")

    answered = await helpdesk.ticket_service.change_status(agent, ticket["id"], "answered")
    assert answered["status"] == "answered"
    again = await helpdesk.ticket_service.change_status(agent, ticket["id"], "answered")
    assert again["status"] == "answered"


@pytest.mark.asyncio
async def test_closed_is_terminal(helpdesk: HelpdeskApp, make_user) -> None:
    user = await make_user("user")
    agent = await make_user("agent")
    admin = await make_user("admin")
    ticket = await helpdesk.ticket_service.create_ticket(user, title="Done", description="Finished")
    await helpdesk.ticket_service.claim_ticket(agent, ticket["id"])
    await helpdesk.ticket_service.change_status(agent, ticket["id"], "closed")

    with pytest.raises(TicketStateError):
        await helpdesk.ticket_service.change_status(agent, ticket["id"], "open")
    with pytest.raises(TicketStateError):
        await helpdesk.ticket_service.change_status(admin, ticket["id"], "resolved")
    with pytest.raises(TicketStateError):
        await helpdesk.ticket_service.release_ticket(admin, ticket["id"])
    with pytest.raises(TicketStateError):
        await helpdesk.ticket_service.update_ticket(user, ticket["id"], {"title": "Reopen me"})

    stored = await helpdesk.ticket_repo.get_by_id(ticket["id"])
    assert stored is not None and stored.status == "closed"


@pytest.mark.asyncio
async def test_release_clears_assignment(helpdesk: HelpdeskApp, make_user) -> None:
    user = await make_user("user")
    agent = await make_user("agent")
    other_agent = await make_user("agent")
    ticket = await helpdesk.ticket_service.create_ticket(user, title="Wifi", description="Drops")

    with pytest.raises(PermissionDeniedError):
        await helpdesk.ticket_service.release_ticket(agent, ticket["id"])

    await helpdesk.ticket_service.claim_ticket(agent, ticket["id"])
    with pytest.raises(PermissionDeniedError):
        await helpdesk.ticket_service.release_ticket(other_agent, ticket["id"])

    released = await helpdesk.ticket_service.release_ticket(agent, ticket["id"])
    assert released["assignedTo"] is None
    assert released["assignedAt"] is None

    reclaimed = await helpdesk.ticket_service.claim_ticket(other_agent, ticket["id"])
    assert reclaimed["assignedTo"]["id"] == other_agent.id


@pytest.mark.asyncio
async def test_visibility_and_editing(helpdesk: HelpdeskApp, make_user) -> None:
    owner = await make_user("user")
    stranger = await make_user("user")
    agent = await make_user("agent")
    ticket = await helpdesk.ticket_service.create_ticket(owner, title="Mine", description="Private")
    await helpdesk.ticket_service.create_ticket(stranger, title="Theirs", description="Other")

    assert [t["id"] for t in await helpdesk.ticket_service.list_tickets(owner)] == [ticket["id"]]
    assert len(await helpdesk.ticket_service.list_tickets(agent)) == 2

    with pytest.raises(PermissionDeniedError):
        await helpdesk.ticket_service.get_ticket(stranger, ticket["id"])
    with pytest.raises(PermissionDeniedError):
        await helpdesk.ticket_service.update_ticket(stranger, ticket["id"], {"title": "Hijack"})

    edited = await helpdesk.ticket_service.update_ticket(
        owner, ticket["id"], {"title": "Mine, edited", "priority": "high", "tags": ["A", "b"]}
    )
    assert edited["title"] == "Mine, edited"
    assert edited["priority"] == "high"
    assert edited["tags"] == ["a", "b"]


@pytest.mark.asyncio
async def test_rejected_update_writes_nothing(helpdesk: HelpdeskApp, make_user) -> None:
    owner = await make_user("user")
    ticket = await helpdesk.ticket_service.create_ticket(owner, title="Original", description="Body")

    with pytest.raises(PermissionDeniedError):
        await helpdesk.ticket_service.update_ticket(owner, ticket["id"], {"title": "New", "status": "resolved"})
    with pytest.raises(ValidationError):
        await helpdesk.ticket_service.update_ticket(owner, ticket["id"], {"title": "New", "priority": "urgent"})

    stored = await helpdesk.ticket_repo.get_by_id(ticket["id"])
    assert stored is not None
    assert stored.title == "Original"
    assert stored.priority == "medium"
    assert stored.status == "open"


@pytest.mark.asyncio
async def test_comments_hide_internal_notes_from_users(helpdesk: HelpdeskApp, make_user) -> None:
    owner = await make_user("user")
    agent = await make_user("agent")
    ticket = await helpdesk.ticket_service.create_ticket(owner, title="Login", description="Locked out")

    await helpdesk.ticket_service.add_comment(owner, ticket["id"], "Any update?")
    internal = await helpdesk.ticket_service.add_comment(agent, ticket["id"], "Checking AD", is_internal=True)
    assert internal["isInternal"] is True
    assert internal["author"]["id"] == agent.id

    with pytest.raises(PermissionDeniedError):
        await helpdesk.ticket_service.add_comment(owner, ticket["id"], "sneaky", is_internal=True)
    with pytest.raises(ValidationError):
        await helpdesk.ticket_service.add_comment(owner, ticket["id"], "   ")

    owner_view = await helpdesk.ticket_service.list_comments(owner, ticket["id"])
    agent_view = await helpdesk.ticket_service.list_comments(agent, ticket["id"])
    assert [c["content"] for c in owner_view] == ["Any update?"]
    assert [c["content"] for c in agent_view] == ["Any update?", "Checking AD"]


@pytest.mark.asyncio
async def test_delete_ticket_removes_comments(helpdesk: HelpdeskApp, make_user) -> None:
    owner = await make_user("user")
    stranger = await make_user("user")
    ticket = await helpdesk.ticket_service.create_ticket(owner, title="Temp", description="Delete me")
    await helpdesk.ticket_service.add_comment(owner, ticket["id"], "note")

    with pytest.raises(PermissionDeniedError):
        await helpdesk.ticket_service.delete_ticket(stranger, ticket["id"])

    await helpdesk.ticket_service.delete_ticket(owner, ticket["id"])
    assert await helpdesk.ticket_repo.get_by_id(ticket["id"]) is None
    assert await helpdesk.comment_repo.list_for_ticket(ticket["id"], include_internal=True) == []


@pytest.mark.asyncio
async def test_open_ticket_limit(helpdesk: HelpdeskApp, make_user) -> None:
    helpdesk.ticket_service.config = replace(
        helpdesk.config,
        security=replace(helpdesk.config.security, max_open_tickets_per_user=2),
    )
    user = await make_user("user")
    await helpdesk.ticket_service.create_ticket(user, title="One", description="1")
    await helpdesk.ticket_service.create_ticket(user, title="Two", description="2")

    with pytest.raises(ValidationError):
        await helpdesk.ticket_service.create_ticket(user, title="Three", description="3")


@pytest.mark.asyncio
async def test_creation_cooldown(helpdesk: HelpdeskApp, make_user) -> None:
    helpdesk.security_service.config = replace(
        helpdesk.config,
        security=replace(helpdesk.config.security, ticket_creation_cooldown_seconds=60),
    )
    user = await make_user("user")
    await helpdesk.ticket_service.create_ticket(user, title="First", description="1")

    with pytest.raises(ValidationError):
        await helpdesk.ticket_service.create_ticket(user, title="Second", description="2")


@pytest.mark.asyncio
async def test_agents_listing(helpdesk: HelpdeskApp, make_user) -> None:
    await make_user("user")
    agent = await make_user("agent", name="Alice")
    admin = await make_user("admin", name="Bob")

    agents = await helpdesk.ticket_service.list_agents()
    assert [(a["id"], a["role"]) for a in agents] == [(agent.id, "agent"), (admin.id, "admin")]
