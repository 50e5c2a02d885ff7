from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field

from core.app import HelpdeskApp
from core.auth import current_user, get_helpdesk, require_roles
from database.models import UserRecord
from utils.constants import ROLE_ADMIN, ROLE_AGENT

router = APIRouter(prefix="/tickets", tags=["tickets"])
staff_only = require_roles(ROLE_AGENT, ROLE_ADMIN)


class TicketCreate(BaseModel):
    title: str | None = None
    description: str | None = None
    category: str | None = None
    priority: str | None = None
    tags: list[str] | None = None


class TicketUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    description: str | None = None
    category_id: str | None = Field(default=None, alias="category")
    priority: str | None = None
    tags: list[str] | None = None
    status: str | None = None


class AssignBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    agent_id: str | None = Field(default=None, alias="agentId")


class CommentCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str | None = None
    is_internal: bool = Field(default=False, alias="isInternal")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_ticket(
    body: TicketCreate,
    actor: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    ticket = await helpdesk.ticket_service.create_ticket(
        actor,
        title=body.title,
        description=body.description,
        category_id=body.category,
        priority=body.priority,
        tags=body.tags,
    )
    return {"ticket": ticket}


@router.get("")
async def list_tickets(
    actor: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return {"tickets": await helpdesk.ticket_service.list_tickets(actor)}


@router.get("/agents")
async def list_agents(
    _: UserRecord = Depends(staff_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return {"agents": await helpdesk.ticket_service.list_agents()}


@router.get("/{ticket_id}")
async def get_ticket(
    ticket_id: str,
    actor: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return {"ticket": await helpdesk.ticket_service.get_ticket(actor, ticket_id)}


@router.patch("/{ticket_id}")
async def update_ticket(
    ticket_id: str,
    body: TicketUpdate,
    actor: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    changes = body.model_dump(exclude_unset=True)
    return {"ticket": await helpdesk.ticket_service.update_ticket(actor, ticket_id, changes)}


@router.delete("/{ticket_id}")
async def delete_ticket(
    ticket_id: str,
    actor: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, str]:
    await helpdesk.ticket_service.delete_ticket(actor, ticket_id)
    return {"message": "Ticket deleted successfully"}


@router.patch("/{ticket_id}/assign")
async def assign_ticket(
    ticket_id: str,
    body: AssignBody | None = None,
    actor: UserRecord = Depends(staff_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    agent_id = body.agent_id if body else None
    return {"ticket": await helpdesk.ticket_service.claim_ticket(actor, ticket_id, agent_id)}


@router.patch("/{ticket_id}/release")
async def release_ticket(
    ticket_id: str,
    actor: UserRecord = Depends(staff_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return {"ticket": await helpdesk.ticket_service.release_ticket(actor, ticket_id)}


@router.get("/{ticket_id}/comments")
async def list_comments(
    ticket_id: str,
    actor: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return {"comments": await helpdesk.ticket_service.list_comments(actor, ticket_id)}


@router.post("/{ticket_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(
    ticket_id: str,
    body: CommentCreate,
    actor: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    comment = await helpdesk.ticket_service.add_comment(actor, ticket_id, body.content, body.is_internal)
    return {"comment": comment}
