from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from core.app import HelpdeskApp
from core.auth import current_user, get_helpdesk, require_roles
from database.models import UserRecord
from utils.constants import ROLE_ADMIN, ROLE_AGENT

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/admin/overview")
async def admin_overview(
    _: UserRecord = Depends(require_roles(ROLE_ADMIN)),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return await helpdesk.analytics_service.admin_overview()


@router.get("/agent/overview")
async def agent_overview(
    actor: UserRecord = Depends(require_roles(ROLE_AGENT, ROLE_ADMIN)),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return await helpdesk.analytics_service.agent_overview(actor)


@router.get("/user/stats")
async def user_stats(
    actor: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return await helpdesk.analytics_service.user_stats(actor)


@router.get("/tickets")
async def dashboard_tickets(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status: str | None = None,
    category: str | None = None,
    search: str | None = None,
    sort_by: str | None = Query(default=None, alias="sortBy"),
    actor: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    result = await helpdesk.ticket_service.search_tickets(
        actor,
        page=page,
        limit=limit,
        status=status,
        category=category,
        search=search,
        sort_by=sort_by,
    )
    return result.as_payload()
