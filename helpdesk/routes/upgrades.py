from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from core.app import HelpdeskApp
from core.auth import current_user, get_helpdesk, require_roles
from database.models import UserRecord
from utils.constants import ROLE_ADMIN

router = APIRouter(prefix="/auth", tags=["upgrades"])


class UpgradeDecision(BaseModel):
    approved: bool


@router.post("/request-upgrade", status_code=status.HTTP_201_CREATED)
async def request_upgrade(
    actor: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    request = await helpdesk.upgrade_service.request_upgrade(actor)
    return {"message": "Upgrade request submitted", "request": request}


@router.get("/upgrade-requests")
async def list_upgrade_requests(
    status_filter: str | None = Query(default=None, alias="status"),
    _: UserRecord = Depends(require_roles(ROLE_ADMIN)),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return {"requests": await helpdesk.upgrade_service.list_requests(status_filter)}


@router.put("/approve-upgrade/{request_id}")
async def approve_upgrade(
    request_id: str,
    body: UpgradeDecision,
    actor: UserRecord = Depends(require_roles(ROLE_ADMIN)),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    request = await helpdesk.upgrade_service.resolve(actor, request_id, body.approved)
    verdict = "approved" if body.approved else "rejected"
    return {"message": f"Upgrade request {verdict}", "request": request}
