from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from core.app import HelpdeskApp
from core.auth import current_user, get_helpdesk
from database.models import UserRecord

router = APIRouter(prefix="/auth", tags=["auth"])


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    language: str | None = None
    categories_of_interest: list[str] | None = Field(default=None, alias="categoryInInterest")


@router.get("/me")
async def me(actor: UserRecord = Depends(current_user)) -> dict[str, Any]:
    return {"user": actor.public()}


@router.put("/profile")
async def update_profile(
    body: ProfileUpdate,
    actor: UserRecord = Depends(current_user),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    user = await helpdesk.admin_service.update_profile(actor, body.model_dump(exclude_unset=True))
    return {"message": "Profile updated successfully", "user": user}
