from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from core.app import HelpdeskApp
from core.auth import get_helpdesk, require_roles
from database.models import UserRecord
from utils.constants import ROLE_ADMIN

router = APIRouter(prefix="/admin", tags=["admin"])
admin_only = require_roles(ROLE_ADMIN)


class CategoryCreate(BaseModel):
    name: str | None = None
    description: str | None = None
    color: str | None = None


class CategoryUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    color: str | None = None


class UserCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    email: str | None = None
    password: str | None = None
    role: str | None = None
    language: str | None = None
    categories_of_interest: list[str] | None = Field(default=None, alias="categoryInInterest")


class UserUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = None
    email: str | None = None
    role: str | None = None
    language: str | None = None
    categories_of_interest: list[str] | None = Field(default=None, alias="categoryInInterest")


class RoleChange(BaseModel):
    role: str | None = None


class PasswordReset(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_password: str | None = Field(default=None, alias="newPassword")


class BulkDelete(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_ids: list[Any] | None = Field(default=None, alias="userIds")


class BulkRoleChange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_ids: list[Any] | None = Field(default=None, alias="userIds")
    new_role: str | None = Field(default=None, alias="newRole")


# Categories


@router.get("/categories")
async def list_categories(
    _: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return {"categories": await helpdesk.admin_service.list_categories()}


@router.post("/categories", status_code=status.HTTP_201_CREATED)
async def create_category(
    body: CategoryCreate,
    actor: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    category = await helpdesk.admin_service.create_category(actor, body.name, body.description, body.color)
    return {"category": category}


@router.put("/categories/{category_id}")
async def update_category(
    category_id: str,
    body: CategoryUpdate,
    actor: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    changes = body.model_dump(exclude_unset=True)
    return {"category": await helpdesk.admin_service.update_category(actor, category_id, changes)}


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: str,
    actor: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, str]:
    await helpdesk.admin_service.delete_category(actor, category_id)
    return {"message": "Category deleted successfully"}


# Users


@router.get("/users")
async def list_users(
    _: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return {"users": await helpdesk.admin_service.list_users()}


@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    actor: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    user = await helpdesk.admin_service.create_user(
        actor,
        name=body.name,
        email=body.email,
        password=body.password,
        role=body.role,
        language=body.language,
        categories_of_interest=body.categories_of_interest,
    )
    return {"message": "User created successfully", "user": user}


@router.delete("/users/bulk")
async def bulk_delete_users(
    body: BulkDelete,
    actor: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    deleted = await helpdesk.admin_service.bulk_delete_users(actor, body.user_ids)
    return {"message": f"{deleted} users deleted successfully", "deletedCount": deleted}


@router.put("/users/bulk/roles")
async def bulk_change_roles(
    body: BulkRoleChange,
    actor: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    modified = await helpdesk.admin_service.bulk_change_roles(actor, body.user_ids, body.new_role)
    return {"message": f"{modified} users updated successfully", "modifiedCount": modified}


@router.put("/users/{user_id}")
async def update_user(
    user_id: str,
    body: UserUpdate,
    actor: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    changes = body.model_dump(exclude_unset=True)
    user = await helpdesk.admin_service.update_user(actor, user_id, changes)
    return {"message": "User updated successfully", "user": user}


@router.put("/users/{user_id}/role")
async def change_user_role(
    user_id: str,
    body: RoleChange,
    actor: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return {"user": await helpdesk.admin_service.change_user_role(actor, user_id, body.role)}


@router.put("/users/{user_id}/reset-password")
async def reset_user_password(
    user_id: str,
    body: PasswordReset,
    actor: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, str]:
    return await helpdesk.admin_service.reset_user_password(actor, user_id, body.new_password)


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: str,
    actor: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, str]:
    await helpdesk.admin_service.delete_user(actor, user_id)
    return {"message": "User deleted successfully"}


# Tickets and questions


@router.get("/tickets")
async def list_tickets(
    _: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return {"tickets": await helpdesk.admin_service.list_tickets()}


@router.delete("/tickets/{ticket_id}")
async def delete_ticket(
    ticket_id: str,
    actor: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, str]:
    await helpdesk.admin_service.delete_ticket(actor, ticket_id)
    return {"message": "Ticket deleted successfully"}


@router.get("/questions")
async def list_questions(
    _: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return {"questions": await helpdesk.admin_service.list_questions()}


@router.delete("/questions/{question_id}")
async def delete_question(
    question_id: str,
    actor: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, str]:
    await helpdesk.admin_service.delete_question(actor, question_id)
    return {"message": "Question deleted successfully"}


# Dashboard and maintenance


@router.get("/dashboard/stats")
async def dashboard_stats(
    _: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return await helpdesk.analytics_service.build_dashboard()


@router.get("/database/stats")
async def database_stats(
    _: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return {"dbStats": await helpdesk.analytics_service.database_stats()}


@router.get("/system/health")
async def system_health(
    _: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return await helpdesk.analytics_service.system_health()


@router.delete("/database/{collection_name}")
async def clear_collection(
    collection_name: str,
    actor: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return await helpdesk.analytics_service.clear_collection(actor, collection_name)


@router.get("/export/{export_type}")
async def export_data(
    export_type: str,
    _: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return await helpdesk.analytics_service.export_data(export_type)


@router.get("/audit-logs")
async def audit_logs(
    limit: int = Query(default=50, ge=1, le=500),
    _: UserRecord = Depends(admin_only),
    helpdesk: HelpdeskApp = Depends(get_helpdesk),
) -> dict[str, Any]:
    return {"logs": await helpdesk.security_service.recent_audit_entries(limit)}
