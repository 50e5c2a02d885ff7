from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from core.errors import ConflictError, NotFoundError, ValidationError
from database.models import CategoryRecord, UserRecord
from database.repositories import (
    CategoryRepository,
    QuestionRepository,
    TicketRepository,
    UserRepository,
)
from services.population import ReadJoiner
from services.security_service import SecurityService
from services.ticket_service import TicketService
from utils.constants import DEFAULT_CATEGORY_COLOR, DEFAULT_LANGUAGE, ROLE_USER
from utils.time import now_iso
from utils.validation import (
    normalize_email,
    optional_text,
    require_text,
    validate_id_list,
    validate_role,
)

LOGGER = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "language", "categories_of_interest")


@dataclass(slots=True)
class AdminServiceDeps:
    user_repo: UserRepository
    category_repo: CategoryRepository
    ticket_repo: TicketRepository
    question_repo: QuestionRepository
    joiner: ReadJoiner
    security: SecurityService
    tickets: TicketService


class AdminService:
    def __init__(self, deps: AdminServiceDeps) -> None:
        self.deps = deps

    # Categories

    async def list_categories(self) -> list[dict[str, Any]]:
        return [category.public() for category in await self.deps.category_repo.list_all()]

    async def create_category(
        self,
        actor: UserRecord,
        name: Any,
        description: Any = None,
        color: Any = None,
    ) -> dict[str, Any]:
        stamp = now_iso()
        category = CategoryRecord(
            id=str(uuid4()),
            name=require_text(name, "Name"),
            description=optional_text(description) or "",
            color=optional_text(color) or DEFAULT_CATEGORY_COLOR,
            created_by_id=actor.id,
            created_at=stamp,
            updated_at=stamp,
        )
        await self.deps.category_repo.create(category)
        await self.deps.security.audit_action(actor.id, "category_create", category.id, {"name": category.name})
        LOGGER.info("Category created. category_id=%s actor=%s", category.id, actor.id)
        return category.public()

    async def update_category(self, actor: UserRecord, category_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        if "name" in changes:
            fields["name"] = require_text(changes["name"], "Name")
        if "description" in changes:
            fields["description"] = optional_text(changes["description"]) or ""
        if "color" in changes:
            fields["color"] = optional_text(changes["color"]) or DEFAULT_CATEGORY_COLOR
        if not await self.deps.category_repo.update_fields(category_id, fields):
            raise NotFoundError("Category not found")
        category = await self.deps.category_repo.get(category_id)
        if category is None:
            raise NotFoundError("Category not found")
        await self.deps.security.audit_action(actor.id, "category_update", category_id, {"fields": sorted(fields)})
        return category.public()

    async def delete_category(self, actor: UserRecord, category_id: str) -> None:
        if not await self.deps.category_repo.delete(category_id):
            raise NotFoundError("Category not found")
        await self.deps.security.audit_action(actor.id, "category_delete", category_id)
        LOGGER.info("Category deleted. category_id=%s actor=%s", category_id, actor.id)

    # Users

    async def list_users(self) -> list[dict[str, Any]]:
        return [user.public() for user in await self.deps.user_repo.list_all()]

    async def create_user(
        self,
        actor: UserRecord,
        name: Any,
        email: Any,
        password: Any,
        role: Any = None,
        language: Any = None,
        categories_of_interest: list[str] | None = None,
    ) -> dict[str, Any]:
        clean_name = require_text(name, "Name")
        clean_email = normalize_email(email)
        if not isinstance(password, str) or not password:
            raise ValidationError("Password is required.")
        clean_role = validate_role(role) if role is not None else ROLE_USER
        if await self.deps.user_repo.get_by_email(clean_email):
            raise ConflictError("User with this email already exists")

        stamp = now_iso()
        user = UserRecord(
            id=str(uuid4()),
            name=clean_name,
            email=clean_email,
            password_hash=await self.deps.security.hash_password(password),
            role=clean_role,
            language=optional_text(language) or DEFAULT_LANGUAGE,
            categories_of_interest=list(categories_of_interest or []),
            created_at=stamp,
            updated_at=stamp,
        )
        await self.deps.user_repo.create(user)
        await self.deps.security.audit_action(actor.id, "user_create", user.id, {"role": user.role})
        LOGGER.info("User created. user_id=%s role=%s actor=%s", user.id, user.role, actor.id)
        return user.public()

    async def change_user_role(self, actor: UserRecord, user_id: str, role: Any) -> dict[str, Any]:
        new_role = validate_role(role)
        if not await self.deps.user_repo.update_fields(user_id, {"role": new_role}):
            raise NotFoundError("User not found")
        await self.deps.security.audit_action(actor.id, "user_role", user_id, {"role": new_role})
        return await self._public_user(user_id)

    async def _user_fields(self, user_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        if "name" in changes:
            fields["name"] = require_text(changes["name"], "Name")
        if "email" in changes:
            email = normalize_email(changes["email"])
            owner = await self.deps.user_repo.get_by_email(email)
            if owner is not None and owner.id != user_id:
                raise ConflictError("Email already in use")
            fields["email"] = email
        if "role" in changes:
            fields["role"] = validate_role(changes["role"])
        if "language" in changes:
            fields["language"] = optional_text(changes["language"]) or DEFAULT_LANGUAGE
        if "categories_of_interest" in changes:
            fields["categories_of_interest"] = [str(item) for item in changes["categories_of_interest"] or []]
        return fields

    async def update_user(self, actor: UserRecord, user_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        existing = await self.deps.user_repo.get_by_id(user_id)
        if existing is None:
            raise NotFoundError("User not found")

        fields = await self._user_fields(user_id, changes)
        if not await self.deps.user_repo.update_fields(user_id, fields):
            raise NotFoundError("User not found")
        await self.deps.security.audit_action(actor.id, "user_update", user_id, {"fields": sorted(fields)})
        return await self._public_user(user_id)

    async def update_profile(self, actor: UserRecord, changes: dict[str, Any]) -> dict[str, Any]:
        """Self-service edit; role and email stay with the admins."""
        allowed = {key: value for key, value in changes.items() if key in PROFILE_FIELDS}
        fields = await self._user_fields(actor.id, allowed)
        if not await self.deps.user_repo.update_fields(actor.id, fields):
            raise NotFoundError("User not found")
        await self.deps.security.audit_action(actor.id, "profile_update", actor.id, {"fields": sorted(fields)})
        return await self._public_user(actor.id)

    async def reset_user_password(self, actor: UserRecord, user_id: str, new_password: Any) -> dict[str, str]:
        if not isinstance(new_password, str) or not new_password:
            raise ValidationError("New password is required.")
        password_hash = await self.deps.security.hash_password(new_password)
        if not await self.deps.user_repo.set_password_hash(user_id, password_hash):
            raise NotFoundError("User not found")
        await self.deps.security.audit_action(actor.id, "user_password_reset", user_id)
        LOGGER.info("Password reset. user_id=%s actor=%s", user_id, actor.id)
        return {"message": "Password reset successfully"}

    async def delete_user(self, actor: UserRecord, user_id: str) -> None:
        if not await self.deps.user_repo.delete(user_id):
            raise NotFoundError("User not found")
        await self.deps.security.audit_action(actor.id, "user_delete", user_id)
        LOGGER.info("User deleted. user_id=%s actor=%s", user_id, actor.id)

    async def bulk_delete_users(self, actor: UserRecord, user_ids: Any) -> int:
        ids = [user_id for user_id in validate_id_list(user_ids) if user_id != actor.id]
        if not ids:
            raise ValidationError("You cannot delete your own account.")
        deleted = await self.deps.user_repo.delete_many(ids)
        await self.deps.security.audit_action(actor.id, "user_bulk_delete", None, {"ids": ids, "deleted": deleted})
        LOGGER.info("Bulk user delete. requested=%s deleted=%s actor=%s", len(ids), deleted, actor.id)
        return deleted

    async def bulk_change_roles(self, actor: UserRecord, user_ids: Any, role: Any) -> int:
        ids = validate_id_list(user_ids)
        new_role = validate_role(role)
        modified = await self.deps.user_repo.set_role_many(ids, new_role)
        await self.deps.security.audit_action(
            actor.id,
            "user_bulk_role",
            None,
            {"ids": ids, "role": new_role, "modified": modified},
        )
        return modified

    # Tickets and questions

    async def list_tickets(self) -> list[dict[str, Any]]:
        return await self.deps.joiner.tickets(await self.deps.ticket_repo.list_all())

    async def delete_ticket(self, actor: UserRecord, ticket_id: str) -> None:
        await self.deps.tickets.delete_ticket(actor, ticket_id)

    async def list_questions(self) -> list[dict[str, Any]]:
        return await self.deps.joiner.questions(await self.deps.question_repo.list_all())

    async def delete_question(self, actor: UserRecord, question_id: str) -> None:
        if not await self.deps.question_repo.delete(question_id):
            raise NotFoundError("Question not found")
        await self.deps.security.audit_action(actor.id, "question_delete", question_id)

    async def _public_user(self, user_id: str) -> dict[str, Any]:
        user = await self.deps.user_repo.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user.public()
