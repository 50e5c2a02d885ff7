from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from core.config import AppConfig
from core.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    TicketStateError,
    ValidationError,
)
from database.models import TicketComment, TicketRecord, UserRecord
from database.repositories import (
    CategoryRepository,
    CommentRepository,
    TicketRepository,
    UserRepository,
)
from services.population import ReadJoiner
from services.security_service import SecurityService
from utils.constants import (
    DEFAULT_PRIORITY,
    PRIORITY_LEVELS,
    ROLE_ADMIN,
    STAFF_ROLES,
    TERMINAL_STATUSES,
    TICKET_STATUS_OPEN,
    TICKET_STATUSES,
)
from utils.search import matches_search, matches_value
from utils.time import now_iso
from utils.validation import (
    normalize_tags,
    optional_text,
    require_text,
    validate_priority,
    validate_status,
)

LOGGER = logging.getLogger(__name__)

TICKET_SEARCH_FIELDS = ("title", "description", "tags")
TICKET_SORT_ORDERS = ("newest", "oldest", "updated", "priority", "status")
MAX_PAGE_SIZE = 100


@dataclass(slots=True)
class TicketServiceDeps:
    user_repo: UserRepository
    category_repo: CategoryRepository
    ticket_repo: TicketRepository
    comment_repo: CommentRepository
    joiner: ReadJoiner
    security: SecurityService


def is_staff(user: UserRecord) -> bool:
    return user.role in STAFF_ROLES


def is_admin(user: UserRecord) -> bool:
    return user.role == ROLE_ADMIN


@dataclass(slots=True)
class TicketPage:
    tickets: list[dict[str, Any]]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return max(math.ceil(self.total / self.limit), 1)

    def as_payload(self) -> dict[str, Any]:
        return {
            "tickets": self.tickets,
            "total": self.total,
            "currentPage": self.page,
            "totalPages": self.pages,
        }


def _sort_tickets(tickets: list[TicketRecord], sort_by: str) -> list[TicketRecord]:
    if sort_by == "newest":
        return sorted(tickets, key=lambda t: t.created_at or "", reverse=True)
    if sort_by == "oldest":
        return sorted(tickets, key=lambda t: t.created_at or "")
    if sort_by == "updated":
        return sorted(tickets, key=lambda t: t.updated_at or "", reverse=True)
    if sort_by == "priority":
        # Highest first, newest first within a level.
        newest = _sort_tickets(tickets, "newest")
        return sorted(newest, key=lambda t: PRIORITY_LEVELS.index(t.priority), reverse=True)
    if sort_by == "status":
        return sorted(_sort_tickets(tickets, "newest"), key=lambda t: TICKET_STATUSES.index(t.status))
    raise ValidationError(f"sortBy must be one of: {', '.join(TICKET_SORT_ORDERS)}")


class TicketService:
    """Ticket lifecycle: creation, assignment, status workflow and comments."""

    def __init__(self, config: AppConfig, deps: TicketServiceDeps) -> None:
        self.config = config
        self.deps = deps

    async def check_ticket_open_limits(self, user_id: str) -> None:
        open_count = await self.deps.ticket_repo.count_open_by_creator(user_id)
        if open_count >= self.config.security.max_open_tickets_per_user:
            raise ValidationError(
                f"You already have {open_count} open tickets. Close one before opening another."
            )
        await self.deps.security.check_ticket_creation_rate(user_id)

    async def _resolve_category(self, category_id: Any) -> str | None:
        cleaned = optional_text(category_id)
        if cleaned is None:
            return None
        if await self.deps.category_repo.get(cleaned) is None:
            raise ValidationError(f"Unknown category: {cleaned}")
        return cleaned

    async def create_ticket(
        self,
        actor: UserRecord,
        title: Any,
        description: Any,
        category_id: Any = None,
        priority: Any = None,
        tags: list[Any] | None = None,
    ) -> dict[str, Any]:
        clean_title = require_text(title, "Title")
        clean_description = require_text(description, "Description")
        clean_priority = validate_priority(priority) if priority is not None else DEFAULT_PRIORITY
        clean_category = await self._resolve_category(category_id)
        await self.check_ticket_open_limits(actor.id)

        stamp = now_iso()
        record = TicketRecord(
            id=str(uuid4()),
            title=clean_title,
            description=clean_description,
            created_by_id=actor.id,
            category_id=clean_category,
            priority=clean_priority,
            status=TICKET_STATUS_OPEN,
            tags=normalize_tags(tags),
            created_at=stamp,
            updated_at=stamp,
        )
        await self.deps.ticket_repo.create(record)
        await self.deps.security.audit_action(actor.id, "ticket_create", record.id, {"priority": record.priority})
        LOGGER.info("Ticket created. ticket_id=%s user=%s", record.id, actor.id)
        return await self.deps.joiner.ticket(record)

    async def get_ticket_record(self, ticket_id: str) -> TicketRecord:
        ticket = await self.deps.ticket_repo.get_by_id(ticket_id)
        if not ticket:
            raise NotFoundError("Ticket not found")
        return ticket

    def _ensure_can_view(self, actor: UserRecord, ticket: TicketRecord) -> None:
        if is_staff(actor) or ticket.created_by_id == actor.id:
            return
        raise PermissionDeniedError("You do not have access to this ticket.")

    async def list_tickets(self, actor: UserRecord) -> list[dict[str, Any]]:
        if is_staff(actor):
            tickets = await self.deps.ticket_repo.list_all()
        else:
            tickets = await self.deps.ticket_repo.list_by_creator(actor.id)
        return await self.deps.joiner.tickets(tickets)

    async def search_tickets(
        self,
        actor: UserRecord,
        page: int = 1,
        limit: int = 10,
        status: str | None = None,
        category: str | None = None,
        search: str | None = None,
        sort_by: str | None = None,
    ) -> TicketPage:
        """One page of the tickets ``actor`` may see, filtered and sorted."""
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)
        if is_staff(actor):
            tickets = await self.deps.ticket_repo.list_all()
        else:
            tickets = await self.deps.ticket_repo.list_by_creator(actor.id)

        matched = [
            ticket
            for ticket in tickets
            if matches_value(ticket.status, status)
            and matches_value(ticket.category_id, category)
            and matches_search(
                {"title": ticket.title, "description": ticket.description, "tags": ticket.tags},
                search,
                TICKET_SEARCH_FIELDS,
            )
        ]
        ordered = _sort_tickets(matched, sort_by or "newest")
        start = (page - 1) * limit
        return TicketPage(
            tickets=await self.deps.joiner.tickets(ordered[start : start + limit]),
            page=page,
            limit=limit,
            total=len(matched),
        )

    async def get_ticket(self, actor: UserRecord, ticket_id: str) -> dict[str, Any]:
        ticket = await self.get_ticket_record(ticket_id)
        self._ensure_can_view(actor, ticket)
        return await self.deps.joiner.ticket(ticket)

    async def list_agents(self) -> list[dict[str, Any]]:
        agents = await self.deps.user_repo.list_by_roles(STAFF_ROLES)
        return [{**agent.summary(), "role": agent.role} for agent in agents]

    async def claim_ticket(
        self,
        actor: UserRecord,
        ticket_id: str,
        assignee_id: str | None = None,
    ) -> dict[str, Any]:
        if not is_staff(actor):
            raise PermissionDeniedError("Only agents and admins can claim tickets.")
        assignee = actor
        if assignee_id and assignee_id != actor.id:
            if not is_admin(actor):
                raise PermissionDeniedError("Agents can only claim tickets for themselves.")
            target = await self.deps.user_repo.get_by_id(assignee_id)
            if target is None or not is_staff(target):
                raise ValidationError("Tickets can only be assigned to agents or admins.")
            assignee = target

        ticket = await self.get_ticket_record(ticket_id)
        if ticket.status in TERMINAL_STATUSES:
            raise TicketStateError("Closed tickets cannot be claimed.")
        if not await self.deps.ticket_repo.claim(ticket_id, assignee.id):
            raise ConflictError("Ticket is already assigned or no longer open.")

        await self.deps.security.audit_action(actor.id, "ticket_claim", ticket_id, {"assignee": assignee.id})
        LOGGER.info("Ticket claimed. ticket_id=%s assignee=%s actor=%s", ticket_id, assignee.id, actor.id)
        return await self.deps.joiner.ticket(await self.get_ticket_record(ticket_id))

    async def release_ticket(self, actor: UserRecord, ticket_id: str) -> dict[str, Any]:
        ticket = await self.get_ticket_record(ticket_id)
        if ticket.assigned_to_id != actor.id and not is_admin(actor):
            raise PermissionDeniedError("Only the assignee or an admin can release this ticket.")
        if ticket.status in TERMINAL_STATUSES:
            raise TicketStateError("Closed tickets cannot be released.")
        if ticket.assigned_to_id is None or not await self.deps.ticket_repo.release(ticket_id):
            raise ConflictError("Ticket is not assigned.")

        await self.deps.security.audit_action(actor.id, "ticket_release", ticket_id, {"previous": ticket.assigned_to_id})
        LOGGER.info("Ticket released. ticket_id=%s actor=%s", ticket_id, actor.id)
        return await self.deps.joiner.ticket(await self.get_ticket_record(ticket_id))

    def _check_status_change(self, actor: UserRecord, ticket: TicketRecord, status: Any) -> str:
        new_status = validate_status(status)
        if not is_admin(actor):
            if ticket.assigned_to_id is None:
                raise PermissionDeniedError("Only an admin can change the status of an unassigned ticket.")
            if ticket.assigned_to_id != actor.id:
                raise PermissionDeniedError("Only the assigned agent can change this ticket's status.")
        if ticket.status in TERMINAL_STATUSES:
            raise TicketStateError("Closed tickets cannot change status.")
        return new_status

    async def _apply_status(self, actor: UserRecord, ticket: TicketRecord, new_status: str) -> None:
        if ticket.status == new_status:
            return
        if not await self.deps.ticket_repo.set_status(ticket.id, new_status):
            raise TicketStateError("Closed tickets cannot change status.")
        await self.deps.security.audit_action(
            actor.id,
            "ticket_status",
            ticket.id,
            {"from": ticket.status, "to": new_status},
        )
        LOGGER.info("Ticket status changed. ticket_id=%s %s->%s actor=%s", ticket.id, ticket.status, new_status, actor.id)

    async def change_status(self, actor: UserRecord, ticket_id: str, status: Any) -> dict[str, Any]:
        ticket = await self.get_ticket_record(ticket_id)
        new_status = self._check_status_change(actor, ticket, status)
        if ticket.status == new_status:
            return await self.deps.joiner.ticket(ticket)
        await self._apply_status(actor, ticket, new_status)
        return await self.deps.joiner.ticket(await self.get_ticket_record(ticket_id))

    async def update_ticket(self, actor: UserRecord, ticket_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Apply content edits and a status change together, or neither.

        Every permission and field is checked before the first write.
        """
        ticket = await self.get_ticket_record(ticket_id)
        content = {key: value for key, value in changes.items() if key != "status"}
        fields = await self._check_edit(actor, ticket, content) if content else None
        new_status = self._check_status_change(actor, ticket, changes["status"]) if "status" in changes else None

        if fields is not None:
            if not await self.deps.ticket_repo.update_fields(ticket_id, fields):
                raise TicketStateError("Closed tickets cannot be edited.")
            await self.deps.security.audit_action(actor.id, "ticket_update", ticket_id, {"fields": sorted(fields)})
        if new_status is not None:
            await self._apply_status(actor, ticket, new_status)
        return await self.deps.joiner.ticket(await self.get_ticket_record(ticket_id))

    async def _check_edit(self, actor: UserRecord, ticket: TicketRecord, changes: dict[str, Any]) -> dict[str, Any]:
        if ticket.created_by_id != actor.id and not is_admin(actor):
            raise PermissionDeniedError("Only the creator or an admin can edit this ticket.")
        if ticket.status in TERMINAL_STATUSES:
            raise TicketStateError("Closed tickets cannot be edited.")

        fields: dict[str, Any] = {}
        if "title" in changes:
            fields["title"] = require_text(changes["title"], "Title")
        if "description" in changes:
            fields["description"] = require_text(changes["description"], "Description")
        if "category_id" in changes:
            fields["category_id"] = await self._resolve_category(changes["category_id"])
        if "priority" in changes:
            fields["priority"] = validate_priority(changes["priority"])
        if "tags" in changes:
            fields["tags"] = normalize_tags(changes["tags"])
        return fields

    async def delete_ticket(self, actor: UserRecord, ticket_id: str) -> None:
        ticket = await self.get_ticket_record(ticket_id)
        if ticket.created_by_id != actor.id and not is_admin(actor):
            raise PermissionDeniedError("Only the creator or an admin can delete this ticket.")
        if not await self.deps.ticket_repo.delete(ticket_id):
            raise NotFoundError("Ticket not found")
        await self.deps.comment_repo.delete_for_ticket(ticket_id)
        await self.deps.security.audit_action(actor.id, "ticket_delete", ticket_id)
        LOGGER.info("Ticket deleted. ticket_id=%s actor=%s", ticket_id, actor.id)

    async def add_comment(
        self,
        actor: UserRecord,
        ticket_id: str,
        content: Any,
        is_internal: bool = False,
    ) -> dict[str, Any]:
        ticket = await self.get_ticket_record(ticket_id)
        self._ensure_can_view(actor, ticket)
        if is_internal and not is_staff(actor):
            raise PermissionDeniedError("Only agents and admins can post internal comments.")
        comment = TicketComment(
            id=str(uuid4()),
            ticket_id=ticket_id,
            author_id=actor.id,
            content=require_text(content, "Content"),
            is_internal=bool(is_internal),
            created_at=now_iso(),
        )
        await self.deps.comment_repo.add(comment)
        return (await self.deps.joiner.comments([comment]))[0]

    async def list_comments(self, actor: UserRecord, ticket_id: str) -> list[dict[str, Any]]:
        ticket = await self.get_ticket_record(ticket_id)
        self._ensure_can_view(actor, ticket)
        comments = await self.deps.comment_repo.list_for_ticket(ticket_id, include_internal=is_staff(actor))
        return await self.deps.joiner.comments(comments)
