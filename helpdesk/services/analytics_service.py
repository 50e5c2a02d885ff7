from __future__ import annotations

import logging
import platform
import resource
import sys
import time
from dataclasses import asdict, dataclass
from typing import Any

from core.config import DashboardConfig
from core.errors import ValidationError
from database.base import Database
from database.models import TicketRecord, UserRecord
from database.repositories import (
    AnalyticsRepository,
    CategoryRepository,
    QuestionRepository,
    TicketRepository,
    UpgradeRequestRepository,
    UserRepository,
)
from services.population import ReadJoiner
from services.security_service import SecurityService
from utils.constants import (
    CLEARABLE_COLLECTIONS,
    COLLECTION_ALIASES,
    EXPORT_TYPES,
    ROLE_ADMIN,
    ROLE_AGENT,
    TICKET_STATUS_CLOSED,
    TICKET_STATUS_OPEN,
    TICKET_STATUS_RESOLVED,
    TICKET_STATUSES,
    UPGRADE_PENDING,
    USER_ROLES,
)
from utils.time import now_iso, today_prefix

LOGGER = logging.getLogger(__name__)

RESOLVED_STATUSES = (TICKET_STATUS_RESOLVED, TICKET_STATUS_CLOSED)


@dataclass(slots=True)
class DashboardStats:
    totalUsers: int
    totalAgents: int
    totalAdmins: int
    totalTickets: int
    openTickets: int
    closedTickets: int
    totalQuestions: int
    totalCategories: int
    pendingUpgradeRequests: int


def _count_by_status(tickets: list[TicketRecord]) -> dict[str, int]:
    counts = {status: 0 for status in TICKET_STATUSES}
    for ticket in tickets:
        counts[ticket.status] = counts.get(ticket.status, 0) + 1
    return counts


def _rss_megabytes() -> str:
    usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Linux reports kilobytes, macOS reports bytes.
    rss_bytes = usage if sys.platform == "darwin" else usage * 1024
    return f"{rss_bytes / 1024 / 1024:.2f} MB"


class AnalyticsService:
    def __init__(
        self,
        dashboard_config: DashboardConfig,
        database: Database,
        analytics_repo: AnalyticsRepository,
        user_repo: UserRepository,
        category_repo: CategoryRepository,
        ticket_repo: TicketRepository,
        question_repo: QuestionRepository,
        request_repo: UpgradeRequestRepository,
        joiner: ReadJoiner,
        security: SecurityService,
    ) -> None:
        self.dashboard_config = dashboard_config
        self.database = database
        self.analytics_repo = analytics_repo
        self.user_repo = user_repo
        self.category_repo = category_repo
        self.ticket_repo = ticket_repo
        self.question_repo = question_repo
        self.request_repo = request_repo
        self.joiner = joiner
        self.security = security
        self.started_at = time.monotonic()

    async def build_dashboard(self) -> dict[str, Any]:
        stats = DashboardStats(
            totalUsers=await self.user_repo.count(),
            totalAgents=await self.user_repo.count(ROLE_AGENT),
            totalAdmins=await self.user_repo.count(ROLE_ADMIN),
            totalTickets=await self.ticket_repo.count(),
            openTickets=await self.ticket_repo.count(TICKET_STATUS_OPEN),
            closedTickets=await self.ticket_repo.count(TICKET_STATUS_CLOSED),
            totalQuestions=await self.question_repo.count(),
            totalCategories=await self.category_repo.count(),
            pendingUpgradeRequests=await self.request_repo.count(UPGRADE_PENDING),
        )
        limit = self.dashboard_config.recent_limit
        recent_users = await self.user_repo.list_recent(limit)
        recent_tickets = await self.ticket_repo.list_recent(limit)
        return {
            "stats": asdict(stats),
            "recentUsers": [user.public() for user in recent_users],
            "recentTickets": await self.joiner.tickets(recent_tickets),
        }

    async def admin_overview(self) -> dict[str, Any]:
        overview = await self.build_dashboard()
        overview["usersByRole"] = {role: await self.user_repo.count(role) for role in USER_ROLES}
        overview["ticketsByStatus"] = {status: await self.ticket_repo.count(status) for status in TICKET_STATUSES}
        questions = await self.question_repo.list_all()
        overview["recentQuestions"] = await self.joiner.questions(questions[: self.dashboard_config.recent_limit])
        return overview

    async def user_stats(self, actor: UserRecord) -> dict[str, Any]:
        tickets = await self.ticket_repo.list_by_creator(actor.id)
        by_status = _count_by_status(tickets)
        resolved = sum(by_status[status] for status in RESOLVED_STATUSES)
        questions = [q for q in await self.question_repo.list_all() if q.created_by_id == actor.id]
        limit = self.dashboard_config.recent_limit
        return {
            "stats": {
                "totalTickets": len(tickets),
                "openTickets": len(tickets) - resolved,
                "resolvedTickets": resolved,
                "byStatus": by_status,
                "totalQuestions": len(questions),
                "totalAnswers": sum(len(q.answers) for q in questions),
            },
            "recentTickets": await self.joiner.tickets(tickets[:limit]),
        }

    async def agent_overview(self, actor: UserRecord) -> dict[str, Any]:
        assigned = await self.ticket_repo.list_assigned_to(actor.id)
        resolved = [ticket for ticket in assigned if ticket.status in RESOLVED_STATUSES]
        today = today_prefix()
        unassigned_open = [
            ticket
            for ticket in await self.ticket_repo.list_all()
            if ticket.assigned_to_id is None and ticket.status == TICKET_STATUS_OPEN
        ]
        limit = self.dashboard_config.recent_limit
        return {
            "assignedTickets": len(assigned),
            "resolvedToday": sum(1 for ticket in resolved if (ticket.updated_at or "").startswith(today)),
            "pendingTickets": len(assigned) - len(resolved),
            "totalResolved": len(resolved),
            "unassignedOpenTickets": len(unassigned_open),
            "recentAssigned": await self.joiner.tickets(assigned[:limit]),
            "recentUnassigned": await self.joiner.tickets(unassigned_open[:limit]),
        }

    async def database_stats(self) -> list[dict[str, Any]]:
        return await self.analytics_repo.table_counts()

    async def system_health(self) -> dict[str, Any]:
        connected = self.database.is_connected
        cache = self.security.cache
        return {
            "database": {
                "status": "connected" if connected else "disconnected",
                "driver": self.database.driver,
            },
            "cache": {
                "status": "connected" if await cache.ping() else "disconnected",
                "backend": cache.name,
            },
            "server": {
                "uptime": round(time.monotonic() - self.started_at, 3),
                "memory": {"rss": _rss_megabytes()},
                "pythonVersion": platform.python_version(),
                "platform": sys.platform,
            },
        }

    async def clear_collection(self, actor: UserRecord, collection_name: str) -> dict[str, Any]:
        key = collection_name.strip().lower()
        key = COLLECTION_ALIASES.get(key, key)
        tables = CLEARABLE_COLLECTIONS.get(key)
        if tables is None:
            raise ValidationError("Collection not allowed for clearing")
        deleted = await self.analytics_repo.clear_tables(tables)
        await self.security.audit_action(actor.id, "collection_clear", key, {"deleted": deleted})
        LOGGER.warning("Collection cleared. collection=%s deleted=%s actor=%s", key, deleted, actor.id)
        return {
            "message": f"Cleared {deleted} documents from {collection_name}",
            "deletedCount": deleted,
        }

    async def export_data(self, export_type: str) -> dict[str, Any]:
        if export_type not in EXPORT_TYPES:
            raise ValidationError(f"Unknown export type: {export_type}")
        everything = export_type == "all"
        data: dict[str, Any] = {}
        if everything or export_type == "users":
            data["users"] = [user.public() for user in await self.user_repo.list_all()]
        if everything or export_type == "tickets":
            data["tickets"] = await self.joiner.tickets(await self.ticket_repo.list_all())
        if everything or export_type == "questions":
            data["questions"] = await self.joiner.questions(await self.question_repo.list_all())
        if everything or export_type == "categories":
            data["categories"] = [category.public() for category in await self.category_repo.list_all()]
        return {"data": data, "exportedAt": now_iso()}
