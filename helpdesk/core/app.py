from __future__ import annotations

import logging
from pathlib import Path

from core.config import AppConfig
from database.base import Database
from database.migrations.runner import run_migrations
from database.repositories import (
    AnalyticsRepository,
    AuditRepository,
    CategoryRepository,
    CommentRepository,
    QuestionRepository,
    TicketRepository,
    UpgradeRequestRepository,
    UserRepository,
)
from services.admin_service import AdminService, AdminServiceDeps
from services.analytics_service import AnalyticsService
from services.cache import CacheBackend, build_cache
from services.population import ReadJoiner
from services.question_service import QuestionService
from services.security_service import SecurityService
from services.ticket_service import TicketService, TicketServiceDeps
from services.upgrade_service import UpgradeService

LOGGER = logging.getLogger(__name__)


class HelpdeskApp:
    """Owns the store connection, the cache and every service built on them."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.root_dir = Path(__file__).resolve().parent.parent
        self.database = Database(
            url=config.database.url,
            timeout_seconds=config.database.timeout_seconds,
            pool_min_size=config.database.pool_min_size,
            pool_max_size=config.database.pool_max_size,
        )
        self.cache: CacheBackend | None = None

        # Repositories and services are initialized during setup.
        self.user_repo: UserRepository
        self.category_repo: CategoryRepository
        self.ticket_repo: TicketRepository
        self.comment_repo: CommentRepository
        self.question_repo: QuestionRepository
        self.request_repo: UpgradeRequestRepository
        self.audit_repo: AuditRepository
        self.analytics_repo: AnalyticsRepository

        self.security_service: SecurityService
        self.ticket_service: TicketService
        self.question_service: QuestionService
        self.upgrade_service: UpgradeService
        self.admin_service: AdminService
        self.analytics_service: AnalyticsService

    async def setup(self) -> None:
        await self.database.connect()
        applied = await run_migrations(self.database)
        if applied:
            LOGGER.info("Applied migrations: %s", ", ".join(applied))
        self.cache = build_cache(self.config.redis)

        self.user_repo = UserRepository(self.database)
        self.category_repo = CategoryRepository(self.database)
        self.ticket_repo = TicketRepository(self.database)
        self.comment_repo = CommentRepository(self.database)
        self.question_repo = QuestionRepository(self.database)
        self.request_repo = UpgradeRequestRepository(self.database)
        self.audit_repo = AuditRepository(self.database)
        self.analytics_repo = AnalyticsRepository(self.database)

        joiner = ReadJoiner(self.user_repo, self.category_repo)
        self.security_service = SecurityService(self.config, self.cache, self.audit_repo)
        self.ticket_service = TicketService(
            self.config,
            TicketServiceDeps(
                user_repo=self.user_repo,
                category_repo=self.category_repo,
                ticket_repo=self.ticket_repo,
                comment_repo=self.comment_repo,
                joiner=joiner,
                security=self.security_service,
            ),
        )
        self.question_service = QuestionService(
            self.question_repo,
            self.category_repo,
            joiner,
            self.security_service,
        )
        self.upgrade_service = UpgradeService(self.request_repo, self.user_repo, joiner, self.security_service)
        self.admin_service = AdminService(
            AdminServiceDeps(
                user_repo=self.user_repo,
                category_repo=self.category_repo,
                ticket_repo=self.ticket_repo,
                question_repo=self.question_repo,
                joiner=joiner,
                security=self.security_service,
                tickets=self.ticket_service,
            )
        )
        self.analytics_service = AnalyticsService(
            dashboard_config=self.config.dashboard,
            database=self.database,
            analytics_repo=self.analytics_repo,
            user_repo=self.user_repo,
            category_repo=self.category_repo,
            ticket_repo=self.ticket_repo,
            question_repo=self.question_repo,
            request_repo=self.request_repo,
            joiner=joiner,
            security=self.security_service,
        )
        LOGGER.info("Helpdesk services ready. driver=%s cache=%s", self.database.driver, self.cache.name)

    async def close(self) -> None:
        if self.cache:
            await self.cache.close()
        await self.database.close()
