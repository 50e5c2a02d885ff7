from __future__ import annotations

import logging
from typing import Any
from uuid import uuid4

from core.errors import ConflictError, NotFoundError, ValidationError
from database.models import UpgradeRequestRecord, UserRecord
from database.repositories import UpgradeRequestRepository, UserRepository
from services.population import ReadJoiner
from services.security_service import SecurityService
from utils.constants import (
    ROLE_AGENT,
    ROLE_USER,
    UPGRADE_APPROVED,
    UPGRADE_PENDING,
    UPGRADE_REJECTED,
)
from utils.time import now_iso

LOGGER = logging.getLogger(__name__)


class UpgradeService:
    """Role elevation requests. Each request is resolved exactly once."""

    def __init__(
        self,
        request_repo: UpgradeRequestRepository,
        user_repo: UserRepository,
        joiner: ReadJoiner,
        security: SecurityService,
    ) -> None:
        self.request_repo = request_repo
        self.user_repo = user_repo
        self.joiner = joiner
        self.security = security

    async def request_upgrade(self, actor: UserRecord) -> dict[str, Any]:
        if actor.role != ROLE_USER:
            raise ValidationError("Only users can request an upgrade.")
        if await self.request_repo.get_pending_for(actor.id):
            raise ConflictError("You already have a pending upgrade request.")
        await self.security.check_upgrade_request_rate(actor.id)

        request = UpgradeRequestRecord(
            id=str(uuid4()),
            requester_id=actor.id,
            requested_role=ROLE_AGENT,
            status=UPGRADE_PENDING,
            created_at=now_iso(),
        )
        await self.request_repo.create(request)
        await self.security.audit_action(actor.id, "upgrade_request", request.id)
        LOGGER.info("Upgrade requested. request_id=%s user=%s", request.id, actor.id)
        return (await self.joiner.upgrade_requests([request]))[0]

    async def list_requests(self, status: str | None = None) -> list[dict[str, Any]]:
        return await self.joiner.upgrade_requests(await self.request_repo.list_all(status))

    async def resolve(self, actor: UserRecord, request_id: str, approved: bool) -> dict[str, Any]:
        request = await self.request_repo.get(request_id)
        if request is None:
            raise NotFoundError("Upgrade request not found")
        status = UPGRADE_APPROVED if approved else UPGRADE_REJECTED
        if request.status != UPGRADE_PENDING or not await self.request_repo.resolve(request_id, status, actor.id):
            raise ConflictError("Upgrade request has already been resolved.")

        if approved:
            promoted = await self.user_repo.update_fields(request.requester_id, {"role": request.requested_role})
            if not promoted:
                LOGGER.warning("Approved upgrade for missing user. request_id=%s", request_id)
        await self.security.audit_action(actor.id, "upgrade_resolve", request_id, {"status": status})
        LOGGER.info("Upgrade request resolved. request_id=%s status=%s actor=%s", request_id, status, actor.id)

        resolved = await self.request_repo.get(request_id)
        if resolved is None:
            raise NotFoundError("Upgrade request not found")
        return (await self.joiner.upgrade_requests([resolved]))[0]
