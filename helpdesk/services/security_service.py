from __future__ import annotations

import asyncio
import logging
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from core.config import AppConfig
from core.errors import AuthenticationError
from database.repositories import AuditRepository
from services.cache import CacheBackend
from utils.constants import AUDIT_ACTIONS
from utils.rate_limit import DistributedRateLimiter

LOGGER = logging.getLogger(__name__)


class SecurityService:
    def __init__(
        self,
        config: AppConfig,
        cache: CacheBackend,
        audit_repo: AuditRepository,
    ) -> None:
        self.config = config
        self.cache = cache
        self.audit_repo = audit_repo
        self.rate_limiter = DistributedRateLimiter(cache)
        self.pwd_context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=config.security.password_hash_rounds,
        )

    async def hash_password(self, password: str) -> str:
        # bcrypt is CPU bound; keep it off the event loop.
        return await asyncio.to_thread(self.pwd_context.hash, password)

    async def verify_password(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(self.pwd_context.verify, password, password_hash)

    def decode_token(self, token: str) -> str:
        """Return the user id carried by a bearer token."""
        try:
            payload = jwt.decode(
                token,
                self.config.server.jwt_secret,
                algorithms=[self.config.server.jwt_algorithm],
            )
        except JWTError as exc:
            raise AuthenticationError("Invalid or expired token.") from exc
        subject = payload.get("sub") or payload.get("id")
        if not subject:
            raise AuthenticationError("Token is missing a subject.")
        return str(subject)

    async def check_ticket_creation_rate(self, user_id: str) -> None:
        security = self.config.security
        if security.ticket_creation_cooldown_seconds > 0:
            await self.rate_limiter.enforce(
                f"ticket:cooldown:{user_id}",
                limit=1,
                window_seconds=security.ticket_creation_cooldown_seconds,
                message=f"Ticket creation cooldown active ({security.ticket_creation_cooldown_seconds}s).",
            )
        await self.rate_limiter.enforce(
            f"ticket:hourly:{user_id}",
            limit=security.ticket_creation_max_per_hour,
            window_seconds=3600,
            message="Hourly ticket creation limit exceeded.",
        )

    async def check_upgrade_request_rate(self, user_id: str) -> None:
        if self.config.security.upgrade_request_cooldown_seconds <= 0:
            return
        await self.rate_limiter.enforce(
            f"upgrade:cooldown:{user_id}",
            limit=1,
            window_seconds=self.config.security.upgrade_request_cooldown_seconds,
            message="Upgrade requests are rate limited. Try again later.",
        )

    async def audit_action(
        self,
        actor_id: str | None,
        action: str,
        target_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if action not in AUDIT_ACTIONS:
            LOGGER.warning("Recording unregistered audit action. action=%s", action)
        await self.audit_repo.log(actor_id, action, target_id, metadata)

    async def recent_audit_entries(self, limit: int = 50) -> list[dict[str, Any]]:
        rows = await self.audit_repo.list_recent(max(1, min(limit, 500)))
        return [
            {
                "id": row["id"],
                "actor": row["actor_id"],
                "action": row["action"],
                "target": row["target_id"],
                "metadata": row["metadata"],
                "createdAt": row["created_at"],
            }
            for row in rows
        ]
