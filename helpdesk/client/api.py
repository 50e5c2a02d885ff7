from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import aiohttp

from core.config import ClientConfig

LOGGER = logging.getLogger(__name__)


class ApiError(RuntimeError):
    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


class TokenStore:
    """Bearer token persisted in a local file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> str | None:
        if not self.path.exists():
            return None
        token = self.path.read_text(encoding="utf-8").strip()
        return token or None

    def save(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(token, encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class HelpdeskClient:
    def __init__(
        self,
        config: ClientConfig,
        session: aiohttp.ClientSession | None = None,
        token_store: TokenStore | None = None,
    ) -> None:
        self.base_url = config.base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=config.timeout_seconds)
        self.tokens = token_store or TokenStore(config.token_path)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> HelpdeskClient:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.tokens.load()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def request(
        self,
        method: str,
        endpoint: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.base_url}{endpoint}"
        query = {key: str(value) for key, value in (params or {}).items() if value is not None}
        async with self._get_session().request(
            method,
            url,
            json=json,
            params=query or None,
            headers=self._headers(),
        ) as response:
            if response.status >= 400:
                message = "Request failed"
                try:
                    body = await response.json(content_type=None)
                except (aiohttp.ContentTypeError, ValueError):
                    body = None
                if isinstance(body, dict) and body.get("message"):
                    message = str(body["message"])
                LOGGER.debug("API error. method=%s url=%s status=%s", method, url, response.status)
                raise ApiError(response.status, message)
            return await response.json(content_type=None)

    # Account

    async def me(self) -> Any:
        return await self.request("GET", "/auth/me")

    async def update_profile(self, data: dict[str, Any]) -> Any:
        return await self.request("PUT", "/auth/profile", json=data)

    # Upgrades

    async def request_upgrade(self) -> Any:
        return await self.request("POST", "/auth/request-upgrade")

    async def get_upgrade_requests(self, status: str | None = None) -> Any:
        return await self.request("GET", "/auth/upgrade-requests", params={"status": status})

    async def approve_upgrade(self, request_id: str, approved: bool) -> Any:
        return await self.request("PUT", f"/auth/approve-upgrade/{request_id}", json={"approved": approved})

    # Questions

    async def create_question(self, data: dict[str, Any]) -> Any:
        return await self.request("POST", "/questions", json=data)

    async def list_questions(self, **params: Any) -> Any:
        return await self.request("GET", "/questions", params=params)

    async def get_question(self, question_id: str) -> Any:
        return await self.request("GET", f"/questions/{question_id}")

    async def update_question(self, question_id: str, data: dict[str, Any]) -> Any:
        return await self.request("PUT", f"/questions/{question_id}", json=data)

    async def delete_question(self, question_id: str) -> Any:
        return await self.request("DELETE", f"/questions/{question_id}")

    async def vote(self, question_id: str, direction: str) -> Any:
        return await self.request("POST", f"/questions/{question_id}/vote", json={"type": direction})

    async def add_answer(self, question_id: str, content: str) -> Any:
        return await self.request("POST", f"/questions/{question_id}/answer", json={"content": content})

    # Dashboards

    async def admin_stats(self) -> Any:
        return await self.request("GET", "/admin/dashboard/stats")

    async def database_stats(self) -> Any:
        return await self.request("GET", "/admin/database/stats")

    async def system_health(self) -> Any:
        return await self.request("GET", "/admin/system/health")

    async def admin_overview(self) -> Any:
        return await self.request("GET", "/dashboard/admin/overview")

    async def agent_overview(self) -> Any:
        return await self.request("GET", "/dashboard/agent/overview")

    async def user_stats(self) -> Any:
        return await self.request("GET", "/dashboard/user/stats")

    async def dashboard_tickets(self, **params: Any) -> Any:
        return await self.request("GET", "/dashboard/tickets", params=params)

    async def clear_collection(self, name: str) -> Any:
        return await self.request("DELETE", f"/admin/database/{name}")

    async def export_data(self, export_type: str) -> Any:
        return await self.request("GET", f"/admin/export/{export_type}")

    async def audit_logs(self, limit: int | None = None) -> Any:
        return await self.request("GET", "/admin/audit-logs", params={"limit": limit})

    # Admin: categories

    async def list_categories(self) -> Any:
        return await self.request("GET", "/admin/categories")

    async def create_category(self, data: dict[str, Any]) -> Any:
        return await self.request("POST", "/admin/categories", json=data)

    async def update_category(self, category_id: str, data: dict[str, Any]) -> Any:
        return await self.request("PUT", f"/admin/categories/{category_id}", json=data)

    async def delete_category(self, category_id: str) -> Any:
        return await self.request("DELETE", f"/admin/categories/{category_id}")

    # Admin: users

    async def list_users(self) -> Any:
        return await self.request("GET", "/admin/users")

    async def create_user(self, data: dict[str, Any]) -> Any:
        return await self.request("POST", "/admin/users", json=data)

    async def update_user(self, user_id: str, data: dict[str, Any]) -> Any:
        return await self.request("PUT", f"/admin/users/{user_id}", json=data)

    async def update_user_role(self, user_id: str, role: str) -> Any:
        return await self.request("PUT", f"/admin/users/{user_id}/role", json={"role": role})

    async def reset_password(self, user_id: str, new_password: str) -> Any:
        return await self.request(
            "PUT",
            f"/admin/users/{user_id}/reset-password",
            json={"newPassword": new_password},
        )

    async def delete_user(self, user_id: str) -> Any:
        return await self.request("DELETE", f"/admin/users/{user_id}")

    async def bulk_delete_users(self, user_ids: list[str]) -> Any:
        return await self.request("DELETE", "/admin/users/bulk", json={"userIds": user_ids})

    async def bulk_update_roles(self, user_ids: list[str], new_role: str) -> Any:
        return await self.request("PUT", "/admin/users/bulk/roles", json={"userIds": user_ids, "newRole": new_role})

    # Admin: tickets and questions

    async def admin_list_tickets(self) -> Any:
        return await self.request("GET", "/admin/tickets")

    async def admin_delete_ticket(self, ticket_id: str) -> Any:
        return await self.request("DELETE", f"/admin/tickets/{ticket_id}")

    async def admin_list_questions(self) -> Any:
        return await self.request("GET", "/admin/questions")

    async def admin_delete_question(self, question_id: str) -> Any:
        return await self.request("DELETE", f"/admin/questions/{question_id}")

    # Tickets

    async def list_tickets(self) -> Any:
        return await self.request("GET", "/tickets")

    async def get_ticket(self, ticket_id: str) -> Any:
        return await self.request("GET", f"/tickets/{ticket_id}")

    async def create_ticket(self, data: dict[str, Any]) -> Any:
        return await self.request("POST", "/tickets", json=data)

    async def update_ticket(self, ticket_id: str, data: dict[str, Any]) -> Any:
        return await self.request("PATCH", f"/tickets/{ticket_id}", json=data)

    async def delete_ticket(self, ticket_id: str) -> Any:
        return await self.request("DELETE", f"/tickets/{ticket_id}")

    async def add_comment(self, ticket_id: str, content: str, is_internal: bool = False) -> Any:
        return await self.request(
            "POST",
            f"/tickets/{ticket_id}/comments",
            json={"content": content, "isInternal": is_internal},
        )

    async def list_comments(self, ticket_id: str) -> Any:
        return await self.request("GET", f"/tickets/{ticket_id}/comments")

    async def assign_ticket(self, ticket_id: str, agent_id: str | None = None) -> Any:
        body = {"agentId": agent_id} if agent_id else {}
        return await self.request("PATCH", f"/tickets/{ticket_id}/assign", json=body)

    async def release_ticket(self, ticket_id: str) -> Any:
        return await self.request("PATCH", f"/tickets/{ticket_id}/release")

    async def get_agents(self) -> Any:
        return await self.request("GET", "/tickets/agents")
