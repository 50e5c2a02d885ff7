from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from pathlib import Path
from uuid import uuid4

import httpx
import pytest
import pytest_asyncio
from jose import jwt

from core.api import create_api_app
from core.app import HelpdeskApp
from core.config import AppConfig, DatabaseConfig, LoggingConfig, SecurityConfig, ServerConfig
from database.models import UserRecord
from utils.time import now_iso

JWT_SECRET = "test-secret"

MakeUser = Callable[..., Awaitable[UserRecord]]


def token_for(user: UserRecord | str, secret: str = JWT_SECRET) -> str:
    subject = user if isinstance(user, str) else user.id
    return jwt.encode({"sub": subject}, secret, algorithm="HS256")


def auth_headers(user: UserRecord | str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        server=ServerConfig(jwt_secret=JWT_SECRET),
        database=DatabaseConfig(url=f"sqlite:///{tmp_path / 'helpdesk.db'}"),
        logging=LoggingConfig(directory=str(tmp_path / "logs")),
        security=SecurityConfig(
            password_hash_rounds=4,
            ticket_creation_cooldown_seconds=0,
            ticket_creation_max_per_hour=100,
            max_open_tickets_per_user=50,
            upgrade_request_cooldown_seconds=0,
        ),
    )


@pytest_asyncio.fixture
async def helpdesk(config: AppConfig) -> AsyncIterator[HelpdeskApp]:
    app = HelpdeskApp(config)
    await app.setup()
    try:
        yield app
    finally:
        await app.close()


@pytest.fixture
def make_user(helpdesk: HelpdeskApp) -> MakeUser:
    async def _make(role: str = "user", name: str | None = None, email: str | None = None) -> UserRecord:
        suffix = uuid4().hex[:8]
        stamp = now_iso()
        user = UserRecord(
            id=str(uuid4()),
            name=name or f"{role.title()} {suffix}",
            email=email or f"{role}-{suffix}@example.com",
            password_hash=await helpdesk.security_service.hash_password("secret-password"),
            role=role,
            created_at=stamp,
            updated_at=stamp,
        )
        await helpdesk.user_repo.create(user)
        return user

    return _make


@pytest_asyncio.fixture
async def api(helpdesk: HelpdeskApp) -> AsyncIterator[httpx.AsyncClient]:
    app = create_api_app(helpdesk, manage_lifecycle=False)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
