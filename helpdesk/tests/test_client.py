from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from client.api import ApiError, HelpdeskClient, TokenStore
from core.config import ClientConfig


class FakeResponse:
    def __init__(self, status: int, body: Any) -> None:
        self.status = status
        self._body = body

    async def json(self, content_type: str | None = None) -> Any:
        if isinstance(self._body, Exception):
            raise self._body
        return self._body

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, *_: object) -> None:
        return None


def make_client(tmp_path: Path, status: int = 200, body: Any = None, token: str | None = None):
    store = TokenStore(tmp_path / "token")
    if token:
        store.save(token)
    session = MagicMock()
    session.request.return_value = FakeResponse(status, body if body is not None else {})
    client = HelpdeskClient(ClientConfig(base_url="http://api.test/"), session=session, token_store=store)
    return client, session


@pytest.mark.asyncio
async def test_bearer_token_is_sent_when_stored(tmp_path: Path) -> None:
    client, session = make_client(tmp_path, body={"users": []}, token="abc123")

    result = await client.list_users()

    assert result == {"users": []}
    args, kwargs = session.request.call_args
    assert args == ("GET", "http://api.test/admin/users")
    assert kwargs["headers"]["Authorization"] == "Bearer abc123"


@pytest.mark.asyncio
async def test_authorization_header_omitted_without_token(tmp_path: Path) -> None:
    client, session = make_client(tmp_path)

    await client.list_tickets()

    headers = session.request.call_args.kwargs["headers"]
    assert "Authorization" not in headers


@pytest.mark.asyncio
async def test_error_status_raises_api_error_with_server_message(tmp_path: Path) -> None:
    client, _ = make_client(tmp_path, status=409, body={"message": "Ticket already assigned"})

    with pytest.raises(ApiError) as excinfo:
        await client.assign_ticket("t1")

    assert excinfo.value.status == 409
    assert excinfo.value.message == "Ticket already assigned"


@pytest.mark.asyncio
async def test_error_without_message_uses_fallback(tmp_path: Path) -> None:
    client, _ = make_client(tmp_path, status=502, body=ValueError("not json"))

    with pytest.raises(ApiError) as excinfo:
        await client.system_health()

    assert excinfo.value.message == "Request failed"


@pytest.mark.asyncio
async def test_request_bodies_and_query_params(tmp_path: Path) -> None:
    client, session = make_client(tmp_path)

    await client.list_questions(search="vpn", category=None, page=2)
    kwargs = session.request.call_args.kwargs
    assert kwargs["params"] == {"search": "vpn", "page": "2"}

    await client.assign_ticket("t1", agent_id="a1")
    assert session.request.call_args.kwargs["json"] == {"agentId": "a1"}

    await client.assign_ticket("t1")
    assert session.request.call_args.kwargs["json"] == {}

    await client.bulk_update_roles(["u1", "u2"], "agent")
    args, kwargs = session.request.call_args
    assert args == ("PUT", "http://api.test/admin/users/bulk/roles")
    assert kwargs["json"] == {"userIds": ["u1", "u2"], "newRole": "agent"}


def test_token_store_round_trip(tmp_path: Path) -> None:
    store = TokenStore(tmp_path / "nested" / "token")
    assert store.load() is None
    store.save("xyz")
    assert store.load() == "xyz"
    store.clear()
    assert store.load() is None
    store.clear()


@pytest.mark.asyncio
async def test_dashboard_and_profile_calls(tmp_path: Path) -> None:
    client, session = make_client(tmp_path)

    await client.dashboard_tickets(limit=50, sortBy="priority", status=None)
    args, kwargs = session.request.call_args
    assert args == ("GET", "http://api.test/dashboard/tickets")
    assert kwargs["params"] == {"limit": "50", "sortBy": "priority"}

    await client.update_profile({"name": "New", "categoryInInterest": ["c1"]})
    args, kwargs = session.request.call_args
    assert args == ("PUT", "http://api.test/auth/profile")
    assert kwargs["json"] == {"name": "New", "categoryInInterest": ["c1"]}
