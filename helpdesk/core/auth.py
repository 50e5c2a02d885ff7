from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.app import HelpdeskApp
from core.errors import AuthenticationError, PermissionDeniedError
from database.models import UserRecord

_bearer = HTTPBearer(auto_error=False)


def get_helpdesk(request: Request) -> HelpdeskApp:
    return request.app.state.helpdesk


async def current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> UserRecord:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise AuthenticationError("No token, authorization denied")
    helpdesk = get_helpdesk(request)
    user_id = helpdesk.security_service.decode_token(credentials.credentials)
    user = await helpdesk.user_repo.get_by_id(user_id)
    if user is None:
        raise AuthenticationError("User no longer exists")
    return user


def require_roles(*roles: str) -> Callable[..., Awaitable[UserRecord]]:
    allowed = set(roles)

    async def dependency(user: UserRecord = Depends(current_user)) -> UserRecord:
        if user.role not in allowed:
            raise PermissionDeniedError("Access denied. Insufficient permissions.")
        return user

    return dependency
