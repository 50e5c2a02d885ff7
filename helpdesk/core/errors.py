from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

LOGGER = logging.getLogger(__name__)


class HelpdeskError(RuntimeError):
    status_code: ClassVar[int] = 500
    user_message: str = "An unexpected error occurred."


@dataclass(slots=True)
class ValidationError(HelpdeskError):
    status_code: ClassVar[int] = 400
    user_message: str = "The provided input is not valid."


@dataclass(slots=True)
class AuthenticationError(HelpdeskError):
    status_code: ClassVar[int] = 401
    user_message: str = "Not authenticated."


@dataclass(slots=True)
class PermissionDeniedError(HelpdeskError):
    status_code: ClassVar[int] = 403
    user_message: str = "You do not have permission to run this action."


@dataclass(slots=True)
class NotFoundError(HelpdeskError):
    status_code: ClassVar[int] = 404
    user_message: str = "Not found."


@dataclass(slots=True)
class ConflictError(HelpdeskError):
    status_code: ClassVar[int] = 409
    user_message: str = "The resource already exists."


@dataclass(slots=True)
class TicketStateError(HelpdeskError):
    status_code: ClassVar[int] = 409
    user_message: str = "The ticket is not in a valid state for this action."


def _validation_message(error: RequestValidationError) -> str:
    problems = error.errors()
    if not problems:
        return "Invalid request body."
    first = problems[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    detail = str(first.get("msg", "invalid value"))
    return f"{location}: {detail}" if location else detail


def install_error_handlers(app: FastAPI, expose_details: bool = False) -> None:
    @app.exception_handler(HelpdeskError)
    async def helpdesk_error(request: Request, error: HelpdeskError) -> JSONResponse:
        if error.status_code >= 500:
            LOGGER.error("Request failed. path=%s message=%s", request.url.path, error.user_message)
        return JSONResponse(status_code=error.status_code, content={"message": error.user_message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, error: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"message": _validation_message(error)})

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, error: Exception) -> JSONResponse:
        LOGGER.exception(
            "Unhandled error. method=%s path=%s",
            request.method,
            request.url.path,
            exc_info=error,
        )
        content: dict[str, str] = {"message": "Unexpected server error"}
        if expose_details:
            content["error"] = str(error)
        return JSONResponse(status_code=500, content=content)
