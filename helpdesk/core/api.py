from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from core.app import HelpdeskApp
from core.errors import install_error_handlers
from core.extensions import load_routers
from core.logging import request_id_var

LOGGER = logging.getLogger(__name__)


def create_api_app(helpdesk: HelpdeskApp, manage_lifecycle: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if manage_lifecycle:
            await helpdesk.setup()
        try:
            yield
        finally:
            if manage_lifecycle:
                await helpdesk.close()

    config = helpdesk.config
    app = FastAPI(title="Helpdesk API", version="1.0.0", lifespan=lifespan)
    app.state.helpdesk = helpdesk
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app, expose_details=config.server.expose_error_details)

    @app.middleware("http")
    async def request_context(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        request_id = request.headers.get("x-request-id") or uuid4().hex[:12]
        token = request_id_var.set(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            LOGGER.info(
                "Request served. method=%s path=%s status=%s duration_ms=%.1f",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
            )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_var.reset(token)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "database": "connected" if helpdesk.database.is_connected else "disconnected"}

    load_routers(app, config.enabled_routers)
    return app
