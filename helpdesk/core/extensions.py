from __future__ import annotations

import importlib
import logging

from fastapi import APIRouter, FastAPI

LOGGER = logging.getLogger(__name__)


class RouterLoadError(RuntimeError):
    pass


def load_routers(app: FastAPI, router_names: list[str]) -> list[str]:
    """Import each module and mount its module-level ``router``."""
    loaded: list[str] = []
    for name in router_names:
        if name in loaded:
            LOGGER.warning("Router already loaded: %s", name)
            continue
        try:
            module = importlib.import_module(name)
        except ImportError as exc:
            LOGGER.exception("Failed to import router module: %s", name)
            raise RouterLoadError(f"Cannot import router module {name}") from exc
        router = getattr(module, "router", None)
        if not isinstance(router, APIRouter):
            raise RouterLoadError(f"Module {name} does not define an APIRouter named 'router'")
        app.include_router(router)
        loaded.append(name)
        LOGGER.info("Loaded router: %s", name)
    return loaded
