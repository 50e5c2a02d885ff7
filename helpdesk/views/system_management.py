from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from client.api import ApiError, HelpdeskClient
from utils.search import matches_search
from views.store import VARIANT_DESTRUCTIVE, Action, Notification, Store, notify


@dataclass(frozen=True, slots=True)
class SystemState:
    stats: dict[str, Any] | None = None
    collections: tuple[dict[str, Any], ...] = ()
    health: dict[str, Any] | None = None
    last_export: dict[str, Any] | None = None
    search_query: str = ""
    loading: bool = False
    notification: Notification | None = None


def reduce(state: SystemState, action: Action) -> SystemState:
    kind, payload = action.type, action.payload
    if kind == "system/loading":
        return replace(state, loading=True)
    if kind == "system/loaded":
        return replace(
            state,
            stats=payload.get("stats"),
            collections=tuple(payload.get("collections", ())),
            health=payload.get("health"),
            loading=False,
        )
    if kind == "system/failed":
        return replace(state, loading=False)
    if kind == "collections/loaded":
        return replace(state, collections=tuple(payload))
    if kind == "export/done":
        return replace(state, last_export=payload)
    if kind == "filters/search":
        return replace(state, search_query=payload or "")
    if kind == "notify":
        return replace(state, notification=payload)
    if kind == "notification/dismiss":
        return replace(state, notification=None)
    return state


def visible_collections(state: SystemState) -> list[dict[str, Any]]:
    return [item for item in state.collections if matches_search(item, state.search_query, ("name",))]


class SystemManagementController:
    def __init__(self, client: HelpdeskClient) -> None:
        self.client = client
        self.store: Store[SystemState] = Store(SystemState(), reduce)

    @property
    def state(self) -> SystemState:
        return self.store.state

    def visible(self) -> list[dict[str, Any]]:
        return visible_collections(self.store.state)

    async def load(self) -> None:
        self.store.dispatch(Action("system/loading"))
        try:
            dashboard = await self.client.admin_stats()
            database = await self.client.database_stats()
            health = await self.client.system_health()
        except ApiError as exc:
            self.store.dispatch(Action("system/failed"))
            self.store.dispatch(notify("Error", f"Failed to load system data: {exc.message}", VARIANT_DESTRUCTIVE))
            return
        self.store.dispatch(
            Action(
                "system/loaded",
                {
                    "stats": dashboard.get("stats"),
                    "collections": database.get("dbStats", []),
                    "health": health,
                },
            )
        )

    async def clear_collection(self, name: str) -> bool:
        try:
            payload = await self.client.clear_collection(name)
            database = await self.client.database_stats()
        except ApiError as exc:
            self.store.dispatch(notify("Error", exc.message, VARIANT_DESTRUCTIVE))
            return False
        self.store.dispatch(Action("collections/loaded", database.get("dbStats", [])))
        self.store.dispatch(notify("Success", payload.get("message", f"Cleared {name}")))
        return True

    async def export(self, export_type: str) -> dict[str, Any] | None:
        try:
            payload = await self.client.export_data(export_type)
        except ApiError as exc:
            self.store.dispatch(notify("Error", exc.message, VARIANT_DESTRUCTIVE))
            return None
        self.store.dispatch(Action("export/done", payload))
        self.store.dispatch(notify("Success", f"Exported {export_type} data"))
        return payload
