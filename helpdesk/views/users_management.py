from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from client.api import ApiError, HelpdeskClient
from utils.search import ALL
from views.filters import filter_users
from views.store import VARIANT_DESTRUCTIVE, Action, Notification, Store, notify


@dataclass(frozen=True, slots=True)
class UsersState:
    users: tuple[dict[str, Any], ...] = ()
    search_query: str = ""
    role_filter: str = ALL
    selected_ids: frozenset[str] = frozenset()
    loading: bool = False
    notification: Notification | None = None


def reduce(state: UsersState, action: Action) -> UsersState:
    kind, payload = action.type, action.payload
    if kind == "users/loading":
        return replace(state, loading=True)
    if kind == "users/loaded":
        users = tuple(payload)
        known = {user.get("id") for user in users}
        return replace(state, users=users, loading=False, selected_ids=state.selected_ids & known)
    if kind == "users/failed":
        return replace(state, loading=False)
    if kind == "filters/search":
        return replace(state, search_query=payload or "")
    if kind == "filters/role":
        return replace(state, role_filter=payload or ALL)
    if kind == "selection/toggle":
        selected = set(state.selected_ids)
        selected.symmetric_difference_update({payload})
        return replace(state, selected_ids=frozenset(selected))
    if kind == "selection/set":
        return replace(state, selected_ids=frozenset(payload))
    if kind == "selection/clear":
        return replace(state, selected_ids=frozenset())
    if kind == "users/role":
        ids, role = payload
        wanted = set(ids)
        return replace(
            state,
            users=tuple({**user, "role": role} if user.get("id") in wanted else user for user in state.users),
        )
    if kind == "users/removed":
        removed = set(payload)
        return replace(
            state,
            users=tuple(user for user in state.users if user.get("id") not in removed),
            selected_ids=state.selected_ids - removed,
        )
    if kind == "notify":
        return replace(state, notification=payload)
    if kind == "notification/dismiss":
        return replace(state, notification=None)
    return state


def visible_users(state: UsersState) -> list[dict[str, Any]]:
    return filter_users(state.users, search=state.search_query, role=state.role_filter)


class UsersManagementController:
    def __init__(self, client: HelpdeskClient) -> None:
        self.client = client
        self.store: Store[UsersState] = Store(UsersState(), reduce)

    @property
    def state(self) -> UsersState:
        return self.store.state

    def visible(self) -> list[dict[str, Any]]:
        return visible_users(self.store.state)

    def select_all_visible(self) -> None:
        self.store.dispatch(Action("selection/set", [user["id"] for user in self.visible()]))

    def _fail(self, exc: ApiError) -> None:
        self.store.dispatch(notify("Error", exc.message, VARIANT_DESTRUCTIVE))

    async def load(self) -> None:
        self.store.dispatch(Action("users/loading"))
        try:
            payload = await self.client.list_users()
        except ApiError as exc:
            self.store.dispatch(Action("users/failed"))
            self._fail(exc)
            return
        self.store.dispatch(Action("users/loaded", payload.get("users", [])))

    async def create_user(self, data: dict[str, Any]) -> bool:
        try:
            await self.client.create_user(data)
        except ApiError as exc:
            self._fail(exc)
            return False
        self.store.dispatch(notify("Success", "User created successfully"))
        await self.load()
        return True

    async def change_role(self, user_id: str, role: str) -> bool:
        previous = next((u.get("role") for u in self.store.state.users if u.get("id") == user_id), None)
        self.store.dispatch(Action("users/role", ([user_id], role)))
        try:
            await self.client.update_user_role(user_id, role)
        except ApiError as exc:
            if previous is not None:
                self.store.dispatch(Action("users/role", ([user_id], previous)))
            self._fail(exc)
            return False
        self.store.dispatch(notify("Success", "User role updated"))
        return True

    async def reset_password(self, user_id: str, new_password: str) -> bool:
        try:
            payload = await self.client.reset_password(user_id, new_password)
        except ApiError as exc:
            self._fail(exc)
            return False
        self.store.dispatch(notify("Success", payload.get("message", "Password reset successfully")))
        return True

    async def delete_user(self, user_id: str) -> bool:
        try:
            await self.client.delete_user(user_id)
        except ApiError as exc:
            self._fail(exc)
            return False
        self.store.dispatch(Action("users/removed", [user_id]))
        self.store.dispatch(notify("Success", "User deleted successfully"))
        return True

    async def bulk_delete(self) -> bool:
        ids = sorted(self.store.state.selected_ids)
        if not ids:
            self.store.dispatch(notify("Error", "Select at least one user.", VARIANT_DESTRUCTIVE))
            return False
        try:
            payload = await self.client.bulk_delete_users(ids)
        except ApiError as exc:
            self._fail(exc)
            return False
        self.store.dispatch(notify("Success", payload.get("message", "Users deleted")))
        await self.load()
        return True

    async def bulk_change_role(self, role: str) -> bool:
        ids = sorted(self.store.state.selected_ids)
        if not ids:
            self.store.dispatch(notify("Error", "Select at least one user.", VARIANT_DESTRUCTIVE))
            return False
        try:
            payload = await self.client.bulk_update_roles(ids, role)
        except ApiError as exc:
            self._fail(exc)
            return False
        self.store.dispatch(Action("users/role", (ids, role)))
        self.store.dispatch(Action("selection/clear"))
        self.store.dispatch(notify("Success", payload.get("message", "Roles updated")))
        return True
