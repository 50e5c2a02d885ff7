from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any

from client.api import ApiError, HelpdeskClient
from utils.constants import TICKET_STATUS_OPEN
from utils.search import ALL
from views.filters import AGENT_TABS, TAB_ALL, filter_tickets, is_assigned_to, is_unassigned
from views.store import VARIANT_DESTRUCTIVE, Action, Notification, Store, notify

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AgentPanelState:
    tickets: tuple[dict[str, Any], ...] = ()
    search_query: str = ""
    status_filter: str = ALL
    priority_filter: str = ALL
    active_tab: str = TAB_ALL
    loading: bool = False
    notification: Notification | None = None


def reduce(state: AgentPanelState, action: Action) -> AgentPanelState:
    kind, payload = action.type, action.payload
    if kind == "tickets/loading":
        return replace(state, loading=True)
    if kind == "tickets/loaded":
        return replace(state, tickets=tuple(payload), loading=False)
    if kind == "tickets/failed":
        return replace(state, loading=False)
    if kind == "filters/search":
        return replace(state, search_query=payload or "")
    if kind == "filters/status":
        return replace(state, status_filter=payload or ALL)
    if kind == "filters/priority":
        return replace(state, priority_filter=payload or ALL)
    if kind == "tab/select":
        return replace(state, active_tab=payload if payload in AGENT_TABS else TAB_ALL)
    if kind == "ticket/status":
        ticket_id, status = payload
        tickets = tuple(
            {**ticket, "status": status} if ticket.get("id") == ticket_id else ticket for ticket in state.tickets
        )
        return replace(state, tickets=tickets)
    if kind == "notify":
        return replace(state, notification=payload)
    if kind == "notification/dismiss":
        return replace(state, notification=None)
    return state


def visible_tickets(state: AgentPanelState, actor: dict[str, Any] | None) -> list[dict[str, Any]]:
    return filter_tickets(
        state.tickets,
        search=state.search_query,
        status=state.status_filter,
        priority=state.priority_filter,
        tab=state.active_tab,
        actor=actor,
    )


def can_claim(ticket: dict[str, Any]) -> bool:
    return is_unassigned(ticket) and ticket.get("status") == TICKET_STATUS_OPEN


def can_change_status(ticket: dict[str, Any], actor: dict[str, Any] | None) -> bool:
    return is_assigned_to(ticket, actor)


class AgentPanelController:
    def __init__(self, client: HelpdeskClient, actor: dict[str, Any]) -> None:
        self.client = client
        self.actor = actor
        self.store: Store[AgentPanelState] = Store(AgentPanelState(), reduce)

    @property
    def state(self) -> AgentPanelState:
        return self.store.state

    def visible(self) -> list[dict[str, Any]]:
        return visible_tickets(self.store.state, self.actor)

    def _find(self, ticket_id: str) -> dict[str, Any] | None:
        return next((t for t in self.store.state.tickets if t.get("id") == ticket_id), None)

    async def load(self) -> None:
        self.store.dispatch(Action("tickets/loading"))
        try:
            payload = await self.client.list_tickets()
        except ApiError as exc:
            self.store.dispatch(Action("tickets/failed"))
            self.store.dispatch(notify("Error", f"Failed to load tickets: {exc.message}", VARIANT_DESTRUCTIVE))
            return
        self.store.dispatch(Action("tickets/loaded", payload.get("tickets", [])))

    async def claim(self, ticket_id: str) -> bool:
        ticket = self._find(ticket_id)
        if ticket is None or not can_claim(ticket):
            self.store.dispatch(notify("Error", "This ticket cannot be claimed.", VARIANT_DESTRUCTIVE))
            return False
        try:
            await self.client.assign_ticket(ticket_id)
        except ApiError as exc:
            self.store.dispatch(notify("Error", exc.message, VARIANT_DESTRUCTIVE))
            return False
        self.store.dispatch(notify("Success", "Ticket claimed."))
        await self.load()
        return True

    async def change_status(self, ticket_id: str, status: str) -> bool:
        ticket = self._find(ticket_id)
        if ticket is None or not can_change_status(ticket, self.actor):
            self.store.dispatch(
                notify("Error", "Only the assigned agent can change this ticket's status.", VARIANT_DESTRUCTIVE)
            )
            return False
        previous = ticket.get("status")
        self.store.dispatch(Action("ticket/status", (ticket_id, status)))
        try:
            await self.client.update_ticket(ticket_id, {"status": status})
        except ApiError as exc:
            LOGGER.warning("Status change rejected. ticket_id=%s status=%s", ticket_id, exc.status)
            self.store.dispatch(Action("ticket/status", (ticket_id, previous)))
            self.store.dispatch(notify("Error", exc.message, VARIANT_DESTRUCTIVE))
            return False
        self.store.dispatch(notify("Success", f"Ticket marked as {status}."))
        return True
