from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from utils.search import ALL, matches_search, matches_value, ref_id

USER_SEARCH_FIELDS = ("name", "email")
TICKET_SEARCH_FIELDS = ("title", "description", "tags")

TAB_ALL = "all"
TAB_ASSIGNED = "assigned"
TAB_UNASSIGNED = "unassigned"
AGENT_TABS = (TAB_ALL, TAB_ASSIGNED, TAB_UNASSIGNED)


def is_assigned_to(ticket: Mapping[str, Any], actor: Mapping[str, Any] | None) -> bool:
    if actor is None:
        return False
    assignee = ticket.get("assignedTo")
    if assignee is None:
        return False
    if isinstance(assignee, Mapping):
        if assignee.get("id") is not None and assignee.get("id") == actor.get("id"):
            return True
        # Older payloads only carry the assignee's email.
        email = assignee.get("email")
        return email is not None and email == actor.get("email")
    return assignee in {actor.get("id"), actor.get("email")}


def is_unassigned(ticket: Mapping[str, Any]) -> bool:
    return ref_id(ticket.get("assignedTo")) is None


def matches_tab(ticket: Mapping[str, Any], tab: str, actor: Mapping[str, Any] | None) -> bool:
    if tab == TAB_ASSIGNED:
        return is_assigned_to(ticket, actor)
    if tab == TAB_UNASSIGNED:
        return is_unassigned(ticket)
    return True


def filter_users(
    users: Sequence[Mapping[str, Any]],
    search: str = "",
    role: str = ALL,
) -> list[Mapping[str, Any]]:
    return [
        user
        for user in users
        if matches_search(user, search, USER_SEARCH_FIELDS) and matches_value(user.get("role"), role)
    ]


def filter_tickets(
    tickets: Sequence[Mapping[str, Any]],
    search: str = "",
    status: str = ALL,
    priority: str = ALL,
    tab: str = TAB_ALL,
    actor: Mapping[str, Any] | None = None,
) -> list[Mapping[str, Any]]:
    return [
        ticket
        for ticket in tickets
        if matches_search(ticket, search, TICKET_SEARCH_FIELDS)
        and matches_value(ticket.get("status"), status)
        and matches_value(ticket.get("priority"), priority)
        and matches_tab(ticket, tab, actor)
    ]
