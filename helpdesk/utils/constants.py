from __future__ import annotations

ROLE_USER = "user"
ROLE_AGENT = "agent"
ROLE_ADMIN = "admin"
USER_ROLES = (ROLE_USER, ROLE_AGENT, ROLE_ADMIN)
STAFF_ROLES = frozenset({ROLE_AGENT, ROLE_ADMIN})

TICKET_STATUS_OPEN = "open"
TICKET_STATUS_ANSWERED = "answered"
TICKET_STATUS_RESOLVED = "resolved"
TICKET_STATUS_CLOSED = "closed"
TICKET_STATUSES = (
    TICKET_STATUS_OPEN,
    TICKET_STATUS_ANSWERED,
    TICKET_STATUS_RESOLVED,
    TICKET_STATUS_CLOSED,
)
TERMINAL_STATUSES = frozenset({TICKET_STATUS_CLOSED})

PRIORITY_LEVELS = ("low", "medium", "high")
DEFAULT_PRIORITY = "medium"

VOTE_TYPES = ("up", "down")

UPGRADE_PENDING = "pending"
UPGRADE_APPROVED = "approved"
UPGRADE_REJECTED = "rejected"

DEFAULT_LANGUAGE = "en"
DEFAULT_CATEGORY_COLOR = "#6b7280"

# Collections an admin may wipe, mapped to the tables that hold their documents.
CLEARABLE_COLLECTIONS = {
    "tickets": ["ticket_comments", "tickets"],
    "questions": ["question_answers", "question_votes", "questions"],
    "ticket_comments": ["ticket_comments"],
    "role_upgrade_requests": ["role_upgrade_requests"],
}
COLLECTION_ALIASES = {
    "ticketcomments": "ticket_comments",
    "roleupgraderequests": "role_upgrade_requests",
}

EXPORT_TYPES = ("users", "tickets", "questions", "categories", "all")

AUDIT_ACTIONS = {
    "category_create",
    "category_update",
    "category_delete",
    "user_create",
    "user_update",
    "user_role",
    "user_password_reset",
    "user_delete",
    "user_bulk_delete",
    "user_bulk_role",
    "profile_update",
    "ticket_create",
    "ticket_claim",
    "ticket_release",
    "ticket_status",
    "ticket_update",
    "ticket_delete",
    "question_delete",
    "collection_clear",
    "upgrade_request",
    "upgrade_resolve",
}
