from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from core.errors import ValidationError
from utils.constants import PRIORITY_LEVELS, TICKET_STATUSES, USER_ROLES, VOTE_TYPES


def require_text(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} is required.")
    return value.strip()


def optional_text(value: Any) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def normalize_email(value: Any) -> str:
    email = require_text(value, "Email").lower()
    if "@" not in email:
        raise ValidationError("Email is not valid.")
    return email


def normalize_tags(tags: Iterable[Any] | None) -> list[str]:
    if not tags:
        return []
    return sorted({str(tag).strip().lower() for tag in tags if str(tag).strip()})


def validate_role(role: Any) -> str:
    if role not in USER_ROLES:
        raise ValidationError("Invalid role.")
    return role


def validate_status(status: Any) -> str:
    if status not in TICKET_STATUSES:
        raise ValidationError("Invalid status.")
    return status


def validate_priority(priority: Any) -> str:
    if priority not in PRIORITY_LEVELS:
        raise ValidationError("Invalid priority.")
    return priority


def validate_vote(direction: Any) -> str:
    if direction not in VOTE_TYPES:
        raise ValidationError("Vote type must be 'up' or 'down'.")
    return direction


def validate_id_list(ids: Any) -> list[str]:
    if not isinstance(ids, list) or not ids:
        raise ValidationError("userIds must be a non-empty list.")
    cleaned: list[str] = []
    for item in ids:
        if not isinstance(item, str) or not item.strip():
            raise ValidationError("userIds must contain only non-empty strings.")
        cleaned.append(item.strip())
    # Preserve order, drop repeats.
    return list(dict.fromkeys(cleaned))
