from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

ALL = "all"


def field_values(value: Any) -> list[str]:
    """Searchable strings of a field; each list item (a tag, say) stands alone."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return [str(item) for item in value if item is not None]
    return [str(value)]


def matches_search(record: Mapping[str, Any], query: str | None, fields: Iterable[str]) -> bool:
    """Case-insensitive substring match against any of ``fields``; an empty query matches everything."""
    needle = (query or "").strip().lower()
    if not needle:
        return True
    return any(needle in text.lower() for name in fields for text in field_values(record.get(name)))


def matches_value(actual: Any, wanted: str | None) -> bool:
    if wanted is None or wanted == "" or wanted == ALL:
        return True
    return actual == wanted


def ref_id(value: Any) -> str | None:
    """Id of a joined reference, which may be a summary dict, a bare id or missing."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        ref = value.get("id")
        return str(ref) if ref is not None else None
    return str(value)
