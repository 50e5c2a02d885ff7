from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    return datetime.now(UTC)


def to_iso(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    # Fixed precision keeps stored timestamps sortable as text.
    return dt.astimezone(UTC).isoformat(timespec="microseconds")


def now_iso() -> str:
    return to_iso(utc_now())  # type: ignore[return-value]


def today_prefix() -> str:
    """``YYYY-MM-DD`` of the current UTC day, a prefix of every timestamp stamped today."""
    return utc_now().date().isoformat()
