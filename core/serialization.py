from __future__ import annotations

from datetime import UTC, datetime
from typing import Any


def serialize_datetime(dt: datetime | str | None) -> str | None:
    """Serialize a datetime or string to ISO format for JSON responses."""
    if not dt:
        return None
    if isinstance(dt, str):
        return dt
    if hasattr(dt, "isoformat"):
        return as_utc(dt).isoformat()
    return str(dt)


def as_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from storage."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def serialize_oid(value: Any) -> str | None:
    return str(value) if value is not None else None
