"""Row and value conversion helpers for the SQLite repositories."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any


def to_db_datetime(value: datetime | None) -> str | None:
    """Serialize a datetime as a UTC ISO string.

    All stored timestamps share the UTC offset, so lexical order equals time
    order and due dates can be compared in SQL.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def row_to_dict(row: Any) -> dict[str, Any]:
    """Convert an sqlite3.Row into a plain dict (empty for None)."""
    if row is None:
        return {}
    return dict(row)
