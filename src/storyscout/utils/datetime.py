"""Datetime helpers."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def iso_date_from_parts(parts: list | None) -> str | None:
    """Build an ISO date from CrossRef-style ``[year, month, day]`` parts.

    Missing month or day default to 1.
    """
    if not parts or not parts[0]:
        return None
    try:
        year = int(parts[0])
        month = int(parts[1]) if len(parts) > 1 else 1
        day = int(parts[2]) if len(parts) > 2 else 1
        return datetime(year, month, day).date().isoformat()
    except (TypeError, ValueError):
        return None


__all__ = ["utc_now", "iso_date_from_parts"]
