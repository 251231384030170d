"""Time and datetime utilities."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC datetime.

    Returns:
        Current datetime in UTC timezone
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Return ``dt`` as an aware UTC datetime.

    Naive values are assumed to already be UTC; SQLite hands back naive
    datetimes for ``DateTime(timezone=True)`` columns.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_for_humans(dt: datetime) -> str:
    """Format a datetime for notification copy, e.g. ``Mon, Mar 3 at 10:00 UTC``."""
    dt = ensure_utc(dt)
    return f"{dt:%a, %b} {dt.day} at {dt:%H:%M} UTC"
