"""Utility functions."""

from slotbook.utils.ids import is_valid_uuid
from slotbook.utils.time import ensure_utc, format_for_humans, utc_now

__all__ = ["utc_now", "ensure_utc", "format_for_humans", "is_valid_uuid"]
