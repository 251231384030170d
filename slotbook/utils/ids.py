"""Identifier helpers."""

from uuid import UUID


def is_valid_uuid(value: str) -> bool:
    """Whether ``value`` parses as a UUID; primary keys are UUIDs."""
    try:
        UUID(str(value))
    except ValueError:
        return False
    return True
