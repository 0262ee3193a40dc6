"""Identifier helpers."""

from uuid import UUID


def is_uuid(value: str | None) -> bool:
    """Check whether a string is a valid UUID.

    Args:
        value: Candidate identifier

    Returns:
        True if ``value`` parses as a UUID
    """
    if not value:
        return False
    try:
        UUID(value)
    except ValueError:
        return False
    return True
