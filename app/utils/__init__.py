"""Utility functions."""

from app.utils.time import (
    at_minute,
    format_hhmm,
    local_minute,
    parse_hhmm,
    utc_now,
)

__all__ = [
    "utc_now",
    "parse_hhmm",
    "format_hhmm",
    "at_minute",
    "local_minute",
]
