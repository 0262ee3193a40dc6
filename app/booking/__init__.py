"""Booking module for visit cancellation and storage ports."""

from app.booking.cascade import (
    CancelReason,
    CascadeExecutor,
    CascadeResolver,
    CascadeResult,
    history_key,
)

__all__ = [
    "CancelReason",
    "CascadeExecutor",
    "CascadeResolver",
    "CascadeResult",
    "history_key",
]
