"""Database models for the visit scheduler."""

from app.models.booking import Booking, BookingStatus, CustomerHistoryEntry
from app.models.catalog import Service, ServiceVariant
from app.models.roster import BusinessDay, ClosedDate, DayOfWeek, Worker

__all__ = [
    # Catalog
    "Service",
    "ServiceVariant",
    # Roster and calendar
    "Worker",
    "BusinessDay",
    "ClosedDate",
    "DayOfWeek",
    # Bookings
    "Booking",
    "BookingStatus",
    "CustomerHistoryEntry",
]
