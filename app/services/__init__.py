"""Business logic services."""

from app.services.booking_store import SqlBookingStore
from app.services.providers import (
    SqlCalendarConfigProvider,
    SqlRosterProvider,
    SqlServiceCatalog,
)
from app.services.scheduling import CommittedVisit, SchedulingService, WorkerNotFoundError

__all__ = [
    "SqlBookingStore",
    "SqlRosterProvider",
    "SqlCalendarConfigProvider",
    "SqlServiceCatalog",
    "SchedulingService",
    "CommittedVisit",
    "WorkerNotFoundError",
]
