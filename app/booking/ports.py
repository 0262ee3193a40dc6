"""Interfaces the scheduling core consumes, and the writes it hands to storage.

The SQL implementations live in ``app.services``; tests may supply their own.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Protocol, Union

from app.scheduling.records import BookingRecord
from app.scheduling.types import BusinessHours, ServiceSelection, Worker


@dataclass(frozen=True)
class NewBooking:
    """One phase of a visit to insert."""

    id: str
    visit_group_id: str
    service_id: str
    service_name: str
    variant_id: str | None
    worker_id: str
    worker_name: str
    start_at: datetime
    end_at: datetime
    booking_date: date
    phase: int
    is_follow_up: bool = False
    parent_booking_id: str | None = None
    customer_key: str | None = None
    customer_name: str | None = None


@dataclass(frozen=True)
class ArchiveBooking:
    """Transition an existing booking to cancelled and archived."""

    booking_id: str
    reason: str
    archived_at: datetime
    note: str | None = None
    actor: str | None = None


@dataclass(frozen=True)
class HistoryUpsert:
    """Insert-or-overwrite a per-customer history entry under ``key``."""

    key: str
    customer_key: str
    booking_id: str
    variant_id: str | None
    reason: str
    archived_at: datetime
    snapshot: dict[str, Any] = field(default_factory=dict)


BookingWrite = Union[NewBooking, ArchiveBooking, HistoryUpsert]


class BookingStore(Protocol):
    """Booking persistence used by slot search, visit commit and cascades."""

    async def get(self, site_id: str, booking_id: str) -> BookingRecord | None: ...

    async def list_for_date(self, site_id: str, day: date) -> list[BookingRecord]: ...

    async def list_by_visit_key(
        self, site_id: str, visit_key: str, limit: int
    ) -> list[BookingRecord]: ...

    async def list_by_parent(
        self, site_id: str, parent_id: str, limit: int
    ) -> list[BookingRecord]: ...

    async def list_created_between(
        self, site_id: str, day: date, start: datetime, end: datetime
    ) -> list[BookingRecord]: ...

    async def commit_group(self, site_id: str, writes: list[BookingWrite]) -> None:
        """Apply all writes atomically or raise BatchCommitFailure."""
        ...


class RosterProvider(Protocol):
    async def get_workers(self, site_id: str) -> list[Worker]: ...


class CalendarConfigProvider(Protocol):
    async def get_business_hours(self, site_id: str) -> BusinessHours: ...


class ServiceCatalog(Protocol):
    async def get_selection(
        self, site_id: str, service_id: str, variant_id: str | None
    ) -> ServiceSelection | None: ...

    async def list_service_ids(self, site_id: str) -> set[str]: ...
