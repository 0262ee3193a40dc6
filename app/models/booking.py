"""Booking records and per-customer cancellation history."""

from datetime import date, datetime
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, BaseNoId, TimestampMixin
from app.scheduling.errors import UnrecognizedBookingShape
from app.scheduling.records import BookingRecord, PhaseRecord


class BookingStatus(str, Enum):
    """Status of a booking record."""

    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Booking(Base, TimestampMixin):
    """One stored booking.

    New visits are written one row per phase with ``start_at``/``end_at``,
    a shared ``visit_group_id`` and, for follow-up phases, a
    ``parent_booking_id``. Rows imported from older layouts may instead
    carry a ``phases`` list or the ``legacy_*`` columns; see
    ``app.scheduling.records`` for how each layout is read.
    """

    __tablename__ = "bookings"

    site_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    # Local calendar date of the visit (all layouts)
    booking_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        index=True,
    )
    status: Mapped[BookingStatus] = mapped_column(
        String(30),
        default=BookingStatus.CONFIRMED,
        nullable=False,
        index=True,
    )

    # Service and assignment
    service_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    variant_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    service_name: Mapped[str | None] = mapped_column(
        String(150),
        nullable=True,
    )
    worker_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
    )
    worker_name: Mapped[str | None] = mapped_column(
        String(150),
        nullable=True,
    )

    # Per-phase interval
    start_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    end_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    phase: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    is_follow_up: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Older layouts
    # [{"worker_id": ..., "start_at": ISO, "end_at": ISO, "kind": "primary"}]
    phases: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSON,
        nullable=True,
    )
    legacy_date: Mapped[str | None] = mapped_column(
        String(10),
        nullable=True,
    )
    legacy_time: Mapped[str | None] = mapped_column(
        String(5),
        nullable=True,
    )
    duration_minutes: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    wait_minutes: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    secondary_worker_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    secondary_duration_minutes: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    secondary_start_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    secondary_end_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Visit grouping
    visit_group_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
        index=True,
    )
    # Group key written by older clients
    booking_group_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
    )
    parent_booking_id: Mapped[str | None] = mapped_column(
        UUID(as_uuid=False),
        nullable=True,
        index=True,
    )

    # Customer identity, strongest first
    customer_key: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        index=True,
    )
    client_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    customer_phone: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
    )
    customer_name: Mapped[str | None] = mapped_column(
        String(150),
        nullable=True,
    )

    # Archive state
    is_archived: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        index=True,
    )
    archived_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    archived_reason: Mapped[str | None] = mapped_column(
        String(30),
        nullable=True,
    )
    cancellation_note: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    cancelled_by: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    def archive(
        self,
        reason: str,
        archived_at: datetime,
        note: str | None = None,
        actor: str | None = None,
    ) -> None:
        """Mark cancelled and archived. Rows are never deleted."""
        self.status = BookingStatus.CANCELLED
        self.is_archived = True
        self.archived_at = archived_at
        self.archived_reason = reason
        self.cancellation_note = note
        self.cancelled_by = actor

    def to_record(self) -> BookingRecord:
        return BookingRecord(
            id=self.id,
            site_id=self.site_id,
            status=self.status,
            is_archived=self.is_archived,
            service_id=self.service_id,
            variant_id=self.variant_id,
            service_name=self.service_name,
            worker_id=self.worker_id,
            worker_name=self.worker_name,
            start_at=self.start_at,
            end_at=self.end_at,
            phase=self.phase,
            phases=tuple(_phase_record(self.id, item) for item in self.phases or ()),
            legacy_date=self.legacy_date,
            legacy_time=self.legacy_time,
            duration_minutes=self.duration_minutes,
            wait_minutes=self.wait_minutes,
            secondary_worker_id=self.secondary_worker_id,
            secondary_duration_minutes=self.secondary_duration_minutes,
            secondary_start_at=self.secondary_start_at,
            secondary_end_at=self.secondary_end_at,
            booking_date=self.booking_date,
            visit_group_id=self.visit_group_id,
            booking_group_id=self.booking_group_id,
            parent_booking_id=self.parent_booking_id,
            customer_key=self.customer_key,
            client_id=self.client_id,
            customer_phone=self.customer_phone,
            created_at=self.created_at,
        )

    def __repr__(self) -> str:
        return f"<Booking {self.id[:8]}... {self.booking_date} status={self.status}>"


def _phase_record(booking_id: str, item: dict[str, Any]) -> PhaseRecord:
    def when(key: str) -> datetime | None:
        value = item.get(key)
        if not value:
            return None
        try:
            return datetime.fromisoformat(value)
        except (TypeError, ValueError) as exc:
            raise UnrecognizedBookingShape(booking_id, f"phase {key}: {exc}") from exc

    return PhaseRecord(
        worker_id=item.get("worker_id"),
        start_at=when("start_at"),
        end_at=when("end_at"),
        kind=item.get("kind"),
    )


class CustomerHistoryEntry(BaseNoId, TimestampMixin):
    """Append-only copy of a cancelled booking under its customer.

    Keyed ``"{customer_key}__{variant_id|unknown}__{booking_id}"`` so a
    repeated cancellation overwrites instead of duplicating.
    """

    __tablename__ = "customer_history_entries"

    key: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
    )
    site_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    customer_key: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    booking_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        nullable=False,
    )
    variant_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    reason: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )
    archived_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    snapshot: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<CustomerHistoryEntry {self.key}>"
