"""SQLAlchemy implementation of the booking store."""

import logging
from datetime import date, datetime

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.booking.ports import ArchiveBooking, BookingWrite, HistoryUpsert, NewBooking
from app.models.booking import Booking, BookingStatus, CustomerHistoryEntry
from app.scheduling.errors import BatchCommitFailure
from app.scheduling.records import BookingRecord
from app.utils.ids import is_uuid

logger = logging.getLogger(__name__)


class SqlBookingStore:
    """Booking store backed by the ``bookings`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, site_id: str, booking_id: str) -> BookingRecord | None:
        """Get one booking by id, or None if it does not exist at the site."""
        if not is_uuid(booking_id):
            return None
        result = await self.session.execute(
            select(Booking).where(
                Booking.id == booking_id,
                Booking.site_id == site_id,
            )
        )
        booking = result.scalar_one_or_none()
        return booking.to_record() if booking else None

    async def list_for_date(self, site_id: str, day: date) -> list[BookingRecord]:
        """All bookings on a local date, cancelled ones included."""
        result = await self.session.execute(
            select(Booking)
            .where(
                Booking.site_id == site_id,
                Booking.booking_date == day,
            )
            .order_by(Booking.start_at, Booking.created_at)
        )
        return [booking.to_record() for booking in result.scalars().all()]

    async def list_by_visit_key(
        self, site_id: str, visit_key: str, limit: int
    ) -> list[BookingRecord]:
        """Bookings sharing a visit key, canonical or legacy."""
        if is_uuid(visit_key):
            key_filter = or_(
                Booking.visit_group_id == visit_key,
                Booking.booking_group_id == visit_key,
            )
        else:
            key_filter = Booking.booking_group_id == visit_key

        result = await self.session.execute(
            select(Booking)
            .where(Booking.site_id == site_id, key_filter)
            .order_by(Booking.phase, Booking.created_at)
            .limit(limit)
        )
        return [booking.to_record() for booking in result.scalars().all()]

    async def list_by_parent(
        self, site_id: str, parent_id: str, limit: int
    ) -> list[BookingRecord]:
        """Bookings linked to a parent booking (follow-up phases)."""
        if not is_uuid(parent_id):
            return []
        result = await self.session.execute(
            select(Booking)
            .where(
                Booking.site_id == site_id,
                Booking.parent_booking_id == parent_id,
            )
            .order_by(Booking.phase, Booking.created_at)
            .limit(limit)
        )
        return [booking.to_record() for booking in result.scalars().all()]

    async def list_created_between(
        self, site_id: str, day: date, start: datetime, end: datetime
    ) -> list[BookingRecord]:
        """Bookings on ``day`` created within [start, end]."""
        result = await self.session.execute(
            select(Booking)
            .where(
                Booking.site_id == site_id,
                Booking.booking_date == day,
                Booking.created_at >= start,
                Booking.created_at <= end,
            )
            .order_by(Booking.created_at)
        )
        return [booking.to_record() for booking in result.scalars().all()]

    async def commit_group(self, site_id: str, writes: list[BookingWrite]) -> None:
        """Apply all writes in one transaction.

        Raises:
            BatchCommitFailure: If anything fails; the transaction is rolled back
        """
        try:
            for write in writes:
                await self._apply(site_id, write)
            await self.session.commit()
        except (SQLAlchemyError, LookupError) as exc:
            await self.session.rollback()
            logger.error(
                "Rolled back batch of %d writes: %s",
                len(writes),
                exc,
                extra={"site_id": site_id},
            )
            raise BatchCommitFailure(str(exc)) from exc

    async def _apply(self, site_id: str, write: BookingWrite) -> None:
        if isinstance(write, NewBooking):
            self.session.add(
                Booking(
                    id=write.id,
                    site_id=site_id,
                    booking_date=write.booking_date,
                    status=BookingStatus.CONFIRMED,
                    service_id=write.service_id,
                    variant_id=write.variant_id,
                    service_name=write.service_name,
                    worker_id=write.worker_id,
                    worker_name=write.worker_name,
                    start_at=write.start_at,
                    end_at=write.end_at,
                    phase=write.phase,
                    is_follow_up=write.is_follow_up,
                    visit_group_id=write.visit_group_id,
                    parent_booking_id=write.parent_booking_id,
                    customer_key=write.customer_key,
                    customer_name=write.customer_name,
                )
            )
        elif isinstance(write, ArchiveBooking):
            booking = await self.session.get(Booking, write.booking_id)
            if booking is None or booking.site_id != site_id:
                raise LookupError(f"Booking {write.booking_id} not found")
            booking.archive(
                reason=write.reason,
                archived_at=write.archived_at,
                note=write.note,
                actor=write.actor,
            )
        elif isinstance(write, HistoryUpsert):
            await self.session.merge(
                CustomerHistoryEntry(
                    key=write.key,
                    site_id=site_id,
                    customer_key=write.customer_key,
                    booking_id=write.booking_id,
                    variant_id=write.variant_id,
                    reason=write.reason,
                    archived_at=write.archived_at,
                    snapshot=write.snapshot,
                )
            )
        else:
            raise TypeError(f"Unsupported booking write: {write!r}")
