"""Visit-level cancellation.

A client visit may be stored as several booking records (one per phase,
or one per explicitly selected service). Cancelling any one of them must
cancel the whole visit. CascadeResolver finds the records; CascadeExecutor
archives them in a single atomic batch.
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from app.booking.ports import ArchiveBooking, BookingStore, BookingWrite, HistoryUpsert
from app.core.config import settings
from app.core.logging import audit_logger
from app.scheduling.errors import BatchCommitFailure, GroupResolutionAmbiguous
from app.scheduling.records import BookingRecord
from app.scheduling.types import GroupSource, VisitGroup
from app.utils.time import utc_now

logger = logging.getLogger(__name__)


class CancelReason(str, Enum):
    """Why a visit is being cancelled."""

    MANUAL = "manual"
    AUTOMATIC_EXPIRY = "automatic-expiry"
    CUSTOMER_INITIATED = "customer-initiated"


# Reasons that keep a free-text note and the acting user
NOTED_REASONS = frozenset({CancelReason.MANUAL, CancelReason.CUSTOMER_INITIATED})


@dataclass(frozen=True)
class CascadeResult:
    """Outcome of a cascade cancellation.

    Attributes:
        success_count: Bookings archived by this call
        fail_count: Bookings that were staged but not written
    """

    success_count: int
    fail_count: int


def history_key(customer_key: str, variant_id: str | None, booking_id: str) -> str:
    """Deterministic id for a customer history entry.

    Re-running a cancellation overwrites the same entry instead of adding one.
    """
    return f"{customer_key}__{variant_id or 'unknown'}__{booking_id}"


class CascadeResolver:
    """Find every booking record that belongs to the same visit.

    Explicit grouping (shared visit key or parent link) wins. Without it, a
    heuristic looks for bookings by the same customer on the same date
    created within a few minutes of each other. The heuristic is
    approximate; new bookings always carry a visit key.
    """

    def __init__(
        self,
        store: BookingStore,
        site_id: str,
        explicit_cap: int | None = None,
        heuristic_cap: int | None = None,
        window_minutes: int | None = None,
    ):
        self.store = store
        self.site_id = site_id
        self.explicit_cap = explicit_cap or settings.cascade_explicit_cap
        self.heuristic_cap = heuristic_cap or settings.cascade_heuristic_cap
        self.window_minutes = (
            window_minutes
            if window_minutes is not None
            else settings.cascade_heuristic_window_minutes
        )

    async def resolve_group(self, booking_id: str) -> VisitGroup:
        """Resolve the visit group for one booking.

        The result always contains ``booking_id``.
        """
        booking = await self.store.get(self.site_id, booking_id)
        if booking is None:
            logger.warning(
                "Booking %s not found, resolving as singleton",
                booking_id,
                extra={"site_id": self.site_id, "booking_id": booking_id},
            )
            return self._singleton(booking_id)

        root_id, explicit = await self._explicit_members(booking)
        if len(explicit) > 1:
            return VisitGroup(
                root_id=root_id,
                member_ids=self._capped(booking_id, explicit, self.explicit_cap),
                source=GroupSource.EXPLICIT,
            )

        try:
            members = await self._heuristic_members(booking)
        except GroupResolutionAmbiguous as exc:
            logger.info("%s; falling back to singleton", exc)
            return self._singleton(booking_id)

        if members is None:
            return self._singleton(booking_id)
        return VisitGroup(
            root_id=booking.id,
            member_ids=self._capped(booking_id, members, self.heuristic_cap),
            source=GroupSource.HEURISTIC,
        )

    async def _explicit_members(self, booking: BookingRecord) -> tuple[str, list[str]]:
        """Root id and members from the visit key and parent links.

        With a visit key the root is the first keyed record without a parent
        link; parent-linked children of that root are added so legacy
        follow-ups of any keyed selection are found.
        """
        root_id = booking.parent_booking_id or booking.id
        members: list[str] = [booking.id]
        if booking.visit_key:
            keyed = await self.store.list_by_visit_key(
                self.site_id, booking.visit_key, self.explicit_cap
            )
            if keyed:
                root = next(
                    (record for record in keyed if not record.parent_booking_id),
                    keyed[0],
                )
                root_id = root.id
            members.extend(record.id for record in keyed)

        members.append(root_id)
        for record in await self.store.list_by_parent(
            self.site_id, root_id, self.explicit_cap
        ):
            members.append(record.id)
        return root_id, list(dict.fromkeys(members))

    async def _heuristic_members(self, booking: BookingRecord) -> list[str] | None:
        identity = booking.customer_identity()
        if identity is None or booking.created_at is None or booking.booking_date is None:
            return None

        window = timedelta(minutes=self.window_minutes)
        candidates = await self.store.list_created_between(
            self.site_id,
            booking.booking_date,
            booking.created_at - window,
            booking.created_at + window,
        )
        same_customer = [
            record.id
            for record in candidates
            if record.customer_identity() == identity
        ]
        if not same_customer or len(same_customer) > self.heuristic_cap:
            raise GroupResolutionAmbiguous(booking.id, len(same_customer))
        return same_customer

    @staticmethod
    def _capped(booking_id: str, members: list[str], cap: int) -> tuple[str, ...]:
        ordered = [booking_id] + [m for m in members if m != booking_id]
        return tuple(ordered[:cap])

    @staticmethod
    def _singleton(booking_id: str) -> VisitGroup:
        return VisitGroup(
            root_id=booking_id,
            member_ids=(booking_id,),
            source=GroupSource.SINGLETON,
        )


class CascadeExecutor:
    """Archive a visit's bookings in one all-or-nothing batch."""

    def __init__(self, store: BookingStore, site_id: str):
        self.store = store
        self.site_id = site_id

    async def cancel_group(
        self,
        booking_ids: list[str],
        reason: CancelReason | str,
        note: str | None = None,
        actor: str | None = None,
    ) -> CascadeResult:
        """Cancel and archive every booking in ``booking_ids``.

        Missing and already-archived bookings are skipped, so a repeated call
        returns ``CascadeResult(0, 0)``. Each archived booking with a known
        customer is mirrored into that customer's history.

        Args:
            booking_ids: Members of the visit group
            reason: Cancellation reason
            note: Free-text note, kept for manual and customer reasons only
            actor: Acting user, kept for manual and customer reasons only

        Returns:
            CascadeResult; on a storage fault ``(0, staged_count)``
        """
        reason = CancelReason(reason)
        if reason not in NOTED_REASONS:
            note, actor = None, None

        archived_at = utc_now()
        writes: list[BookingWrite] = []
        staged: list[BookingRecord] = []

        for booking_id in dict.fromkeys(booking_ids):
            record = await self.store.get(self.site_id, booking_id)
            if record is None:
                logger.warning(
                    "Skipping unknown booking %s in cascade",
                    booking_id,
                    extra={"site_id": self.site_id, "booking_id": booking_id},
                )
                continue
            if record.is_archived:
                continue

            writes.append(
                ArchiveBooking(
                    booking_id=record.id,
                    reason=reason.value,
                    archived_at=archived_at,
                    note=note,
                    actor=actor,
                )
            )
            customer_key = record.customer_identity()
            if customer_key:
                writes.append(
                    HistoryUpsert(
                        key=history_key(customer_key, record.variant_id, record.id),
                        customer_key=customer_key,
                        booking_id=record.id,
                        variant_id=record.variant_id,
                        reason=reason.value,
                        archived_at=archived_at,
                        snapshot=_snapshot(record),
                    )
                )
            staged.append(record)

        if not staged:
            return CascadeResult(success_count=0, fail_count=0)

        try:
            await self.store.commit_group(self.site_id, writes)
        except BatchCommitFailure:
            logger.exception(
                "Cascade batch of %d bookings failed", len(staged),
                extra={"site_id": self.site_id},
            )
            return CascadeResult(success_count=0, fail_count=len(staged))

        for record in staged:
            audit_logger.log(
                action="booking.cancelled",
                actor=actor,
                site_id=self.site_id,
                booking_id=record.id,
                metadata={"reason": reason.value, "visit": record.visit_key},
            )
        logger.info("Cancelled %d bookings", len(staged), extra={"site_id": self.site_id})
        return CascadeResult(success_count=len(staged), fail_count=0)


def _snapshot(record: BookingRecord) -> dict:
    start_at = record.start_at.isoformat() if record.start_at else None
    return {
        "service_id": record.service_id,
        "service_name": record.service_name,
        "worker_id": record.worker_id,
        "worker_name": record.worker_name,
        "start_at": start_at,
        "booking_date": record.booking_date.isoformat() if record.booking_date else None,
        "legacy_time": record.legacy_time,
    }
