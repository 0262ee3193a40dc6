"""Scheduling service: the async seam between storage and the engine.

Loads roster, calendar and bookings for a site, hands them to the pure
engine in ``app.scheduling`` and runs the two write flows: committing a
visit (repair immediately before the atomic write) and cascade
cancellation.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from uuid import uuid4
from zoneinfo import ZoneInfo

from sqlalchemy.ext.asyncio import AsyncSession

from app.booking.cascade import CancelReason, CascadeExecutor, CascadeResolver, CascadeResult
from app.booking.ports import NewBooking
from app.core.config import settings
from app.core.logging import audit_logger
from app.scheduling import slots as slot_search
from app.scheduling import solver
from app.scheduling.availability import AvailabilityResolver
from app.scheduling.chain import build_chain
from app.scheduling.conflicts import ConflictIndex
from app.scheduling.errors import InvalidCapability, InvalidChain
from app.scheduling.repair import repair_placement, validate_placement
from app.scheduling.types import Chain, Placement, ServiceSelection, VisitGroup, Worker
from app.services.booking_store import SqlBookingStore
from app.services.providers import (
    SqlCalendarConfigProvider,
    SqlRosterProvider,
    SqlServiceCatalog,
)
from app.utils.time import local_minute, utc_now

logger = logging.getLogger(__name__)


class WorkerNotFoundError(Exception):
    """Raised when a worker does not exist at the site."""

    pass


@dataclass(frozen=True)
class CommittedVisit:
    """Result of a successful visit commit."""

    visit_group_id: str
    booking_ids: tuple[str, ...]
    placement: Placement


class SchedulingService:
    """Slot search, placement, visit commit and cancellation for one site."""

    def __init__(self, session: AsyncSession, site_id: str):
        self.session = session
        self.site_id = site_id
        self.tz = ZoneInfo(settings.site_timezone)
        self.store = SqlBookingStore(session)
        self.roster = SqlRosterProvider(session)
        self.calendar = SqlCalendarConfigProvider(session)
        self.catalog = SqlServiceCatalog(session)

    async def build_chain(
        self,
        selections: list[tuple[str, str | None]],
        gaps: list[int] | None = None,
    ) -> Chain:
        """Build a chain from (service_id, variant_id) picks.

        Raises:
            InvalidChain: If the list is empty or a pick is unknown
        """
        resolved: list[ServiceSelection] = []
        for service_id, variant_id in selections:
            selection = await self.catalog.get_selection(self.site_id, service_id, variant_id)
            if selection is None:
                raise InvalidChain(f"Unknown service or variant: {service_id}/{variant_id}")
            resolved.append(selection)
        return build_chain(resolved, gaps)

    async def _load_roster(self) -> tuple[list[Worker], AvailabilityResolver]:
        workers = await self.roster.get_workers(self.site_id)
        hours = await self.calendar.get_business_hours(self.site_id)
        return workers, AvailabilityResolver(hours, workers, self.tz)

    async def _conflicts_for(self, day: date) -> ConflictIndex:
        bookings = await self.store.list_for_date(self.site_id, day)
        return ConflictIndex.build(bookings, day, self.tz)

    async def enumerate_slots(
        self,
        chain: Chain,
        day: date,
        preferred_worker_id: str | None = None,
    ) -> list[datetime]:
        """Feasible start times for a chain on a date, excluding the past."""
        workers, availability = await self._load_roster()
        bookings = await self.store.list_for_date(self.site_id, day)
        return slot_search.enumerate_slots(
            chain,
            day,
            workers,
            bookings,
            availability,
            preferred_worker_id=preferred_worker_id,
            grid_minutes=settings.slot_grid_minutes,
            not_before=utc_now(),
            require_preferred_first=settings.require_preferred_first_phase,
        )

    async def place_chain(
        self,
        chain: Chain,
        start_at: datetime,
        preferred_worker_id: str | None = None,
    ) -> Placement | None:
        """Assign workers for a chain at one start time, or None."""
        workers, availability = await self._load_roster()
        day, _ = local_minute(start_at, self.tz)
        conflicts = await self._conflicts_for(day)
        return solver.place_chain(
            chain,
            start_at,
            workers,
            conflicts,
            availability,
            preferred_worker_id=preferred_worker_id,
            require_preferred_first=settings.require_preferred_first_phase,
        )

    async def repair_placement(self, placement: Placement) -> Placement:
        """Re-check a placement against freshly read bookings.

        Raises:
            ConflictDetected: If some phase can no longer be staffed
        """
        workers, availability = await self._load_roster()
        day, _ = local_minute(placement.start_at, self.tz)
        conflicts = await self._conflicts_for(day)
        return repair_placement(placement, conflicts, workers, availability)

    async def commit_visit(
        self,
        placement: Placement,
        customer_key: str | None = None,
        customer_name: str | None = None,
        chain: Chain | None = None,
    ) -> CommittedVisit:
        """Persist a placement as one booking per phase.

        The placement is validated, repaired against the latest bookings and
        written in one batch. All rows share a new visit key; follow-up rows
        also link to the first row.

        Raises:
            InvalidChain: If the placement is malformed
            ConflictDetected: If repair fails (caller should re-select a slot)
            BatchCommitFailure: If the write fails
        """
        validate_placement(placement, chain)
        repaired = await self.repair_placement(placement)

        visit_group_id = str(uuid4())
        booking_ids = tuple(str(uuid4()) for _ in repaired.phases)
        writes = []
        for index, phase in enumerate(repaired.phases):
            booking_date, _ = local_minute(phase.start_at, self.tz)
            writes.append(
                NewBooking(
                    id=booking_ids[index],
                    visit_group_id=visit_group_id,
                    service_id=phase.service_id,
                    service_name=phase.service_name,
                    variant_id=phase.variant_id,
                    worker_id=phase.worker_id,
                    worker_name=phase.worker_name,
                    start_at=phase.start_at,
                    end_at=phase.end_at,
                    booking_date=booking_date,
                    phase=index + 1,
                    is_follow_up=phase.is_follow_up,
                    parent_booking_id=booking_ids[0] if phase.is_follow_up else None,
                    customer_key=customer_key,
                    customer_name=customer_name,
                )
            )
        await self.store.commit_group(self.site_id, writes)

        for booking_id, phase in zip(booking_ids, repaired.phases):
            audit_logger.log(
                action="booking.created",
                actor=customer_key,
                site_id=self.site_id,
                booking_id=booking_id,
                metadata={"visit": visit_group_id, "worker": phase.worker_id},
            )
        return CommittedVisit(
            visit_group_id=visit_group_id,
            booking_ids=booking_ids,
            placement=repaired,
        )

    async def resolve_cascade_group(self, booking_id: str) -> VisitGroup:
        """All booking ids of the visit that ``booking_id`` belongs to."""
        resolver = CascadeResolver(self.store, self.site_id)
        return await resolver.resolve_group(booking_id)

    async def cancel_group(
        self,
        booking_ids: list[str],
        reason: CancelReason | str,
        note: str | None = None,
        actor: str | None = None,
    ) -> CascadeResult:
        """Archive the given bookings in one batch."""
        executor = CascadeExecutor(self.store, self.site_id)
        return await executor.cancel_group(booking_ids, reason, note=note, actor=actor)

    async def cancel_visit(
        self,
        booking_id: str,
        reason: CancelReason | str,
        note: str | None = None,
        actor: str | None = None,
    ) -> tuple[VisitGroup, CascadeResult]:
        """Resolve the visit of one booking and cancel all of it."""
        group = await self.resolve_cascade_group(booking_id)
        result = await self.cancel_group(
            list(group.member_ids), reason, note=note, actor=actor
        )
        return group, result

    async def set_worker_capabilities(
        self,
        worker_id: str,
        service_ids: list[str],
        all_services: bool = False,
    ) -> Worker:
        """Replace a worker's capability set.

        Raises:
            WorkerNotFoundError: If the worker is not at this site
            InvalidCapability: If any service id is not in the catalog
        """
        row = await self.roster.get_worker_row(self.site_id, worker_id)
        if row is None:
            raise WorkerNotFoundError(f"Worker {worker_id} not found")

        known = await self.catalog.list_service_ids(self.site_id)
        unknown = [service_id for service_id in service_ids if service_id not in known]
        if unknown:
            raise InvalidCapability(unknown)

        row.capabilities = sorted(set(service_ids))
        row.all_services = all_services
        await self.session.commit()
        await self.session.refresh(row)
        logger.info(
            "Updated capabilities for worker %s: %d services",
            worker_id,
            len(row.capabilities),
            extra={"site_id": self.site_id, "worker_id": worker_id},
        )
        return row.to_roster_worker()
