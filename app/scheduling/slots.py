"""Search a day's time grid for start times where a chain fits."""

import logging
from collections.abc import Iterable
from datetime import date, datetime

from app.scheduling.availability import AvailabilityResolver
from app.scheduling.conflicts import ConflictIndex
from app.scheduling.records import BookingRecord
from app.scheduling.solver import place_chain
from app.scheduling.types import Chain, Worker
from app.utils.time import at_minute

logger = logging.getLogger(__name__)

DEFAULT_GRID_MINUTES = 15


def enumerate_slots(
    chain: Chain,
    day: date,
    workers: Iterable[Worker],
    bookings: Iterable[BookingRecord],
    availability: AvailabilityResolver,
    preferred_worker_id: str | None = None,
    grid_minutes: int = DEFAULT_GRID_MINUTES,
    not_before: datetime | None = None,
    require_preferred_first: bool = False,
) -> list[datetime]:
    """List feasible chain start times for a date.

    Grid points run from business open to ``close - chain.total_minutes``
    inclusive. Each point is kept only if place_chain finds a placement.

    Args:
        chain: Visit to place
        day: Local date to search
        workers: Roster in display order
        bookings: Stored bookings for the date
        availability: Business and worker hours
        preferred_worker_id: Worker to try first on every phase
        grid_minutes: Grid step in minutes
        not_before: Drop start times at or before this instant
        require_preferred_first: Only the preferred worker may take phase one

    Returns:
        Ordered aware datetimes in the site timezone
    """
    if grid_minutes < 1:
        raise ValueError("grid_minutes must be positive")

    window = availability.business_window(day)
    if window is None:
        logger.debug("Business closed on %s", day)
        return []

    conflicts = ConflictIndex.build(bookings, day, availability.tz)
    roster = list(workers)
    latest = window.end - chain.total_minutes

    slots: list[datetime] = []
    for minute in range(window.start, latest + 1, grid_minutes):
        start_at = at_minute(day, minute, availability.tz)
        if not_before is not None and start_at <= not_before:
            continue
        placement = place_chain(
            chain,
            start_at,
            roster,
            conflicts,
            availability,
            preferred_worker_id=preferred_worker_id,
            require_preferred_first=require_preferred_first,
        )
        if placement is not None:
            slots.append(start_at)

    logger.debug("Found %d slots on %s", len(slots), day)
    return slots
