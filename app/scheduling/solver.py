"""Greedy per-phase worker assignment for a chain at a fixed start time."""

import logging
from collections.abc import Iterable, Sequence
from datetime import date, datetime

from app.scheduling.availability import AvailabilityResolver
from app.scheduling.conflicts import ConflictIndex
from app.scheduling.types import Chain, Placement, ResolvedPhase, Worker
from app.utils.time import MINUTES_PER_DAY, at_minute, format_hhmm, local_minute

logger = logging.getLogger(__name__)


def candidate_order(
    service_id: str,
    workers: Sequence[Worker],
    preferred_worker_id: str | None = None,
    previous_worker_id: str | None = None,
) -> list[Worker]:
    """Eligible workers for a service in the order they should be tried.

    Preferred worker first, then whoever did the previous phase, then the
    rest in roster order. Ineligible workers are dropped.
    """
    eligible = [worker for worker in workers if worker.can_perform(service_id)]
    ordered: list[Worker] = []
    for wanted in (preferred_worker_id, previous_worker_id):
        if wanted is None:
            continue
        match = next((w for w in eligible if w.id == wanted), None)
        if match is not None and match not in ordered:
            ordered.append(match)
    ordered.extend(worker for worker in eligible if worker not in ordered)
    return ordered


def worker_is_free(
    worker: Worker,
    day: date,
    start: int,
    end: int,
    conflicts: ConflictIndex,
    availability: AvailabilityResolver,
) -> bool:
    """Check availability window, breaks and existing bookings."""
    if not availability.covers(worker.id, day, start, end):
        return False
    return not conflicts.has_conflict(worker.id, start, end)


def place_chain(
    chain: Chain,
    start_at: datetime,
    workers: Iterable[Worker],
    conflicts: ConflictIndex,
    availability: AvailabilityResolver,
    preferred_worker_id: str | None = None,
    require_preferred_first: bool = False,
) -> Placement | None:
    """Assign one worker per phase, walking the chain from ``start_at``.

    Each phase takes the first candidate that is free for the whole phase.
    There is no backtracking: if a phase has no free candidate the start
    time is infeasible.

    Args:
        chain: Phases to place
        start_at: Candidate start of the first phase
        workers: Roster in display order
        conflicts: Busy intervals for the start date
        availability: Business and worker hours
        preferred_worker_id: Worker to try first on every phase
        require_preferred_first: Only the preferred worker may take phase one

    Returns:
        Placement, or None if the chain does not fit at this start
    """
    tz = availability.tz
    day, cursor = local_minute(start_at, tz)
    if day != conflicts.day:
        raise ValueError(
            f"Conflict index is for {conflicts.day}, start is on {day}"
        )

    roster = list(workers)
    resolved: list[ResolvedPhase] = []
    previous_worker_id: str | None = None

    for index, phase in enumerate(chain.phases):
        end = cursor + phase.duration_minutes
        if end > MINUTES_PER_DAY:
            return None

        candidates = candidate_order(
            phase.service_id, roster, preferred_worker_id, previous_worker_id
        )
        if index == 0 and require_preferred_first and preferred_worker_id:
            candidates = [w for w in candidates if w.id == preferred_worker_id]

        chosen = next(
            (
                worker
                for worker in candidates
                if worker_is_free(worker, day, cursor, end, conflicts, availability)
            ),
            None,
        )
        if chosen is None:
            logger.debug(
                "No free worker for phase %d (%s) at %s %s",
                index,
                phase.service_id,
                day,
                format_hhmm(cursor),
            )
            return None

        resolved.append(
            ResolvedPhase(
                service_id=phase.service_id,
                service_name=phase.service_name,
                variant_id=phase.variant_id,
                worker_id=chosen.id,
                worker_name=chosen.name,
                start_at=at_minute(day, cursor, tz),
                end_at=at_minute(day, end, tz),
                is_follow_up=phase.is_follow_up,
            )
        )
        previous_worker_id = chosen.id
        cursor = end + chain.gap_after(index)

    return Placement(phases=tuple(resolved), gaps=chain.gaps)
