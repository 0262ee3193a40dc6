"""Re-check a placement against the latest bookings right before commit."""

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import timedelta

from app.scheduling.availability import AvailabilityResolver
from app.scheduling.conflicts import ConflictIndex
from app.scheduling.errors import ConflictDetected, InvalidChain
from app.scheduling.solver import candidate_order, worker_is_free
from app.scheduling.types import Chain, Placement, Worker
from app.utils.time import local_minute

logger = logging.getLogger(__name__)


def validate_placement(placement: Placement, chain: Chain | None = None) -> None:
    """Check a placement's structure before trusting it.

    Phases must be non-empty, each must end after it starts, and
    ``phase[i+1].start_at == phase[i].end_at + gaps[i]``. When a chain is
    given, phases must match it one to one.

    Raises:
        InvalidChain: On any structural problem
    """
    if not placement.phases:
        raise InvalidChain("Placement has no phases")
    if len(placement.gaps) != len(placement.phases):
        raise InvalidChain("Placement needs one gap entry per phase")
    if any(gap < 0 for gap in placement.gaps):
        raise InvalidChain("Placement gaps cannot be negative")

    for index, phase in enumerate(placement.phases):
        if phase.end_at <= phase.start_at:
            raise InvalidChain(f"Phase {index} ends before it starts")
        if index + 1 < len(placement.phases):
            expected = phase.end_at + timedelta(minutes=placement.gaps[index])
            if placement.phases[index + 1].start_at != expected:
                raise InvalidChain(f"Phase {index + 1} does not follow phase {index}")

    if chain is not None:
        if len(chain) != len(placement):
            raise InvalidChain("Placement does not match the chain length")
        if tuple(chain.gaps) != tuple(placement.gaps):
            raise InvalidChain("Placement gaps do not match the chain")
        for index, (planned, resolved) in enumerate(zip(chain.phases, placement.phases)):
            if (
                planned.service_id != resolved.service_id
                or planned.service_name != resolved.service_name
                or planned.variant_id != resolved.variant_id
                or planned.is_follow_up != resolved.is_follow_up
                or planned.duration_minutes != resolved.duration_minutes
            ):
                raise InvalidChain(f"Phase {index} does not match the chain")


def repair_placement(
    placement: Placement,
    conflicts: ConflictIndex,
    workers: Iterable[Worker],
    availability: AvailabilityResolver,
) -> Placement:
    """Keep valid phases, reassign phases that a race has invalidated.

    Times never move. A phase is kept if its worker is still qualified,
    within hours and conflict-free; otherwise the other eligible workers
    are scanned for the same window, previous phase's worker first.

    Returns:
        The placement, possibly with some workers swapped

    Raises:
        ConflictDetected: If any phase has no free eligible worker; nothing
            partial is returned
    """
    tz = availability.tz
    roster = list(workers)
    by_id = {worker.id: worker for worker in roster}
    repaired = placement

    for index, phase in enumerate(placement.phases):
        day, start = local_minute(phase.start_at, tz)
        end = start + phase.duration_minutes

        current = by_id.get(phase.worker_id)
        if (
            current is not None
            and current.can_perform(phase.service_id)
            and worker_is_free(current, day, start, end, conflicts, availability)
        ):
            continue

        previous_worker_id = repaired.phases[index - 1].worker_id if index else None
        replacement = next(
            (
                worker
                for worker in candidate_order(
                    phase.service_id, roster, None, previous_worker_id
                )
                if worker.id != phase.worker_id
                and worker_is_free(worker, day, start, end, conflicts, availability)
            ),
            None,
        )
        if replacement is None:
            raise ConflictDetected(
                f"No eligible worker is free for {phase.service_name} "
                f"at {phase.start_at.isoformat()}",
                phase_index=index,
            )

        logger.info(
            "Reassigned phase %d (%s) from %s to %s",
            index,
            phase.service_name,
            phase.worker_id,
            replacement.id,
        )
        repaired = repaired.with_phase(
            index,
            replace(phase, worker_id=replacement.id, worker_name=replacement.name),
        )

    return repaired
