"""Turn a client's service selection into an ordered phase chain."""

from collections.abc import Sequence

from app.scheduling.errors import InvalidChain
from app.scheduling.types import Chain, ChainPhase, ServiceSelection


def build_chain(
    selections: Sequence[ServiceSelection],
    gaps: Sequence[int] | None = None,
) -> Chain:
    """Build the phase chain for one visit.

    A single selection whose variant declares a follow-up gets the follow-up
    appended as a second phase, separated by the follow-up's wait. Two or
    more selections never pull in follow-ups; consecutive phases touch
    unless the caller passes explicit ``gaps`` (one per boundary).

    Args:
        selections: Ordered (service, variant) picks, at least one
        gaps: Optional wait minutes between explicit selections

    Returns:
        Chain with one gap entry per phase (the last is always 0)

    Raises:
        InvalidChain: If the selection is empty or carries bad durations/gaps
    """
    if not selections:
        raise InvalidChain("At least one service must be selected")

    phases: list[ChainPhase] = []
    for selection in selections:
        if selection.duration_minutes < 1:
            raise InvalidChain(
                f"Service {selection.service_id} has non-positive duration "
                f"{selection.duration_minutes}"
            )
        phases.append(
            ChainPhase(
                service_id=selection.service_id,
                service_name=selection.service_name,
                variant_id=selection.variant_id,
                duration_minutes=selection.duration_minutes,
            )
        )

    if len(selections) == 1:
        if gaps:
            raise InvalidChain("Gaps are only accepted between two or more selections")
        return _with_follow_up(selections[0], phases[0])

    boundary_gaps = _explicit_gaps(gaps, len(phases) - 1)
    return Chain(phases=tuple(phases), gaps=tuple(boundary_gaps) + (0,))


def _with_follow_up(selection: ServiceSelection, phase: ChainPhase) -> Chain:
    follow_up = selection.follow_up.normalized() if selection.follow_up else None
    if follow_up is None:
        return Chain(phases=(phase,), gaps=(0,))

    second = ChainPhase(
        service_id=follow_up.service_id or selection.service_id,
        service_name=follow_up.name,
        variant_id=selection.variant_id,
        duration_minutes=follow_up.duration_minutes,
        is_follow_up=True,
    )
    return Chain(phases=(phase, second), gaps=(follow_up.wait_minutes, 0))


def _explicit_gaps(gaps: Sequence[int] | None, boundaries: int) -> list[int]:
    if gaps is None:
        return [0] * boundaries
    if len(gaps) != boundaries:
        raise InvalidChain(
            f"Expected {boundaries} gaps between selections, got {len(gaps)}"
        )
    if any(gap < 0 for gap in gaps):
        raise InvalidChain("Gaps between selections cannot be negative")
    return list(gaps)
