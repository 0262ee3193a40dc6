"""Multi-phase visit scheduling engine.

Pure, synchronous functions over data the caller has already fetched:
chain building, availability, conflict detection, placement, slot search
and pre-commit repair.
"""

from app.scheduling.availability import INHERIT, AvailabilityResolver
from app.scheduling.chain import build_chain
from app.scheduling.conflicts import ConflictIndex
from app.scheduling.errors import (
    BatchCommitFailure,
    ConflictDetected,
    GroupResolutionAmbiguous,
    InvalidCapability,
    InvalidChain,
    SchedulingError,
    UnrecognizedBookingShape,
)
from app.scheduling.records import BookingRecord, PhaseRecord, RecordShape
from app.scheduling.repair import repair_placement, validate_placement
from app.scheduling.slots import enumerate_slots
from app.scheduling.solver import place_chain
from app.scheduling.types import (
    BusinessHours,
    Chain,
    ChainPhase,
    DayHours,
    FollowUp,
    GroupSource,
    OccupiedInterval,
    Placement,
    ResolvedPhase,
    ServiceSelection,
    VisitGroup,
    Window,
    Worker,
)

__all__ = [
    "AvailabilityResolver",
    "INHERIT",
    "build_chain",
    "ConflictIndex",
    "place_chain",
    "enumerate_slots",
    "repair_placement",
    "validate_placement",
    "BookingRecord",
    "PhaseRecord",
    "RecordShape",
    "BusinessHours",
    "Chain",
    "ChainPhase",
    "DayHours",
    "FollowUp",
    "GroupSource",
    "OccupiedInterval",
    "Placement",
    "ResolvedPhase",
    "ServiceSelection",
    "VisitGroup",
    "Window",
    "Worker",
    "SchedulingError",
    "InvalidChain",
    "ConflictDetected",
    "GroupResolutionAmbiguous",
    "BatchCommitFailure",
    "UnrecognizedBookingShape",
    "InvalidCapability",
]
