"""Scheduling engine exceptions.

Infeasibility (no slot, no free worker) is a normal outcome and is returned
as ``None`` or an empty list. Only the conditions below are raised.
"""


class SchedulingError(Exception):
    """Base class for scheduling engine errors."""


class InvalidChain(SchedulingError):
    """Raised when a service selection or placement is malformed."""


class ConflictDetected(SchedulingError):
    """Raised when a placement can no longer be honoured at commit time.

    The caller should re-enumerate slots and try again.
    """

    retryable = True

    def __init__(self, message: str, phase_index: int | None = None):
        super().__init__(message)
        self.phase_index = phase_index


class GroupResolutionAmbiguous(SchedulingError):
    """Raised when the heuristic visit lookup finds zero or too many candidates."""

    def __init__(self, booking_id: str, candidate_count: int):
        super().__init__(
            f"Heuristic group for booking {booking_id} found {candidate_count} candidates"
        )
        self.booking_id = booking_id
        self.candidate_count = candidate_count


class BatchCommitFailure(SchedulingError):
    """Raised by a booking store when an atomic batch could not be applied."""


class UnrecognizedBookingShape(SchedulingError):
    """Raised when a stored booking matches none of the known record layouts."""

    def __init__(self, booking_id: str, detail: str):
        super().__init__(f"Booking {booking_id} has an unrecognized shape: {detail}")
        self.booking_id = booking_id


class InvalidCapability(SchedulingError):
    """Raised when a worker is given capabilities for unknown services."""

    def __init__(self, unknown_service_ids: list[str]):
        super().__init__(
            f"Unknown service ids: {', '.join(sorted(unknown_service_ids))}"
        )
        self.unknown_service_ids = unknown_service_ids
