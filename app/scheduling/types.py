"""Value types shared by the scheduling engine.

Times inside the engine are minutes from local midnight of the site's
timezone; datetimes only appear on solved output (ResolvedPhase).
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum


@dataclass(frozen=True)
class Window:
    """Half-open minute range [start, end) on one local day."""

    start: int
    end: int

    @property
    def minutes(self) -> int:
        return self.end - self.start

    def contains(self, start: int, end: int) -> bool:
        """Check that [start, end) lies entirely inside this window."""
        return self.start <= start and end <= self.end

    def overlaps(self, start: int, end: int) -> bool:
        """Half-open overlap; touching ranges do not overlap."""
        return start < self.end and end > self.start

    def intersect(self, other: "Window") -> "Window | None":
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if end <= start:
            return None
        return Window(start, end)


@dataclass(frozen=True)
class DayHours:
    """Opening hours for one weekday, with optional breaks."""

    open: int
    close: int
    breaks: tuple[Window, ...] = ()
    enabled: bool = True

    @property
    def window(self) -> Window | None:
        """The open window, or None when disabled or zero-length."""
        if not self.enabled or self.close <= self.open:
            return None
        return Window(self.open, self.close)


@dataclass
class BusinessHours:
    """Site operating hours keyed by weekday (Monday = 0)."""

    days: dict[int, DayHours] = field(default_factory=dict)
    closed_dates: frozenset[date] = frozenset()

    def for_date(self, day: date) -> DayHours | None:
        if day in self.closed_dates:
            return None
        return self.days.get(day.weekday())


@dataclass
class Worker:
    """A staff member as seen by the solver.

    ``weekly`` maps weekday to the worker's own hours. A missing weekday
    means the worker follows business hours; ``None`` means the worker is
    off that day.
    """

    id: str
    name: str
    capabilities: frozenset[str] = frozenset()
    all_services: bool = False
    active: bool = True
    weekly: dict[int, DayHours | None] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.capabilities = frozenset(self.capabilities)

    def can_perform(self, service_id: str) -> bool:
        """Check that the worker is active and qualified for a service."""
        if not self.active:
            return False
        return self.all_services or service_id in self.capabilities


@dataclass(frozen=True)
class FollowUp:
    """A mandatory second phase declared by a service variant."""

    name: str
    wait_minutes: int
    duration_minutes: int
    service_id: str | None = None

    def normalized(self) -> "FollowUp | None":
        """Return a usable follow-up, or None if it is effectively absent."""
        if not self.name or not self.name.strip() or self.duration_minutes < 1:
            return None
        return replace(self, wait_minutes=max(0, self.wait_minutes))


@dataclass(frozen=True)
class ServiceSelection:
    """One (service, variant) pair picked by the client."""

    service_id: str
    service_name: str
    variant_id: str | None
    duration_minutes: int
    follow_up: FollowUp | None = None


@dataclass(frozen=True)
class ChainPhase:
    """One schedulable unit of a visit."""

    service_id: str
    service_name: str
    variant_id: str | None
    duration_minutes: int
    is_follow_up: bool = False


@dataclass(frozen=True)
class Chain:
    """Ordered phases of one visit with the wait gap after each phase."""

    phases: tuple[ChainPhase, ...]
    gaps: tuple[int, ...]

    def __len__(self) -> int:
        return len(self.phases)

    @property
    def total_minutes(self) -> int:
        """Elapsed minutes from first start to last end, gaps included."""
        return sum(p.duration_minutes for p in self.phases) + sum(self.gaps)

    def gap_after(self, index: int) -> int:
        return self.gaps[index]


@dataclass(frozen=True)
class OccupiedInterval:
    """A busy range for one worker, derived from a stored booking."""

    worker_id: str
    start_minute: int
    end_minute: int
    booking_id: str

    def overlaps(self, start: int, end: int) -> bool:
        return start < self.end_minute and end > self.start_minute


@dataclass(frozen=True)
class ResolvedPhase:
    """A phase with its assigned worker and concrete times."""

    service_id: str
    service_name: str
    variant_id: str | None
    worker_id: str
    worker_name: str
    start_at: datetime
    end_at: datetime
    is_follow_up: bool = False

    @property
    def duration_minutes(self) -> int:
        return int((self.end_at - self.start_at).total_seconds() // 60)


@dataclass(frozen=True)
class Placement:
    """A worker and time for every phase of a chain."""

    phases: tuple[ResolvedPhase, ...]
    gaps: tuple[int, ...]

    def __len__(self) -> int:
        return len(self.phases)

    @property
    def start_at(self) -> datetime:
        return self.phases[0].start_at

    @property
    def end_at(self) -> datetime:
        return self.phases[-1].end_at

    def with_phase(self, index: int, phase: ResolvedPhase) -> "Placement":
        """Return a copy with one phase replaced."""
        phases = list(self.phases)
        phases[index] = phase
        return Placement(phases=tuple(phases), gaps=self.gaps)


class GroupSource(str, Enum):
    """How the members of a visit group were found."""

    EXPLICIT = "explicit"
    HEURISTIC = "heuristic"
    SINGLETON = "singleton"


@dataclass(frozen=True)
class VisitGroup:
    """Booking records that make up one client visit."""

    root_id: str
    member_ids: tuple[str, ...]
    source: GroupSource

    def __contains__(self, booking_id: object) -> bool:
        return booking_id in self.member_ids
