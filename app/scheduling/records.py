"""Stored booking records and their normalization into busy intervals.

Bookings have been persisted in three layouts over time:

* ``FLAT``: one record per phase with ``start_at``/``end_at`` and ``worker_id``
* ``PHASE_LIST``: one record carrying a ``phases`` list of timed segments
* ``LEGACY_SPLIT``: a local ``legacy_date`` + ``legacy_time`` with a primary
  duration, an optional wait and an optional secondary worker/duration

The layout is detected explicitly, in that order of precedence. A record that
fits none of them is corrupt and raises UnrecognizedBookingShape.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, tzinfo
from enum import Enum

from app.scheduling.errors import UnrecognizedBookingShape
from app.scheduling.types import OccupiedInterval
from app.utils.time import MINUTES_PER_DAY, parse_hhmm, to_local

CANCELLED_STATUSES = frozenset({"cancelled", "canceled"})


class RecordShape(str, Enum):
    """Known persisted booking layouts."""

    FLAT = "flat"
    PHASE_LIST = "phase_list"
    LEGACY_SPLIT = "legacy_split"


@dataclass(frozen=True)
class PhaseRecord:
    """One timed segment inside a PHASE_LIST booking."""

    worker_id: str | None
    start_at: datetime | None
    end_at: datetime | None
    kind: str | None = None


@dataclass
class BookingRecord:
    """Canonical in-memory view of a stored booking of any layout."""

    id: str
    site_id: str | None = None
    status: str = "confirmed"
    cancelled: bool = False
    is_archived: bool = False

    # Service and assignment
    service_id: str | None = None
    variant_id: str | None = None
    service_name: str | None = None
    worker_id: str | None = None
    worker_name: str | None = None

    # FLAT layout
    start_at: datetime | None = None
    end_at: datetime | None = None
    phase: int | None = None

    # PHASE_LIST layout
    phases: tuple[PhaseRecord, ...] = ()

    # LEGACY_SPLIT layout
    legacy_date: str | None = None
    legacy_time: str | None = None
    duration_minutes: int | None = None
    wait_minutes: int | None = None
    secondary_worker_id: str | None = None
    secondary_duration_minutes: int | None = None
    secondary_start_at: datetime | None = None
    secondary_end_at: datetime | None = None

    # Visit grouping and customer identity
    booking_date: date | None = None
    visit_group_id: str | None = None
    booking_group_id: str | None = None
    parent_booking_id: str | None = None
    customer_key: str | None = None
    client_id: str | None = None
    customer_phone: str | None = None
    created_at: datetime | None = None

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled or (self.status or "").lower() in CANCELLED_STATUSES

    @property
    def visit_key(self) -> str | None:
        """Shared visit identifier, canonical first then legacy."""
        return self.visit_group_id or self.booking_group_id

    def customer_identity(self) -> str | None:
        """Best available customer identity, strongest first."""
        for value in (self.customer_key, self.client_id, self.customer_phone):
            if value and value.strip():
                return value.strip()
        return None


def detect_shape(record: BookingRecord) -> RecordShape:
    """Classify a record's layout.

    Raises:
        UnrecognizedBookingShape: If no known layout matches
    """
    if record.start_at is not None and record.end_at is not None:
        return RecordShape.FLAT
    if record.phases:
        return RecordShape.PHASE_LIST
    if record.legacy_time and record.duration_minutes is not None:
        return RecordShape.LEGACY_SPLIT
    raise UnrecognizedBookingShape(
        record.id, "no start/end pair, phase list or legacy date/time/duration"
    )


def occupied_intervals(
    record: BookingRecord, day: date, tz: tzinfo
) -> list[OccupiedInterval]:
    """Busy intervals a record contributes to one local date.

    Cancelled and archived records contribute nothing. Wait gaps are never
    busy. Segments that cross midnight are clipped to the requested day.
    """
    if record.is_cancelled or record.is_archived:
        return []

    shape = detect_shape(record)
    if shape is RecordShape.FLAT:
        segments = [(record.worker_id, record.start_at, record.end_at)]
        return _clip_all(record.id, segments, day, tz)

    if shape is RecordShape.PHASE_LIST:
        segments = []
        for index, phase in enumerate(record.phases):
            if phase.start_at is None or phase.end_at is None:
                raise UnrecognizedBookingShape(
                    record.id, f"phase {index} has no start/end"
                )
            segments.append((phase.worker_id, phase.start_at, phase.end_at))
        return _clip_all(record.id, segments, day, tz)

    return _legacy_intervals(record, day, tz)


def _legacy_intervals(
    record: BookingRecord, day: date, tz: tzinfo
) -> list[OccupiedInterval]:
    try:
        legacy_day = (
            date.fromisoformat(record.legacy_date)
            if record.legacy_date
            else record.booking_date
        )
        start = parse_hhmm(record.legacy_time)
    except ValueError as exc:
        raise UnrecognizedBookingShape(record.id, str(exc)) from exc
    if legacy_day is None:
        raise UnrecognizedBookingShape(record.id, "legacy booking without a date")
    if record.duration_minutes < 1:
        raise UnrecognizedBookingShape(record.id, "legacy duration must be positive")

    if legacy_day != day:
        return []

    intervals = []
    primary_end = start + record.duration_minutes
    if record.worker_id:
        intervals.append(
            OccupiedInterval(
                worker_id=record.worker_id,
                start_minute=start,
                end_minute=min(primary_end, MINUTES_PER_DAY),
                booking_id=record.id,
            )
        )

    if record.secondary_start_at is not None and record.secondary_end_at is not None:
        intervals.extend(
            _clip_all(
                record.id,
                [
                    (
                        record.secondary_worker_id,
                        record.secondary_start_at,
                        record.secondary_end_at,
                    )
                ],
                day,
                tz,
            )
        )
    elif record.secondary_worker_id and record.secondary_duration_minutes:
        secondary_start = primary_end + max(0, record.wait_minutes or 0)
        secondary_end = min(
            secondary_start + record.secondary_duration_minutes, MINUTES_PER_DAY
        )
        if secondary_start < secondary_end:
            intervals.append(
                OccupiedInterval(
                    worker_id=record.secondary_worker_id,
                    start_minute=secondary_start,
                    end_minute=secondary_end,
                    booking_id=record.id,
                )
            )
    return intervals


def _clip_all(
    booking_id: str,
    segments: list[tuple[str | None, datetime, datetime]],
    day: date,
    tz: tzinfo,
) -> list[OccupiedInterval]:
    midnight = datetime.combine(day, time(0, 0))
    intervals = []
    for worker_id, start_at, end_at in segments:
        if not worker_id:
            continue
        start = _wall_minutes(start_at, midnight, tz)
        end = _wall_minutes(end_at, midnight, tz)
        start, end = max(start, 0), min(end, MINUTES_PER_DAY)
        if start >= end:
            continue
        intervals.append(
            OccupiedInterval(
                worker_id=worker_id,
                start_minute=start,
                end_minute=end,
                booking_id=booking_id,
            )
        )
    return intervals


def _wall_minutes(dt: datetime, midnight: datetime, tz: tzinfo) -> int:
    local = to_local(dt, tz).replace(tzinfo=None)
    return int((local - midnight).total_seconds() // 60)
