"""Per-worker busy intervals for one local date."""

import bisect
import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, tzinfo

from app.scheduling.records import BookingRecord, occupied_intervals
from app.scheduling.types import OccupiedInterval

logger = logging.getLogger(__name__)


class ConflictIndex:
    """Busy intervals keyed by worker, kept sorted by start minute."""

    def __init__(self, day: date, intervals: Iterable[OccupiedInterval] = ()):
        self.day = day
        self._by_worker: dict[str, list[OccupiedInterval]] = defaultdict(list)
        for interval in intervals:
            self.add(interval)

    @classmethod
    def build(
        cls, records: Iterable[BookingRecord], day: date, tz: tzinfo
    ) -> "ConflictIndex":
        """Build the index from stored bookings.

        Cancelled and archived bookings and wait gaps are excluded. Records in
        an unknown layout raise UnrecognizedBookingShape.
        """
        index = cls(day)
        count = 0
        for record in records:
            for interval in occupied_intervals(record, day, tz):
                index.add(interval)
                count += 1
        logger.debug("Conflict index for %s holds %d intervals", day, count)
        return index

    def add(self, interval: OccupiedInterval) -> None:
        bisect.insort(self._by_worker[interval.worker_id], interval, key=_sort_key)

    def intervals_for(self, worker_id: str) -> tuple[OccupiedInterval, ...]:
        return tuple(self._by_worker.get(worker_id, ()))

    def find_conflict(
        self, worker_id: str, start: int, end: int
    ) -> OccupiedInterval | None:
        """First interval of the worker overlapping [start, end), if any."""
        for interval in self._by_worker.get(worker_id, ()):
            if interval.start_minute >= end:
                break
            if interval.overlaps(start, end):
                return interval
        return None

    def has_conflict(self, worker_id: str, start: int, end: int) -> bool:
        return self.find_conflict(worker_id, start, end) is not None

    def worker_ids(self) -> list[str]:
        return [worker_id for worker_id, items in self._by_worker.items() if items]


def _sort_key(interval: OccupiedInterval) -> tuple[int, int]:
    return interval.start_minute, interval.end_minute
