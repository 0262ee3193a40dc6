"""Business and per-worker operating windows."""

import logging
from collections.abc import Iterable
from datetime import date, tzinfo
from typing import Final

from app.scheduling.types import BusinessHours, Window, Worker

logger = logging.getLogger(__name__)


class _Inherit:
    """Marker for a worker day that follows business hours."""

    _instance = None

    def __new__(cls) -> "_Inherit":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "INHERIT"

    def __bool__(self) -> bool:
        return False


INHERIT: Final = _Inherit()


class AvailabilityResolver:
    """Answers "when may this worker take a phase on this date".

    Args:
        business_hours: Site hours, breaks and closed dates
        workers: Roster used for per-worker hours
        tz: Site timezone that all wall-clock hours are expressed in
    """

    def __init__(
        self,
        business_hours: BusinessHours,
        workers: Iterable[Worker],
        tz: tzinfo,
    ):
        self.business_hours = business_hours
        self.tz = tz
        self._workers = {worker.id: worker for worker in workers}

    def business_window(self, day: date) -> Window | None:
        """Business open window for a date, or None when closed."""
        hours = self.business_hours.for_date(day)
        if hours is None:
            return None
        return hours.window

    def business_breaks(self, day: date) -> tuple[Window, ...]:
        hours = self.business_hours.for_date(day)
        return hours.breaks if hours else ()

    def worker_window(self, worker_id: str, day: date) -> Window | None | _Inherit:
        """The worker's own window for a date.

        Returns:
            A Window, None if the worker is off (or unknown), or INHERIT when
            the worker has no hours of their own for that weekday
        """
        worker = self._workers.get(worker_id)
        if worker is None:
            return None
        weekday = day.weekday()
        if weekday not in worker.weekly:
            return INHERIT
        hours = worker.weekly[weekday]
        if hours is None:
            return None
        return hours.window

    def worker_breaks(self, worker_id: str, day: date) -> tuple[Window, ...]:
        worker = self._workers.get(worker_id)
        if worker is None:
            return ()
        hours = worker.weekly.get(day.weekday())
        return hours.breaks if hours else ()

    def effective_window(self, worker_id: str, day: date) -> Window | None:
        """Business window intersected with the worker's window."""
        business = self.business_window(day)
        if business is None:
            return None
        own = self.worker_window(worker_id, day)
        if own is INHERIT:
            return business
        if own is None:
            return None
        return business.intersect(own)

    def covers(self, worker_id: str, day: date, start: int, end: int) -> bool:
        """Check that a service segment fits the worker's day.

        The segment must sit inside the effective window and clear every
        business and worker break. Wait gaps are never passed here, so a
        gap may run across a break.
        """
        window = self.effective_window(worker_id, day)
        if window is None or not window.contains(start, end):
            return False
        for brk in self.business_breaks(day) + self.worker_breaks(worker_id, day):
            if brk.overlaps(start, end):
                logger.debug(
                    "Segment %s-%s for worker %s hits break %s-%s",
                    start,
                    end,
                    worker_id,
                    brk.start,
                    brk.end,
                )
                return False
        return True
