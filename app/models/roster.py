"""Roster and calendar models: workers, business days and closed dates."""

from datetime import date, time
from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, Date, Integer, String, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin
from app.scheduling.types import DayHours, Window, Worker as RosterWorker
from app.utils.time import parse_hhmm, time_to_minutes


class DayOfWeek(int, Enum):
    """Day of week, numbered like ``date.weekday()``."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


def breaks_from_json(raw: list[dict[str, str]] | None) -> tuple[Window, ...]:
    """Convert ``[{"start": "12:00", "end": "12:30"}]`` into break windows."""
    windows = []
    for item in raw or []:
        start, end = parse_hhmm(item["start"]), parse_hhmm(item["end"])
        if end > start:
            windows.append(Window(start, end))
    return tuple(windows)


class Worker(Base, TimestampMixin):
    """A staff member who can be assigned to visit phases.

    ``weekly_availability`` maps weekday ("0".."6") to
    ``{"open": "HH:MM", "close": "HH:MM", "breaks": [...]}`` or null for a
    day off. Weekdays that are not listed follow business hours.
    """

    __tablename__ = "workers"

    site_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    # Service ids this worker may perform (validated on write)
    capabilities: Mapped[list[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    # Legacy rosters with no service list could do everything
    all_services: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    weekly_availability: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        default=dict,
        nullable=False,
    )
    # Roster order used as the final tie-break in assignment
    display_order: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    def to_roster_worker(self) -> RosterWorker:
        weekly: dict[int, DayHours | None] = {}
        for key, hours in (self.weekly_availability or {}).items():
            if hours is None:
                weekly[int(key)] = None
                continue
            weekly[int(key)] = DayHours(
                open=parse_hhmm(hours["open"]),
                close=parse_hhmm(hours["close"]),
                breaks=breaks_from_json(hours.get("breaks")),
            )
        return RosterWorker(
            id=self.id,
            name=self.name,
            capabilities=frozenset(self.capabilities or ()),
            all_services=self.all_services,
            active=self.is_active,
            weekly=weekly,
        )

    def __repr__(self) -> str:
        return f"<Worker {self.name}>"


class BusinessDay(Base, TimestampMixin):
    """Opening hours for one weekday at a site."""

    __tablename__ = "business_days"
    __table_args__ = (UniqueConstraint("site_id", "day_of_week"),)

    site_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    day_of_week: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    open_time: Mapped[time] = mapped_column(
        Time,
        nullable=False,
    )
    close_time: Mapped[time] = mapped_column(
        Time,
        nullable=False,
    )
    # [{"start": "HH:MM", "end": "HH:MM"}]
    breaks: Mapped[list[dict[str, str]]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )

    def to_day_hours(self) -> DayHours:
        return DayHours(
            open=time_to_minutes(self.open_time),
            close=time_to_minutes(self.close_time),
            breaks=breaks_from_json(self.breaks),
            enabled=self.enabled,
        )

    def __repr__(self) -> str:
        return f"<BusinessDay {DayOfWeek(self.day_of_week).name} {self.open_time}-{self.close_time}>"


class ClosedDate(Base, TimestampMixin):
    """A calendar date on which the site is closed (holiday)."""

    __tablename__ = "closed_dates"
    __table_args__ = (UniqueConstraint("site_id", "closed_on"),)

    site_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    closed_on: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )
    reason: Mapped[str | None] = mapped_column(
        String(200),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<ClosedDate {self.closed_on}>"
