"""Time and datetime utilities."""

from datetime import date, datetime, time, timedelta, timezone, tzinfo

MINUTES_PER_DAY = 24 * 60


def utc_now() -> datetime:
    """Get current UTC datetime.

    Returns:
        Current datetime in UTC timezone
    """
    return datetime.now(timezone.utc)


def parse_hhmm(value: str) -> int:
    """Parse a wall-clock "HH:MM" string into minutes from midnight.

    "24:00" is accepted as end of day.

    Args:
        value: Time string such as "09:30"

    Returns:
        Minutes from local midnight

    Raises:
        ValueError: If the string is not a valid HH:MM time
    """
    hours, sep, minutes = value.strip().partition(":")
    if not sep or not hours.isdigit() or not minutes.isdigit() or len(minutes) != 2:
        raise ValueError(f"Could not parse time: {value!r}")
    total = int(hours) * 60 + int(minutes)
    if int(minutes) >= 60 or total > MINUTES_PER_DAY:
        raise ValueError(f"Could not parse time: {value!r}")
    return total


def format_hhmm(minutes: int) -> str:
    """Format minutes from midnight as "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def time_to_minutes(value: time) -> int:
    """Convert a time of day to minutes from midnight."""
    return value.hour * 60 + value.minute


def at_minute(day: date, minute: int, tz: tzinfo) -> datetime:
    """Build an aware datetime for a wall-clock minute on a local date.

    Args:
        day: Local calendar date
        minute: Minutes from local midnight (may be 1440 for end of day)
        tz: Site timezone

    Returns:
        Timezone-aware datetime
    """
    return datetime.combine(day, time(0, 0), tzinfo=tz) + timedelta(minutes=minute)


def to_local(dt: datetime, tz: tzinfo) -> datetime:
    """Express a datetime in the site timezone.

    Naive datetimes are taken to be UTC, which is how they come back
    from backends that drop the offset on storage.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(tz)


def local_minute(dt: datetime, tz: tzinfo) -> tuple[date, int]:
    """Split a datetime into its local date and minute of day."""
    local = to_local(dt, tz)
    return local.date(), local.hour * 60 + local.minute

