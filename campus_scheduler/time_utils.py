# campus_scheduler/time_utils.py
#
# Time arithmetic for the scheduler:
# - minute offsets <-> "HH:MM"
# - dates <-> "YYYY-MM-DD" keys on local (campus) day boundaries
# - weekday numbering (0 = Sunday ... 6 = Saturday)

from datetime import date, datetime, timedelta, timezone
from typing import Union

import pytz

from config.settings import APP_TIMEZONE

MINUTES_PER_DAY = 24 * 60
DATE_KEY_FORMAT = "%Y-%m-%d"

SUNDAY = 0
SATURDAY = 6

_tz = pytz.timezone(APP_TIMEZONE)


def now() -> datetime:
    """
    Get current timezone-aware datetime in the campus timezone.
    """
    return datetime.now(_tz)


def today() -> date:
    """Current calendar day in the campus timezone (not UTC)."""
    return now().date()


def to_local(dt: datetime) -> datetime:
    """
    Convert a datetime to the campus timezone.
    Naive datetimes are assumed to already be local wall-clock time.
    """
    if dt.tzinfo is None:
        return _tz.localize(dt)
    return dt.astimezone(_tz)


def parse_time(value: str) -> int:
    """
    Parse "HH:MM" (or "HH:MM:SS" as stored by time columns) into minutes after midnight.

    Raises:
        ValueError: malformed text or out of range hour/minute
    """
    if not isinstance(value, str):
        raise ValueError(f"Time must be a string, got {value!r}")

    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")

    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid time {value!r}, out of range")
    if len(parts) == 3 and int(parts[2]) >= 60:
        raise ValueError(f"Invalid time {value!r}, out of range")

    return hour * 60 + minute


def format_minutes(minutes: int) -> str:
    """
    Format a minute offset as zero-padded "HH:MM".

    Offsets past the end of the day are not wrapped, so a slot that runs
    over midnight reports e.g. "24:30".
    """
    if minutes < 0:
        raise ValueError(f"Minute offset must not be negative, got {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def format_time_12h(value: str) -> str:
    """
    "13:00" -> "1:00 PM", "00:00" -> "12:00 AM"
    """
    minutes = parse_time(value)
    hour, minute = divmod(minutes, 60)
    suffix = "PM" if hour >= 12 else "AM"
    hour = hour % 12 or 12
    return f"{hour}:{minute:02d} {suffix}"


def date_key(value: Union[date, datetime]) -> str:
    """
    Canonical "YYYY-MM-DD" key for a calendar day.

    Aware datetimes are converted to the campus timezone first, so an
    instant late in the evening UTC lands on the right local day.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(_tz)
        value = value.date()
    return value.strftime(DATE_KEY_FORMAT)


def parse_date_key(value: str) -> date:
    """
    Parse a "YYYY-MM-DD" key into a date.

    Raises:
        ValueError: if the text is not a valid calendar day
    """
    if not isinstance(value, str) or len(value.strip()) != 10:
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD")
    return datetime.strptime(value.strip(), DATE_KEY_FORMAT).date()


def as_date(value: Union[str, date, datetime]) -> date:
    """Accept a date key, a date or a datetime and return the local calendar day."""
    if isinstance(value, str):
        return parse_date_key(value)
    if isinstance(value, datetime):
        return parse_date_key(date_key(value))
    return value


def day_of_week(value: Union[date, datetime]) -> int:
    """
    Weekday with Sunday = 0 ... Saturday = 6.
    (python's weekday() starts at monday = 0)
    """
    return (as_date(value).weekday() + 1) % 7


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=days)


def get_week_bounds(value: Union[date, datetime]) -> tuple:
    """
    Monday and Friday of the week containing the given day.
    Returns: (start, end) dates
    """
    day = as_date(value)
    start = day - timedelta(days=day.weekday())
    return start, start + timedelta(days=4)


def date_range(start: date, end: date):
    """Yield every day from start to end inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.
    If datetime is naive, assumes it's in the campus timezone.
    """
    return to_local(dt).astimezone(timezone.utc)
