# campus_scheduler/api/booking_counts.py
#
# Day-level saturation:
# - counts non-cancelled appointments per day
# - resolves how many bookings a day may hold (campus setting, day overrides)

import logging

from campus_scheduler import db
from campus_scheduler.api.rules import DEFAULT_RULES
from campus_scheduler.time_utils import as_date, date_key

logger = logging.getLogger(__name__)


def get_booking_counts(start, end, campus_id: str = None) -> dict:
    """
    Booked (non-cancelled) appointments per day over an inclusive range.
    Args:
        start, end: date, datetime or YYYY-MM-DD
        campus_id (str): optional, omit to count every campus
    Returns:
        dict: {YYYY-MM-DD: count}
    """
    start_key = date_key(as_date(start))
    end_key = date_key(as_date(end))
    if start_key > end_key:
        return {}
    return db.count_bookings(start_key, end_key, campus_id)


def get_counts_for_dates(dates, campus_id: str) -> dict:
    """
    Counts for an explicit list of days at one campus, every day present (0 when empty).
    """
    keys = [date_key(as_date(d)) for d in dates]
    counts = db.count_bookings_on_dates(keys, campus_id)
    return {key: counts.get(key, 0) for key in keys}


def get_max_bookings_per_day(campus_id: str, rules=DEFAULT_RULES) -> int:
    """
    Campus capacity, falling back to the default when no setting exists.
    """
    setting = db.get_booking_setting(campus_id)
    if setting is None or setting.get("max_bookings_per_day") is None:
        return rules.default_max_bookings_per_day
    return setting["max_bookings_per_day"]


def capacity_for_date(key: str, max_per_day: int, overrides: dict) -> int:
    """
    Effective capacity of one day.
    A closed day holds nothing, an override with max_bookings replaces the campus capacity.
    """
    override = overrides.get(key)
    if override is None:
        return max_per_day
    if override["is_closed"]:
        return 0
    if override["max_bookings"] is None:
        return max_per_day
    return override["max_bookings"]


def get_capacities(dates, campus_id: str, max_per_day: int) -> dict:
    """
    Effective capacity for every day in dates.
    Returns: dict {YYYY-MM-DD: capacity}
    """
    keys = [date_key(as_date(d)) for d in dates]
    if not keys:
        return {}
    overrides = db.get_day_overrides(campus_id, min(keys), max(keys))
    return {key: capacity_for_date(key, max_per_day, overrides) for key in keys}
