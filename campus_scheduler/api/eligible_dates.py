# campus_scheduler/api/eligible_dates.py
#
# Which future days an appointment may be moved (or booked) onto:
# - weekends only when the campus opts in (include_saturday / include_sunday)
# - never a holiday
# - never the day being cleared

import logging

from campus_scheduler import db
from campus_scheduler.api.booking_counts import get_booking_counts, get_capacities, get_max_bookings_per_day
from campus_scheduler.api.rules import DEFAULT_RULES
from campus_scheduler.time_utils import (
    SATURDAY, SUNDAY, add_days, as_date, date_key, date_range, day_of_week, today,
)

logger = logging.getLogger(__name__)


def get_schedule_config(campus_id: str, rules=DEFAULT_RULES) -> dict:
    """
    Campus schedule config, or the defaults (weekends excluded, no holidays) when none is stored.
    """
    config = db.get_schedule_config(campus_id)
    if config is None:
        return rules.default_schedule_config(campus_id)
    return config


def is_open_day(day, config: dict) -> bool:
    """
    Return True if the weekend flags and holiday list allow the day.
    holiday_dates may hold date objects or YYYY-MM-DD strings.
    """
    weekday = day_of_week(day)
    if weekday == SUNDAY and not config.get("include_sunday"):
        return False
    if weekday == SATURDAY and not config.get("include_saturday"):
        return False
    holidays = {date_key(as_date(h)) for h in config.get("holiday_dates", ())}
    return date_key(as_date(day)) not in holidays


def enumerate_eligible_dates(anchor, config: dict, horizon_days: int) -> list:
    """
    Candidate days after anchor, in increasing order.
    Args:
        anchor: the day being cleared (date, datetime or YYYY-MM-DD)
        config (dict): {include_saturday, include_sunday, holiday_dates}, holidays as dates or YYYY-MM-DD
        horizon_days (int): how many days past the anchor to look at
    Returns:
        list[date]
    """
    anchor = as_date(anchor)
    eligible = []
    for offset in range(1, horizon_days + 1):
        candidate = add_days(anchor, offset)
        if candidate == anchor:
            continue
        if is_open_day(candidate, config):
            eligible.append(candidate)
    return eligible


def get_eligible_dates(anchor, campus_id: str, horizon_days: int = None, rules=DEFAULT_RULES) -> list:
    """
    Rebooking targets for a campus, anchored at the day being cleared.
    """
    if horizon_days is None:
        horizon_days = rules.horizon_days
    config = get_schedule_config(campus_id, rules)
    return enumerate_eligible_dates(anchor, config, horizon_days)


def get_booking_calendar(campus_id: str, start=None, days: int = None, rules=DEFAULT_RULES) -> list:
    """
    Day-by-day view for the booking calendar.
    Returns:
        list[dict]: {date, booked, capacity, is_open, is_bookable}
    """
    start = as_date(start) if start is not None else today()
    if days is None:
        days = rules.booking_window_days
    if days <= 0:
        return []
    end = add_days(start, days - 1)

    config = get_schedule_config(campus_id, rules)
    max_per_day = get_max_bookings_per_day(campus_id, rules)
    counts = get_booking_counts(start, end, campus_id)
    all_days = list(date_range(start, end))
    capacities = get_capacities(all_days, campus_id, max_per_day)
    first_bookable = today()

    calendar = []
    for day in all_days:
        key = date_key(day)
        booked = counts.get(key, 0)
        is_open = is_open_day(day, config)
        calendar.append({
            "date": key,
            "booked": booked,
            "capacity": capacities[key],
            "is_open": is_open,
            "is_bookable": is_open and day >= first_bookable and booked < capacities[key],
        })
    return calendar


def is_date_bookable(day, campus_id: str, rules=DEFAULT_RULES) -> bool:
    """
    A new appointment may go on a day that is not past, is open, and still has room.
    """
    day = as_date(day)
    entry = get_booking_calendar(campus_id, start=day, days=1, rules=rules)[0]
    return entry["is_bookable"]
