# campus_scheduler/api/slots.py
#
# Turns the weekly recurrence template into concrete time slots for one day:
# - looks up the active template for the day's weekday
# - walks from start_time in slot_duration steps while the slot START is before end_time
# - the last slot may run past end_time when the duration does not divide the window

import logging

from campus_scheduler.db import get_recurrence_template, get_appointments
from campus_scheduler.time_utils import as_date, date_key, day_of_week, parse_time, format_minutes

logger = logging.getLogger(__name__)


def build_slots(template: dict, day) -> list:
    """
    Build the slots of one day from a template.
    Args:
        template (dict): {start_time, end_time, slot_duration} with HH:MM times
        day: date, datetime or YYYY-MM-DD
    Returns:
        list[dict]: {date, start_time, end_time, is_available} in start order
    """
    duration = int(template["slot_duration"])
    if duration <= 0:
        raise ValueError(f"slot_duration must be positive, got {duration}")

    current = parse_time(template["start_time"])
    end = parse_time(template["end_time"])
    key = date_key(as_date(day))

    slots = []
    while current < end:
        slots.append({
            "date": key,
            "start_time": format_minutes(current),
            "end_time": format_minutes(current + duration),
            # not cross-checked against bookings, see get_open_slots
            "is_available": True,
        })
        current += duration
    return slots


def generate_time_slots(day, campus_id: str) -> list:
    """
    Slots for a campus on a given day.
    Returns an empty list when the weekday has no active template.
    """
    day = as_date(day)
    template = get_recurrence_template(campus_id, day_of_week(day))
    if not template:
        logger.debug(f"No active template for campus {campus_id} on {date_key(day)}")
        return []
    return build_slots(template, day)


def filter_booked_slots(slots: list, booked_start_times) -> list:
    """
    Drop slots whose start time is already taken.
    """
    taken = {format_minutes(parse_time(t)) for t in booked_start_times}
    return [slot for slot in slots if slot["start_time"] not in taken]


def get_open_slots(day, campus_id: str) -> list:
    """
    Slots for a day minus those already held by a non-cancelled appointment.
    Used by the booking flow; generate_time_slots itself never consults bookings.
    """
    day = as_date(day)
    slots = generate_time_slots(day, campus_id)
    if not slots:
        return []

    booked = [
        appointment["start_time"]
        for appointment in get_appointments(campus_id=campus_id, appointment_date=date_key(day))
        if appointment["status"] != "cancelled"
    ]
    return filter_booked_slots(slots, booked)
