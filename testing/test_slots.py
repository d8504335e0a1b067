# testing/test_slots.py
"""
Tests for slot generation from the weekly template.
"""

import math
from datetime import date

import pytest

from campus_scheduler import db
from campus_scheduler.api.slots import build_slots, filter_booked_slots, generate_time_slots, get_open_slots
from testing.mock_data import add_appointments

MONDAY = date(2025, 1, 13)
TUESDAY = date(2025, 1, 14)


def test_monday_template_yields_six_half_hour_slots(clean_db):
    """Mon 09:00-12:00 in 30 minute slots -> 09:00-09:30 ... 11:30-12:00"""
    db.upsert_recurrence_template("main", 1, "09:00", "12:00", 30)

    slots = generate_time_slots(MONDAY, "main")

    assert len(slots) == 6
    assert [(s["start_time"], s["end_time"]) for s in slots] == [
        ("09:00", "09:30"), ("09:30", "10:00"), ("10:00", "10:30"),
        ("10:30", "11:00"), ("11:00", "11:30"), ("11:30", "12:00"),
    ]
    assert all(s["date"] == "2025-01-13" for s in slots)
    assert all(s["is_available"] for s in slots)


def test_no_template_means_no_slots(clean_db):
    db.upsert_recurrence_template("main", 1, "09:00", "12:00", 30)
    assert generate_time_slots(TUESDAY, "main") == []
    assert generate_time_slots(MONDAY, "other-campus") == []


def test_inactive_template_means_no_slots(clean_db):
    db.upsert_recurrence_template("main", 1, "09:00", "12:00", 30, is_active=False)
    assert generate_time_slots(MONDAY, "main") == []


def test_last_slot_may_run_past_closing_time():
    """A 45 minute duration does not divide 09:00-10:00, the second slot ends at 10:30."""
    slots = build_slots({"start_time": "09:00", "end_time": "10:00", "slot_duration": 45}, MONDAY)
    assert [(s["start_time"], s["end_time"]) for s in slots] == [("09:00", "09:45"), ("09:45", "10:30")]


@pytest.mark.parametrize("start,end,duration", [
    ("08:00", "17:00", 30),
    ("08:00", "17:00", 45),
    ("13:00", "13:20", 60),
    ("07:15", "11:50", 25),
])
def test_slot_count_is_ceiling_of_window_over_duration(start, end, duration):
    slots = build_slots({"start_time": start, "end_time": end, "slot_duration": duration}, MONDAY)
    window = (int(end[:2]) * 60 + int(end[3:])) - (int(start[:2]) * 60 + int(start[3:]))

    assert len(slots) == math.ceil(window / duration)
    for slot in slots:
        slot_start = int(slot["start_time"][:2]) * 60 + int(slot["start_time"][3:])
        slot_end = int(slot["end_time"][:2]) * 60 + int(slot["end_time"][3:])
        assert slot_end - slot_start == duration


def test_empty_window_yields_nothing():
    assert build_slots({"start_time": "12:00", "end_time": "12:00", "slot_duration": 30}, MONDAY) == []


def test_non_positive_duration_is_rejected():
    with pytest.raises(ValueError):
        build_slots({"start_time": "09:00", "end_time": "12:00", "slot_duration": 0}, MONDAY)


def test_slots_are_not_marked_unavailable_by_bookings(clean_db):
    db.upsert_recurrence_template("main", 1, "09:00", "10:00", 30)
    add_appointments("main", "2025-01-13", 3, start_time="09:00")

    assert all(s["is_available"] for s in generate_time_slots(MONDAY, "main"))


def test_filter_booked_slots():
    slots = build_slots({"start_time": "09:00", "end_time": "10:30", "slot_duration": 30}, MONDAY)
    remaining = filter_booked_slots(slots, ["09:30:00", "10:00"])
    assert [s["start_time"] for s in remaining] == ["09:00"]


def test_open_slots_skip_booked_but_not_cancelled(clean_db):
    db.upsert_recurrence_template("main", 1, "09:00", "10:30", 30)
    add_appointments("main", "2025-01-13", 1, start_time="09:00")
    add_appointments("main", "2025-01-13", 1, start_time="09:30", status="cancelled")

    open_slots = get_open_slots(MONDAY, "main")
    assert [s["start_time"] for s in open_slots] == ["09:30", "10:00"]
