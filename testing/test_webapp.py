# testing/test_webapp.py
"""
Endpoint tests for the scheduler API.
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from campus_scheduler import db
from campus_scheduler.time_utils import date_key, today
from campus_scheduler.webapp import app
from testing.mock_data import add_appointments, generate_mock_template

client = TestClient(app)


def next_weekday(days_ahead=1):
    """A future Monday-Friday date key at least days_ahead out."""
    day = today() + timedelta(days=days_ahead)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return date_key(day)


def test_slots_endpoint(clean_db):
    template = generate_mock_template()
    response = client.put(f"/campuses/main/templates/{template['day_of_week']}", json=template)
    assert response.status_code == 200

    response = client.get("/campuses/main/slots", params={"date": "2025-01-13"})
    assert response.status_code == 200
    slots = response.json()["slots"]
    assert len(slots) == 6
    assert slots[0]["start_time"] == "09:00"
    assert slots[-1]["end_time"] == "12:00"


def test_slots_endpoint_open_only(clean_db):
    db.upsert_recurrence_template("main", 1, "09:00", "10:00", 30)
    add_appointments("main", "2025-01-13", 1, start_time="09:00")

    response = client.get("/campuses/main/slots", params={"date": "2025-01-13", "open_only": "true"})
    assert [s["start_time"] for s in response.json()["slots"]] == ["09:30"]


def test_slots_endpoint_invalid_date(clean_db):
    response = client.get("/campuses/main/slots", params={"date": "13/01/2025"})
    assert response.status_code == 400


def test_template_endpoint_validation(clean_db):
    bad_window = generate_mock_template(start_time="12:00", end_time="09:00")
    assert client.put("/campuses/main/templates/1", json=bad_window).status_code == 400

    bad_duration = generate_mock_template(slot_duration=0)
    assert client.put("/campuses/main/templates/1", json=bad_duration).status_code == 400

    assert client.put("/campuses/main/templates/7", json=generate_mock_template()).status_code == 400


def test_booking_counts_endpoint(clean_db):
    add_appointments("main", "2025-01-13", 2)
    add_appointments("main", "2025-01-14", 1, status="cancelled")

    response = client.get("/booking-counts", params={"start": "2025-01-13", "end": "2025-01-14", "campus_id": "main"})
    assert response.status_code == 200
    assert response.json()["counts"] == {"2025-01-13": 2}


def test_eligible_dates_endpoint(clean_db):
    client.put("/campuses/main/schedule-config", json={"include_sunday": True, "holiday_dates": ["2025-01-20"]})

    response = client.get("/campuses/main/eligible-dates", params={"anchor": "2025-01-17", "horizon_days": 5})
    assert response.status_code == 200
    assert response.json()["dates"] == ["2025-01-19", "2025-01-21", "2025-01-22"]


def test_schedule_config_rejects_bad_holiday(clean_db):
    response = client.put("/campuses/main/schedule-config", json={"holiday_dates": ["Christmas"]})
    assert response.status_code == 400


def test_reschedule_endpoint_defaults_to_unfinished(clean_db):
    client.put("/campuses/main/booking-settings", json={"max_bookings_per_day": 1})
    ids = add_appointments("main", "2025-01-17", 2)
    add_appointments("main", "2025-01-17", 1, status="completed")

    response = client.post("/campuses/main/reschedule", json={"date": "2025-01-17"})
    assert response.status_code == 200
    data = response.json()
    assert data["requested"] == 2
    assert data["placements"] == [
        {"appointment_id": ids[0], "date": "2025-01-20"},
        {"appointment_id": ids[1], "date": "2025-01-21"},
    ]


def test_reschedule_endpoint_nothing_to_do(clean_db):
    response = client.post("/campuses/main/reschedule", json={"date": "2025-01-17"})
    assert response.status_code == 400


def test_reschedule_endpoint_invalid_payload(clean_db):
    assert client.post("/campuses/main/reschedule", json={}).status_code == 400
    assert client.post("/campuses/main/reschedule", json=["2025-01-17"]).status_code == 400
    response = client.post("/campuses/main/reschedule", json={"date": "2025-01-17", "appointment_ids": "a1"})
    assert response.status_code == 400


def test_reschedule_endpoint_unknown_appointment(clean_db):
    response = client.post("/campuses/main/reschedule", json={"date": "2025-01-17", "appointment_ids": ["nope"]})
    assert response.status_code == 404


def test_manual_reschedule_endpoint(clean_db):
    ids = add_appointments("main", "2025-01-17", 2)

    response = client.post("/campuses/main/reschedule/manual",
                           json={"date": "2025-01-17", "assignments": {ids[0]: "2025-01-22"}})
    assert response.status_code == 400, "every unfinished appointment needs a day"

    response = client.post("/campuses/main/reschedule/manual",
                           json={"date": "2025-01-17", "assignments": {ids[0]: "2025-01-22", ids[1]: "2025-01-23"}})
    assert response.status_code == 200
    assert db.get_appointment(ids[1])["appointment_date"] == "2025-01-23"


def test_create_appointment(clean_db):
    day = next_weekday()
    payload = {
        "campus_id": "main",
        "appointment_date": day,
        "start_time": "09:00",
        "end_time": "09:30",
        "patient_name": "Juan Dela Cruz",
        "appointment_type": "consultation",
    }
    response = client.post("/appointments", json=payload)
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "scheduled"
    assert data["appointment_date"] == day


def test_create_appointment_refuses_full_day(clean_db):
    day = next_weekday()
    client.put("/campuses/main/booking-settings", json={"max_bookings_per_day": 1})
    add_appointments("main", day, 1)

    payload = {"campus_id": "main", "appointment_date": day, "start_time": "10:00", "end_time": "10:30"}
    assert client.post("/appointments", json=payload).status_code == 409


def test_create_appointment_refuses_closed_day(clean_db):
    day = next_weekday()
    response = client.put(f"/campuses/main/day-overrides/{day}", json={"is_closed": True, "notes": "exams"})
    assert response.status_code == 200
    assert response.json()["is_closed"] is True

    payload = {"campus_id": "main", "appointment_date": day, "start_time": "10:00", "end_time": "10:30"}
    assert client.post("/appointments", json=payload).status_code == 409

    assert client.delete(f"/campuses/main/day-overrides/{day}").status_code == 200
    assert client.post("/appointments", json=payload).status_code == 201


@pytest.mark.parametrize("payload", [
    {},
    {"campus_id": "main"},
    {"campus_id": "main", "appointment_date": "2030-01-07", "start_time": "9am", "end_time": "10:00"},
])
def test_create_appointment_invalid_payload(clean_db, payload):
    assert client.post("/appointments", json=payload).status_code == 400


def test_status_endpoint(clean_db):
    appointment_id = add_appointments("main", "2025-01-13", 1)[0]

    response = client.patch(f"/appointments/{appointment_id}/status", json={"status": "completed"})
    assert response.status_code == 200
    assert response.json()["status"] == "completed"

    assert client.patch(f"/appointments/{appointment_id}/status", json={"status": "done"}).status_code == 400
    assert client.patch("/appointments/missing/status", json={"status": "completed"}).status_code == 404


def test_booking_settings_validation(clean_db):
    assert client.put("/campuses/main/booking-settings", json={"max_bookings_per_day": -1}).status_code == 400
    assert client.put("/campuses/main/booking-settings", json={"max_bookings_per_day": "ten"}).status_code == 400

    response = client.put("/campuses/main/booking-settings", json={"max_bookings_per_day": 10})
    assert response.json() == {"campus_id": "main", "max_bookings_per_day": 10}


def test_calendar_endpoint(clean_db):
    response = client.get("/campuses/main/calendar", params={"days": 14})
    assert response.status_code == 200
    days = response.json()["days"]
    assert len(days) == 14
    assert all(d["capacity"] == 50 for d in days)


def test_day_override_with_only_notes_keeps_campus_capacity(clean_db):
    client.put("/campuses/main/booking-settings", json={"max_bookings_per_day": 1})
    response = client.put("/campuses/main/day-overrides/2025-01-20", json={"notes": "staff meeting"})
    assert response.status_code == 200
    assert response.json()["max_bookings"] is None

    ids = add_appointments("main", "2025-01-17", 3)
    response = client.post("/campuses/main/reschedule",
                           json={"date": "2025-01-17", "appointment_ids": ids})
    assert response.status_code == 200
    assert db.count_bookings("2025-01-20", "2025-01-20", "main") == {"2025-01-20": 1}


@pytest.mark.parametrize("url, payload", [
    ("/campuses/main/schedule-config", {"include_saturday": "false"}),
    ("/campuses/main/schedule-config", {"include_sunday": 1}),
    ("/campuses/main/day-overrides/2025-01-20", {"is_closed": "false"}),
    ("/campuses/main/templates/1", {**generate_mock_template(), "is_active": "no"}),
])
def test_flags_must_be_booleans(clean_db, url, payload):
    assert client.put(url, json=payload).status_code == 400


def test_day_override_rejects_bad_max_bookings(clean_db):
    response = client.put("/campuses/main/day-overrides/2025-01-20", json={"max_bookings": "ten"})
    assert response.status_code == 400
