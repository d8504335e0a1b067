import logging
import sqlite3

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from campus_scheduler import db
from campus_scheduler.logging_config import setup_logging
from campus_scheduler.api.booking_counts import get_booking_counts
from campus_scheduler.api.eligible_dates import get_booking_calendar, get_eligible_dates, is_date_bookable
from campus_scheduler.api.rescheduler import get_unfinished_appointment_ids, reschedule_date, reschedule_manually
from campus_scheduler.api.slots import generate_time_slots, get_open_slots
from campus_scheduler.time_utils import date_key, parse_date_key, parse_time, today

setup_logging()
logger = logging.getLogger(__name__)

db.init_db()

# -------------------
# CONFIG / GLOBALS
# -------------------
app = FastAPI(title="Campus Clinic Scheduler")


async def read_payload(request: Request) -> dict:
    """Parse a JSON object body or fail with 400."""
    try:
        data = await request.json()
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Invalid JSON payload: {e}")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Empty or invalid payload")
    return data


def require_date(value, field: str = "date") -> str:
    if not value:
        raise HTTPException(status_code=400, detail=f"Missing {field}")
    try:
        return date_key(parse_date_key(value))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid {field}: {e}")


def require_flag(data: dict, field: str, default: bool) -> bool:
    value = data.get(field, default)
    if not isinstance(value, bool):
        raise HTTPException(status_code=400, detail=f"{field} must be true or false")
    return value


@app.exception_handler(db.AppointmentNotFoundError)
async def appointment_not_found_handler(request: Request, exc: db.AppointmentNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(sqlite3.Error)
async def storage_error_handler(request: Request, exc: sqlite3.Error):
    logger.error(f"Storage error on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


# -------------------
# SLOTS / CALENDAR
# -------------------
@app.get("/campuses/{campus_id}/slots")
async def slots_endpoint(campus_id: str, date: str, open_only: bool = False):
    """
    Time slots of one day, from the campus weekly template.
    open_only drops slots whose start time is already booked.
    """
    day = require_date(date)
    slots = get_open_slots(day, campus_id) if open_only else generate_time_slots(day, campus_id)
    return {"campus_id": campus_id, "date": day, "slots": slots}


@app.get("/campuses/{campus_id}/calendar")
async def calendar_endpoint(campus_id: str, start: str = None, days: int = None):
    start_day = require_date(start, "start") if start else date_key(today())
    return {"campus_id": campus_id, "days": get_booking_calendar(campus_id, start=start_day, days=days)}


@app.get("/booking-counts")
async def booking_counts_endpoint(start: str, end: str, campus_id: str = None):
    start_day = require_date(start, "start")
    end_day = require_date(end, "end")
    return {"start": start_day, "end": end_day, "counts": get_booking_counts(start_day, end_day, campus_id)}


@app.get("/campuses/{campus_id}/eligible-dates")
async def eligible_dates_endpoint(campus_id: str, anchor: str, horizon_days: int = None):
    anchor_day = require_date(anchor, "anchor")
    if horizon_days is not None and horizon_days < 1:
        raise HTTPException(status_code=400, detail="horizon_days must be at least 1")
    dates = get_eligible_dates(anchor_day, campus_id, horizon_days=horizon_days)
    return {"anchor": anchor_day, "dates": [date_key(d) for d in dates]}


# -------------------
# RESCHEDULING
# -------------------
@app.post("/campuses/{campus_id}/reschedule")
async def reschedule_endpoint(campus_id: str, request: Request):
    """
    Clear a day and spread its appointments over the following eligible days.
    Payload example:
    {
        "date": "2025-03-14",
        "appointment_ids": ["a1", "a2"]      # optional, defaults to the day's unfinished appointments
    }
    """
    data = await read_payload(request)
    anchor = require_date(data.get("date"))

    appointment_ids = data.get("appointment_ids")
    if appointment_ids is None:
        appointment_ids = get_unfinished_appointment_ids(anchor, campus_id)
    elif not isinstance(appointment_ids, list) or not all(isinstance(a, str) for a in appointment_ids):
        raise HTTPException(status_code=400, detail="appointment_ids must be a list of ids")

    if not appointment_ids:
        raise HTTPException(status_code=400, detail="No appointments to reschedule.")

    return reschedule_date(anchor, appointment_ids, campus_id)


@app.post("/campuses/{campus_id}/reschedule/manual")
async def manual_reschedule_endpoint(campus_id: str, request: Request):
    """
    Payload example:
    {
        "date": "2025-03-14",                          # optional, every unfinished appointment must be assigned
        "assignments": {"a1": "2025-03-17", "a2": "2025-03-18"}
    }
    """
    data = await read_payload(request)
    assignments = data.get("assignments")
    if not isinstance(assignments, dict) or not assignments:
        raise HTTPException(status_code=400, detail="Missing assignments")

    required_ids = None
    if data.get("date"):
        required_ids = get_unfinished_appointment_ids(require_date(data["date"]), campus_id)

    try:
        return reschedule_manually(assignments, required_ids=required_ids)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# -------------------
# APPOINTMENTS
# -------------------
@app.post("/appointments")
async def create_appointment_endpoint(request: Request):
    data = await read_payload(request)

    campus_id = data.get("campus_id")
    if not campus_id:
        raise HTTPException(status_code=400, detail="Missing campus_id")
    appointment_date = require_date(data.get("appointment_date"), "appointment_date")
    start_time, end_time = data.get("start_time"), data.get("end_time")
    if not start_time or not end_time:
        raise HTTPException(status_code=400, detail="Missing start_time or end_time")
    try:
        parse_time(start_time)
        parse_time(end_time)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not is_date_bookable(appointment_date, campus_id):
        raise HTTPException(status_code=409, detail=f"{appointment_date} is not available for booking")

    details = {k: data.get(k) for k in
               ("patient_id", "patient_name", "patient_email", "patient_phone", "appointment_type", "notes")}
    appointment = db.create_appointment(campus_id, appointment_date, start_time, end_time, **details)
    return JSONResponse(status_code=201, content=appointment)


@app.patch("/appointments/{appointment_id}/status")
async def appointment_status_endpoint(appointment_id: str, request: Request):
    data = await read_payload(request)
    status = data.get("status")
    if status not in db.APPOINTMENT_STATUSES:
        raise HTTPException(status_code=400, detail=f"status must be one of {', '.join(db.APPOINTMENT_STATUSES)}")
    db.update_appointment_status(appointment_id, status)
    return db.get_appointment(appointment_id)


# -------------------
# CAMPUS SETTINGS
# -------------------
@app.put("/campuses/{campus_id}/booking-settings")
async def booking_settings_endpoint(campus_id: str, request: Request):
    data = await read_payload(request)
    max_per_day = data.get("max_bookings_per_day")
    if not isinstance(max_per_day, int) or isinstance(max_per_day, bool) or max_per_day < 0:
        raise HTTPException(status_code=400, detail="max_bookings_per_day must be a non-negative integer")
    db.upsert_booking_setting(campus_id, max_per_day)
    return db.get_booking_setting(campus_id)


@app.put("/campuses/{campus_id}/schedule-config")
async def schedule_config_endpoint(campus_id: str, request: Request):
    data = await read_payload(request)
    holidays = data.get("holiday_dates", [])
    if not isinstance(holidays, list):
        raise HTTPException(status_code=400, detail="holiday_dates must be a list")
    holidays = [require_date(h, "holiday date") for h in holidays]

    db.upsert_schedule_config(
        campus_id,
        include_saturday=require_flag(data, "include_saturday", False),
        include_sunday=require_flag(data, "include_sunday", False),
        holiday_dates=holidays,
    )
    config = db.get_schedule_config(campus_id)
    config["holiday_dates"] = sorted(config["holiday_dates"])
    return config


@app.get("/campuses/{campus_id}/templates")
async def templates_endpoint(campus_id: str):
    return {"campus_id": campus_id, "templates": db.get_recurrence_templates(campus_id)}


@app.put("/campuses/{campus_id}/templates/{day_of_week}")
async def template_endpoint(campus_id: str, day_of_week: int, request: Request):
    """
    day_of_week: 0 = Sunday ... 6 = Saturday
    """
    if not 0 <= day_of_week <= 6:
        raise HTTPException(status_code=400, detail="day_of_week must be between 0 (Sunday) and 6 (Saturday)")
    data = await read_payload(request)

    start_time, end_time = data.get("start_time"), data.get("end_time")
    slot_duration = data.get("slot_duration")
    try:
        if parse_time(start_time) >= parse_time(end_time):
            raise ValueError("start_time must be before end_time")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not isinstance(slot_duration, int) or isinstance(slot_duration, bool) or slot_duration <= 0:
        raise HTTPException(status_code=400, detail="slot_duration must be a positive number of minutes")

    db.upsert_recurrence_template(campus_id, day_of_week, start_time, end_time, slot_duration,
                                  is_active=require_flag(data, "is_active", True))
    return {"campus_id": campus_id, "templates": db.get_recurrence_templates(campus_id)}


@app.put("/campuses/{campus_id}/day-overrides/{override_date}")
async def day_override_endpoint(campus_id: str, override_date: str, request: Request):
    day = require_date(override_date)
    data = await read_payload(request)
    # leaving max_bookings out keeps the campus capacity for that day
    max_bookings = data.get("max_bookings")
    if max_bookings is not None and (not isinstance(max_bookings, int) or isinstance(max_bookings, bool)
                                     or max_bookings < 0):
        raise HTTPException(status_code=400, detail="max_bookings must be a non-negative integer")
    is_closed = require_flag(data, "is_closed", False)

    db.upsert_day_override(campus_id, day, max_bookings=max_bookings,
                           is_closed=is_closed, notes=data.get("notes") or "")
    return db.get_day_overrides(campus_id, day, day)[day]


@app.delete("/campuses/{campus_id}/day-overrides/{override_date}")
async def delete_day_override_endpoint(campus_id: str, override_date: str):
    day = require_date(override_date)
    if not db.delete_day_override(campus_id, day):
        raise HTTPException(status_code=404, detail=f"No override for {day}")
    return {"status": f"Override for {day} removed"}
