# campus_scheduler/db.py
#
# sqlite storage for the campus scheduler.
# Every function opens its own short-lived connection, so each write is its own unit of persistence.

import json
import logging
import sqlite3
import uuid

from config.settings import DB_PATH
from campus_scheduler.time_utils import now, to_utc

logger = logging.getLogger(__name__)

APPOINTMENT_STATUSES = ("scheduled", "completed", "cancelled", "no_show")


class AppointmentNotFoundError(LookupError):
    """Raised when a write targets an appointment id that does not exist."""

    def __init__(self, appointment_id):
        super().__init__(f"Appointment {appointment_id} not found")
        self.appointment_id = appointment_id


def _connect():
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def _timestamp():
    return to_utc(now()).isoformat()


def init_db():
    """
    Initialize the database and ensure all tables exist.
    Tables:
      - schedule_settings: weekly recurrence template, one row per (campus, day_of_week 0=Sun..6=Sat)
      - booking_settings: max bookings per day, one row per campus
      - schedule_config: weekend flags + holiday dates (JSON list of YYYY-MM-DD), one row per campus
      - day_overrides: per-date capacity / closed flag
      - appointments: bookings, appointment_date is YYYY-MM-DD and times are HH:MM
    """
    with _connect() as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schedule_settings (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                campus_id TEXT NOT NULL,
                day_of_week INTEGER NOT NULL CHECK (day_of_week BETWEEN 0 AND 6),
                start_time TEXT NOT NULL,
                end_time TEXT NOT NULL,
                slot_duration INTEGER NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                UNIQUE (campus_id, day_of_week)
            );

            CREATE TABLE IF NOT EXISTS booking_settings (
                campus_id TEXT PRIMARY KEY,
                max_bookings_per_day INTEGER NOT NULL,
                updated_at TEXT
            );

            CREATE TABLE IF NOT EXISTS schedule_config (
                campus_id TEXT PRIMARY KEY,
                include_saturday INTEGER NOT NULL DEFAULT 0,
                include_sunday INTEGER NOT NULL DEFAULT 0,
                holiday_dates TEXT NOT NULL DEFAULT '[]',
                updated_at TEXT
            );

            CREATE TABLE IF NOT EXISTS day_overrides (
                campus_id TEXT NOT NULL,
                override_date TEXT NOT NULL,
                max_bookings INTEGER,
                is_closed INTEGER NOT NULL DEFAULT 0,
                notes TEXT DEFAULT '',
                PRIMARY KEY (campus_id, override_date)
            );

            CREATE TABLE IF NOT EXISTS appointments (
                id TEXT PRIMARY KEY,
                campus_id TEXT NOT NULL,
                patient_id TEXT,
                patient_name TEXT,
                patient_email TEXT,
                patient_phone TEXT,
                appointment_type TEXT,
                appointment_date TEXT NOT NULL,
                start_time TEXT NOT NULL,
                end_time TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'scheduled'
                    CHECK (status IN ('scheduled', 'completed', 'cancelled', 'no_show')),
                notes TEXT,
                created_at TEXT,
                updated_at TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_appointments_campus_date
                ON appointments (campus_id, appointment_date);
        """)


def clear_all():
    """
    Remove every row from every table (testing only).
    """
    with _connect() as conn:
        for table in ("schedule_settings", "booking_settings", "schedule_config", "day_overrides", "appointments"):
            conn.execute(f"DELETE FROM {table}")
        conn.commit()


# -------------------
# RECURRENCE TEMPLATES
# -------------------
def upsert_recurrence_template(campus_id: str, day_of_week: int, start_time: str, end_time: str,
                               slot_duration: int, is_active: bool = True):
    with _connect() as conn:
        conn.execute("""
            INSERT INTO schedule_settings (campus_id, day_of_week, start_time, end_time, slot_duration, is_active)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (campus_id, day_of_week) DO UPDATE SET
                start_time = excluded.start_time,
                end_time = excluded.end_time,
                slot_duration = excluded.slot_duration,
                is_active = excluded.is_active
        """, (campus_id, day_of_week, start_time, end_time, slot_duration, int(is_active)))
        conn.commit()


def get_recurrence_template(campus_id: str, day_of_week: int):
    """
    Fetch the active template for a campus and weekday.
    Returns: dict {campus_id, day_of_week, start_time, end_time, slot_duration, is_active} or None
    """
    with _connect() as conn:
        row = conn.execute("""
            SELECT campus_id, day_of_week, start_time, end_time, slot_duration, is_active
            FROM schedule_settings
            WHERE campus_id = ? AND day_of_week = ? AND is_active = 1
        """, (campus_id, day_of_week)).fetchone()
    if row is None:
        return None
    template = dict(row)
    template["is_active"] = bool(template["is_active"])
    return template


def get_recurrence_templates(campus_id: str):
    """All templates (active or not) for a campus ordered by day_of_week."""
    with _connect() as conn:
        rows = conn.execute("""
            SELECT campus_id, day_of_week, start_time, end_time, slot_duration, is_active
            FROM schedule_settings WHERE campus_id = ? ORDER BY day_of_week
        """, (campus_id,)).fetchall()
    return [{**dict(row), "is_active": bool(row["is_active"])} for row in rows]


# -------------------
# BOOKING SETTINGS
# -------------------
def upsert_booking_setting(campus_id: str, max_bookings_per_day: int):
    with _connect() as conn:
        conn.execute("""
            INSERT INTO booking_settings (campus_id, max_bookings_per_day, updated_at) VALUES (?, ?, ?)
            ON CONFLICT (campus_id) DO UPDATE SET
                max_bookings_per_day = excluded.max_bookings_per_day,
                updated_at = excluded.updated_at
        """, (campus_id, max_bookings_per_day, _timestamp()))
        conn.commit()


def get_booking_setting(campus_id: str):
    """
    Returns: dict {campus_id, max_bookings_per_day} or None
    """
    with _connect() as conn:
        row = conn.execute(
            "SELECT campus_id, max_bookings_per_day FROM booking_settings WHERE campus_id = ?",
            (campus_id,),
        ).fetchone()
    return dict(row) if row else None


# -------------------
# SCHEDULE CONFIG
# -------------------
def upsert_schedule_config(campus_id: str, include_saturday: bool = False, include_sunday: bool = False,
                           holiday_dates=None):
    holidays = sorted(set(holiday_dates or []))
    with _connect() as conn:
        conn.execute("""
            INSERT INTO schedule_config (campus_id, include_saturday, include_sunday, holiday_dates, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (campus_id) DO UPDATE SET
                include_saturday = excluded.include_saturday,
                include_sunday = excluded.include_sunday,
                holiday_dates = excluded.holiday_dates,
                updated_at = excluded.updated_at
        """, (campus_id, int(include_saturday), int(include_sunday), json.dumps(holidays), _timestamp()))
        conn.commit()


def get_schedule_config(campus_id: str):
    """
    Returns: dict {campus_id, include_saturday, include_sunday, holiday_dates (set of YYYY-MM-DD)} or None
    """
    with _connect() as conn:
        row = conn.execute("""
            SELECT campus_id, include_saturday, include_sunday, holiday_dates
            FROM schedule_config WHERE campus_id = ?
        """, (campus_id,)).fetchone()
    if row is None:
        return None
    return {
        "campus_id": row["campus_id"],
        "include_saturday": bool(row["include_saturday"]),
        "include_sunday": bool(row["include_sunday"]),
        "holiday_dates": set(json.loads(row["holiday_dates"] or "[]")),
    }


# -------------------
# DAY OVERRIDES
# -------------------
def upsert_day_override(campus_id: str, override_date: str, max_bookings: int = None,
                        is_closed: bool = False, notes: str = ""):
    with _connect() as conn:
        conn.execute("""
            INSERT INTO day_overrides (campus_id, override_date, max_bookings, is_closed, notes)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (campus_id, override_date) DO UPDATE SET
                max_bookings = excluded.max_bookings,
                is_closed = excluded.is_closed,
                notes = excluded.notes
        """, (campus_id, override_date, max_bookings, int(is_closed), notes))
        conn.commit()


def delete_day_override(campus_id: str, override_date: str) -> int:
    with _connect() as conn:
        cursor = conn.execute(
            "DELETE FROM day_overrides WHERE campus_id = ? AND override_date = ?",
            (campus_id, override_date),
        )
        conn.commit()
        return cursor.rowcount


def get_day_overrides(campus_id: str, start_date: str, end_date: str):
    """
    Overrides for a campus between start_date and end_date (inclusive).
    Returns: dict {YYYY-MM-DD: {max_bookings, is_closed, notes}}
    """
    with _connect() as conn:
        rows = conn.execute("""
            SELECT override_date, max_bookings, is_closed, notes
            FROM day_overrides
            WHERE campus_id = ? AND override_date BETWEEN ? AND ?
        """, (campus_id, start_date, end_date)).fetchall()
    return {
        row["override_date"]: {
            "max_bookings": row["max_bookings"],
            "is_closed": bool(row["is_closed"]),
            "notes": row["notes"] or "",
        }
        for row in rows
    }


# -------------------
# APPOINTMENTS
# -------------------
def create_appointment(campus_id: str, appointment_date: str, start_time: str, end_time: str,
                       status: str = "scheduled", **details):
    """
    Insert an appointment.
    details may carry patient_id, patient_name, patient_email, patient_phone, appointment_type, notes.
    Returns: the stored appointment dict
    """
    if status not in APPOINTMENT_STATUSES:
        raise ValueError(f"Unknown appointment status {status!r}")

    appointment_id = details.pop("id", None) or uuid.uuid4().hex
    stamp = _timestamp()
    with _connect() as conn:
        conn.execute("""
            INSERT INTO appointments (id, campus_id, patient_id, patient_name, patient_email, patient_phone,
                                      appointment_type, appointment_date, start_time, end_time, status,
                                      notes, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            appointment_id, campus_id,
            details.get("patient_id"), details.get("patient_name"),
            details.get("patient_email"), details.get("patient_phone"),
            details.get("appointment_type"),
            appointment_date, start_time, end_time, status,
            details.get("notes"), stamp, stamp,
        ))
        conn.commit()
    return get_appointment(appointment_id)


def get_appointment(appointment_id: str):
    with _connect() as conn:
        row = conn.execute("SELECT * FROM appointments WHERE id = ?", (appointment_id,)).fetchone()
    return dict(row) if row else None


def get_appointments(campus_id: str = None, appointment_date: str = None, status: str = None):
    """
    Fetch appointments, optionally filtered, ordered by date then start time.
    """
    query = "SELECT * FROM appointments WHERE 1 = 1"
    params = []
    if campus_id:
        query += " AND campus_id = ?"
        params.append(campus_id)
    if appointment_date:
        query += " AND appointment_date = ?"
        params.append(appointment_date)
    if status:
        query += " AND status = ?"
        params.append(status)
    query += " ORDER BY appointment_date, start_time, rowid"

    with _connect() as conn:
        return [dict(row) for row in conn.execute(query, params).fetchall()]


def count_bookings(start_date: str, end_date: str, campus_id: str = None):
    """
    Count non-cancelled appointments per day between start_date and end_date (inclusive).
    Omitting campus_id counts across every campus.
    Returns: dict {YYYY-MM-DD: count}, days without bookings are absent
    """
    query = """
        SELECT appointment_date, COUNT(*) AS total
        FROM appointments
        WHERE status != 'cancelled' AND appointment_date BETWEEN ? AND ?
    """
    params = [start_date, end_date]
    if campus_id:
        query += " AND campus_id = ?"
        params.append(campus_id)
    query += " GROUP BY appointment_date"

    with _connect() as conn:
        return {row["appointment_date"]: row["total"] for row in conn.execute(query, params).fetchall()}


def count_bookings_on_dates(dates, campus_id: str):
    """
    Same as count_bookings but for an explicit set of YYYY-MM-DD days at one campus.
    """
    dates = list(dates)
    if not dates:
        return {}

    placeholders = ", ".join("?" for _ in dates)
    with _connect() as conn:
        rows = conn.execute(f"""
            SELECT appointment_date, COUNT(*) AS total
            FROM appointments
            WHERE status != 'cancelled' AND campus_id = ? AND appointment_date IN ({placeholders})
            GROUP BY appointment_date
        """, [campus_id, *dates]).fetchall()
    return {row["appointment_date"]: row["total"] for row in rows}


def update_appointment_schedule(appointment_id: str, appointment_date: str, status: str = "scheduled"):
    """
    Move one appointment to a new day and reset its status.
    Raises:
        AppointmentNotFoundError: no appointment has that id
        sqlite3.Error: storage failure
    """
    if status not in APPOINTMENT_STATUSES:
        raise ValueError(f"Unknown appointment status {status!r}")

    with _connect() as conn:
        cursor = conn.execute(
            "UPDATE appointments SET appointment_date = ?, status = ?, updated_at = ? WHERE id = ?",
            (appointment_date, status, _timestamp(), appointment_id),
        )
        conn.commit()
        if cursor.rowcount == 0:
            raise AppointmentNotFoundError(appointment_id)


def update_appointment_status(appointment_id: str, status: str):
    if status not in APPOINTMENT_STATUSES:
        raise ValueError(f"Unknown appointment status {status!r}")

    with _connect() as conn:
        cursor = conn.execute(
            "UPDATE appointments SET status = ?, updated_at = ? WHERE id = ?",
            (status, _timestamp(), appointment_id),
        )
        conn.commit()
        if cursor.rowcount == 0:
            raise AppointmentNotFoundError(appointment_id)
    logger.info(f"Appointment {appointment_id} marked {status}")
