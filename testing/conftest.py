# testing/conftest.py
import os

import pytest

# Set environment before anything imports config.settings
os.environ.setdefault("SCHEDULER_DB_PATH", "test_campus_scheduler.db")
os.environ["APP_TIMEZONE"] = "Asia/Manila"
os.environ["DEFAULT_MAX_BOOKINGS_PER_DAY"] = "50"
os.environ["RESCHEDULE_HORIZON_DAYS"] = "90"
os.environ["BOOKING_WINDOW_DAYS"] = "60"
os.environ.setdefault("LOG_LEVEL", "WARNING")

from campus_scheduler import db


@pytest.fixture
def clean_db(tmp_path, monkeypatch):
    """Point storage at a fresh sqlite file for the duration of a test."""
    monkeypatch.setattr(db, "DB_PATH", str(tmp_path / "scheduler.db"))
    db.init_db()
    yield
    db.clear_all()

