# config/settings.py
#
#   loading environment variables such as the database path and scheduling defaults from .env

import os
from dotenv import load_dotenv

load_dotenv()  # loads .env into environment


# storage
DB_PATH = os.getenv("SCHEDULER_DB_PATH", "campus_scheduler.db")

# local day boundaries are taken in this timezone (campus clinics are in Cagayan de Oro)
APP_TIMEZONE = os.getenv("APP_TIMEZONE", "Asia/Manila")

# scheduling defaults
DEFAULT_MAX_BOOKINGS_PER_DAY = int(os.getenv("DEFAULT_MAX_BOOKINGS_PER_DAY", "50"))
RESCHEDULE_HORIZON_DAYS = int(os.getenv("RESCHEDULE_HORIZON_DAYS", "90"))
BOOKING_WINDOW_DAYS = int(os.getenv("BOOKING_WINDOW_DAYS", "60"))

# checks
if DEFAULT_MAX_BOOKINGS_PER_DAY < 0:
    raise RuntimeError("DEFAULT_MAX_BOOKINGS_PER_DAY must not be negative!")
if RESCHEDULE_HORIZON_DAYS < 1:
    raise RuntimeError("RESCHEDULE_HORIZON_DAYS must be at least 1!")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
