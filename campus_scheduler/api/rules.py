# campus_scheduler/api/rules.py
#
# Scheduling defaults collected in one value so callers (and tests) can swap them out.

from dataclasses import dataclass

from config.settings import DEFAULT_MAX_BOOKINGS_PER_DAY, RESCHEDULE_HORIZON_DAYS, BOOKING_WINDOW_DAYS


@dataclass(frozen=True)
class SchedulingRules:
    """
    default_max_bookings_per_day: capacity used when a campus has no booking setting
    horizon_days: how many days past the anchor the rebooking search looks
    booking_window_days: how far ahead the booking calendar opens
    include_saturday / include_sunday: weekend flags used when a campus has no schedule config
    """
    default_max_bookings_per_day: int = DEFAULT_MAX_BOOKINGS_PER_DAY
    horizon_days: int = RESCHEDULE_HORIZON_DAYS
    booking_window_days: int = BOOKING_WINDOW_DAYS
    include_saturday: bool = False
    include_sunday: bool = False

    def default_schedule_config(self, campus_id: str = None) -> dict:
        return {
            "campus_id": campus_id,
            "include_saturday": self.include_saturday,
            "include_sunday": self.include_sunday,
            "holiday_dates": set(),
        }


DEFAULT_RULES = SchedulingRules()
