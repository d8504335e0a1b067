# campus_scheduler/api/rescheduler.py
#
# Handles rebooking when a clinic day has to be cleared:
# 1. Finds the eligible days after the cleared day (weekend flags, holidays)
# 2. Reads how full each of those days already is
# 3. Walks one forward-only cursor through those days, filling each up to capacity
#    before moving on, and moves every displaced appointment onto the cursor's day
#
# Each move is written on its own. A failed write stops the batch; moves already
# written stay written, so re-running needs fresh inputs.

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from campus_scheduler import db
from campus_scheduler.api.booking_counts import get_capacities, get_counts_for_dates, get_max_bookings_per_day
from campus_scheduler.api.eligible_dates import get_eligible_dates
from campus_scheduler.api.rules import DEFAULT_RULES
from campus_scheduler.time_utils import as_date, date_key, parse_date_key

logger = logging.getLogger(__name__)

UNFINISHED_EXCLUDED_STATUSES = ("completed", "cancelled")


@dataclass(frozen=True)
class AllocationCursor:
    """Position in the eligible day list, shared by the whole batch and never moved back."""
    index: int = 0

    def current(self, dates: Sequence[str]) -> Optional[str]:
        if self.index >= len(dates):
            return None
        return dates[self.index]


@dataclass
class RebookingPlan:
    placements: List[tuple] = field(default_factory=list)  # (appointment_id, YYYY-MM-DD)
    unplaced: List[str] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=dict)
    cursor: AllocationCursor = AllocationCursor()


def seek_open_date(cursor: AllocationCursor, dates: Sequence[str], counts: Dict[str, int],
                   capacities: Dict[str, int]) -> AllocationCursor:
    """
    Advance the cursor past every day that is already at (or over) capacity.
    Returns the cursor unchanged when its day still has room.
    """
    index = cursor.index
    while index < len(dates) and counts.get(dates[index], 0) >= capacities[dates[index]]:
        index += 1
    return cursor if index == cursor.index else AllocationCursor(index)


def place_one(plan: RebookingPlan, appointment_id: str, dates: Sequence[str],
              capacities: Dict[str, int]) -> RebookingPlan:
    """
    One step of the first-fit walk.
    Places appointment_id on the first day with room at or after the cursor.
    The cursor stays on that day so the next appointment can fill it too.
    Once the cursor has run off the end the appointment is recorded as unplaced.

    The plan is updated in place and returned; plan_rebooking hands it a
    private copy of the counts so the caller's dict is never touched.
    """
    cursor = seek_open_date(plan.cursor, dates, plan.counts, capacities)
    plan.cursor = cursor

    target = cursor.current(dates)
    if target is None:
        plan.unplaced.append(appointment_id)
        return plan

    plan.placements.append((appointment_id, target))
    plan.counts[target] = plan.counts.get(target, 0) + 1
    return plan


def plan_rebooking(appointment_ids: Sequence[str], dates: Sequence[str], counts: Dict[str, int],
                   capacities: Dict[str, int]) -> RebookingPlan:
    """
    Assign each appointment, in the given order, to the earliest day with spare capacity.

    Args:
        appointment_ids: displaced appointments, already in priority order
        dates: eligible YYYY-MM-DD days in increasing order
        counts: current bookings per day (missing days count as 0), not modified
        capacities: effective capacity per day
    Returns:
        RebookingPlan: placements in input order (their days never decrease) and the
        ids left over once the eligible days ran out
    """
    plan = RebookingPlan(counts=dict(counts))
    for appointment_id in appointment_ids:
        plan = place_one(plan, appointment_id, dates, capacities)
    return plan


def apply_rebooking_plan(plan: RebookingPlan, status: str = "scheduled") -> int:
    """
    Write every placement, in order.
    Stops at the first failure and re-raises it, earlier writes are kept.
    Returns: number of appointments written
    """
    written = 0
    for appointment_id, target in plan.placements:
        try:
            db.update_appointment_schedule(appointment_id, target, status)
        except Exception as e:
            logger.error(
                f"Rebooking stopped at {appointment_id} -> {target} after {written} "
                f"of {len(plan.placements)} writes: {e}"
            )
            raise
        written += 1
        logger.debug(f"Moved appointment {appointment_id} to {target}")
    return written


def reschedule_date(anchor, appointment_ids: Sequence[str], campus_id: str, rules=DEFAULT_RULES) -> dict:
    """
    Move displaced appointments off the anchor day onto the next days with room.

    Args:
        anchor: day being cleared (date, datetime or YYYY-MM-DD)
        appointment_ids (list): ids in the order they should be rebooked
        campus_id (str): campus whose capacity and calendar apply
        rules (SchedulingRules): capacity default and search horizon
    Returns:
        dict: {
            'anchor_date': str,
            'campus_id': str,
            'requested': int,
            'placed': int,
            'unplaced': int,
            'placements': list of {'appointment_id', 'date'},
            'unplaced_ids': list
        }
    Raises:
        AppointmentNotFoundError / sqlite3.Error: a write failed, the batch stopped there
    """
    anchor_key = date_key(as_date(anchor))
    appointment_ids = list(appointment_ids)

    max_per_day = get_max_bookings_per_day(campus_id, rules)
    dates = [date_key(d) for d in get_eligible_dates(anchor_key, campus_id, rules=rules)]
    counts = get_counts_for_dates(dates, campus_id)
    capacities = get_capacities(dates, campus_id, max_per_day)

    plan = plan_rebooking(appointment_ids, dates, counts, capacities)
    apply_rebooking_plan(plan)

    if plan.unplaced:
        logger.warning(
            f"Campus {campus_id}: no capacity left in the {len(dates)} eligible days after {anchor_key}, "
            f"{len(plan.unplaced)} appointment(s) left on their original date"
        )
    logger.info(
        f"Campus {campus_id}: rebooked {len(plan.placements)}/{len(appointment_ids)} "
        f"appointment(s) from {anchor_key}"
    )

    return {
        "anchor_date": anchor_key,
        "campus_id": campus_id,
        "requested": len(appointment_ids),
        "placed": len(plan.placements),
        "unplaced": len(plan.unplaced),
        "placements": [{"appointment_id": a, "date": d} for a, d in plan.placements],
        "unplaced_ids": list(plan.unplaced),
    }


def get_unfinished_appointment_ids(anchor, campus_id: str) -> list:
    """
    Appointments on the anchor day that still need a slot (not completed, not cancelled),
    in start time order.
    """
    anchor_key = date_key(as_date(anchor))
    return [
        appointment["id"]
        for appointment in db.get_appointments(campus_id=campus_id, appointment_date=anchor_key)
        if appointment["status"] not in UNFINISHED_EXCLUDED_STATUSES
    ]


def reschedule_manually(assignments: Dict[str, str], required_ids: Sequence[str] = None) -> dict:
    """
    Move appointments onto days picked by hand.
    Capacity is not checked here, the person picking the days is trusted.

    Args:
        assignments (dict): {appointment_id: YYYY-MM-DD}
        required_ids (list): ids that must all have a day, checked before anything is written
    Returns:
        dict: {'placed': int, 'placements': list of {'appointment_id', 'date'}}
    """
    if required_ids is not None:
        missing = [a for a in required_ids if not assignments.get(a)]
        if missing:
            raise ValueError(f"Please select a date for all {len(missing)} uncompleted appointment(s)")

    # validate every date first so a typo doesn't leave the batch half written
    targets = [(appointment_id, date_key(parse_date_key(target))) for appointment_id, target in assignments.items()]

    plan = RebookingPlan(placements=targets)
    apply_rebooking_plan(plan)
    logger.info(f"Manually rebooked {len(targets)} appointment(s)")
    return {
        "placed": len(targets),
        "placements": [{"appointment_id": a, "date": d} for a, d in targets],
    }
