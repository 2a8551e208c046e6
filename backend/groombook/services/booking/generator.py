# backend/groombook/services/booking/generator.py
"""
Candidate start times for a service on one day.

A start time t is produced when:
✓ t >= open
✓ t + duration + buffer <= close
✓ (t - open) is a multiple of the slot step
✓ t >= now + booking_buffer (only bites on today / just after midnight)

Does NOT look at:
✗ Appointments (ConflictDetector)
✗ Blocked dates (BusinessCalendar)
"""

from datetime import date, datetime, time, timedelta
from typing import Optional

from .calendar import OperatingWindow


def generate_candidate_slots(
    window: OperatingWindow,
    duration_minutes: int,
    slot_interval_minutes: int = 30,
    *,
    target_date: Optional[date] = None,
    now: Optional[datetime] = None,
    booking_buffer_minutes: int = 0,
    buffer_minutes: int = 0,
) -> list[time]:
    """
    Generate ordered candidate start times inside the operating window.

    Returns:
        Ascending list of start times. Empty list = service does not fit.
    """
    if slot_interval_minutes <= 0:
        raise ValueError(f"slot_interval_minutes must be positive, got {slot_interval_minutes}")
    if duration_minutes <= 0:
        raise ValueError(f"duration_minutes must be positive, got {duration_minutes}")

    latest_start = window.close_minutes - duration_minutes - buffer_minutes
    cutoff = None
    if now is not None and target_date is not None:
        cutoff = now + timedelta(minutes=booking_buffer_minutes)

    slots: list[time] = []
    t = window.open_minutes
    while t <= latest_start:
        start = time(t // 60, t % 60)
        if cutoff is None or datetime.combine(target_date, start) >= cutoff:
            slots.append(start)
        t += slot_interval_minutes

    return slots


def is_on_grid(window: OperatingWindow, start: time, slot_interval_minutes: int) -> bool:
    """Whether start is aligned to the slot grid counted from opening time."""
    if start.second or start.microsecond:
        return False
    offset = start.hour * 60 + start.minute - window.open_minutes
    return offset >= 0 and offset % slot_interval_minutes == 0
