# backend/groombook/services/booking/conflicts.py
"""
Overlap and capacity checks against a given set of appointments.

Appointments are passed in, never queried here: the read path hands in
whatever it fetched, the reservation path hands in rows fetched under
the day lock. Anything with scheduled_at / duration_minutes / status
(and optionally groomer_id) works, ORM rows included.

Intervals are half-open: [start, start + duration + buffer).
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional

# Statuses that no longer hold calendar capacity
RELEASED_STATUSES = frozenset({"cancelled", "no_show"})


def occupies_capacity(appointment) -> bool:
    return appointment.status not in RELEASED_STATUSES


def interval_of(start: datetime, duration_minutes: int, buffer_minutes: int = 0) -> tuple[datetime, datetime]:
    return start, start + timedelta(minutes=duration_minutes + buffer_minutes)


def intervals_overlap(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    return start_a < end_b and start_b < end_a


def overlapping_appointments(
    candidate_start: datetime,
    duration_minutes: int,
    existing_appointments: Iterable,
    buffer_minutes: int = 0,
) -> list:
    """Active appointments whose interval overlaps the candidate's."""
    start, end = interval_of(candidate_start, duration_minutes, buffer_minutes)
    result = []
    for appt in existing_appointments:
        if not occupies_capacity(appt):
            continue
        appt_start, appt_end = interval_of(appt.scheduled_at, appt.duration_minutes, buffer_minutes)
        if intervals_overlap(start, end, appt_start, appt_end):
            result.append(appt)
    return result


def is_slot_occupied(
    candidate_start: datetime,
    duration_minutes: int,
    existing_appointments: Iterable,
    buffer_minutes: int = 0,
) -> bool:
    return bool(
        overlapping_appointments(candidate_start, duration_minutes, existing_appointments, buffer_minutes)
    )


def capacity_remaining(
    candidate_start: datetime,
    duration_minutes: int,
    existing_appointments: Iterable,
    max_concurrent: int,
    buffer_minutes: int = 0,
) -> int:
    """
    Free capacity units for the candidate interval.

    Uses the peak number of appointments running at the same instant
    inside the candidate interval, so two back-to-back bookings that both
    touch the candidate only consume one unit. Result <= 0 means full.
    """
    overlapping = overlapping_appointments(
        candidate_start, duration_minutes, existing_appointments, buffer_minutes
    )
    return max_concurrent - peak_concurrency(overlapping, buffer_minutes)


def peak_concurrency(appointments: Iterable, buffer_minutes: int = 0) -> int:
    """Maximum number of the given appointments active at one instant."""
    events: list[tuple[datetime, int]] = []
    for appt in appointments:
        start, end = interval_of(appt.scheduled_at, appt.duration_minutes, buffer_minutes)
        events.append((start, 1))
        events.append((end, -1))

    # Ends sort before starts at the same instant (half-open intervals)
    events.sort(key=lambda e: (e[0], e[1]))

    peak = current = 0
    for _, delta in events:
        current += delta
        peak = max(peak, current)
    return peak


def groomer_is_busy(
    candidate_start: datetime,
    duration_minutes: int,
    existing_appointments: Iterable,
    groomer_id: Optional[int],
    buffer_minutes: int = 0,
) -> bool:
    """A named groomer never works two overlapping appointments."""
    if groomer_id is None:
        return False
    return any(
        appt.groomer_id == groomer_id
        for appt in overlapping_appointments(
            candidate_start, duration_minutes, existing_appointments, buffer_minutes
        )
    )
