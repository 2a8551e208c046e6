# backend/groombook/services/booking/__init__.py
"""
Appointment availability and reservation.

Read path:  BusinessCalendar → SlotGenerator → ConflictDetector → availability
Write path: ReservationCoordinator (day lock + re-check + atomic commit)
"""

from .config import BookingConfig, get_booking_config
from .calendar import CalendarSnapshot, Closed, OperatingWindow, get_operating_window, load_calendar_snapshot
from .generator import generate_candidate_slots
from .conflicts import capacity_remaining, is_slot_occupied
from .availability import get_availability, get_availability_calendar
from .reservations import (
    Conflict,
    ConflictReason,
    ReservationCoordinator,
    ReservationRequest,
    Reserved,
    ValidationFailed,
    get_reservation_coordinator,
)
from .status import transition_status

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "CalendarSnapshot",
    "Closed",
    "OperatingWindow",
    "get_operating_window",
    "load_calendar_snapshot",
    "generate_candidate_slots",
    "capacity_remaining",
    "is_slot_occupied",
    "get_availability",
    "get_availability_calendar",
    "Conflict",
    "ConflictReason",
    "ReservationCoordinator",
    "ReservationRequest",
    "Reserved",
    "ValidationFailed",
    "get_reservation_coordinator",
    "transition_status",
]
