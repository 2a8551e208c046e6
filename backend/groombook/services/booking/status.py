# backend/groombook/services/booking/status.py
"""
Appointment status transitions (staff-facing).

Re-fetches the row FOR UPDATE before changing it, so a concurrent
transition cannot be lost. Moving to cancelled/no_show releases the
appointment's capacity for every later availability read.
"""

import logging
from typing import Callable, Optional

from sqlalchemy.orm import Session

from .errors import AppointmentNotFound, InvalidTransition

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "cancelled", "no_show"}),
    "confirmed": frozenset({"checked_in", "cancelled", "no_show"}),
    "checked_in": frozenset({"in_progress", "cancelled"}),
    "in_progress": frozenset({"ready"}),
    "ready": frozenset({"completed"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
    "no_show": frozenset(),
}

MAX_CANCELLATION_REASON = 500


def is_transition_allowed(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def transition_status(
    db: Session,
    appointment_id: int,
    new_status: str,
    cancellation_reason: Optional[str] = None,
    notifier: Callable[[str, dict], None] | None = None,
):
    """
    Move an appointment to new_status.

    Raises:
        AppointmentNotFound: no such appointment
        InvalidTransition: status change not permitted or reason missing
    """
    from ...models import Appointments

    if new_status not in ALLOWED_TRANSITIONS:
        raise InvalidTransition(f"Unknown status: {new_status}")

    if new_status == "cancelled":
        if not cancellation_reason:
            raise InvalidTransition("Cancellation reason is required when cancelling")
        if len(cancellation_reason) > MAX_CANCELLATION_REASON:
            raise InvalidTransition(
                f"Cancellation reason must be {MAX_CANCELLATION_REASON} characters or less"
            )

    appointment = (
        db.query(Appointments)
        .filter(Appointments.id == appointment_id)
        .with_for_update()
        .first()
    )
    if not appointment:
        db.rollback()
        raise AppointmentNotFound(appointment_id)

    previous = appointment.status
    if not is_transition_allowed(previous, new_status):
        db.rollback()
        raise InvalidTransition(f"Cannot change status from {previous} to {new_status}")

    appointment.status = new_status
    if new_status == "cancelled":
        appointment.cancellation_reason = cancellation_reason
    db.commit()
    db.refresh(appointment)

    logger.info(f"Appointment {appointment_id}: {previous} → {new_status}")

    if notifier is None:
        from ..events import emit_event
        notifier = emit_event
    try:
        notifier("appointment_status_changed", {
            "appointment_id": appointment.id,
            "old_status": previous,
            "new_status": new_status,
        })
    except Exception:
        logger.exception(f"Notification failed for appointment {appointment.id}")

    return appointment
