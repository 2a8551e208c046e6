# backend/groombook/services/booking/queries.py
"""
Database helpers shared by the availability and reservation paths.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .conflicts import RELEASED_STATUSES


def get_active_service(db: Session, service_id: int):
    """Get service by ID if it is bookable."""
    from ...models import Services
    return db.query(Services).filter(
        Services.id == service_id,
        Services.is_active.is_(True),
    ).first()


def get_day_appointments(db: Session, target_date: date) -> list:
    """Get appointments holding capacity that may overlap target_date."""
    return get_range_appointments(db, target_date, target_date)


def get_range_appointments(db: Session, date_start: date, date_end: date) -> list:
    """
    Get appointments holding capacity that may overlap [date_start, date_end].

    Includes the previous day so an appointment running past midnight is
    still seen; the overlap itself is decided by ConflictDetector.
    """
    from ...models import Appointments

    window_start = datetime.combine(date_start, time.min) - timedelta(days=1)
    window_end = datetime.combine(date_end, time.min) + timedelta(days=1)

    return (
        db.query(Appointments)
        .filter(
            Appointments.scheduled_at >= window_start,
            Appointments.scheduled_at < window_end,
            Appointments.status.notin_(sorted(RELEASED_STATUSES)),
        )
        .order_by(Appointments.scheduled_at)
        .all()
    )


def count_active_waitlist(db: Session, target_date: date, service_id: int) -> int:
    """Number of active waitlist entries for date + service."""
    from ...models import Waitlist

    return (
        db.query(func.count(Waitlist.id))
        .filter(
            Waitlist.requested_date == target_date,
            Waitlist.service_id == service_id,
            Waitlist.status == "active",
        )
        .scalar()
    ) or 0


def get_appointment_by_idempotency_key(db: Session, key: Optional[str]):
    if not key:
        return None
    from ...models import Appointments
    return db.query(Appointments).filter(Appointments.idempotency_key == key).first()
