# backend/groombook/services/booking/availability.py
"""
Service availability for a day (read path, no locking).

Combines:
- BusinessCalendar (operating window, closures)
- SlotGenerator (candidate start times)
- ConflictDetector (capacity left per candidate)
- Waitlist depth for full slots

Results are advisory and computed fresh per request; the reservation
path re-validates under the day lock.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from .calendar import CalendarSnapshot, Closed, get_operating_window, load_calendar_snapshot
from .config import BookingConfig, get_booking_config
from .conflicts import capacity_remaining
from .errors import InvalidDate, ServiceNotFound
from .generator import generate_candidate_slots
from .queries import count_active_waitlist, get_active_service, get_range_appointments

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeSlot:
    time: str  # "HH:MM"
    available: bool
    capacity_remaining: int = 0
    waitlist_depth: Optional[int] = None


@dataclass
class DayAvailability:
    date: date
    service_id: int
    service_duration_min: int
    is_closed: bool = False
    reason: Optional[str] = None
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    slots: list[TimeSlot] = field(default_factory=list)


@dataclass(frozen=True)
class DaySummary:
    date: date
    has_slots: bool
    open_slots_count: int = 0
    is_closed: bool = False


def get_availability(
    db: Session,
    target_date: date,
    service_id: int,
    config: BookingConfig | None = None,
    now: datetime | None = None,
) -> DayAvailability:
    """
    Calculate time slots for a service on target_date.

    Raises:
        InvalidDate: date in the past or beyond max_advance_days
        ServiceNotFound: service missing or inactive
    """
    config = config or get_booking_config()
    now = now or config.local_now()

    check_bookable_date(target_date, now, config)

    service = get_active_service(db, service_id)
    if not service:
        raise ServiceNotFound(service_id)

    snapshot = load_calendar_snapshot(db)
    appointments = get_range_appointments(db, target_date, target_date)

    return compute_day_availability(
        db, snapshot, service, target_date, appointments, config, now
    )


def get_availability_calendar(
    db: Session,
    service_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
    config: BookingConfig | None = None,
    now: datetime | None = None,
) -> list[DaySummary]:
    """
    Per-day summary for a date picker, clamped to the booking window.

    Raises:
        InvalidDate: range starts after the last bookable day
        ServiceNotFound: service missing or inactive
    """
    config = config or get_booking_config()
    now = now or config.local_now()

    service = get_active_service(db, service_id)
    if not service:
        raise ServiceNotFound(service_id)

    today = now.date()
    horizon = today + timedelta(days=config.max_advance_days)
    start_date = max(start_date or today, today)
    if start_date > horizon:
        raise InvalidDate(f"Date cannot be more than {config.max_advance_days} days ahead")
    end_date = min(end_date or horizon, horizon)
    if end_date < start_date:
        end_date = start_date

    snapshot = load_calendar_snapshot(db)
    appointments = get_range_appointments(db, start_date, end_date)

    days = []
    current = start_date
    while current <= end_date:
        day = compute_day_availability(
            db, snapshot, service, current, appointments, config, now,
            with_waitlist=False,
        )
        open_count = sum(1 for slot in day.slots if slot.available)
        days.append(DaySummary(
            date=current,
            has_slots=open_count > 0,
            open_slots_count=open_count,
            is_closed=day.is_closed,
        ))
        current += timedelta(days=1)

    return days


def check_bookable_date(target_date: date, now: datetime, config: BookingConfig) -> None:
    today = now.date()
    if target_date < today:
        raise InvalidDate("Date cannot be in the past")
    if target_date > today + timedelta(days=config.max_advance_days):
        raise InvalidDate(f"Date cannot be more than {config.max_advance_days} days ahead")


def compute_day_availability(
    db: Session,
    snapshot: CalendarSnapshot,
    service,
    target_date: date,
    appointments: list,
    config: BookingConfig,
    now: datetime,
    with_waitlist: bool = True,
) -> DayAvailability:
    result = DayAvailability(
        date=target_date,
        service_id=service.id,
        service_duration_min=service.duration_minutes,
    )

    window = get_operating_window(snapshot, target_date)
    if isinstance(window, Closed):
        result.is_closed = True
        result.reason = window.reason
        return result

    result.open_time = window.open_time.strftime("%H:%M")
    result.close_time = window.close_time.strftime("%H:%M")

    candidates = generate_candidate_slots(
        window,
        service.duration_minutes,
        config.slot_step_minutes,
        target_date=target_date,
        now=now,
        booking_buffer_minutes=config.booking_buffer_minutes,
        buffer_minutes=config.buffer_minutes,
    )

    waitlist_depth: Optional[int] = None
    for start in candidates:
        remaining = capacity_remaining(
            datetime.combine(target_date, start),
            service.duration_minutes,
            appointments,
            config.max_concurrent_appointments,
            config.buffer_minutes,
        )
        available = remaining > 0
        depth = None
        if not available and with_waitlist:
            if waitlist_depth is None:
                waitlist_depth = count_active_waitlist(db, target_date, service.id)
            depth = waitlist_depth

        result.slots.append(TimeSlot(
            time=start.strftime("%H:%M"),
            available=available,
            capacity_remaining=max(remaining, 0),
            waitlist_depth=depth,
        ))

    logger.debug(
        f"Availability {target_date} service={service.id}: "
        f"{sum(1 for s in result.slots if s.available)}/{len(result.slots)} open"
    )
    return result
