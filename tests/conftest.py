"""Shared test fixtures and helpers."""

from datetime import date, datetime, timedelta
from types import SimpleNamespace
from typing import Optional

import pytest
from sqlalchemy.orm import sessionmaker

from groombook.database import build_engine
from groombook.models import (
    Addons,
    Appointments,
    Base,
    BlockedDates,
    BusinessHours,
    Customers,
    Pets,
    Services,
    Waitlist,
)
from groombook.services.booking import BookingConfig, ReservationCoordinator, ReservationRequest
from groombook.services.booking.locks import LocalSlotLock

# Monday 2026-03-02, 08:00 business time
NOW = datetime(2026, 3, 2, 8, 0)
TODAY = NOW.date()
NEXT_MONDAY = date(2026, 3, 9)
NEXT_SUNDAY = date(2026, 3, 8)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def config():
    return BookingConfig(
        slot_step_minutes=30,
        booking_buffer_minutes=30,
        buffer_minutes=0,
        max_advance_days=90,
        max_concurrent_appointments=1,
        lock_backend="local",
        lock_timeout_seconds=5.0,
        timezone="UTC",
    )


class EventRecorder:
    """Collects emitted events instead of pushing them to Redis."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def __call__(self, event_type: str, payload: dict) -> None:
        self.events.append((event_type, payload))


@pytest.fixture
def events():
    return EventRecorder()


@pytest.fixture
def coordinator(config, events):
    return ReservationCoordinator(
        config=config,
        lock=LocalSlotLock(config.lock_timeout_seconds),
        notifier=events,
    )


@pytest.fixture
def seeded(db):
    """Mon–Sat 09:00–17:00, Sunday closed; two customers with pets; services; add-ons."""
    for weekday in range(7):
        db.add(BusinessHours(
            weekday=weekday,
            open_time="09:00",
            close_time="17:00",
            is_open=weekday != 6,
        ))

    db.add_all([
        Services(id=1, name="Full Groom", duration_minutes=60, is_active=True),
        Services(id=2, name="Bath & Brush", duration_minutes=90, is_active=True),
        Services(id=3, name="Retired Service", duration_minutes=30, is_active=False),
        Customers(id=1, first_name="Dana", email="dana@example.com"),
        Customers(id=2, first_name="Sam", email="sam@example.com"),
        Addons(id=1, name="Nail Trim", price=15.0, is_active=True),
        Addons(id=2, name="Teeth Brushing", price=10.0, is_active=True),
        Addons(id=3, name="Old Add-on", price=5.0, is_active=False),
    ])
    db.flush()
    db.add_all([
        Pets(id=1, owner_id=1, name="Biscuit", size="medium"),
        Pets(id=2, owner_id=2, name="Pepper", size="small"),
    ])
    db.commit()

    return SimpleNamespace(
        service_id=1,
        long_service_id=2,
        inactive_service_id=3,
        customer_id=1,
        pet_id=1,
        other_customer_id=2,
        other_pet_id=2,
    )


def make_request(
    start: datetime,
    customer_id: int = 1,
    pet_id: int = 1,
    service_id: int = 1,
    **kwargs,
) -> ReservationRequest:
    kwargs.setdefault("total_price", 80.0)
    return ReservationRequest(
        customer_id=customer_id,
        pet_id=pet_id,
        service_id=service_id,
        start=start,
        **kwargs,
    )


_reference_seq = iter(range(1, 1_000_000))


def add_appointment(
    db,
    start: datetime,
    duration_minutes: int = 60,
    status: str = "confirmed",
    groomer_id: Optional[int] = None,
    customer_id: int = 1,
    pet_id: int = 1,
    service_id: int = 1,
) -> Appointments:
    appointment = Appointments(
        booking_reference=f"APT-TEST-{next(_reference_seq):06d}",
        customer_id=customer_id,
        pet_id=pet_id,
        service_id=service_id,
        groomer_id=groomer_id,
        scheduled_at=start,
        duration_minutes=duration_minutes,
        status=status,
        total_price=50.0,
    )
    db.add(appointment)
    db.commit()
    return appointment


def add_waitlist(db, requested_date: date, service_id: int = 1, status: str = "active") -> Waitlist:
    entry = Waitlist(
        customer_id=2,
        pet_id=2,
        service_id=service_id,
        requested_date=requested_date,
        time_preference="any",
        status=status,
    )
    db.add(entry)
    db.commit()
    return entry


def block_date(db, date_start=None, date_end=None, recurring_weekday=None, reason=None) -> BlockedDates:
    blocked = BlockedDates(
        date_start=date_start,
        date_end=date_end,
        recurring_weekday=recurring_weekday,
        reason=reason,
    )
    db.add(blocked)
    db.commit()
    return blocked


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


def days_after(day: date, n: int) -> date:
    return day + timedelta(days=n)
