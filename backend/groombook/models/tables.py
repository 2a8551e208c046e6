from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


APPOINTMENT_STATUSES = (
    "pending",
    "confirmed",
    "checked_in",
    "in_progress",
    "ready",
    "completed",
    "cancelled",
    "no_show",
)

WAITLIST_STATUSES = ("active", "notified", "booked", "expired", "cancelled")


def _in_check(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


class BusinessHours(Base):
    __tablename__ = 'business_hours'
    __table_args__ = (
        CheckConstraint('weekday BETWEEN 0 AND 6'),
    )

    weekday = Column(Integer, primary_key=True)  # 0 = Monday, 6 = Sunday
    open_time = Column(Text, nullable=False, server_default='09:00')
    close_time = Column(Text, nullable=False, server_default='17:00')
    is_open = Column(Boolean, nullable=False, server_default='1')


class BlockedDates(Base):
    __tablename__ = 'blocked_dates'
    __table_args__ = (
        CheckConstraint(
            'date_start IS NOT NULL OR recurring_weekday IS NOT NULL',
            name='ck_blocked_dates_target',
        ),
    )

    id = Column(Integer, primary_key=True)
    date_start = Column(Date)
    date_end = Column(Date)  # inclusive; NULL = single day
    recurring_weekday = Column(Integer)  # 0 = Monday, 6 = Sunday
    reason = Column(Text)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class Services(Base):
    __tablename__ = 'services'

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    description = Column(Text)
    duration_minutes = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, server_default='1')

    appointments = relationship('Appointments', back_populates='service')


class Customers(Base):
    __tablename__ = 'customers'

    id = Column(Integer, primary_key=True)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text)
    email = Column(Text)
    phone = Column(Text)

    pets = relationship('Pets', back_populates='owner')


class Pets(Base):
    __tablename__ = 'pets'

    id = Column(Integer, primary_key=True)
    owner_id = Column(ForeignKey('customers.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    size = Column(Text)

    owner = relationship('Customers', back_populates='pets')


class Addons(Base):
    __tablename__ = 'addons'

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    price = Column(Float, nullable=False)
    is_active = Column(Boolean, nullable=False, server_default='1')


class Appointments(Base):
    __tablename__ = 'appointments'
    __table_args__ = (
        CheckConstraint(_in_check('status', APPOINTMENT_STATUSES), name='ck_appointments_status'),
        CheckConstraint('duration_minutes > 0', name='ck_appointments_duration'),
        Index('ix_appointments_scheduled_at', 'scheduled_at'),
    )

    id = Column(Integer, primary_key=True)
    booking_reference = Column(Text, nullable=False, unique=True)
    customer_id = Column(ForeignKey('customers.id'), nullable=False)
    pet_id = Column(ForeignKey('pets.id'), nullable=False)
    service_id = Column(ForeignKey('services.id'), nullable=False)
    groomer_id = Column(Integer)
    scheduled_at = Column(DateTime, nullable=False)  # naive, business timezone
    duration_minutes = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, server_default='pending')
    total_price = Column(Float, nullable=False)
    notes = Column(Text)
    cancellation_reason = Column(Text)
    idempotency_key = Column(Text, unique=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    service = relationship('Services', back_populates='appointments')
    addons = relationship('AppointmentAddons', back_populates='appointment', cascade='all, delete-orphan')


class AppointmentAddons(Base):
    __tablename__ = 'appointment_addons'
    __table_args__ = (
        UniqueConstraint('appointment_id', 'addon_id'),
    )

    id = Column(Integer, primary_key=True)
    appointment_id = Column(ForeignKey('appointments.id', ondelete='CASCADE'), nullable=False)
    addon_id = Column(ForeignKey('addons.id'), nullable=False)
    price = Column(Float, nullable=False)

    appointment = relationship('Appointments', back_populates='addons')


class Waitlist(Base):
    __tablename__ = 'waitlist'
    __table_args__ = (
        CheckConstraint(
            _in_check('time_preference', ('morning', 'afternoon', 'any')),
            name='ck_waitlist_time_preference',
        ),
        CheckConstraint(_in_check('status', WAITLIST_STATUSES), name='ck_waitlist_status'),
        Index('ix_waitlist_requested_date', 'requested_date'),
    )

    id = Column(Integer, primary_key=True)
    customer_id = Column(ForeignKey('customers.id'), nullable=False)
    pet_id = Column(ForeignKey('pets.id'), nullable=False)
    service_id = Column(ForeignKey('services.id'), nullable=False)
    requested_date = Column(Date, nullable=False)
    time_preference = Column(Text, nullable=False, server_default='any')
    status = Column(Text, nullable=False, server_default='active')
    notified_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False, server_default=func.now())


class BookingDayLocks(Base):
    """One row per business day; reservations lock it FOR UPDATE."""
    __tablename__ = 'booking_day_locks'

    lock_date = Column(Date, primary_key=True)
