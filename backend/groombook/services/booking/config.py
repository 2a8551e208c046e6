# backend/groombook/services/booking/config.py
"""
Booking configuration for availability and reservations.
"""

from dataclasses import dataclass
from datetime import datetime, time
from functools import lru_cache
from zoneinfo import ZoneInfo


LOCK_BACKENDS = ("database", "redis", "local")


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the booking system.

    Attributes:
        slot_step_minutes: Grid step between candidate start times (15/30/60)
        booking_buffer_minutes: Minimum lead time before a slot can be booked
        buffer_minutes: Turnover time added after every appointment
        max_advance_days: How many days ahead bookings are accepted
        max_concurrent_appointments: Appointments the salon serves at once
        lock_backend: "database" (SELECT FOR UPDATE), "redis" or "local"
        lock_timeout_seconds: How long a reservation waits for the day lock
        reservation_retry_attempts: Attempts for reserve_with_retry on TIMEOUT
        timezone: Business timezone (IANA name)
    """
    slot_step_minutes: int = 30  # 15 / 30 / 60
    booking_buffer_minutes: int = 30
    buffer_minutes: int = 0
    max_advance_days: int = 90
    max_concurrent_appointments: int = 1
    lock_backend: str = "database"
    lock_timeout_seconds: float = 5.0
    reservation_retry_attempts: int = 3
    timezone: str = "America/Los_Angeles"

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes not in (15, 30, 60):
            raise ValueError(f"slot_step_minutes must be 15, 30, or 60, got {self.slot_step_minutes}")
        if self.max_concurrent_appointments < 1:
            raise ValueError(
                f"max_concurrent_appointments must be >= 1, got {self.max_concurrent_appointments}"
            )
        if self.booking_buffer_minutes < 0 or self.buffer_minutes < 0:
            raise ValueError("buffer values cannot be negative")
        if self.lock_backend not in LOCK_BACKENDS:
            raise ValueError(f"lock_backend must be one of {LOCK_BACKENDS}, got {self.lock_backend!r}")
        if self.lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be positive")

    def local_now(self) -> datetime:
        """Current wall-clock time in the business timezone (naive)."""
        return datetime.now(ZoneInfo(self.timezone)).replace(tzinfo=None)


def time_to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


@lru_cache
def get_booking_config() -> BookingConfig:
    """
    Get booking configuration (singleton), built from environment settings.
    """
    from ...config import settings

    return BookingConfig(
        slot_step_minutes=settings.slot_step_minutes,
        booking_buffer_minutes=settings.booking_buffer_minutes,
        buffer_minutes=settings.buffer_minutes,
        max_advance_days=settings.max_advance_days,
        max_concurrent_appointments=settings.max_concurrent_appointments,
        lock_backend=settings.lock_backend,
        lock_timeout_seconds=settings.lock_timeout_seconds,
        reservation_retry_attempts=settings.reservation_retry_attempts,
        timezone=settings.timezone,
    )
