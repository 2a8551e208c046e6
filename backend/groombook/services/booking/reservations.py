# backend/groombook/services/booking/reservations.py
"""
Reservation coordinator: the only writer of new appointments.

Per attempt:
1. Validate: no lock, no writes; ValidationFailed on bad input
2. Acquire: day lock, bounded wait; Conflict(TIMEOUT) on expiry
3. Re-check: idempotency replay, capacity under the lock;
   Conflict(SLOT_TAKEN) when full
4. Commit: appointment + add-on lines in one transaction
5. Notify: after commit, best effort, never raises

Guarantee: with max_concurrent_appointments=N, no instant of the day is
ever covered by more than N committed active appointments, and a named
groomer never holds two overlapping ones.
"""

import logging
import secrets
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from functools import lru_cache
from typing import Callable, Optional, Union
from zoneinfo import ZoneInfo

from redis.exceptions import RedisError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .calendar import CalendarSnapshot, Closed, get_operating_window, load_calendar_snapshot
from .config import BookingConfig, get_booking_config, time_to_minutes
from .conflicts import capacity_remaining, groomer_is_busy
from .errors import LockTimeout, StorageFailure
from .generator import is_on_grid
from .locks import get_slot_lock
from .queries import get_active_service, get_appointment_by_idempotency_key, get_day_appointments

logger = logging.getLogger(__name__)

REFERENCE_ATTEMPTS = 10


# ── Request / result types ───────────────────────────────────────────────


@dataclass(frozen=True)
class ReservationRequest:
    customer_id: int
    pet_id: int
    service_id: int
    start: datetime
    addon_ids: tuple[int, ...] = ()
    total_price: float = 0.0
    groomer_id: Optional[int] = None
    notes: Optional[str] = None
    idempotency_key: Optional[str] = None


class ConflictReason(str, Enum):
    SLOT_TAKEN = "SLOT_TAKEN"
    TIMEOUT = "TIMEOUT"


CONFLICT_MESSAGES = {
    ConflictReason.SLOT_TAKEN: "That time was just booked, please pick another",
    ConflictReason.TIMEOUT: "The booking system is busy, please try again",
}


@dataclass(frozen=True)
class Reserved:
    appointment: object  # models.Appointments
    replayed: bool = False


@dataclass(frozen=True)
class Conflict:
    reason: ConflictReason

    @property
    def message(self) -> str:
        return CONFLICT_MESSAGES[self.reason]

    @property
    def retryable_as_is(self) -> bool:
        # SLOT_TAKEN needs a fresh slot; TIMEOUT may resubmit unchanged
        return self.reason == ConflictReason.TIMEOUT


@dataclass(frozen=True)
class ValidationFailed:
    errors: dict[str, str] = field(default_factory=dict)


ReservationResult = Union[Reserved, Conflict, ValidationFailed]


# ── Coordinator ──────────────────────────────────────────────────────────


class ReservationCoordinator:
    def __init__(
        self,
        config: BookingConfig | None = None,
        lock=None,
        notifier: Callable[[str, dict], None] | None = None,
    ):
        self.config = config or get_booking_config()
        self.lock = lock or get_slot_lock()
        if notifier is None:
            from ..events import emit_event
            notifier = emit_event
        self.notifier = notifier

    def reserve(
        self,
        db: Session,
        request: ReservationRequest,
        now: datetime | None = None,
    ) -> ReservationResult:
        """
        Validate, lock the day, re-check capacity and commit.

        Raises:
            StorageFailure: the store failed; nothing was committed
        """
        config = self.config
        now = now or config.local_now()
        request = self._normalize(request)

        try:
            existing = get_appointment_by_idempotency_key(db, request.idempotency_key)
            if existing is not None:
                return self._replay(existing, request)

            snapshot = load_calendar_snapshot(db)
            service, addon_prices, errors = validate_reservation(db, request, snapshot, config, now)
            if errors:
                db.rollback()
                logger.info(f"Reservation rejected: {errors}")
                return ValidationFailed(errors)

            duration = service.duration_minutes
            # Start the locked part on a fresh transaction
            db.rollback()

            with self.lock.hold(db, request.start.date()):
                result = self._commit_locked(db, request, duration, addon_prices, now)

        except LockTimeout:
            db.rollback()
            logger.warning(f"Lock timeout reserving {request.start:%Y-%m-%d %H:%M}")
            return Conflict(ConflictReason.TIMEOUT)
        except IntegrityError as e:
            db.rollback()
            existing = get_appointment_by_idempotency_key(db, request.idempotency_key)
            if existing is not None:
                return self._replay(existing, request)
            logger.exception("Integrity error while committing reservation")
            raise StorageFailure("Failed to create appointment") from e
        except (SQLAlchemyError, RedisError) as e:
            db.rollback()
            logger.exception("Storage failure while reserving")
            raise StorageFailure("Failed to create appointment") from e

        if isinstance(result, Reserved) and not result.replayed:
            self._notify(result.appointment)
        return result

    def reserve_with_retry(
        self,
        db: Session,
        request: ReservationRequest,
        attempts: int | None = None,
        backoff_seconds: float = 0.2,
        now: datetime | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> ReservationResult:
        """
        reserve(), resubmitting the identical request on lock timeouts only.

        SLOT_TAKEN and validation failures are returned immediately.
        """
        attempts = attempts or self.config.reservation_retry_attempts
        result: ReservationResult = Conflict(ConflictReason.TIMEOUT)
        for attempt in range(1, attempts + 1):
            result = self.reserve(db, request, now=now)
            if not (isinstance(result, Conflict) and result.reason == ConflictReason.TIMEOUT):
                return result
            if attempt < attempts:
                delay = backoff_seconds * 2 ** (attempt - 1)
                logger.info(f"Lock timeout, retry {attempt}/{attempts - 1} in {delay:.2f}s")
                sleep(delay)
        return result

    # ── Steps ────────────────────────────────────────────────────────────

    def _commit_locked(
        self,
        db: Session,
        request: ReservationRequest,
        duration: int,
        addon_prices: list[tuple[int, float]],
        now: datetime,
    ) -> ReservationResult:
        from ...models import Appointments, AppointmentAddons

        config = self.config

        existing = get_appointment_by_idempotency_key(db, request.idempotency_key)
        if existing is not None:
            db.rollback()
            return self._replay(existing, request)

        appointments = get_day_appointments(db, request.start.date())
        remaining = capacity_remaining(
            request.start,
            duration,
            appointments,
            config.max_concurrent_appointments,
            config.buffer_minutes,
        )
        busy = groomer_is_busy(
            request.start, duration, appointments, request.groomer_id, config.buffer_minutes
        )
        if remaining <= 0 or busy:
            db.rollback()
            logger.info(
                f"Slot taken: {request.start:%Y-%m-%d %H:%M} "
                f"service={request.service_id} groomer={request.groomer_id}"
            )
            return Conflict(ConflictReason.SLOT_TAKEN)

        appointment = Appointments(
            booking_reference=_unique_reference(db, now),
            customer_id=request.customer_id,
            pet_id=request.pet_id,
            service_id=request.service_id,
            groomer_id=request.groomer_id,
            scheduled_at=request.start,
            duration_minutes=duration,
            status="pending",
            total_price=request.total_price,
            notes=request.notes,
            idempotency_key=request.idempotency_key,
        )
        db.add(appointment)
        db.flush()

        for addon_id, price in addon_prices:
            db.add(AppointmentAddons(
                appointment_id=appointment.id,
                addon_id=addon_id,
                price=price,
            ))

        db.commit()
        db.refresh(appointment)

        logger.info(
            f"Appointment created: id={appointment.id}, "
            f"ref={appointment.booking_reference}, "
            f"time={request.start:%Y-%m-%d %H:%M}, duration={duration}"
        )
        return Reserved(appointment)

    def _replay(self, existing, request: ReservationRequest) -> ReservationResult:
        if _same_reservation(existing, request):
            logger.info(f"Idempotent replay: key={request.idempotency_key} → id={existing.id}")
            return Reserved(existing, replayed=True)
        return ValidationFailed({
            "idempotency_key": "Key already used for a different reservation",
        })

    def _notify(self, appointment) -> None:
        try:
            self.notifier("appointment_created", {
                "appointment_id": appointment.id,
                "booking_reference": appointment.booking_reference,
                "customer_id": appointment.customer_id,
                "pet_id": appointment.pet_id,
                "service_id": appointment.service_id,
                "scheduled_at": appointment.scheduled_at.isoformat(),
                "total_price": appointment.total_price,
            })
        except Exception:
            logger.exception(f"Notification failed for appointment {appointment.id}")

    def _normalize(self, request: ReservationRequest) -> ReservationRequest:
        start = request.start
        if start.tzinfo is not None:
            start = start.astimezone(ZoneInfo(self.config.timezone)).replace(tzinfo=None)
        addon_ids = tuple(dict.fromkeys(request.addon_ids))
        key = request.idempotency_key.strip() if request.idempotency_key else None
        if start == request.start and addon_ids == request.addon_ids and key == request.idempotency_key:
            return request
        return ReservationRequest(
            customer_id=request.customer_id,
            pet_id=request.pet_id,
            service_id=request.service_id,
            start=start,
            addon_ids=addon_ids,
            total_price=request.total_price,
            groomer_id=request.groomer_id,
            notes=request.notes,
            idempotency_key=key or None,
        )


# ── Validation ───────────────────────────────────────────────────────────


def validate_reservation(
    db: Session,
    request: ReservationRequest,
    snapshot: CalendarSnapshot,
    config: BookingConfig,
    now: datetime,
):
    """
    Check a request without locking.

    Returns:
        (service, [(addon_id, price)], errors); errors is empty when valid.
    """
    from ...models import Addons, Pets

    errors: dict[str, str] = {}
    start = request.start

    earliest = now + timedelta(minutes=config.booking_buffer_minutes)
    if start < earliest:
        errors["start"] = (
            f"Appointments must be booked at least "
            f"{config.booking_buffer_minutes} minutes in advance"
        )
    elif start.date() > now.date() + timedelta(days=config.max_advance_days):
        errors["start"] = f"Appointments cannot be booked more than {config.max_advance_days} days ahead"

    if request.total_price is None or request.total_price < 0:
        errors["total_price"] = "Total price must be zero or positive"

    service = get_active_service(db, request.service_id)
    if not service:
        errors["service_id"] = "Service not found or inactive"

    pet = db.get(Pets, request.pet_id)
    if not pet:
        errors["pet_id"] = "Pet not found"
    elif pet.owner_id != request.customer_id:
        errors["pet_id"] = "Pet does not belong to this customer"

    addon_prices: list[tuple[int, float]] = []
    if request.addon_ids:
        addons = (
            db.query(Addons)
            .filter(Addons.id.in_(request.addon_ids), Addons.is_active.is_(True))
            .all()
        )
        by_id = {addon.id: addon for addon in addons}
        missing = [addon_id for addon_id in request.addon_ids if addon_id not in by_id]
        if missing:
            errors["addon_ids"] = f"Unknown or inactive add-ons: {missing}"
        else:
            addon_prices = [(addon_id, by_id[addon_id].price) for addon_id in request.addon_ids]

    if service and "start" not in errors:
        window_error = _check_window(snapshot, service.duration_minutes, start, config)
        if window_error:
            errors["start"] = window_error

    return service, addon_prices, errors


def _check_window(
    snapshot: CalendarSnapshot,
    duration: int,
    start: datetime,
    config: BookingConfig,
) -> Optional[str]:
    window = get_operating_window(snapshot, start.date())
    if isinstance(window, Closed):
        return window.reason

    start_time = start.time()
    if start_time < window.open_time:
        return "Start time is before opening time"
    if not is_on_grid(window, start_time, config.slot_step_minutes):
        return f"Start time must align to the {config.slot_step_minutes}-minute slot grid"
    if time_to_minutes(start_time) + duration + config.buffer_minutes > window.close_minutes:
        return "Service does not fit before closing time"
    return None


# ── Helpers ──────────────────────────────────────────────────────────────


def _same_reservation(existing, request: ReservationRequest) -> bool:
    existing_addons = sorted(line.addon_id for line in existing.addons)
    return (
        existing.customer_id == request.customer_id
        and existing.pet_id == request.pet_id
        and existing.service_id == request.service_id
        and existing.scheduled_at == request.start
        and existing.groomer_id == request.groomer_id
        and existing_addons == sorted(request.addon_ids)
        and existing.total_price == request.total_price
        and existing.notes == request.notes
    )


def generate_booking_reference(year: int) -> str:
    """APT-YYYY-NNNNNN from a cryptographic RNG."""
    return f"APT-{year}-{secrets.randbelow(1_000_000):06d}"


def _unique_reference(db: Session, now: datetime) -> str:
    from ...models import Appointments

    for _ in range(REFERENCE_ATTEMPTS):
        reference = generate_booking_reference(now.year)
        taken = (
            db.query(Appointments.id)
            .filter(Appointments.booking_reference == reference)
            .first()
        )
        if taken is None:
            return reference

    # Practically unreachable; time-based suffix as a last resort
    return f"APT-{now.year}-{int(time.time() * 1000) % 1_000_000:06d}"


@lru_cache
def get_reservation_coordinator() -> ReservationCoordinator:
    return ReservationCoordinator()
