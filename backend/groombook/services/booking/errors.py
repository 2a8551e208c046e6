# backend/groombook/services/booking/errors.py
"""
Booking error taxonomy.

Read-path and status-transition failures are raised as exceptions.
Reservation outcomes (conflict / validation) are returned as values,
see reservations.py.
"""


class BookingError(Exception):
    """Base class for booking errors."""


class ServiceNotFound(BookingError):
    def __init__(self, service_id: int):
        super().__init__(f"Service {service_id} not found or inactive")
        self.service_id = service_id


class InvalidDate(BookingError):
    """Requested date is in the past or outside the booking window."""


class LockTimeout(BookingError):
    """Day lock was not acquired in time; safe to retry the same request."""


class StorageFailure(BookingError):
    """The store failed; nothing was committed."""


class AppointmentNotFound(BookingError):
    def __init__(self, appointment_id: int):
        super().__init__(f"Appointment {appointment_id} not found")
        self.appointment_id = appointment_id


class InvalidTransition(BookingError):
    """Status change not permitted from the current status."""
