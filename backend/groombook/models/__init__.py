from .tables import (
    Base,
    metadata,
    BusinessHours,
    BlockedDates,
    Services,
    Customers,
    Pets,
    Addons,
    Appointments,
    AppointmentAddons,
    Waitlist,
    BookingDayLocks,
)

__all__ = [
    "Base",
    "metadata",
    "BusinessHours",
    "BlockedDates",
    "Services",
    "Customers",
    "Pets",
    "Addons",
    "Appointments",
    "AppointmentAddons",
    "Waitlist",
    "BookingDayLocks",
]
