# backend/groombook/services/booking/calendar.py
"""
Business calendar: operating window for a date.

Works on an immutable CalendarSnapshot loaded once per request, so the
lookup itself is a pure function of (snapshot, date).

Resolution order:
  1. Blocked dates (exact range or recurring weekday) → Closed
  2. Weekday hours with is_open=False → Closed
  3. Unconfigured or malformed weekday → Closed (never fail open)
"""

import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Optional, Union

from sqlalchemy.orm import Session

from .config import time_to_minutes

logger = logging.getLogger(__name__)

DAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


@dataclass(frozen=True)
class DayHours:
    open_time: time
    close_time: time
    is_open: bool = True


@dataclass(frozen=True)
class BlockedRule:
    date_start: Optional[date] = None
    date_end: Optional[date] = None
    recurring_weekday: Optional[int] = None
    reason: Optional[str] = None

    def matches(self, target_date: date) -> bool:
        if self.recurring_weekday is not None and target_date.weekday() == self.recurring_weekday:
            return True
        if self.date_start is not None:
            end = self.date_end or self.date_start
            return self.date_start <= target_date <= end
        return False


@dataclass(frozen=True)
class CalendarSnapshot:
    """Hours indexed by weekday (0 = Monday) plus blocked-date rules."""
    hours: tuple[Optional[DayHours], ...] = (None,) * 7
    blocked: tuple[BlockedRule, ...] = ()

    @classmethod
    def from_mapping(
        cls,
        hours: dict[int, DayHours],
        blocked: tuple[BlockedRule, ...] | list[BlockedRule] = (),
    ) -> "CalendarSnapshot":
        return cls(
            hours=tuple(hours.get(weekday) for weekday in range(7)),
            blocked=tuple(blocked),
        )


@dataclass(frozen=True)
class OperatingWindow:
    open_time: time
    close_time: time

    @property
    def open_minutes(self) -> int:
        return time_to_minutes(self.open_time)

    @property
    def close_minutes(self) -> int:
        return time_to_minutes(self.close_time)

    @property
    def length_minutes(self) -> int:
        return self.close_minutes - self.open_minutes


@dataclass(frozen=True)
class Closed:
    reason: str = "Business is closed on this day"


def get_operating_window(
    snapshot: CalendarSnapshot,
    target_date: date,
) -> Union[OperatingWindow, Closed]:
    """Resolve the operating window for target_date."""
    for rule in snapshot.blocked:
        if rule.matches(target_date):
            if rule.recurring_weekday is not None and rule.date_start is None:
                day_name = DAY_NAMES[target_date.weekday()].capitalize()
                return Closed(rule.reason or f"{day_name}s are blocked for appointments")
            return Closed(rule.reason or "This date is blocked")

    day_hours = snapshot.hours[target_date.weekday()]
    if day_hours is None:
        return Closed("Business hours are not configured for this day")

    if not day_hours.is_open:
        return Closed()

    if day_hours.open_time >= day_hours.close_time:
        logger.warning(
            f"Ignoring malformed hours for {DAY_NAMES[target_date.weekday()]}: "
            f"{day_hours.open_time}-{day_hours.close_time}"
        )
        return Closed("Business hours are not configured for this day")

    return OperatingWindow(day_hours.open_time, day_hours.close_time)


def is_closed(snapshot: CalendarSnapshot, target_date: date) -> bool:
    return isinstance(get_operating_window(snapshot, target_date), Closed)


# ── Loading ──────────────────────────────────────────────────────────────


def load_calendar_snapshot(db: Session) -> CalendarSnapshot:
    """Read business hours and blocked dates into an immutable snapshot."""
    from ...models import BusinessHours, BlockedDates

    hours: dict[int, DayHours] = {}
    for row in db.query(BusinessHours).all():
        parsed = _parse_hours(row)
        if parsed is not None:
            hours[row.weekday] = parsed

    blocked = [
        BlockedRule(
            date_start=row.date_start,
            date_end=row.date_end,
            recurring_weekday=row.recurring_weekday,
            reason=row.reason,
        )
        for row in db.query(BlockedDates).all()
    ]

    return CalendarSnapshot.from_mapping(hours, blocked)


def _parse_hours(row) -> Optional[DayHours]:
    try:
        open_time = time.fromisoformat(row.open_time)
        close_time = time.fromisoformat(row.close_time)
    except (TypeError, ValueError):
        logger.warning(
            f"Unparseable business hours for weekday {row.weekday}: "
            f"{row.open_time!r}-{row.close_time!r}"
        )
        return None
    return DayHours(open_time=open_time, close_time=close_time, is_open=bool(row.is_open))
