# backend/groombook/routers/availability.py
"""
Availability API endpoints (read path, no locking).

GET /availability/day      - Slots for a service on a specific day
GET /availability/calendar - Days with open slots for a service
"""

from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.availability import AvailabilityCalendarResponse, DayAvailabilityResponse, DaySummaryRead
from ..services.booking import BookingConfig, get_booking_config
from ..services.booking.availability import get_availability, get_availability_calendar
from ..services.booking.errors import InvalidDate, ServiceNotFound


router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("/day", response_model=DayAvailabilityResponse)
def get_availability_day(
    service_id: int,
    target_date: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
    config: BookingConfig = Depends(get_booking_config),
):
    """Get time slots for a service on a specific day."""
    try:
        return get_availability(db, target_date, service_id, config=config)
    except InvalidDate as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ServiceNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/calendar", response_model=AvailabilityCalendarResponse)
def get_availability_days(
    service_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
    config: BookingConfig = Depends(get_booking_config),
):
    """Get calendar of bookable days for a service."""
    try:
        days = get_availability_calendar(db, service_id, start_date, end_date, config=config)
    except InvalidDate as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ServiceNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    return AvailabilityCalendarResponse(
        service_id=service_id,
        start_date=days[0].date,
        end_date=days[-1].date,
        days=[DaySummaryRead.model_validate(day) for day in days],
        max_advance_days=config.max_advance_days,
        booking_buffer_minutes=config.booking_buffer_minutes,
        slot_step_minutes=config.slot_step_minutes,
    )
