# backend/groombook/schemas/availability.py
"""
Pydantic schemas for availability API.
"""

from datetime import date
from typing import Optional
from pydantic import BaseModel, Field


class TimeSlotRead(BaseModel):
    """A candidate start time."""
    time: str  # "HH:MM"
    available: bool
    capacity_remaining: int = 0
    waitlist_depth: Optional[int] = Field(
        None, description="Active waitlist entries for this date/service (full slots only)"
    )

    model_config = {"from_attributes": True}


class DayAvailabilityResponse(BaseModel):
    """Slots for a service on one day."""
    date: date
    service_id: int
    service_duration_min: int
    is_closed: bool = False
    reason: Optional[str] = None
    open_time: Optional[str] = None
    close_time: Optional[str] = None
    slots: list[TimeSlotRead]

    model_config = {"from_attributes": True}


class DaySummaryRead(BaseModel):
    """Status of a single day in calendar."""
    date: date
    has_slots: bool
    open_slots_count: int = 0
    is_closed: bool = False

    model_config = {"from_attributes": True}


class AvailabilityCalendarResponse(BaseModel):
    """Calendar of bookable days for a service."""
    service_id: int
    start_date: date
    end_date: date
    days: list[DaySummaryRead]

    # Metadata
    max_advance_days: int
    booking_buffer_minutes: int
    slot_step_minutes: int = Field(description="Grid step in minutes (15/30/60)")

    model_config = {"from_attributes": True}
