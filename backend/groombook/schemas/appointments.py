# backend/groombook/schemas/appointments.py

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field


AppointmentStatus = Literal[
    "pending",
    "confirmed",
    "checked_in",
    "in_progress",
    "ready",
    "completed",
    "cancelled",
    "no_show",
]


class AppointmentCreate(BaseModel):
    customer_id: int
    pet_id: int
    service_id: int
    groomer_id: Optional[int] = None

    start: datetime = Field(description="Start in business local time (or with UTC offset)")
    addon_ids: list[int] = []
    total_price: float = Field(ge=0, description="Quoted price, validated upstream")

    notes: Optional[str] = Field(None, max_length=2000)
    idempotency_key: Optional[str] = Field(None, max_length=128)


class AppointmentCreated(BaseModel):
    appointment_id: int
    reference: str
    scheduled_at: datetime
    status: str = "pending"
    replayed: bool = False


class ConflictResponse(BaseModel):
    code: Literal["SLOT_TAKEN", "TIMEOUT"]
    message: str
    retryable: bool


class AppointmentAddonRead(BaseModel):
    addon_id: int
    price: float

    model_config = {"from_attributes": True}


class AppointmentRead(BaseModel):
    id: int
    booking_reference: str

    customer_id: int
    pet_id: int
    service_id: int
    groomer_id: Optional[int] = None

    scheduled_at: datetime
    duration_minutes: int

    status: str
    total_price: float
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    addons: list[AppointmentAddonRead] = []

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class StatusUpdate(BaseModel):
    status: AppointmentStatus
    cancellation_reason: Optional[str] = None
