# backend/groombook/routers/appointments.py
"""
Appointment endpoints.

POST /appointments              - Reserve a slot (201, 200 on idempotent replay, 409 on conflict)
GET  /appointments/{id}         - Read an appointment
POST /appointments/{id}/status  - Staff status transition
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Appointments as DBAppointments
from ..schemas.appointments import (
    AppointmentCreate,
    AppointmentCreated,
    AppointmentRead,
    StatusUpdate,
)
from ..services.booking import (
    Conflict,
    ReservationCoordinator,
    ReservationRequest,
    Reserved,
    get_reservation_coordinator,
    transition_status,
)
from ..services.booking.errors import AppointmentNotFound, InvalidTransition, StorageFailure

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.post("/", response_model=AppointmentCreated, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: AppointmentCreate,
    response: Response,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    coordinator: ReservationCoordinator = Depends(get_reservation_coordinator),
):
    """
    Reserve a slot.

    A 409 means the slot was lost to another booking (SLOT_TAKEN: pick a
    new slot) or the day was busy (TIMEOUT: the same request may be resent).
    """
    request = ReservationRequest(
        customer_id=data.customer_id,
        pet_id=data.pet_id,
        service_id=data.service_id,
        start=data.start,
        addon_ids=tuple(data.addon_ids),
        total_price=data.total_price,
        groomer_id=data.groomer_id,
        notes=data.notes,
        idempotency_key=data.idempotency_key or idempotency_key,
    )

    try:
        result = coordinator.reserve_with_retry(db, request)
    except StorageFailure:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service temporarily unavailable",
        )

    if isinstance(result, Conflict):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "code": result.reason.value,
                "message": result.message,
                "retryable": result.retryable_as_is,
            },
        )

    if not isinstance(result, Reserved):
        raise HTTPException(
            status_code=422,
            detail={"errors": result.errors},
        )

    if result.replayed:
        response.status_code = status.HTTP_200_OK

    appointment = result.appointment
    return AppointmentCreated(
        appointment_id=appointment.id,
        reference=appointment.booking_reference,
        scheduled_at=appointment.scheduled_at,
        status=appointment.status,
        replayed=result.replayed,
    )


@router.get("/{id}", response_model=AppointmentRead)
def get_appointment(id: int, db: Session = Depends(get_db)):
    obj = db.get(DBAppointments, id)
    if not obj:
        raise HTTPException(status_code=404, detail="Not found")
    return obj


@router.post("/{id}/status", response_model=AppointmentRead)
def update_appointment_status(
    id: int,
    data: StatusUpdate,
    db: Session = Depends(get_db),
):
    try:
        return transition_status(db, id, data.status, data.cancellation_reason)
    except AppointmentNotFound:
        raise HTTPException(status_code=404, detail="Not found")
    except InvalidTransition as e:
        raise HTTPException(status_code=400, detail=str(e))
