from datetime import date
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session
from app.core.database import get_db
from app.core.state import business_now, get_cache, get_notifier, get_policy, get_publisher
from app.errors import InvalidBookingInput
from app.models.appointment import AppointmentStatus
from app.schemas.appointment_schema import (
    AppointmentCancelRequest,
    AppointmentCreate,
    AppointmentOut,
    AppointmentStatusUpdate,
    BookingLimitsOut,
)
from app.services.booking_limits import check_booking_limits
from app.services.booking_submission import submit_booking
from app.services.phone import is_usable_key, normalize_phone
from . import crud


router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=AppointmentOut, status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: AppointmentCreate,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
):
    business = crud.get_business(db, payload.business_id)
    outcome = submit_booking(
        db,
        payload,
        now=business_now(request, business),
        policy=get_policy(request),
        publisher=get_publisher(request),
        cache=get_cache(request),
        notifier=get_notifier(request),
    )
    if not outcome.created:
        # mesma idempotency_key: devolve o que já existe
        response.status_code = status.HTTP_200_OK
    return outcome.appointment


@router.get("/", response_model=List[AppointmentOut])
def list_bookings(
    business_id: UUID = Query(...),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    status_param: Optional[str] = Query(None, alias="status"),
    client_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
):
    if status_param and status_param not in AppointmentStatus.ALL:
        raise InvalidBookingInput("Status inválido")
    crud.get_business(db, business_id)
    return crud.list_appointments(
        db,
        business_id,
        start_date=start_date,
        end_date=end_date,
        status=status_param,
        client_id=client_id,
    )


@router.get("/limits", response_model=BookingLimitsOut)
def preview_limits(
    request: Request,
    business_id: UUID = Query(...),
    phone: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
):
    """Mostra se o telefone ainda pode agendar, sem agendar."""
    business = crud.get_business(db, business_id)
    normalized = normalize_phone(phone)
    if not is_usable_key(normalized):
        raise InvalidBookingInput("Telefone inválido. Informe DDD e número.", phone=phone)
    decision = check_booking_limits(
        db,
        business.id,
        normalized,
        today=business_now(request, business).date(),
        is_admin=business.is_admin,
        settings=business.settings,
    )
    return decision.as_dict()


@router.post("/expire-pending", response_model=List[AppointmentOut])
def expire_pending(
    request: Request,
    business_id: UUID = Query(...),
    db: Session = Depends(get_db),
):
    business = crud.get_business(db, business_id)
    now = business_now(request, business)
    return crud.expire_stale_pending(
        db,
        business.id,
        now.date(),
        now,
        publisher=get_publisher(request),
        cache=get_cache(request),
        notifier=get_notifier(request),
    )


@router.get("/{appointment_id}", response_model=AppointmentOut)
def get_booking(appointment_id: UUID, db: Session = Depends(get_db)):
    return crud.get_appointment(db, appointment_id)


@router.patch("/{appointment_id}/status", response_model=AppointmentOut)
def update_booking_status(
    appointment_id: UUID,
    payload: AppointmentStatusUpdate,
    request: Request,
    db: Session = Depends(get_db),
):
    if payload.status == AppointmentStatus.CANCELLED:
        appointment = crud.get_appointment(db, appointment_id)
        return crud.cancel_appointment(
            db,
            appointment_id,
            None,
            business_now(request, crud.get_business(db, appointment.business_id)),
            publisher=get_publisher(request),
            cache=get_cache(request),
            notifier=get_notifier(request),
        )
    return crud.update_appointment_status(
        db,
        appointment_id,
        payload.status,
        publisher=get_publisher(request),
        cache=get_cache(request),
        notifier=get_notifier(request),
    )


@router.patch("/{appointment_id}/cancel", response_model=AppointmentOut)
def cancel_booking(
    appointment_id: UUID,
    request: Request,
    payload: Optional[AppointmentCancelRequest] = None,
    db: Session = Depends(get_db),
):
    appointment = crud.get_appointment(db, appointment_id)
    business = crud.get_business(db, appointment.business_id)
    return crud.cancel_appointment(
        db,
        appointment_id,
        payload.reason if payload else None,
        business_now(request, business),
        publisher=get_publisher(request),
        cache=get_cache(request),
        notifier=get_notifier(request),
    )
