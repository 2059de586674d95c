from datetime import date, datetime
from typing import List, Optional
from uuid import UUID
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from app.errors import (
    AppointmentNotFound,
    BusinessNotFound,
    InvalidBookingInput,
    InvalidStatusTransition,
    ServiceNotFound,
    SlugAlreadyTaken,
)
from app.models.appointment import Appointment, AppointmentEvent, AppointmentStatus
from app.models.business import Business, CompanySettings, DailySchedule, Service
from app.schemas.business_schema import (
    BusinessCreate,
    BusinessUpdate,
    CompanySettingsBase,
    CompanySettingsUpdate,
    DailyScheduleIn,
    ServiceCreate,
    ServiceUpdate,
)
from app.services.notifications import AvailabilityNotifier, announce_appointment_change
from shared import EventPublisher
from shared.cache import AvailabilityCache


# --- estabelecimentos -------------------------------------------------------

def get_business(db: Session, business_id: UUID) -> Business:
    business = db.query(Business).filter(Business.id == business_id).first()
    if not business:
        raise BusinessNotFound()
    return business


def get_business_by_slug(db: Session, slug: str) -> Business:
    business = db.query(Business).filter(Business.slug == slug.lower()).first()
    if not business:
        raise BusinessNotFound()
    return business


def _ensure_slug_free(db: Session, slug: str, ignore_id: Optional[UUID] = None) -> None:
    query = db.query(Business.id).filter(Business.slug == slug)
    if ignore_id:
        query = query.filter(Business.id != ignore_id)
    if query.first():
        raise SlugAlreadyTaken(slug)


def create_business(db: Session, payload: BusinessCreate) -> Business:
    _ensure_slug_free(db, payload.slug)
    business = Business(
        name=payload.name,
        slug=payload.slug,
        phone=payload.phone,
        is_admin=payload.is_admin,
    )
    business.settings = CompanySettings(**payload.settings.model_dump())
    db.add(business)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise SlugAlreadyTaken(payload.slug) from exc
    db.refresh(business)
    return business


def update_business(db: Session, business_id: UUID, payload: BusinessUpdate) -> Business:
    business = get_business(db, business_id)
    update_data = payload.model_dump(exclude_unset=True)
    if update_data.get("slug"):
        _ensure_slug_free(db, update_data["slug"], ignore_id=business_id)

    for field, value in update_data.items():
        setattr(business, field, value)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise SlugAlreadyTaken(update_data.get("slug", business.slug)) from exc
    db.refresh(business)
    return business


def get_settings(db: Session, business_id: UUID) -> Optional[CompanySettings]:
    return db.query(CompanySettings).filter(CompanySettings.business_id == business_id).first()


def update_settings(
    db: Session,
    business_id: UUID,
    payload: CompanySettingsUpdate,
    cache: Optional[AvailabilityCache] = None,
) -> CompanySettings:
    business = get_business(db, business_id)
    settings = business.settings
    if settings is None:
        settings = CompanySettings(business_id=business.id, **CompanySettingsBase().model_dump())
        db.add(settings)

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(settings, field, value)

    # o schema parcial não enxerga os dois lados de cada intervalo
    if settings.working_hours_end <= settings.working_hours_start:
        db.rollback()
        raise InvalidBookingInput("working_hours_end deve ser maior que working_hours_start")
    if settings.lunch_break_enabled and not (
        settings.lunch_start_time and settings.lunch_end_time and settings.lunch_start_time < settings.lunch_end_time
    ):
        db.rollback()
        raise InvalidBookingInput("Intervalo de almoço inválido")

    db.commit()
    db.refresh(settings)
    if cache is not None:
        cache.invalidate(business.id)
    return settings


# --- horários por dia da semana ---------------------------------------------

def list_daily_schedules(db: Session, business_id: UUID) -> List[DailySchedule]:
    get_business(db, business_id)
    return (
        db.query(DailySchedule)
        .filter(DailySchedule.business_id == business_id)
        .order_by(DailySchedule.day_of_week.asc())
        .all()
    )


def upsert_daily_schedule(
    db: Session,
    business_id: UUID,
    day_of_week: int,
    payload: DailyScheduleIn,
    cache: Optional[AvailabilityCache] = None,
) -> DailySchedule:
    get_business(db, business_id)
    schedule = (
        db.query(DailySchedule)
        .filter(DailySchedule.business_id == business_id)
        .filter(DailySchedule.day_of_week == day_of_week)
        .first()
    )
    if schedule is None:
        schedule = DailySchedule(business_id=business_id, day_of_week=day_of_week)
        db.add(schedule)

    for field, value in payload.model_dump().items():
        setattr(schedule, field, value)

    db.commit()
    db.refresh(schedule)
    if cache is not None:
        cache.invalidate(business_id)
    return schedule


def delete_daily_schedule(
    db: Session,
    business_id: UUID,
    day_of_week: int,
    cache: Optional[AvailabilityCache] = None,
) -> bool:
    deleted = (
        db.query(DailySchedule)
        .filter(DailySchedule.business_id == business_id)
        .filter(DailySchedule.day_of_week == day_of_week)
        .delete(synchronize_session=False)
    )
    db.commit()
    if cache is not None and deleted:
        cache.invalidate(business_id)
    return bool(deleted)


# --- serviços ----------------------------------------------------------------

def create_service(db: Session, business_id: UUID, payload: ServiceCreate) -> Service:
    get_business(db, business_id)
    service = Service(business_id=business_id, **payload.model_dump())
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


def list_services(db: Session, business_id: UUID, include_inactive: bool = False) -> List[Service]:
    query = db.query(Service).filter(Service.business_id == business_id)
    if not include_inactive:
        query = query.filter(Service.is_active.is_(True))
    return query.order_by(Service.name.asc()).all()


def get_active_service(db: Session, business_id: UUID, service_id: UUID) -> Service:
    service = (
        db.query(Service)
        .filter(Service.id == service_id)
        .filter(Service.business_id == business_id)
        .filter(Service.is_active.is_(True))
        .first()
    )
    if not service:
        raise ServiceNotFound()
    return service


def update_service(db: Session, service_id: UUID, payload: ServiceUpdate) -> Service:
    service = db.query(Service).filter(Service.id == service_id).first()
    if not service:
        raise ServiceNotFound("Serviço não encontrado")
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(service, field, value)
    db.commit()
    db.refresh(service)
    return service


# --- agendamentos ------------------------------------------------------------

def appointment_payload(appointment: Appointment, **extra) -> dict:
    return {
        "appointment_id": str(appointment.id),
        "date": appointment.appointment_date.isoformat(),
        "time": appointment.appointment_time.strftime("%H:%M"),
        "duration": appointment.duration,
        "status": appointment.status,
        **extra,
    }


def record_event(db: Session, appointment: Appointment, event_type: str, payload: dict) -> None:
    db.add(
        AppointmentEvent(
            appointment_id=appointment.id,
            business_id=appointment.business_id,
            event_type=event_type,
            payload=payload,
        )
    )


def announce(
    appointment: Appointment,
    event_type: str,
    payload: dict,
    *,
    publisher: Optional[EventPublisher] = None,
    cache: Optional[AvailabilityCache] = None,
    notifier: Optional[AvailabilityNotifier] = None,
) -> None:
    announce_appointment_change(
        event_type,
        payload,
        business_id=appointment.business_id,
        day=appointment.appointment_date,
        publisher=publisher,
        cache=cache,
        notifier=notifier,
    )


def get_appointment(db: Session, appointment_id: UUID) -> Appointment:
    appointment = (
        db.query(Appointment)
        .options(joinedload(Appointment.client))
        .filter(Appointment.id == appointment_id)
        .first()
    )
    if not appointment:
        raise AppointmentNotFound()
    return appointment


def list_appointments(
    db: Session,
    business_id: UUID,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[str] = None,
    client_id: Optional[UUID] = None,
) -> List[Appointment]:
    query = (
        db.query(Appointment)
        .options(joinedload(Appointment.client))
        .filter(Appointment.business_id == business_id)
    )
    if start_date:
        query = query.filter(Appointment.appointment_date >= start_date)
    if end_date:
        query = query.filter(Appointment.appointment_date <= end_date)
    if status:
        query = query.filter(Appointment.status == status)
    if client_id:
        query = query.filter(Appointment.client_id == client_id)
    return query.order_by(Appointment.appointment_date.asc(), Appointment.appointment_time.asc()).all()


def update_appointment_status(
    db: Session,
    appointment_id: UUID,
    status: str,
    *,
    publisher: Optional[EventPublisher] = None,
    cache: Optional[AvailabilityCache] = None,
    notifier: Optional[AvailabilityNotifier] = None,
) -> Appointment:
    appointment = get_appointment(db, appointment_id)
    if status == appointment.status:
        return appointment
    if status not in AppointmentStatus.TRANSITIONS.get(appointment.status, set()):
        raise InvalidStatusTransition(
            f"Não é possível mudar de '{appointment.status}' para '{status}'.",
            current=appointment.status,
            requested=status,
        )

    previous = appointment.status
    appointment.status = status
    payload = appointment_payload(appointment, previous_status=previous)
    record_event(db, appointment, "appointment.status_changed", payload)
    db.commit()
    db.refresh(appointment)

    announce(appointment, "appointment.status_changed", payload, publisher=publisher, cache=cache, notifier=notifier)
    return appointment


def cancel_appointment(
    db: Session,
    appointment_id: UUID,
    reason: Optional[str],
    now: datetime,
    *,
    publisher: Optional[EventPublisher] = None,
    cache: Optional[AvailabilityCache] = None,
    notifier: Optional[AvailabilityNotifier] = None,
) -> Appointment:
    """Cancelamento lógico: a linha fica, o horário é liberado."""
    appointment = get_appointment(db, appointment_id)
    if AppointmentStatus.CANCELLED not in AppointmentStatus.TRANSITIONS.get(appointment.status, set()):
        raise InvalidStatusTransition(
            f"Agendamento com status '{appointment.status}' não pode ser cancelado.",
            current=appointment.status,
            requested=AppointmentStatus.CANCELLED,
        )

    appointment.status = AppointmentStatus.CANCELLED
    appointment.cancelled_at = now
    appointment.cancellation_reason = reason
    payload = appointment_payload(appointment, reason=reason)
    record_event(db, appointment, "appointment.cancelled", payload)
    db.commit()
    db.refresh(appointment)

    announce(appointment, "appointment.cancelled", payload, publisher=publisher, cache=cache, notifier=notifier)
    return appointment


def expire_stale_pending(
    db: Session,
    business_id: UUID,
    today: date,
    now: datetime,
    *,
    publisher: Optional[EventPublisher] = None,
    cache: Optional[AvailabilityCache] = None,
    notifier: Optional[AvailabilityNotifier] = None,
) -> List[Appointment]:
    """Cancela agendamentos pendentes com data anterior a hoje."""
    stale = (
        db.query(Appointment)
        .filter(Appointment.business_id == business_id)
        .filter(Appointment.status == AppointmentStatus.PENDING)
        .filter(Appointment.appointment_date < today)
        .all()
    )
    if not stale:
        return []

    reason = "Expirado: pendente sem confirmação até a data do atendimento"
    for appointment in stale:
        appointment.status = AppointmentStatus.CANCELLED
        appointment.cancelled_at = now
        appointment.cancellation_reason = reason
        record_event(db, appointment, "appointment.cancelled", appointment_payload(appointment, reason=reason))
    db.commit()

    for appointment in stale:
        announce(
            appointment,
            "appointment.cancelled",
            appointment_payload(appointment, reason=reason),
            publisher=publisher,
            cache=cache,
            notifier=notifier,
        )
    return stale
