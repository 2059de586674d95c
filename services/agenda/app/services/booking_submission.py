"""Caminho de escrita da reserva.

Ordem fixa: validação -> limites -> conflito -> cliente -> insert. Os limites
vêm primeiro porque são leitura barata; a checagem de conflito fica o mais
perto possível do insert para encurtar a janela de corrida. No Postgres a
exclusion constraint ``ex_appointments_no_overlap`` é a última barreira.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import BookingLimitExceeded, InvalidBookingInput, SlotConflict, StoreUnavailable
from app.models.appointment import APPOINTMENT_OVERLAP_CONSTRAINT, Appointment
from app.models.business import Business, CompanySettings
from app.routers import crud
from app.schemas.appointment_schema import AppointmentCreate
from app.services.booking_limits import check_booking_limits
from app.services.client_upsert import upsert_client
from app.services.conflict_checker import check_slot_conflict
from app.services.notifications import AvailabilityNotifier
from app.services.phone import is_usable_key, normalize_phone
from app.services.schedule_resolver import resolve_schedule
from shared import EventPublisher
from shared.cache import AvailabilityCache
from shared.civil_time import time_to_minutes
from shared.config import BookingPolicyConfig

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = "Este horário não está mais disponível. Escolha outro horário."


@dataclass
class BookingOutcome:
    appointment: Appointment
    created: bool
    client_is_new: bool = False


def validate_booking_window(
    payload: AppointmentCreate,
    settings: Optional[CompanySettings],
    now: datetime,
    buffer_minutes: int = 0,
) -> None:
    """Data no passado ou além do limite de antecedência é erro do usuário.

    Hoje vale a mesma margem usada na listagem: início em até ``buffer_minutes``
    a partir de agora é recusado.
    """
    today = now.date()
    if payload.appointment_date < today:
        raise InvalidBookingInput("Não é possível agendar em uma data passada.")

    if payload.appointment_date == today:
        current_minutes = now.hour * 60 + now.minute
        if time_to_minutes(payload.appointment_time) <= current_minutes + buffer_minutes:
            raise InvalidBookingInput(
                "Este horário já passou ou está muito próximo. Escolha um horário futuro.",
                buffer_minutes=buffer_minutes,
            )

    advance_days = settings.advance_booking_limit if settings is not None else None
    if advance_days is not None and payload.appointment_date > today + timedelta(days=advance_days):
        raise InvalidBookingInput(
            f"Agendamentos são permitidos com até {advance_days} dias de antecedência.",
            advance_booking_limit=advance_days,
        )


def _validate_against_schedule(
    db: Session,
    business: Business,
    settings: Optional[CompanySettings],
    payload: AppointmentCreate,
    duration: int,
    now: datetime,
) -> None:
    schedule = resolve_schedule(db, business.id, payload.appointment_date, today=now.date(), settings=settings)
    if not schedule.is_open:
        raise InvalidBookingInput("O estabelecimento não atende nesta data.", reason=schedule.reason)

    start = time_to_minutes(payload.appointment_time)
    open_at = time_to_minutes(schedule.open_time)
    close_at = time_to_minutes(schedule.close_time)
    if start < open_at or start + duration > close_at:
        raise InvalidBookingInput("Horário fora do expediente do estabelecimento.")

    if schedule.lunch_enabled:
        lunch_start = time_to_minutes(schedule.lunch_start)
        lunch_end = time_to_minutes(schedule.lunch_end)
        if lunch_start <= start < lunch_end:
            raise InvalidBookingInput("Horário dentro do intervalo de almoço.")


def _find_by_idempotency_key(db: Session, business_id: UUID, key: str) -> Optional[Appointment]:
    return (
        db.query(Appointment)
        .filter(Appointment.business_id == business_id)
        .filter(Appointment.idempotency_key == key)
        .first()
    )


def submit_booking(
    db: Session,
    payload: AppointmentCreate,
    *,
    now: datetime,
    policy: BookingPolicyConfig,
    publisher: Optional[EventPublisher] = None,
    cache: Optional[AvailabilityCache] = None,
    notifier: Optional[AvailabilityNotifier] = None,
) -> BookingOutcome:
    """Registra uma reserva. ``now`` já vem no fuso civil do estabelecimento."""
    business = crud.get_business(db, payload.business_id)
    settings = business.settings

    normalized_phone = normalize_phone(payload.client_phone)
    if not is_usable_key(normalized_phone):
        raise InvalidBookingInput("Telefone inválido. Informe DDD e número.", phone=payload.client_phone)

    service = None
    if payload.service_id is not None:
        service = crud.get_active_service(db, business.id, payload.service_id)

    if service is not None:
        duration = service.duration
    elif payload.duration:
        duration = payload.duration
    else:
        duration = settings.appointment_interval if settings is not None else 60

    validate_booking_window(payload, settings, now, buffer_minutes=policy.past_slot_buffer_minutes)

    if payload.idempotency_key:
        previous = _find_by_idempotency_key(db, business.id, payload.idempotency_key)
        if previous is not None:
            logger.info("Reserva repetida com idempotency_key; devolvendo %s", previous.id)
            return BookingOutcome(appointment=previous, created=False)

    _validate_against_schedule(db, business, settings, payload, duration, now)

    try:
        limits = check_booking_limits(
            db,
            business.id,
            normalized_phone,
            today=now.date(),
            is_admin=business.is_admin,
            settings=settings,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Falha ao verificar limites de business_id=%s", business.id)
        raise StoreUnavailable() from exc

    if not limits.can_book:
        raise BookingLimitExceeded(limits.message, limits.as_dict())

    start = time_to_minutes(payload.appointment_time)
    conflict = check_slot_conflict(db, business.id, payload.appointment_date, start, duration)
    if conflict.store_error:
        raise StoreUnavailable()
    if conflict.has_conflict:
        raise SlotConflict(SLOT_TAKEN_MESSAGE, conflict.details)

    upsert = upsert_client(
        db,
        business.id,
        payload.client_name,
        payload.client_phone,
        email=payload.client_email,
        max_attempts=policy.upsert_max_attempts,
        backoff_seconds=policy.upsert_backoff_seconds,
    )

    appointment = Appointment(
        business_id=business.id,
        client_id=upsert.client.id,
        service_id=service.id if service is not None else None,
        appointment_date=payload.appointment_date,
        appointment_time=payload.appointment_time,
        duration=duration,
        status=payload.status,
        notes=payload.notes,
        idempotency_key=payload.idempotency_key,
    )
    db.add(appointment)
    try:
        db.flush()
        event_payload = crud.appointment_payload(appointment, client_id=str(upsert.client.id))
        crud.record_event(db, appointment, "appointment.created", event_payload)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        message = str(getattr(exc, "orig", exc))
        if APPOINTMENT_OVERLAP_CONSTRAINT in message:
            logger.warning("Exclusion constraint barrou reserva sobreposta em business_id=%s", business.id)
            raise SlotConflict(SLOT_TAKEN_MESSAGE) from exc
        if payload.idempotency_key:
            previous = _find_by_idempotency_key(db, business.id, payload.idempotency_key)
            if previous is not None:
                return BookingOutcome(appointment=previous, created=False)
        raise

    db.refresh(appointment)
    logger.info(
        "Agendamento %s criado: business_id=%s %s %s (%d min)",
        appointment.id,
        business.id,
        appointment.appointment_date,
        payload.appointment_time.strftime("%H:%M"),
        duration,
    )

    crud.announce(
        appointment,
        "appointment.created",
        event_payload,
        publisher=publisher,
        cache=cache,
        notifier=notifier,
    )
    return BookingOutcome(appointment=appointment, created=True, client_is_new=upsert.is_new)
