"""Detecção de sobreposição entre um horário candidato e os agendamentos do dia."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from app.models.appointment import Appointment, AppointmentStatus
from shared.civil_time import minutes_to_label, time_to_minutes

logger = logging.getLogger(__name__)

DEFAULT_APPOINTMENT_DURATION = 60


@dataclass(frozen=True)
class ExistingAppointment:
    """Agendamento já gravado, em minutos desde a meia-noite."""

    start: int
    duration: int
    appointment_id: Optional[UUID] = None
    service_name: Optional[str] = None
    client_name: Optional[str] = None

    @property
    def end(self) -> int:
        return self.start + self.duration

    def to_details(self) -> dict:
        return {
            "appointment_id": str(self.appointment_id) if self.appointment_id else None,
            "time": minutes_to_label(self.start),
            "duration": self.duration,
            "service_name": self.service_name,
            "client_name": self.client_name,
        }


@dataclass
class ConflictResult:
    has_conflict: bool
    conflict: Optional[ExistingAppointment] = None
    store_error: bool = False
    details: dict = field(default_factory=dict)


def overlaps(start_a: int, duration_a: int, start_b: int, duration_b: int) -> bool:
    """Intervalos semiabertos [a, a+d) e [b, b+e) se sobrepõem sse a < b+e e b < a+d."""
    return start_a < start_b + duration_b and start_b < start_a + duration_a


def find_conflict(
    start: int,
    duration: int,
    existing: Iterable[ExistingAppointment],
) -> Optional[ExistingAppointment]:
    for appointment in existing:
        if overlaps(start, duration, appointment.start, appointment.duration):
            return appointment
    return None


def _to_existing(appointment: Appointment) -> ExistingAppointment:
    duration = appointment.duration
    if not duration and appointment.service is not None:
        duration = appointment.service.duration
    return ExistingAppointment(
        start=time_to_minutes(appointment.appointment_time),
        duration=duration or DEFAULT_APPOINTMENT_DURATION,
        appointment_id=appointment.id,
        service_name=appointment.service.name if appointment.service is not None else None,
        client_name=appointment.client.name if appointment.client is not None else None,
    )


def load_existing_by_date(
    db: Session,
    business_id: UUID,
    start_date: date,
    end_date: date,
    *,
    exclude_id: Optional[UUID] = None,
) -> Dict[date, List[ExistingAppointment]]:
    """Agendamentos não cancelados entre ``start_date`` e ``end_date`` (inclusive), por data.

    Erros do banco propagam; quem chama decide a política de falha.
    """
    query = (
        db.query(Appointment)
        .options(joinedload(Appointment.client), joinedload(Appointment.service))
        .filter(Appointment.business_id == business_id)
        .filter(Appointment.appointment_date >= start_date)
        .filter(Appointment.appointment_date <= end_date)
        .filter(Appointment.status != AppointmentStatus.CANCELLED)
    )
    if exclude_id is not None:
        query = query.filter(Appointment.id != exclude_id)

    by_date: Dict[date, List[ExistingAppointment]] = defaultdict(list)
    for appointment in query.order_by(Appointment.appointment_time.asc()).all():
        by_date[appointment.appointment_date].append(_to_existing(appointment))
    return dict(by_date)


def load_existing_appointments(
    db: Session,
    business_id: UUID,
    target_date: date,
    *,
    exclude_id: Optional[UUID] = None,
) -> List[ExistingAppointment]:
    return load_existing_by_date(db, business_id, target_date, target_date, exclude_id=exclude_id).get(
        target_date, []
    )


def check_slot_conflict(
    db: Session,
    business_id: UUID,
    target_date: date,
    start: int,
    duration: int,
    *,
    exclude_id: Optional[UUID] = None,
) -> ConflictResult:
    """Checagem autoritativa antes do insert.

    Se a consulta falhar o resultado é conflito com ``store_error=True``:
    na dúvida, bloquear a reserva.
    """
    try:
        existing = load_existing_appointments(db, business_id, target_date, exclude_id=exclude_id)
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "Falha ao consultar agendamentos de business_id=%s em %s; bloqueando horário",
            business_id,
            target_date,
        )
        return ConflictResult(has_conflict=True, store_error=True)

    collision = find_conflict(start, duration, existing)
    if collision is None:
        return ConflictResult(has_conflict=False)

    logger.info(
        "Conflito em business_id=%s %s %s: ocupado por %s",
        business_id,
        target_date,
        minutes_to_label(start),
        collision.appointment_id,
    )
    return ConflictResult(has_conflict=True, conflict=collision, details=collision.to_details())
