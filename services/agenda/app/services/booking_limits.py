"""Limites de agendamento por cliente: simultâneos e mensais."""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.appointment import Appointment, AppointmentStatus
from app.models.business import CompanySettings
from app.models.client import Client

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIMULTANEOUS = 3


@dataclass(frozen=True)
class LimitCheck:
    can_book: bool
    current_count: int
    limit: int

    def as_dict(self) -> dict:
        return {"canBook": self.can_book, "currentCount": self.current_count, "limit": self.limit}


@dataclass(frozen=True)
class BookingLimitDecision:
    can_book: bool
    simultaneous: LimitCheck
    monthly: LimitCheck

    def as_dict(self) -> dict:
        return {
            "canBook": self.can_book,
            "simultaneousLimit": self.simultaneous.as_dict(),
            "monthlyLimit": self.monthly.as_dict(),
        }

    @property
    def message(self) -> str:
        if not self.simultaneous.can_book:
            return (
                f"Você já possui {self.simultaneous.current_count} agendamento(s) ativo(s). "
                f"O limite é de {self.simultaneous.limit} agendamento(s) simultâneo(s)."
            )
        if not self.monthly.can_book:
            return (
                f"Você já fez {self.monthly.current_count} agendamento(s) este mês. "
                f"O limite mensal é de {self.monthly.limit}."
            )
        return "Agendamento permitido."


UNLIMITED = BookingLimitDecision(
    can_book=True,
    simultaneous=LimitCheck(True, 0, 0),
    monthly=LimitCheck(True, 0, 0),
)


def month_bounds(today: date) -> tuple[date, date]:
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=1), today.replace(day=last_day)


def _client_appointments(db: Session, business_id: UUID, normalized_phone: str):
    client_ids = (
        db.query(Client.id)
        .filter(Client.business_id == business_id)
        .filter(Client.normalized_phone == normalized_phone)
    )
    return (
        db.query(func.count(Appointment.id))
        .filter(Appointment.business_id == business_id)
        .filter(Appointment.client_id.in_(client_ids.scalar_subquery()))
    )


def count_active_appointments(db: Session, business_id: UUID, normalized_phone: str, today: date) -> int:
    return (
        _client_appointments(db, business_id, normalized_phone)
        .filter(Appointment.status.in_(AppointmentStatus.ACTIVE))
        .filter(Appointment.appointment_date >= today)
        .scalar()
        or 0
    )


def count_monthly_appointments(db: Session, business_id: UUID, normalized_phone: str, today: date) -> int:
    first_day, last_day = month_bounds(today)
    return (
        _client_appointments(db, business_id, normalized_phone)
        .filter(Appointment.status != AppointmentStatus.CANCELLED)
        .filter(Appointment.appointment_date >= first_day)
        .filter(Appointment.appointment_date <= last_day)
        .scalar()
        or 0
    )


def check_booking_limits(
    db: Session,
    business_id: UUID,
    normalized_phone: str,
    *,
    today: date,
    is_admin: bool = False,
    settings: Optional[CompanySettings] = None,
) -> BookingLimitDecision:
    """Leitura pura: conta os agendamentos do cliente e compara com os tetos.

    Estabelecimento admin não tem limite. Um telefone sem cliente cadastrado
    tem contagem zero e passa nos dois testes.
    """
    if is_admin:
        return UNLIMITED

    if settings is None:
        settings = db.query(CompanySettings).filter(CompanySettings.business_id == business_id).first()

    max_simultaneous = DEFAULT_MAX_SIMULTANEOUS
    monthly_limit = None
    if settings is not None:
        max_simultaneous = settings.max_simultaneous_appointments
        monthly_limit = settings.monthly_appointments_limit

    active = count_active_appointments(db, business_id, normalized_phone, today)
    if max_simultaneous and max_simultaneous > 0:
        simultaneous = LimitCheck(active < max_simultaneous, active, max_simultaneous)
    else:
        simultaneous = LimitCheck(True, active, 0)

    if monthly_limit and monthly_limit > 0:
        used = count_monthly_appointments(db, business_id, normalized_phone, today)
        monthly = LimitCheck(used < monthly_limit, used, monthly_limit)
    else:
        monthly = LimitCheck(True, 0, 0)

    decision = BookingLimitDecision(
        can_book=simultaneous.can_book and monthly.can_book,
        simultaneous=simultaneous,
        monthly=monthly,
    )
    if not decision.can_book:
        logger.info(
            "Limite atingido para business_id=%s: simultaneos=%s/%s mensal=%s/%s",
            business_id,
            simultaneous.current_count,
            simultaneous.limit,
            monthly.current_count,
            monthly.limit,
        )
    return decision
