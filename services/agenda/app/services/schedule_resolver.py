"""Resolve o expediente efetivo de um estabelecimento em uma data.

Ordem de precedência:

1. ``DailySchedule`` ativo para o dia da semana;
2. padrão de ``CompanySettings`` (dias úteis, horário e almoço);
3. sem nenhum dos dois, o dia é tratado como fechado.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, time
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.business import CompanySettings, DailySchedule

logger = logging.getLogger(__name__)

SOURCE_DAILY = "daily_schedule"
SOURCE_SETTINGS = "company_settings"
SOURCE_NONE = "none"


@dataclass(frozen=True)
class EffectiveSchedule:
    is_open: bool
    open_time: Optional[time] = None
    close_time: Optional[time] = None
    lunch_enabled: bool = False
    lunch_start: Optional[time] = None
    lunch_end: Optional[time] = None
    source: str = SOURCE_NONE
    reason: Optional[str] = None

    @classmethod
    def closed(cls, reason: str, source: str = SOURCE_NONE) -> "EffectiveSchedule":
        return cls(is_open=False, source=source, reason=reason)


def weekday_index(target_date: date) -> int:
    """Dia da semana no formato de ``daily_schedules``: 0 = domingo ... 6 = sábado."""
    return target_date.isoweekday() % 7


def _lunch(enabled: bool, start: Optional[time], end: Optional[time]) -> tuple[bool, Optional[time], Optional[time]]:
    if enabled and start is not None and end is not None and start < end:
        return True, start, end
    return False, None, None


def resolve_from_rows(
    target_date: date,
    daily: Optional[DailySchedule],
    settings: Optional[CompanySettings],
    *,
    today: Optional[date] = None,
) -> EffectiveSchedule:
    """Versão pura da resolução, sobre linhas já carregadas."""
    if settings is not None and today is not None and target_date == today and not settings.same_day_booking:
        return EffectiveSchedule.closed("same_day_booking_disabled", SOURCE_SETTINGS)

    if daily is not None and daily.is_active:
        if daily.end_time <= daily.start_time:
            return EffectiveSchedule.closed("invalid_hours", SOURCE_DAILY)
        enabled, lunch_start, lunch_end = _lunch(daily.has_lunch_break, daily.lunch_start, daily.lunch_end)
        return EffectiveSchedule(
            is_open=True,
            open_time=daily.start_time,
            close_time=daily.end_time,
            lunch_enabled=enabled,
            lunch_start=lunch_start,
            lunch_end=lunch_end,
            source=SOURCE_DAILY,
        )

    if settings is None:
        return EffectiveSchedule.closed("no_configuration")

    # working_days usa ISO: 1 = segunda ... 7 = domingo
    working_days = {int(day) for day in (settings.working_days or [])}
    if target_date.isoweekday() not in working_days:
        return EffectiveSchedule.closed("not_a_working_day", SOURCE_SETTINGS)

    if settings.working_hours_end <= settings.working_hours_start:
        return EffectiveSchedule.closed("invalid_hours", SOURCE_SETTINGS)

    enabled, lunch_start, lunch_end = _lunch(
        settings.lunch_break_enabled,
        settings.lunch_start_time,
        settings.lunch_end_time,
    )
    return EffectiveSchedule(
        is_open=True,
        open_time=settings.working_hours_start,
        close_time=settings.working_hours_end,
        lunch_enabled=enabled,
        lunch_start=lunch_start,
        lunch_end=lunch_end,
        source=SOURCE_SETTINGS,
    )


def load_company_settings(db: Session, business_id: UUID) -> Optional[CompanySettings]:
    return db.query(CompanySettings).filter(CompanySettings.business_id == business_id).first()


def resolve_schedule(
    db: Session,
    business_id: UUID,
    target_date: date,
    *,
    today: Optional[date] = None,
    settings: Optional[CompanySettings] = None,
) -> EffectiveSchedule:
    """Carrega as linhas e resolve o expediente; falhas de leitura fecham o dia."""
    try:
        daily = (
            db.query(DailySchedule)
            .filter(DailySchedule.business_id == business_id)
            .filter(DailySchedule.day_of_week == weekday_index(target_date))
            .filter(DailySchedule.is_active.is_(True))
            .first()
        )
        if settings is None:
            settings = load_company_settings(db, business_id)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Falha ao carregar expediente de business_id=%s em %s", business_id, target_date)
        return EffectiveSchedule.closed("store_error")

    schedule = resolve_from_rows(target_date, daily, settings, today=today)
    logger.debug(
        "Expediente de business_id=%s em %s: aberto=%s fonte=%s",
        business_id,
        target_date,
        schedule.is_open,
        schedule.source,
    )
    return schedule
