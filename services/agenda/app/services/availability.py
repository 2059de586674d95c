"""Consultas de disponibilidade: horários do dia, detalhes, datas abertas e estatísticas."""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import InvalidBookingInput
from app.models.business import Business, CompanySettings, DailySchedule
from app.routers import crud
from app.services.conflict_checker import load_existing_appointments, load_existing_by_date
from app.services.schedule_resolver import EffectiveSchedule, resolve_from_rows, resolve_schedule, weekday_index
from app.services.slot_generator import describe_slots, generate_slots
from shared.cache import AvailabilityCache
from shared.civil_time import minutes_to_label, time_to_minutes
from shared.config import BookingPolicyConfig

logger = logging.getLogger(__name__)

MAX_STATS_RANGE_DAYS = 93
DEFAULT_INTERVAL = 30


def _interval(settings: Optional[CompanySettings]) -> int:
    return settings.appointment_interval if settings is not None and settings.appointment_interval else DEFAULT_INTERVAL


def _advance_days(settings: Optional[CompanySettings]) -> int:
    return settings.advance_booking_limit if settings is not None else 30


def validate_query_date(target_date: date, settings: Optional[CompanySettings], today: date) -> None:
    if target_date < today:
        raise InvalidBookingInput("Não é possível consultar horários de uma data passada.")
    limit = _advance_days(settings)
    if target_date > today + timedelta(days=limit):
        raise InvalidBookingInput(
            f"Agendamentos são permitidos com até {limit} dias de antecedência.",
            advance_booking_limit=limit,
        )


def _service_duration(db: Session, business: Business, service_id: Optional[UUID]) -> Optional[int]:
    if service_id is None:
        return None
    return crud.get_active_service(db, business.id, service_id).duration


def query_availability(
    db: Session,
    business_id: UUID,
    target_date: date,
    *,
    now: datetime,
    policy: BookingPolicyConfig,
    service_id: Optional[UUID] = None,
    cache: Optional[AvailabilityCache] = None,
) -> dict:
    """Horários livres do dia, passando pelo cache quando houver."""
    business = crud.get_business(db, business_id)
    settings = business.settings
    validate_query_date(target_date, settings, now.date())
    duration = _service_duration(db, business, service_id)

    date_str = target_date.isoformat()
    result = {
        "business_id": business.id,
        "date": target_date,
        "service_id": service_id,
        "duration": duration,
    }

    # hoje depende do relógio (corte de horários passados); não passa pelo cache
    use_cache = cache is not None and target_date != now.date()
    if use_cache:
        cached = cache.get(business.id, date_str, duration)
        if cached is not None:
            return {**result, "is_open": cached.get("is_open", True), "slots": cached.get("slots", []), "cached": True}

    schedule = resolve_schedule(db, business.id, target_date, today=now.date(), settings=settings)
    if not schedule.is_open:
        return {**result, "is_open": False, "slots": [], "cached": False}

    try:
        existing = load_existing_appointments(db, business.id, target_date)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Falha ao carregar agendamentos de business_id=%s em %s; sem horários", business.id, date_str)
        return {**result, "is_open": True, "slots": [], "cached": False}

    slots = generate_slots(
        schedule,
        _interval(settings),
        target_date,
        duration=duration,
        existing=existing,
        now=now,
        buffer_minutes=policy.past_slot_buffer_minutes,
    )

    if use_cache:
        cache.set(business.id, date_str, {"is_open": True, "slots": slots}, duration)

    return {**result, "is_open": True, "slots": slots, "cached": False}


def availability_details(
    db: Session,
    business_id: UUID,
    target_date: date,
    *,
    now: datetime,
    policy: BookingPolicyConfig,
    service_id: Optional[UUID] = None,
) -> dict:
    business = crud.get_business(db, business_id)
    settings = business.settings
    validate_query_date(target_date, settings, now.date())
    duration = _service_duration(db, business, service_id)
    schedule = resolve_schedule(db, business.id, target_date, today=now.date(), settings=settings)

    existing = None
    if schedule.is_open:
        try:
            existing = load_existing_appointments(db, business.id, target_date)
        except SQLAlchemyError:
            db.rollback()
            logger.exception(
                "Falha ao carregar agendamentos de business_id=%s em %s; sem detalhes", business.id, target_date
            )

    slots = []
    if existing is not None:
        for slot in describe_slots(
            schedule,
            _interval(settings),
            target_date,
            duration=duration,
            existing=existing,
            now=now,
            buffer_minutes=policy.past_slot_buffer_minutes,
        ):
            slots.append(
                {
                    "time": slot.time,
                    "available": slot.available,
                    "reason": slot.reason,
                    "conflict": slot.conflict.to_details() if slot.conflict else None,
                }
            )

    return {
        "business_id": business.id,
        "date": target_date,
        "is_open": schedule.is_open,
        "source": schedule.source,
        "open_time": minutes_to_label(time_to_minutes(schedule.open_time)) if schedule.open_time else None,
        "close_time": minutes_to_label(time_to_minutes(schedule.close_time)) if schedule.close_time else None,
        "slots": slots,
    }


def _load_schedule_rows(db: Session, business_id: UUID) -> Dict[int, DailySchedule]:
    rows = (
        db.query(DailySchedule)
        .filter(DailySchedule.business_id == business_id)
        .filter(DailySchedule.is_active.is_(True))
        .all()
    )
    return {row.day_of_week: row for row in rows}


def _resolve_day(
    day: date,
    daily_by_weekday: Dict[int, DailySchedule],
    settings: Optional[CompanySettings],
    today: date,
) -> EffectiveSchedule:
    return resolve_from_rows(day, daily_by_weekday.get(weekday_index(day)), settings, today=today)


def available_dates(db: Session, business_id: UUID, *, now: datetime) -> List[date]:
    """Datas dentro da janela de antecedência em que o estabelecimento abre."""
    business = crud.get_business(db, business_id)
    settings = business.settings
    today = now.date()
    daily_by_weekday = _load_schedule_rows(db, business.id)

    dates = []
    for offset in range(_advance_days(settings) + 1):
        day = today + timedelta(days=offset)
        if _resolve_day(day, daily_by_weekday, settings, today).is_open:
            dates.append(day)
    return dates


def availability_stats(
    db: Session,
    business_id: UUID,
    start_date: date,
    end_date: date,
    *,
    now: datetime,
    policy: BookingPolicyConfig,
    service_id: Optional[UUID] = None,
) -> dict:
    """Ocupação de um período: dias abertos, horários totais e livres."""
    if end_date < start_date:
        raise InvalidBookingInput("end_date deve ser maior ou igual a start_date.")
    if (end_date - start_date).days + 1 > MAX_STATS_RANGE_DAYS:
        raise InvalidBookingInput(f"Período máximo de {MAX_STATS_RANGE_DAYS} dias.")

    business = crud.get_business(db, business_id)
    settings = business.settings
    duration = _service_duration(db, business, service_id)
    interval = _interval(settings)
    today = now.date()
    daily_by_weekday = _load_schedule_rows(db, business.id)
    existing_by_date = load_existing_by_date(db, business.id, start_date, end_date)

    total_days = active_days = total_slots = available_slots = 0
    day = start_date
    while day <= end_date:
        total_days += 1
        schedule = _resolve_day(day, daily_by_weekday, settings, today)
        if schedule.is_open:
            active_days += 1
            total_slots += len(generate_slots(schedule, interval, day, duration=duration))
            available_slots += len(
                generate_slots(
                    schedule,
                    interval,
                    day,
                    duration=duration,
                    existing=existing_by_date.get(day, []),
                    now=now,
                    buffer_minutes=policy.past_slot_buffer_minutes,
                )
            )
        day += timedelta(days=1)

    occupancy = round((total_slots - available_slots) / total_slots * 100, 1) if total_slots else 0.0
    return {
        "business_id": business.id,
        "start_date": start_date,
        "end_date": end_date,
        "total_days": total_days,
        "active_days": active_days,
        "total_slots": total_slots,
        "available_slots": available_slots,
        "occupancy_rate": occupancy,
    }
