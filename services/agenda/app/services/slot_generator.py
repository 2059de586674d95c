"""Geração dos horários disponíveis de um dia.

Funções puras: mesma entrada, mesma saída. O "agora" chega por parâmetro,
já no fuso civil do estabelecimento.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Iterator, List, Optional

from app.services.conflict_checker import ExistingAppointment, find_conflict
from app.services.schedule_resolver import EffectiveSchedule
from shared.civil_time import minutes_to_label, time_to_minutes

REASON_PAST = "past"
REASON_LUNCH = "lunch"
REASON_INSUFFICIENT_TIME = "insufficient_time"
REASON_OCCUPIED = "occupied"


@dataclass(frozen=True)
class SlotStatus:
    time: str
    available: bool
    reason: Optional[str] = None
    conflict: Optional[ExistingAppointment] = None


def _past_cutoff(target_date: date, now: Optional[datetime], buffer_minutes: int) -> Optional[int]:
    """Minuto a partir do qual (exclusive) os horários do dia ainda valem; None = sem corte."""
    if now is None:
        return None
    today = now.date()
    if target_date > today:
        return None
    if target_date < today:
        # dia inteiro já passou
        return 24 * 60
    return now.hour * 60 + now.minute + buffer_minutes


def iter_slot_statuses(
    schedule: EffectiveSchedule,
    interval: int,
    target_date: date,
    *,
    duration: Optional[int] = None,
    existing: Iterable[ExistingAppointment] = (),
    now: Optional[datetime] = None,
    buffer_minutes: int = 0,
) -> Iterator[SlotStatus]:
    if interval <= 0:
        raise ValueError("interval deve ser positivo")
    if not schedule.is_open or schedule.open_time is None or schedule.close_time is None:
        return

    booked = list(existing)
    open_at = time_to_minutes(schedule.open_time)
    close_at = time_to_minutes(schedule.close_time)
    cutoff = _past_cutoff(target_date, now, buffer_minutes)
    candidate_duration = duration or interval

    lunch_start = lunch_end = None
    if schedule.lunch_enabled and schedule.lunch_start and schedule.lunch_end:
        lunch_start = time_to_minutes(schedule.lunch_start)
        lunch_end = time_to_minutes(schedule.lunch_end)

    cursor = open_at
    while cursor < close_at:
        label = minutes_to_label(cursor)
        if cutoff is not None and cursor <= cutoff:
            yield SlotStatus(label, False, REASON_PAST)
        elif lunch_start is not None and lunch_start <= cursor < lunch_end:
            yield SlotStatus(label, False, REASON_LUNCH)
        elif duration and cursor + duration > close_at:
            yield SlotStatus(label, False, REASON_INSUFFICIENT_TIME)
        else:
            collision = find_conflict(cursor, candidate_duration, booked)
            if collision is not None:
                yield SlotStatus(label, False, REASON_OCCUPIED, collision)
            else:
                yield SlotStatus(label, True)
        cursor += interval


def describe_slots(
    schedule: EffectiveSchedule,
    interval: int,
    target_date: date,
    *,
    duration: Optional[int] = None,
    existing: Iterable[ExistingAppointment] = (),
    now: Optional[datetime] = None,
    buffer_minutes: int = 0,
) -> List[SlotStatus]:
    """Todas as posições do cursor, com o motivo de cada indisponibilidade."""
    return list(
        iter_slot_statuses(
            schedule,
            interval,
            target_date,
            duration=duration,
            existing=existing,
            now=now,
            buffer_minutes=buffer_minutes,
        )
    )


def generate_slots(
    schedule: EffectiveSchedule,
    interval: int,
    target_date: date,
    *,
    duration: Optional[int] = None,
    existing: Iterable[ExistingAppointment] = (),
    now: Optional[datetime] = None,
    buffer_minutes: int = 0,
) -> List[str]:
    """Horários livres (``HH:MM``) em ordem crescente.

    >>> from datetime import time
    >>> day = EffectiveSchedule(is_open=True, open_time=time(9), close_time=time(10))
    >>> generate_slots(day, 30, date(2025, 1, 10))
    ['09:00', '09:30']
    """
    return [
        slot.time
        for slot in iter_slot_statuses(
            schedule,
            interval,
            target_date,
            duration=duration,
            existing=existing,
            now=now,
            buffer_minutes=buffer_minutes,
        )
        if slot.available
    ]
