from datetime import date, time
from unittest.mock import MagicMock
from sqlalchemy.exc import OperationalError
from app.models import CompanySettings, DailySchedule
from app.services.schedule_resolver import (
    SOURCE_DAILY,
    SOURCE_SETTINGS,
    resolve_from_rows,
    resolve_schedule,
    weekday_index,
)

FRIDAY = date(2025, 1, 10)
SATURDAY = date(2025, 1, 11)
SUNDAY = date(2025, 1, 12)


def _settings(**overrides):
    values = dict(
        working_days=[1, 2, 3, 4, 5],
        working_hours_start=time(9, 0),
        working_hours_end=time(18, 0),
        lunch_break_enabled=True,
        lunch_start_time=time(12, 0),
        lunch_end_time=time(13, 0),
        same_day_booking=True,
    )
    values.update(overrides)
    return CompanySettings(**values)


def _daily(**overrides):
    values = dict(
        day_of_week=5,
        start_time=time(8, 0),
        end_time=time(12, 0),
        is_active=True,
        has_lunch_break=False,
        lunch_start=None,
        lunch_end=None,
    )
    values.update(overrides)
    return DailySchedule(**values)


def test_weekday_index_starts_on_sunday():
    assert weekday_index(SUNDAY) == 0
    assert weekday_index(FRIDAY) == 5
    assert weekday_index(SATURDAY) == 6


def test_settings_default_applies_on_working_day():
    schedule = resolve_from_rows(FRIDAY, None, _settings())
    assert schedule.is_open
    assert schedule.source == SOURCE_SETTINGS
    assert (schedule.open_time, schedule.close_time) == (time(9, 0), time(18, 0))
    assert schedule.lunch_enabled
    assert (schedule.lunch_start, schedule.lunch_end) == (time(12, 0), time(13, 0))


def test_day_outside_working_days_is_closed():
    schedule = resolve_from_rows(SATURDAY, None, _settings())
    assert not schedule.is_open
    assert schedule.reason == "not_a_working_day"


def test_active_daily_schedule_overrides_settings():
    schedule = resolve_from_rows(FRIDAY, _daily(), _settings())
    assert schedule.is_open
    assert schedule.source == SOURCE_DAILY
    assert (schedule.open_time, schedule.close_time) == (time(8, 0), time(12, 0))
    # o almoço do padrão não vaza para o horário do dia
    assert not schedule.lunch_enabled


def test_daily_schedule_opens_day_missing_from_working_days():
    schedule = resolve_from_rows(SATURDAY, _daily(day_of_week=6), _settings())
    assert schedule.is_open
    assert schedule.source == SOURCE_DAILY


def test_inactive_daily_schedule_falls_back_to_settings():
    schedule = resolve_from_rows(FRIDAY, _daily(is_active=False), _settings())
    assert schedule.is_open
    assert schedule.source == SOURCE_SETTINGS


def test_nothing_configured_is_closed():
    schedule = resolve_from_rows(FRIDAY, None, None)
    assert not schedule.is_open


def test_lunch_without_times_is_ignored():
    schedule = resolve_from_rows(FRIDAY, None, _settings(lunch_start_time=None))
    assert schedule.is_open
    assert not schedule.lunch_enabled


def test_same_day_booking_disabled_closes_today_only():
    settings = _settings(same_day_booking=False)
    assert not resolve_from_rows(FRIDAY, None, settings, today=FRIDAY).is_open
    assert resolve_from_rows(FRIDAY, None, settings, today=date(2025, 1, 9)).is_open


def test_resolve_schedule_reads_rows(db, make_business):
    business = make_business()
    db.add(
        DailySchedule(
            business_id=business.id,
            day_of_week=weekday_index(FRIDAY),
            start_time=time(10, 0),
            end_time=time(14, 0),
            is_active=True,
        )
    )
    db.commit()

    friday = resolve_schedule(db, business.id, FRIDAY)
    thursday = resolve_schedule(db, business.id, date(2025, 1, 9))

    assert friday.source == SOURCE_DAILY
    assert friday.open_time == time(10, 0)
    assert thursday.source == SOURCE_SETTINGS
    assert thursday.open_time == time(9, 0)


def test_store_failure_closes_the_day():
    db = MagicMock()
    db.query.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))

    schedule = resolve_schedule(db, "b1", FRIDAY)

    assert not schedule.is_open
    assert schedule.reason == "store_error"
    db.rollback.assert_called_once()
