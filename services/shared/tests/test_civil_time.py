"""Testes para os helpers de horário civil."""

from datetime import datetime, time, timezone

from shared.civil_time import civil_now, ensure_timezone, minutes_to_label, time_to_minutes


def test_civil_now_uses_business_timezone():
    clock = lambda: datetime(2025, 1, 6, 2, 30, tzinfo=timezone.utc)

    now = civil_now(clock, "America/Sao_Paulo")

    # 02:30 UTC ainda é domingo em São Paulo
    assert now.date().isoformat() == "2025-01-05"
    assert (now.hour, now.minute) == (23, 30)


def test_naive_and_unknown_zone_fall_back_to_utc():
    naive = datetime(2025, 1, 6, 15, 0)

    converted = ensure_timezone(naive, "Marte/Olympus")

    assert converted.utcoffset().total_seconds() == 0
    assert converted.hour == 15


def test_minutes_and_labels():
    assert time_to_minutes(time(13, 45)) == 825
    assert minutes_to_label(825) == "13:45"
    assert minutes_to_label(0) == "00:00"
