import itertools
from datetime import date, time
from unittest.mock import MagicMock
from sqlalchemy.exc import OperationalError
from app.models import Appointment, AppointmentStatus, Client, Service
from app.services.conflict_checker import (
    ExistingAppointment,
    check_slot_conflict,
    find_conflict,
    load_existing_appointments,
    overlaps,
)

DAY = date(2025, 1, 10)


def test_overlap_is_symmetric():
    points = [0, 15, 29, 30, 45, 60, 90]
    durations = [1, 15, 30, 60]
    for a, d, b, e in itertools.product(points, durations, points, durations):
        assert overlaps(a, d, b, e) == overlaps(b, e, a, d)


def test_touching_intervals_do_not_conflict():
    ten, ten_thirty = 600, 630
    assert not overlaps(ten_thirty, 30, ten, 30)
    assert not overlaps(ten, 30, ten_thirty, 30)


def test_one_minute_of_overlap_conflicts():
    assert overlaps(629, 30, 600, 30)


def test_containment_conflicts():
    assert overlaps(600, 120, 630, 15)
    assert overlaps(630, 15, 600, 120)


def test_find_conflict_returns_first_collision():
    existing = [
        ExistingAppointment(start=540, duration=30, client_name="Ana"),
        ExistingAppointment(start=600, duration=30, client_name="Bia"),
        ExistingAppointment(start=615, duration=30, client_name="Cris"),
    ]
    assert find_conflict(570, 30, existing) is None
    assert find_conflict(600, 30, existing).client_name == "Bia"


def _appointment(business, client, at, duration=30, status=AppointmentStatus.CONFIRMED, service=None):
    return Appointment(
        business_id=business.id,
        client_id=client.id,
        service_id=service.id if service else None,
        appointment_date=DAY,
        appointment_time=at,
        duration=duration,
        status=status,
    )


def test_cancelled_appointments_free_the_slot(db, make_business):
    business = make_business()
    client = Client(business_id=business.id, name="Ana", phone="11999991111", normalized_phone="5511999991111")
    db.add(client)
    db.commit()
    db.add(_appointment(business, client, time(10, 0), status=AppointmentStatus.CANCELLED))
    db.commit()

    result = check_slot_conflict(db, business.id, DAY, 600, 30)

    assert not result.has_conflict
    assert not result.store_error


def test_conflict_details_for_user_message(db, make_business):
    business = make_business()
    client = Client(business_id=business.id, name="Ana", phone="11999991111", normalized_phone="5511999991111")
    service = Service(business_id=business.id, name="Corte", duration=45)
    db.add_all([client, service])
    db.commit()
    db.add(_appointment(business, client, time(10, 0), duration=45, service=service))
    db.commit()

    result = check_slot_conflict(db, business.id, DAY, 630, 30)

    assert result.has_conflict
    assert result.details["time"] == "10:00"
    assert result.details["service_name"] == "Corte"
    assert result.details["client_name"] == "Ana"
    assert check_slot_conflict(db, business.id, DAY, 645, 30).has_conflict is False


def test_other_business_does_not_conflict(db, make_business):
    first = make_business(slug="primeiro")
    second = make_business(slug="segundo")
    client = Client(business_id=first.id, name="Ana", phone="11999991111", normalized_phone="5511999991111")
    db.add(client)
    db.commit()
    db.add(_appointment(first, client, time(10, 0)))
    db.commit()

    assert load_existing_appointments(db, second.id, DAY) == []
    assert not check_slot_conflict(db, second.id, DAY, 600, 30).has_conflict


def test_store_failure_fails_closed():
    db = MagicMock()
    db.query.side_effect = OperationalError("SELECT", {}, Exception("timeout"))

    result = check_slot_conflict(db, "b1", DAY, 600, 30)

    assert result.has_conflict
    assert result.store_error
