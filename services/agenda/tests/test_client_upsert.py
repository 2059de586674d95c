import pytest
from sqlalchemy.exc import IntegrityError
from app.errors import ClientUpsertExhausted, InvalidBookingInput
from app.models import Client
from app.services import client_upsert
from app.services.client_upsert import is_phone_unique_violation, upsert_client


def _no_sleep(_seconds):
    return None


def test_inserts_new_client_with_normalized_phone(db, make_business):
    business = make_business()

    result = upsert_client(db, business.id, "Maria", "(11) 99999-1111", email="maria@example.com")

    assert result.is_new
    assert result.attempts == 1
    assert result.client.normalized_phone == "5511999991111"
    assert result.client.phone == "(11) 99999-1111"


def test_existing_phone_in_other_format_updates_same_row(db, make_business):
    business = make_business()
    first = upsert_client(db, business.id, "Maria", "(11) 99999-1111", email="maria@example.com", notes="VIP")

    second = upsert_client(db, business.id, "Maria Souza", "+55 11 99999-1111")

    assert not second.is_new
    assert second.client.id == first.client.id
    assert second.client.name == "Maria Souza"
    assert second.client.phone == "+55 11 99999-1111"
    # email/observações só mudam quando informados
    assert second.client.email == "maria@example.com"
    assert second.client.notes == "VIP"
    assert db.query(Client).count() == 1


def test_short_phone_is_rejected(db, make_business):
    business = make_business()
    with pytest.raises(InvalidBookingInput):
        upsert_client(db, business.id, "Maria", "9999-1111")
    assert db.query(Client).count() == 0


def test_concurrent_upserts_converge_on_one_row(db, make_business, monkeypatch):
    """Cada chamada enxerga "não existe" na primeira busca, como se todas corressem juntas."""
    business = make_business()
    real_lookup = client_upsert.find_client_by_phone
    state = {"stale": False}

    def racing_lookup(session, business_id, normalized_phone):
        if state["stale"]:
            state["stale"] = False
            return None
        return real_lookup(session, business_id, normalized_phone)

    monkeypatch.setattr(client_upsert, "find_client_by_phone", racing_lookup)

    results = []
    for index in range(5):
        state["stale"] = True
        results.append(
            upsert_client(db, business.id, f"Cliente {index}", "11988887777", sleep=_no_sleep)
        )

    assert db.query(Client).filter(Client.business_id == business.id).count() == 1
    assert len({result.client.id for result in results}) == 1
    assert [result.is_new for result in results] == [True, False, False, False, False]
    assert all(result.attempts == 2 for result in results[1:])


def test_exhausted_retries_raise_typed_error(db, make_business, monkeypatch):
    business = make_business()
    upsert_client(db, business.id, "Maria", "11988887777")
    monkeypatch.setattr(client_upsert, "find_client_by_phone", lambda *args: None)
    sleeps = []

    with pytest.raises(ClientUpsertExhausted) as exc_info:
        upsert_client(db, business.id, "Maria", "11988887777", max_attempts=3, backoff_seconds=0.1, sleep=sleeps.append)

    assert exc_info.value.status_code == 503
    assert exc_info.value.detail["attempts"] == 3
    assert isinstance(exc_info.value.__cause__, IntegrityError)
    assert sleeps == pytest.approx([0.1, 0.2])


def test_other_integrity_errors_propagate(db, make_business, monkeypatch):
    business = make_business()

    def broken_commit():
        raise IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed: clients.name"))

    monkeypatch.setattr(db, "commit", broken_commit)

    with pytest.raises(IntegrityError):
        upsert_client(db, business.id, "Maria", "11988887777", sleep=_no_sleep)


def test_unique_violation_detection():
    sqlite_error = IntegrityError(
        "INSERT", {}, Exception("UNIQUE constraint failed: clients.business_id, clients.normalized_phone")
    )
    postgres_error = IntegrityError(
        "INSERT",
        {},
        Exception('duplicate key value violates unique constraint "uq_clients_business_normalized_phone"'),
    )
    other = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: businesses.slug"))

    assert is_phone_unique_violation(sqlite_error)
    assert is_phone_unique_violation(postgres_error)
    assert not is_phone_unique_violation(other)
