def _create(client, slug="barbearia-do-ze", **extra):
    payload = {"name": "Barbearia do Zé", "slug": slug, "phone": "(11) 99999-1111", **extra}
    return client.post("/businesses/", json=payload)


def test_create_business_with_default_settings(client):
    response = _create(client)

    assert response.status_code == 201
    body = response.json()
    assert body["slug"] == "barbearia-do-ze"
    assert body["is_admin"] is False
    settings = body["settings"]
    assert settings["timezone"] == "America/Sao_Paulo"
    assert settings["working_days"] == [1, 2, 3, 4, 5]
    assert settings["working_hours_start"] == "09:00:00"
    assert settings["appointment_interval"] == 30
    assert settings["max_simultaneous_appointments"] == 3
    assert settings["monthly_appointments_limit"] is None


def test_duplicate_slug_is_rejected(client):
    assert _create(client).status_code == 201

    response = _create(client)

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "slug_taken"


def test_invalid_payloads(client):
    bad_slug = _create(client, slug="Barbearia Do Zé")
    bad_hours = _create(client, settings={"working_hours_start": "18:00", "working_hours_end": "09:00"})
    bad_timezone = _create(client, settings={"timezone": "Marte/Olympus"})
    lunch_without_times = _create(client, settings={"lunch_break_enabled": True})

    assert bad_slug.status_code == 422
    assert bad_hours.status_code == 422
    assert bad_timezone.status_code == 422
    assert lunch_without_times.status_code == 422


def test_lookup_by_id_and_slug(client):
    created = _create(client).json()

    by_id = client.get(f"/businesses/{created['id']}")
    by_slug = client.get("/businesses/slug/barbearia-do-ze")
    missing = client.get("/businesses/slug/nao-existe")

    assert by_id.json()["id"] == created["id"]
    assert by_slug.json()["id"] == created["id"]
    assert missing.status_code == 404


def test_update_business_checks_slug(client):
    first = _create(client).json()
    _create(client, slug="salao-da-ana")

    renamed = client.put(f"/businesses/{first['id']}", json={"name": "Zé Cortes"})
    taken = client.put(f"/businesses/{first['id']}", json={"slug": "salao-da-ana"})
    same_slug = client.put(f"/businesses/{first['id']}", json={"slug": "barbearia-do-ze"})

    assert renamed.json()["name"] == "Zé Cortes"
    assert taken.status_code == 409
    assert same_slug.status_code == 200


def test_partial_settings_update(client):
    created = _create(client).json()
    url = f"/businesses/{created['id']}/settings"

    updated = client.put(
        url,
        json={
            "lunch_break_enabled": True,
            "lunch_start_time": "12:00",
            "lunch_end_time": "13:00",
            "max_simultaneous_appointments": 1,
        },
    )
    inverted = client.put(url, json={"working_hours_end": "08:00"})
    broken_lunch = client.put(url, json={"lunch_end_time": "11:00"})

    assert updated.status_code == 200
    assert updated.json()["lunch_break_enabled"] is True
    assert updated.json()["max_simultaneous_appointments"] == 1
    assert updated.json()["working_hours_end"] == "18:00:00"
    assert inverted.status_code == 400
    assert broken_lunch.status_code == 400
    current = client.get(url).json()
    assert current["working_hours_end"] == "18:00:00"
    assert current["lunch_end_time"] == "13:00:00"


def test_daily_schedule_crud(client):
    created = _create(client).json()
    base = f"/businesses/{created['id']}/schedules"

    saturday = client.put(f"{base}/6", json={"start_time": "08:00", "end_time": "12:00"})
    replaced = client.put(
        f"{base}/6",
        json={
            "start_time": "08:00",
            "end_time": "14:00",
            "has_lunch_break": True,
            "lunch_start": "11:00",
            "lunch_end": "11:30",
        },
    )
    listed = client.get(base).json()
    invalid_day = client.put(f"{base}/7", json={"start_time": "08:00", "end_time": "12:00"})
    inverted = client.put(f"{base}/1", json={"start_time": "12:00", "end_time": "08:00"})
    deleted = client.delete(f"{base}/6")

    assert saturday.status_code == 200
    assert saturday.json()["day_of_week"] == 6
    assert replaced.json()["id"] == saturday.json()["id"]
    assert replaced.json()["end_time"] == "14:00:00"
    assert len(listed) == 1
    assert invalid_day.status_code == 422
    assert inverted.status_code == 422
    assert deleted.status_code == 204
    assert client.get(base).json() == []


def test_saturday_schedule_opens_the_day(client):
    created = _create(client).json()
    client.put(f"/businesses/{created['id']}/schedules/6", json={"start_time": "09:00", "end_time": "10:00"})

    response = client.get("/availability/", params={"business_id": created["id"], "date": "2025-01-11"})

    assert response.json()["slots"] == ["09:00", "09:30"]


def test_services(client):
    created = _create(client).json()
    base = f"/businesses/{created['id']}/services"

    corte = client.post(base, json={"name": "Corte", "duration": 45, "price": "40.00"})
    barba = client.post(base, json={"name": "Barba", "duration": 30})
    deactivated = client.put(f"/services/{barba.json()['id']}", json={"is_active": False})

    assert corte.status_code == 201
    assert corte.json()["duration"] == 45
    assert deactivated.json()["is_active"] is False
    assert [item["name"] for item in client.get(base).json()] == ["Corte"]
    every = client.get(base, params={"include_inactive": True}).json()
    assert [item["name"] for item in every] == ["Barba", "Corte"]
    assert client.put("/services/00000000-0000-0000-0000-000000000000", json={"name": "X"}).status_code == 404
