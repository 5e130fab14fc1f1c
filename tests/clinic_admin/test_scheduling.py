from datetime import datetime, timezone
from uuid import uuid4

from fastapi import status

from src.clinic_admin.services.scheduling.service import day_of_week, free_slots, score_slot

MONDAY = "2030-01-07"


def _utc(text):
    return datetime.fromisoformat(text).replace(tzinfo=timezone.utc)


def _starts_and_ends(body):
    return [(b["start_time"][:16], b["end_time"][:16]) for b in body["available_blocks"]]


async def _monday_clinic_hours(client, seed):
    """Provider works 09:00-12:00 on Mondays with a break at 10:00."""

    headers = seed.headers("admin")
    provider = str(seed.users["provider"])
    working = await client.post(
        "/api/v1/provider-schedules",
        json={
            "provider_id": provider,
            "day_of_week": 1,
            "start_time": "09:00",
            "end_time": "12:00",
            "effective_from": "2030-01-01",
        },
        headers=headers,
    )
    assert working.status_code == status.HTTP_201_CREATED
    coffee = await client.post(
        "/api/v1/provider-schedules",
        json={
            "provider_id": provider,
            "day_of_week": 1,
            "start_time": "10:00",
            "end_time": "10:30",
            "is_available": False,
            "schedule_type": "break",
            "effective_from": "2030-01-01",
        },
        headers=headers,
    )
    assert coffee.status_code == status.HTTP_201_CREATED
    return working.json()


async def _book(client, seed, when, **overrides):
    payload = {
        "patient_id": str(seed.patient_a),
        "provider_id": str(seed.users["provider"]),
        "appointment_date": when,
        "duration_minutes": 30,
    }
    payload.update(overrides)
    response = await client.post("/api/v1/appointments", json=payload, headers=seed.headers("staff"))
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


async def _availability(client, seed, **params):
    query = {"provider_id": str(seed.users["provider"]), "start_date": MONDAY, "end_date": MONDAY}
    query.update(params)
    return await client.get("/api/v1/provider-availability", params=query, headers=seed.headers("staff"))


def test_day_of_week_counts_from_sunday():
    assert day_of_week(datetime(2030, 1, 6).date()) == 0
    assert day_of_week(datetime(2030, 1, 7).date()) == 1
    assert day_of_week(datetime(2030, 1, 12).date()) == 6


def test_free_slots_merges_overlapping_busy_periods():
    window = (_utc("2030-01-07T09:00"), _utc("2030-01-07T12:00"))
    busy = [
        (_utc("2030-01-07T10:00"), _utc("2030-01-07T10:45")),
        (_utc("2030-01-07T10:30"), _utc("2030-01-07T11:00")),
        # Outside the window entirely.
        (_utc("2030-01-07T13:00"), _utc("2030-01-07T14:00")),
    ]
    assert free_slots(window, busy, 30) == [
        (_utc("2030-01-07T09:00"), _utc("2030-01-07T10:00")),
        (_utc("2030-01-07T11:00"), _utc("2030-01-07T12:00")),
    ]
    assert free_slots(window, busy, 90) == []


def test_slot_scores_favour_the_next_few_days():
    now = _utc("2030-01-06T12:00")

    same_day, reasons = score_slot(_utc("2030-01-07T09:00"), now)
    assert same_day == 55
    assert reasons == ["Same day - may be too soon", "Early morning slot"]

    soon, _ = score_slot(_utc("2030-01-09T14:00"), now)
    assert soon == 100

    late_saturday, reasons = score_slot(_utc("2030-02-23T19:00"), now)
    assert late_saturday == 80
    assert reasons == ["Available time slot"]


async def test_availability_subtracts_breaks_and_appointments(client, seed):
    await _monday_clinic_hours(client, seed)
    await _book(client, seed, f"{MONDAY}T11:00:00Z")
    await _book(client, seed, f"{MONDAY}T09:00:00Z", status="cancelled")

    response = await _availability(client, seed)
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["duration_minutes"] == 30
    assert body["buffers"] == {"pre": 0, "post": 0}
    assert _starts_and_ends(body) == [
        ("2030-01-07T09:00", "2030-01-07T10:00"),
        ("2030-01-07T10:30", "2030-01-07T11:00"),
        ("2030-01-07T11:30", "2030-01-07T12:00"),
    ]
    assert {(b["day_of_week"], b["slot_date"]) for b in body["available_blocks"]} == {(1, MONDAY)}

    longer = await _availability(client, seed, duration_minutes=45)
    assert _starts_and_ends(longer.json()) == [("2030-01-07T09:00", "2030-01-07T10:00")]


async def test_appointment_type_buffers_widen_bookings(client, seed):
    await _monday_clinic_hours(client, seed)
    consult = await client.post(
        "/api/v1/appointment-types",
        json={"name": "Consult", "default_duration_minutes": 30, "buffer_after_minutes": 30},
        headers=seed.headers("admin"),
    )
    assert consult.status_code == status.HTTP_201_CREATED
    await _book(client, seed, f"{MONDAY}T11:00:00Z", appointment_type_id=consult.json()["id"])

    response = await _availability(client, seed, appointment_type_id=consult.json()["id"])
    body = response.json()
    assert body["buffers"] == {"pre": 0, "post": 30}
    assert body["duration_minutes"] == 30
    assert _starts_and_ends(body) == [
        ("2030-01-07T09:00", "2030-01-07T10:00"),
        ("2030-01-07T10:30", "2030-01-07T11:00"),
    ]


async def test_schedule_exceptions_override_the_week(client, seed):
    await _monday_clinic_hours(client, seed)
    admin = seed.headers("admin")
    provider = str(seed.users["provider"])
    day_off = await client.post(
        "/api/v1/provider-schedule-exceptions",
        json={"provider_id": provider, "exception_date": "2030-01-14", "reason": "Conference"},
        headers=admin,
    )
    assert day_off.status_code == status.HTTP_201_CREATED
    special = await client.post(
        "/api/v1/provider-schedule-exceptions",
        json={
            "provider_id": provider,
            "exception_date": "2030-01-21",
            "is_available": True,
            "start_time": "13:00",
            "end_time": "15:00",
        },
        headers=admin,
    )
    assert special.status_code == status.HTTP_201_CREATED

    response = await _availability(client, seed, start_date="2030-01-13", end_date="2030-01-21")
    assert _starts_and_ends(response.json()) == [("2030-01-21T13:00", "2030-01-21T15:00")]

    listed = await client.get(
        "/api/v1/provider-schedule-exceptions", params={"provider_id": provider}, headers=seed.headers("staff")
    )
    assert [e["exception_date"] for e in listed.json()] == ["2030-01-14", "2030-01-21"]

    incomplete = await client.post(
        "/api/v1/provider-schedule-exceptions",
        json={"provider_id": provider, "exception_date": "2030-01-28", "is_available": True},
        headers=admin,
    )
    assert incomplete.status_code == status.HTTP_400_BAD_REQUEST


async def test_schedules_only_apply_while_in_effect(client, seed):
    await client.post(
        "/api/v1/provider-schedules",
        json={
            "provider_id": str(seed.users["provider"]),
            "day_of_week": 1,
            "start_time": "09:00",
            "end_time": "10:00",
            "effective_from": "2030-01-08",
            "effective_until": "2030-01-31",
        },
        headers=seed.headers("admin"),
    )
    response = await _availability(client, seed, start_date=MONDAY, end_date="2030-02-04")
    assert [b["slot_date"] for b in response.json()["available_blocks"]] == ["2030-01-14", "2030-01-21", "2030-01-28"]


async def test_availability_rejects_bad_queries(client, seed):
    backwards = await _availability(client, seed, start_date="2030-01-08", end_date=MONDAY)
    assert backwards.status_code == status.HTTP_400_BAD_REQUEST
    assert backwards.json()["error"] == "end_date must not be before start_date"

    too_long = await _availability(client, seed, end_date="2030-06-30")
    assert too_long.status_code == status.HTTP_400_BAD_REQUEST

    missing = await client.get(
        "/api/v1/provider-availability", params={"start_date": MONDAY, "end_date": MONDAY}, headers=seed.headers("staff")
    )
    assert missing.status_code == status.HTTP_400_BAD_REQUEST
    assert "provider_id is required" in missing.json()["details"]

    unknown = await _availability(client, seed, provider_id=str(uuid4()))
    assert unknown.status_code == status.HTTP_404_NOT_FOUND
    assert unknown.json() == {"error": "Provider not found"}

    other_clinic = await _availability(client, seed, provider_id=str(seed.users["admin_b"]))
    assert other_clinic.status_code == status.HTTP_404_NOT_FOUND


async def test_recommendations_rank_open_blocks(client, seed):
    await _monday_clinic_hours(client, seed)
    checkup = (
        await client.post(
            "/api/v1/appointment-types",
            json={"name": "Checkup", "default_duration_minutes": 20, "preferred_time_of_day": "morning"},
            headers=seed.headers("admin"),
        )
    ).json()

    response = await client.get(
        "/api/v1/appointment-recommendations",
        params={
            "provider_id": str(seed.users["provider"]),
            "start_date": MONDAY,
            "end_date": "2030-01-14",
            "appointment_type_id": checkup["id"],
            "top_n": 3,
        },
        headers=seed.headers("staff"),
    )
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["total_slots_available"] == 4
    assert body["metadata"] == {"appointment_type": "Checkup", "duration_minutes": 20}
    slots = body["recommendations"]
    assert len(slots) == 3
    scores = [s["confidence_score"] for s in slots]
    assert scores == sorted(scores, reverse=True)
    first = slots[0]
    assert first["time_of_day"] == "morning"
    assert "Checkup recommended for morning" in first["reasons"]
    assert first["start_time"][:16] == "2030-01-07T09:00"
    assert first["end_time"][:16] == "2030-01-07T09:20"


async def test_schedule_management_roles(client, seed):
    provider = str(seed.users["provider"])
    block = {"provider_id": provider, "day_of_week": 3, "start_time": "08:00", "end_time": "16:00"}

    as_staff = await client.post("/api/v1/provider-schedules", json=block, headers=seed.headers("staff"))
    assert as_staff.status_code == status.HTTP_403_FORBIDDEN
    assert as_staff.json()["error"] == "Unauthorized. System Admin or Admin or Provider role required."

    own = await client.post("/api/v1/provider-schedules", json=block, headers=seed.headers("provider"))
    assert own.status_code == status.HTTP_201_CREATED
    assert own.json()["schedule_type"] == "working_hours"
    assert own.json()["effective_from"] is not None

    backwards = await client.put(
        f"/api/v1/provider-schedules/{own.json()['id']}", json={"end_time": "07:00"}, headers=seed.headers("provider")
    )
    assert backwards.status_code == status.HTTP_400_BAD_REQUEST

    moved = await client.put(
        f"/api/v1/provider-schedules/{own.json()['id']}", json={"day_of_week": 4}, headers=seed.headers("provider")
    )
    assert moved.json()["day_of_week"] == 4

    hidden = await client.get("/api/v1/provider-schedules", headers=seed.headers("admin_b"))
    assert hidden.json() == []
    foreign = await client.delete(f"/api/v1/provider-schedules/{own.json()['id']}", headers=seed.headers("admin_b"))
    assert foreign.status_code == status.HTTP_404_NOT_FOUND

    removed = await client.delete(f"/api/v1/provider-schedules/{own.json()['id']}", headers=seed.headers("admin"))
    assert removed.status_code == status.HTTP_200_OK
    listing = await client.get("/api/v1/provider-schedules", params={"provider_id": provider}, headers=seed.headers("staff"))
    assert listing.json() == []

    cross_clinic = await client.post(
        "/api/v1/provider-schedules",
        json={**block, "provider_id": str(seed.users["admin_b"])},
        headers=seed.headers("admin"),
    )
    assert cross_clinic.status_code == status.HTTP_404_NOT_FOUND


async def test_appointment_type_lifecycle(client, seed):
    admin = seed.headers("admin")
    created = await client.post(
        "/api/v1/appointment-types",
        json={"name": "Laser session", "approval_roles": ["Admin"], "requires_approval": True},
        headers=admin,
    )
    assert created.status_code == status.HTTP_201_CREATED
    kind = created.json()
    assert kind["approval_role_names"] == ["Admin"]
    assert kind["default_duration_minutes"] == 60
    assert kind["color_code"] == "#3B82F6"

    as_staff = await client.post("/api/v1/appointment-types", json={"name": "Nope"}, headers=seed.headers("staff"))
    assert as_staff.status_code == status.HTTP_403_FORBIDDEN

    updated = await client.put(
        f"/api/v1/appointment-types/{kind['id']}", json={"default_duration_minutes": 45}, headers=admin
    )
    assert updated.json()["default_duration_minutes"] == 45

    other_clinic = await client.put(
        f"/api/v1/appointment-types/{kind['id']}", json={"name": "Stolen"}, headers=seed.headers("admin_b")
    )
    assert other_clinic.status_code == status.HTTP_404_NOT_FOUND

    admin_delete = await client.delete(f"/api/v1/appointment-types/{kind['id']}", headers=admin)
    assert admin_delete.status_code == status.HTTP_403_FORBIDDEN
    assert admin_delete.json()["error"] == "Unauthorized. System Admin role required."

    root_delete = await client.delete(f"/api/v1/appointment-types/{kind['id']}", headers=seed.headers("sysadmin"))
    assert root_delete.status_code == status.HTTP_200_OK
    listing = await client.get("/api/v1/appointment-types", headers=seed.headers("staff"))
    assert listing.json() == []


async def test_appointments_reject_unknown_appointment_types(client, seed):
    response = await client.post(
        "/api/v1/appointments",
        json={
            "patient_id": str(seed.patient_a),
            "provider_id": str(seed.users["provider"]),
            "appointment_date": f"{MONDAY}T09:00:00Z",
            "appointment_type_id": str(uuid4()),
        },
        headers=seed.headers("staff"),
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"error": "Appointment type not found"}
