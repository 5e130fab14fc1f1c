from datetime import date, timedelta
from uuid import UUID

from fastapi import status
from sqlalchemy.exc import SQLAlchemyError

from src.clinic_admin.infra.db.models import FormDefinitionORM, PatientFormAssignmentORM
from src.clinic_admin.services.forms.service import form_service

INTAKE_SCHEMA = {"fields": [{"name": "allergies", "type": "text", "required": True}]}


async def _make_form(client, seed, code="INTAKE", **overrides):
    payload = {
        "form_name": f"{code.title()} form",
        "form_code": code,
        "category": "intake",
        "form_schema": INTAKE_SCHEMA,
    }
    payload.update(overrides)
    response = await client.post("/api/v1/forms", json=payload, headers=seed.headers("admin"))
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


async def test_form_definition_starts_at_version_one(client, seed):
    form = await _make_form(client, seed)
    assert form["clinic_id"] == str(seed.clinic_a)
    assert form["current_version"]["version_number"] == 1
    assert form["current_version"]["version_name"] == "Initial Version"
    assert form["current_version"]["is_current"] is True

    listing = await client.get("/api/v1/forms", headers=seed.headers("staff"))
    assert [f["form_code"] for f in listing.json()] == ["INTAKE"]


async def test_form_definition_without_schema_has_no_version(client, seed):
    form = await _make_form(client, seed, code="DRAFT", form_schema=None)
    assert form["current_version"] is None
    assert form["current_version_id"] is None


async def test_form_setup_is_admin_only(client, seed):
    response = await client.post(
        "/api/v1/forms", json={"form_name": "Nope", "form_code": "NOPE"}, headers=seed.headers("staff")
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


async def test_new_version_replaces_current(client, seed):
    form = await _make_form(client, seed)
    created = await client.post(
        f"/api/v1/forms/{form['id']}/versions",
        json={"form_schema": {"fields": []}, "change_summary": "Dropped allergies"},
        headers=seed.headers("admin"),
    )
    assert created.status_code == status.HTTP_201_CREATED
    assert created.json()["version_number"] == 2
    assert created.json()["version_name"] == "Version 2"

    versions = await client.get(f"/api/v1/forms/{form['id']}/versions", headers=seed.headers("staff"))
    assert [(v["version_number"], v["is_current"]) for v in versions.json()] == [(1, False), (2, True)]

    refreshed = await client.get("/api/v1/forms", headers=seed.headers("staff"))
    assert refreshed.json()[0]["current_version_id"] == created.json()["id"]


async def test_failed_initial_version_removes_the_definition(client, seed, fresh_store, monkeypatch):
    def broken_append(*args, **kwargs):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(form_service, "_append_version", broken_append)
    response = await client.post(
        "/api/v1/forms",
        json={"form_name": "Consent", "form_code": "CONSENT", "form_schema": INTAKE_SCHEMA},
        headers=seed.headers("admin"),
    )
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["error"] == "Failed to create form version"

    store = fresh_store()
    assert store.first(store.select(FormDefinitionORM).where(FormDefinitionORM.form_code == "CONSENT")) is None


async def test_complete_submission_closes_the_assignment(client, seed):
    form = await _make_form(client, seed)
    headers = seed.headers("staff")
    assigned = await client.post(
        "/api/v1/form-assignments",
        json={"patient_id": str(seed.patient_a), "form_definition_id": form["id"], "due_days_offset": 3},
        headers=headers,
    )
    assert assigned.status_code == status.HTTP_201_CREATED
    assignment = assigned.json()
    assert assignment["status"] == "assigned"
    assert assignment["due_date"] == (date.today() + timedelta(days=3)).isoformat()
    assert assignment["form_version_id"] == form["current_version_id"]

    partial = await client.post(
        "/api/v1/form-submissions",
        json={
            "patient_id": str(seed.patient_a),
            "form_definition_id": form["id"],
            "form_assignment_id": assignment["id"],
            "form_responses": {"allergies": "pe"},
            "is_complete": False,
        },
        headers=headers,
    )
    assert partial.status_code == status.HTTP_201_CREATED
    assert partial.json()["is_partial_save"] is True
    assert partial.json()["submitted_at"] is None

    in_progress = await client.get(
        "/api/v1/form-assignments", params={"patient_id": str(seed.patient_a)}, headers=headers
    )
    assert in_progress.json()[0]["status"] == "in_progress"

    final = await client.post(
        "/api/v1/form-submissions",
        json={
            "patient_id": str(seed.patient_a),
            "form_definition_id": form["id"],
            "form_assignment_id": assignment["id"],
            "form_responses": {"allergies": "peanuts"},
        },
        headers=headers,
    )
    assert final.status_code == status.HTTP_201_CREATED
    assert final.json()["form_version_id"] == form["current_version_id"]

    completed = await client.get("/api/v1/form-assignments", params={"status": "completed"}, headers=headers)
    assert [a["id"] for a in completed.json()] == [assignment["id"]]
    assert completed.json()[0]["completed_at"] is not None


async def test_submission_rejects_assignment_of_another_patient(client, seed):
    form = await _make_form(client, seed)
    headers = seed.headers("staff")
    assignment = (
        await client.post(
            "/api/v1/form-assignments",
            json={"patient_id": str(seed.patient_a), "form_definition_id": form["id"]},
            headers=headers,
        )
    ).json()

    response = await client.post(
        "/api/v1/form-submissions",
        json={
            "patient_id": str(seed.portal_patient),
            "form_definition_id": form["id"],
            "form_assignment_id": assignment["id"],
        },
        headers=headers,
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


async def test_trigger_applies_matching_rules_once(client, seed):
    intake = await _make_form(client, seed, code="INTAKE")
    texas = await _make_form(client, seed, code="TXCONSENT")
    admin = seed.headers("admin")

    await client.post(
        "/api/v1/form-publication-rules",
        json={
            "rule_name": "Everyone gets intake",
            "form_definition_id": intake["id"],
            "trigger_type": "state_change",
            "due_days_offset": 5,
            "assignment_priority": "high",
        },
        headers=admin,
    )
    await client.post(
        "/api/v1/form-publication-rules",
        json={
            "rule_name": "Texas consent",
            "form_definition_id": texas["id"],
            "trigger_type": "state_change",
            "trigger_conditions": {"states": ["TX"]},
        },
        headers=admin,
    )

    body = {"patient_id": str(seed.patient_a), "trigger_type": "state_change", "trigger_data": {"state_code": "CA"}}
    first = await client.post("/api/v1/forms/trigger-assignments", json=body, headers=seed.headers("staff"))
    assert first.status_code == status.HTTP_200_OK
    result = first.json()
    assert result["rules_evaluated"] == 2
    assert result["assigned_count"] == 1
    assert [a["form_name"] for a in result["assignments"]] == ["Intake form"]
    assert result["errors"] == []

    # The open intake assignment is not duplicated; Texas now matches.
    body["trigger_data"]["state_code"] = "TX"
    second = await client.post("/api/v1/forms/trigger-assignments", json=body, headers=seed.headers("staff"))
    assert [a["form_name"] for a in second.json()["assignments"]] == ["Txconsent form"]

    assignments = await client.get(
        "/api/v1/form-assignments", params={"patient_id": str(seed.patient_a)}, headers=seed.headers("staff")
    )
    by_form = {a["form_definition_id"]: a for a in assignments.json()}
    assert by_form[intake["id"]]["priority"] == "high"
    assert by_form[intake["id"]]["due_date"] == (date.today() + timedelta(days=5)).isoformat()
    assert by_form[texas["id"]]["due_date"] is None


async def test_rules_from_other_clinics_are_not_evaluated(client, seed):
    form = await _make_form(client, seed)
    await client.post(
        "/api/v1/form-publication-rules",
        json={"rule_name": "Intake", "form_definition_id": form["id"], "trigger_type": "new_patient"},
        headers=seed.headers("admin"),
    )
    response = await client.post(
        "/api/v1/forms/trigger-assignments",
        json={"patient_id": str(seed.patient_b), "trigger_type": "new_patient"},
        headers=seed.headers("admin_b"),
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["rules_evaluated"] == 0
    assert response.json()["assigned_count"] == 0


async def test_state_change_assigns_required_forms(client, seed, fresh_store):
    form = await _make_form(client, seed, code="CAPRIVACY")
    draft = await _make_form(client, seed, code="CADRAFT", form_schema=None)
    config = await client.put(
        "/api/v1/state-configurations",
        json={"state_code": "ca", "state_name": "California", "required_forms": [form["id"], draft["id"]]},
        headers=seed.headers("admin"),
    )
    assert config.status_code == status.HTTP_200_OK
    assert config.json()["state_code"] == "CA"

    moved = await client.post(
        f"/api/v1/patients/{seed.patient_a}/state",
        json={"state_code": "CA", "effective_date": "2030-01-01", "change_reason": "Relocated"},
        headers=seed.headers("staff"),
    )
    assert moved.status_code == status.HTTP_201_CREATED
    assert moved.json()["forms_assigned"] == 2
    assert moved.json()["state_history"]["forms_triggered"] == [form["id"], draft["id"]]

    # The draft has no version to hand out, so only one assignment lands.
    store = fresh_store()
    rows = store.scalars(
        store.select(PatientFormAssignmentORM).where(PatientFormAssignmentORM.patient_id == seed.patient_a)
    )
    assert [row.form_definition_id for row in rows] == [UUID(form["id"])]
    assert rows[0].priority == "high"
    assert rows[0].clinic_id == seed.clinic_a
    assert rows[0].due_date == date.today() + timedelta(days=7)
    assert rows[0].assignment_reason == "Required for CA state compliance"


async def test_state_history_closes_the_previous_state(client, seed):
    headers = seed.headers("staff")
    await client.post(
        f"/api/v1/patients/{seed.patient_a}/state",
        json={"state_code": "NY", "effective_date": "2029-01-01"},
        headers=headers,
    )
    moved = await client.post(
        f"/api/v1/patients/{seed.patient_a}/state",
        json={"state_code": "NJ", "effective_date": "2030-01-01"},
        headers=headers,
    )
    assert moved.json()["forms_assigned"] == 0

    history = await client.get(f"/api/v1/patients/{seed.patient_a}/state-history", headers=headers)
    assert history.status_code == status.HTTP_200_OK
    rows = history.json()
    assert [r["state_code"] for r in rows] == ["NJ", "NY"]
    assert rows[0]["end_date"] is None
    assert rows[1]["end_date"] == date.today().isoformat()


async def test_state_configuration_upsert_updates_in_place(client, seed):
    admin = seed.headers("admin")
    await client.put("/api/v1/state-configurations", json={"state_code": "TX"}, headers=admin)
    await client.put(
        "/api/v1/state-configurations", json={"state_code": "TX", "data_retention_days": 2555}, headers=admin
    )
    listing = await client.get("/api/v1/state-configurations", headers=seed.headers("staff"))
    assert [(c["state_code"], c["data_retention_days"]) for c in listing.json()] == [("TX", 2555)]

    other_clinic = await client.get("/api/v1/state-configurations", headers=seed.headers("admin_b"))
    assert other_clinic.json() == []


async def test_portal_lists_open_form_assignments(client, seed):
    form = await _make_form(client, seed)
    staff = seed.headers("staff")
    open_one = (
        await client.post(
            "/api/v1/form-assignments",
            json={"patient_id": str(seed.portal_patient), "form_definition_id": form["id"]},
            headers=staff,
        )
    ).json()
    done = (
        await client.post(
            "/api/v1/form-assignments",
            json={"patient_id": str(seed.portal_patient), "form_definition_id": form["id"]},
            headers=staff,
        )
    ).json()
    await client.put(f"/api/v1/form-assignments/{done['id']}", json={"status": "completed"}, headers=staff)

    response = await client.get("/api/v1/portal/forms", headers=seed.headers("portal"))
    assert response.status_code == status.HTTP_200_OK
    assert [a["id"] for a in response.json()] == [open_one["id"]]


async def test_portal_submission_completes_own_assignment(client, seed):
    form = await _make_form(client, seed)
    staff = seed.headers("staff")
    assignment = (
        await client.post(
            "/api/v1/form-assignments",
            json={"patient_id": str(seed.portal_patient), "form_definition_id": form["id"]},
            headers=staff,
        )
    ).json()

    draft = await client.post(
        "/api/v1/portal/forms/submit",
        json={
            "form_definition_id": form["id"],
            "form_assignment_id": assignment["id"],
            "form_responses": {"allergies": "pol"},
            "is_complete": False,
        },
        headers=seed.headers("portal"),
    )
    assert draft.status_code == status.HTTP_201_CREATED
    assert draft.json()["success"] is True
    assert draft.json()["is_complete"] is False
    open_forms = await client.get("/api/v1/portal/forms", headers=seed.headers("portal"))
    assert [(a["id"], a["status"]) for a in open_forms.json()] == [(assignment["id"], "in_progress")]

    final = await client.post(
        "/api/v1/portal/forms/submit",
        json={
            "form_definition_id": form["id"],
            "form_assignment_id": assignment["id"],
            "form_responses": {"allergies": "pollen"},
        },
        headers=seed.headers("portal"),
    )
    assert final.status_code == status.HTTP_201_CREATED
    assert final.json()["is_complete"] is True

    submissions = await client.get(
        "/api/v1/form-submissions", params={"patient_id": str(seed.portal_patient)}, headers=staff
    )
    latest = next(s for s in submissions.json() if s["id"] == final.json()["submission_id"])
    assert latest["submission_source"] == "portal"
    assert latest["submitted_by_user_id"] is None
    assert latest["clinic_id"] == str(seed.clinic_a)
    assert latest["form_version_id"] == form["current_version_id"]

    remaining = await client.get("/api/v1/portal/forms", headers=seed.headers("portal"))
    assert remaining.json() == []


async def test_portal_cannot_submit_against_another_patients_assignment(client, seed):
    form = await _make_form(client, seed)
    someone_else = (
        await client.post(
            "/api/v1/form-assignments",
            json={"patient_id": str(seed.patient_a), "form_definition_id": form["id"]},
            headers=seed.headers("staff"),
        )
    ).json()

    response = await client.post(
        "/api/v1/portal/forms/submit",
        json={"form_definition_id": form["id"], "form_assignment_id": someone_else["id"]},
        headers=seed.headers("portal"),
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"error": "Form assignment not found"}

    unauthenticated = await client.post("/api/v1/portal/forms/submit", json={"form_definition_id": form["id"]})
    assert unauthenticated.status_code == status.HTTP_401_UNAUTHORIZED
