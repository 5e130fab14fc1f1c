from datetime import date
from uuid import UUID

from fastapi import status

from src.clinic_admin.infra.db.models import GroupSessionAttendanceORM, PatientGroupAssignmentORM, PatientORM


async def _make_group(client, headers, **overrides):
    payload = {"name": "Mindfulness", "max_members": 2, "status": "active"}
    payload.update(overrides)
    response = await client.post("/api/v1/groups", json=payload, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


async def test_group_capacity_counts_active_members(client, seed):
    headers = seed.headers("staff")
    group = await _make_group(client, headers, max_members=1)

    first = await client.post(
        f"/api/v1/groups/{group['id']}/assignments", json={"patient_id": str(seed.patient_a)}, headers=headers
    )
    assert first.status_code == status.HTTP_201_CREATED

    full = await client.post(
        f"/api/v1/groups/{group['id']}/assignments", json={"patient_id": str(seed.portal_patient)}, headers=headers
    )
    assert full.status_code == status.HTTP_409_CONFLICT
    assert full.json() == {"error": "Group is at maximum capacity", "current_members": 1, "max_members": 1}

    # Withdrawing frees the seat.
    withdrawn = await client.put(
        f"/api/v1/group-assignments/{first.json()['id']}",
        json={"status": "withdrawn", "withdrawal_reason": "Moved away"},
        headers=headers,
    )
    assert withdrawn.status_code == status.HTTP_200_OK
    assert withdrawn.json()["withdrawal_date"] is not None

    retry = await client.post(
        f"/api/v1/groups/{group['id']}/assignments", json={"patient_id": str(seed.portal_patient)}, headers=headers
    )
    assert retry.status_code == status.HTTP_201_CREATED


async def test_duplicate_membership_is_a_conflict(client, seed):
    headers = seed.headers("staff")
    group = await _make_group(client, headers)
    body = {"patient_id": str(seed.patient_a)}
    await client.post(f"/api/v1/groups/{group['id']}/assignments", json=body, headers=headers)

    again = await client.post(f"/api/v1/groups/{group['id']}/assignments", json=body, headers=headers)
    assert again.status_code == status.HTTP_409_CONFLICT
    assert again.json()["error"] == "Patient is already assigned to this group"


async def test_attendance_upsert_counts_each_session_once(client, seed, fresh_store):
    headers = seed.headers("staff")
    group = await _make_group(client, headers)
    assignment = await client.post(
        f"/api/v1/groups/{group['id']}/assignments", json={"patient_id": str(seed.patient_a)}, headers=headers
    )
    session = {
        "session_date": "2030-02-01",
        "attendance_records": [{"patient_id": str(seed.patient_a), "attended": True}],
    }

    first = await client.post(f"/api/v1/groups/{group['id']}/attendance", json=session, headers=headers)
    assert first.status_code == status.HTTP_200_OK
    assert first.json()["success"] == 1
    assert first.json()["failed"] == 0

    session["attendance_records"][0]["notes"] = "Arrived late"
    second = await client.post(f"/api/v1/groups/{group['id']}/attendance", json=session, headers=headers)
    assert second.status_code == status.HTTP_200_OK
    assert second.json()["results"][0]["attendance_notes"] == "Arrived late"

    store = fresh_store()
    rows = store.scalars(
        store.select(GroupSessionAttendanceORM).where(GroupSessionAttendanceORM.group_id == UUID(group["id"]))
    )
    assert len(rows) == 1
    member = store.get(PatientGroupAssignmentORM, UUID(assignment.json()["id"]))
    assert member.sessions_attended == 1
    assert member.last_attendance_date.isoformat() == "2030-02-01"


async def test_portal_patient_self_enrolls(client, seed):
    staff = seed.headers("staff")
    open_group = await _make_group(client, staff, name="Open circle", allow_self_enrollment=True)
    await _make_group(client, staff, name="Closed circle")

    listing = await client.get("/api/v1/portal/groups", headers=seed.headers("portal"))
    assert listing.status_code == status.HTTP_200_OK
    assert [g["name"] for g in listing.json()] == ["Open circle"]

    enrolled = await client.post(f"/api/v1/portal/groups/{open_group['id']}/enroll", headers=seed.headers("portal"))
    assert enrolled.status_code == status.HTTP_201_CREATED
    assert enrolled.json()["patient_id"] == str(seed.portal_patient)
    assert enrolled.json()["assigned_by"] is None

    again = await client.post(f"/api/v1/portal/groups/{open_group['id']}/enroll", headers=seed.headers("portal"))
    assert again.status_code == status.HTTP_409_CONFLICT


async def test_portal_enrollment_respects_group_settings(client, seed):
    staff = seed.headers("staff")
    closed = await _make_group(client, staff, name="Invite only")
    finished = await _make_group(client, staff, name="Last season", status="completed", allow_self_enrollment=True)

    forbidden = await client.post(f"/api/v1/portal/groups/{closed['id']}/enroll", headers=seed.headers("portal"))
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    not_open = await client.post(f"/api/v1/portal/groups/{finished['id']}/enroll", headers=seed.headers("portal"))
    assert not_open.status_code == status.HTTP_400_BAD_REQUEST


async def test_portal_requires_a_matching_patient_record(client, seed):
    # Staff identities have no patient record behind their e-mail.
    response = await client.get("/api/v1/portal/groups", headers=seed.headers("staff"))
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json() == {"error": "Patient record not found"}


async def test_attendance_rejects_patients_from_another_clinic(client, seed, fresh_store):
    headers = seed.headers("staff")
    group = await _make_group(client, headers)
    session = {
        "session_date": "2030-03-01",
        "attendance_records": [{"patient_id": str(seed.patient_b), "attended": True}],
    }

    response = await client.post(f"/api/v1/groups/{group['id']}/attendance", json=session, headers=headers)
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert (body["success"], body["failed"]) == (0, 1)
    assert body["errors"] == [{"patient_id": str(seed.patient_b), "error": "Patient not found"}]

    store = fresh_store()
    rows = store.scalars(
        store.select(GroupSessionAttendanceORM).where(GroupSessionAttendanceORM.patient_id == seed.patient_b)
    )
    assert rows == []


async def test_portal_email_shared_across_clinics_is_a_conflict(client, seed, fresh_store):
    store = fresh_store()
    store.add(
        PatientORM(
            clinic_id=seed.clinic_b,
            first_name="Grace",
            last_name="Hopper",
            dob=date(1990, 1, 5),
            email="grace.hopper@example.com",
        )
    )
    store.session.close()

    response = await client.get("/api/v1/portal/groups", headers=seed.headers("portal"))
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json() == {"error": "Patient e-mail is registered with more than one clinic"}


async def test_portal_email_repeated_within_one_clinic_uses_the_oldest_record(client, seed, fresh_store):
    store = fresh_store()
    store.add(
        PatientORM(
            clinic_id=seed.clinic_a,
            first_name="Grace",
            last_name="Hopper-Duplicate",
            dob=date(1990, 1, 5),
            email="grace.hopper@example.com",
        )
    )
    store.session.close()

    staff = seed.headers("staff")
    group = await _make_group(client, staff, allow_self_enrollment=True)
    enrolled = await client.post(f"/api/v1/portal/groups/{group['id']}/enroll", headers=seed.headers("portal"))
    assert enrolled.status_code == status.HTTP_201_CREATED
    assert enrolled.json()["patient_id"] == str(seed.portal_patient)


async def test_group_statistics_summarise_membership_and_attendance(client, seed):
    headers = seed.headers("staff")
    group = await _make_group(client, headers, max_members=4)
    stays = await client.post(
        f"/api/v1/groups/{group['id']}/assignments", json={"patient_id": str(seed.patient_a)}, headers=headers
    )
    leaves = await client.post(
        f"/api/v1/groups/{group['id']}/assignments", json={"patient_id": str(seed.portal_patient)}, headers=headers
    )
    for session_date, attended in (("2030-02-01", True), ("2030-02-08", False)):
        await client.post(
            f"/api/v1/groups/{group['id']}/attendance",
            json={
                "session_date": session_date,
                "attendance_records": [
                    {"patient_id": str(seed.patient_a), "attended": True},
                    {"patient_id": str(seed.portal_patient), "attended": attended},
                ],
            },
            headers=headers,
        )
    await client.put(
        f"/api/v1/group-assignments/{leaves.json()['id']}", json={"status": "withdrawn"}, headers=headers
    )
    assert stays.status_code == status.HTTP_201_CREATED

    response = await client.get(f"/api/v1/groups/{group['id']}/statistics", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    stats = response.json()
    assert stats["group_info"]["current_member_count"] == 1
    assert stats["membership"] == {
        "total_assignments": 2,
        "active_members": 1,
        "completed_members": 0,
        "withdrawn_members": 1,
        "capacity_utilization": 25.0,
    }
    assert stats["attendance"] == {
        "total_sessions_held": 2,
        "total_attendance_records": 4,
        "total_attended": 3,
        "total_sessions_by_all_members": 3,
        "average_attendance_rate": 75.0,
        "average_sessions_per_member": 3.0,
    }
    assert stats["completion"] == {"completion_rate": 0.0, "withdrawal_rate": 50.0}

    other_clinic = await client.get(f"/api/v1/groups/{group['id']}/statistics", headers=seed.headers("admin_b"))
    assert other_clinic.status_code == status.HTTP_404_NOT_FOUND
