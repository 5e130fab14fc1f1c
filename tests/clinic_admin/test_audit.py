import logging

from fastapi import status

from src.clinic_admin.infra.db.models import AuditLogORM
from src.clinic_admin.services.audit.service import audit_service
from src.clinic_admin.services.side_effects import SideEffectQueue


async def test_client_event_is_recorded_against_caller(client, seed):
    response = await client.post(
        "/api/v1/audit/events",
        json={
            "event_type": "ui",
            "event_action": "export_clicked",
            "resource_type": "report",
            "resource_id": "monthly-summary",
            "metadata": {"rows": 12},
            "severity": "medium",
        },
        headers=seed.headers("staff"),
    )
    assert response.status_code == status.HTTP_201_CREATED
    event = response.json()
    # Only UUIDs survive as resource ids.
    assert event["resource_id"] is None
    assert event["clinic_id"] == str(seed.clinic_a)
    assert event["user_id"] == str(seed.users["staff"])
    assert event["auth_user_id"] == str(seed.identities["staff"])
    assert event["request_metadata"] == {"rows": 12}
    assert event["severity"] == "medium"
    assert event["user_agent"]


async def test_client_event_keeps_uuid_resource_id(client, seed):
    response = await client.post(
        "/api/v1/audit/events",
        json={"event_type": "ui", "event_action": "opened", "resource_id": str(seed.patient_a)},
        headers=seed.headers("staff"),
    )
    assert response.json()["resource_id"] == str(seed.patient_a)


async def test_event_listing_is_scoped_by_role(client, seed):
    body = {"event_type": "ui", "event_action": "clicked"}
    await client.post("/api/v1/audit/events", json=body, headers=seed.headers("staff"))
    await client.post("/api/v1/audit/events", json=body, headers=seed.headers("admin_b"))

    as_admin = await client.get("/api/v1/audit/events", params={"event_type": "ui"}, headers=seed.headers("admin"))
    assert as_admin.status_code == status.HTTP_200_OK
    assert {e["clinic_id"] for e in as_admin.json()} == {str(seed.clinic_a)}

    as_root = await client.get("/api/v1/audit/events", params={"event_type": "ui"}, headers=seed.headers("sysadmin"))
    assert {e["clinic_id"] for e in as_root.json()} == {str(seed.clinic_a), str(seed.clinic_b)}

    as_staff = await client.get("/api/v1/audit/events", headers=seed.headers("staff"))
    assert as_staff.status_code == status.HTTP_403_FORBIDDEN

    bad_limit = await client.get("/api/v1/audit/events", params={"limit": 0}, headers=seed.headers("admin"))
    assert bad_limit.status_code == status.HTTP_400_BAD_REQUEST


def test_failing_side_effect_does_not_stop_the_others(seed, caplog):
    ran = []

    def remember(store, label):
        ran.append(label)

    def explode(store):
        raise RuntimeError("boom")

    queue = SideEffectQueue()
    queue.emit("first", remember, "first")
    queue.emit("broken", explode)
    queue.emit("last", remember, "last")
    assert queue.names == ["first", "broken", "last"]

    with caplog.at_level(logging.ERROR):
        failed = queue.dispatch()

    assert failed == ["broken"]
    assert ran == ["first", "last"]
    assert len(queue) == 0
    assert "Side effect broken failed" in caplog.text


def test_log_event_queues_persistence(seed, fresh_store, caplog):
    queue = SideEffectQueue()
    with caplog.at_level(logging.INFO, logger="audit"):
        event = audit_service.log_event(
            queue,
            event_type="data_access",
            event_action="view",
            resource_type="patient",
            resource_id=seed.patient_a,
            clinic_id=seed.clinic_a,
            phi_accessed=True,
            severity="extreme",
        )

    assert event.severity == "low"
    assert '"event_action": "view"' in caplog.text
    assert queue.names == ["audit_log"]

    assert queue.dispatch() == []
    store = fresh_store()
    rows = store.scalars(store.select(AuditLogORM).where(AuditLogORM.event_type == "data_access"))
    assert [(row.resource_id, row.phi_accessed) for row in rows] == [(seed.patient_a, True)]
