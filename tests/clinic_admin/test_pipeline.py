from fastapi import status

from src.clinic_admin.infra.db.models import PatientORM


async def test_root_health_check(client):
    response = await client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


async def test_v1_health_check(client):
    response = await client.get("/api/v1/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok", "version": "v1", "database": "ok"}


async def test_missing_token_is_rejected_without_side_effects(client, fresh_store):
    store = fresh_store()
    before = len(store.scalars(store.select(PatientORM)))

    response = await client.post(
        "/api/v1/patients",
        json={"first_name": "No", "last_name": "Token", "dob": "2000-01-01"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert "error" in response.json()

    store = fresh_store()
    assert len(store.scalars(store.select(PatientORM))) == before


async def test_garbage_token_is_rejected(client):
    response = await client.get("/api/v1/patients", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


async def test_auth_runs_before_body_validation(client):
    # An invalid body without credentials still reports 401 first.
    response = await client.post("/api/v1/patients", json={"first_name": 7})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


BROKEN_JSON = {"content": b"{not json", "headers": {"Content-Type": "application/json"}}


async def test_undecodable_body_without_credentials_is_unauthorized(client):
    response = await client.post("/api/v1/patients", **BROKEN_JSON)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {"error": "Authentication required"}


async def test_undecodable_body_checks_role_first(client, seed):
    headers = {**BROKEN_JSON["headers"], **seed.headers("staff")}
    response = await client.post("/api/v1/users", content=BROKEN_JSON["content"], headers=headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error"] == "Unauthorized. System Admin role required."


async def test_undecodable_body_from_authorized_caller_is_a_bad_request(client, seed):
    headers = {**BROKEN_JSON["headers"], **seed.headers("staff")}
    response = await client.post("/api/v1/patients", content=BROKEN_JSON["content"], headers=headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "Validation failed"

    public = await client.post("/api/v1/auth/token", **BROKEN_JSON)
    assert public.status_code == status.HTTP_400_BAD_REQUEST


async def test_identity_without_profile_is_forbidden(client, seed):
    response = await client.get("/api/v1/patients", headers=seed.headers("portal"))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == {"error": "User profile not found"}


async def test_role_gate_names_the_required_roles(client, seed):
    response = await client.get("/api/v1/users", headers=seed.headers("staff"))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["error"] == "Unauthorized. System Admin or Admin role required."


async def test_preflight_is_answered_without_auth(client):
    response = await client.options(
        "/api/v1/patients",
        headers={"Origin": "https://app.example.com", "Access-Control-Request-Method": "POST"},
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.headers["access-control-allow-origin"] == "*"
    assert "authorization" in response.headers["access-control-allow-headers"]
    assert "DELETE" in response.headers["access-control-allow-methods"]


async def test_error_responses_carry_cors_headers(client, seed):
    unauthenticated = await client.get("/api/v1/tasks")
    assert unauthenticated.status_code == status.HTTP_401_UNAUTHORIZED
    assert unauthenticated.headers["access-control-allow-origin"] == "*"

    missing = await client.get(
        "/api/v1/patients/00000000-0000-0000-0000-000000000000", headers=seed.headers("staff")
    )
    assert missing.status_code == status.HTTP_404_NOT_FOUND
    assert missing.headers["access-control-allow-origin"] == "*"
    assert missing.json() == {"error": "Patient not found"}


async def test_validation_errors_use_the_error_envelope(client, seed):
    response = await client.post(
        "/api/v1/patients",
        json={"first_name": "Missing"},
        headers=seed.headers("staff"),
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    body = response.json()
    assert body["error"] == "Validation failed"
    assert "last_name is required" in body["details"]
    assert "dob is required" in body["details"]
