from dataclasses import dataclass
from datetime import date
from typing import Dict
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient

from src.clinic_admin.domain.models.user import UserRole
from src.clinic_admin.infra.auth.provider import Identity, identity_provider
from src.clinic_admin.infra.db.models import ClinicORM, OrganizationORM, PatientORM, RoleORM, UserORM
from src.clinic_admin.infra.db.session import get_session_factory, init_db
from src.clinic_admin.infra.db.store import Store, StoreScope
from src.clinic_admin.main import app
from src.clinic_admin.tenancy import set_current_tenant

PASSWORD = "s3cret-pass"


@dataclass
class Seed:
    clinic_a: UUID
    clinic_b: UUID
    roles: Dict[str, UUID]
    users: Dict[str, UUID]
    identities: Dict[str, UUID]
    emails: Dict[str, str]
    patient_a: UUID
    portal_patient: UUID
    patient_b: UUID

    def headers(self, who: str) -> Dict[str, str]:
        return auth_headers(self.identities[who], self.emails[who])


def auth_headers(identity_id: UUID, email: str) -> Dict[str, str]:
    token, _ = identity_provider.issue_token(Identity(id=identity_id, email=email))
    return {"Authorization": f"Bearer {token}"}


def service_store() -> Store:
    return Store(get_session_factory()(), StoreScope.SERVICE)


@pytest.fixture(autouse=True)
def seed() -> Seed:
    """Fresh schema with two clinics, one user per role and a few patients."""

    init_db(drop_existing=True)
    set_current_tenant(None)
    store = service_store()

    org = store.add(OrganizationORM(name="Northside Health"))
    clinic_a = store.add(ClinicORM(name="Clinic A", organization_id=org.id))
    clinic_b = store.add(ClinicORM(name="Clinic B", organization_id=org.id))
    roles = {role.value: store.add(RoleORM(name=role.value)).id for role in UserRole}

    people = {
        "sysadmin": ("root@example.com", UserRole.SYSTEM_ADMIN, clinic_a.id),
        "admin": ("admin@example.com", UserRole.ADMIN, clinic_a.id),
        "staff": ("staff@example.com", UserRole.STAFF, clinic_a.id),
        "provider": ("provider@example.com", UserRole.PROVIDER, clinic_a.id),
        "admin_b": ("admin-b@example.com", UserRole.ADMIN, clinic_b.id),
    }
    users: Dict[str, UUID] = {}
    identities: Dict[str, UUID] = {}
    emails: Dict[str, str] = {}
    for key, (email, role, clinic_id) in people.items():
        identity = identity_provider.create_identity(store, email, PASSWORD)
        user = store.add(
            UserORM(
                auth_user_id=identity.id,
                email=email,
                full_name=key.replace("_", " ").title(),
                role_id=roles[role.value],
                clinic_id=clinic_id,
            )
        )
        users[key] = user.id
        identities[key] = identity.id
        emails[key] = email

    patient_a = store.add(
        PatientORM(clinic_id=clinic_a.id, first_name="Ada", last_name="Lovelace", dob=date(1985, 12, 10))
    )
    portal_patient = store.add(
        PatientORM(
            clinic_id=clinic_a.id,
            first_name="Grace",
            last_name="Hopper",
            dob=date(1990, 1, 5),
            email="Grace.Hopper@Example.com",
        )
    )
    patient_b = store.add(
        PatientORM(clinic_id=clinic_b.id, first_name="Alan", last_name="Turing", dob=date(1980, 6, 23))
    )

    # Portal login for the patient above; no staff profile.
    portal_identity = identity_provider.create_identity(store, "grace.hopper@example.com", PASSWORD)
    identities["portal"] = portal_identity.id
    emails["portal"] = portal_identity.email

    data = Seed(
        clinic_a=clinic_a.id,
        clinic_b=clinic_b.id,
        roles=roles,
        users=users,
        identities=identities,
        emails=emails,
        patient_a=patient_a.id,
        portal_patient=portal_patient.id,
        patient_b=patient_b.id,
    )
    store.session.close()
    return data


@pytest.fixture
async def client():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def fresh_store():
    """Factory for service stores on new sessions, for asserting on committed state."""

    return service_store
