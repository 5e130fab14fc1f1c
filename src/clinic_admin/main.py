from fastapi import FastAPI

from src.clinic_admin.api.v1.routes_appointments import router as appointments_router_v1
from src.clinic_admin.api.v1.routes_audit import router as audit_router_v1
from src.clinic_admin.api.v1.routes_auth import router as auth_router_v1
from src.clinic_admin.api.v1.routes_clinical_notes import router as clinical_notes_router_v1
from src.clinic_admin.api.v1.routes_clinics import router as clinics_router_v1
from src.clinic_admin.api.v1.routes_compliance import router as compliance_router_v1
from src.clinic_admin.api.v1.routes_forms import router as forms_router_v1
from src.clinic_admin.api.v1.routes_gift_cards import router as gift_cards_router_v1
from src.clinic_admin.api.v1.routes_groups import router as groups_router_v1
from src.clinic_admin.api.v1.routes_inventory import router as inventory_router_v1
from src.clinic_admin.api.v1.routes_memberships import router as memberships_router_v1
from src.clinic_admin.api.v1.routes_patients import router as patients_router_v1
from src.clinic_admin.api.v1.routes_portal import router as portal_router_v1
from src.clinic_admin.api.v1.routes_resources import router as resources_router_v1
from src.clinic_admin.api.v1.routes_scheduling import router as scheduling_router_v1
from src.clinic_admin.api.v1.routes_system import router as system_router_v1
from src.clinic_admin.api.v1.routes_tasks import router as tasks_router_v1
from src.clinic_admin.api.v1.routes_users import router as users_router_v1
from src.clinic_admin.cors import StaticCorsMiddleware
from src.clinic_admin.errors import UnhandledErrorMiddleware, install_error_handlers
from src.clinic_admin.infra.db.session import init_db
from src.clinic_admin.logging_config import configure_logging

configure_logging()

app = FastAPI(title="Clinic Admin API")


@app.on_event("startup")
async def on_startup() -> None:
    """Application startup hook.

    Creates any missing tables on the configured database. Against the default
    in-memory SQLite this gives every process a fresh, empty schema.
    """

    init_db()


install_error_handlers(app)

# Middleware added last runs first: CORS wraps the catch-all so even an
# unhandled 500 carries the CORS header set.
app.add_middleware(UnhandledErrorMiddleware)
app.add_middleware(StaticCorsMiddleware)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    """Basic liveness check for the API root."""
    return {"status": "ok"}


# Versioned API routers
app.include_router(system_router_v1, prefix="/api/v1")
app.include_router(auth_router_v1, prefix="/api/v1")
app.include_router(users_router_v1, prefix="/api/v1")
app.include_router(clinics_router_v1, prefix="/api/v1")
app.include_router(patients_router_v1, prefix="/api/v1")
app.include_router(tasks_router_v1, prefix="/api/v1")
app.include_router(appointments_router_v1, prefix="/api/v1")
app.include_router(scheduling_router_v1, prefix="/api/v1")
app.include_router(clinical_notes_router_v1, prefix="/api/v1")
app.include_router(resources_router_v1, prefix="/api/v1")
app.include_router(groups_router_v1, prefix="/api/v1")
app.include_router(portal_router_v1, prefix="/api/v1")
app.include_router(gift_cards_router_v1, prefix="/api/v1")
app.include_router(memberships_router_v1, prefix="/api/v1")
app.include_router(inventory_router_v1, prefix="/api/v1")
app.include_router(forms_router_v1, prefix="/api/v1")
app.include_router(compliance_router_v1, prefix="/api/v1")
app.include_router(audit_router_v1, prefix="/api/v1")
