from fastapi import APIRouter
from sqlalchemy import text

from src.clinic_admin.infra.db.session import get_engine

router = APIRouter(prefix="", tags=["system"])


@router.get("/health")
async def health_check_v1() -> dict:
    """API v1 health endpoint, including a trivial store round trip."""

    with get_engine().connect() as connection:
        connection.execute(text("SELECT 1"))
    return {"status": "ok", "version": "v1", "database": "ok"}
