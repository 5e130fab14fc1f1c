from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from src.clinic_admin.domain.models.audit import AuditEventRequest, AuditLog
from src.clinic_admin.domain.models.user import ADMIN_ROLES
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.security import AuthContext, get_auth_context, get_service_store, require_roles
from src.clinic_admin.services.audit.service import audit_service

router = APIRouter(prefix="/audit", tags=["audit"])


@router.post("/events", response_model=AuditLog, status_code=status.HTTP_201_CREATED)
async def log_audit_event(
    payload: AuditEventRequest,
    request: Request,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_service_store),
) -> AuditLog:
    """Record a client-side audit event against the caller's clinic."""

    row = audit_service.record(
        store,
        event_type=payload.event_type,
        event_action=payload.event_action,
        resource_type=payload.resource_type,
        resource_id=payload.resource_id,
        clinic_id=context.clinic_id,
        user_id=context.user_id,
        auth_user_id=context.identity.id,
        phi_accessed=payload.phi_accessed,
        severity=payload.severity,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
        session_id=payload.session_id,
        metadata=payload.metadata,
    )
    return AuditLog.model_validate(row)


@router.get("/events", response_model=List[AuditLog])
async def list_audit_events(
    event_type: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    context: AuthContext = Depends(require_roles(*ADMIN_ROLES)),
    store: Store = Depends(get_service_store),
) -> List[AuditLog]:
    clinic_id = None if context.is_system_admin else context.clinic_id
    rows = audit_service.list_events(store, clinic_id, event_type, limit)
    return [AuditLog.model_validate(row) for row in rows]
