from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from src.clinic_admin.domain.models.user import TokenRequest, TokenResponse
from src.clinic_admin.errors import AuthenticationError
from src.clinic_admin.infra.auth.provider import identity_provider
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.security import get_service_store
from src.clinic_admin.services.audit.service import audit_service
from src.clinic_admin.services.side_effects import SideEffectQueue, get_side_effects

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/token", response_model=TokenResponse)
async def issue_token(
    payload: TokenRequest,
    request: Request,
    store: Store = Depends(get_service_store),
    side_effects: SideEffectQueue = Depends(get_side_effects),
) -> TokenResponse:
    """Exchange e-mail and password for a bearer token. Public endpoint."""

    client_ip = request.client.host if request.client else None
    try:
        identity = identity_provider.authenticate(store, payload.email, payload.password)
    except AuthenticationError:
        # Background work is dropped with the error response, so write directly.
        audit_service.record(
            store,
            event_type="authentication",
            event_action="login_failed",
            severity="medium",
            ip_address=client_ip,
            metadata={"email_domain": payload.email.split("@")[-1]},
        )
        raise

    token, expires_in = identity_provider.issue_token(identity)
    audit_service.log_event(
        side_effects,
        event_type="authentication",
        event_action="login",
        auth_user_id=identity.id,
        ip_address=client_ip,
        user_agent=request.headers.get("user-agent"),
    )
    return TokenResponse(access_token=token, expires_in=expires_in)
