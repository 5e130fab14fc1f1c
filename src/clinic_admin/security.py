"""Request pipeline steps shared by every resource router.

Each step is a FastAPI dependency, composed per route:

    get_identity -> get_auth_context -> require_roles(...) -> store

``get_identity`` turns the bearer token into an :class:`Identity` (401 on any
failure), ``get_auth_context`` resolves the caller's profile and tenant (403
when no profile exists) and ``require_roles`` gates on role name. Stores are
handed out per request: the caller-scoped store is clinic-filtered, the
service store is not and has to be requested by name.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence, Union
from uuid import UUID

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import func
from sqlalchemy.orm import Session

from src.clinic_admin.domain.models.user import UserRole
from src.clinic_admin.errors import AuthenticationError, AuthorizationError, ConflictError, NotFoundError
from src.clinic_admin.infra.auth.provider import Identity, identity_provider
from src.clinic_admin.infra.db.models import PatientORM, UserORM
from src.clinic_admin.infra.db.session import get_db, get_session_factory
from src.clinic_admin.infra.db.store import Store, StoreScope
from src.clinic_admin.tenancy import TenantContext, set_current_tenant

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller with resolved profile and tenant."""

    identity: Identity
    user_id: UUID
    clinic_id: UUID
    organization_id: Optional[UUID]
    role_name: str
    full_name: str
    email: str

    @property
    def tenant(self) -> TenantContext:
        return TenantContext(clinic_id=self.clinic_id, organization_id=self.organization_id)

    @property
    def is_system_admin(self) -> bool:
        return self.role_name == UserRole.SYSTEM_ADMIN.value


def get_service_store(session: Session = Depends(get_db)) -> Store:
    """Privileged store without tenant filtering.

    Handlers that need cross-tenant reads (profile lookup, provider names,
    portal patient matching) or secondary writes depend on this explicitly.
    """

    return Store(session, StoreScope.SERVICE)


async def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(_bearer),
    session: Session = Depends(get_db),
) -> Identity:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise AuthenticationError()
    return identity_provider.verify_token(Store(session, StoreScope.SERVICE), credentials.credentials)


def _load_profile(store: Store, identity: Identity) -> UserORM:
    user = store.first(store.select(UserORM).where(UserORM.auth_user_id == identity.id))
    if user is None or not user.is_active:
        raise AuthorizationError("User profile not found")
    return user


async def get_auth_context(
    identity: Identity = Depends(get_identity),
    session: Session = Depends(get_db),
) -> AuthContext:
    user = _load_profile(Store(session, StoreScope.SERVICE), identity)

    context = AuthContext(
        identity=identity,
        user_id=user.id,
        clinic_id=user.clinic_id,
        organization_id=user.clinic.organization_id if user.clinic is not None else None,
        role_name=user.role_name or "",
        full_name=user.full_name,
        email=user.email,
    )
    set_current_tenant(context.tenant)
    return context


def _check_role(role_name: str, allowed: Sequence[str]) -> None:
    if role_name not in allowed:
        raise AuthorizationError(f"Unauthorized. {' or '.join(allowed)} role required.")


def require_roles(*roles: Union[UserRole, str]) -> Callable[..., AuthContext]:
    """Build a dependency that admits only callers holding one of ``roles``."""

    allowed: Sequence[str] = [role.value if isinstance(role, UserRole) else role for role in roles]

    async def _require(context: AuthContext = Depends(get_auth_context)) -> AuthContext:
        _check_role(context.role_name, allowed)
        return context

    # Read by check_route_credentials, which gates requests outside dependency resolution.
    _require.allowed_roles = allowed  # type: ignore[attr-defined]
    return _require


def get_caller_store(
    context: AuthContext = Depends(get_auth_context),
    session: Session = Depends(get_db),
) -> Store:
    return Store(session, StoreScope.CALLER, context.tenant)


async def get_portal_patient(
    identity: Identity = Depends(get_identity),
    store: Store = Depends(get_service_store),
) -> PatientORM:
    """Resolve a portal caller to their patient record by e-mail.

    Within one clinic the oldest matching record wins. An e-mail that matches
    patients of several clinics is ambiguous and rejected with 409.
    """

    matches = store.scalars(
        store.select(PatientORM)
        .where(func.lower(PatientORM.email) == identity.email.lower(), PatientORM.is_deleted.is_(False))
        .order_by(PatientORM.created_at)
    )
    if not matches:
        raise NotFoundError("Patient record not found")
    if len({row.clinic_id for row in matches}) > 1:
        raise ConflictError("Patient e-mail is registered with more than one clinic")
    patient = matches[0]
    set_current_tenant(TenantContext(clinic_id=patient.clinic_id))
    return patient


def get_portal_store(
    patient: PatientORM = Depends(get_portal_patient),
    session: Session = Depends(get_db),
) -> Store:
    return Store(session, StoreScope.CALLER, TenantContext(clinic_id=patient.clinic_id))


def _dependency_calls(dependant: Any) -> List[Callable[..., Any]]:
    calls: List[Callable[..., Any]] = []
    for sub in dependant.dependencies:
        calls.append(sub.call)
        calls.extend(_dependency_calls(sub))
    return calls


def check_route_credentials(request: Request) -> None:
    """Run the matched route's credential and role checks by hand.

    FastAPI decodes a JSON body before it resolves dependencies, so a body
    that is not JSON at all would otherwise be reported ahead of a missing
    token or an insufficient role. Raises the same 401/403 errors as the
    dependencies; returns quietly for public routes.
    """

    dependant = getattr(request.scope.get("route"), "dependant", None)
    if dependant is None:
        return
    calls = _dependency_calls(dependant)
    if get_identity not in calls:
        return

    scheme, _, token = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError()

    session = get_session_factory()()
    try:
        store = Store(session, StoreScope.SERVICE)
        identity = identity_provider.verify_token(store, token.strip())
        if get_auth_context not in calls:
            return
        user = _load_profile(store, identity)
        for call in calls:
            allowed = getattr(call, "allowed_roles", None)
            if allowed is not None:
                _check_role(user.role_name or "", allowed)
    finally:
        session.close()
