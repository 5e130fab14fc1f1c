from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass
from typing import Optional
from uuid import UUID


@dataclass(frozen=True)
class TenantContext:
    """Clinic/organization pair every persisted record is scoped to.

    Always derived from the authenticated caller's profile; never read from
    request bodies or headers.
    """

    clinic_id: UUID
    organization_id: Optional[UUID] = None


# Tenant for the in-flight request. Set by the profile resolver in
# src.clinic_admin.security once the caller's profile is known.
_current_tenant: ContextVar[Optional[TenantContext]] = ContextVar("current_tenant", default=None)


def get_current_tenant() -> Optional[TenantContext]:
    """Return the tenant of the current request, if one has been resolved.

    Outside HTTP requests (direct service calls in tests, background side
    effects) this is None unless explicitly set.
    """

    return _current_tenant.get()


def set_current_tenant(tenant: Optional[TenantContext]) -> None:
    _current_tenant.set(tenant)
