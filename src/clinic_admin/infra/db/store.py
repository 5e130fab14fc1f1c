"""Store capabilities over an ORM session.

A ``Store`` is the only handle services use to reach the database. Its
``scope`` decides whether tenant filtering applies:

- ``StoreScope.CALLER`` restricts every query on a tenant-scoped model to the
  caller's clinic and stamps that clinic onto new rows, the same guarantee
  row-level security gives a client using the anonymous key.
- ``StoreScope.SERVICE`` bypasses the filter. Handlers must ask for it
  explicitly (``security.get_service_store``); a caller store cannot be
  widened.
"""

from __future__ import annotations

import enum
from typing import Any, Iterable, List, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from src.clinic_admin.errors import StoreError
from src.clinic_admin.tenancy import TenantContext

T = TypeVar("T")


class StoreScope(str, enum.Enum):
    CALLER = "caller"
    SERVICE = "service"


def is_tenant_scoped(model: Type[Any]) -> bool:
    return bool(getattr(model, "__tenant_scoped__", False))


class Store:
    def __init__(self, session: Session, scope: StoreScope, tenant: Optional[TenantContext] = None) -> None:
        if scope == StoreScope.CALLER and tenant is None:
            raise StoreError("Caller store requires a tenant")
        self.session = session
        self.scope = scope
        self.tenant = tenant

    @property
    def clinic_id(self) -> Optional[UUID]:
        return self.tenant.clinic_id if self.tenant is not None else None

    def _restrict(self, stmt: Select, model: Type[Any]) -> Select:
        if self.scope == StoreScope.CALLER and is_tenant_scoped(model):
            stmt = stmt.where(model.clinic_id == self.tenant.clinic_id)  # type: ignore[union-attr]
        return stmt

    def select(self, model: Type[T]) -> Select:
        """Start a SELECT over ``model`` with the tenant filter already applied."""

        return self._restrict(select(model), model)

    def scalars(self, stmt: Select) -> List[Any]:
        return list(self.session.scalars(stmt).unique().all())

    def first(self, stmt: Select) -> Optional[Any]:
        return self.session.scalars(stmt.limit(1)).unique().first()

    def get(self, model: Type[T], id_: UUID) -> Optional[T]:
        stmt = self.select(model).where(model.id == id_)  # type: ignore[attr-defined]
        return self.first(stmt)

    def add(self, obj: Any, commit: bool = True) -> Any:
        if self.scope == StoreScope.CALLER and is_tenant_scoped(type(obj)):
            # Tenant is always the caller's clinic, whatever the payload said.
            obj.clinic_id = self.tenant.clinic_id  # type: ignore[union-attr]
        self.session.add(obj)
        if commit:
            self.commit()
        return obj

    def add_all(self, objs: Iterable[Any]) -> List[Any]:
        added = [self.add(obj, commit=False) for obj in objs]
        self.commit()
        return added

    def save(self, obj: Any) -> Any:
        """Persist pending changes on an already-loaded row."""

        self.session.add(obj)
        self.commit()
        return obj

    def delete(self, obj: Any) -> None:
        self.session.delete(obj)
        self.commit()

    def commit(self) -> None:
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
