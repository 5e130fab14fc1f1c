from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from src.clinic_admin.domain.models.clinic import (
    ClinicCreateRequest,
    ClinicUpdateRequest,
    OrganizationCreateRequest,
    OrganizationUpdateRequest,
)
from src.clinic_admin.errors import NotFoundError, ValidationError
from src.clinic_admin.infra.db.models import ClinicORM, OrganizationORM
from src.clinic_admin.infra.db.store import Store

logger = logging.getLogger(__name__)


class ClinicService:
    """Clinic and organization management.

    Clinics are the tenant boundary themselves, so these rows are not
    tenant-scoped; callers other than System Admins only ever see their own
    clinic.
    """

    def list_clinics(self, store: Store, only_id: Optional[UUID] = None) -> List[ClinicORM]:
        stmt = store.select(ClinicORM).order_by(ClinicORM.name)
        if only_id is not None:
            stmt = stmt.where(ClinicORM.id == only_id)
        return store.scalars(stmt)

    def get_clinic(self, store: Store, clinic_id: UUID) -> ClinicORM:
        clinic = store.get(ClinicORM, clinic_id)
        if clinic is None:
            raise NotFoundError("Clinic not found")
        return clinic

    def create_clinic(self, store: Store, payload: ClinicCreateRequest) -> ClinicORM:
        if payload.organization_id is not None:
            self.get_organization(store, payload.organization_id)
        clinic = store.add(ClinicORM(**payload.model_dump()))
        logger.info("Created clinic %s", clinic.id)
        return clinic

    def update_clinic(self, store: Store, clinic_id: UUID, payload: ClinicUpdateRequest) -> ClinicORM:
        clinic = self.get_clinic(store, clinic_id)
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        if changes.get("organization_id") is not None:
            self.get_organization(store, changes["organization_id"])
        for field, value in changes.items():
            setattr(clinic, field, value)
        return store.save(clinic)

    def deactivate_clinic(self, store: Store, clinic_id: UUID) -> ClinicORM:
        clinic = self.get_clinic(store, clinic_id)
        clinic.is_active = False
        logger.info("Deactivated clinic %s", clinic_id)
        return store.save(clinic)

    def list_organizations(self, store: Store) -> List[OrganizationORM]:
        return store.scalars(store.select(OrganizationORM).order_by(OrganizationORM.name))

    def get_organization(self, store: Store, organization_id: UUID) -> OrganizationORM:
        organization = store.get(OrganizationORM, organization_id)
        if organization is None:
            raise NotFoundError("Organization not found")
        return organization

    def create_organization(self, store: Store, payload: OrganizationCreateRequest) -> OrganizationORM:
        return store.add(OrganizationORM(**payload.model_dump()))

    def update_organization(
        self, store: Store, organization_id: UUID, payload: OrganizationUpdateRequest
    ) -> OrganizationORM:
        organization = self.get_organization(store, organization_id)
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        for field, value in changes.items():
            setattr(organization, field, value)
        return store.save(organization)


clinic_service = ClinicService()
