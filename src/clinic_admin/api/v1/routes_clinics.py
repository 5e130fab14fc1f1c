from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from src.clinic_admin.domain.models.clinic import (
    Clinic,
    ClinicCreateRequest,
    ClinicUpdateRequest,
    Organization,
    OrganizationCreateRequest,
    OrganizationUpdateRequest,
)
from src.clinic_admin.domain.models.user import UserRole
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.security import AuthContext, get_auth_context, get_service_store, require_roles
from src.clinic_admin.services.clinics.service import clinic_service

router = APIRouter(tags=["clinics"])

require_system_admin = require_roles(UserRole.SYSTEM_ADMIN)


@router.get("/clinics", response_model=List[Clinic])
async def list_clinics(
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_service_store),
) -> List[Clinic]:
    only_id = None if context.is_system_admin else context.clinic_id
    return [Clinic.model_validate(clinic) for clinic in clinic_service.list_clinics(store, only_id)]


@router.post("/clinics", response_model=Clinic, status_code=status.HTTP_201_CREATED)
async def create_clinic(
    payload: ClinicCreateRequest,
    context: AuthContext = Depends(require_system_admin),
    store: Store = Depends(get_service_store),
) -> Clinic:
    return Clinic.model_validate(clinic_service.create_clinic(store, payload))


@router.put("/clinics/{clinic_id}", response_model=Clinic)
async def update_clinic(
    clinic_id: UUID,
    payload: ClinicUpdateRequest,
    context: AuthContext = Depends(require_system_admin),
    store: Store = Depends(get_service_store),
) -> Clinic:
    return Clinic.model_validate(clinic_service.update_clinic(store, clinic_id, payload))


@router.delete("/clinics/{clinic_id}")
async def delete_clinic(
    clinic_id: UUID,
    context: AuthContext = Depends(require_system_admin),
    store: Store = Depends(get_service_store),
) -> dict:
    clinic_service.deactivate_clinic(store, clinic_id)
    return {"success": True, "message": "Clinic deactivated"}


@router.get("/organizations", response_model=List[Organization])
async def list_organizations(
    context: AuthContext = Depends(require_system_admin),
    store: Store = Depends(get_service_store),
) -> List[Organization]:
    return [Organization.model_validate(org) for org in clinic_service.list_organizations(store)]


@router.post("/organizations", response_model=Organization, status_code=status.HTTP_201_CREATED)
async def create_organization(
    payload: OrganizationCreateRequest,
    context: AuthContext = Depends(require_system_admin),
    store: Store = Depends(get_service_store),
) -> Organization:
    return Organization.model_validate(clinic_service.create_organization(store, payload))


@router.put("/organizations/{organization_id}", response_model=Organization)
async def update_organization(
    organization_id: UUID,
    payload: OrganizationUpdateRequest,
    context: AuthContext = Depends(require_system_admin),
    store: Store = Depends(get_service_store),
) -> Organization:
    return Organization.model_validate(clinic_service.update_organization(store, organization_id, payload))
