from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.clinic_admin.domain.models.compliance import (
    PatientStateHistory,
    PatientStateUpdateRequest,
    PatientStateUpdateResult,
)
from src.clinic_admin.domain.models.patient import Patient, PatientCreateRequest, PatientUpdateRequest
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.security import AuthContext, get_auth_context, get_caller_store
from src.clinic_admin.services.audit.service import audit_service
from src.clinic_admin.services.compliance.service import compliance_service
from src.clinic_admin.services.patients.service import patient_service
from src.clinic_admin.services.side_effects import SideEffectQueue, get_side_effects

router = APIRouter(prefix="/patients", tags=["patients"])


@router.get("", response_model=List[Patient])
async def list_patients(
    search: Optional[str] = Query(default=None),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[Patient]:
    return [Patient.model_validate(p) for p in patient_service.list_patients(store, search)]


@router.get("/{patient_id}", response_model=Patient)
async def get_patient(
    patient_id: UUID,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
    side_effects: SideEffectQueue = Depends(get_side_effects),
) -> Patient:
    patient = patient_service.get_patient(store, patient_id)
    audit_service.log_event(
        side_effects,
        event_type="data_access",
        event_action="view",
        resource_type="patient",
        resource_id=patient.id,
        user_id=context.user_id,
        auth_user_id=context.identity.id,
        phi_accessed=True,
    )
    return Patient.model_validate(patient)


@router.post("", response_model=Patient, status_code=status.HTTP_201_CREATED)
async def create_patient(
    payload: PatientCreateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> Patient:
    return Patient.model_validate(patient_service.create_patient(store, payload, created_by=context.user_id))


@router.put("/{patient_id}", response_model=Patient)
async def update_patient(
    patient_id: UUID,
    payload: PatientUpdateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> Patient:
    return Patient.model_validate(patient_service.update_patient(store, patient_id, payload))


@router.delete("/{patient_id}")
async def delete_patient(
    patient_id: UUID,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> dict:
    patient_service.delete_patient(store, patient_id)
    return {"success": True, "message": "Patient deleted successfully"}


@router.post("/{patient_id}/state", response_model=PatientStateUpdateResult, status_code=status.HTTP_201_CREATED)
async def update_patient_state(
    patient_id: UUID,
    payload: PatientStateUpdateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
    side_effects: SideEffectQueue = Depends(get_side_effects),
) -> PatientStateUpdateResult:
    return compliance_service.update_patient_state(store, patient_id, payload, context.user_id, side_effects)


@router.get("/{patient_id}/state-history", response_model=List[PatientStateHistory])
async def get_patient_state_history(
    patient_id: UUID,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[PatientStateHistory]:
    return [PatientStateHistory.model_validate(row) for row in compliance_service.state_history(store, patient_id)]
