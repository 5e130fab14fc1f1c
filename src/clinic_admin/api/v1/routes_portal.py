from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from src.clinic_admin.domain.models.form import FormAssignment, PortalFormSubmissionRequest, PortalSubmissionResult
from src.clinic_admin.domain.models.group import GroupAssignment, PatientGroup
from src.clinic_admin.infra.db.models import PatientORM
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.security import get_portal_patient, get_portal_store
from src.clinic_admin.services.forms.service import form_service
from src.clinic_admin.services.groups.service import group_service
from src.clinic_admin.services.side_effects import SideEffectQueue, get_side_effects

# Patient-facing endpoints. Callers authenticate like staff but are matched to
# a patient record by e-mail instead of a staff profile.
router = APIRouter(prefix="/portal", tags=["portal"])


@router.get("/groups", response_model=List[PatientGroup])
async def portal_available_groups(
    patient: PatientORM = Depends(get_portal_patient),
    store: Store = Depends(get_portal_store),
) -> List[PatientGroup]:
    return [PatientGroup.model_validate(g) for g in group_service.available_groups(store)]


@router.post("/groups/{group_id}/enroll", response_model=GroupAssignment, status_code=status.HTTP_201_CREATED)
async def portal_enroll_in_group(
    group_id: UUID,
    patient: PatientORM = Depends(get_portal_patient),
    store: Store = Depends(get_portal_store),
) -> GroupAssignment:
    return GroupAssignment.model_validate(group_service.self_enroll(store, group_id, patient))


@router.get("/forms", response_model=List[FormAssignment])
async def portal_assigned_forms(
    patient: PatientORM = Depends(get_portal_patient),
    store: Store = Depends(get_portal_store),
) -> List[FormAssignment]:
    assignments = form_service.list_assignments(store, patient_id=patient.id, open_only=True)
    return [FormAssignment.model_validate(a) for a in assignments]


@router.post("/forms/submit", response_model=PortalSubmissionResult, status_code=status.HTTP_201_CREATED)
async def portal_submit_form(
    payload: PortalFormSubmissionRequest,
    patient: PatientORM = Depends(get_portal_patient),
    store: Store = Depends(get_portal_store),
    side_effects: SideEffectQueue = Depends(get_side_effects),
) -> PortalSubmissionResult:
    submission = form_service.portal_submit(store, patient, payload, side_effects)
    return PortalSubmissionResult(submission_id=submission.id, is_complete=submission.is_complete)
