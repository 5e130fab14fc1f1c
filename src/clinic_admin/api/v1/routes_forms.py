from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.clinic_admin.domain.models.form import (
    FormAssignment,
    FormAssignmentCreateRequest,
    FormAssignmentUpdateRequest,
    FormDefinitionCreateRequest,
    FormDefinitionWithVersion,
    FormSubmission,
    FormSubmissionCreateRequest,
    FormVersion,
    FormVersionCreateRequest,
    PublicationRule,
    PublicationRuleCreateRequest,
    TriggerRequest,
    TriggerResult,
)
from src.clinic_admin.domain.models.user import ADMIN_ROLES
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.security import AuthContext, get_auth_context, get_caller_store, require_roles
from src.clinic_admin.services.forms.service import form_service
from src.clinic_admin.services.side_effects import SideEffectQueue, get_side_effects

router = APIRouter(tags=["forms"])

require_admin = require_roles(*ADMIN_ROLES)


@router.get("/forms", response_model=List[FormDefinitionWithVersion])
async def list_form_definitions(
    category: Optional[str] = Query(default=None),
    is_active: Optional[bool] = Query(default=None),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[FormDefinitionWithVersion]:
    return form_service.list_definitions(store, category, is_active)


@router.post("/forms", response_model=FormDefinitionWithVersion, status_code=status.HTTP_201_CREATED)
async def create_form_definition(
    payload: FormDefinitionCreateRequest,
    context: AuthContext = Depends(require_admin),
    store: Store = Depends(get_caller_store),
) -> FormDefinitionWithVersion:
    return form_service.create_definition(store, payload, context.user_id, context.organization_id)


# Declared before /forms/{form_id}/... so the literal path wins.
@router.post("/forms/trigger-assignments", response_model=TriggerResult)
async def trigger_form_assignments(
    payload: TriggerRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> TriggerResult:
    return form_service.trigger_assignments(store, payload)


@router.post("/forms/{form_id}/versions", response_model=FormVersion, status_code=status.HTTP_201_CREATED)
async def create_form_version(
    form_id: UUID,
    payload: FormVersionCreateRequest,
    context: AuthContext = Depends(require_admin),
    store: Store = Depends(get_caller_store),
) -> FormVersion:
    return FormVersion.model_validate(form_service.create_version(store, form_id, payload, context.user_id))


@router.get("/forms/{form_id}/versions", response_model=List[FormVersion])
async def list_form_versions(
    form_id: UUID,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[FormVersion]:
    return [FormVersion.model_validate(v) for v in form_service.list_versions(store, form_id)]


@router.get("/form-assignments", response_model=List[FormAssignment])
async def list_form_assignments(
    patient_id: Optional[UUID] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[FormAssignment]:
    return [FormAssignment.model_validate(a) for a in form_service.list_assignments(store, patient_id, status_filter)]


@router.post("/form-assignments", response_model=FormAssignment, status_code=status.HTTP_201_CREATED)
async def assign_form_to_patient(
    payload: FormAssignmentCreateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> FormAssignment:
    return FormAssignment.model_validate(form_service.assign_form(store, payload, context.user_id))


@router.put("/form-assignments/{assignment_id}", response_model=FormAssignment)
async def update_form_assignment_status(
    assignment_id: UUID,
    payload: FormAssignmentUpdateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> FormAssignment:
    return FormAssignment.model_validate(form_service.update_assignment(store, assignment_id, payload))


@router.get("/form-submissions", response_model=List[FormSubmission])
async def list_form_submissions(
    patient_id: Optional[UUID] = Query(default=None),
    form_definition_id: Optional[UUID] = Query(default=None),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[FormSubmission]:
    submissions = form_service.list_submissions(store, patient_id, form_definition_id)
    return [FormSubmission.model_validate(s) for s in submissions]


@router.post("/form-submissions", response_model=FormSubmission, status_code=status.HTTP_201_CREATED)
async def submit_form_response(
    payload: FormSubmissionCreateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
    side_effects: SideEffectQueue = Depends(get_side_effects),
) -> FormSubmission:
    return FormSubmission.model_validate(form_service.submit(store, payload, context.user_id, side_effects))


@router.get("/form-publication-rules", response_model=List[PublicationRule])
async def list_publication_rules(
    trigger_type: Optional[str] = Query(default=None),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[PublicationRule]:
    return [PublicationRule.model_validate(r) for r in form_service.list_rules(store, trigger_type)]


@router.post("/form-publication-rules", response_model=PublicationRule, status_code=status.HTTP_201_CREATED)
async def create_publication_rule(
    payload: PublicationRuleCreateRequest,
    context: AuthContext = Depends(require_admin),
    store: Store = Depends(get_caller_store),
) -> PublicationRule:
    return PublicationRule.model_validate(form_service.create_rule(store, payload))
