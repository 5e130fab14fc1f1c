from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.clinic_admin.domain.models.group import (
    AttendanceRequest,
    AttendanceResult,
    GroupAssignment,
    GroupAssignmentCreateRequest,
    GroupAssignmentUpdateRequest,
    GroupStatistics,
    PatientGroup,
    PatientGroupCreateRequest,
)
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.security import AuthContext, get_auth_context, get_caller_store
from src.clinic_admin.services.groups.service import group_service
from src.clinic_admin.services.side_effects import SideEffectQueue, get_side_effects

router = APIRouter(tags=["groups"])


@router.get("/groups", response_model=List[PatientGroup])
async def list_groups(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[PatientGroup]:
    return [PatientGroup.model_validate(g) for g in group_service.list_groups(store, status_filter)]


@router.post("/groups", response_model=PatientGroup, status_code=status.HTTP_201_CREATED)
async def create_group(
    payload: PatientGroupCreateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> PatientGroup:
    group = group_service.create_group(store, payload, context.user_id, context.organization_id)
    return PatientGroup.model_validate(group)


@router.post("/groups/{group_id}/assignments", response_model=GroupAssignment, status_code=status.HTTP_201_CREATED)
async def assign_patient_to_group(
    group_id: UUID,
    payload: GroupAssignmentCreateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> GroupAssignment:
    return GroupAssignment.model_validate(group_service.assign_patient(store, group_id, payload, context.user_id))


@router.post("/groups/{group_id}/attendance", response_model=AttendanceResult)
async def record_group_attendance(
    group_id: UUID,
    payload: AttendanceRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
    side_effects: SideEffectQueue = Depends(get_side_effects),
) -> AttendanceResult:
    return group_service.record_attendance(store, group_id, payload, context.user_id, side_effects)


@router.get("/groups/{group_id}/statistics", response_model=GroupStatistics)
async def get_group_statistics(
    group_id: UUID,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> GroupStatistics:
    return group_service.statistics(store, group_id)


@router.get("/group-assignments", response_model=List[GroupAssignment])
async def list_group_assignments(
    group_id: Optional[UUID] = Query(default=None),
    patient_id: Optional[UUID] = Query(default=None),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[GroupAssignment]:
    return [GroupAssignment.model_validate(a) for a in group_service.list_assignments(store, group_id, patient_id)]


@router.put("/group-assignments/{assignment_id}", response_model=GroupAssignment)
async def update_group_assignment(
    assignment_id: UUID,
    payload: GroupAssignmentUpdateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> GroupAssignment:
    return GroupAssignment.model_validate(group_service.update_assignment(store, assignment_id, payload))
