from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.clinic_admin.domain.models.task import Task, TaskAuditEntry, TaskCreateRequest, TaskUpdateRequest
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.security import AuthContext, get_auth_context, get_caller_store
from src.clinic_admin.services.side_effects import SideEffectQueue, get_side_effects
from src.clinic_admin.services.tasks.service import task_service

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("", response_model=List[Task])
async def list_tasks(
    patient_id: Optional[UUID] = Query(default=None),
    assigned_to: Optional[UUID] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    priority: Optional[str] = Query(default=None),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[Task]:
    tasks = task_service.list_tasks(store, patient_id, assigned_to, status_filter, priority)
    return [Task.model_validate(task) for task in tasks]


@router.get("/{task_id}", response_model=Task)
async def get_task(
    task_id: UUID,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> Task:
    return Task.model_validate(task_service.get_task(store, task_id))


@router.post("", response_model=Task, status_code=status.HTTP_201_CREATED)
async def create_task(
    payload: TaskCreateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
    side_effects: SideEffectQueue = Depends(get_side_effects),
) -> Task:
    return Task.model_validate(task_service.create_task(store, payload, context.user_id, side_effects))


@router.put("/{task_id}", response_model=Task)
async def update_task(
    task_id: UUID,
    payload: TaskUpdateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
    side_effects: SideEffectQueue = Depends(get_side_effects),
) -> Task:
    return Task.model_validate(task_service.update_task(store, task_id, payload, context.user_id, side_effects))


@router.delete("/{task_id}")
async def delete_task(
    task_id: UUID,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
    side_effects: SideEffectQueue = Depends(get_side_effects),
) -> dict:
    task_service.delete_task(store, task_id, context.user_id, side_effects)
    return {"success": True}


@router.get("/{task_id}/audit-trail", response_model=List[TaskAuditEntry])
async def get_task_audit_trail(
    task_id: UUID,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[TaskAuditEntry]:
    return [TaskAuditEntry.model_validate(entry) for entry in task_service.audit_trail(store, task_id)]
