from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

TaskStatus = Literal["pending", "in_progress", "completed", "cancelled"]
TaskPriority = Literal["low", "medium", "high", "urgent"]


class Task(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    patient_id: Optional[UUID] = None
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    due_date: Optional[date] = None
    assigned_to: Optional[UUID] = None
    assigned_to_role: Optional[str] = None
    created_by: Optional[UUID] = None
    completed_at: Optional[datetime] = None
    completed_by: Optional[UUID] = None
    is_deleted: bool
    created_at: datetime
    updated_at: datetime


class TaskCreateRequest(BaseModel):
    title: str
    description: Optional[str] = None
    patient_id: Optional[UUID] = None
    status: TaskStatus = "pending"
    priority: TaskPriority = "medium"
    due_date: Optional[date] = None
    assigned_to: Optional[UUID] = None
    assigned_to_role: Optional[str] = None


class TaskUpdateRequest(BaseModel):
    """Updatable task fields.

    Identity, tenant and creation columns are deliberately absent, so a body
    carrying them has no effect on the row.
    """

    title: Optional[str] = None
    description: Optional[str] = None
    patient_id: Optional[UUID] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[date] = None
    assigned_to: Optional[UUID] = None
    assigned_to_role: Optional[str] = None


class TaskAuditEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    task_id: UUID
    action_type: str
    changed_by: Optional[UUID] = None
    old_values: Optional[Dict[str, Any]] = None
    new_values: Optional[Dict[str, Any]] = None
    created_at: datetime
