from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from src.clinic_admin.domain.models.task import Task, TaskCreateRequest, TaskUpdateRequest
from src.clinic_admin.errors import NotFoundError, ValidationError
from src.clinic_admin.infra.db.models import PatientORM, TaskAuditTrailORM, TaskORM
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.services.side_effects import SideEffectQueue
from src.clinic_admin.time_utils import utcnow

logger = logging.getLogger(__name__)


def snapshot(task: TaskORM) -> Dict[str, Any]:
    """JSON-safe copy of a task row for the audit trail."""

    return Task.model_validate(task).model_dump(mode="json")


def record_task_audit(
    store: Store,
    clinic_id: UUID,
    task_id: UUID,
    action_type: str,
    changed_by: Optional[UUID],
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
) -> TaskAuditTrailORM:
    return store.add(
        TaskAuditTrailORM(
            clinic_id=clinic_id,
            task_id=task_id,
            action_type=action_type,
            changed_by=changed_by,
            old_values=old_values,
            new_values=new_values,
        )
    )


class TaskService:
    def list_tasks(
        self,
        store: Store,
        patient_id: Optional[UUID] = None,
        assigned_to: Optional[UUID] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> List[TaskORM]:
        stmt = store.select(TaskORM).where(TaskORM.is_deleted.is_(False))
        if patient_id is not None:
            stmt = stmt.where(TaskORM.patient_id == patient_id)
        if assigned_to is not None:
            stmt = stmt.where(TaskORM.assigned_to == assigned_to)
        if status:
            stmt = stmt.where(TaskORM.status == status)
        if priority:
            stmt = stmt.where(TaskORM.priority == priority)
        stmt = stmt.order_by(TaskORM.due_date.is_(None), TaskORM.due_date, TaskORM.created_at)
        return store.scalars(stmt)

    def get_task(self, store: Store, task_id: UUID) -> TaskORM:
        """Return a task by id, soft-deleted rows included."""

        task = store.get(TaskORM, task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    def _check_patient(self, store: Store, patient_id: Optional[UUID]) -> None:
        if patient_id is None:
            return
        patient = store.get(PatientORM, patient_id)
        if patient is None or patient.is_deleted:
            raise ValidationError("Invalid patient_id", details="Patient not found in your clinic")

    def create_task(
        self,
        store: Store,
        payload: TaskCreateRequest,
        created_by: UUID,
        side_effects: SideEffectQueue,
    ) -> TaskORM:
        self._check_patient(store, payload.patient_id)
        task = TaskORM(**payload.model_dump(), created_by=created_by)
        if task.status == "completed":
            task.completed_at = utcnow()
            task.completed_by = created_by
        store.add(task)
        side_effects.emit(
            "task_audit",
            record_task_audit,
            task.clinic_id,
            task.id,
            "created",
            created_by,
            None,
            snapshot(task),
        )
        logger.info("Created task %s", task.id)
        return task

    def update_task(
        self,
        store: Store,
        task_id: UUID,
        payload: TaskUpdateRequest,
        changed_by: UUID,
        side_effects: SideEffectQueue,
    ) -> TaskORM:
        task = self.get_task(store, task_id)
        changes = payload.model_dump(exclude_unset=True)
        if "patient_id" in changes:
            self._check_patient(store, changes["patient_id"])

        old = snapshot(task)
        for field, value in changes.items():
            setattr(task, field, value)
        if changes.get("status") == "completed" and task.completed_at is None:
            task.completed_at = utcnow()
            task.completed_by = changed_by
        task.updated_at = utcnow()
        store.save(task)

        new = snapshot(task)
        if old["status"] != new["status"]:
            action_type = "status_changed"
        elif old["assigned_to"] != new["assigned_to"]:
            action_type = "reassigned"
        else:
            action_type = "updated"
        side_effects.emit("task_audit", record_task_audit, task.clinic_id, task.id, action_type, changed_by, old, new)
        return task

    def delete_task(self, store: Store, task_id: UUID, changed_by: UUID, side_effects: SideEffectQueue) -> TaskORM:
        task = self.get_task(store, task_id)
        old = snapshot(task)
        task.is_deleted = True
        task.updated_at = utcnow()
        store.save(task)
        side_effects.emit(
            "task_audit", record_task_audit, task.clinic_id, task.id, "deleted", changed_by, old, snapshot(task)
        )
        logger.info("Soft-deleted task %s", task_id)
        return task

    def audit_trail(self, store: Store, task_id: UUID) -> List[TaskAuditTrailORM]:
        self.get_task(store, task_id)
        stmt = (
            store.select(TaskAuditTrailORM)
            .where(TaskAuditTrailORM.task_id == task_id)
            .order_by(TaskAuditTrailORM.created_at)
        )
        return store.scalars(stmt)


task_service = TaskService()
