from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from src.clinic_admin.domain.models.group import (
    ENROLLABLE_GROUP_STATUSES,
    Attendance,
    AttendanceError,
    AttendanceRequest,
    AttendanceResult,
    AttendanceStats,
    CompletionStats,
    GroupAssignmentCreateRequest,
    GroupAssignmentUpdateRequest,
    GroupInfo,
    GroupStatistics,
    MembershipStats,
    PatientGroupCreateRequest,
)
from src.clinic_admin.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from src.clinic_admin.infra.db.models import (
    GroupSessionAttendanceORM,
    PatientGroupAssignmentORM,
    PatientGroupORM,
    PatientORM,
)
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.services.side_effects import SideEffectQueue
from src.clinic_admin.time_utils import today, utcnow

logger = logging.getLogger(__name__)


def increment_attendance(store: Store, group_id: UUID, patient_id: UUID, session_date: date) -> int:
    """Bump the attendance counter on the patient's active assignments."""

    assignments = store.scalars(
        store.select(PatientGroupAssignmentORM).where(
            PatientGroupAssignmentORM.group_id == group_id,
            PatientGroupAssignmentORM.patient_id == patient_id,
            PatientGroupAssignmentORM.status == "active",
        )
    )
    for assignment in assignments:
        assignment.sessions_attended = (assignment.sessions_attended or 0) + 1
        if assignment.last_attendance_date is None or assignment.last_attendance_date < session_date:
            assignment.last_attendance_date = session_date
    store.commit()
    return len(assignments)


class GroupService:
    def create_group(
        self, store: Store, payload: PatientGroupCreateRequest, created_by: UUID, organization_id: Optional[UUID]
    ) -> PatientGroupORM:
        group = store.add(
            PatientGroupORM(**payload.model_dump(), created_by=created_by, organization_id=organization_id)
        )
        logger.info("Created patient group %s", group.id)
        return group

    def list_groups(self, store: Store, status: Optional[str] = None) -> List[PatientGroupORM]:
        stmt = store.select(PatientGroupORM)
        if status:
            stmt = stmt.where(PatientGroupORM.status == status)
        return store.scalars(stmt.order_by(PatientGroupORM.name))

    def get_group(self, store: Store, group_id: UUID) -> PatientGroupORM:
        group = store.get(PatientGroupORM, group_id)
        if group is None:
            raise NotFoundError("Group not found")
        return group

    def active_member_count(self, store: Store, group_id: UUID) -> int:
        stmt = (
            store.select(PatientGroupAssignmentORM)
            .where(
                PatientGroupAssignmentORM.group_id == group_id,
                PatientGroupAssignmentORM.status == "active",
            )
            .with_only_columns(func.count(PatientGroupAssignmentORM.id))
        )
        return int(store.session.scalar(stmt) or 0)

    def _ensure_can_join(self, store: Store, group: PatientGroupORM, patient_id: UUID) -> None:
        if group.max_members is not None:
            current = self.active_member_count(store, group.id)
            if current >= group.max_members:
                raise ConflictError("Group is at maximum capacity", current_members=current, max_members=group.max_members)

        existing = store.first(
            store.select(PatientGroupAssignmentORM).where(
                PatientGroupAssignmentORM.group_id == group.id,
                PatientGroupAssignmentORM.patient_id == patient_id,
                PatientGroupAssignmentORM.status == "active",
            )
        )
        if existing is not None:
            raise ConflictError("Patient is already assigned to this group", assignment_id=str(existing.id))

    def assign_patient(
        self,
        store: Store,
        group_id: UUID,
        payload: GroupAssignmentCreateRequest,
        assigned_by: Optional[UUID],
    ) -> PatientGroupAssignmentORM:
        group = self.get_group(store, group_id)
        patient = store.get(PatientORM, payload.patient_id)
        if patient is None or patient.is_deleted:
            raise NotFoundError("Patient not found")
        self._ensure_can_join(store, group, payload.patient_id)

        assignment = store.add(
            PatientGroupAssignmentORM(
                group_id=group.id,
                patient_id=payload.patient_id,
                assignment_date=today(),
                assigned_by=assigned_by,
                status="active",
                notes=payload.notes,
            )
        )
        logger.info("Assigned patient %s to group %s", payload.patient_id, group.id)
        return assignment

    def list_assignments(
        self, store: Store, group_id: Optional[UUID] = None, patient_id: Optional[UUID] = None
    ) -> List[PatientGroupAssignmentORM]:
        stmt = store.select(PatientGroupAssignmentORM)
        if group_id is not None:
            stmt = stmt.where(PatientGroupAssignmentORM.group_id == group_id)
        if patient_id is not None:
            stmt = stmt.where(PatientGroupAssignmentORM.patient_id == patient_id)
        return store.scalars(stmt.order_by(PatientGroupAssignmentORM.assignment_date.desc()))

    def update_assignment(
        self, store: Store, assignment_id: UUID, payload: GroupAssignmentUpdateRequest
    ) -> PatientGroupAssignmentORM:
        assignment = store.get(PatientGroupAssignmentORM, assignment_id)
        if assignment is None:
            raise NotFoundError("Group assignment not found")
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")

        if "status" in changes:
            assignment.status = changes["status"]
            if changes["status"] in ("withdrawn", "removed"):
                assignment.withdrawal_date = today()
                assignment.withdrawal_reason = changes.get("withdrawal_reason")
        for field in ("individual_session_completed", "individual_session_date", "notes"):
            if field in changes:
                setattr(assignment, field, changes[field])
        return store.save(assignment)

    def record_attendance(
        self,
        store: Store,
        group_id: UUID,
        payload: AttendanceRequest,
        marked_by: UUID,
        side_effects: SideEffectQueue,
    ) -> AttendanceResult:
        """Upsert one attendance row per record, keyed by group, booking and patient.

        Re-submitting the same session overwrites the earlier values. The
        assignment counter is bumped only when a record turns into attended.
        """

        self.get_group(store, group_id)
        results: List[GroupSessionAttendanceORM] = []
        errors: List[AttendanceError] = []

        for record in payload.attendance_records:
            patient = store.get(PatientORM, record.patient_id)
            if patient is None or patient.is_deleted:
                errors.append(AttendanceError(patient_id=record.patient_id, error="Patient not found"))
                continue
            try:
                row, became_attended = self._upsert_attendance(
                    store, group_id, payload, record.patient_id, record.attended, record.notes, marked_by
                )
            except SQLAlchemyError as exc:
                store.session.rollback()
                logger.warning("Attendance upsert failed for patient %s: %s", record.patient_id, exc)
                errors.append(AttendanceError(patient_id=record.patient_id, error=str(getattr(exc, "orig", None) or exc)))
                continue
            results.append(row)
            if became_attended:
                side_effects.emit(
                    "attendance_counter", increment_attendance, group_id, record.patient_id, payload.session_date
                )

        return AttendanceResult(
            success=len(results),
            failed=len(errors),
            results=[Attendance.model_validate(row) for row in results],
            errors=errors,
        )

    def _upsert_attendance(
        self,
        store: Store,
        group_id: UUID,
        payload: AttendanceRequest,
        patient_id: UUID,
        attended: bool,
        notes: Optional[str],
        marked_by: UUID,
    ) -> Tuple[GroupSessionAttendanceORM, bool]:
        booking_filter = (
            GroupSessionAttendanceORM.resource_booking_id.is_(None)
            if payload.resource_booking_id is None
            else GroupSessionAttendanceORM.resource_booking_id == payload.resource_booking_id
        )
        row = store.first(
            store.select(GroupSessionAttendanceORM).where(
                GroupSessionAttendanceORM.group_id == group_id,
                GroupSessionAttendanceORM.patient_id == patient_id,
                booking_filter,
            )
        )
        was_attended = row is not None and row.attended
        if row is None:
            row = GroupSessionAttendanceORM(
                group_id=group_id,
                resource_booking_id=payload.resource_booking_id,
                patient_id=patient_id,
            )
        row.session_date = payload.session_date
        row.attended = attended
        row.attendance_notes = notes
        row.marked_by = marked_by
        row.marked_at = utcnow()
        store.add(row)
        return row, attended and not was_attended

    def statistics(self, store: Store, group_id: UUID) -> GroupStatistics:
        group = self.get_group(store, group_id)
        assignments = store.scalars(
            store.select(PatientGroupAssignmentORM).where(PatientGroupAssignmentORM.group_id == group_id)
        )
        records = store.scalars(
            store.select(GroupSessionAttendanceORM).where(GroupSessionAttendanceORM.group_id == group_id)
        )

        by_status = {
            state: sum(1 for a in assignments if a.status == state) for state in ("active", "completed", "withdrawn")
        }
        active = by_status["active"]
        total = len(assignments)
        member_sessions = sum(a.sessions_attended or 0 for a in assignments)
        attended = sum(1 for r in records if r.attended)

        def percent(part: int, whole: int) -> float:
            return round(part / whole * 100, 1) if whole else 0.0

        return GroupStatistics(
            group_info=GroupInfo(
                id=group.id,
                name=group.name,
                status=group.status,
                current_member_count=active,
                max_members=group.max_members,
            ),
            membership=MembershipStats(
                total_assignments=total,
                active_members=active,
                completed_members=by_status["completed"],
                withdrawn_members=by_status["withdrawn"],
                capacity_utilization=percent(active, group.max_members) if group.max_members else None,
            ),
            attendance=AttendanceStats(
                total_sessions_held=len({r.session_date for r in records}),
                total_attendance_records=len(records),
                total_attended=attended,
                total_sessions_by_all_members=member_sessions,
                average_attendance_rate=percent(attended, len(records)),
                average_sessions_per_member=round(member_sessions / active, 1) if active else 0.0,
            ),
            completion=CompletionStats(
                completion_rate=percent(by_status["completed"], total),
                withdrawal_rate=percent(by_status["withdrawn"], total),
            ),
        )

    # Patient portal

    def available_groups(self, store: Store) -> List[PatientGroupORM]:
        stmt = (
            store.select(PatientGroupORM)
            .where(
                PatientGroupORM.portal_visible.is_(True),
                PatientGroupORM.allow_self_enrollment.is_(True),
                PatientGroupORM.status.in_(ENROLLABLE_GROUP_STATUSES),
            )
            .order_by(PatientGroupORM.start_date, PatientGroupORM.name)
        )
        return store.scalars(stmt)

    def self_enroll(self, store: Store, group_id: UUID, patient: PatientORM) -> PatientGroupAssignmentORM:
        group = self.get_group(store, group_id)
        if not group.allow_self_enrollment:
            raise AuthorizationError("Self-enrollment is not allowed for this group")
        if group.status not in ENROLLABLE_GROUP_STATUSES:
            raise ValidationError("Group is not accepting new members")
        self._ensure_can_join(store, group, patient.id)

        assignment = store.add(
            PatientGroupAssignmentORM(
                group_id=group.id,
                patient_id=patient.id,
                assignment_date=today(),
                status="active",
                notes="Self-enrolled via patient portal",
            )
        )
        logger.info("Patient %s self-enrolled in group %s", patient.id, group.id)
        return assignment


group_service = GroupService()
