from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from src.clinic_admin.domain.models.form import (
    OPEN_ASSIGNMENT_STATUSES,
    FormAssignmentCreateRequest,
    FormAssignmentUpdateRequest,
    FormDefinitionCreateRequest,
    FormDefinitionWithVersion,
    FormSubmissionCreateRequest,
    FormVersion,
    FormVersionCreateRequest,
    PortalFormSubmissionRequest,
    PublicationRuleCreateRequest,
    TriggerData,
    TriggerError,
    TriggeredAssignment,
    TriggerRequest,
    TriggerResult,
)
from src.clinic_admin.errors import NotFoundError, StoreError
from src.clinic_admin.infra.db.models import (
    FormDefinitionORM,
    FormPublicationRuleORM,
    FormSubmissionORM,
    FormVersionORM,
    PatientFormAssignmentORM,
    PatientORM,
)
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.services.side_effects import SideEffectQueue
from src.clinic_admin.time_utils import today, utcnow

logger = logging.getLogger(__name__)


def mark_assignment_after_submission(store: Store, assignment_id: UUID, is_complete: bool) -> Optional[PatientFormAssignmentORM]:
    """Move the linked assignment forward once a submission has been stored.

    A complete submission closes the assignment; a partial save only moves it
    from ``assigned`` to ``in_progress``.
    """

    assignment = store.get(PatientFormAssignmentORM, assignment_id)
    if assignment is None:
        logger.warning("Submission references unknown form assignment %s", assignment_id)
        return None
    if is_complete:
        assignment.status = "completed"
        assignment.completed_at = utcnow()
    elif assignment.status == "assigned":
        assignment.status = "in_progress"
    else:
        return assignment
    return store.save(assignment)


def rule_matches(conditions: Dict[str, Any], trigger_data: TriggerData) -> bool:
    """Every condition list that applies to the trigger data must contain it."""

    checks = (
        ("states", trigger_data.state_code),
        ("groups", trigger_data.group_id),
        ("appointment_types", trigger_data.appointment_type_id),
    )
    for key, value in checks:
        allowed = conditions.get(key)
        if allowed and value is not None and str(value) not in [str(item) for item in allowed]:
            return False
    return True


class FormService:
    # Definitions and versions

    def get_definition(self, store: Store, form_id: UUID) -> FormDefinitionORM:
        form = store.get(FormDefinitionORM, form_id)
        if form is None:
            raise NotFoundError("Form definition not found")
        return form

    def list_definitions(
        self, store: Store, category: Optional[str] = None, is_active: Optional[bool] = None
    ) -> List[FormDefinitionWithVersion]:
        stmt = store.select(FormDefinitionORM)
        if category:
            stmt = stmt.where(FormDefinitionORM.category == category)
        if is_active is not None:
            stmt = stmt.where(FormDefinitionORM.is_active.is_(is_active))
        forms = store.scalars(stmt.order_by(FormDefinitionORM.form_name))
        return [self.with_current_version(store, form) for form in forms]

    def with_current_version(self, store: Store, form: FormDefinitionORM) -> FormDefinitionWithVersion:
        current = store.get(FormVersionORM, form.current_version_id) if form.current_version_id else None
        result = FormDefinitionWithVersion.model_validate(form)
        result.current_version = FormVersion.model_validate(current) if current is not None else None
        return result

    def _append_version(
        self,
        store: Store,
        form: FormDefinitionORM,
        form_schema: Dict[str, Any],
        created_by: Optional[UUID],
        version_name: Optional[str] = None,
        state_codes: Optional[List[str]] = None,
        effective_date=None,
        expiration_date=None,
        change_summary: Optional[str] = None,
    ) -> FormVersionORM:
        max_number = store.session.scalar(
            store.select(FormVersionORM)
            .where(FormVersionORM.form_definition_id == form.id)
            .with_only_columns(func.max(FormVersionORM.version_number))
        )
        number = (max_number or 0) + 1

        for previous in store.scalars(
            store.select(FormVersionORM).where(
                FormVersionORM.form_definition_id == form.id, FormVersionORM.is_current.is_(True)
            )
        ):
            previous.is_current = False

        version = FormVersionORM(
            form_definition_id=form.id,
            version_number=number,
            version_name=version_name or f"Version {number}",
            form_schema=form_schema,
            state_codes=list(state_codes or []),
            effective_date=effective_date or today(),
            expiration_date=expiration_date,
            change_summary=change_summary,
            is_current=True,
            created_by=created_by,
        )
        store.add(version, commit=False)
        store.session.flush()
        form.current_version_id = version.id
        store.save(form)
        return version

    def create_definition(
        self, store: Store, payload: FormDefinitionCreateRequest, created_by: UUID, organization_id: Optional[UUID]
    ) -> FormDefinitionWithVersion:
        form = store.add(
            FormDefinitionORM(
                **payload.model_dump(exclude={"form_schema", "state_codes"}),
                organization_id=organization_id,
                created_by=created_by,
            )
        )

        if payload.form_schema is not None:
            try:
                self._append_version(
                    store,
                    form,
                    payload.form_schema,
                    created_by,
                    version_name="Initial Version",
                    state_codes=payload.state_codes,
                    change_summary="Initial version",
                )
            except SQLAlchemyError as exc:
                logger.error("Initial version for form %s failed, removing definition", form.id)
                try:
                    store.session.rollback()
                    orphan = store.get(FormDefinitionORM, form.id)
                    if orphan is not None:
                        store.delete(orphan)
                except Exception:
                    logger.exception("Failed to delete form definition %s after version failure", form.id)
                raise StoreError(
                    "Failed to create form version", details=str(getattr(exc, "orig", None) or exc)
                ) from exc

        logger.info("Created form definition %s (%s)", form.id, form.form_code)
        return self.with_current_version(store, form)

    def create_version(
        self, store: Store, form_id: UUID, payload: FormVersionCreateRequest, created_by: UUID
    ) -> FormVersionORM:
        form = self.get_definition(store, form_id)
        version = self._append_version(
            store,
            form,
            payload.form_schema,
            created_by,
            version_name=payload.version_name,
            state_codes=payload.state_codes,
            effective_date=payload.effective_date,
            expiration_date=payload.expiration_date,
            change_summary=payload.change_summary,
        )
        logger.info("Form %s now at version %d", form.id, version.version_number)
        return version

    def list_versions(self, store: Store, form_id: UUID) -> List[FormVersionORM]:
        self.get_definition(store, form_id)
        stmt = (
            store.select(FormVersionORM)
            .where(FormVersionORM.form_definition_id == form_id)
            .order_by(FormVersionORM.version_number)
        )
        return store.scalars(stmt)

    # Assignments and submissions

    def _get_patient(self, store: Store, patient_id: UUID) -> PatientORM:
        patient = store.get(PatientORM, patient_id)
        if patient is None or patient.is_deleted:
            raise NotFoundError("Patient not found")
        return patient

    def assign_form(
        self, store: Store, payload: FormAssignmentCreateRequest, assigned_by: Optional[UUID]
    ) -> PatientFormAssignmentORM:
        form = store.get(FormDefinitionORM, payload.form_definition_id)
        if form is None or not form.is_active:
            raise NotFoundError("Form not found or inactive")
        self._get_patient(store, payload.patient_id)

        due_date = payload.due_date
        if due_date is None and payload.due_days_offset is not None:
            due_date = today() + timedelta(days=payload.due_days_offset)

        assignment = store.add(
            PatientFormAssignmentORM(
                patient_id=payload.patient_id,
                form_definition_id=form.id,
                form_version_id=form.current_version_id,
                assigned_by=assigned_by,
                due_date=due_date,
                priority=payload.priority,
                status="assigned",
                assignment_reason=payload.assignment_reason,
            )
        )
        logger.info("Assigned form %s to patient %s", form.id, payload.patient_id)
        return assignment

    def list_assignments(
        self,
        store: Store,
        patient_id: Optional[UUID] = None,
        status: Optional[str] = None,
        open_only: bool = False,
    ) -> List[PatientFormAssignmentORM]:
        stmt = store.select(PatientFormAssignmentORM)
        if patient_id is not None:
            stmt = stmt.where(PatientFormAssignmentORM.patient_id == patient_id)
        if status:
            stmt = stmt.where(PatientFormAssignmentORM.status == status)
        if open_only:
            stmt = stmt.where(PatientFormAssignmentORM.status.in_(OPEN_ASSIGNMENT_STATUSES))
        return store.scalars(stmt.order_by(PatientFormAssignmentORM.due_date.is_(None), PatientFormAssignmentORM.due_date))

    def update_assignment(
        self, store: Store, assignment_id: UUID, payload: FormAssignmentUpdateRequest
    ) -> PatientFormAssignmentORM:
        assignment = store.get(PatientFormAssignmentORM, assignment_id)
        if assignment is None:
            raise NotFoundError("Form assignment not found")
        assignment.status = payload.status
        if payload.status == "completed" and assignment.completed_at is None:
            assignment.completed_at = utcnow()
        return store.save(assignment)

    def submit(
        self,
        store: Store,
        payload: FormSubmissionCreateRequest,
        submitted_by: Optional[UUID],
        side_effects: SideEffectQueue,
    ) -> FormSubmissionORM:
        self._get_patient(store, payload.patient_id)
        form = self.get_definition(store, payload.form_definition_id)
        if payload.form_assignment_id is not None:
            assignment = store.get(PatientFormAssignmentORM, payload.form_assignment_id)
            if assignment is None or assignment.patient_id != payload.patient_id:
                raise NotFoundError("Form assignment not found")

        submission = store.add(
            FormSubmissionORM(
                **payload.model_dump(exclude={"form_version_id"}),
                form_version_id=payload.form_version_id or form.current_version_id,
                is_partial_save=not payload.is_complete,
                submitted_by_user_id=submitted_by,
                submitted_at=utcnow() if payload.is_complete else None,
            )
        )
        if payload.form_assignment_id is not None:
            side_effects.emit(
                "form_assignment_status",
                mark_assignment_after_submission,
                payload.form_assignment_id,
                payload.is_complete,
            )
        logger.info("Stored submission %s for form %s", submission.id, form.id)
        return submission

    def portal_submit(
        self,
        store: Store,
        patient: PatientORM,
        payload: PortalFormSubmissionRequest,
        side_effects: SideEffectQueue,
    ) -> FormSubmissionORM:
        submission = FormSubmissionCreateRequest(
            **payload.model_dump(), patient_id=patient.id, submission_source="portal"
        )
        return self.submit(store, submission, None, side_effects)

    def list_submissions(
        self, store: Store, patient_id: Optional[UUID] = None, form_definition_id: Optional[UUID] = None
    ) -> List[FormSubmissionORM]:
        stmt = store.select(FormSubmissionORM)
        if patient_id is not None:
            stmt = stmt.where(FormSubmissionORM.patient_id == patient_id)
        if form_definition_id is not None:
            stmt = stmt.where(FormSubmissionORM.form_definition_id == form_definition_id)
        return store.scalars(stmt.order_by(FormSubmissionORM.created_at.desc()))

    # Publication rules

    def create_rule(self, store: Store, payload: PublicationRuleCreateRequest) -> FormPublicationRuleORM:
        self.get_definition(store, payload.form_definition_id)
        return store.add(FormPublicationRuleORM(**payload.model_dump()))

    def list_rules(self, store: Store, trigger_type: Optional[str] = None) -> List[FormPublicationRuleORM]:
        stmt = store.select(FormPublicationRuleORM)
        if trigger_type:
            stmt = stmt.where(FormPublicationRuleORM.trigger_type == trigger_type)
        return store.scalars(stmt.order_by(FormPublicationRuleORM.rule_name))

    def has_open_assignment(self, store: Store, patient_id: UUID, form_definition_id: UUID) -> bool:
        stmt = store.select(PatientFormAssignmentORM).where(
            PatientFormAssignmentORM.patient_id == patient_id,
            PatientFormAssignmentORM.form_definition_id == form_definition_id,
            PatientFormAssignmentORM.status.in_(OPEN_ASSIGNMENT_STATUSES),
        )
        return store.first(stmt) is not None

    def trigger_assignments(self, store: Store, payload: TriggerRequest) -> TriggerResult:
        """Apply every active auto-assign rule for ``payload.trigger_type``."""

        self._get_patient(store, payload.patient_id)
        rules = store.scalars(
            store.select(FormPublicationRuleORM).where(
                FormPublicationRuleORM.trigger_type == payload.trigger_type,
                FormPublicationRuleORM.is_active.is_(True),
                FormPublicationRuleORM.auto_assign.is_(True),
            )
        )

        assignments: List[TriggeredAssignment] = []
        errors: List[TriggerError] = []
        for rule in rules:
            form_name = rule.form.form_name if rule.form is not None else str(rule.form_definition_id)
            if not rule_matches(rule.trigger_conditions or {}, payload.trigger_data):
                continue
            if self.has_open_assignment(store, payload.patient_id, rule.form_definition_id):
                continue

            due_date = today() + timedelta(days=rule.due_days_offset) if rule.due_days_offset else None
            try:
                assignment = store.add(
                    PatientFormAssignmentORM(
                        patient_id=payload.patient_id,
                        form_definition_id=rule.form_definition_id,
                        form_version_id=rule.form.current_version_id if rule.form is not None else None,
                        due_date=due_date,
                        priority=rule.assignment_priority or "medium",
                        status="assigned",
                        assignment_reason=(
                            f"Auto-assigned via publication rule: {rule.rule_name} (trigger: {payload.trigger_type})"
                        ),
                    )
                )
            except SQLAlchemyError as exc:
                store.session.rollback()
                errors.append(TriggerError(form_name=form_name, error=str(getattr(exc, "orig", None) or exc)))
                continue
            assignments.append(TriggeredAssignment(form_name=form_name, assignment_id=assignment.id))

        return TriggerResult(
            trigger_type=payload.trigger_type,
            rules_evaluated=len(rules),
            assigned_count=len(assignments),
            assignments=assignments,
            errors=errors,
        )


form_service = FormService()
