from __future__ import annotations

import logging
from datetime import timedelta
from typing import List, Optional
from uuid import UUID

from src.clinic_admin.config import settings
from src.clinic_admin.domain.models.compliance import (
    PatientStateUpdateRequest,
    PatientStateUpdateResult,
    PatientStateHistory,
    StateConfigurationUpsertRequest,
)
from src.clinic_admin.errors import NotFoundError
from src.clinic_admin.infra.db.models import (
    FormDefinitionORM,
    PatientFormAssignmentORM,
    PatientORM,
    PatientStateHistoryORM,
    StateConfigurationORM,
)
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.services.audit.service import coerce_resource_id
from src.clinic_admin.services.side_effects import SideEffectQueue
from src.clinic_admin.time_utils import today

logger = logging.getLogger(__name__)


def assign_required_state_forms(
    store: Store,
    clinic_id: UUID,
    patient_id: UUID,
    state_code: str,
    form_ids: List[str],
    assigned_by: Optional[UUID],
) -> int:
    """Assign each required form that has a current version. Returns the count."""

    due_date = today() + timedelta(days=settings.compliance_form_due_days)
    created = 0
    for raw_id in form_ids:
        form_id = coerce_resource_id(raw_id)
        form = store.get(FormDefinitionORM, form_id) if form_id is not None else None
        if form is None or form.clinic_id != clinic_id or form.current_version_id is None:
            logger.warning("Skipping required form %s for %s: no current version in clinic", raw_id, state_code)
            continue
        store.add(
            PatientFormAssignmentORM(
                clinic_id=clinic_id,
                patient_id=patient_id,
                form_definition_id=form.id,
                form_version_id=form.current_version_id,
                assigned_by=assigned_by,
                due_date=due_date,
                priority="high",
                status="assigned",
                assignment_reason=f"Required for {state_code} state compliance",
            ),
            commit=False,
        )
        created += 1
    store.commit()
    return created


class ComplianceService:
    def list_state_configurations(self, store: Store) -> List[StateConfigurationORM]:
        return store.scalars(store.select(StateConfigurationORM).order_by(StateConfigurationORM.state_code))

    def get_state_configuration(self, store: Store, state_code: str) -> Optional[StateConfigurationORM]:
        return store.first(
            store.select(StateConfigurationORM).where(
                StateConfigurationORM.state_code == state_code.upper(),
                StateConfigurationORM.is_active.is_(True),
            )
        )

    def upsert_state_configuration(self, store: Store, payload: StateConfigurationUpsertRequest) -> StateConfigurationORM:
        config = store.first(
            store.select(StateConfigurationORM).where(StateConfigurationORM.state_code == payload.state_code)
        )
        data = payload.model_dump()
        data["required_forms"] = [str(form_id) for form_id in payload.required_forms]
        if config is None:
            config = StateConfigurationORM(**data)
            store.add(config)
            logger.info("Created state configuration %s", payload.state_code)
            return config
        for field, value in data.items():
            setattr(config, field, value)
        return store.save(config)

    def update_patient_state(
        self,
        store: Store,
        patient_id: UUID,
        payload: PatientStateUpdateRequest,
        recorded_by: UUID,
        side_effects: SideEffectQueue,
    ) -> PatientStateUpdateResult:
        """Record a new primary state and queue its required compliance forms."""

        patient = store.get(PatientORM, patient_id)
        if patient is None or patient.is_deleted:
            raise NotFoundError("Patient not found")

        for open_row in store.scalars(
            store.select(PatientStateHistoryORM).where(
                PatientStateHistoryORM.patient_id == patient_id,
                PatientStateHistoryORM.end_date.is_(None),
            )
        ):
            open_row.end_date = today()

        config = self.get_state_configuration(store, payload.state_code)
        forms_triggered = list(config.required_forms) if config is not None else []

        history = PatientStateHistoryORM(
            patient_id=patient_id,
            state_code=payload.state_code,
            is_primary_state=True,
            effective_date=payload.effective_date or today(),
            change_reason=payload.change_reason,
            detected_from=payload.detected_from,
            forms_triggered=forms_triggered,
            recorded_by=recorded_by,
        )
        store.add(history)

        if forms_triggered:
            side_effects.emit(
                "compliance_form_assignment",
                assign_required_state_forms,
                history.clinic_id,
                patient_id,
                payload.state_code,
                forms_triggered,
                recorded_by,
            )
        logger.info("Patient %s now resides in %s", patient_id, payload.state_code)
        return PatientStateUpdateResult(
            state_history=PatientStateHistory.model_validate(history),
            forms_assigned=len(forms_triggered),
        )

    def state_history(self, store: Store, patient_id: UUID) -> List[PatientStateHistoryORM]:
        if store.get(PatientORM, patient_id) is None:
            raise NotFoundError("Patient not found")
        stmt = (
            store.select(PatientStateHistoryORM)
            .where(PatientStateHistoryORM.patient_id == patient_id)
            .order_by(PatientStateHistoryORM.effective_date.desc(), PatientStateHistoryORM.created_at.desc())
        )
        return store.scalars(stmt)


compliance_service = ComplianceService()
