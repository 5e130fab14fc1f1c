from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import or_

from src.clinic_admin.domain.models.patient import PatientCreateRequest, PatientUpdateRequest
from src.clinic_admin.errors import NotFoundError, ValidationError
from src.clinic_admin.infra.db.models import PatientORM
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.time_utils import utcnow

logger = logging.getLogger(__name__)


class PatientService:
    def list_patients(self, store: Store, search: Optional[str] = None) -> List[PatientORM]:
        stmt = store.select(PatientORM).where(PatientORM.is_deleted.is_(False))
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(or_(PatientORM.first_name.ilike(pattern), PatientORM.last_name.ilike(pattern)))
        return store.scalars(stmt.order_by(PatientORM.last_name, PatientORM.first_name))

    def get_patient(self, store: Store, patient_id: UUID, include_deleted: bool = False) -> PatientORM:
        patient = store.get(PatientORM, patient_id)
        if patient is None or (patient.is_deleted and not include_deleted):
            raise NotFoundError("Patient not found")
        return patient

    def create_patient(self, store: Store, payload: PatientCreateRequest, created_by: Optional[UUID] = None) -> PatientORM:
        patient = PatientORM(**payload.model_dump(), created_by=created_by)
        store.add(patient)
        logger.info("Created patient %s", patient.id)
        return patient

    def update_patient(self, store: Store, patient_id: UUID, payload: PatientUpdateRequest) -> PatientORM:
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        patient = self.get_patient(store, patient_id)
        for field, value in changes.items():
            setattr(patient, field, value)
        return store.save(patient)

    def delete_patient(self, store: Store, patient_id: UUID) -> PatientORM:
        patient = self.get_patient(store, patient_id)
        patient.is_deleted = True
        patient.deleted_at = utcnow()
        logger.info("Soft-deleted patient %s", patient_id)
        return store.save(patient)


patient_service = PatientService()
