from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import List, Optional
from uuid import UUID

from src.clinic_admin.domain.models.appointment import AppointmentCreateRequest, AppointmentUpdateRequest
from src.clinic_admin.errors import NotFoundError, ValidationError
from src.clinic_admin.infra.db.models import AppointmentORM, AppointmentTypeORM, PatientORM, UserORM
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.time_utils import utcnow

logger = logging.getLogger(__name__)


class AppointmentService:
    def _provider_name(self, service_store: Store, provider_id: UUID) -> str:
        # Provider profiles are read with the service store: the caller may
        # not be allowed to list users.
        provider = service_store.get(UserORM, provider_id)
        return provider.full_name if provider is not None else "Not Assigned"

    def _check_appointment_type(self, store: Store, appointment_type_id: Optional[UUID]) -> None:
        if appointment_type_id is not None and store.get(AppointmentTypeORM, appointment_type_id) is None:
            raise NotFoundError("Appointment type not found")

    def list_appointments(
        self,
        store: Store,
        patient_id: Optional[UUID] = None,
        provider_id: Optional[UUID] = None,
        status: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: Optional[int] = None,
    ) -> List[AppointmentORM]:
        stmt = store.select(AppointmentORM).where(AppointmentORM.is_deleted.is_(False))
        if patient_id is not None:
            stmt = stmt.where(AppointmentORM.patient_id == patient_id)
        if provider_id is not None:
            stmt = stmt.where(AppointmentORM.provider_id == provider_id)
        if status:
            stmt = stmt.where(AppointmentORM.status == status)
        if start_date is not None:
            stmt = stmt.where(AppointmentORM.appointment_date >= datetime.combine(start_date, time.min))
        if end_date is not None:
            stmt = stmt.where(AppointmentORM.appointment_date <= datetime.combine(end_date, time.max))
        stmt = stmt.order_by(AppointmentORM.appointment_date)
        if limit:
            stmt = stmt.limit(limit)
        return store.scalars(stmt)

    def get_appointment(self, store: Store, appointment_id: UUID) -> AppointmentORM:
        appointment = store.get(AppointmentORM, appointment_id)
        if appointment is None:
            raise NotFoundError("Appointment not found")
        return appointment

    def create_appointment(
        self,
        store: Store,
        service_store: Store,
        payload: AppointmentCreateRequest,
        created_by: UUID,
    ) -> AppointmentORM:
        patient = store.get(PatientORM, payload.patient_id)
        if patient is None or patient.is_deleted:
            raise NotFoundError("Patient not found")
        self._check_appointment_type(store, payload.appointment_type_id)

        appointment = AppointmentORM(
            **payload.model_dump(),
            provider_name=self._provider_name(service_store, payload.provider_id),
            created_by=created_by,
            updated_by=created_by,
        )
        store.add(appointment)
        logger.info("Created appointment %s", appointment.id)
        return appointment

    def update_appointment(
        self,
        store: Store,
        service_store: Store,
        appointment_id: UUID,
        payload: AppointmentUpdateRequest,
        updated_by: UUID,
    ) -> AppointmentORM:
        appointment = self.get_appointment(store, appointment_id)
        if appointment.is_deleted:
            raise NotFoundError("Appointment not found")
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        if changes.get("appointment_type_id") is not None:
            self._check_appointment_type(store, changes["appointment_type_id"])
        for field, value in changes.items():
            setattr(appointment, field, value)
        if "provider_id" in changes:
            appointment.provider_name = self._provider_name(service_store, appointment.provider_id)
        appointment.updated_by = updated_by
        return store.save(appointment)

    def delete_appointment(self, store: Store, appointment_id: UUID, updated_by: UUID) -> AppointmentORM:
        appointment = self.get_appointment(store, appointment_id)
        if appointment.is_deleted:
            raise ValidationError("Appointment is already deleted")
        appointment.is_deleted = True
        appointment.deleted_at = utcnow()
        appointment.updated_by = updated_by
        logger.info("Soft-deleted appointment %s", appointment_id)
        return store.save(appointment)


appointment_service = AppointmentService()
