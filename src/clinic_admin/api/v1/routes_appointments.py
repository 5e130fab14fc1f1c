from __future__ import annotations

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.clinic_admin.domain.models.appointment import (
    Appointment,
    AppointmentCreateRequest,
    AppointmentUpdateRequest,
)
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.security import AuthContext, get_auth_context, get_caller_store, get_service_store
from src.clinic_admin.services.appointments.service import appointment_service

router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.get("", response_model=List[Appointment])
async def list_appointments(
    patient_id: Optional[UUID] = Query(default=None),
    provider_id: Optional[UUID] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[Appointment]:
    appointments = appointment_service.list_appointments(
        store, patient_id, provider_id, status_filter, start_date, end_date, limit
    )
    return [Appointment.model_validate(a) for a in appointments]


@router.post("", response_model=Appointment, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    payload: AppointmentCreateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
    service_store: Store = Depends(get_service_store),
) -> Appointment:
    appointment = appointment_service.create_appointment(store, service_store, payload, context.user_id)
    return Appointment.model_validate(appointment)


@router.put("/{appointment_id}", response_model=Appointment)
async def update_appointment(
    appointment_id: UUID,
    payload: AppointmentUpdateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
    service_store: Store = Depends(get_service_store),
) -> Appointment:
    appointment = appointment_service.update_appointment(store, service_store, appointment_id, payload, context.user_id)
    return Appointment.model_validate(appointment)


@router.delete("/{appointment_id}")
async def delete_appointment(
    appointment_id: UUID,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> dict:
    appointment_service.delete_appointment(store, appointment_id, context.user_id)
    return {"success": True, "message": "Appointment deleted successfully"}
