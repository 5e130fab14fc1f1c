from __future__ import annotations

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.clinic_admin.domain.models.scheduling import (
    AppointmentType,
    AppointmentTypeCreateRequest,
    AppointmentTypeUpdateRequest,
    ProviderAvailability,
    ProviderSchedule,
    ProviderScheduleCreateRequest,
    ProviderScheduleUpdateRequest,
    ScheduleException,
    ScheduleExceptionCreateRequest,
    SlotRecommendations,
)
from src.clinic_admin.domain.models.user import ADMIN_ROLES, UserRole
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.security import AuthContext, get_auth_context, get_caller_store, require_roles
from src.clinic_admin.services.scheduling.service import scheduling_service

router = APIRouter(tags=["scheduling"])

require_admin = require_roles(*ADMIN_ROLES)
require_schedule_editor = require_roles(*ADMIN_ROLES, UserRole.PROVIDER)
require_system_admin = require_roles(UserRole.SYSTEM_ADMIN)


@router.get("/appointment-types", response_model=List[AppointmentType])
async def list_appointment_types(
    include_inactive: bool = Query(default=False),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[AppointmentType]:
    types = scheduling_service.list_appointment_types(store, include_inactive)
    return [AppointmentType.model_validate(t) for t in types]


@router.post("/appointment-types", response_model=AppointmentType, status_code=status.HTTP_201_CREATED)
async def create_appointment_type(
    payload: AppointmentTypeCreateRequest,
    context: AuthContext = Depends(require_admin),
    store: Store = Depends(get_caller_store),
) -> AppointmentType:
    return AppointmentType.model_validate(scheduling_service.create_appointment_type(store, payload, context.user_id))


@router.put("/appointment-types/{appointment_type_id}", response_model=AppointmentType)
async def update_appointment_type(
    appointment_type_id: UUID,
    payload: AppointmentTypeUpdateRequest,
    context: AuthContext = Depends(require_admin),
    store: Store = Depends(get_caller_store),
) -> AppointmentType:
    appointment_type = scheduling_service.update_appointment_type(store, appointment_type_id, payload, context.user_id)
    return AppointmentType.model_validate(appointment_type)


@router.delete("/appointment-types/{appointment_type_id}")
async def delete_appointment_type(
    appointment_type_id: UUID,
    context: AuthContext = Depends(require_system_admin),
    store: Store = Depends(get_caller_store),
) -> dict:
    scheduling_service.delete_appointment_type(store, appointment_type_id)
    return {"success": True, "message": "Appointment type deleted successfully"}


@router.get("/provider-schedules", response_model=List[ProviderSchedule])
async def list_provider_schedules(
    provider_id: Optional[UUID] = Query(default=None),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[ProviderSchedule]:
    return [ProviderSchedule.model_validate(s) for s in scheduling_service.list_schedules(store, provider_id)]


@router.post("/provider-schedules", response_model=ProviderSchedule, status_code=status.HTTP_201_CREATED)
async def create_provider_schedule(
    payload: ProviderScheduleCreateRequest,
    context: AuthContext = Depends(require_schedule_editor),
    store: Store = Depends(get_caller_store),
) -> ProviderSchedule:
    return ProviderSchedule.model_validate(scheduling_service.create_schedule(store, payload))


@router.put("/provider-schedules/{schedule_id}", response_model=ProviderSchedule)
async def update_provider_schedule(
    schedule_id: UUID,
    payload: ProviderScheduleUpdateRequest,
    context: AuthContext = Depends(require_schedule_editor),
    store: Store = Depends(get_caller_store),
) -> ProviderSchedule:
    return ProviderSchedule.model_validate(scheduling_service.update_schedule(store, schedule_id, payload))


@router.delete("/provider-schedules/{schedule_id}")
async def delete_provider_schedule(
    schedule_id: UUID,
    context: AuthContext = Depends(require_schedule_editor),
    store: Store = Depends(get_caller_store),
) -> dict:
    scheduling_service.delete_schedule(store, schedule_id)
    return {"success": True}


@router.get("/provider-schedule-exceptions", response_model=List[ScheduleException])
async def list_schedule_exceptions(
    provider_id: Optional[UUID] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[ScheduleException]:
    exceptions = scheduling_service.list_exceptions(store, provider_id, start_date, end_date)
    return [ScheduleException.model_validate(e) for e in exceptions]


@router.post(
    "/provider-schedule-exceptions", response_model=ScheduleException, status_code=status.HTTP_201_CREATED
)
async def create_schedule_exception(
    payload: ScheduleExceptionCreateRequest,
    context: AuthContext = Depends(require_schedule_editor),
    store: Store = Depends(get_caller_store),
) -> ScheduleException:
    return ScheduleException.model_validate(scheduling_service.add_exception(store, payload))


@router.get("/provider-availability", response_model=ProviderAvailability)
async def get_provider_availability(
    provider_id: UUID = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
    duration_minutes: Optional[int] = Query(default=None, ge=5, le=480),
    appointment_type_id: Optional[UUID] = Query(default=None),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> ProviderAvailability:
    return scheduling_service.availability(
        store, provider_id, start_date, end_date, duration_minutes, appointment_type_id
    )


@router.get("/appointment-recommendations", response_model=SlotRecommendations)
async def recommend_appointment_slots(
    provider_id: UUID = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
    appointment_type_id: Optional[UUID] = Query(default=None),
    top_n: int = Query(default=5, ge=1, le=50),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> SlotRecommendations:
    return scheduling_service.recommend(store, provider_id, start_date, end_date, appointment_type_id, top_n)
