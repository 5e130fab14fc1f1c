from __future__ import annotations

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.clinic_admin.domain.models.resource import (
    Availability,
    Blackout,
    BlackoutCreateRequest,
    Booking,
    BookingCreateRequest,
    BookingUpdateRequest,
    Resource,
    ResourceCreateRequest,
    ResourceType,
    ResourceTypeCreateRequest,
)
from src.clinic_admin.domain.models.user import ADMIN_ROLES
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.security import AuthContext, get_auth_context, get_caller_store, require_roles
from src.clinic_admin.services.resources.service import resource_service

router = APIRouter(tags=["resources"])

require_admin = require_roles(*ADMIN_ROLES)


@router.get("/resource-types", response_model=List[ResourceType])
async def list_resource_types(
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[ResourceType]:
    return [ResourceType.model_validate(t) for t in resource_service.list_resource_types(store)]


@router.post("/resource-types", response_model=ResourceType, status_code=status.HTTP_201_CREATED)
async def create_resource_type(
    payload: ResourceTypeCreateRequest,
    context: AuthContext = Depends(require_admin),
    store: Store = Depends(get_caller_store),
) -> ResourceType:
    return ResourceType.model_validate(resource_service.create_resource_type(store, payload))


@router.get("/resources", response_model=List[Resource])
async def list_resources(
    include_inactive: bool = Query(default=False),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[Resource]:
    return [Resource.model_validate(r) for r in resource_service.list_resources(store, include_inactive)]


@router.post("/resources", response_model=Resource, status_code=status.HTTP_201_CREATED)
async def create_resource(
    payload: ResourceCreateRequest,
    context: AuthContext = Depends(require_admin),
    store: Store = Depends(get_caller_store),
) -> Resource:
    return Resource.model_validate(resource_service.create_resource(store, payload))


@router.post("/resources/{resource_id}/blackouts", response_model=Blackout, status_code=status.HTTP_201_CREATED)
async def create_blackout(
    resource_id: UUID,
    payload: BlackoutCreateRequest,
    context: AuthContext = Depends(require_admin),
    store: Store = Depends(get_caller_store),
) -> Blackout:
    return Blackout.model_validate(resource_service.add_blackout(store, resource_id, payload))


@router.get("/resources/{resource_id}/availability", response_model=Availability)
async def get_resource_availability(
    resource_id: UUID,
    start_date: date = Query(...),
    end_date: date = Query(...),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> Availability:
    return resource_service.availability(store, resource_id, start_date, end_date)


@router.get("/bookings", response_model=List[Booking])
async def list_bookings(
    resource_id: Optional[UUID] = Query(default=None),
    booking_date: Optional[date] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[Booking]:
    bookings = resource_service.list_bookings(store, resource_id, booking_date, status_filter)
    return [Booking.model_validate(b) for b in bookings]


@router.post("/bookings", response_model=Booking, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> Booking:
    return Booking.model_validate(resource_service.create_booking(store, payload, context.user_id))


@router.put("/bookings/{booking_id}", response_model=Booking)
async def update_booking(
    booking_id: UUID,
    payload: BookingUpdateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> Booking:
    return Booking.model_validate(resource_service.update_booking(store, booking_id, payload, context.user_id))
