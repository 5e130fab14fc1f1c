from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

BookingStatus = Literal["pending", "confirmed", "cancelled", "completed", "no_show"]
BookingSource = Literal["staff", "portal", "group_session"]

# Bookings in these states hold their slot.
ACTIVE_BOOKING_STATUSES = ("pending", "confirmed")


class ResourceType(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    name: str
    requires_approval: bool
    default_capacity: int


class ResourceTypeCreateRequest(BaseModel):
    name: str
    requires_approval: bool = False
    default_capacity: int = Field(default=1, ge=1)


class Resource(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    resource_type_id: UUID
    name: str
    capacity_override: Optional[int] = None
    availability_schedule: Optional[Dict[str, Any]] = None
    is_active: bool


class ResourceCreateRequest(BaseModel):
    resource_type_id: UUID
    name: str
    capacity_override: Optional[int] = Field(default=None, ge=1)
    availability_schedule: Optional[Dict[str, Any]] = None


class Blackout(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    blackout_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[str] = None


class BlackoutCreateRequest(BaseModel):
    blackout_date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[str] = None


class Booking(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    resource_id: UUID
    patient_id: Optional[UUID] = None
    booked_by_user_id: Optional[UUID] = None
    booking_date: date
    start_time: time
    end_time: time
    duration_minutes: Optional[int] = None
    status: str
    booking_source: str
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class BookingCreateRequest(BaseModel):
    resource_id: UUID
    booking_date: date
    start_time: time
    end_time: time
    patient_id: Optional[UUID] = None
    duration_minutes: Optional[int] = None
    booking_source: BookingSource = "staff"
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _end_after_start(self) -> "BookingCreateRequest":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class BookingUpdateRequest(BaseModel):
    status: Optional[BookingStatus] = None
    booking_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None


class BookedSlot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    booking_date: date
    start_time: time
    end_time: time
    status: str


class ResourceSummary(BaseModel):
    id: UUID
    name: str
    capacity: int


class DateRange(BaseModel):
    start_date: date
    end_date: date


class Availability(BaseModel):
    resource: ResourceSummary
    date_range: DateRange
    bookings: List[BookedSlot]
    blackouts: List[Blackout]
    availability_schedule: Optional[Dict[str, Any]] = None
