from __future__ import annotations

from datetime import date, datetime, time
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

TimeOfDay = Literal["morning", "afternoon", "evening", "any"]
ScheduleType = Literal["working_hours", "break", "blocked"]

# Appointments in these states do not hold their slot.
RELEASED_APPOINTMENT_STATUSES = ("cancelled",)


def _check_range(start: Optional[time], end: Optional[time]) -> None:
    if start is not None and end is not None and end <= start:
        raise ValueError("end_time must be after start_time")


# Appointment types


class AppointmentType(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    name: str
    description: Optional[str] = None
    color_code: str
    default_duration_minutes: int
    buffer_before_minutes: int
    buffer_after_minutes: int
    preferred_time_of_day: Optional[str] = None
    preferred_start_time: Optional[time] = None
    preferred_end_time: Optional[time] = None
    is_billable: bool
    requires_approval: bool
    max_free_sessions: int
    approval_role_names: List[str]
    is_active: bool
    created_by: Optional[UUID] = None
    updated_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class AppointmentTypeCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1)
    description: Optional[str] = None
    color_code: str = "#3B82F6"
    default_duration_minutes: int = Field(default=60, gt=0)
    buffer_before_minutes: int = Field(default=0, ge=0)
    buffer_after_minutes: int = Field(default=0, ge=0)
    preferred_time_of_day: Optional[TimeOfDay] = None
    preferred_start_time: Optional[time] = None
    preferred_end_time: Optional[time] = None
    is_billable: bool = True
    requires_approval: bool = False
    max_free_sessions: int = Field(default=0, ge=0)
    approval_role_names: List[str] = Field(default_factory=list, alias="approval_roles")

    @model_validator(mode="after")
    def _preferred_window(self) -> "AppointmentTypeCreateRequest":
        _check_range(self.preferred_start_time, self.preferred_end_time)
        return self


class AppointmentTypeUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    color_code: Optional[str] = None
    default_duration_minutes: Optional[int] = Field(default=None, gt=0)
    buffer_before_minutes: Optional[int] = Field(default=None, ge=0)
    buffer_after_minutes: Optional[int] = Field(default=None, ge=0)
    preferred_time_of_day: Optional[TimeOfDay] = None
    preferred_start_time: Optional[time] = None
    preferred_end_time: Optional[time] = None
    is_billable: Optional[bool] = None
    requires_approval: Optional[bool] = None
    max_free_sessions: Optional[int] = Field(default=None, ge=0)
    approval_role_names: Optional[List[str]] = Field(default=None, alias="approval_roles")
    is_active: Optional[bool] = None


# Provider schedules


class ProviderSchedule(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    provider_id: UUID
    day_of_week: int
    start_time: time
    end_time: time
    is_available: bool
    schedule_type: str
    notes: Optional[str] = None
    effective_from: date
    effective_until: Optional[date] = None
    created_at: datetime
    updated_at: datetime


class ProviderScheduleCreateRequest(BaseModel):
    provider_id: UUID
    day_of_week: int = Field(ge=0, le=6, description="0 is Sunday, 6 is Saturday")
    start_time: time
    end_time: time
    is_available: bool = True
    schedule_type: ScheduleType = "working_hours"
    notes: Optional[str] = None
    effective_from: Optional[date] = None
    effective_until: Optional[date] = None

    @model_validator(mode="after")
    def _end_after_start(self) -> "ProviderScheduleCreateRequest":
        _check_range(self.start_time, self.end_time)
        return self


class ProviderScheduleUpdateRequest(BaseModel):
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    is_available: Optional[bool] = None
    schedule_type: Optional[ScheduleType] = None
    notes: Optional[str] = None
    effective_from: Optional[date] = None
    effective_until: Optional[date] = None


class ScheduleException(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    provider_id: UUID
    exception_date: date
    is_available: bool
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[str] = None


class ScheduleExceptionCreateRequest(BaseModel):
    provider_id: UUID
    exception_date: date
    is_available: bool = False
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _special_hours(self) -> "ScheduleExceptionCreateRequest":
        if self.is_available and (self.start_time is None or self.end_time is None):
            raise ValueError("start_time and end_time are required for special hours")
        _check_range(self.start_time, self.end_time)
        return self


# Availability and recommendations


class Buffers(BaseModel):
    pre: int
    post: int


class AvailableBlock(BaseModel):
    start_time: datetime
    end_time: datetime
    day_of_week: int
    slot_date: date


class ProviderAvailability(BaseModel):
    provider_id: UUID
    start_date: date
    end_date: date
    duration_minutes: int
    buffers: Buffers
    available_blocks: List[AvailableBlock]


class SlotRecommendation(BaseModel):
    start_time: datetime
    end_time: datetime
    confidence_score: int
    reasons: List[str]
    slot_date: date
    day_of_week: int
    time_of_day: str


class RecommendationMetadata(BaseModel):
    appointment_type: str
    duration_minutes: int


class SlotRecommendations(BaseModel):
    provider_id: UUID
    appointment_type_id: Optional[UUID] = None
    start_date: date
    end_date: date
    total_slots_available: int
    recommendations: List[SlotRecommendation]
    metadata: RecommendationMetadata
