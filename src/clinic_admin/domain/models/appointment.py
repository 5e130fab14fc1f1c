from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

AppointmentStatus = Literal["scheduled", "confirmed", "checked_in", "in_progress", "completed", "cancelled", "no_show"]


class Appointment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    patient_id: UUID
    provider_id: UUID
    provider_name: str
    appointment_date: datetime
    appointment_type_id: Optional[UUID] = None
    duration_minutes: int
    reason: str
    status: str
    created_by: Optional[UUID] = None
    updated_by: Optional[UUID] = None
    is_deleted: bool
    created_at: datetime
    updated_at: datetime


class AppointmentCreateRequest(BaseModel):
    patient_id: UUID
    provider_id: UUID
    appointment_date: datetime
    appointment_type_id: Optional[UUID] = None
    duration_minutes: int = Field(default=30, gt=0)
    reason: str = ""
    status: AppointmentStatus = "scheduled"


class AppointmentUpdateRequest(BaseModel):
    provider_id: Optional[UUID] = None
    appointment_date: Optional[datetime] = None
    appointment_type_id: Optional[UUID] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    reason: Optional[str] = None
    status: Optional[AppointmentStatus] = None
