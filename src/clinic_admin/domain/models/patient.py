from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr

Gender = Literal["Male", "Female", "Other", "Prefer not to say"]


class Patient(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    patient_id: Optional[str] = None
    first_name: str
    last_name: str
    dob: date
    gender: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    is_deleted: bool
    created_at: datetime
    updated_at: datetime


class PatientCreateRequest(BaseModel):
    first_name: str
    last_name: str
    dob: date
    patient_id: Optional[str] = None
    gender: Optional[Gender] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None


class PatientUpdateRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    dob: Optional[date] = None
    gender: Optional[Gender] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
