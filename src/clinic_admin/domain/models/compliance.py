from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StateConfiguration(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    state_code: str
    state_name: Optional[str] = None
    # Form definition ids a patient must complete when residing in this state.
    required_forms: List[str]
    legal_requirements: Optional[Dict[str, Any]] = None
    data_retention_days: Optional[int] = None
    compliance_notes: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class StateConfigurationUpsertRequest(BaseModel):
    state_code: str = Field(min_length=2, max_length=8)
    state_name: Optional[str] = None
    required_forms: List[UUID] = Field(default_factory=list)
    legal_requirements: Optional[Dict[str, Any]] = None
    data_retention_days: Optional[int] = Field(default=None, ge=0)
    compliance_notes: Optional[str] = None
    is_active: bool = True

    @field_validator("state_code")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()


class PatientStateHistory(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    patient_id: UUID
    state_code: str
    is_primary_state: bool
    effective_date: date
    end_date: Optional[date] = None
    change_reason: Optional[str] = None
    detected_from: str
    forms_triggered: List[str]
    recorded_by: Optional[UUID] = None
    created_at: datetime


class PatientStateUpdateRequest(BaseModel):
    state_code: str = Field(min_length=2, max_length=8)
    effective_date: Optional[date] = None
    change_reason: Optional[str] = None
    detected_from: Literal["manual", "address", "appointment", "portal"] = "manual"

    @field_validator("state_code")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()


class PatientStateUpdateResult(BaseModel):
    state_history: PatientStateHistory
    forms_assigned: int
