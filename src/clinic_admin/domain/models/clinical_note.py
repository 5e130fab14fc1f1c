from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

NOTE_TYPES = ("provider_note", "quick_note")


class ClinicalNote(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    patient_id: UUID
    provider_id: UUID
    title: str
    note_type: str
    template_id: Optional[UUID] = None
    category: Optional[str] = None
    content: str
    structured_content: Optional[Dict[str, Any]] = None
    raw_content: Optional[str] = None
    note_date: date
    is_deleted: bool
    created_by: Optional[UUID] = None
    updated_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class ClinicalNoteCreateRequest(BaseModel):
    # Required fields are checked together in the service so that the caller
    # gets every problem in one response.
    patient_id: Optional[UUID] = None
    provider_id: Optional[UUID] = None
    title: Optional[str] = None
    note_type: Optional[str] = None
    note_date: Optional[date] = None
    category: Optional[str] = None
    template_id: Optional[UUID] = None
    # Structured sections of a provider note, keyed by section name.
    content: Optional[Dict[str, Any]] = None
    raw_content: Optional[str] = None


class ClinicalNoteUpdateRequest(BaseModel):
    title: Optional[str] = None
    category: Optional[str] = None
    note_date: Optional[date] = None
    content: Optional[Dict[str, Any]] = None
    raw_content: Optional[str] = None
