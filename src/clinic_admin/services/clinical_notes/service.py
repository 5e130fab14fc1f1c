from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from src.clinic_admin.domain.models.clinical_note import (
    NOTE_TYPES,
    ClinicalNoteCreateRequest,
    ClinicalNoteUpdateRequest,
)
from src.clinic_admin.errors import NotFoundError, ValidationError
from src.clinic_admin.infra.db.models import ClinicalNoteORM, PatientORM
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.time_utils import today, utcnow

logger = logging.getLogger(__name__)


def flatten_content(note_type: str, sections: Optional[Dict[str, Any]], raw_content: Optional[str]) -> str:
    """Plain-text content stored alongside the structured sections.

    Provider notes join their non-empty sections with blank lines; every
    other note falls back to the raw text.
    """

    if note_type == "provider_note" and sections:
        joined = "\n\n".join(str(value) for value in sections.values() if value)
        if joined:
            return joined
    return raw_content or ""


class ClinicalNoteService:
    def list_notes(
        self,
        store: Store,
        patient_id: Optional[UUID] = None,
        note_type: Optional[str] = None,
        category: Optional[str] = None,
    ) -> List[ClinicalNoteORM]:
        stmt = store.select(ClinicalNoteORM).where(ClinicalNoteORM.is_deleted.is_(False))
        if patient_id is not None:
            stmt = stmt.where(ClinicalNoteORM.patient_id == patient_id)
        if note_type:
            stmt = stmt.where(ClinicalNoteORM.note_type == note_type)
        if category:
            stmt = stmt.where(ClinicalNoteORM.category == category)
        return store.scalars(stmt.order_by(ClinicalNoteORM.note_date.desc(), ClinicalNoteORM.created_at.desc()))

    def get_note(self, store: Store, note_id: UUID) -> ClinicalNoteORM:
        note = store.get(ClinicalNoteORM, note_id)
        if note is None or note.is_deleted:
            raise NotFoundError("Clinical note not found or access denied")
        return note

    def _validate(self, payload: ClinicalNoteCreateRequest) -> None:
        errors: List[str] = []
        if not payload.patient_id:
            errors.append("patient_id is required")
        if not payload.title:
            errors.append("title is required")
        if not payload.note_type:
            errors.append("note_type is required")
        elif payload.note_type not in NOTE_TYPES:
            errors.append("note_type must be either provider_note or quick_note")
        if not payload.note_date:
            errors.append("note_date is required")
        if not payload.provider_id:
            errors.append("provider_id is required")
        if payload.note_type == "quick_note" and not payload.category:
            errors.append("category is required for quick notes")
        if errors:
            raise ValidationError("Validation failed", details=", ".join(errors))

        if payload.note_date > today():
            raise ValidationError("Invalid note date", details="Note date cannot be in the future")

    def create_note(self, store: Store, payload: ClinicalNoteCreateRequest, created_by: UUID) -> ClinicalNoteORM:
        self._validate(payload)
        patient = store.get(PatientORM, payload.patient_id)
        if patient is None or patient.is_deleted:
            raise NotFoundError("Patient not found")

        note = ClinicalNoteORM(
            patient_id=payload.patient_id,
            provider_id=payload.provider_id,
            title=payload.title,
            note_type=payload.note_type,
            template_id=payload.template_id,
            category=payload.category,
            content=flatten_content(payload.note_type, payload.content, payload.raw_content),
            structured_content=payload.content,
            raw_content=payload.raw_content,
            note_date=payload.note_date,
            created_by=created_by,
        )
        store.add(note)
        logger.info("Created %s %s for patient %s", note.note_type, note.id, note.patient_id)
        return note

    def update_note(
        self, store: Store, note_id: UUID, payload: ClinicalNoteUpdateRequest, updated_by: UUID
    ) -> ClinicalNoteORM:
        note = self.get_note(store, note_id)
        changes = payload.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        if changes.get("note_date") is not None and changes["note_date"] > today():
            raise ValidationError("Invalid note date", details="Note date cannot be in the future")

        for field in ("title", "category", "note_date"):
            if field in changes:
                setattr(note, field, changes[field])
        if "content" in changes:
            note.structured_content = changes["content"]
        if "raw_content" in changes:
            note.raw_content = changes["raw_content"]
        if "content" in changes or "raw_content" in changes:
            note.content = flatten_content(note.note_type, note.structured_content, note.raw_content)
        note.updated_by = updated_by
        return store.save(note)

    def delete_note(self, store: Store, note_id: UUID, updated_by: UUID) -> ClinicalNoteORM:
        note = self.get_note(store, note_id)
        note.is_deleted = True
        note.deleted_at = utcnow()
        note.updated_by = updated_by
        logger.info("Soft-deleted clinical note %s", note_id)
        return store.save(note)


clinical_note_service = ClinicalNoteService()
