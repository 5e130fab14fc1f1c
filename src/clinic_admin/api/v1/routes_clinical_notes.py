from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.clinic_admin.domain.models.clinical_note import (
    ClinicalNote,
    ClinicalNoteCreateRequest,
    ClinicalNoteUpdateRequest,
)
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.security import AuthContext, get_auth_context, get_caller_store
from src.clinic_admin.services.audit.service import audit_service
from src.clinic_admin.services.clinical_notes.service import clinical_note_service
from src.clinic_admin.services.side_effects import SideEffectQueue, get_side_effects

router = APIRouter(prefix="/clinical-notes", tags=["clinical-notes"])


@router.get("", response_model=List[ClinicalNote])
async def list_clinical_notes(
    patient_id: Optional[UUID] = Query(default=None),
    note_type: Optional[str] = Query(default=None),
    category: Optional[str] = Query(default=None),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[ClinicalNote]:
    notes = clinical_note_service.list_notes(store, patient_id, note_type, category)
    return [ClinicalNote.model_validate(note) for note in notes]


@router.post("", response_model=ClinicalNote, status_code=status.HTTP_201_CREATED)
async def create_clinical_note(
    payload: ClinicalNoteCreateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
    side_effects: SideEffectQueue = Depends(get_side_effects),
) -> ClinicalNote:
    note = clinical_note_service.create_note(store, payload, context.user_id)
    audit_service.log_event(
        side_effects,
        event_type="data_modification",
        event_action="create",
        resource_type="clinical_note",
        resource_id=note.id,
        user_id=context.user_id,
        auth_user_id=context.identity.id,
        phi_accessed=True,
        metadata={"note_type": note.note_type},
    )
    return ClinicalNote.model_validate(note)


@router.put("/{note_id}", response_model=ClinicalNote)
async def update_clinical_note(
    note_id: UUID,
    payload: ClinicalNoteUpdateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> ClinicalNote:
    return ClinicalNote.model_validate(clinical_note_service.update_note(store, note_id, payload, context.user_id))


@router.delete("/{note_id}")
async def delete_clinical_note(
    note_id: UUID,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> dict:
    clinical_note_service.delete_note(store, note_id, context.user_id)
    return {"success": True, "message": "Clinical note deleted successfully"}
