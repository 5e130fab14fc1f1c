from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

FormAssignmentStatus = Literal["assigned", "in_progress", "completed", "cancelled", "expired"]
Priority = Literal["low", "medium", "high", "urgent"]
TriggerType = Literal["new_patient", "state_change", "group_assignment", "appointment_type", "manual"]
SubmissionSource = Literal["staff_assisted", "portal", "kiosk"]

# Assignments in these states count as open work for the patient.
OPEN_ASSIGNMENT_STATUSES = ("assigned", "in_progress")


class FormVersion(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    form_definition_id: UUID
    version_number: int
    version_name: str
    form_schema: Dict[str, Any]
    state_codes: List[str]
    effective_date: date
    expiration_date: Optional[date] = None
    change_summary: Optional[str] = None
    is_current: bool
    created_by: Optional[UUID] = None
    created_at: datetime


class FormDefinition(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    organization_id: Optional[UUID] = None
    form_name: str
    form_code: str
    category: str
    description: Optional[str] = None
    is_active: bool
    is_published: bool
    current_version_id: Optional[UUID] = None
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class FormDefinitionWithVersion(FormDefinition):
    current_version: Optional[FormVersion] = None


class FormDefinitionCreateRequest(BaseModel):
    form_name: str = Field(min_length=1)
    form_code: str = Field(min_length=1)
    category: str = "other"
    description: Optional[str] = None
    is_published: bool = False
    # When present, version 1 is created from this schema.
    form_schema: Optional[Dict[str, Any]] = None
    state_codes: List[str] = Field(default_factory=list)


class FormVersionCreateRequest(BaseModel):
    form_schema: Dict[str, Any]
    version_name: Optional[str] = None
    state_codes: List[str] = Field(default_factory=list)
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    change_summary: Optional[str] = None


class FormAssignment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    patient_id: UUID
    form_definition_id: UUID
    form_version_id: Optional[UUID] = None
    assigned_by: Optional[UUID] = None
    assigned_date: datetime
    due_date: Optional[date] = None
    priority: str
    status: str
    assignment_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class FormAssignmentCreateRequest(BaseModel):
    patient_id: UUID
    form_definition_id: UUID
    due_date: Optional[date] = None
    due_days_offset: Optional[int] = Field(default=None, ge=0)
    priority: Priority = "medium"
    assignment_reason: Optional[str] = None


class FormAssignmentUpdateRequest(BaseModel):
    status: FormAssignmentStatus


class FormSubmission(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    patient_id: UUID
    form_assignment_id: Optional[UUID] = None
    form_definition_id: UUID
    form_version_id: Optional[UUID] = None
    form_responses: Dict[str, Any]
    submission_source: str
    is_complete: bool
    is_partial_save: bool
    signature_data: Optional[str] = None
    submitted_by_user_id: Optional[UUID] = None
    submitted_at: Optional[datetime] = None
    created_at: datetime


class FormSubmissionCreateRequest(BaseModel):
    patient_id: UUID
    form_definition_id: UUID
    form_version_id: Optional[UUID] = None
    form_assignment_id: Optional[UUID] = None
    form_responses: Dict[str, Any] = Field(default_factory=dict)
    submission_source: SubmissionSource = "staff_assisted"
    is_complete: bool = True
    signature_data: Optional[str] = None


class PortalFormSubmissionRequest(BaseModel):
    """Submission from the patient portal; the patient comes from the login."""

    form_definition_id: UUID
    form_version_id: Optional[UUID] = None
    form_assignment_id: Optional[UUID] = None
    form_responses: Dict[str, Any] = Field(default_factory=dict)
    is_complete: bool = True
    signature_data: Optional[str] = None


class PortalSubmissionResult(BaseModel):
    success: bool = True
    submission_id: UUID
    is_complete: bool


class PublicationRule(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    rule_name: str
    form_definition_id: UUID
    trigger_type: str
    trigger_conditions: Dict[str, Any]
    auto_assign: bool
    due_days_offset: Optional[int] = None
    assignment_priority: str
    is_active: bool
    created_at: datetime


class PublicationRuleCreateRequest(BaseModel):
    rule_name: str = Field(min_length=1)
    form_definition_id: UUID
    trigger_type: TriggerType
    trigger_conditions: Dict[str, Any] = Field(default_factory=dict)
    auto_assign: bool = True
    due_days_offset: Optional[int] = Field(default=None, ge=0)
    assignment_priority: Priority = "medium"


class TriggerData(BaseModel):
    state_code: Optional[str] = None
    group_id: Optional[UUID] = None
    appointment_type_id: Optional[UUID] = None


class TriggerRequest(BaseModel):
    patient_id: UUID
    trigger_type: TriggerType
    trigger_data: TriggerData = Field(default_factory=TriggerData)


class TriggeredAssignment(BaseModel):
    form_name: str
    assignment_id: UUID


class TriggerError(BaseModel):
    form_name: str
    error: str


class TriggerResult(BaseModel):
    success: bool = True
    trigger_type: str
    rules_evaluated: int
    assigned_count: int
    assignments: List[TriggeredAssignment]
    errors: List[TriggerError]
