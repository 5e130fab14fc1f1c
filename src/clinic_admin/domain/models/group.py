from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

GroupStatus = Literal["forming", "active", "full", "completed", "cancelled"]
AssignmentStatus = Literal["active", "completed", "withdrawn", "removed"]

# Groups in these states accept new members.
ENROLLABLE_GROUP_STATUSES = ("forming", "active")


class PatientGroup(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    organization_id: Optional[UUID] = None
    name: str
    description: Optional[str] = None
    group_type: str
    session_frequency: str
    session_duration_minutes: int
    resource_id: Optional[UUID] = None
    provider_id: Optional[UUID] = None
    max_members: Optional[int] = None
    status: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    portal_visible: bool
    allow_self_enrollment: bool
    requires_individual_session: bool
    created_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class PatientGroupCreateRequest(BaseModel):
    name: str
    description: Optional[str] = None
    group_type: str = "support"
    session_frequency: str = "weekly"
    session_duration_minutes: int = Field(default=60, gt=0)
    resource_id: Optional[UUID] = None
    provider_id: Optional[UUID] = None
    max_members: Optional[int] = Field(default=None, ge=1)
    status: GroupStatus = "forming"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    portal_visible: bool = True
    allow_self_enrollment: bool = False
    requires_individual_session: bool = False


class GroupAssignment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    patient_id: UUID
    group_id: UUID
    assignment_date: date
    assigned_by: Optional[UUID] = None
    status: str
    individual_session_completed: bool
    individual_session_date: Optional[date] = None
    sessions_attended: int
    last_attendance_date: Optional[date] = None
    withdrawal_date: Optional[date] = None
    withdrawal_reason: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class GroupAssignmentCreateRequest(BaseModel):
    patient_id: UUID
    notes: Optional[str] = None


class GroupAssignmentUpdateRequest(BaseModel):
    status: Optional[AssignmentStatus] = None
    withdrawal_reason: Optional[str] = None
    individual_session_completed: Optional[bool] = None
    individual_session_date: Optional[date] = None
    notes: Optional[str] = None


class AttendanceRecordIn(BaseModel):
    patient_id: UUID
    attended: bool
    notes: Optional[str] = None


class AttendanceRequest(BaseModel):
    session_date: date
    resource_booking_id: Optional[UUID] = None
    attendance_records: List[AttendanceRecordIn] = Field(default_factory=list)


class Attendance(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    group_id: UUID
    resource_booking_id: Optional[UUID] = None
    patient_id: UUID
    session_date: date
    attended: bool
    attendance_notes: Optional[str] = None
    marked_by: Optional[UUID] = None
    marked_at: datetime


class AttendanceError(BaseModel):
    patient_id: UUID
    error: str


class AttendanceResult(BaseModel):
    success: int
    failed: int
    results: List[Attendance]
    errors: List[AttendanceError]


class GroupInfo(BaseModel):
    id: UUID
    name: str
    status: str
    current_member_count: int
    max_members: Optional[int] = None


class MembershipStats(BaseModel):
    total_assignments: int
    active_members: int
    completed_members: int
    withdrawn_members: int
    # Percent of seats taken; None when the group has no cap.
    capacity_utilization: Optional[float] = None


class AttendanceStats(BaseModel):
    total_sessions_held: int
    total_attendance_records: int
    total_attended: int
    total_sessions_by_all_members: int
    average_attendance_rate: float
    average_sessions_per_member: float


class CompletionStats(BaseModel):
    completion_rate: float
    withdrawal_rate: float


class GroupStatistics(BaseModel):
    group_info: GroupInfo
    membership: MembershipStats
    attendance: AttendanceStats
    completion: CompletionStats
