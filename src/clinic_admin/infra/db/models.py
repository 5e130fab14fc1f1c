from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from src.clinic_admin.time_utils import utcnow


class Base(DeclarativeBase):
    pass


class TenantScoped:
    """Mixin for rows owned by a clinic.

    Caller-scoped stores filter every query on these models by the caller's
    clinic and stamp the clinic on insert.
    """

    __tenant_scoped__ = True

    clinic_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("clinics.id"), index=True, nullable=False)


def _pk() -> Mapped[UUID]:
    return mapped_column(Uuid, primary_key=True, default=uuid4)


def _created() -> Mapped[datetime]:
    return mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


def _updated() -> Mapped[datetime]:
    return mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


# Tenancy and identity


class OrganizationORM(Base):
    __tablename__ = "organizations"

    id: Mapped[UUID] = _pk()
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


class ClinicORM(Base):
    __tablename__ = "clinics"

    id: Mapped[UUID] = _pk()
    organization_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("organizations.id"))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text)
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


class RoleORM(Base):
    __tablename__ = "roles"

    id: Mapped[UUID] = _pk()
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)


class AuthIdentityORM(Base):
    """External identity owned by the auth provider."""

    __tablename__ = "auth_identities"

    id: Mapped[UUID] = _pk()
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    email_confirmed: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_sign_in_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = _created()


class UserORM(TenantScoped, Base):
    """Internal profile linked to an auth identity."""

    __tablename__ = "users"

    id: Mapped[UUID] = _pk()
    auth_user_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid, ForeignKey("auth_identities.id", ondelete="SET NULL"), unique=True
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    role_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("roles.id"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()

    role: Mapped[RoleORM] = relationship(lazy="joined")
    clinic: Mapped[ClinicORM] = relationship(lazy="joined")

    @property
    def role_name(self) -> Optional[str]:
        return self.role.name if self.role is not None else None


# Patients and clinical records


class PatientORM(TenantScoped, Base):
    __tablename__ = "patients"

    id: Mapped[UUID] = _pk()
    patient_id: Mapped[Optional[str]] = mapped_column(String(50))
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    dob: Mapped[date] = mapped_column(Date, nullable=False)
    gender: Mapped[Optional[str]] = mapped_column(String(32))
    email: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


class TaskORM(TenantScoped, Base):
    __tablename__ = "tasks"

    id: Mapped[UUID] = _pk()
    patient_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("patients.id"))
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(String(32), default="pending", nullable=False)
    priority: Mapped[str] = mapped_column(String(32), default="medium", nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date)
    assigned_to: Mapped[Optional[UUID]] = mapped_column(Uuid)
    assigned_to_role: Mapped[Optional[str]] = mapped_column(String(100))
    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


class TaskAuditTrailORM(TenantScoped, Base):
    __tablename__ = "task_audit_trail"

    id: Mapped[UUID] = _pk()
    task_id: Mapped[UUID] = mapped_column(Uuid, index=True, nullable=False)
    action_type: Mapped[str] = mapped_column(String(32), nullable=False)
    changed_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    old_values: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    new_values: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    created_at: Mapped[datetime] = _created()


class AppointmentORM(TenantScoped, Base):
    __tablename__ = "appointments"

    id: Mapped[UUID] = _pk()
    patient_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("patients.id"), nullable=False)
    provider_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    provider_name: Mapped[str] = mapped_column(String(200), default="Not Assigned", nullable=False)
    appointment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    appointment_type_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    reason: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="scheduled", nullable=False)
    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    updated_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


class AppointmentTypeORM(TenantScoped, Base):
    __tablename__ = "appointment_types"

    id: Mapped[UUID] = _pk()
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    color_code: Mapped[str] = mapped_column(String(16), default="#3B82F6", nullable=False)
    default_duration_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    buffer_before_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    buffer_after_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    preferred_time_of_day: Mapped[Optional[str]] = mapped_column(String(16))
    preferred_start_time: Mapped[Optional[time]] = mapped_column(Time)
    preferred_end_time: Mapped[Optional[time]] = mapped_column(Time)
    is_billable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    requires_approval: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    max_free_sessions: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    approval_role_names: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    updated_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


class ProviderScheduleORM(TenantScoped, Base):
    """Weekly recurring block for a provider.

    ``is_available`` blocks are working hours; the others are breaks carved
    out of them. ``day_of_week`` counts from Sunday (0) to Saturday (6).
    """

    __tablename__ = "provider_schedules"

    id: Mapped[UUID] = _pk()
    provider_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), index=True, nullable=False)
    day_of_week: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    schedule_type: Mapped[str] = mapped_column(String(32), default="working_hours", nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_until: Mapped[Optional[date]] = mapped_column(Date)
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


class ProviderScheduleExceptionORM(TenantScoped, Base):
    """One-day override: a day off, or special hours replacing the weekly blocks."""

    __tablename__ = "provider_schedule_exceptions"

    id: Mapped[UUID] = _pk()
    provider_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), index=True, nullable=False)
    exception_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    start_time: Mapped[Optional[time]] = mapped_column(Time)
    end_time: Mapped[Optional[time]] = mapped_column(Time)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = _created()


class ClinicalNoteORM(TenantScoped, Base):
    __tablename__ = "clinical_notes"

    id: Mapped[UUID] = _pk()
    patient_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("patients.id"), nullable=False)
    provider_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    note_type: Mapped[str] = mapped_column(String(32), nullable=False)
    template_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    category: Mapped[Optional[str]] = mapped_column(String(100))
    content: Mapped[str] = mapped_column(Text, default="", nullable=False)
    structured_content: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    raw_content: Mapped[Optional[str]] = mapped_column(Text)
    note_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    updated_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


# Scheduling resources


class ResourceTypeORM(TenantScoped, Base):
    __tablename__ = "resource_types"

    id: Mapped[UUID] = _pk()
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    requires_approval: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    default_capacity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = _created()


class ResourceORM(TenantScoped, Base):
    __tablename__ = "resources"

    id: Mapped[UUID] = _pk()
    resource_type_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("resource_types.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    capacity_override: Mapped[Optional[int]] = mapped_column(Integer)
    availability_schedule: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created()

    resource_type: Mapped[ResourceTypeORM] = relationship(lazy="joined")


class ResourceBookingORM(TenantScoped, Base):
    __tablename__ = "resource_bookings"

    id: Mapped[UUID] = _pk()
    resource_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("resources.id"), index=True, nullable=False)
    patient_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    booked_by_user_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    booking_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    booking_source: Mapped[str] = mapped_column(String(32), default="staff", nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    cancelled_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


class ResourceBlackoutORM(TenantScoped, Base):
    __tablename__ = "resource_blackouts"

    id: Mapped[UUID] = _pk()
    resource_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("resources.id"), nullable=False)
    blackout_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[Optional[time]] = mapped_column(Time)
    end_time: Mapped[Optional[time]] = mapped_column(Time)
    reason: Mapped[Optional[str]] = mapped_column(Text)


# Patient groups


class PatientGroupORM(TenantScoped, Base):
    __tablename__ = "patient_groups"

    id: Mapped[UUID] = _pk()
    organization_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    group_type: Mapped[str] = mapped_column(String(50), default="support", nullable=False)
    session_frequency: Mapped[str] = mapped_column(String(50), default="weekly", nullable=False)
    session_duration_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    resource_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    provider_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    max_members: Mapped[Optional[int]] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(32), default="forming", nullable=False)
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    portal_visible: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    allow_self_enrollment: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    requires_individual_session: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


class PatientGroupAssignmentORM(TenantScoped, Base):
    __tablename__ = "patient_group_assignments"

    id: Mapped[UUID] = _pk()
    patient_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("patients.id"), nullable=False)
    group_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("patient_groups.id"), index=True, nullable=False)
    assignment_date: Mapped[date] = mapped_column(Date, nullable=False)
    assigned_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    status: Mapped[str] = mapped_column(String(32), default="active", nullable=False)
    individual_session_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    individual_session_date: Mapped[Optional[date]] = mapped_column(Date)
    sessions_attended: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_attendance_date: Mapped[Optional[date]] = mapped_column(Date)
    withdrawal_date: Mapped[Optional[date]] = mapped_column(Date)
    withdrawal_reason: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


class GroupSessionAttendanceORM(TenantScoped, Base):
    __tablename__ = "group_session_attendance"
    __table_args__ = (UniqueConstraint("group_id", "resource_booking_id", "patient_id"),)

    id: Mapped[UUID] = _pk()
    group_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("patient_groups.id"), nullable=False)
    resource_booking_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    patient_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    session_date: Mapped[date] = mapped_column(Date, nullable=False)
    attended: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    attendance_notes: Mapped[Optional[str]] = mapped_column(Text)
    marked_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    marked_at: Mapped[datetime] = _created()


# Aesthetics: gift cards, memberships, inventory


class GiftCardORM(TenantScoped, Base):
    __tablename__ = "gift_cards"

    id: Mapped[UUID] = _pk()
    card_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    card_type: Mapped[str] = mapped_column(String(32), default="digital", nullable=False)
    original_amount: Mapped[float] = mapped_column(Float, nullable=False)
    current_balance: Mapped[float] = mapped_column(Float, nullable=False)
    purchaser_name: Mapped[Optional[str]] = mapped_column(String(200))
    purchaser_email: Mapped[Optional[str]] = mapped_column(String(255))
    recipient_name: Mapped[Optional[str]] = mapped_column(String(200))
    recipient_email: Mapped[Optional[str]] = mapped_column(String(255))
    patient_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    expiration_date: Mapped[Optional[date]] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    activation_date: Mapped[Optional[date]] = mapped_column(Date)
    last_used_date: Mapped[Optional[date]] = mapped_column(Date)
    purchase_transaction_id: Mapped[Optional[str]] = mapped_column(String(100))
    message: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


class MembershipORM(TenantScoped, Base):
    __tablename__ = "memberships"

    id: Mapped[UUID] = _pk()
    patient_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("patients.id"), index=True, nullable=False)
    membership_tier: Mapped[str] = mapped_column(String(50), nullable=False)
    membership_name: Mapped[str] = mapped_column(String(200), nullable=False)
    monthly_fee: Mapped[float] = mapped_column(Float, nullable=False)
    billing_cycle: Mapped[str] = mapped_column(String(32), default="monthly", nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    auto_renew: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    discount_percentage: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    benefits: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    credits_balance: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(String(32), default="active", nullable=False)
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


class InventoryItemORM(TenantScoped, Base):
    __tablename__ = "inventory_items"

    id: Mapped[UUID] = _pk()
    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    product_category: Mapped[str] = mapped_column(String(50), default="other", nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(100))
    unit_of_measure: Mapped[str] = mapped_column(String(32), default="unit", nullable=False)
    current_stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reorder_level: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unit_cost: Mapped[Optional[float]] = mapped_column(Float)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


class InventoryTransactionORM(TenantScoped, Base):
    __tablename__ = "inventory_transactions"

    id: Mapped[UUID] = _pk()
    inventory_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("inventory_items.id"), index=True, nullable=False)
    transaction_type: Mapped[str] = mapped_column(String(32), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    lot_number: Mapped[Optional[str]] = mapped_column(String(100))
    expiration_date: Mapped[Optional[date]] = mapped_column(Date)
    unit_cost: Mapped[Optional[float]] = mapped_column(Float)
    total_cost: Mapped[Optional[float]] = mapped_column(Float)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    performed_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    transaction_date: Mapped[datetime] = _created()


# Forms and compliance


class FormDefinitionORM(TenantScoped, Base):
    __tablename__ = "form_definitions"

    id: Mapped[UUID] = _pk()
    organization_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    form_name: Mapped[str] = mapped_column(String(200), nullable=False)
    form_code: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(50), default="other", nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Points at the current FormVersionORM row. Versions are appended, never
    # rewritten; only this pointer and the versions' is_current flags move.
    current_version_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


class FormVersionORM(TenantScoped, Base):
    __tablename__ = "form_versions"
    __table_args__ = (UniqueConstraint("form_definition_id", "version_number"),)

    id: Mapped[UUID] = _pk()
    form_definition_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("form_definitions.id", ondelete="CASCADE"), index=True, nullable=False
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    version_name: Mapped[str] = mapped_column(String(100), nullable=False)
    form_schema: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    state_codes: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    expiration_date: Mapped[Optional[date]] = mapped_column(Date)
    change_summary: Mapped[Optional[str]] = mapped_column(Text)
    is_current: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime] = _created()


class PatientFormAssignmentORM(TenantScoped, Base):
    __tablename__ = "patient_form_assignments"

    id: Mapped[UUID] = _pk()
    patient_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("patients.id"), index=True, nullable=False)
    form_definition_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("form_definitions.id"), nullable=False)
    form_version_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    assigned_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    assigned_date: Mapped[datetime] = _created()
    due_date: Mapped[Optional[date]] = mapped_column(Date)
    priority: Mapped[str] = mapped_column(String(32), default="medium", nullable=False)
    status: Mapped[str] = mapped_column(String(32), default="assigned", nullable=False)
    assignment_reason: Mapped[Optional[str]] = mapped_column(Text)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


class FormSubmissionORM(TenantScoped, Base):
    __tablename__ = "form_submissions"

    id: Mapped[UUID] = _pk()
    patient_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("patients.id"), nullable=False)
    form_assignment_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    form_definition_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("form_definitions.id"), nullable=False)
    form_version_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    form_responses: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    submission_source: Mapped[str] = mapped_column(String(32), default="staff_assisted", nullable=False)
    is_complete: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_partial_save: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    signature_data: Mapped[Optional[str]] = mapped_column(Text)
    submitted_by_user_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = _created()


class FormPublicationRuleORM(TenantScoped, Base):
    __tablename__ = "form_publication_rules"

    id: Mapped[UUID] = _pk()
    rule_name: Mapped[str] = mapped_column(String(200), nullable=False)
    form_definition_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("form_definitions.id"), nullable=False)
    trigger_type: Mapped[str] = mapped_column(String(32), nullable=False)
    trigger_conditions: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    auto_assign: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    due_days_offset: Mapped[Optional[int]] = mapped_column(Integer)
    assignment_priority: Mapped[str] = mapped_column(String(32), default="medium", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created()

    form: Mapped[FormDefinitionORM] = relationship(lazy="joined")


class StateConfigurationORM(TenantScoped, Base):
    __tablename__ = "state_configurations"
    __table_args__ = (UniqueConstraint("clinic_id", "state_code"),)

    id: Mapped[UUID] = _pk()
    state_code: Mapped[str] = mapped_column(String(8), nullable=False)
    state_name: Mapped[Optional[str]] = mapped_column(String(100))
    required_forms: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    legal_requirements: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    data_retention_days: Mapped[Optional[int]] = mapped_column(Integer)
    compliance_notes: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = _created()
    updated_at: Mapped[datetime] = _updated()


class PatientStateHistoryORM(TenantScoped, Base):
    __tablename__ = "patient_state_history"

    id: Mapped[UUID] = _pk()
    patient_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("patients.id"), index=True, nullable=False)
    state_code: Mapped[str] = mapped_column(String(8), nullable=False)
    is_primary_state: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    change_reason: Mapped[Optional[str]] = mapped_column(Text)
    detected_from: Mapped[str] = mapped_column(String(32), default="manual", nullable=False)
    forms_triggered: Mapped[List[str]] = mapped_column(JSON, default=list, nullable=False)
    recorded_by: Mapped[Optional[UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime] = _created()


class AuditLogORM(Base):
    """Audit sidecar table.

    Not tenant-scoped through the mixin because authentication events may be
    recorded before a clinic is known; clinic_id is nullable here.
    """

    __tablename__ = "audit_logs"

    id: Mapped[UUID] = _pk()
    clinic_id: Mapped[Optional[UUID]] = mapped_column(Uuid, index=True)
    user_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    auth_user_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    event_action: Mapped[str] = mapped_column(String(64), nullable=False)
    resource_type: Mapped[Optional[str]] = mapped_column(String(64))
    resource_id: Mapped[Optional[UUID]] = mapped_column(Uuid)
    ip_address: Mapped[Optional[str]] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(Text)
    request_metadata: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    phi_accessed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    severity: Mapped[str] = mapped_column(String(16), default="low", nullable=False)
    session_id: Mapped[Optional[str]] = mapped_column(String(100))
    timestamp: Mapped[datetime] = _created()
