from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserRole(str, Enum):
    SYSTEM_ADMIN = "System Admin"
    ADMIN = "Admin"
    PROVIDER = "Provider"
    STAFF = "Staff"


ADMIN_ROLES = (UserRole.SYSTEM_ADMIN, UserRole.ADMIN)
CLINICAL_ROLES = (UserRole.SYSTEM_ADMIN, UserRole.ADMIN, UserRole.PROVIDER, UserRole.STAFF)


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    auth_user_id: Optional[UUID] = None
    email: EmailStr
    full_name: str
    role_id: UUID
    role_name: Optional[str] = None
    clinic_id: UUID
    is_active: bool
    created_at: datetime
    updated_at: datetime


class UserCreateRequest(BaseModel):
    # Presence is checked by the service so that every missing field is
    # reported together.
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    role_id: Optional[UUID] = None
    clinic_id: Optional[UUID] = None
    password: Optional[str] = Field(default=None, min_length=6)


class UserUpdateRequest(BaseModel):
    full_name: Optional[str] = None
    role_id: Optional[UUID] = None
    clinic_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class TokenRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
