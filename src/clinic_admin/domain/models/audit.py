from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuditLog(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    auth_user_id: Optional[UUID] = None
    event_type: str
    event_action: str
    resource_type: Optional[str] = None
    resource_id: Optional[UUID] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_metadata: Dict[str, Any]
    phi_accessed: bool
    severity: str
    session_id: Optional[str] = None
    timestamp: datetime


class AuditEventRequest(BaseModel):
    event_type: str = Field(min_length=1)
    event_action: str = Field(min_length=1)
    resource_type: Optional[str] = None
    # Free-form on input; anything that is not a UUID is stored as null.
    resource_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    phi_accessed: bool = False
    severity: Literal["low", "medium", "high", "critical"] = "low"
    session_id: Optional[str] = None

    @field_validator("resource_id", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)
