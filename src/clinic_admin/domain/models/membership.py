from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class Membership(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    patient_id: UUID
    membership_tier: str
    membership_name: str
    monthly_fee: float
    billing_cycle: str
    start_date: date
    end_date: Optional[date] = None
    auto_renew: bool
    discount_percentage: float
    benefits: Dict[str, Any]
    credits_balance: float
    stripe_subscription_id: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime


class MembershipCreateRequest(BaseModel):
    patient_id: UUID
    membership_tier: str = Field(min_length=1)
    membership_name: str = Field(min_length=1)
    monthly_fee: float = Field(ge=0)
    billing_cycle: Literal["monthly", "quarterly", "annual"] = "monthly"
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    auto_renew: bool = True
    discount_percentage: float = Field(default=0, ge=0, le=100)
    benefits: Dict[str, Any] = Field(default_factory=dict)
    credits_balance: float = Field(default=0, ge=0)
    stripe_subscription_id: Optional[str] = None


class MembershipBalance(BaseModel):
    has_active_membership: bool
    credits_balance: float = 0
    discount_percentage: float = 0
    membership_id: Optional[UUID] = None
    membership_tier: Optional[str] = None
    membership_name: Optional[str] = None
    benefits: Optional[Dict[str, Any]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    auto_renew: Optional[bool] = None


class CreditDeductionRequest(BaseModel):
    amount: float = Field(gt=0)
    transaction_id: Optional[str] = None


class CreditDeduction(BaseModel):
    success: bool = True
    membership: Membership
    deducted_amount: float
    remaining_balance: float
    transaction_id: Optional[str] = None
