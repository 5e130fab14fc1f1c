from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class GiftCard(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    card_code: str
    card_type: str
    original_amount: float
    current_balance: float
    purchaser_name: Optional[str] = None
    purchaser_email: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_email: Optional[str] = None
    patient_id: Optional[UUID] = None
    expiration_date: Optional[date] = None
    is_active: bool
    activation_date: Optional[date] = None
    last_used_date: Optional[date] = None
    purchase_transaction_id: Optional[str] = None
    message: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class GiftCardCreateRequest(BaseModel):
    original_amount: float = Field(gt=0)
    card_type: Literal["digital", "physical"] = "digital"
    purchaser_name: Optional[str] = None
    purchaser_email: Optional[EmailStr] = None
    recipient_name: Optional[str] = None
    recipient_email: Optional[EmailStr] = None
    patient_id: Optional[UUID] = None
    expiration_date: Optional[date] = None
    message: Optional[str] = None
    purchase_transaction_id: Optional[str] = None


class GiftCardBalance(BaseModel):
    valid: bool
    card_code: str
    current_balance: float
    original_amount: float
    is_active: bool
    is_expired: bool
    expiration_date: Optional[date] = None
    last_used_date: Optional[date] = None
    recipient_name: Optional[str] = None


class GiftCardRedeemRequest(BaseModel):
    card_code: str = Field(min_length=1)
    redemption_amount: float = Field(gt=0)
    transaction_id: Optional[str] = None


class GiftCardRedemption(BaseModel):
    success: bool = True
    gift_card: GiftCard
    redeemed_amount: float
    remaining_balance: float
    transaction_id: Optional[str] = None
