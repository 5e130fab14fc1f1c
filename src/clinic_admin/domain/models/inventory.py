from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

ProductCategory = Literal["injectable", "filler", "toxin", "skincare", "device_consumable", "retail", "other"]
TransactionType = Literal["purchase", "usage", "adjustment", "waste", "transfer", "return"]


class InventoryItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    product_name: str
    product_category: str
    sku: Optional[str] = None
    unit_of_measure: str
    current_stock: int
    reorder_level: int
    unit_cost: Optional[float] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class InventoryCreateRequest(BaseModel):
    product_name: str = Field(min_length=1)
    product_category: ProductCategory = "other"
    sku: Optional[str] = None
    unit_of_measure: str = "unit"
    current_stock: int = Field(default=0, ge=0)
    reorder_level: int = Field(default=0, ge=0)
    unit_cost: Optional[float] = Field(default=None, ge=0)


class InventoryUpdateRequest(BaseModel):
    product_name: Optional[str] = None
    product_category: Optional[ProductCategory] = None
    sku: Optional[str] = None
    unit_of_measure: Optional[str] = None
    current_stock: Optional[int] = Field(default=None, ge=0)
    reorder_level: Optional[int] = Field(default=None, ge=0)
    unit_cost: Optional[float] = Field(default=None, ge=0)
    is_active: Optional[bool] = None
    reason: Optional[str] = None


class InventoryTransaction(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    clinic_id: UUID
    inventory_id: UUID
    transaction_type: str
    quantity: int
    lot_number: Optional[str] = None
    expiration_date: Optional[date] = None
    unit_cost: Optional[float] = None
    total_cost: Optional[float] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    performed_by: Optional[UUID] = None
    transaction_date: datetime


class InventoryTransactionCreateRequest(BaseModel):
    inventory_id: UUID
    transaction_type: TransactionType
    # Signed change applied to current_stock.
    quantity: int
    lot_number: Optional[str] = None
    expiration_date: Optional[date] = None
    unit_cost: Optional[float] = Field(default=None, ge=0)
    reason: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("quantity")
    @classmethod
    def _non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("quantity must not be zero")
        return value


class InventoryTransactionResult(BaseModel):
    transaction: InventoryTransaction
    item: InventoryItem
