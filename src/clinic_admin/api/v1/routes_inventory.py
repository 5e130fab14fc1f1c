from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from src.clinic_admin.domain.models.inventory import (
    InventoryCreateRequest,
    InventoryItem,
    InventoryTransaction,
    InventoryTransactionCreateRequest,
    InventoryTransactionResult,
    InventoryUpdateRequest,
    ProductCategory,
)
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.security import AuthContext, get_auth_context, get_caller_store
from src.clinic_admin.services.inventory.service import inventory_service
from src.clinic_admin.services.side_effects import SideEffectQueue, get_side_effects

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("", response_model=List[InventoryItem])
async def list_inventory(
    category: Optional[ProductCategory] = Query(default=None),
    low_stock: bool = Query(default=False),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[InventoryItem]:
    return [InventoryItem.model_validate(i) for i in inventory_service.list_items(store, category, low_stock)]


@router.post("", response_model=InventoryItem, status_code=status.HTTP_201_CREATED)
async def create_inventory_item(
    payload: InventoryCreateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> InventoryItem:
    return InventoryItem.model_validate(inventory_service.create_item(store, payload))


@router.put("/{item_id}", response_model=InventoryItem)
async def update_inventory_item(
    item_id: UUID,
    payload: InventoryUpdateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
    side_effects: SideEffectQueue = Depends(get_side_effects),
) -> InventoryItem:
    item = inventory_service.update_item(store, item_id, payload, context.user_id, side_effects)
    return InventoryItem.model_validate(item)


@router.get("/transactions", response_model=List[InventoryTransaction])
async def list_inventory_transactions(
    inventory_id: Optional[UUID] = Query(default=None),
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> List[InventoryTransaction]:
    return [InventoryTransaction.model_validate(t) for t in inventory_service.list_transactions(store, inventory_id)]


@router.post("/transactions", response_model=InventoryTransactionResult, status_code=status.HTTP_201_CREATED)
async def create_inventory_transaction(
    payload: InventoryTransactionCreateRequest,
    context: AuthContext = Depends(get_auth_context),
    store: Store = Depends(get_caller_store),
) -> InventoryTransactionResult:
    return inventory_service.record_transaction(store, payload, context.user_id)
