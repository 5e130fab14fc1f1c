from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from src.clinic_admin.domain.models.inventory import (
    InventoryCreateRequest,
    InventoryItem,
    InventoryTransaction,
    InventoryTransactionCreateRequest,
    InventoryTransactionResult,
    InventoryUpdateRequest,
)
from src.clinic_admin.errors import ConflictError, NotFoundError, ValidationError
from src.clinic_admin.infra.db.models import InventoryItemORM, InventoryTransactionORM
from src.clinic_admin.infra.db.store import Store
from src.clinic_admin.services.side_effects import SideEffectQueue

logger = logging.getLogger(__name__)


def record_stock_adjustment(
    store: Store,
    clinic_id: UUID,
    inventory_id: UUID,
    delta: int,
    unit_cost: Optional[float],
    reason: Optional[str],
    performed_by: Optional[UUID],
) -> InventoryTransactionORM:
    """Ledger row for a stock change made by editing the item directly."""

    return store.add(
        InventoryTransactionORM(
            clinic_id=clinic_id,
            inventory_id=inventory_id,
            transaction_type="purchase" if delta > 0 else "adjustment",
            quantity=delta,
            unit_cost=unit_cost,
            total_cost=abs(delta) * unit_cost if unit_cost is not None else None,
            reason=reason or "Manual stock update",
            performed_by=performed_by,
        )
    )


class InventoryService:
    def create_item(self, store: Store, payload: InventoryCreateRequest) -> InventoryItemORM:
        item = store.add(InventoryItemORM(**payload.model_dump()))
        logger.info("Created inventory item %s", item.id)
        return item

    def list_items(self, store: Store, category: Optional[str] = None, low_stock: bool = False) -> List[InventoryItemORM]:
        stmt = store.select(InventoryItemORM).where(InventoryItemORM.is_active.is_(True))
        if category:
            stmt = stmt.where(InventoryItemORM.product_category == category)
        if low_stock:
            stmt = stmt.where(InventoryItemORM.current_stock <= InventoryItemORM.reorder_level)
        return store.scalars(stmt.order_by(InventoryItemORM.product_name))

    def get_item(self, store: Store, item_id: UUID) -> InventoryItemORM:
        item = store.get(InventoryItemORM, item_id)
        if item is None:
            raise NotFoundError("Inventory item not found")
        return item

    def update_item(
        self,
        store: Store,
        item_id: UUID,
        payload: InventoryUpdateRequest,
        performed_by: UUID,
        side_effects: SideEffectQueue,
    ) -> InventoryItemORM:
        changes = payload.model_dump(exclude_unset=True)
        reason = changes.pop("reason", None)
        if not changes:
            raise ValidationError("No fields to update")
        item = self.get_item(store, item_id)

        previous_stock = item.current_stock
        for field, value in changes.items():
            if value is None and field not in ("sku", "unit_cost"):
                continue
            setattr(item, field, value)
        store.save(item)

        delta = item.current_stock - previous_stock
        if delta:
            side_effects.emit(
                "inventory_ledger",
                record_stock_adjustment,
                item.clinic_id,
                item.id,
                delta,
                item.unit_cost,
                reason,
                performed_by,
            )
        return item

    def record_transaction(
        self, store: Store, payload: InventoryTransactionCreateRequest, performed_by: UUID
    ) -> InventoryTransactionResult:
        item = self.get_item(store, payload.inventory_id)
        new_stock = item.current_stock + payload.quantity
        if new_stock < 0:
            raise ConflictError(
                "Insufficient stock",
                current_stock=item.current_stock,
                requested_quantity=payload.quantity,
            )

        unit_cost = payload.unit_cost if payload.unit_cost is not None else item.unit_cost
        transaction = InventoryTransactionORM(
            **payload.model_dump(exclude={"unit_cost"}),
            unit_cost=unit_cost,
            total_cost=abs(payload.quantity) * unit_cost if unit_cost is not None else None,
            performed_by=performed_by,
        )
        item.current_stock = new_stock
        store.add(item, commit=False)
        store.add(transaction)
        logger.info(
            "Recorded %s of %d on inventory item %s (stock now %d)",
            transaction.transaction_type,
            payload.quantity,
            item.id,
            new_stock,
        )
        return InventoryTransactionResult(
            transaction=InventoryTransaction.model_validate(transaction),
            item=InventoryItem.model_validate(item),
        )

    def list_transactions(self, store: Store, inventory_id: Optional[UUID] = None) -> List[InventoryTransactionORM]:
        stmt = store.select(InventoryTransactionORM)
        if inventory_id is not None:
            stmt = stmt.where(InventoryTransactionORM.inventory_id == inventory_id)
        return store.scalars(stmt.order_by(InventoryTransactionORM.transaction_date.desc()))


inventory_service = InventoryService()
