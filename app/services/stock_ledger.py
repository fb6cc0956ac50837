"""
Stock Ledger

Append-only record of signed quantity movements per
(warehouse, product, variant). The ledger is the only writer of the
warehouse_inventory projection: every movement adds its signed quantity
to the projection in the same transaction, so

    stock_count(w, p, v) == sum(movement.quantity for w, p, v)

holds after every commit. Movements are never edited or deleted;
corrections are new offsetting movements.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import AsyncContextManager, Dict, Iterable, List, Optional

from app.core.exceptions import ValidationError
from app.models.inventory import MovementType, StockMovement, WarehouseInventory
from app.repositories.inventory import MovementFilter, MovementStore, StockKey

logger = logging.getLogger(__name__)

VALID_MOVEMENT_TYPES = {m.value for m in MovementType}


@dataclass
class ProductStock:
    product_id: uuid.UUID
    warehouses: List[WarehouseInventory]
    total_stock: int


def normalize_movement_type(movement_type) -> str:
    value = str(getattr(movement_type, "value", movement_type) or "").strip().upper()
    if value not in VALID_MOVEMENT_TYPES:
        raise ValidationError(
            f"Invalid movement type '{movement_type}'. "
            f"Valid types: {', '.join(sorted(VALID_MOVEMENT_TYPES))}"
        )
    return value


class StockLedger:
    """Records movements and answers stock queries through a MovementStore."""

    def __init__(self, store: MovementStore):
        self.store = store

    async def record_movement(
        self,
        tenant_id: uuid.UUID,
        product_id: uuid.UUID,
        variant_id: uuid.UUID,
        warehouse_id: uuid.UUID,
        movement_type,
        quantity: int,
        reference_type: Optional[str] = None,
        reference_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> StockMovement:
        """
        Append one movement and move the projection by the same amount.

        Args:
            quantity: Signed quantity, positive for stock in, negative for out

        Returns:
            The stored movement, with balance_after set

        Raises:
            ValidationError: Missing identifiers, unknown type, or zero quantity
        """
        if not product_id:
            raise ValidationError("product_id is required")
        if not variant_id:
            raise ValidationError("variant_id is required")
        if not warehouse_id:
            raise ValidationError("warehouse_id is required")
        if quantity is None or int(quantity) == 0:
            raise ValidationError("Movement quantity cannot be zero")

        movement_type = normalize_movement_type(movement_type)
        quantity = int(quantity)
        now = datetime.now(timezone.utc)
        key = StockKey(warehouse_id=warehouse_id, product_id=product_id, variant_id=variant_id)

        balance_after = await self.store.apply_delta(tenant_id, key, quantity, now)

        movement = StockMovement(
            id=uuid.uuid4(),
            tenant_id=tenant_id,
            warehouse_id=warehouse_id,
            product_id=product_id,
            variant_id=variant_id,
            movement_type=movement_type,
            quantity=quantity,
            balance_after=balance_after,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
            created_by=created_by,
            created_at=now,
        )
        await self.store.add_movement(movement)

        logger.info(
            f"Stock movement {movement_type} {quantity:+d} at warehouse {warehouse_id} "
            f"(product {product_id}, variant {variant_id}) -> {balance_after}"
        )
        return movement

    async def current_stock(
        self,
        tenant_id: uuid.UUID,
        product_id: uuid.UUID,
        variant_id: uuid.UUID,
        warehouse_id: uuid.UUID,
    ) -> int:
        """Current stock for a key; 0 when nothing was ever recorded."""
        key = StockKey(warehouse_id=warehouse_id, product_id=product_id, variant_id=variant_id)
        return await self.store.stock_count(tenant_id, key)

    async def movement_total(
        self,
        tenant_id: uuid.UUID,
        product_id: uuid.UUID,
        variant_id: uuid.UUID,
        warehouse_id: uuid.UUID,
    ) -> int:
        """Sum of the full movement history for a key."""
        key = StockKey(warehouse_id=warehouse_id, product_id=product_id, variant_id=variant_id)
        return await self.store.movement_total(tenant_id, key)

    async def is_consistent(
        self,
        tenant_id: uuid.UUID,
        product_id: uuid.UUID,
        variant_id: uuid.UUID,
        warehouse_id: uuid.UUID,
    ) -> bool:
        """True when the projection equals the movement sum for the key."""
        current = await self.current_stock(tenant_id, product_id, variant_id, warehouse_id)
        total = await self.movement_total(tenant_id, product_id, variant_id, warehouse_id)
        if current != total:
            logger.error(
                f"Stock projection drift at warehouse {warehouse_id} "
                f"(product {product_id}, variant {variant_id}): stored {current}, movements {total}"
            )
        return current == total

    async def lock_stock(
        self, tenant_id: uuid.UUID, keys: Iterable[StockKey], create_missing: bool = False
    ) -> Dict[StockKey, int]:
        """Lock projection rows (sorted key order) and return their counts."""
        return await self.store.lock_counts(tenant_id, keys, create_missing=create_missing)

    async def list_movements(
        self,
        tenant_id: uuid.UUID,
        filters: Optional[MovementFilter] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[StockMovement]:
        filters = filters or MovementFilter()
        if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise ValidationError("start_date cannot be after end_date")
        return await self.store.list_movements(tenant_id, filters, skip, limit)

    async def list_stock(
        self,
        tenant_id: uuid.UUID,
        warehouse_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[WarehouseInventory]:
        """Stock rows of a tenant, optionally for one warehouse."""
        return await self.store.list_stock(tenant_id, warehouse_id=warehouse_id, skip=skip, limit=limit)

    async def product_stock(self, tenant_id: uuid.UUID, product_id: uuid.UUID) -> ProductStock:
        """Every warehouse row holding a product, with the summed stock."""
        rows = await self.store.list_stock(tenant_id, product_id=product_id)
        return ProductStock(
            product_id=product_id,
            warehouses=rows,
            total_stock=sum(row.stock_count or 0 for row in rows),
        )

    def atomic(self) -> AsyncContextManager:
        return self.store.atomic()
