"""In-memory stand-ins for the repository interfaces the reconcilers and ledger depend on."""
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from app.models.inventory import StockMovement, WarehouseInventory
from app.repositories.inventory import MovementFilter, StockKey, day_start
from app.repositories.procurement import PaymentLine, ReceiptLine


class FakeReceiptSource:
    def __init__(self, ordered: Dict[uuid.UUID, int], lines: Optional[List[ReceiptLine]] = None):
        self.ordered = ordered
        self.lines = lines or []

    async def ordered_quantities(self, purchase_order_id):
        return dict(self.ordered)

    async def receipt_lines(self, purchase_order_id, exclude_goods_receipt_id=None):
        return [line for line in self.lines if line.goods_receipt_id != exclude_goods_receipt_id]


class FakePaymentSource:
    def __init__(self, lines: Optional[List[PaymentLine]] = None):
        self.lines = lines or []

    async def payment_lines(self, purchase_invoice_id):
        return list(self.lines)


class InMemoryMovementStore:
    """MovementStore keeping counts and movements in dicts; atomic() restores a snapshot on error."""

    def __init__(self):
        self.counts: Dict[tuple, int] = {}
        self.movements: List[StockMovement] = []
        self.fail_on_add: Optional[int] = None

    @staticmethod
    def _k(tenant_id, key: StockKey) -> tuple:
        return (tenant_id, key)

    async def add_movement(self, movement: StockMovement) -> None:
        if self.fail_on_add is not None and len(self.movements) == self.fail_on_add:
            raise RuntimeError("storage failure")
        self.movements.append(movement)

    async def apply_delta(self, tenant_id, key: StockKey, delta: int, at: datetime) -> int:
        k = self._k(tenant_id, key)
        self.counts[k] = self.counts.get(k, 0) + delta
        return self.counts[k]

    async def lock_counts(self, tenant_id, keys: Iterable[StockKey], create_missing: bool = False) -> Dict[StockKey, int]:
        if create_missing:
            for key in keys:
                self.counts.setdefault(self._k(tenant_id, key), 0)
        return {key: self.counts.get(self._k(tenant_id, key), 0) for key in sorted(set(keys))}

    async def stock_count(self, tenant_id, key: StockKey) -> int:
        return self.counts.get(self._k(tenant_id, key), 0)

    async def movement_total(self, tenant_id, key: StockKey) -> int:
        return sum(
            m.quantity
            for m in self.movements
            if m.tenant_id == tenant_id
            and (m.warehouse_id, m.product_id, m.variant_id) == (key.warehouse_id, key.product_id, key.variant_id)
        )

    async def list_movements(self, tenant_id, filters: MovementFilter, skip: int = 0, limit: int = 100):
        selected = [
            m for m in self.movements
            if m.tenant_id == tenant_id
            and (filters.warehouse_id is None or m.warehouse_id == filters.warehouse_id)
            and (filters.product_id is None or m.product_id == filters.product_id)
            and (filters.movement_type is None or m.movement_type == filters.movement_type)
            and (filters.reference_id is None or m.reference_id == filters.reference_id)
            and (filters.start_date is None or m.created_at >= day_start(filters.start_date))
            and (filters.end_date is None or m.created_at < day_start(filters.end_date + timedelta(days=1)))
        ]
        return list(reversed(selected))[skip:skip + limit]

    async def list_stock(self, tenant_id, warehouse_id=None, product_id=None, skip: int = 0, limit=None):
        rows = [
            WarehouseInventory(
                tenant_id=tenant_id,
                warehouse_id=key.warehouse_id,
                product_id=key.product_id,
                variant_id=key.variant_id,
                stock_count=count,
            )
            for (row_tenant, key), count in self.counts.items()
            if row_tenant == tenant_id
            and (warehouse_id is None or key.warehouse_id == warehouse_id)
            and (product_id is None or key.product_id == product_id)
        ]
        return rows[skip:] if limit is None else rows[skip:skip + limit]

    @asynccontextmanager
    async def atomic(self):
        counts = dict(self.counts)
        movements = list(self.movements)
        try:
            yield
        except Exception:
            self.counts = counts
            self.movements = movements
            raise
