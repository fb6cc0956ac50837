"""
Storage for the stock ledger.

MovementStore is the interface StockLedger is built on; SqlMovementStore
implements it on top of an AsyncSession. The inventory projection row is
always changed in the same transaction as the movement that explains it.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import AsyncContextManager, Dict, Iterable, List, Optional, Protocol

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError
from app.models.inventory import StockMovement, WarehouseInventory

logger = logging.getLogger(__name__)

# Attempts at creating a projection row that a concurrent transaction may insert first
UPSERT_ATTEMPTS = 3


@dataclass(frozen=True, order=True)
class StockKey:
    """A ledger location. Ordering gives a global lock order."""
    warehouse_id: uuid.UUID
    product_id: uuid.UUID
    variant_id: uuid.UUID


@dataclass(frozen=True)
class MovementFilter:
    warehouse_id: Optional[uuid.UUID] = None
    product_id: Optional[uuid.UUID] = None
    variant_id: Optional[uuid.UUID] = None
    movement_type: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[uuid.UUID] = None
    # Inclusive calendar days (UTC)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


def day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


class MovementStore(Protocol):
    """Persistence contract of the stock ledger."""

    async def add_movement(self, movement: StockMovement) -> None:
        ...

    async def apply_delta(self, tenant_id: uuid.UUID, key: StockKey, delta: int, at: datetime) -> int:
        """Add delta to the projection for key, creating it at 0 if absent; return the new count."""
        ...

    async def lock_counts(
        self, tenant_id: uuid.UUID, keys: Iterable[StockKey], create_missing: bool = False
    ) -> Dict[StockKey, int]:
        """
        Lock the projection rows for keys in sorted order.

        Missing rows read as 0, or are created at 0 and locked when create_missing is set.
        """
        ...

    async def stock_count(self, tenant_id: uuid.UUID, key: StockKey) -> int:
        ...

    async def movement_total(self, tenant_id: uuid.UUID, key: StockKey) -> int:
        ...

    async def list_movements(
        self, tenant_id: uuid.UUID, filters: MovementFilter, skip: int = 0, limit: int = 100
    ) -> List[StockMovement]:
        ...

    async def list_stock(
        self,
        tenant_id: uuid.UUID,
        warehouse_id: Optional[uuid.UUID] = None,
        product_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[WarehouseInventory]:
        """Projection rows, newest first."""
        ...

    def atomic(self) -> AsyncContextManager:
        """Scope in which all writes land together or not at all."""
        ...


class SqlMovementStore:
    """MovementStore over the stock_movements / warehouse_inventory tables."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _key_filter(self, tenant_id: uuid.UUID, key: StockKey, model=WarehouseInventory) -> list:
        return [
            model.tenant_id == tenant_id,
            model.warehouse_id == key.warehouse_id,
            model.product_id == key.product_id,
            model.variant_id == key.variant_id,
        ]

    async def add_movement(self, movement: StockMovement) -> None:
        self.db.add(movement)
        await self.db.flush()

    async def _get_row(self, tenant_id: uuid.UUID, key: StockKey, lock: bool) -> Optional[WarehouseInventory]:
        stmt = select(WarehouseInventory).where(*self._key_filter(tenant_id, key))
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _get_or_create_row(self, tenant_id: uuid.UUID, key: StockKey) -> WarehouseInventory:
        for attempt in range(1, UPSERT_ATTEMPTS + 1):
            row = await self._get_row(tenant_id, key, lock=True)
            if row is not None:
                return row

            row = WarehouseInventory(
                id=uuid.uuid4(),
                tenant_id=tenant_id,
                warehouse_id=key.warehouse_id,
                product_id=key.product_id,
                variant_id=key.variant_id,
                stock_count=0,
            )
            try:
                async with self.db.begin_nested():
                    self.db.add(row)
                    await self.db.flush()
            except IntegrityError:
                # Another transaction created the row first; lock theirs.
                logger.info(f"Inventory row for {key} created concurrently (attempt {attempt})")
                continue
            return row

        raise ConflictError(f"Could not initialize inventory row for {key}")

    async def apply_delta(self, tenant_id: uuid.UUID, key: StockKey, delta: int, at: datetime) -> int:
        row = await self._get_or_create_row(tenant_id, key)
        row.stock_count = (row.stock_count or 0) + delta
        row.last_movement_at = at
        await self.db.flush()
        return row.stock_count

    async def lock_counts(
        self, tenant_id: uuid.UUID, keys: Iterable[StockKey], create_missing: bool = False
    ) -> Dict[StockKey, int]:
        counts: Dict[StockKey, int] = {}
        for key in sorted(set(keys)):
            if create_missing:
                row = await self._get_or_create_row(tenant_id, key)
            else:
                row = await self._get_row(tenant_id, key, lock=True)
            counts[key] = row.stock_count if row else 0
        return counts

    async def stock_count(self, tenant_id: uuid.UUID, key: StockKey) -> int:
        row = await self._get_row(tenant_id, key, lock=False)
        return row.stock_count if row else 0

    async def movement_total(self, tenant_id: uuid.UUID, key: StockKey) -> int:
        total = await self.db.scalar(
            select(func.coalesce(func.sum(StockMovement.quantity), 0)).where(
                *self._key_filter(tenant_id, key, model=StockMovement)
            )
        )
        return int(total or 0)

    async def list_movements(
        self, tenant_id: uuid.UUID, filters: MovementFilter, skip: int = 0, limit: int = 100
    ) -> List[StockMovement]:
        conditions = [StockMovement.tenant_id == tenant_id]
        if filters.warehouse_id:
            conditions.append(StockMovement.warehouse_id == filters.warehouse_id)
        if filters.product_id:
            conditions.append(StockMovement.product_id == filters.product_id)
        if filters.variant_id:
            conditions.append(StockMovement.variant_id == filters.variant_id)
        if filters.movement_type:
            conditions.append(StockMovement.movement_type == filters.movement_type)
        if filters.reference_type:
            conditions.append(StockMovement.reference_type == filters.reference_type)
        if filters.reference_id:
            conditions.append(StockMovement.reference_id == filters.reference_id)
        if filters.start_date:
            conditions.append(StockMovement.created_at >= day_start(filters.start_date))
        if filters.end_date:
            conditions.append(StockMovement.created_at < day_start(filters.end_date + timedelta(days=1)))

        result = await self.db.execute(
            select(StockMovement)
            .where(*conditions)
            .order_by(StockMovement.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_stock(
        self,
        tenant_id: uuid.UUID,
        warehouse_id: Optional[uuid.UUID] = None,
        product_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[WarehouseInventory]:
        stmt = select(WarehouseInventory).where(WarehouseInventory.tenant_id == tenant_id)
        if warehouse_id:
            stmt = stmt.where(WarehouseInventory.warehouse_id == warehouse_id)
        if product_id:
            stmt = stmt.where(WarehouseInventory.product_id == product_id)
        stmt = stmt.order_by(WarehouseInventory.created_at.desc()).offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    def atomic(self) -> AsyncContextManager:
        return self.db.begin_nested()
