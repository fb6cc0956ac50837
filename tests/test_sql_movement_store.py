"""StockLedger and InventoryOrchestrator over the SQL store (SQLite savepoints)."""
import uuid

import pytest
from sqlalchemy import func, select

from app.models.inventory import StockMovement, WarehouseInventory
from app.repositories.inventory import SqlMovementStore
from app.services.inventory_orchestrator import InventoryOrchestrator, TransferItem
from app.services.stock_ledger import StockLedger

W1 = uuid.uuid4()
W2 = uuid.uuid4()
P1, V1 = uuid.uuid4(), uuid.uuid4()
P2, V2 = uuid.uuid4(), uuid.uuid4()


class FailingMovementStore(SqlMovementStore):
    """Raises on the n-th movement written through it."""

    def __init__(self, db, fail_at: int):
        super().__init__(db)
        self.fail_at = fail_at
        self.added = 0

    async def add_movement(self, movement: StockMovement) -> None:
        self.added += 1
        if self.added == self.fail_at:
            raise RuntimeError("storage failure")
        await super().add_movement(movement)


async def levels(ledger, tenant_id, keys):
    counts = [await ledger.current_stock(tenant_id, p, v, w) for w, p, v in keys]
    totals = [await ledger.movement_total(tenant_id, p, v, w) for w, p, v in keys]
    return counts, totals


async def test_failed_transfer_rolls_back_to_savepoint(db_session, tenant_id):
    # Two seed movements, then the third of the four transfer movements fails
    ledger = StockLedger(FailingMovementStore(db_session, fail_at=5))
    await ledger.record_movement(tenant_id, P1, V1, W1, "PURCHASE", 10)
    await ledger.record_movement(tenant_id, P2, V2, W1, "PURCHASE", 10)

    with pytest.raises(RuntimeError):
        await InventoryOrchestrator(ledger).transfer_stock(
            tenant_id, W1, W2, [TransferItem(P1, V1, 4), TransferItem(P2, V2, 4)]
        )

    keys = [(W1, P1, V1), (W2, P1, V1), (W1, P2, V2)]
    assert await levels(ledger, tenant_id, keys) == ([10, 0, 10], [10, 0, 10])
    movement_count = await db_session.scalar(select(func.count()).select_from(StockMovement))
    assert movement_count == 2


async def test_successful_transfer_commits_both_sides(db_session, tenant_id):
    ledger = StockLedger(SqlMovementStore(db_session))
    await ledger.record_movement(tenant_id, P1, V1, W1, "PURCHASE", 10)

    await InventoryOrchestrator(ledger).transfer_stock(tenant_id, W1, W2, [TransferItem(P1, V1, 4)])

    assert await levels(ledger, tenant_id, [(W1, P1, V1), (W2, P1, V1)]) == ([6, 4], [6, 4])


async def test_adjusting_a_new_key_creates_its_row_first(db_session, tenant_id):
    orchestrator = InventoryOrchestrator(StockLedger(SqlMovementStore(db_session)))

    result = await orchestrator.adjust_stock(tenant_id, W1, P1, V1, 0, "opening count")

    assert result.movement_id is None
    rows = (await db_session.execute(
        select(WarehouseInventory).where(WarehouseInventory.tenant_id == tenant_id)
    )).scalars().all()
    assert [(row.warehouse_id, row.stock_count) for row in rows] == [(W1, 0)]


async def test_repeated_count_of_a_new_key_writes_once(db_session, tenant_id):
    orchestrator = InventoryOrchestrator(StockLedger(SqlMovementStore(db_session)))

    first = await orchestrator.adjust_stock(tenant_id, W1, P1, V1, 25, "opening count")
    second = await orchestrator.adjust_stock(tenant_id, W1, P1, V1, 25, "opening count")

    assert (first.difference, first.new_stock_count) == (25, 25)
    assert (second.difference, second.movement_id) == (0, None)
    rows = (await db_session.execute(
        select(WarehouseInventory).where(WarehouseInventory.tenant_id == tenant_id)
    )).scalars().all()
    assert [row.stock_count for row in rows] == [25]
