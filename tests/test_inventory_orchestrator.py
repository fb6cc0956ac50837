"""InventoryOrchestrator tests: adjustments, transfers and pass-through movements."""
import uuid

import pytest

from app.core.exceptions import ValidationError
from app.services.inventory_orchestrator import InventoryOrchestrator, TransferItem
from app.services.stock_ledger import StockLedger
from tests.fakes import InMemoryMovementStore

TENANT = uuid.uuid4()
W1 = uuid.uuid4()
W2 = uuid.uuid4()
P1, V1 = uuid.uuid4(), uuid.uuid4()
P2, V2 = uuid.uuid4(), uuid.uuid4()


@pytest.fixture
def store():
    return InMemoryMovementStore()


@pytest.fixture
def ledger(store):
    return StockLedger(store)


@pytest.fixture
def orchestrator(ledger):
    return InventoryOrchestrator(ledger)


async def seed(ledger, warehouse, product, variant, quantity):
    await ledger.record_movement(TENANT, product, variant, warehouse, "PURCHASE", quantity)


# ======================
# Adjustments
# ======================

async def test_adjust_writes_difference_then_is_idempotent(orchestrator, ledger, store):
    await seed(ledger, W1, P1, V1, 18)

    first = await orchestrator.adjust_stock(TENANT, W1, P1, V1, 25, "cycle count", "counter@test")
    assert first.difference == 7
    assert first.previous_stock == 18
    assert first.new_stock_count == 25
    assert first.movement_id is not None
    assert first.message == "Stock adjusted by +7"

    second = await orchestrator.adjust_stock(TENANT, W1, P1, V1, 25, "cycle count", "counter@test")
    assert second.movement_id is None
    assert second.difference == 0
    assert second.message == "Stock already matches physical count"

    adjustments = [m for m in store.movements if m.movement_type == "ADJUSTMENT"]
    assert len(adjustments) == 1
    assert adjustments[0].quantity == 7
    assert adjustments[0].notes == "cycle count"


async def test_adjust_down_to_zero(orchestrator, ledger):
    await seed(ledger, W1, P1, V1, 4)
    result = await orchestrator.adjust_stock(TENANT, W1, P1, V1, 0, "damaged in storage")
    assert result.difference == -4
    assert await ledger.current_stock(TENANT, P1, V1, W1) == 0


async def test_adjust_rejects_negative_count(orchestrator):
    with pytest.raises(ValidationError, match="cannot be negative"):
        await orchestrator.adjust_stock(TENANT, W1, P1, V1, -1, "count")


@pytest.mark.parametrize("reason", ["", "   ", None])
async def test_adjust_requires_reason(orchestrator, reason):
    with pytest.raises(ValidationError, match="Reason is required"):
        await orchestrator.adjust_stock(TENANT, W1, P1, V1, 3, reason)


# ======================
# Transfers
# ======================

async def test_transfer_moves_stock_symmetrically(orchestrator, ledger, store):
    await seed(ledger, W1, P1, V1, 10)
    await seed(ledger, W1, P2, V2, 6)

    result = await orchestrator.transfer_stock(
        TENANT, W1, W2, [TransferItem(P1, V1, 10), TransferItem(P2, V2, 2)], actor="mover@test"
    )

    assert result.message == "Successfully transferred 2 item(s) between warehouses"
    assert await ledger.current_stock(TENANT, P1, V1, W1) == 0
    assert await ledger.current_stock(TENANT, P1, V1, W2) == 10
    assert await ledger.current_stock(TENANT, P2, V2, W1) == 4
    assert await ledger.current_stock(TENANT, P2, V2, W2) == 2

    transfer_movements = [m for m in store.movements if m.reference_id == result.transfer_id]
    outs = [m for m in transfer_movements if m.movement_type == "TRANSFER_OUT"]
    ins = [m for m in transfer_movements if m.movement_type == "TRANSFER_IN"]
    assert len(transfer_movements) == 4
    assert {m.warehouse_id for m in outs} == {W1}
    assert {m.warehouse_id for m in ins} == {W2}
    assert sorted(-m.quantity for m in outs) == sorted(m.quantity for m in ins) == [2, 10]


async def test_transfer_with_insufficient_stock_writes_nothing(orchestrator, ledger, store):
    await seed(ledger, W1, P1, V1, 10)
    await seed(ledger, W1, P2, V2, 1)
    before = len(store.movements)

    with pytest.raises(ValidationError) as exc_info:
        await orchestrator.transfer_stock(TENANT, W1, W2, [TransferItem(P1, V1, 5), TransferItem(P2, V2, 3)])

    assert "available 1, requested 3" in exc_info.value.message
    assert len(store.movements) == before
    assert await ledger.current_stock(TENANT, P1, V1, W1) == 10


async def test_repeated_item_is_checked_cumulatively(orchestrator, ledger):
    await seed(ledger, W1, P1, V1, 5)
    with pytest.raises(ValidationError, match="available 5, requested 6"):
        await orchestrator.transfer_stock(TENANT, W1, W2, [TransferItem(P1, V1, 3), TransferItem(P1, V1, 3)])


async def test_failure_mid_transfer_rolls_back_every_movement(orchestrator, ledger, store):
    await seed(ledger, W1, P1, V1, 10)
    await seed(ledger, W1, P2, V2, 10)
    store.fail_on_add = len(store.movements) + 3

    with pytest.raises(RuntimeError):
        await orchestrator.transfer_stock(TENANT, W1, W2, [TransferItem(P1, V1, 4), TransferItem(P2, V2, 4)])

    assert len(store.movements) == 2
    assert await ledger.current_stock(TENANT, P1, V1, W1) == 10
    assert await ledger.current_stock(TENANT, P1, V1, W2) == 0
    assert await ledger.is_consistent(TENANT, P2, V2, W1)


async def test_transfer_to_same_warehouse_is_rejected(orchestrator):
    with pytest.raises(ValidationError, match="cannot be the same"):
        await orchestrator.transfer_stock(TENANT, W1, W1, [TransferItem(P1, V1, 1)])


async def test_transfer_requires_items(orchestrator):
    with pytest.raises(ValidationError, match="Items array is required"):
        await orchestrator.transfer_stock(TENANT, W1, W2, [])


@pytest.mark.parametrize(
    "item,message",
    [
        (TransferItem(None, V1, 1), "Item 1: product_id and variant_id are required"),
        (TransferItem(P1, None, 1), "Item 1: product_id and variant_id are required"),
        (TransferItem(P1, V1, 0), "Item 1: quantity must be greater than 0"),
    ],
)
async def test_transfer_rejects_bad_items(orchestrator, item, message):
    with pytest.raises(ValidationError) as exc_info:
        await orchestrator.transfer_stock(TENANT, W1, W2, [item])
    assert exc_info.value.message == message


# ======================
# Pass-through movements
# ======================

async def test_record_stock_movement_requires_variant(orchestrator):
    with pytest.raises(ValidationError, match="default variant"):
        await orchestrator.record_stock_movement(TENANT, P1, None, W1, "ORDER", -1)


async def test_record_stock_movement_passes_reference(orchestrator, ledger):
    order_id = uuid.uuid4()
    movement = await orchestrator.record_stock_movement(
        TENANT, P1, V1, W1, "order", -2, reference_type="order", reference_id=order_id, actor="shop@test"
    )
    assert movement.movement_type == "ORDER"
    assert movement.reference_id == order_id
    assert movement.created_by == "shop@test"
    assert await ledger.current_stock(TENANT, P1, V1, W1) == -2
