"""StockLedger tests: movements and the stock_count projection move together."""
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.core.exceptions import ValidationError
from app.models.inventory import MovementType
from app.repositories.inventory import MovementFilter, StockKey
from app.services.stock_ledger import StockLedger, normalize_movement_type
from tests.fakes import InMemoryMovementStore

TENANT = uuid.uuid4()
WAREHOUSE = uuid.uuid4()
PRODUCT = uuid.uuid4()
VARIANT = uuid.uuid4()


@pytest.fixture
def store():
    return InMemoryMovementStore()


@pytest.fixture
def ledger(store):
    return StockLedger(store)


async def record(ledger, movement_type, quantity, warehouse=WAREHOUSE):
    return await ledger.record_movement(
        tenant_id=TENANT,
        product_id=PRODUCT,
        variant_id=VARIANT,
        warehouse_id=warehouse,
        movement_type=movement_type,
        quantity=quantity,
    )


async def test_stock_equals_sum_of_movements(ledger):
    await record(ledger, "PURCHASE", 30)
    await record(ledger, "SALE", -8)
    await record(ledger, MovementType.RETURN, 2)
    movement = await record(ledger, "damage", -4)

    assert movement.balance_after == 20
    assert movement.movement_type == "DAMAGE"
    assert await ledger.current_stock(TENANT, PRODUCT, VARIANT, WAREHOUSE) == 20
    assert await ledger.movement_total(TENANT, PRODUCT, VARIANT, WAREHOUSE) == 20
    assert await ledger.is_consistent(TENANT, PRODUCT, VARIANT, WAREHOUSE)


async def test_unknown_location_reads_zero(ledger):
    assert await ledger.current_stock(TENANT, PRODUCT, VARIANT, uuid.uuid4()) == 0


async def test_locations_are_independent(ledger):
    other = uuid.uuid4()
    await record(ledger, "PURCHASE", 5)
    await record(ledger, "PURCHASE", 9, warehouse=other)

    assert await ledger.current_stock(TENANT, PRODUCT, VARIANT, WAREHOUSE) == 5
    assert await ledger.current_stock(TENANT, PRODUCT, VARIANT, other) == 9


async def test_zero_quantity_is_rejected(ledger, store):
    with pytest.raises(ValidationError, match="cannot be zero"):
        await record(ledger, "ADJUSTMENT", 0)
    assert store.movements == []


async def test_unknown_movement_type_is_rejected(ledger):
    with pytest.raises(ValidationError, match="Invalid movement type 'TELEPORT'"):
        await record(ledger, "TELEPORT", 1)


async def test_missing_variant_is_rejected(ledger):
    with pytest.raises(ValidationError, match="variant_id is required"):
        await ledger.record_movement(
            tenant_id=TENANT,
            product_id=PRODUCT,
            variant_id=None,
            warehouse_id=WAREHOUSE,
            movement_type="ORDER",
            quantity=-1,
        )


async def test_drift_is_detected(ledger, store):
    await record(ledger, "PURCHASE", 10)
    # Out-of-band write to the projection
    store.counts[(TENANT, StockKey(WAREHOUSE, PRODUCT, VARIANT))] = 11

    assert not await ledger.is_consistent(TENANT, PRODUCT, VARIANT, WAREHOUSE)


def test_normalize_movement_type_accepts_enum_and_lowercase():
    assert normalize_movement_type(MovementType.TRANSFER_IN) == "TRANSFER_IN"
    assert normalize_movement_type(" order ") == "ORDER"


async def test_product_stock_sums_every_warehouse(ledger):
    other_warehouse = uuid.uuid4()
    await record(ledger, "PURCHASE", 30)
    await record(ledger, "PURCHASE", 12, warehouse=other_warehouse)
    await record(ledger, "SALE", -2, warehouse=other_warehouse)

    stock = await ledger.product_stock(TENANT, PRODUCT)

    assert stock.total_stock == 40
    assert sorted(row.stock_count for row in stock.warehouses) == [10, 30]
    assert (await ledger.product_stock(uuid.uuid4(), PRODUCT)).total_stock == 0


async def test_list_stock_filters_by_warehouse(ledger):
    other_warehouse = uuid.uuid4()
    await record(ledger, "PURCHASE", 5)
    await record(ledger, "PURCHASE", 7, warehouse=other_warehouse)

    rows = await ledger.list_stock(TENANT, warehouse_id=other_warehouse)

    assert [(row.warehouse_id, row.stock_count) for row in rows] == [(other_warehouse, 7)]


async def test_movements_filtered_by_day(ledger):
    await record(ledger, "PURCHASE", 5)
    today = datetime.now(timezone.utc).date()
    yesterday = today - timedelta(days=1)

    assert len(await ledger.list_movements(TENANT, MovementFilter(start_date=today, end_date=today))) == 1
    assert await ledger.list_movements(TENANT, MovementFilter(end_date=yesterday)) == []
    assert await ledger.list_movements(TENANT, MovementFilter(start_date=today + timedelta(days=1))) == []


async def test_movement_date_range_must_be_ordered(ledger):
    today = datetime.now(timezone.utc).date()
    with pytest.raises(ValidationError, match="start_date cannot be after end_date"):
        await ledger.list_movements(TENANT, MovementFilter(start_date=today, end_date=today - timedelta(days=1)))
