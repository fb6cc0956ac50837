"""QuantityReconciler tests against an in-memory receipt source."""
import uuid

import pytest

from app.core.exceptions import ValidationError
from app.repositories.procurement import ReceiptLine
from app.services.quantity_reconciler import QuantityReconciler
from tests.fakes import FakeReceiptSource

PO_ID = uuid.uuid4()
ITEM = uuid.uuid4()
OTHER_ITEM = uuid.uuid4()


def receipt(status, received, accepted=0, grn_id=None, item=ITEM):
    return ReceiptLine(
        goods_receipt_id=grn_id or uuid.uuid4(),
        purchase_order_item_id=item,
        status=status,
        quantity_received=received,
        quantity_accepted=accepted,
    )


async def test_availability_counts_completed_accepted_and_in_flight_received():
    source = FakeReceiptSource(
        {ITEM: 100},
        [
            receipt("completed", received=70, accepted=60),
            receipt("pending", received=10),
            receipt("inspected", received=5),
            receipt("rejected", received=50),
            receipt("approved", received=20, accepted=20),
        ],
    )
    item = (await QuantityReconciler(source).availability(PO_ID))[ITEM]

    assert item.accepted == 60
    assert item.in_flight == 15
    assert item.available == 25


async def test_over_receipt_reports_remaining_quantity():
    source = FakeReceiptSource({ITEM: 100}, [receipt("completed", received=60, accepted=60)])

    with pytest.raises(ValidationError) as exc_info:
        await QuantityReconciler(source).validate_receipt(PO_ID, [(ITEM, 50)])

    assert exc_info.value.message == (
        "Cannot receive 50 units. Only 40 units available (ordered: 100, already in GRNs: 60)"
    )
    assert exc_info.value.details["available"] == 40


async def test_receipt_up_to_the_remaining_quantity_passes():
    source = FakeReceiptSource({ITEM: 100}, [receipt("completed", received=60, accepted=60)])
    await QuantityReconciler(source).validate_receipt(PO_ID, [(ITEM, 40)])


async def test_lines_for_the_same_item_are_checked_together():
    source = FakeReceiptSource({ITEM: 10})

    with pytest.raises(ValidationError) as exc_info:
        await QuantityReconciler(source).validate_receipt(PO_ID, [(ITEM, 6), (ITEM, 6)])
    assert "Only 4 units available" in exc_info.value.message


async def test_edited_grn_does_not_count_against_itself():
    grn_id = uuid.uuid4()
    source = FakeReceiptSource({ITEM: 10}, [receipt("pending", received=10, grn_id=grn_id)])
    reconciler = QuantityReconciler(source)

    with pytest.raises(ValidationError):
        await reconciler.validate_receipt(PO_ID, [(ITEM, 8)])
    await reconciler.validate_receipt(PO_ID, [(ITEM, 8)], exclude_goods_receipt_id=grn_id)


async def test_item_not_on_purchase_order_is_rejected():
    source = FakeReceiptSource({ITEM: 10})
    with pytest.raises(ValidationError) as exc_info:
        await QuantityReconciler(source).validate_receipt(PO_ID, [(OTHER_ITEM, 1)])
    assert "does not belong to purchase order" in exc_info.value.message


@pytest.mark.parametrize("quantity", [0, -3])
async def test_non_positive_quantity_is_rejected(quantity):
    source = FakeReceiptSource({ITEM: 10})
    with pytest.raises(ValidationError) as exc_info:
        await QuantityReconciler(source).validate_receipt(PO_ID, [(ITEM, quantity)])
    assert "must be greater than 0" in exc_info.value.message


async def test_received_totals_only_include_completed_receipts():
    source = FakeReceiptSource(
        {ITEM: 10, OTHER_ITEM: 5},
        [
            receipt("completed", received=4, accepted=3),
            receipt("pending", received=2),
            receipt("completed", received=5, accepted=5, item=OTHER_ITEM),
        ],
    )
    totals = await QuantityReconciler(source).received_totals(PO_ID)
    assert totals == {ITEM: 3, OTHER_ITEM: 5}
