"""
Receivable quantity per purchase order item.

For each PO item:

    available = ordered
                - accepted over completed GRNs
                - received over pending / inspected GRNs

Rejected GRNs contribute nothing. Callers hold the PO row lock while
checking and writing so two receipts cannot both pass against the same
stale figure.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from app.core.exceptions import ValidationError
from app.models.purchase import GRNStatus
from app.repositories.procurement import ReceiptSource

logger = logging.getLogger(__name__)

# GRNs whose planned quantity is still reserved against the PO
IN_FLIGHT_GRN_STATUSES = (GRNStatus.PENDING.value, GRNStatus.INSPECTED.value)


@dataclass
class ItemAvailability:
    purchase_order_item_id: uuid.UUID
    ordered: int
    accepted: int = 0
    in_flight: int = 0

    @property
    def committed(self) -> int:
        return self.accepted + self.in_flight

    @property
    def available(self) -> int:
        return max(0, self.ordered - self.committed)


class QuantityReconciler:
    """Bounds GRN quantities by what each PO item still has open."""

    def __init__(self, source: ReceiptSource):
        self.source = source

    async def availability(
        self,
        purchase_order_id: uuid.UUID,
        exclude_goods_receipt_id: Optional[uuid.UUID] = None,
    ) -> Dict[uuid.UUID, ItemAvailability]:
        """Per-item availability, optionally ignoring one GRN (the one being edited)."""
        ordered = await self.source.ordered_quantities(purchase_order_id)
        items = {
            item_id: ItemAvailability(purchase_order_item_id=item_id, ordered=quantity)
            for item_id, quantity in ordered.items()
        }

        lines = await self.source.receipt_lines(purchase_order_id, exclude_goods_receipt_id)
        for line in lines:
            item = items.get(line.purchase_order_item_id)
            if item is None:
                continue
            if line.status == GRNStatus.COMPLETED.value:
                item.accepted += line.quantity_accepted
            elif line.status in IN_FLIGHT_GRN_STATUSES:
                item.in_flight += line.quantity_received

        return items

    async def validate_receipt(
        self,
        purchase_order_id: uuid.UUID,
        requested: Iterable[Tuple[uuid.UUID, int]],
        exclude_goods_receipt_id: Optional[uuid.UUID] = None,
    ) -> Dict[uuid.UUID, ItemAvailability]:
        """
        Check requested (po_item_id, quantity) lines against availability.

        Lines naming the same item are checked cumulatively.

        Raises:
            ValidationError: Item not on the PO, non-positive quantity, or
                quantity over the remaining availability
        """
        items = await self.availability(purchase_order_id, exclude_goods_receipt_id)
        requested_so_far: Dict[uuid.UUID, int] = {}

        for item_id, quantity in requested:
            item = items.get(item_id)
            if item is None:
                raise ValidationError(
                    f"Purchase order item {item_id} does not belong to purchase order {purchase_order_id}"
                )
            if quantity is None or quantity <= 0:
                raise ValidationError(f"Quantity received must be greater than 0 (item {item_id})")

            already = requested_so_far.get(item_id, 0)
            remaining = max(0, item.available - already)
            if quantity > remaining:
                logger.warning(
                    f"Over-receipt blocked on PO {purchase_order_id} item {item_id}: "
                    f"requested {quantity}, available {remaining}"
                )
                raise ValidationError(
                    f"Cannot receive {quantity} units. Only {remaining} units available "
                    f"(ordered: {item.ordered}, already in GRNs: {item.committed + already})",
                    details={
                        "purchase_order_item_id": str(item_id),
                        "ordered": item.ordered,
                        "committed": item.committed + already,
                        "available": remaining,
                        "requested": quantity,
                    },
                )
            requested_so_far[item_id] = already + quantity

        return items

    async def received_totals(self, purchase_order_id: uuid.UUID) -> Dict[uuid.UUID, int]:
        """Accepted quantity per PO item over completed GRNs (the PO's received_quantity)."""
        items = await self.availability(purchase_order_id)
        return {item_id: item.accepted for item_id, item in items.items()}
