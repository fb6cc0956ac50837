"""Procurement Service: purchase orders and goods receipts.

Every status change passes the state machine first, then the quantity
bound, then the write. The PO row is locked for the whole of any GRN write
so receipts against the same PO are applied one at a time.
"""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundError, ValidationError
from app.core.tenant_context import RequestContext
from app.models.document_sequence import DocumentType
from app.models.inventory import MovementType, ReferenceType
from app.models.purchase import (
    PurchaseOrder,
    PurchaseOrderItem,
    GoodsReceipt,
    GoodsReceiptItem,
    POStatus,
    GRNStatus,
    RECEIVABLE_PO_STATUSES,
    EDITABLE_PO_STATUSES,
)
from app.repositories.inventory import SqlMovementStore
from app.repositories.procurement import ProcurementRepository
from app.schemas.purchase import (
    GRNItemCreate,
    GoodsReceiptCreate,
    GoodsReceiptUpdate,
    POItemCreate,
    PurchaseOrderCreate,
    PurchaseOrderItemsReplace,
    PurchaseOrderUpdate,
)
from app.services.document_sequence_service import DocumentSequenceService
from app.services.quantity_reconciler import ItemAvailability, QuantityReconciler
from app.services.status_transitions import EntityKind, status_validator
from app.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)

# GRN statuses in which lines may still be replaced
EDITABLE_GRN_STATUSES = (GRNStatus.PENDING.value, GRNStatus.INSPECTED.value)


class ProcurementService:
    """Service for purchase order and goods receipt operations."""

    def __init__(self, db: AsyncSession, context: RequestContext):
        self.db = db
        self.context = context
        self.repo = ProcurementRepository(db, context.tenant_id)
        self.quantities = QuantityReconciler(self.repo)
        self.sequences = DocumentSequenceService(db, context.tenant_id)
        self.ledger = StockLedger(SqlMovementStore(db))
        self.validator = status_validator

    # ==================== Purchase Orders ====================

    async def get_purchase_order(self, purchase_order_id: uuid.UUID, lock: bool = False) -> PurchaseOrder:
        po = await self.repo.get_purchase_order(purchase_order_id, lock=lock)
        if not po:
            raise NotFoundError.for_entity("Purchase order", purchase_order_id)
        return po

    async def get_purchase_order_detail(
        self, purchase_order_id: uuid.UUID
    ) -> Tuple[PurchaseOrder, Dict[uuid.UUID, ItemAvailability]]:
        """PO plus per-item received / in-flight / available quantities."""
        po = await self.get_purchase_order(purchase_order_id)
        return po, await self.quantities.availability(po.id)

    async def list_purchase_orders(
        self,
        status: Optional[str] = None,
        supplier_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[PurchaseOrder], int]:
        return await self.repo.list_purchase_orders(status, supplier_id, skip, limit)

    def _build_po_items(self, lines: Sequence[POItemCreate]) -> List[PurchaseOrderItem]:
        return [
            PurchaseOrderItem(
                id=uuid.uuid4(),
                line_number=index,
                product_id=line.product_id,
                variant_id=line.variant_id,
                ordered_quantity=line.ordered_quantity,
                unit_price=line.unit_price,
            )
            for index, line in enumerate(lines, start=1)
        ]

    async def create_purchase_order(self, data: PurchaseOrderCreate) -> PurchaseOrder:
        """Create a draft PO with its lines."""
        po_number = await self.sequences.get_next_number(DocumentType.PURCHASE_ORDER)

        po = PurchaseOrder(
            id=uuid.uuid4(),
            tenant_id=self.context.tenant_id,
            po_number=po_number,
            status=POStatus.DRAFT.value,
            supplier_id=data.supplier_id,
            warehouse_id=data.warehouse_id,
            expected_delivery_date=data.expected_delivery_date,
            notes=data.notes,
            created_by=self.context.user_id,
        )
        po.items = self._build_po_items(data.items)
        await self.repo.add(po)

        logger.info(f"Created purchase order {po_number} with {len(po.items)} item(s)")
        return po

    async def update_purchase_order(self, purchase_order_id: uuid.UUID, data: PurchaseOrderUpdate) -> PurchaseOrder:
        po = await self.get_purchase_order(purchase_order_id, lock=True)

        if data.status is not None:
            self.validator.validate(EntityKind.PURCHASE_ORDER, po.status, data.status)
            logger.info(f"PO {po.po_number}: {po.status} -> {data.status}")
            po.status = data.status

        if data.expected_delivery_date is not None:
            po.expected_delivery_date = data.expected_delivery_date
        if data.notes is not None:
            po.notes = data.notes

        await self.repo.flush()
        return po

    async def replace_purchase_order_items(
        self, purchase_order_id: uuid.UUID, data: PurchaseOrderItemsReplace
    ) -> PurchaseOrder:
        """Replace all lines; only allowed before the PO is approved."""
        po = await self.get_purchase_order(purchase_order_id, lock=True)
        if po.status not in EDITABLE_PO_STATUSES:
            raise ValidationError(
                f"Cannot modify items of a PO in '{po.status}' status. "
                f"Items can only be changed while the PO is: {', '.join(EDITABLE_PO_STATUSES)}"
            )

        po.items = self._build_po_items(data.items)
        await self.repo.flush()
        return po

    # ==================== Goods Receipts ====================

    async def get_goods_receipt(self, goods_receipt_id: uuid.UUID, lock: bool = False) -> GoodsReceipt:
        grn = await self.repo.get_goods_receipt(goods_receipt_id, lock=lock)
        if not grn:
            raise NotFoundError.for_entity("Goods receipt", goods_receipt_id)
        return grn

    async def list_goods_receipts(
        self,
        purchase_order_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[GoodsReceipt], int]:
        return await self.repo.list_goods_receipts(purchase_order_id, status, skip, limit)

    def _build_grn_items(self, po: PurchaseOrder, lines: Sequence[GRNItemCreate]) -> List[GoodsReceiptItem]:
        po_items = {item.id: item for item in po.items}
        items = []
        for line in lines:
            po_item = po_items[line.purchase_order_item_id]
            accepted = line.quantity_accepted if line.quantity_accepted is not None else line.quantity_received
            if accepted > line.quantity_received:
                raise ValidationError(
                    f"Accepted quantity ({accepted}) cannot exceed received quantity "
                    f"({line.quantity_received}) for item {line.purchase_order_item_id}"
                )
            items.append(
                GoodsReceiptItem(
                    id=uuid.uuid4(),
                    purchase_order_item_id=line.purchase_order_item_id,
                    quantity_received=line.quantity_received,
                    quantity_accepted=accepted,
                    quantity_rejected=line.quantity_received - accepted,
                    unit_price=line.unit_price if line.unit_price is not None else po_item.unit_price,
                    rejection_reason=line.rejection_reason,
                )
            )
        return items

    @staticmethod
    def _received_amount(items: Sequence[GoodsReceiptItem]):
        return sum((item.line_amount for item in items), Decimal("0"))

    async def create_goods_receipt(self, data: GoodsReceiptCreate) -> GoodsReceipt:
        """
        Record goods received against a PO.

        Raises:
            NotFoundError: PO missing
            ValidationError: PO not receivable, or a line over its availability
        """
        if not data.items:
            raise ValidationError("At least one item is required")

        po = await self.get_purchase_order(data.purchase_order_id, lock=True)
        if po.status not in RECEIVABLE_PO_STATUSES:
            raise ValidationError(
                f"PO must be in one of these statuses: {', '.join(RECEIVABLE_PO_STATUSES)}. "
                f"Current status: {po.status}"
            )

        await self.quantities.validate_receipt(
            po.id,
            [(line.purchase_order_item_id, line.quantity_received) for line in data.items],
        )
        items = self._build_grn_items(po, data.items)

        grn_number = await self.sequences.get_next_number(DocumentType.GOODS_RECEIPT_NOTE)
        grn = GoodsReceipt(
            id=uuid.uuid4(),
            tenant_id=self.context.tenant_id,
            grn_number=grn_number,
            purchase_order_id=po.id,
            warehouse_id=data.warehouse_id or po.warehouse_id,
            status=GRNStatus.PENDING.value,
            notes=data.notes,
            received_by=self.context.user_id,
            total_received_amount=self._received_amount(items),
        )
        if data.received_date:
            grn.received_date = data.received_date
        grn.items = items
        await self.repo.add(grn)

        logger.info(f"Created {grn_number} against {po.po_number} with {len(items)} item(s)")
        return grn

    async def update_goods_receipt(self, goods_receipt_id: uuid.UUID, data: GoodsReceiptUpdate) -> GoodsReceipt:
        """Replace lines and/or move the GRN through its lifecycle."""
        grn = await self.get_goods_receipt(goods_receipt_id)
        # Lock order: PO first, then the GRN itself
        po = await self.get_purchase_order(grn.purchase_order_id, lock=True)
        grn = await self.get_goods_receipt(goods_receipt_id, lock=True)

        if data.items is not None:
            if grn.status not in EDITABLE_GRN_STATUSES:
                raise ValidationError(
                    f"Cannot modify items of a GRN in '{grn.status}' status. "
                    f"Items can only be changed while the GRN is: {', '.join(EDITABLE_GRN_STATUSES)}"
                )
            if not data.items:
                raise ValidationError("At least one item is required")
            await self.quantities.validate_receipt(
                po.id,
                [(line.purchase_order_item_id, line.quantity_received) for line in data.items],
                exclude_goods_receipt_id=grn.id,
            )
            grn.items = self._build_grn_items(po, data.items)
            grn.total_received_amount = self._received_amount(grn.items)

        if data.notes is not None:
            grn.notes = data.notes

        if data.status is not None:
            self.validator.validate(EntityKind.GOODS_RECEIPT, grn.status, data.status)
            if data.status == GRNStatus.COMPLETED.value:
                await self._complete_goods_receipt(grn, po)
            else:
                logger.info(f"{grn.grn_number}: {grn.status} -> {data.status}")
                grn.status = data.status

        await self.repo.flush()
        return grn

    async def _complete_goods_receipt(self, grn: GoodsReceipt, po: PurchaseOrder) -> None:
        """
        Finalize a GRN: book accepted quantities into stock and roll the PO forward.

        Accepted quantities are re-checked against every other GRN on the PO
        before anything is written.
        """
        accepted_lines = [
            (item.purchase_order_item_id, item.quantity_accepted)
            for item in grn.items
            if item.quantity_accepted > 0
        ]
        if accepted_lines:
            await self.quantities.validate_receipt(po.id, accepted_lines, exclude_goods_receipt_id=grn.id)

        logger.info(f"{grn.grn_number}: {grn.status} -> {GRNStatus.COMPLETED.value}")
        grn.status = GRNStatus.COMPLETED.value
        grn.completed_at = datetime.now(timezone.utc)

        po_items = {item.id: item for item in po.items}
        for item in grn.items:
            if item.quantity_accepted <= 0:
                continue
            po_item = po_items[item.purchase_order_item_id]
            await self.ledger.record_movement(
                tenant_id=self.context.tenant_id,
                product_id=po_item.product_id,
                variant_id=po_item.variant_id,
                warehouse_id=grn.warehouse_id,
                movement_type=MovementType.PURCHASE,
                quantity=item.quantity_accepted,
                reference_type=ReferenceType.GOODS_RECEIPT.value,
                reference_id=grn.id,
                notes=f"Goods receipt {grn.grn_number}",
                created_by=self.context.user_id,
            )

        await self.repo.flush()
        await self._roll_forward_purchase_order(po)

    async def _roll_forward_purchase_order(self, po: PurchaseOrder) -> None:
        """Move the PO to partially_received / received when its table allows it."""
        received = await self.quantities.received_totals(po.id)
        if not any(received.values()):
            return

        fully_received = all(received.get(item.id, 0) >= item.ordered_quantity for item in po.items)
        target = POStatus.RECEIVED.value if fully_received else POStatus.PARTIALLY_RECEIVED.value
        if target == po.status:
            return

        if self.validator.can_transition(EntityKind.PURCHASE_ORDER, po.status, target):
            logger.info(f"PO {po.po_number}: {po.status} -> {target} after goods receipt")
            po.status = target
        else:
            logger.info(f"PO {po.po_number} stays '{po.status}' ({target} not reachable from it)")
