"""
Tenant-scoped storage access for procurement records.

The reconcilers depend only on the small source protocols below, so tests
can hand them in-memory fakes; ProcurementRepository is the SQLAlchemy
implementation used by the services.
"""
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Protocol, runtime_checkable

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.purchase import (
    PurchaseOrder,
    PurchaseOrderItem,
    GoodsReceipt,
    GoodsReceiptItem,
    PurchaseInvoice,
    SupplierPayment,
)


@dataclass(frozen=True)
class ReceiptLine:
    """One GRN line as seen by the quantity reconciler."""
    goods_receipt_id: uuid.UUID
    purchase_order_item_id: uuid.UUID
    status: str
    quantity_received: int
    quantity_accepted: int


@dataclass(frozen=True)
class PaymentLine:
    """One payment as seen by the financial reconciler."""
    payment_id: uuid.UUID
    amount: Decimal
    status: str


@runtime_checkable
class ReceiptSource(Protocol):
    """What QuantityReconciler needs to know about a PO."""

    async def ordered_quantities(self, purchase_order_id: uuid.UUID) -> Dict[uuid.UUID, int]:
        ...

    async def receipt_lines(
        self,
        purchase_order_id: uuid.UUID,
        exclude_goods_receipt_id: Optional[uuid.UUID] = None,
    ) -> List[ReceiptLine]:
        ...


@runtime_checkable
class PaymentSource(Protocol):
    """What FinancialReconciler needs to know about an invoice."""

    async def payment_lines(self, purchase_invoice_id: uuid.UUID) -> List[PaymentLine]:
        ...


class ProcurementRepository:
    """SQLAlchemy access to POs, GRNs, invoices and payments for one tenant."""

    def __init__(self, db: AsyncSession, tenant_id: uuid.UUID):
        self.db = db
        self.tenant_id = tenant_id

    async def add(self, instance) -> None:
        self.db.add(instance)
        await self.db.flush()

    async def flush(self) -> None:
        await self.db.flush()

    # ==================== Purchase Orders ====================

    async def get_purchase_order(self, purchase_order_id: uuid.UUID, lock: bool = False) -> Optional[PurchaseOrder]:
        """
        Load a PO with its items.

        lock=True takes a row lock on the PO; every GRN write against the PO
        holds it so receipt totals cannot change underneath the check.
        """
        stmt = (
            select(PurchaseOrder)
            .options(selectinload(PurchaseOrder.items))
            .where(
                PurchaseOrder.id == purchase_order_id,
                PurchaseOrder.tenant_id == self.tenant_id,
            )
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_purchase_orders(
        self,
        status: Optional[str] = None,
        supplier_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[List[PurchaseOrder], int]:
        filters = [PurchaseOrder.tenant_id == self.tenant_id]
        if status:
            filters.append(PurchaseOrder.status == status)
        if supplier_id:
            filters.append(PurchaseOrder.supplier_id == supplier_id)

        total = await self.db.scalar(select(func.count(PurchaseOrder.id)).where(*filters))
        result = await self.db.execute(
            select(PurchaseOrder)
            .options(selectinload(PurchaseOrder.items))
            .where(*filters)
            .order_by(PurchaseOrder.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def ordered_quantities(self, purchase_order_id: uuid.UUID) -> Dict[uuid.UUID, int]:
        result = await self.db.execute(
            select(PurchaseOrderItem.id, PurchaseOrderItem.ordered_quantity)
            .join(PurchaseOrder, PurchaseOrder.id == PurchaseOrderItem.purchase_order_id)
            .where(
                PurchaseOrderItem.purchase_order_id == purchase_order_id,
                PurchaseOrder.tenant_id == self.tenant_id,
            )
        )
        return {row.id: row.ordered_quantity for row in result}

    # ==================== Goods Receipts ====================

    async def receipt_lines(
        self,
        purchase_order_id: uuid.UUID,
        exclude_goods_receipt_id: Optional[uuid.UUID] = None,
    ) -> List[ReceiptLine]:
        stmt = (
            select(
                GoodsReceiptItem.goods_receipt_id,
                GoodsReceiptItem.purchase_order_item_id,
                GoodsReceipt.status,
                GoodsReceiptItem.quantity_received,
                GoodsReceiptItem.quantity_accepted,
            )
            .join(GoodsReceipt, GoodsReceipt.id == GoodsReceiptItem.goods_receipt_id)
            .where(
                GoodsReceipt.purchase_order_id == purchase_order_id,
                GoodsReceipt.tenant_id == self.tenant_id,
            )
        )
        if exclude_goods_receipt_id is not None:
            stmt = stmt.where(GoodsReceipt.id != exclude_goods_receipt_id)
        result = await self.db.execute(stmt)
        return [
            ReceiptLine(
                goods_receipt_id=row.goods_receipt_id,
                purchase_order_item_id=row.purchase_order_item_id,
                status=row.status,
                quantity_received=row.quantity_received or 0,
                quantity_accepted=row.quantity_accepted or 0,
            )
            for row in result
        ]

    async def get_goods_receipt(self, goods_receipt_id: uuid.UUID, lock: bool = False) -> Optional[GoodsReceipt]:
        stmt = (
            select(GoodsReceipt)
            .options(selectinload(GoodsReceipt.items))
            .where(
                GoodsReceipt.id == goods_receipt_id,
                GoodsReceipt.tenant_id == self.tenant_id,
            )
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_goods_receipts(
        self,
        purchase_order_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[List[GoodsReceipt], int]:
        filters = [GoodsReceipt.tenant_id == self.tenant_id]
        if purchase_order_id:
            filters.append(GoodsReceipt.purchase_order_id == purchase_order_id)
        if status:
            filters.append(GoodsReceipt.status == status)

        total = await self.db.scalar(select(func.count(GoodsReceipt.id)).where(*filters))
        result = await self.db.execute(
            select(GoodsReceipt)
            .options(selectinload(GoodsReceipt.items))
            .where(*filters)
            .order_by(GoodsReceipt.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    # ==================== Purchase Invoices ====================

    async def get_invoice(self, invoice_id: uuid.UUID, lock: bool = False) -> Optional[PurchaseInvoice]:
        """
        Load an invoice.

        lock=True serializes payment application on this invoice.
        """
        stmt = select(PurchaseInvoice).where(
            PurchaseInvoice.id == invoice_id,
            PurchaseInvoice.tenant_id == self.tenant_id,
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_invoice_for_goods_receipt(self, goods_receipt_id: uuid.UUID) -> Optional[PurchaseInvoice]:
        result = await self.db.execute(
            select(PurchaseInvoice).where(
                PurchaseInvoice.goods_receipt_id == goods_receipt_id,
                PurchaseInvoice.tenant_id == self.tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_invoices(
        self,
        status: Optional[str] = None,
        supplier_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[List[PurchaseInvoice], int]:
        filters = [PurchaseInvoice.tenant_id == self.tenant_id]
        if status:
            filters.append(PurchaseInvoice.status == status)
        if supplier_id:
            filters.append(PurchaseInvoice.supplier_id == supplier_id)

        total = await self.db.scalar(select(func.count(PurchaseInvoice.id)).where(*filters))
        result = await self.db.execute(
            select(PurchaseInvoice)
            .where(*filters)
            .order_by(PurchaseInvoice.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    # ==================== Supplier Payments ====================

    async def payment_lines(self, purchase_invoice_id: uuid.UUID) -> List[PaymentLine]:
        result = await self.db.execute(
            select(SupplierPayment.id, SupplierPayment.amount, SupplierPayment.status).where(
                SupplierPayment.purchase_invoice_id == purchase_invoice_id,
                SupplierPayment.tenant_id == self.tenant_id,
            )
        )
        return [
            PaymentLine(payment_id=row.id, amount=Decimal(row.amount), status=row.status)
            for row in result
        ]

    async def get_payment(self, payment_id: uuid.UUID, lock: bool = False) -> Optional[SupplierPayment]:
        stmt = select(SupplierPayment).where(
            SupplierPayment.id == payment_id,
            SupplierPayment.tenant_id == self.tenant_id,
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_payments(
        self,
        purchase_invoice_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[List[SupplierPayment], int]:
        filters = [SupplierPayment.tenant_id == self.tenant_id]
        if purchase_invoice_id:
            filters.append(SupplierPayment.purchase_invoice_id == purchase_invoice_id)
        if status:
            filters.append(SupplierPayment.status == status)

        total = await self.db.scalar(select(func.count(SupplierPayment.id)).where(*filters))
        result = await self.db.execute(
            select(SupplierPayment)
            .where(*filters)
            .order_by(SupplierPayment.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0
