"""Purchase/Procurement models for the Procure-to-Pay cycle.

Supports:
- Purchase Order (PO) with ordered line items
- Goods Receipt Note (GRN) against a PO
- Purchase Invoice for a completed GRN
- Supplier Payment against an invoice

Received quantities and paid amounts are derived from their source records
(GRN items, completed payments) and recomputed on every change.
"""
import uuid
from datetime import datetime, date, timezone
from enum import Enum
from typing import Optional, List
from decimal import Decimal

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, Numeric, Date
from sqlalchemy import UniqueConstraint, Index, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ==================== Enums ====================

class POStatus(str, Enum):
    """Purchase Order status."""
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    ORDERED = "ordered"
    PARTIALLY_RECEIVED = "partially_received"
    RECEIVED = "received"
    CANCELLED = "cancelled"


class GRNStatus(str, Enum):
    """Goods Receipt Note status."""
    PENDING = "pending"
    INSPECTED = "inspected"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class InvoiceStatus(str, Enum):
    """Purchase Invoice status."""
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Supplier Payment status."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    """How a supplier payment is settled."""
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    OTHER = "other"


# PO statuses that accept new goods receipts
RECEIVABLE_PO_STATUSES = (
    POStatus.APPROVED.value,
    POStatus.ORDERED.value,
    POStatus.PARTIALLY_RECEIVED.value,
)

# PO statuses that still allow line items to be replaced
EDITABLE_PO_STATUSES = (
    POStatus.DRAFT.value,
    POStatus.PENDING.value,
)


# ==================== Purchase Order ====================

class PurchaseOrder(Base):
    """
    Purchase Order model.
    Official order placed with a supplier.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        UniqueConstraint("tenant_id", "po_number", name="uq_po_tenant_number"),
        Index("ix_po_tenant_status", "tenant_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True
    )

    # Identification
    po_number: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="PO-YYYY-NNN"
    )
    po_date: Mapped[date] = mapped_column(Date, nullable=False, default=lambda: utc_now().date())

    status: Mapped[str] = mapped_column(
        String(50),
        default=POStatus.DRAFT.value,
        nullable=False,
        comment="draft, pending, approved, ordered, partially_received, received, cancelled"
    )

    supplier_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    warehouse_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        comment="Delivery warehouse"
    )

    expected_delivery_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    items: Mapped[List["PurchaseOrderItem"]] = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.line_number",
    )

    @property
    def total_amount(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))

    def __repr__(self) -> str:
        return f"<PurchaseOrder(po_number='{self.po_number}', status='{self.status}')>"


class PurchaseOrderItem(Base):
    """
    Purchase Order line item.

    received_quantity is not a column: it is the accepted total over
    completed GRNs and is attached by the procurement service when needed.
    """
    __tablename__ = "purchase_order_items"
    __table_args__ = (
        CheckConstraint("ordered_quantity > 0", name="ck_po_item_ordered_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    purchase_order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    product_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    variant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    ordered_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))

    purchase_order: Mapped["PurchaseOrder"] = relationship("PurchaseOrder", back_populates="items")

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.ordered_quantity) * Decimal(self.unit_price or 0)

    def __repr__(self) -> str:
        return f"<PurchaseOrderItem(product_id={self.product_id}, ordered={self.ordered_quantity})>"


# ==================== Goods Receipt ====================

class GoodsReceipt(Base):
    """
    Goods Receipt Note (GRN).
    Records goods physically received against a PO, possibly partially.
    """
    __tablename__ = "goods_receipts"
    __table_args__ = (
        UniqueConstraint("tenant_id", "grn_number", name="uq_grn_tenant_number"),
        Index("ix_grn_po_status", "purchase_order_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)

    grn_number: Mapped[str] = mapped_column(String(30), nullable=False, comment="GRN-YYYY-NNN")
    purchase_order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("purchase_orders.id", ondelete="RESTRICT"),
        nullable=False
    )
    warehouse_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    status: Mapped[str] = mapped_column(
        String(50),
        default=GRNStatus.PENDING.value,
        nullable=False,
        comment="pending, inspected, approved, rejected, completed"
    )

    received_date: Mapped[date] = mapped_column(Date, nullable=False, default=lambda: utc_now().date())
    total_received_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0")
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    received_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    items: Mapped[List["GoodsReceiptItem"]] = relationship(
        "GoodsReceiptItem",
        back_populates="goods_receipt",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<GoodsReceipt(grn_number='{self.grn_number}', status='{self.status}')>"


class GoodsReceiptItem(Base):
    """GRN line: planned quantity_received, final quantity_accepted."""
    __tablename__ = "goods_receipt_items"
    __table_args__ = (
        CheckConstraint("quantity_received >= 0", name="ck_grn_item_received_non_negative"),
        CheckConstraint("quantity_accepted >= 0", name="ck_grn_item_accepted_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    goods_receipt_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("goods_receipts.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    purchase_order_item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("purchase_order_items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    quantity_received: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_accepted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quantity_rejected: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    goods_receipt: Mapped["GoodsReceipt"] = relationship("GoodsReceipt", back_populates="items")

    @property
    def line_amount(self) -> Decimal:
        return Decimal(self.quantity_received) * Decimal(self.unit_price or 0)


# ==================== Purchase Invoice ====================

class PurchaseInvoice(Base):
    """
    Supplier's bill for a completed GRN.

    paid_amount always equals the sum of completed payments; it is rewritten
    by FinancialReconciler after every payment change.
    """
    __tablename__ = "purchase_invoices"
    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_number", name="uq_invoice_tenant_number"),
        UniqueConstraint("goods_receipt_id", name="uq_invoice_goods_receipt"),
        Index("ix_invoice_tenant_status", "tenant_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)

    invoice_number: Mapped[str] = mapped_column(String(30), nullable=False, comment="INV-YYYY-NNN")
    supplier_invoice_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    goods_receipt_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("goods_receipts.id", ondelete="RESTRICT"),
        nullable=False
    )
    purchase_order_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("purchase_orders.id", ondelete="RESTRICT"),
        nullable=False
    )
    supplier_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))

    status: Mapped[str] = mapped_column(
        String(50),
        default=InvoiceStatus.PENDING.value,
        nullable=False,
        comment="pending, partial, paid, overdue, cancelled"
    )

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False, default=lambda: utc_now().date())
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    @property
    def balance_due(self) -> Decimal:
        return Decimal(self.total_amount) - Decimal(self.paid_amount or 0)

    def __repr__(self) -> str:
        return f"<PurchaseInvoice(invoice_number='{self.invoice_number}', status='{self.status}')>"


# ==================== Supplier Payment ====================

class SupplierPayment(Base):
    """A monetary settlement against a purchase invoice, partial or full."""
    __tablename__ = "supplier_payments"
    __table_args__ = (
        UniqueConstraint("tenant_id", "payment_number", name="uq_payment_tenant_number"),
        Index("ix_payment_invoice_status", "purchase_invoice_id", "status"),
        CheckConstraint("amount > 0", name="ck_payment_amount_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)

    payment_number: Mapped[str] = mapped_column(String(30), nullable=False, comment="PAY-YYYY-NNN")
    purchase_invoice_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("purchase_invoices.id", ondelete="RESTRICT"),
        nullable=False
    )
    supplier_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(30), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, default=lambda: utc_now().date())
    reference_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    status: Mapped[str] = mapped_column(
        String(50),
        default=PaymentStatus.PENDING.value,
        nullable=False,
        comment="pending, processing, completed, failed, cancelled"
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<SupplierPayment(payment_number='{self.payment_number}', status='{self.status}')>"
