"""Pydantic schemas for the procure-to-pay cycle: PO, GRN, invoice, payment.

Status fields on update schemas are plain strings; the state machine in
app.services.status_transitions decides whether a value is acceptable and
reports the allowed set when it is not.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from app.models.purchase import PaymentMethod
from app.schemas.base import BaseCreateSchema, BaseResponseSchema, BaseUpdateSchema


# ==================== Numbering ====================

class NextNumberResponse(BaseModel):
    """Preview of the next document number; nothing is reserved."""
    next_number: str
    prefix: str

    @classmethod
    def from_number(cls, number: str) -> "NextNumberResponse":
        return cls(next_number=number, prefix=number.rsplit("-", 1)[0])


# ==================== Purchase Order ====================

class POItemBase(BaseModel):
    """Base schema for PO line item."""
    product_id: UUID
    variant_id: UUID
    ordered_quantity: int = Field(
        ...,
        gt=0,
        validation_alias=AliasChoices("ordered_quantity", "quantity"),
    )
    unit_price: Decimal = Field(Decimal("0"), ge=0)


class POItemCreate(POItemBase):
    """Schema for creating PO line item."""
    pass


class POItemResponse(BaseResponseSchema):
    """PO line with quantities derived from goods receipts."""
    id: UUID
    line_number: int
    product_id: UUID
    variant_id: UUID
    ordered_quantity: int
    unit_price: Decimal
    received_quantity: int = 0
    in_flight_quantity: int = 0
    available_quantity: int = 0


class PurchaseOrderCreate(BaseCreateSchema):
    """Schema for creating a purchase order."""
    supplier_id: UUID
    warehouse_id: UUID
    expected_delivery_date: Optional[date] = None
    notes: Optional[str] = None
    items: List[POItemCreate] = Field(..., min_length=1)


class PurchaseOrderUpdate(BaseUpdateSchema):
    """Schema for updating a purchase order."""
    status: Optional[str] = None
    expected_delivery_date: Optional[date] = None
    notes: Optional[str] = None


class PurchaseOrderItemsReplace(BaseCreateSchema):
    """Replace all lines of a draft/pending PO."""
    items: List[POItemCreate] = Field(..., min_length=1)


class PurchaseOrderResponse(BaseResponseSchema):
    """Response schema for purchase order."""
    id: UUID
    po_number: str
    po_date: date
    status: str
    supplier_id: UUID
    warehouse_id: UUID
    expected_delivery_date: Optional[date] = None
    notes: Optional[str] = None
    total_amount: Decimal
    items: List[POItemResponse] = []
    created_at: datetime
    updated_at: datetime


# ==================== Goods Receipt ====================

class GRNItemBase(BaseModel):
    """Base schema for GRN line."""
    purchase_order_item_id: UUID
    quantity_received: int
    quantity_accepted: Optional[int] = Field(None, ge=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    rejection_reason: Optional[str] = None


class GRNItemCreate(GRNItemBase):
    """Schema for creating GRN line."""
    pass


class GRNItemResponse(BaseResponseSchema):
    """Response schema for GRN line."""
    id: UUID
    purchase_order_item_id: UUID
    quantity_received: int
    quantity_accepted: int
    quantity_rejected: int
    unit_price: Decimal
    rejection_reason: Optional[str] = None


class GoodsReceiptCreate(BaseCreateSchema):
    """Schema for creating GRN."""
    purchase_order_id: UUID
    warehouse_id: Optional[UUID] = None
    received_date: Optional[date] = None
    notes: Optional[str] = None
    items: List[GRNItemCreate] = []


class GoodsReceiptUpdate(BaseUpdateSchema):
    """Status change and/or line replacement (lines only while pending or inspected)."""
    status: Optional[str] = None
    items: Optional[List[GRNItemCreate]] = None
    notes: Optional[str] = None


class GoodsReceiptResponse(BaseResponseSchema):
    """Response schema for GRN."""
    id: UUID
    grn_number: str
    purchase_order_id: UUID
    warehouse_id: UUID
    status: str
    received_date: date
    total_received_amount: Decimal
    notes: Optional[str] = None
    received_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    items: List[GRNItemResponse] = []
    created_at: datetime
    updated_at: datetime


# ==================== Purchase Invoice ====================

class PurchaseInvoiceCreate(BaseCreateSchema):
    """
    Schema for creating a purchase invoice from a completed GRN.

    subtotal defaults to the GRN received amount; when only total_amount is
    given, subtotal = total_amount - tax_amount + discount_amount.
    """
    goods_receipt_id: UUID
    supplier_invoice_number: Optional[str] = None
    subtotal: Optional[Decimal] = Field(None, ge=0)
    total_amount: Optional[Decimal] = Field(None, gt=0)
    tax_amount: Decimal = Field(Decimal("0"), ge=0)
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None


class PurchaseInvoiceUpdate(BaseUpdateSchema):
    """Schema for updating a purchase invoice."""
    status: Optional[str] = None
    supplier_invoice_number: Optional[str] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None


class PurchaseInvoiceResponse(BaseResponseSchema):
    """Response schema for purchase invoice."""
    id: UUID
    invoice_number: str
    supplier_invoice_number: Optional[str] = None
    goods_receipt_id: UUID
    purchase_order_id: UUID
    supplier_id: UUID
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    balance_due: Decimal
    status: str
    invoice_date: date
    due_date: date
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ==================== Supplier Payment ====================

class SupplierPaymentCreate(BaseCreateSchema):
    """Schema for recording a supplier payment. New payments start as pending."""
    purchase_invoice_id: UUID
    supplier_id: Optional[UUID] = None
    amount: Decimal
    payment_method: PaymentMethod
    payment_date: Optional[date] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class SupplierPaymentUpdate(BaseUpdateSchema):
    """Schema for updating a supplier payment."""
    amount: Optional[Decimal] = None
    status: Optional[str] = None
    payment_method: Optional[PaymentMethod] = None
    payment_date: Optional[date] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class SupplierPaymentResponse(BaseResponseSchema):
    """Response schema for supplier payment."""
    id: UUID
    payment_number: str
    purchase_invoice_id: UUID
    supplier_id: UUID
    amount: Decimal
    payment_method: str
    payment_date: date
    reference_number: Optional[str] = None
    status: str
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
