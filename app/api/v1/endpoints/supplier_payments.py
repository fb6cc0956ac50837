"""Supplier Payment API endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, status

from app.api.deps import DB, Context, Page
from app.models.document_sequence import DocumentType
from app.schemas.base import ApiResponse, PaginatedData
from app.schemas.purchase import (
    NextNumberResponse,
    SupplierPaymentCreate,
    SupplierPaymentResponse,
    SupplierPaymentUpdate,
)
from app.services.document_sequence_service import DocumentSequenceService
from app.services.payables_service import PayablesService

router = APIRouter()


# ==================== Endpoints ====================

@router.post("", response_model=ApiResponse[SupplierPaymentResponse], status_code=status.HTTP_201_CREATED)
async def create_supplier_payment(
    data: SupplierPaymentCreate,
    db: DB,
    context: Context,
):
    """Record a payment against an invoice. The amount cannot exceed the open balance."""
    service = PayablesService(db, context)
    payment = await service.create_supplier_payment(data)
    return ApiResponse(data=SupplierPaymentResponse.model_validate(payment))


@router.get("", response_model=ApiResponse[PaginatedData[SupplierPaymentResponse]])
async def list_supplier_payments(
    db: DB,
    context: Context,
    page: Page,
    purchase_invoice_id: Optional[UUID] = None,
    status: Optional[str] = None,
):
    service = PayablesService(db, context)
    payments, total = await service.list_payments(purchase_invoice_id, status, page.skip, page.limit)
    return ApiResponse(data=PaginatedData(
        items=[SupplierPaymentResponse.model_validate(payment) for payment in payments],
        total=total,
        skip=page.skip,
        limit=page.limit,
    ))


@router.get("/next-number", response_model=ApiResponse[NextNumberResponse])
async def get_next_supplier_payment_number(
    db: DB,
    context: Context,
):
    """Next supplier payment number for this tenant, without reserving it."""
    service = DocumentSequenceService(db, context.tenant_id)
    number = await service.preview_next_number(DocumentType.SUPPLIER_PAYMENT)
    return ApiResponse(data=NextNumberResponse.from_number(number))


@router.get("/{payment_id}", response_model=ApiResponse[SupplierPaymentResponse])
async def get_supplier_payment(
    payment_id: UUID,
    db: DB,
    context: Context,
):
    service = PayablesService(db, context)
    payment = await service.get_payment(payment_id)
    return ApiResponse(data=SupplierPaymentResponse.model_validate(payment))


@router.patch("/{payment_id}", response_model=ApiResponse[SupplierPaymentResponse])
async def update_supplier_payment(
    payment_id: UUID,
    data: SupplierPaymentUpdate,
    db: DB,
    context: Context,
):
    """
    Update amount and/or status of a payment.

    pending -> completed directly requires an admin role.
    """
    service = PayablesService(db, context)
    payment = await service.update_supplier_payment(payment_id, data)
    return ApiResponse(data=SupplierPaymentResponse.model_validate(payment))
