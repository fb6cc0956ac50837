"""Purchase Invoice API endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, status

from app.api.deps import DB, Context, Page
from app.models.document_sequence import DocumentType
from app.schemas.base import ApiResponse, PaginatedData
from app.schemas.purchase import (
    NextNumberResponse,
    PurchaseInvoiceCreate,
    PurchaseInvoiceResponse,
    PurchaseInvoiceUpdate,
)
from app.services.document_sequence_service import DocumentSequenceService
from app.services.payables_service import PayablesService

router = APIRouter()


# ==================== Endpoints ====================

@router.post("", response_model=ApiResponse[PurchaseInvoiceResponse], status_code=status.HTTP_201_CREATED)
async def create_purchase_invoice(
    data: PurchaseInvoiceCreate,
    db: DB,
    context: Context,
):
    """Create the invoice for a completed GRN (one invoice per GRN)."""
    service = PayablesService(db, context)
    invoice = await service.create_purchase_invoice(data)
    return ApiResponse(data=PurchaseInvoiceResponse.model_validate(invoice))


@router.get("", response_model=ApiResponse[PaginatedData[PurchaseInvoiceResponse]])
async def list_purchase_invoices(
    db: DB,
    context: Context,
    page: Page,
    status: Optional[str] = None,
    supplier_id: Optional[UUID] = None,
):
    service = PayablesService(db, context)
    invoices, total = await service.list_invoices(status, supplier_id, page.skip, page.limit)
    return ApiResponse(data=PaginatedData(
        items=[PurchaseInvoiceResponse.model_validate(invoice) for invoice in invoices],
        total=total,
        skip=page.skip,
        limit=page.limit,
    ))


@router.get("/next-number", response_model=ApiResponse[NextNumberResponse])
async def get_next_purchase_invoice_number(
    db: DB,
    context: Context,
):
    """Next purchase invoice number for this tenant, without reserving it."""
    service = DocumentSequenceService(db, context.tenant_id)
    number = await service.preview_next_number(DocumentType.PURCHASE_INVOICE)
    return ApiResponse(data=NextNumberResponse.from_number(number))


@router.get("/{invoice_id}", response_model=ApiResponse[PurchaseInvoiceResponse])
async def get_purchase_invoice(
    invoice_id: UUID,
    db: DB,
    context: Context,
):
    service = PayablesService(db, context)
    invoice = await service.get_invoice(invoice_id)
    return ApiResponse(data=PurchaseInvoiceResponse.model_validate(invoice))


@router.patch("/{invoice_id}", response_model=ApiResponse[PurchaseInvoiceResponse])
async def update_purchase_invoice(
    invoice_id: UUID,
    data: PurchaseInvoiceUpdate,
    db: DB,
    context: Context,
):
    """
    Update an invoice.

    paid, partial and pending are only accepted when they match the
    completed payments on record.
    """
    service = PayablesService(db, context)
    invoice = await service.update_purchase_invoice(invoice_id, data)
    return ApiResponse(data=PurchaseInvoiceResponse.model_validate(invoice))
