"""Goods Receipt Note (GRN) API endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, status

from app.api.deps import DB, Context, Page
from app.models.document_sequence import DocumentType
from app.schemas.base import ApiResponse, PaginatedData
from app.schemas.purchase import GoodsReceiptCreate, GoodsReceiptResponse, GoodsReceiptUpdate, NextNumberResponse
from app.services.document_sequence_service import DocumentSequenceService
from app.services.procurement_service import ProcurementService

router = APIRouter()


# ==================== Endpoints ====================

@router.post("", response_model=ApiResponse[GoodsReceiptResponse], status_code=status.HTTP_201_CREATED)
async def create_goods_receipt(
    data: GoodsReceiptCreate,
    db: DB,
    context: Context,
):
    """
    Receive goods against a PO.

    Quantities are checked against the PO lines minus what other pending,
    inspected and completed GRNs already hold.
    """
    service = ProcurementService(db, context)
    grn = await service.create_goods_receipt(data)
    return ApiResponse(data=GoodsReceiptResponse.model_validate(grn))


@router.get("", response_model=ApiResponse[PaginatedData[GoodsReceiptResponse]])
async def list_goods_receipts(
    db: DB,
    context: Context,
    page: Page,
    purchase_order_id: Optional[UUID] = None,
    status: Optional[str] = None,
):
    """List GRNs with filtering and pagination."""
    service = ProcurementService(db, context)
    receipts, total = await service.list_goods_receipts(purchase_order_id, status, page.skip, page.limit)
    return ApiResponse(data=PaginatedData(
        items=[GoodsReceiptResponse.model_validate(grn) for grn in receipts],
        total=total,
        skip=page.skip,
        limit=page.limit,
    ))


@router.get("/next-number", response_model=ApiResponse[NextNumberResponse])
async def get_next_goods_receipt_number(
    db: DB,
    context: Context,
):
    """Next goods receipt number for this tenant, without reserving it."""
    service = DocumentSequenceService(db, context.tenant_id)
    number = await service.preview_next_number(DocumentType.GOODS_RECEIPT)
    return ApiResponse(data=NextNumberResponse.from_number(number))


@router.get("/{goods_receipt_id}", response_model=ApiResponse[GoodsReceiptResponse])
async def get_goods_receipt(
    goods_receipt_id: UUID,
    db: DB,
    context: Context,
):
    """Get GRN details."""
    service = ProcurementService(db, context)
    grn = await service.get_goods_receipt(goods_receipt_id)
    return ApiResponse(data=GoodsReceiptResponse.model_validate(grn))


@router.patch("/{goods_receipt_id}", response_model=ApiResponse[GoodsReceiptResponse])
async def update_goods_receipt(
    goods_receipt_id: UUID,
    data: GoodsReceiptUpdate,
    db: DB,
    context: Context,
):
    """
    Change GRN status and/or replace its lines.

    Completing a GRN books the accepted quantities into stock.
    """
    service = ProcurementService(db, context)
    grn = await service.update_goods_receipt(goods_receipt_id, data)
    return ApiResponse(data=GoodsReceiptResponse.model_validate(grn))
