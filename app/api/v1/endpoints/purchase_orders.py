"""Purchase Order API endpoints."""
from typing import Dict, Optional
from uuid import UUID

from fastapi import APIRouter, status

from app.api.deps import DB, Context, Page
from app.models.document_sequence import DocumentType
from app.models.purchase import PurchaseOrder
from app.schemas.base import ApiResponse, PaginatedData
from app.schemas.purchase import (
    NextNumberResponse,
    PurchaseOrderCreate,
    PurchaseOrderItemsReplace,
    PurchaseOrderResponse,
    PurchaseOrderUpdate,
)
from app.services.document_sequence_service import DocumentSequenceService
from app.services.procurement_service import ProcurementService
from app.services.quantity_reconciler import ItemAvailability

router = APIRouter()


def _po_response(
    po: PurchaseOrder,
    availability: Optional[Dict[UUID, ItemAvailability]] = None,
) -> PurchaseOrderResponse:
    response = PurchaseOrderResponse.model_validate(po)
    if availability:
        items = []
        for item in response.items:
            quantities = availability.get(item.id)
            if quantities:
                item = item.model_copy(update={
                    "received_quantity": quantities.accepted,
                    "in_flight_quantity": quantities.in_flight,
                    "available_quantity": quantities.available,
                })
            items.append(item)
        response.items = items
    else:
        response.items = [
            item.model_copy(update={"available_quantity": item.ordered_quantity})
            for item in response.items
        ]
    return response


# ==================== Endpoints ====================

@router.post("", response_model=ApiResponse[PurchaseOrderResponse], status_code=status.HTTP_201_CREATED)
async def create_purchase_order(
    data: PurchaseOrderCreate,
    db: DB,
    context: Context,
):
    """Create a draft purchase order."""
    service = ProcurementService(db, context)
    po = await service.create_purchase_order(data)
    return ApiResponse(data=_po_response(po))


@router.get("", response_model=ApiResponse[PaginatedData[PurchaseOrderResponse]])
async def list_purchase_orders(
    db: DB,
    context: Context,
    page: Page,
    status: Optional[str] = None,
    supplier_id: Optional[UUID] = None,
):
    """List purchase orders with filtering and pagination."""
    service = ProcurementService(db, context)
    orders, total = await service.list_purchase_orders(status, supplier_id, page.skip, page.limit)
    return ApiResponse(data=PaginatedData(
        items=[PurchaseOrderResponse.model_validate(po) for po in orders],
        total=total,
        skip=page.skip,
        limit=page.limit,
    ))


@router.get("/next-number", response_model=ApiResponse[NextNumberResponse])
async def get_next_purchase_order_number(
    db: DB,
    context: Context,
):
    """Next purchase order number for this tenant, without reserving it."""
    service = DocumentSequenceService(db, context.tenant_id)
    number = await service.preview_next_number(DocumentType.PURCHASE_ORDER)
    return ApiResponse(data=NextNumberResponse.from_number(number))


@router.get("/{purchase_order_id}", response_model=ApiResponse[PurchaseOrderResponse])
async def get_purchase_order(
    purchase_order_id: UUID,
    db: DB,
    context: Context,
):
    """Get PO details with received, in-flight and available quantities per line."""
    service = ProcurementService(db, context)
    po, availability = await service.get_purchase_order_detail(purchase_order_id)
    return ApiResponse(data=_po_response(po, availability))


@router.patch("/{purchase_order_id}", response_model=ApiResponse[PurchaseOrderResponse])
async def update_purchase_order(
    purchase_order_id: UUID,
    data: PurchaseOrderUpdate,
    db: DB,
    context: Context,
):
    """Update status (state machine enforced), delivery date or notes."""
    service = ProcurementService(db, context)
    await service.update_purchase_order(purchase_order_id, data)
    po, availability = await service.get_purchase_order_detail(purchase_order_id)
    return ApiResponse(data=_po_response(po, availability))


@router.put("/{purchase_order_id}/items", response_model=ApiResponse[PurchaseOrderResponse])
async def replace_purchase_order_items(
    purchase_order_id: UUID,
    data: PurchaseOrderItemsReplace,
    db: DB,
    context: Context,
):
    """Replace the lines of a draft or pending PO."""
    service = ProcurementService(db, context)
    po = await service.replace_purchase_order_items(purchase_order_id, data)
    return ApiResponse(data=_po_response(po))
