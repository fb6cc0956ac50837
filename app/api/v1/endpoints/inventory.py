"""Inventory API endpoints: adjustments, transfers and the stock ledger."""
from dataclasses import asdict
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import DB, Context, Page
from app.repositories.inventory import MovementFilter, SqlMovementStore
from app.schemas.base import ApiResponse
from app.schemas.inventory import (
    InventoryRowResponse,
    ProductStockResponse,
    StockAdjustRequest,
    StockAdjustResponse,
    StockLevelResponse,
    StockMovementCreate,
    StockMovementResponse,
    StockTransferRequest,
    StockTransferResponse,
)
from app.services.inventory_orchestrator import InventoryOrchestrator, TransferItem
from app.services.stock_ledger import StockLedger, normalize_movement_type

router = APIRouter()


def _ledger(db: AsyncSession) -> StockLedger:
    return StockLedger(SqlMovementStore(db))


def _orchestrator(db: AsyncSession) -> InventoryOrchestrator:
    return InventoryOrchestrator(_ledger(db))


# ==================== Stock Operations ====================

@router.post("/adjust", response_model=ApiResponse[StockAdjustResponse])
async def adjust_stock(
    data: StockAdjustRequest,
    db: DB,
    context: Context,
):
    """
    Set a location to its physically counted quantity.

    Repeating the same count writes nothing.
    """
    result = await _orchestrator(db).adjust_stock(
        tenant_id=context.tenant_id,
        warehouse_id=data.warehouse_id,
        product_id=data.product_id,
        variant_id=data.variant_id,
        physical_quantity=data.physical_quantity,
        reason=data.reason,
        actor=context.user_id,
    )
    return ApiResponse(data=StockAdjustResponse(**asdict(result)))


@router.post("/transfer", response_model=ApiResponse[StockTransferResponse], status_code=status.HTTP_201_CREATED)
async def transfer_stock(
    data: StockTransferRequest,
    db: DB,
    context: Context,
):
    """Move stock between two warehouses. All items move or none do."""
    items = [
        TransferItem(product_id=item.product_id, variant_id=item.variant_id, quantity=item.quantity)
        for item in data.items
    ]
    result = await _orchestrator(db).transfer_stock(
        tenant_id=context.tenant_id,
        source_warehouse_id=data.source_warehouse_id,
        destination_warehouse_id=data.destination_warehouse_id,
        items=items,
        notes=data.notes,
        actor=context.user_id,
    )
    return ApiResponse(data=StockTransferResponse(**asdict(result)))


@router.post("/movements", response_model=ApiResponse[StockMovementResponse], status_code=status.HTTP_201_CREATED)
async def record_stock_movement(
    data: StockMovementCreate,
    db: DB,
    context: Context,
):
    """Record a single signed movement (orders, returns, damage, manual corrections)."""
    movement = await _orchestrator(db).record_stock_movement(
        tenant_id=context.tenant_id,
        product_id=data.product_id,
        variant_id=data.variant_id,
        warehouse_id=data.warehouse_id,
        movement_type=data.movement_type,
        quantity=data.quantity,
        reference_type=data.reference_type,
        reference_id=data.reference_id,
        notes=data.notes,
        actor=context.user_id,
    )
    return ApiResponse(data=StockMovementResponse.model_validate(movement))


# ==================== Queries ====================

@router.get("", response_model=ApiResponse[List[InventoryRowResponse]])
async def list_inventory(
    db: DB,
    context: Context,
    page: Page,
    warehouse_id: Optional[UUID] = None,
):
    """Stock rows of the tenant, newest first, optionally for one warehouse."""
    rows = await _ledger(db).list_stock(context.tenant_id, warehouse_id, page.skip, page.limit)
    return ApiResponse(data=[InventoryRowResponse.model_validate(row) for row in rows])


@router.get("/products/{product_id}", response_model=ApiResponse[ProductStockResponse])
async def get_product_inventory(
    product_id: UUID,
    db: DB,
    context: Context,
):
    """Stock of one product in every warehouse, with the total."""
    stock = await _ledger(db).product_stock(context.tenant_id, product_id)
    return ApiResponse(data=ProductStockResponse(
        product_id=stock.product_id,
        warehouses=[InventoryRowResponse.model_validate(row) for row in stock.warehouses],
        total_stock=stock.total_stock,
    ))


@router.get("/stock", response_model=ApiResponse[StockLevelResponse])
async def get_stock_level(
    db: DB,
    context: Context,
    warehouse_id: UUID,
    product_id: UUID,
    variant_id: UUID,
):
    """Current stock for one location, checked against its movement history."""
    ledger = _ledger(db)
    stock_count = await ledger.current_stock(context.tenant_id, product_id, variant_id, warehouse_id)
    movement_total = await ledger.movement_total(context.tenant_id, product_id, variant_id, warehouse_id)
    return ApiResponse(data=StockLevelResponse(
        warehouse_id=warehouse_id,
        product_id=product_id,
        variant_id=variant_id,
        stock_count=stock_count,
        movement_total=movement_total,
        consistent=stock_count == movement_total,
    ))


@router.get("/movements", response_model=ApiResponse[List[StockMovementResponse]])
async def list_stock_movements(
    db: DB,
    context: Context,
    page: Page,
    warehouse_id: Optional[UUID] = None,
    product_id: Optional[UUID] = None,
    variant_id: Optional[UUID] = None,
    movement_type: Optional[str] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    """List ledger movements, newest first. start_date and end_date are inclusive days."""
    filters = MovementFilter(
        warehouse_id=warehouse_id,
        product_id=product_id,
        variant_id=variant_id,
        movement_type=normalize_movement_type(movement_type) if movement_type else None,
        reference_type=reference_type,
        reference_id=reference_id,
        start_date=start_date,
        end_date=end_date,
    )
    ledger = _ledger(db)
    movements = await ledger.list_movements(context.tenant_id, filters, page.skip, page.limit)
    return ApiResponse(data=[StockMovementResponse.model_validate(m) for m in movements])
