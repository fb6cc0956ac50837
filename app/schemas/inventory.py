"""Pydantic schemas for stock adjustments, transfers and ledger movements."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field

from app.schemas.base import BaseCreateSchema, BaseResponseSchema


# ==================== Adjustment ====================

class StockAdjustRequest(BaseCreateSchema):
    """Bring a location to a physically counted quantity."""
    warehouse_id: UUID
    product_id: UUID
    variant_id: UUID
    physical_quantity: int
    reason: str


class StockAdjustResponse(BaseModel):
    movement_id: Optional[UUID] = None
    previous_stock: int
    difference: int
    new_stock_count: int
    message: str


# ==================== Transfer ====================

class TransferItemRequest(BaseModel):
    """Identifiers are optional here so missing ones are reported per item."""
    product_id: Optional[UUID] = None
    variant_id: Optional[UUID] = None
    quantity: Optional[int] = None


class StockTransferRequest(BaseCreateSchema):
    source_warehouse_id: UUID
    destination_warehouse_id: UUID
    items: List[TransferItemRequest] = []
    notes: Optional[str] = None


class TransferLegResponse(BaseModel):
    product_id: UUID
    variant_id: UUID
    quantity: int
    transfer_out_id: UUID
    transfer_in_id: UUID


class StockTransferResponse(BaseModel):
    transfer_id: UUID
    source_warehouse_id: UUID
    destination_warehouse_id: UUID
    movements: List[TransferLegResponse]
    message: str


# ==================== Movements ====================

class StockMovementCreate(BaseCreateSchema):
    """
    Single ledger movement.

    The warehouse is sent as outlet_id (warehouse_id is accepted too).
    """
    product_id: Optional[UUID] = None
    variant_id: Optional[UUID] = None
    warehouse_id: UUID = Field(..., validation_alias=AliasChoices("outlet_id", "warehouse_id"))
    movement_type: str
    quantity: int
    reference_type: Optional[str] = None
    reference_id: Optional[UUID] = None
    notes: Optional[str] = None


class StockMovementResponse(BaseResponseSchema):
    id: UUID
    warehouse_id: UUID
    product_id: UUID
    variant_id: UUID
    movement_type: str
    quantity: int
    balance_after: int
    reference_type: Optional[str] = None
    reference_id: Optional[UUID] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime


class StockLevelResponse(BaseModel):
    warehouse_id: UUID
    product_id: UUID
    variant_id: UUID
    stock_count: int
    movement_total: int
    consistent: bool


class InventoryRowResponse(BaseResponseSchema):
    """One warehouse_inventory row."""
    id: UUID
    warehouse_id: UUID
    product_id: UUID
    variant_id: UUID
    stock_count: int
    last_movement_at: Optional[datetime] = None
    updated_at: datetime


class ProductStockResponse(BaseModel):
    product_id: UUID
    warehouses: List[InventoryRowResponse]
    total_stock: int
