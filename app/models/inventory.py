"""Stock ledger models.

StockMovement is the append-only source of truth for stock levels.
WarehouseInventory is its materialized projection per
(warehouse, product, variant); only the StockLedger writes it.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, Integer, Text
from sqlalchemy import UniqueConstraint, Index, CheckConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MovementType(str, Enum):
    """Classification of a stock movement."""
    ADJUSTMENT = "ADJUSTMENT"
    ADJUSTMENT_IN = "ADJUSTMENT_IN"
    ADJUSTMENT_OUT = "ADJUSTMENT_OUT"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    ORDER = "ORDER"
    SALE = "SALE"
    RETURN = "RETURN"
    PURCHASE = "PURCHASE"
    DAMAGE = "DAMAGE"


class ReferenceType(str, Enum):
    """What caused a movement."""
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"
    ORDER = "order"
    GOODS_RECEIPT = "goods_receipt"
    MANUAL = "manual"


class StockMovement(Base):
    """
    One signed quantity delta at a (warehouse, product, variant) location.

    Rows are never updated or deleted; corrections are new offsetting
    movements. balance_after records the projection right after this
    movement landed.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        Index("ix_movement_key", "tenant_id", "warehouse_id", "product_id", "variant_id"),
        Index("ix_movement_reference", "reference_type", "reference_id"),
        CheckConstraint("quantity <> 0", name="ck_movement_quantity_non_zero"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    warehouse_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    variant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    movement_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="ADJUSTMENT, TRANSFER_IN, TRANSFER_OUT, ORDER, SALE, RETURN, PURCHASE, DAMAGE"
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, comment="Signed: + in, - out")
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    reference_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    reference_id: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<StockMovement(type='{self.movement_type}', quantity={self.quantity})>"


class WarehouseInventory(Base):
    """Current stock_count per (warehouse, product, variant)."""
    __tablename__ = "warehouse_inventory"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "warehouse_id", "product_id", "variant_id",
            name="uq_warehouse_inventory_key"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    warehouse_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    variant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    stock_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_movement_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<WarehouseInventory(warehouse={self.warehouse_id}, stock={self.stock_count})>"
