"""
Inventory Orchestrator

Multi-step physical stock operations composed from StockLedger movements:

- adjust_stock: bring a location to a physically counted quantity
- transfer_stock: move several items between two warehouses atomically
- record_stock_movement: single movement for order-driven or manual use
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from app.core.exceptions import ValidationError
from app.models.inventory import MovementType, ReferenceType, StockMovement
from app.repositories.inventory import StockKey
from app.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)


@dataclass
class AdjustmentResult:
    movement_id: Optional[uuid.UUID]
    previous_stock: int
    difference: int
    new_stock_count: int
    message: str


@dataclass
class TransferItem:
    product_id: Optional[uuid.UUID]
    variant_id: Optional[uuid.UUID]
    quantity: Optional[int]


@dataclass
class TransferLeg:
    product_id: uuid.UUID
    variant_id: uuid.UUID
    quantity: int
    transfer_out_id: uuid.UUID
    transfer_in_id: uuid.UUID


@dataclass
class TransferResult:
    transfer_id: uuid.UUID
    source_warehouse_id: uuid.UUID
    destination_warehouse_id: uuid.UUID
    movements: List[TransferLeg] = field(default_factory=list)
    message: str = ""


class InventoryOrchestrator:
    """Service composing ledger movements into physical stock operations."""

    def __init__(self, ledger: StockLedger):
        self.ledger = ledger

    # ==================== Adjustment ====================

    async def adjust_stock(
        self,
        tenant_id: uuid.UUID,
        warehouse_id: uuid.UUID,
        product_id: uuid.UUID,
        variant_id: uuid.UUID,
        physical_quantity: int,
        reason: str,
        actor: Optional[str] = None,
    ) -> AdjustmentResult:
        """
        Set stock to a physically counted quantity.

        Writes one ADJUSTMENT movement of (physical - current), or nothing
        when the count already matches. Repeating the same call is a no-op.
        """
        if not warehouse_id or not product_id or not variant_id:
            raise ValidationError("warehouse_id, product_id and variant_id are required")
        if physical_quantity is None or physical_quantity < 0:
            raise ValidationError("Physical quantity cannot be negative")
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Reason is required for stock adjustment")

        key = StockKey(warehouse_id=warehouse_id, product_id=product_id, variant_id=variant_id)
        # Created at 0 when absent so the count below is always read under a row lock
        counts = await self.ledger.lock_stock(tenant_id, [key], create_missing=True)
        current = counts[key]
        difference = physical_quantity - current

        if difference == 0:
            return AdjustmentResult(
                movement_id=None,
                previous_stock=current,
                difference=0,
                new_stock_count=current,
                message="Stock already matches physical count",
            )

        movement = await self.ledger.record_movement(
            tenant_id=tenant_id,
            product_id=product_id,
            variant_id=variant_id,
            warehouse_id=warehouse_id,
            movement_type=MovementType.ADJUSTMENT,
            quantity=difference,
            reference_type=ReferenceType.ADJUSTMENT.value,
            notes=reason,
            created_by=actor,
        )

        logger.info(f"Stock adjusted at warehouse {warehouse_id}: {current} -> {movement.balance_after}")
        return AdjustmentResult(
            movement_id=movement.id,
            previous_stock=current,
            difference=difference,
            new_stock_count=movement.balance_after,
            message=f"Stock adjusted by {difference:+d}",
        )

    # ==================== Transfer ====================

    def _validate_transfer(
        self,
        source_warehouse_id: uuid.UUID,
        destination_warehouse_id: uuid.UUID,
        items: Sequence[TransferItem],
    ) -> None:
        if not source_warehouse_id or not destination_warehouse_id:
            raise ValidationError("Source and destination warehouses are required")
        if source_warehouse_id == destination_warehouse_id:
            raise ValidationError("Source and destination warehouses cannot be the same")
        if not items:
            raise ValidationError("Items array is required and must not be empty")

        for index, item in enumerate(items, start=1):
            if not item.product_id or not item.variant_id:
                raise ValidationError(f"Item {index}: product_id and variant_id are required")
            if item.quantity is None or item.quantity <= 0:
                raise ValidationError(f"Item {index}: quantity must be greater than 0")

    async def transfer_stock(
        self,
        tenant_id: uuid.UUID,
        source_warehouse_id: uuid.UUID,
        destination_warehouse_id: uuid.UUID,
        items: Sequence[TransferItem],
        notes: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> TransferResult:
        """
        Move items from source to destination.

        Each item produces a TRANSFER_OUT at the source and a TRANSFER_IN at
        the destination of equal magnitude, all sharing one transfer id.
        Every movement of the transfer lands together or not at all.

        Raises:
            ValidationError: Bad input or not enough stock at the source
        """
        self._validate_transfer(source_warehouse_id, destination_warehouse_id, items)

        transfer_id = uuid.uuid4()
        result = TransferResult(
            transfer_id=transfer_id,
            source_warehouse_id=source_warehouse_id,
            destination_warehouse_id=destination_warehouse_id,
        )

        required: Dict[StockKey, int] = {}
        keys: List[StockKey] = []
        for item in items:
            source_key = StockKey(source_warehouse_id, item.product_id, item.variant_id)
            required[source_key] = required.get(source_key, 0) + item.quantity
            keys.extend([source_key, StockKey(destination_warehouse_id, item.product_id, item.variant_id)])

        async with self.ledger.atomic():
            counts = await self.ledger.lock_stock(tenant_id, keys)
            for key, quantity in required.items():
                if counts[key] < quantity:
                    raise ValidationError(
                        f"Insufficient stock for product {key.product_id} (variant {key.variant_id}) "
                        f"at source warehouse: available {counts[key]}, requested {quantity}",
                        details={"available": counts[key], "requested": quantity},
                    )

            transfer_note = notes or f"Transfer {transfer_id}"
            for item in items:
                out_movement = await self.ledger.record_movement(
                    tenant_id=tenant_id,
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    warehouse_id=source_warehouse_id,
                    movement_type=MovementType.TRANSFER_OUT,
                    quantity=-item.quantity,
                    reference_type=ReferenceType.TRANSFER.value,
                    reference_id=transfer_id,
                    notes=transfer_note,
                    created_by=actor,
                )
                in_movement = await self.ledger.record_movement(
                    tenant_id=tenant_id,
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    warehouse_id=destination_warehouse_id,
                    movement_type=MovementType.TRANSFER_IN,
                    quantity=item.quantity,
                    reference_type=ReferenceType.TRANSFER.value,
                    reference_id=transfer_id,
                    notes=transfer_note,
                    created_by=actor,
                )
                result.movements.append(
                    TransferLeg(
                        product_id=item.product_id,
                        variant_id=item.variant_id,
                        quantity=item.quantity,
                        transfer_out_id=out_movement.id,
                        transfer_in_id=in_movement.id,
                    )
                )

        result.message = f"Successfully transferred {len(items)} item(s) between warehouses"
        logger.info(
            f"Transfer {transfer_id}: {len(items)} item(s) "
            f"{source_warehouse_id} -> {destination_warehouse_id}"
        )
        return result

    # ==================== Pass-through ====================

    async def record_stock_movement(
        self,
        tenant_id: uuid.UUID,
        product_id: Optional[uuid.UUID],
        variant_id: Optional[uuid.UUID],
        warehouse_id: Optional[uuid.UUID],
        movement_type: str,
        quantity: int,
        reference_type: Optional[str] = None,
        reference_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> StockMovement:
        """Single movement for order-driven or manually classified stock changes."""
        if not product_id:
            raise ValidationError("product_id is required")
        if not variant_id:
            raise ValidationError("variant_id is required. Resolve the product's default variant first")

        return await self.ledger.record_movement(
            tenant_id=tenant_id,
            product_id=product_id,
            variant_id=variant_id,
            warehouse_id=warehouse_id,
            movement_type=movement_type,
            quantity=quantity,
            reference_type=reference_type or ReferenceType.MANUAL.value,
            reference_id=reference_id,
            notes=notes,
            created_by=actor,
        )
