from fastapi import APIRouter

from app.api.v1.endpoints import (
    # Procurement
    purchase_orders,
    goods_receipts,
    purchase_invoices,  # Purchase invoices billed against completed GRNs
    supplier_payments,
    # Warehouse stock ledger
    inventory,
)

api_router = APIRouter(prefix="/api/v1")

# ==================== Procurement ====================
api_router.include_router(
    purchase_orders.router,
    prefix="/procurement/purchase-orders",
    tags=["Purchase Orders"]
)
api_router.include_router(
    goods_receipts.router,
    prefix="/procurement/goods-receipts",
    tags=["Goods Receipts"]
)
api_router.include_router(
    purchase_invoices.router,
    prefix="/procurement/purchase-invoices",
    tags=["Purchase Invoices"]
)
api_router.include_router(
    supplier_payments.router,
    prefix="/procurement/supplier-payments",
    tags=["Supplier Payments"]
)

# ==================== Inventory ====================
api_router.include_router(
    inventory.router,
    prefix="/inventory",
    tags=["Inventory"]
)
