from app.models.purchase import (
    POStatus,
    GRNStatus,
    InvoiceStatus,
    PaymentStatus,
    PaymentMethod,
    PurchaseOrder,
    PurchaseOrderItem,
    GoodsReceipt,
    GoodsReceiptItem,
    PurchaseInvoice,
    SupplierPayment,
)
from app.models.inventory import (
    MovementType,
    ReferenceType,
    StockMovement,
    WarehouseInventory,
)
from app.models.document_sequence import DocumentType, DocumentSequence

__all__ = [
    # Procurement
    "POStatus",
    "GRNStatus",
    "InvoiceStatus",
    "PaymentStatus",
    "PaymentMethod",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "GoodsReceipt",
    "GoodsReceiptItem",
    "PurchaseInvoice",
    "SupplierPayment",
    # Inventory
    "MovementType",
    "ReferenceType",
    "StockMovement",
    "WarehouseInventory",
    # Numbering
    "DocumentType",
    "DocumentSequence",
]
