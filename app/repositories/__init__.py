from app.repositories.procurement import (
    ReceiptLine,
    PaymentLine,
    ReceiptSource,
    PaymentSource,
    ProcurementRepository,
)
from app.repositories.inventory import (
    StockKey,
    MovementFilter,
    MovementStore,
    SqlMovementStore,
)

__all__ = [
    "ReceiptLine",
    "PaymentLine",
    "ReceiptSource",
    "PaymentSource",
    "ProcurementRepository",
    "StockKey",
    "MovementFilter",
    "MovementStore",
    "SqlMovementStore",
]
