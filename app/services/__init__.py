# Services module
from app.services.status_transitions import EntityKind, StatusTransitionValidator, status_validator
from app.services.quantity_reconciler import QuantityReconciler
from app.services.financial_reconciler import FinancialReconciler
from app.services.stock_ledger import StockLedger
from app.services.inventory_orchestrator import InventoryOrchestrator
from app.services.document_sequence_service import DocumentSequenceService

# Procure-to-pay
from app.services.procurement_service import ProcurementService
from app.services.payables_service import PayablesService

__all__ = [
    "EntityKind",
    "StatusTransitionValidator",
    "status_validator",
    "QuantityReconciler",
    "FinancialReconciler",
    "StockLedger",
    "InventoryOrchestrator",
    "DocumentSequenceService",
    # Procure-to-pay
    "ProcurementService",
    "PayablesService",
]
