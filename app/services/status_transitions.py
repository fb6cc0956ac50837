"""
Status State Machines

This module is the SINGLE SOURCE OF TRUTH for status transitions of
purchase orders, goods receipts, purchase invoices and supplier payments.
Every status change must pass StatusTransitionValidator.validate() before
it is written.

Lifecycles:
    PO:       draft → pending → approved → ordered → partially_received → received
    GRN:      pending → inspected → approved → completed
    Invoice:  pending → partial → paid   (overdue on the side)
    Payment:  pending → processing → completed   (failed can retry)

Any non-terminal state may also be cancelled (PO, invoice, payment) or
rejected (GRN).
"""

from enum import Enum
from typing import Dict, FrozenSet, List, Tuple, Type

from app.core.exceptions import ValidationError
from app.models.purchase import POStatus, GRNStatus, InvoiceStatus, PaymentStatus


class EntityKind(str, Enum):
    """Entity kinds that own a state machine."""
    PURCHASE_ORDER = "purchase_order"
    GOODS_RECEIPT = "goods_receipt"
    PURCHASE_INVOICE = "purchase_invoice"
    SUPPLIER_PAYMENT = "supplier_payment"

    @property
    def label(self) -> str:
        return ENTITY_LABELS[self]


ENTITY_LABELS: Dict[EntityKind, str] = {
    EntityKind.PURCHASE_ORDER: "PO",
    EntityKind.GOODS_RECEIPT: "GRN",
    EntityKind.PURCHASE_INVOICE: "invoice",
    EntityKind.SUPPLIER_PAYMENT: "payment",
}

STATUS_ENUMS: Dict[EntityKind, Type[Enum]] = {
    EntityKind.PURCHASE_ORDER: POStatus,
    EntityKind.GOODS_RECEIPT: GRNStatus,
    EntityKind.PURCHASE_INVOICE: InvoiceStatus,
    EntityKind.SUPPLIER_PAYMENT: PaymentStatus,
}


# =============================================================================
# TRANSITION RULES
# =============================================================================

# Format: current_status -> (allowed next statuses)
PO_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    POStatus.DRAFT: (POStatus.PENDING, POStatus.CANCELLED),
    POStatus.PENDING: (POStatus.APPROVED, POStatus.CANCELLED),
    POStatus.APPROVED: (POStatus.ORDERED, POStatus.CANCELLED),
    POStatus.ORDERED: (POStatus.PARTIALLY_RECEIVED, POStatus.RECEIVED, POStatus.CANCELLED),
    POStatus.PARTIALLY_RECEIVED: (POStatus.RECEIVED, POStatus.CANCELLED),
    POStatus.RECEIVED: (),
    POStatus.CANCELLED: (),
}

GRN_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    GRNStatus.PENDING: (GRNStatus.INSPECTED, GRNStatus.REJECTED),
    GRNStatus.INSPECTED: (GRNStatus.APPROVED, GRNStatus.REJECTED),
    GRNStatus.APPROVED: (GRNStatus.COMPLETED, GRNStatus.REJECTED),
    GRNStatus.REJECTED: (),
    GRNStatus.COMPLETED: (),
}

INVOICE_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    InvoiceStatus.PENDING: (
        InvoiceStatus.PARTIAL, InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED,
    ),
    InvoiceStatus.PARTIAL: (InvoiceStatus.PAID, InvoiceStatus.OVERDUE, InvoiceStatus.CANCELLED),
    InvoiceStatus.OVERDUE: (InvoiceStatus.PAID, InvoiceStatus.PARTIAL, InvoiceStatus.CANCELLED),
    InvoiceStatus.PAID: (),
    InvoiceStatus.CANCELLED: (),
}

PAYMENT_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    PaymentStatus.PENDING: (PaymentStatus.PROCESSING, PaymentStatus.CANCELLED),
    PaymentStatus.PROCESSING: (PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.CANCELLED),
    PaymentStatus.FAILED: (PaymentStatus.PENDING, PaymentStatus.PROCESSING, PaymentStatus.CANCELLED),
    PaymentStatus.COMPLETED: (),
    PaymentStatus.CANCELLED: (),
}

# Extra edges open only to administrators
ADMIN_TRANSITIONS: Dict[EntityKind, Dict[str, Tuple[str, ...]]] = {
    EntityKind.SUPPLIER_PAYMENT: {
        PaymentStatus.PENDING: (PaymentStatus.COMPLETED,),
    },
}


def _value(status) -> str:
    return str(getattr(status, "value", status))


def _normalize(table: Dict) -> Dict[str, Tuple[str, ...]]:
    return {
        _value(current): tuple(_value(s) for s in targets)
        for current, targets in table.items()
    }


TRANSITION_TABLES: Dict[EntityKind, Dict[str, Tuple[str, ...]]] = {
    EntityKind.PURCHASE_ORDER: _normalize(PO_TRANSITIONS),
    EntityKind.GOODS_RECEIPT: _normalize(GRN_TRANSITIONS),
    EntityKind.PURCHASE_INVOICE: _normalize(INVOICE_TRANSITIONS),
    EntityKind.SUPPLIER_PAYMENT: _normalize(PAYMENT_TRANSITIONS),
}


def _check_tables_exhaustive() -> None:
    """Every status of every kind must have a row, and every target must be a known status."""
    for kind, table in TRANSITION_TABLES.items():
        statuses = {member.value for member in STATUS_ENUMS[kind]}
        missing = statuses - set(table)
        if missing:
            raise RuntimeError(f"{kind.label} transition table missing statuses: {sorted(missing)}")
        for current, targets in table.items():
            unknown = set(targets) - statuses
            if unknown:
                raise RuntimeError(
                    f"{kind.label} transition table has unknown targets from '{current}': {sorted(unknown)}"
                )


_check_tables_exhaustive()


# =============================================================================
# VALIDATOR
# =============================================================================

class StatusTransitionValidator:
    """
    Finite-state-machine gate, one transition table per entity kind.

    Pure decision logic: no storage access, no side effects.
    """

    def __init__(
        self,
        tables: Dict[EntityKind, Dict[str, Tuple[str, ...]]] = None,
        admin_transitions: Dict[EntityKind, Dict[str, Tuple[str, ...]]] = None,
    ):
        self.tables = tables or TRANSITION_TABLES
        self.admin_transitions = _normalize_admin(admin_transitions or ADMIN_TRANSITIONS)

    def statuses(self, kind: EntityKind) -> FrozenSet[str]:
        return frozenset(self.tables[kind])

    def allowed_transitions(self, kind: EntityKind, current: str, is_admin: bool = False) -> List[str]:
        """Statuses reachable from current in one step, in table order."""
        current = _value(current)
        allowed = list(self.tables[kind].get(current, ()))
        if is_admin:
            for target in self.admin_transitions.get(kind, {}).get(current, ()):
                if target not in allowed:
                    allowed.append(target)
        return allowed

    def can_transition(self, kind: EntityKind, current: str, requested: str, is_admin: bool = False) -> bool:
        return _value(requested) in self.allowed_transitions(kind, current, is_admin)

    def is_terminal(self, kind: EntityKind, status: str) -> bool:
        status = _value(status)
        return status in self.tables[kind] and not self.tables[kind][status]

    def validate(self, kind: EntityKind, current: str, requested: str, is_admin: bool = False) -> None:
        """
        Raise ValidationError unless current → requested is allowed.

        The message names both statuses and the full allowed set for the
        current status.
        """
        current = _value(current)
        requested = _value(requested)
        known = self.tables[kind]
        if requested not in known:
            raise ValidationError(
                f"Invalid {kind.label} status '{requested}'. "
                f"Valid statuses: {', '.join(known)}"
            )
        if current not in known:
            raise ValidationError(f"{kind.label} has unknown current status '{current}'")

        allowed = self.allowed_transitions(kind, current, is_admin)
        if requested not in allowed:
            allowed_text = ", ".join(allowed) if allowed else "none (terminal state)"
            raise ValidationError(
                f"Invalid status transition: Cannot change {kind.label} status from "
                f"'{current}' to '{requested}'. Allowed transitions: {allowed_text}",
                details={
                    "current_status": current,
                    "requested_status": requested,
                    "allowed_transitions": allowed,
                },
            )


def _normalize_admin(admin: Dict[EntityKind, Dict]) -> Dict[EntityKind, Dict[str, Tuple[str, ...]]]:
    return {kind: _normalize(table) for kind, table in admin.items()}


status_validator = StatusTransitionValidator()
