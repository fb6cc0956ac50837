"""State machine tests for PO, GRN, invoice and payment statuses."""
import pytest

from app.core.exceptions import ValidationError
from app.models.purchase import GRNStatus, InvoiceStatus, PaymentStatus, POStatus
from app.services.status_transitions import (
    STATUS_ENUMS,
    TRANSITION_TABLES,
    EntityKind,
    StatusTransitionValidator,
)


@pytest.fixture
def validator():
    return StatusTransitionValidator()


# ======================
# Table shape
# ======================

@pytest.mark.parametrize("kind", list(EntityKind))
def test_every_status_has_a_row(kind):
    assert set(TRANSITION_TABLES[kind]) == {member.value for member in STATUS_ENUMS[kind]}


@pytest.mark.parametrize(
    "kind,terminal",
    [
        (EntityKind.PURCHASE_ORDER, {"received", "cancelled"}),
        (EntityKind.GOODS_RECEIPT, {"rejected", "completed"}),
        (EntityKind.PURCHASE_INVOICE, {"paid", "cancelled"}),
        (EntityKind.SUPPLIER_PAYMENT, {"completed", "cancelled"}),
    ],
)
def test_terminal_states(validator, kind, terminal):
    found = {status for status in validator.statuses(kind) if validator.is_terminal(kind, status)}
    assert found == terminal


# ======================
# Purchase orders
# ======================

def test_po_happy_path(validator):
    path = ["draft", "pending", "approved", "ordered", "partially_received", "received"]
    for current, nxt in zip(path, path[1:]):
        validator.validate(EntityKind.PURCHASE_ORDER, current, nxt)


def test_po_cannot_skip_approval(validator):
    with pytest.raises(ValidationError) as exc_info:
        validator.validate(EntityKind.PURCHASE_ORDER, "draft", "approved")
    assert "from 'draft' to 'approved'" in exc_info.value.message
    assert "Allowed transitions: pending, cancelled" in exc_info.value.message


def test_received_po_reports_terminal_state(validator):
    with pytest.raises(ValidationError) as exc_info:
        validator.validate(EntityKind.PURCHASE_ORDER, POStatus.RECEIVED, "pending")
    assert exc_info.value.message == (
        "Invalid status transition: Cannot change PO status from 'received' to 'pending'. "
        "Allowed transitions: none (terminal state)"
    )
    assert exc_info.value.details["allowed_transitions"] == []


def test_same_status_is_rejected(validator):
    with pytest.raises(ValidationError):
        validator.validate(EntityKind.PURCHASE_ORDER, "pending", "pending")


def test_unknown_status_lists_valid_ones(validator):
    with pytest.raises(ValidationError) as exc_info:
        validator.validate(EntityKind.PURCHASE_ORDER, "draft", "shipped")
    assert "Invalid PO status 'shipped'" in exc_info.value.message
    assert "partially_received" in exc_info.value.message


# ======================
# GRN / invoice / payment
# ======================

def test_grn_must_be_approved_before_completion(validator):
    assert not validator.can_transition(EntityKind.GOODS_RECEIPT, "pending", "completed")
    assert not validator.can_transition(EntityKind.GOODS_RECEIPT, "inspected", "completed")
    assert validator.can_transition(EntityKind.GOODS_RECEIPT, GRNStatus.APPROVED, GRNStatus.COMPLETED.value)


def test_rejected_grn_never_reopens(validator):
    assert validator.allowed_transitions(EntityKind.GOODS_RECEIPT, "rejected") == []


def test_overdue_invoice_can_still_be_paid(validator):
    validator.validate(EntityKind.PURCHASE_INVOICE, InvoiceStatus.OVERDUE, InvoiceStatus.PAID)
    validator.validate(EntityKind.PURCHASE_INVOICE, "overdue", "partial")


def test_failed_payment_can_retry(validator):
    assert validator.allowed_transitions(EntityKind.SUPPLIER_PAYMENT, "failed") == [
        "pending", "processing", "cancelled",
    ]


def test_pending_to_completed_requires_admin(validator):
    with pytest.raises(ValidationError) as exc_info:
        validator.validate(EntityKind.SUPPLIER_PAYMENT, PaymentStatus.PENDING, PaymentStatus.COMPLETED)
    assert "Allowed transitions: processing, cancelled" in exc_info.value.message

    validator.validate(
        EntityKind.SUPPLIER_PAYMENT, PaymentStatus.PENDING, PaymentStatus.COMPLETED, is_admin=True
    )


def test_admin_bypass_is_limited_to_its_edge(validator):
    with pytest.raises(ValidationError):
        validator.validate(EntityKind.SUPPLIER_PAYMENT, "completed", "pending", is_admin=True)
    with pytest.raises(ValidationError):
        validator.validate(EntityKind.PURCHASE_ORDER, "draft", "received", is_admin=True)
