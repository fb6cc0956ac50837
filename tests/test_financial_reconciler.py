"""FinancialReconciler tests: payment bounds and invoice status derivation."""
import uuid
from decimal import Decimal

import pytest

from app.core.exceptions import ValidationError
from app.models.purchase import PurchaseInvoice
from app.repositories.procurement import PaymentLine
from app.services.financial_reconciler import FinancialReconciler, derive_invoice_status
from tests.fakes import FakePaymentSource


def make_invoice(total="1000.00", status="pending", paid="0.00"):
    return PurchaseInvoice(
        id=uuid.uuid4(),
        invoice_number="INV-2026-001",
        total_amount=Decimal(total),
        paid_amount=Decimal(paid),
        status=status,
    )


def payment(amount, status="completed", payment_id=None):
    return PaymentLine(payment_id=payment_id or uuid.uuid4(), amount=Decimal(amount), status=status)


# ======================
# Status derivation
# ======================

@pytest.mark.parametrize(
    "paid,current,expected",
    [
        ("0", "pending", "pending"),
        ("400", "pending", "partial"),
        ("1000", "partial", "paid"),
        ("1200", "partial", "paid"),
        ("0", "overdue", "pending"),
        ("400", "overdue", "partial"),
        ("1000", "cancelled", "cancelled"),
    ],
)
def test_derive_invoice_status(paid, current, expected):
    assert derive_invoice_status(Decimal("1000"), Decimal(paid), current) == expected


# ======================
# New payments
# ======================

async def test_payment_over_balance_is_rejected_with_remaining_balance():
    invoice = make_invoice()
    reconciler = FinancialReconciler(FakePaymentSource([payment("400")]))

    with pytest.raises(ValidationError) as exc_info:
        await reconciler.check_new_payment(invoice, Decimal("700"))

    assert exc_info.value.message == (
        "Payment amount (700.00) exceeds invoice balance (600.00). "
        "Total invoice amount: 1000.00, Already paid: 400.00"
    )


async def test_only_completed_payments_reduce_the_balance():
    invoice = make_invoice()
    reconciler = FinancialReconciler(
        FakePaymentSource([payment("400"), payment("500", status="pending"), payment("300", status="failed")])
    )
    assert await reconciler.check_new_payment(invoice, Decimal("600")) == Decimal("600.00")


async def test_fully_paid_invoice_rejects_payments():
    invoice = make_invoice()
    reconciler = FinancialReconciler(FakePaymentSource([payment("1000")]))
    with pytest.raises(ValidationError, match="already fully paid"):
        await reconciler.check_new_payment(invoice, Decimal("1"))


async def test_cancelled_invoice_rejects_payments():
    reconciler = FinancialReconciler(FakePaymentSource())
    with pytest.raises(ValidationError, match="cancelled invoice"):
        await reconciler.check_new_payment(make_invoice(status="cancelled"), Decimal("10"))


@pytest.mark.parametrize("amount", ["0", "-5"])
async def test_non_positive_payment_is_rejected(amount):
    reconciler = FinancialReconciler(FakePaymentSource())
    with pytest.raises(ValidationError, match="greater than 0"):
        await reconciler.check_new_payment(make_invoice(), Decimal(amount))


# ======================
# Payment updates
# ======================

async def test_update_excludes_the_payment_being_edited():
    edited = uuid.uuid4()
    invoice = make_invoice()
    reconciler = FinancialReconciler(
        FakePaymentSource([payment("400"), payment("300", payment_id=edited)])
    )

    assert await reconciler.check_payment_update(invoice, edited, Decimal("600")) == Decimal("600.00")

    with pytest.raises(ValidationError) as exc_info:
        await reconciler.check_payment_update(invoice, edited, Decimal("601"))
    assert "Already paid (excluding this payment): 400.00" in exc_info.value.message


# ======================
# Recompute
# ======================

async def test_recompute_overwrites_stale_paid_amount():
    invoice = make_invoice(paid="999.00", status="paid")
    reconciler = FinancialReconciler(
        FakePaymentSource([payment("250"), payment("150"), payment("100", status="cancelled")])
    )

    await reconciler.recompute(invoice)

    assert invoice.paid_amount == Decimal("400.00")
    assert invoice.status == "partial"


async def test_recompute_keeps_cancelled_invoices_cancelled():
    invoice = make_invoice(status="cancelled")
    reconciler = FinancialReconciler(FakePaymentSource([payment("1000")]))

    await reconciler.recompute(invoice)

    assert invoice.status == "cancelled"
    assert invoice.paid_amount == Decimal("1000.00")
