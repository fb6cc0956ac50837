"""
Invoice balance bookkeeping.

paid_amount on an invoice is always the sum of its completed payments.
It is recomputed from the payment records after every payment change and
never incremented in place. A cancelled invoice keeps its status forever.

Callers hold the invoice row lock around check + write + recompute.
"""
import logging
import uuid
from decimal import Decimal
from typing import Optional

from app.core.exceptions import ValidationError
from app.models.purchase import InvoiceStatus, PaymentStatus, PurchaseInvoice
from app.repositories.procurement import PaymentSource

logger = logging.getLogger(__name__)

MONEY = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(MONEY)


def derive_invoice_status(total_amount: Decimal, paid_amount: Decimal, current_status: str) -> str:
    """
    Status implied by the paid amount.

    paid ≥ total → paid, 0 < paid < total → partial, otherwise pending.
    A cancelled invoice stays cancelled.
    """
    if current_status == InvoiceStatus.CANCELLED.value:
        return current_status
    if paid_amount >= total_amount:
        return InvoiceStatus.PAID.value
    if paid_amount > 0:
        return InvoiceStatus.PARTIAL.value
    return InvoiceStatus.PENDING.value


class FinancialReconciler:
    """Payment bounds and invoice paid/status derivation."""

    def __init__(self, source: PaymentSource):
        self.source = source

    async def paid_total(self, invoice_id: uuid.UUID, exclude_payment_id: Optional[uuid.UUID] = None) -> Decimal:
        """Sum of completed payments on the invoice, optionally leaving one out."""
        lines = await self.source.payment_lines(invoice_id)
        total = sum(
            (
                to_money(line.amount)
                for line in lines
                if line.status == PaymentStatus.COMPLETED.value and line.payment_id != exclude_payment_id
            ),
            Decimal("0.00"),
        )
        return to_money(total)

    async def check_new_payment(self, invoice: PurchaseInvoice, amount: Decimal) -> Decimal:
        """
        Validate a new payment amount against the invoice balance.

        Returns:
            The remaining balance before this payment

        Raises:
            ValidationError: Non-positive amount, cancelled or fully paid
                invoice, or amount above the remaining balance
        """
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than 0")

        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise ValidationError("Cannot create payment for a cancelled invoice")

        total = to_money(invoice.total_amount)
        paid = await self.paid_total(invoice.id)
        if invoice.status == InvoiceStatus.PAID.value or paid >= total:
            raise ValidationError("Invoice is already fully paid")

        balance = total - paid
        if amount > balance:
            raise ValidationError(
                f"Payment amount ({amount}) exceeds invoice balance ({balance}). "
                f"Total invoice amount: {total}, Already paid: {paid}",
                details={"amount": str(amount), "balance": str(balance), "total": str(total), "paid": str(paid)},
            )
        return balance

    async def check_payment_update(self, invoice: PurchaseInvoice, payment_id: uuid.UUID, amount: Decimal) -> Decimal:
        """
        Validate an edited payment amount.

        The already-paid figure excludes the payment being edited.

        Returns:
            The balance available to this payment
        """
        amount = to_money(amount)
        if amount <= 0:
            raise ValidationError("Payment amount must be greater than 0")

        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise ValidationError("Cannot update payment for a cancelled invoice")

        total = to_money(invoice.total_amount)
        paid_others = await self.paid_total(invoice.id, exclude_payment_id=payment_id)
        balance = total - paid_others
        if amount > balance:
            raise ValidationError(
                f"Payment amount ({amount}) exceeds invoice balance ({balance}). "
                f"Total invoice amount: {total}, Already paid (excluding this payment): {paid_others}",
                details={
                    "amount": str(amount),
                    "balance": str(balance),
                    "total": str(total),
                    "paid_excluding_payment": str(paid_others),
                },
            )
        return balance

    async def recompute(self, invoice: PurchaseInvoice) -> PurchaseInvoice:
        """Rewrite paid_amount and the derived status from completed payments."""
        paid = await self.paid_total(invoice.id)
        total = to_money(invoice.total_amount)
        new_status = derive_invoice_status(total, paid, invoice.status)

        if invoice.status != new_status or to_money(invoice.paid_amount) != paid:
            logger.info(
                f"Invoice {invoice.id}: paid {to_money(invoice.paid_amount)} -> {paid}, "
                f"status {invoice.status} -> {new_status}"
            )
        invoice.paid_amount = paid
        invoice.status = new_status
        return invoice

    async def expected_status(self, invoice: PurchaseInvoice) -> str:
        """Status the invoice should carry given its completed payments."""
        paid = await self.paid_total(invoice.id)
        return derive_invoice_status(to_money(invoice.total_amount), paid, invoice.status)
