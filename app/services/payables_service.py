"""Payables Service: purchase invoices and supplier payments.

Payment writes lock the invoice row, check the amount against the balance
recomputed from completed payments, write, then recompute the invoice's
paid_amount and status from the payment records.
"""
import logging
import uuid
from datetime import date, timedelta
from typing import List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.tenant_context import RequestContext
from app.models.document_sequence import DocumentType
from app.models.purchase import (
    GRNStatus,
    InvoiceStatus,
    PaymentStatus,
    PurchaseInvoice,
    SupplierPayment,
)
from app.repositories.procurement import ProcurementRepository
from app.schemas.purchase import (
    PurchaseInvoiceCreate,
    PurchaseInvoiceUpdate,
    SupplierPaymentCreate,
    SupplierPaymentUpdate,
)
from app.services.document_sequence_service import DocumentSequenceService
from app.services.financial_reconciler import FinancialReconciler, to_money
from app.services.status_transitions import EntityKind, status_validator

logger = logging.getLogger(__name__)

# Invoice statuses that must agree with the recorded payments when set by hand
PAYMENT_DERIVED_STATUSES = (
    InvoiceStatus.PENDING.value,
    InvoiceStatus.PARTIAL.value,
    InvoiceStatus.PAID.value,
)


class PayablesService:
    """Service for purchase invoice and supplier payment operations."""

    def __init__(self, db: AsyncSession, context: RequestContext):
        self.db = db
        self.context = context
        self.repo = ProcurementRepository(db, context.tenant_id)
        self.finance = FinancialReconciler(self.repo)
        self.sequences = DocumentSequenceService(db, context.tenant_id)
        self.validator = status_validator

    # ==================== Purchase Invoices ====================

    async def get_invoice(self, invoice_id: uuid.UUID, lock: bool = False) -> PurchaseInvoice:
        invoice = await self.repo.get_invoice(invoice_id, lock=lock)
        if not invoice:
            raise NotFoundError.for_entity("Purchase invoice", invoice_id)
        return invoice

    async def list_invoices(
        self,
        status: Optional[str] = None,
        supplier_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[PurchaseInvoice], int]:
        return await self.repo.list_invoices(status, supplier_id, skip, limit)

    async def create_purchase_invoice(self, data: PurchaseInvoiceCreate) -> PurchaseInvoice:
        """
        Bill a completed GRN.

        Raises:
            NotFoundError: GRN missing
            ValidationError: GRN not completed, or amounts out of bounds
            ConflictError: The GRN already has an invoice
        """
        grn = await self.repo.get_goods_receipt(data.goods_receipt_id, lock=True)
        if not grn:
            raise NotFoundError.for_entity("Goods receipt", data.goods_receipt_id)
        if grn.status != GRNStatus.COMPLETED.value:
            raise ValidationError(
                f"GRN must be 'completed' before creating an invoice. Current status: {grn.status}"
            )

        existing = await self.repo.get_invoice_for_goods_receipt(grn.id)
        if existing:
            raise ConflictError(f"Invoice {existing.invoice_number} already exists for GRN {grn.grn_number}")

        po = await self.repo.get_purchase_order(grn.purchase_order_id)

        grn_amount = to_money(grn.total_received_amount)
        tax = to_money(data.tax_amount)
        discount = to_money(data.discount_amount)
        if data.subtotal is not None:
            subtotal = to_money(data.subtotal)
        elif data.total_amount is not None:
            subtotal = to_money(data.total_amount) - tax + discount
        else:
            subtotal = grn_amount

        if subtotal < 0:
            raise ValidationError(f"Invoice subtotal cannot be negative ({subtotal})")

        ceiling = to_money(grn_amount * settings.invoice_subtotal_ceiling_factor)
        if grn_amount > 0 and subtotal > ceiling:
            raise ValidationError(
                f"Invoice subtotal ({subtotal}) significantly exceeds GRN received amount ({grn_amount}). "
                f"Maximum allowed: {ceiling}"
            )

        total = subtotal + tax - discount
        if data.subtotal is not None and data.total_amount is not None and to_money(data.total_amount) != total:
            raise ValidationError(
                f"Total amount ({to_money(data.total_amount)}) does not equal "
                f"subtotal + tax - discount ({total})"
            )
        if total <= 0:
            raise ValidationError("Invoice total must be greater than 0")

        invoice_date = data.invoice_date or date.today()
        due_date = data.due_date or invoice_date + timedelta(days=settings.INVOICE_DUE_DAYS)
        if due_date < invoice_date:
            raise ValidationError("Due date cannot be before the invoice date")

        invoice_number = await self.sequences.get_next_number(DocumentType.PURCHASE_INVOICE)
        invoice = PurchaseInvoice(
            id=uuid.uuid4(),
            tenant_id=self.context.tenant_id,
            invoice_number=invoice_number,
            supplier_invoice_number=data.supplier_invoice_number,
            goods_receipt_id=grn.id,
            purchase_order_id=grn.purchase_order_id,
            supplier_id=po.supplier_id,
            subtotal=subtotal,
            tax_amount=tax,
            discount_amount=discount,
            total_amount=total,
            paid_amount=to_money(0),
            status=InvoiceStatus.PENDING.value,
            invoice_date=invoice_date,
            due_date=due_date,
            notes=data.notes,
            created_by=self.context.user_id,
        )
        await self.repo.add(invoice)

        logger.info(f"Created {invoice_number} for {grn.grn_number}: total {total}")
        return invoice

    async def update_purchase_invoice(self, invoice_id: uuid.UUID, data: PurchaseInvoiceUpdate) -> PurchaseInvoice:
        invoice = await self.get_invoice(invoice_id, lock=True)

        if data.status is not None:
            self.validator.validate(EntityKind.PURCHASE_INVOICE, invoice.status, data.status)
            if data.status in PAYMENT_DERIVED_STATUSES:
                expected = await self.finance.expected_status(invoice)
                if expected != data.status:
                    paid = await self.finance.paid_total(invoice.id)
                    raise ValidationError(
                        f"Cannot mark invoice as '{data.status}': completed payments total "
                        f"{paid} of {to_money(invoice.total_amount)}"
                    )
            logger.info(f"Invoice {invoice.invoice_number}: {invoice.status} -> {data.status}")
            invoice.status = data.status

        if data.supplier_invoice_number is not None:
            invoice.supplier_invoice_number = data.supplier_invoice_number
        if data.due_date is not None:
            if data.due_date < invoice.invoice_date:
                raise ValidationError("Due date cannot be before the invoice date")
            invoice.due_date = data.due_date
        if data.notes is not None:
            invoice.notes = data.notes

        await self.repo.flush()
        return invoice

    # ==================== Supplier Payments ====================

    async def get_payment(self, payment_id: uuid.UUID, lock: bool = False) -> SupplierPayment:
        payment = await self.repo.get_payment(payment_id, lock=lock)
        if not payment:
            raise NotFoundError.for_entity("Supplier payment", payment_id)
        return payment

    async def list_payments(
        self,
        purchase_invoice_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[SupplierPayment], int]:
        return await self.repo.list_payments(purchase_invoice_id, status, skip, limit)

    async def create_supplier_payment(self, data: SupplierPaymentCreate) -> SupplierPayment:
        """
        Record a pending payment against an invoice.

        Raises:
            NotFoundError: Invoice missing
            ValidationError: Amount out of bounds, cancelled or fully paid invoice
        """
        invoice = await self.get_invoice(data.purchase_invoice_id, lock=True)
        await self.finance.check_new_payment(invoice, data.amount)

        payment_number = await self.sequences.get_next_number(DocumentType.SUPPLIER_PAYMENT)
        payment = SupplierPayment(
            id=uuid.uuid4(),
            tenant_id=self.context.tenant_id,
            payment_number=payment_number,
            purchase_invoice_id=invoice.id,
            supplier_id=data.supplier_id or invoice.supplier_id,
            amount=to_money(data.amount),
            payment_method=data.payment_method.value,
            reference_number=data.reference_number,
            status=PaymentStatus.PENDING.value,
            notes=data.notes,
            created_by=self.context.user_id,
        )
        if data.payment_date:
            payment.payment_date = data.payment_date
        await self.repo.add(payment)

        await self.finance.recompute(invoice)
        await self.repo.flush()

        logger.info(f"Recorded {payment_number} of {payment.amount} against {invoice.invoice_number}")
        return payment

    async def update_supplier_payment(self, payment_id: uuid.UUID, data: SupplierPaymentUpdate) -> SupplierPayment:
        """
        Change amount and/or status of a payment.

        A new amount (and any move into completed) is bounded by the invoice
        total minus the other completed payments.
        """
        payment = await self.get_payment(payment_id)
        # Lock order: invoice first, then the payment itself
        invoice = await self.get_invoice(payment.purchase_invoice_id, lock=True)
        payment = await self.get_payment(payment_id, lock=True)

        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise ValidationError("Cannot update payment for a cancelled invoice")

        if data.status is not None:
            self.validator.validate(
                EntityKind.SUPPLIER_PAYMENT,
                payment.status,
                data.status,
                is_admin=self.context.is_admin,
            )

        new_amount = to_money(data.amount) if data.amount is not None else to_money(payment.amount)
        amount_changed = data.amount is not None and new_amount != to_money(payment.amount)
        if amount_changed and self.validator.is_terminal(EntityKind.SUPPLIER_PAYMENT, payment.status):
            raise ValidationError(f"Cannot change the amount of a '{payment.status}' payment")

        completing = data.status == PaymentStatus.COMPLETED.value
        if amount_changed or completing:
            await self.finance.check_payment_update(invoice, payment.id, new_amount)

        if amount_changed:
            logger.info(f"{payment.payment_number}: amount {payment.amount} -> {new_amount}")
            payment.amount = new_amount
        if data.status is not None:
            logger.info(f"{payment.payment_number}: {payment.status} -> {data.status}")
            payment.status = data.status
        if data.payment_method is not None:
            payment.payment_method = data.payment_method.value
        if data.payment_date is not None:
            payment.payment_date = data.payment_date
        if data.reference_number is not None:
            payment.reference_number = data.reference_number
        if data.notes is not None:
            payment.notes = data.notes

        await self.repo.flush()
        await self.finance.recompute(invoice)
        await self.repo.flush()
        return payment
