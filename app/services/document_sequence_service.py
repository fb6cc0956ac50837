"""
Document Sequence Service for Atomic Number Generation

Format: {PREFIX}-{YEAR}-{SEQUENCE}, sequence zero-padded to 3 digits and
continuous per tenant within a calendar year.

USAGE:
    from app.services.document_sequence_service import DocumentSequenceService

    async def create_payment(db: AsyncSession, tenant_id):
        service = DocumentSequenceService(db, tenant_id)
        payment_number = await service.get_next_number("PAY")
        # Returns: PAY-2026-001

SUPPORTED DOCUMENT TYPES:
    PO  - Purchase Order
    GRN - Goods Receipt Note
    INV - Purchase Invoice
    PAY - Supplier Payment
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import ConflictError, ValidationError
from app.models.document_sequence import DocumentSequence, DocumentType
from app.models.purchase import PurchaseOrder, GoodsReceipt, PurchaseInvoice, SupplierPayment

logger = logging.getLogger(__name__)


# Column holding already-issued numbers per document type; a new sequence
# row starts after the highest number found there.
DOCUMENT_NUMBER_COLUMNS = {
    DocumentType.PURCHASE_ORDER.value: PurchaseOrder.po_number,
    DocumentType.GOODS_RECEIPT_NOTE.value: GoodsReceipt.grn_number,
    DocumentType.PURCHASE_INVOICE.value: PurchaseInvoice.invoice_number,
    DocumentType.SUPPLIER_PAYMENT.value: SupplierPayment.payment_number,
}


class DocumentSequenceService:
    """
    Service for generating atomic document numbers.

    Uses database-level locking (SELECT FOR UPDATE) on the sequence row so
    no two transactions can hand out the same number.
    """

    def __init__(self, db: AsyncSession, tenant_id: uuid.UUID):
        self.db = db
        self.tenant_id = tenant_id

    @staticmethod
    def _document_type(document_type: str) -> str:
        doc_type = str(getattr(document_type, "value", document_type)).upper()
        if doc_type not in DOCUMENT_NUMBER_COLUMNS:
            valid_types = ", ".join(DOCUMENT_NUMBER_COLUMNS)
            raise ValidationError(f"Invalid document type '{doc_type}'. Valid types: {valid_types}")
        return doc_type

    @staticmethod
    def current_year() -> int:
        return datetime.now(timezone.utc).year

    async def get_next_number(self, document_type: str, year: Optional[int] = None) -> str:
        """
        Get next document number with atomic increment.

        The sequence row stays locked until the surrounding transaction
        ends, so the number and the document carrying it commit together.

        Returns:
            Formatted document number, e.g., PAY-2026-001
        """
        doc_type = self._document_type(document_type)
        year = year or self.current_year()

        sequence = await self._get_or_create_sequence(doc_type, year)
        doc_number = sequence.get_next_number()
        await self.db.flush()

        logger.info(f"Allocated {doc_number} for tenant {self.tenant_id}")
        return doc_number

    async def preview_next_number(self, document_type: str, year: Optional[int] = None) -> str:
        """What the next number would be, without reserving it."""
        doc_type = self._document_type(document_type)
        year = year or self.current_year()

        sequence = await self._get_sequence(doc_type, year, lock=False)
        if sequence:
            return sequence.preview_next_number()

        highest = await self._highest_issued(doc_type, year)
        padding = settings.DOCUMENT_NUMBER_PADDING
        return f"{doc_type}-{year}-{str(highest + 1).zfill(padding)}"

    async def _get_sequence(self, doc_type: str, year: int, lock: bool) -> Optional[DocumentSequence]:
        stmt = select(DocumentSequence).where(
            DocumentSequence.tenant_id == self.tenant_id,
            DocumentSequence.document_type == doc_type,
            DocumentSequence.year == year,
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _highest_issued(self, doc_type: str, year: int) -> int:
        """Highest sequence already used in documents of this type and year."""
        column = DOCUMENT_NUMBER_COLUMNS[doc_type]
        model = column.class_
        result = await self.db.execute(
            select(column).where(
                model.tenant_id == self.tenant_id,
                column.like(f"{doc_type}-{year}-%"),
            )
        )
        return max((DocumentSequence.parse_sequence(number) for number in result.scalars()), default=0)

    async def _get_or_create_sequence(self, doc_type: str, year: int) -> DocumentSequence:
        """
        Get existing sequence with row lock, or create it.

        Two transactions may both find no row; the loser of the insert gets
        an IntegrityError inside its savepoint and locks the winner's row.
        """
        for attempt in range(1, settings.SEQUENCE_MAX_RETRIES + 1):
            sequence = await self._get_sequence(doc_type, year, lock=True)
            if sequence:
                return sequence

            sequence = DocumentSequence(
                id=uuid.uuid4(),
                tenant_id=self.tenant_id,
                document_type=doc_type,
                year=year,
                current_number=await self._highest_issued(doc_type, year),
                padding_length=settings.DOCUMENT_NUMBER_PADDING,
            )
            try:
                async with self.db.begin_nested():
                    self.db.add(sequence)
                    await self.db.flush()
            except IntegrityError:
                logger.info(f"{doc_type}-{year} sequence created concurrently (attempt {attempt}), retrying")
                continue

            return await self._get_sequence(doc_type, year, lock=True)

        raise ConflictError(f"Could not allocate a {doc_type} number, please retry")
