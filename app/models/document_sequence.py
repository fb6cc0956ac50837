"""
Document Sequence Model for Atomic Number Generation

Numbers are continuous within a calendar year and restart at 1 each year.
Each tenant owns its own sequences.

DOCUMENT FORMATS:
━━━━━━━━━━━━━━━━
• PO:  PO-2026-001   (Purchase Order)
• GRN: GRN-2026-001  (Goods Receipt Note)
• INV: INV-2026-001  (Purchase Invoice)
• PAY: PAY-2026-001  (Supplier Payment)

The padding is a minimum width: sequence 1000 renders as PAY-2026-1000.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import String, Integer, DateTime, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class DocumentType(str, Enum):
    """Document types that use sequence numbering."""
    PURCHASE_ORDER = "PO"
    GOODS_RECEIPT_NOTE = "GRN"
    PURCHASE_INVOICE = "INV"
    SUPPLIER_PAYMENT = "PAY"


class DocumentSequence(Base):
    """
    Last issued sequence number per (tenant, document type, year).

    Example:
        document_type = "PAY"
        year = 2026
        current_number = 42
        → Next payment number: PAY-2026-043
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "document_type", "year",
            name="uq_document_sequence_tenant_type_year"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    document_type: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        comment="PO, GRN, INV, PAY"
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    current_number: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Last used sequence number"
    )
    padding_length: Mapped[int] = mapped_column(Integer, default=3, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def format_number(self, number: int) -> str:
        return f"{self.document_type}-{self.year}-{str(number).zfill(self.padding_length)}"

    def get_next_number(self) -> str:
        """
        Generate next document number.

        NOTE: This method increments current_number but does NOT
        commit to database. The caller must hold the row lock and
        handle the transaction.
        """
        self.current_number += 1
        return self.format_number(self.current_number)

    def preview_next_number(self) -> str:
        return self.format_number(self.current_number + 1)

    @staticmethod
    def parse_sequence(document_number: str) -> int:
        """Return the trailing sequence of a number like PAY-2026-007 (0 if malformed)."""
        tail = document_number.rsplit("-", 1)[-1]
        return int(tail) if tail.isdigit() else 0
