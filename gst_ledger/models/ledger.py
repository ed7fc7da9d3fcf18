"""Party ledger storage model.

One row per ledger entry, vendor and customer alike. Rows are inserted once
and never updated; ``(party_id, sequence)`` is unique so two writers that
computed against the same head cannot both append.
"""
import uuid
from datetime import datetime, date, timezone
from typing import Optional
from decimal import Decimal

from sqlalchemy import String, DateTime, Text, Numeric, Date, Integer, Uuid
from sqlalchemy import UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from gst_ledger.config import MONEY_SCALE
from gst_ledger.core.enum_utils import enum_comment
from gst_ledger.database import Base
from gst_ledger.schemas.document import DocumentType
from gst_ledger.schemas.ledger import OPENING_BALANCE


class PartyLedgerEntry(Base):
    """
    Party ledger for Accounts Payable / Accounts Receivable tracking.
    Tracks every posted document's effect on a vendor or customer balance.
    """
    __tablename__ = "party_ledger"
    __table_args__ = (
        UniqueConstraint("party_id", "sequence", name="uq_party_ledger_sequence"),
        Index("ix_party_ledger_date", "party_id", "entry_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )

    party_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    company_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    # Transaction Details
    document_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment=f"{OPENING_BALANCE}, {enum_comment(DocumentType)}"
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Reference Document
    document_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    document_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    origin_document_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        nullable=True,
        comment="Bill/invoice a return reverses"
    )

    # Amounts
    debit_amount: Mapped[Decimal] = mapped_column(Numeric(14, MONEY_SCALE), default=Decimal("0"))
    credit_amount: Mapped[Decimal] = mapped_column(Numeric(14, MONEY_SCALE), default=Decimal("0"))
    amount: Mapped[Decimal] = mapped_column(
        Numeric(14, MONEY_SCALE),
        nullable=False,
        comment="Signed effect on balance owed"
    )
    running_balance: Mapped[Decimal] = mapped_column(
        Numeric(14, MONEY_SCALE),
        nullable=False,
        comment="Balance after this transaction"
    )

    # Narration
    narration: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Audit
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<PartyLedgerEntry(party='{self.party_id}', seq={self.sequence}, type='{self.document_type}')>"
