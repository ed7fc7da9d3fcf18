"""Ledger entry and ledger reporting schemas."""
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import computed_field

from gst_ledger.schemas.base import BaseRecordSchema, BaseResponseSchema
from gst_ledger.schemas.party import PartyType


OPENING_BALANCE = "OPENING_BALANCE"


class LedgerEntry(BaseRecordSchema):
    """
    Immutable, append-only record of one document's effect on a party.

    ``amount`` is the signed effect on the balance owed (positive increases
    what is owed). ``debit_amount``/``credit_amount`` present the same effect
    in the party's accounting polarity.
    """
    sequence: int
    party_id: uuid.UUID
    company_id: Optional[uuid.UUID] = None
    document_id: Optional[uuid.UUID] = None
    document_type: str  # DocumentType value or OPENING_BALANCE
    document_number: Optional[str] = None
    entry_date: date
    due_date: Optional[date] = None
    origin_document_id: Optional[uuid.UUID] = None
    debit_amount: Decimal = Decimal("0")
    credit_amount: Decimal = Decimal("0")
    amount: Decimal
    running_balance: Decimal
    narration: Optional[str] = None
    created_at: datetime


class BalanceSummary(BaseResponseSchema):
    """Replayed balance of a party as of a date."""
    party_id: uuid.UUID
    party_type: PartyType
    as_of: Optional[date] = None
    opening_balance: Decimal
    total_billed: Decimal
    total_paid: Decimal
    total_returned: Decimal
    total_adjusted: Decimal
    closing_balance: Decimal
    unallocated_payments: Decimal
    credit_limit: Decimal
    entry_count: int

    @computed_field
    @property
    def over_credit_limit(self) -> bool:
        """True when a credit limit is set and the balance owed exceeds it."""
        return self.credit_limit > 0 and self.closing_balance > self.credit_limit


class LedgerStatement(BaseResponseSchema):
    """Party statement for a date range."""
    party_id: uuid.UUID
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    balance_brought_forward: Decimal
    entries: List[LedgerEntry]
    total_debit: Decimal
    total_credit: Decimal
    closing_balance: Decimal


class AgingBucket(BaseResponseSchema):
    """Single aging bucket."""
    bucket: str  # "0-7", "8-30", "31-60", "61+"
    min_days: int
    max_days: Optional[int] = None
    amount: Decimal = Decimal("0")
    count: int = 0


class OverdueBill(BaseResponseSchema):
    """Outstanding bill or invoice past its due date."""
    document_id: uuid.UUID
    document_number: Optional[str] = None
    document_date: date
    due_date: date
    days_overdue: int
    total_amount: Decimal
    paid_amount: Decimal
    returned_amount: Decimal = Decimal("0")
    balance_amount: Decimal
    bucket: str


class OverdueExposure(BaseResponseSchema):
    """Overdue exposure of a party, grouped by aging bucket."""
    party_id: Optional[uuid.UUID] = None
    as_of: date
    total_overdue: Decimal
    buckets: List[AgingBucket]
    bills: List[OverdueBill]

    def bucket(self, label: str) -> AgingBucket:
        for b in self.buckets:
            if b.bucket == label:
                return b
        raise KeyError(label)
