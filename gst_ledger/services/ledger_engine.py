"""
Party Ledger Engine

Maintains one linear, append-only ledger per business party (vendor or
customer). Every balance change goes through ``append_entry``; nothing else
writes a running balance.

Balance convention: ``amount`` and ``running_balance`` are expressed as the
balance owed on the party's natural side:
- Vendor (payable):    positive = we owe the vendor
- Customer (receivable): positive = the customer owes us

| Document                                  | Effect on balance owed |
|-------------------------------------------|------------------------|
| Opening balance                           | sets initial balance   |
| BILL / INVOICE                            | + grand total          |
| PAYMENT                                   | - amount               |
| PURCHASE_RETURN / SALES_RETURN / CREDIT_NOTE | - grand total       |
| ADJUSTMENT                                | + signed amount        |

Concurrency: every read-then-append sequence for a party runs under that
party's lock, and callers holding a stale view can pass ``expected_sequence``
to get a ConcurrentModificationError instead of a corrupted ledger.
"""
import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional
from uuid import UUID

from gst_ledger.config import settings
from gst_ledger.core.exceptions import (
    ConcurrentModificationError, NotPostableError, OverReturnError, ValidationError,
)
from gst_ledger.core.enum_utils import get_enum_value
from gst_ledger.core.money import ZERO, ensure_unit_multiple
from gst_ledger.schemas.document import (
    Document, DocumentType, ReturnResult, BILLING_TYPES, RETURN_TYPES,
)
from gst_ledger.schemas.ledger import (
    OPENING_BALANCE, AgingBucket, BalanceSummary, LedgerEntry, LedgerStatement,
    OverdueBill, OverdueExposure,
)
from gst_ledger.schemas.party import Party, PartyType
from gst_ledger.services.document_state_machine import ensure_postable
from gst_ledger.services.payment_allocator import PaymentAllocator
from gst_ledger.services.return_reconciler import ReturnReconciler, returned_quantities


logger = logging.getLogger(__name__)


# Document types each party type may post
PARTY_DOCUMENT_TYPES = {
    PartyType.VENDOR: {
        DocumentType.BILL,
        DocumentType.PAYMENT,
        DocumentType.PURCHASE_RETURN,
        DocumentType.ADJUSTMENT,
    },
    PartyType.CUSTOMER: {
        DocumentType.INVOICE,
        DocumentType.PAYMENT,
        DocumentType.SALES_RETURN,
        DocumentType.CREDIT_NOTE,
        DocumentType.ADJUSTMENT,
    },
}

# Returns that must reference an origin document (a credit note may stand alone)
ORIGIN_REQUIRED = {DocumentType.PURCHASE_RETURN, DocumentType.SALES_RETURN}


# =============================================================================
# AGING
# =============================================================================

def aging_buckets(limits: Optional[List[int]] = None) -> List[AgingBucket]:
    """
    Build empty aging buckets from upper day limits.

    [7, 30, 60] -> "0-7", "8-30", "31-60", "61+"
    """
    limits = settings.AGING_BUCKET_LIMITS if limits is None else limits
    buckets = []
    lower = 0
    for upper in limits:
        buckets.append(AgingBucket(bucket=f"{lower}-{upper}", min_days=lower, max_days=upper))
        lower = upper + 1
    buckets.append(AgingBucket(bucket=f"{lower}+", min_days=lower, max_days=None))
    return buckets


def effective_due_date(bill: Document, payment_terms_days: int = 0) -> date:
    """Explicit due date, or document date plus the party's payment terms."""
    return bill.due_date or bill.document_date + timedelta(days=payment_terms_days)


def classify_overdue(
    bills: Iterable[Document],
    today: date,
    payment_terms_days: int = 0,
    bucket_limits: Optional[List[int]] = None,
    party_id: Optional[UUID] = None,
) -> OverdueExposure:
    """
    Group unsettled bills/invoices past their due date into aging buckets.

    A bill is overdue when its due date is before ``today`` and its balance
    (total - paid - returned) is positive.
    """
    buckets = aging_buckets(bucket_limits)
    overdue: List[OverdueBill] = []

    for bill in bills:
        if bill.document_type not in BILLING_TYPES or bill.total_amount is None:
            continue
        outstanding = bill.balance_amount
        if outstanding <= ZERO:
            continue
        due = effective_due_date(bill, payment_terms_days)
        if due >= today:
            continue

        days_overdue = (today - due).days
        index = next(
            i for i, b in enumerate(buckets)
            if b.max_days is None or days_overdue <= b.max_days
        )
        bucket = buckets[index]
        buckets[index] = bucket.model_copy(update={
            "amount": bucket.amount + outstanding,
            "count": bucket.count + 1,
        })
        overdue.append(OverdueBill(
            document_id=bill.id,
            document_number=bill.document_number,
            document_date=bill.document_date,
            due_date=due,
            days_overdue=days_overdue,
            total_amount=bill.total_amount,
            paid_amount=bill.paid_amount,
            returned_amount=bill.returned_amount,
            balance_amount=outstanding,
            bucket=bucket.bucket,
        ))

    # Oldest first
    overdue.sort(key=lambda b: b.days_overdue, reverse=True)

    return OverdueExposure(
        party_id=party_id,
        as_of=today,
        total_overdue=sum((b.amount for b in buckets), ZERO),
        buckets=buckets,
        bills=overdue,
    )


# =============================================================================
# LEDGER ENGINE
# =============================================================================

@dataclass
class _PartyLedger:
    party: Party
    entries: List[LedgerEntry] = field(default_factory=list)
    # POSTED documents by id; bills carry their current paid and returned amounts
    documents: Dict[UUID, Document] = field(default_factory=dict)

    @property
    def head(self) -> LedgerEntry:
        return self.entries[-1]


class LedgerEngine:
    """
    In-memory, append-only ledger for every registered party.

    The engine holds already fetched records; it performs no I/O. Persist the
    returned entries with LedgerRepository.
    """

    def __init__(
        self,
        enforce_chronological: Optional[bool] = None,
        reconciler: Optional[ReturnReconciler] = None,
        allocator: Optional[PaymentAllocator] = None,
    ):
        self.enforce_chronological = (
            settings.ENFORCE_CHRONOLOGICAL_POSTING if enforce_chronological is None else enforce_chronological
        )
        self.reconciler = reconciler or ReturnReconciler()
        self.allocator = allocator or PaymentAllocator()
        self._ledgers: Dict[UUID, _PartyLedger] = {}
        self._locks: Dict[UUID, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------------

    def lock(self, party_id: UUID) -> threading.RLock:
        """
        Per-party lock. Hold it around any read-then-append sequence done
        outside the engine (it is re-entrant). Only registered parties have one.
        """
        with self._registry_lock:
            party_lock = self._locks.get(party_id)
        if party_lock is None:
            raise ValidationError(f"Party {party_id} has no ledger", {"party_id": str(party_id)})
        return party_lock

    def _ledger(self, party_id: UUID) -> _PartyLedger:
        ledger = self._ledgers.get(party_id)
        if ledger is None:
            raise ValidationError(f"Party {party_id} has no ledger", {"party_id": str(party_id)})
        return ledger

    # -------------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------------

    def party(self, party_id: UUID) -> Party:
        return self._ledger(party_id).party

    def entries(self, party_id: UUID) -> List[LedgerEntry]:
        with self.lock(party_id):
            return list(self._ledger(party_id).entries)

    def head_sequence(self, party_id: UUID) -> int:
        with self.lock(party_id):
            return self._ledger(party_id).head.sequence

    def balance(self, party_id: UUID) -> Decimal:
        """Incrementally maintained running balance."""
        with self.lock(party_id):
            return self._ledger(party_id).head.running_balance

    def document(self, party_id: UUID, document_id: UUID) -> Document:
        with self.lock(party_id):
            document = self._ledger(party_id).documents.get(document_id)
        if document is None:
            raise ValidationError(
                f"Document {document_id} is not posted to party {party_id}",
                {"party_id": str(party_id), "document_id": str(document_id)},
            )
        return document

    def open_bills(self, party_id: UUID) -> List[Document]:
        """Posted bills/invoices with an outstanding balance, oldest first."""
        with self.lock(party_id):
            bills = [
                d for d in self._ledger(party_id).documents.values()
                if d.document_type in BILLING_TYPES and d.balance_amount > ZERO
            ]
        return sorted(bills, key=lambda d: d.document_date)

    # -------------------------------------------------------------------------
    # Posting
    # -------------------------------------------------------------------------

    def _split(self, party: Party, amount: Decimal) -> Dict[str, Decimal]:
        """Present a signed amount as debit/credit in the party's polarity."""
        increases = amount >= ZERO
        natural_is_credit = party.party_type == PartyType.VENDOR
        if increases == natural_is_credit:
            return {"debit_amount": ZERO, "credit_amount": abs(amount)}
        return {"debit_amount": abs(amount), "credit_amount": ZERO}

    def register_party(self, party: Party) -> LedgerEntry:
        """Open a party ledger with its opening balance entry (sequence 0)."""
        amount = ensure_unit_multiple(party.signed_opening_balance, "opening_balance")
        with self._registry_lock:
            party_lock = self._locks.setdefault(party.id, threading.RLock())
        with party_lock:
            if party.id in self._ledgers:
                raise ValidationError(
                    f"Party {party.name} already has a ledger",
                    {"party_id": str(party.id)},
                )
            entry = LedgerEntry(
                sequence=0,
                party_id=party.id,
                company_id=party.company_id,
                document_type=OPENING_BALANCE,
                entry_date=party.opening_balance_date or date.min,
                amount=amount,
                running_balance=amount,
                narration="Opening balance",
                created_at=datetime.now(timezone.utc),
                **self._split(party, amount),
            )
            self._ledgers[party.id] = _PartyLedger(party=party, entries=[entry])
            logger.info(f"Opened ledger for {party.party_type.value} {party.name}: opening={amount}")
            return entry

    def _signed_delta(self, party: Party, document: Document) -> Decimal:
        """Signed effect of a document on the balance owed."""
        doc_type = document.document_type
        if doc_type == DocumentType.PURCHASE_ORDER:
            raise NotPostableError(
                "Purchase orders do not affect party balances",
                {"document_id": str(document.id), "document_type": doc_type.value},
            )
        if doc_type not in PARTY_DOCUMENT_TYPES[party.party_type]:
            raise ValidationError(
                f"{doc_type.value} cannot be posted to {party.party_type.value} {party.name}",
                {"party_id": str(party.id), "document_type": doc_type.value},
            )

        total = document.total_amount
        if doc_type in BILLING_TYPES:
            return total
        if doc_type == DocumentType.PAYMENT:
            if total <= ZERO:
                raise ValidationError(
                    "Payment amount must be greater than zero",
                    {"document_id": str(document.id), "amount": str(total)},
                )
            return -total
        if doc_type in RETURN_TYPES:
            return -total
        # ADJUSTMENT
        if total == ZERO:
            raise ValidationError(
                "Adjustment amount cannot be zero",
                {"document_id": str(document.id)},
            )
        return total

    def _check_return(self, ledger: _PartyLedger, document: Document) -> None:
        """Cumulative returns per origin line never exceed the billed quantity."""
        if document.origin_document_id is None:
            if document.document_type in ORIGIN_REQUIRED:
                raise ValidationError(
                    f"{document.document_type.value} must reference the originating document",
                    {"document_id": str(document.id)},
                )
            return

        origin = ledger.documents.get(document.origin_document_id)
        if origin is None or origin.document_type not in BILLING_TYPES:
            raise ValidationError(
                f"Origin {document.origin_document_id} is not a bill or invoice posted to {ledger.party.name}",
                {"document_id": str(document.id), "origin_document_id": str(document.origin_document_id)},
            )

        prior = [d for d in ledger.documents.values() if d.origin_document_id == origin.id]
        already = returned_quantities(origin.id, prior)
        billed = {line.item_id: line.quantity for line in origin.lines}
        for line in document.lines:
            if line.item_id not in billed:
                raise ValidationError(
                    f"Item '{line.item_id}' is not on {origin.document_number or origin.id}",
                    {"item_id": line.item_id, "origin_document_id": str(origin.id)},
                )
            remaining = billed[line.item_id] - already.get(line.item_id, ZERO)
            if line.quantity > remaining:
                raise OverReturnError(line.item_id, line.quantity, remaining, origin.id)

    def append_entry(
        self,
        party_id: UUID,
        document: Document,
        expected_sequence: Optional[int] = None,
    ) -> Decimal:
        """
        Post a finalized document to a party ledger.

        Args:
            party_id: Party whose balance changes
            document: POSTED document with finalized totals / amount
            expected_sequence: Head sequence the caller computed against;
                mismatch raises ConcurrentModificationError

        Returns:
            New running balance

        Raises:
            NotPostableError: Draft/cancelled, no totals, or purchase order
            ValidationError: Wrong party or type, duplicate, back-dated,
                invalid allocation, amount finer than ROUND_OFF_UNIT
            OverReturnError: Return exceeds remaining quantity on its origin
            ConcurrentModificationError: Stale expected_sequence
        """
        with self.lock(party_id):
            ledger = self._ledger(party_id)
            party = ledger.party
            head = ledger.head

            if expected_sequence is not None and expected_sequence != head.sequence:
                logger.warning(
                    f"Stale append for party {party_id}: expected sequence {expected_sequence}, head is {head.sequence}"
                )
                raise ConcurrentModificationError(
                    f"Ledger for {party.name} changed: expected sequence {expected_sequence}, found {head.sequence}",
                    {"party_id": str(party_id), "expected_sequence": expected_sequence, "head_sequence": head.sequence},
                )

            try:
                ensure_postable(document)
            except NotPostableError:
                logger.warning(f"Rejected non-final {document.document_type.value} {document.id} for party {party_id}")
                raise

            if document.party_id != party_id:
                raise ValidationError(
                    f"Document {document.document_number or document.id} belongs to party {document.party_id}",
                    {"party_id": str(party_id), "document_party_id": str(document.party_id)},
                )
            if document.id in ledger.documents:
                raise ValidationError(
                    f"Document {document.document_number or document.id} is already posted",
                    {"party_id": str(party_id), "document_id": str(document.id)},
                )
            if self.enforce_chronological and document.document_date < head.entry_date:
                raise ValidationError(
                    f"Document dated {document.document_date} is earlier than the last posting ({head.entry_date})",
                    {"party_id": str(party_id), "document_date": str(document.document_date),
                     "last_entry_date": str(head.entry_date)},
                )

            delta = ensure_unit_multiple(self._signed_delta(party, document), "amount")

            if document.document_type in BILLING_TYPES and document.paid_amount != ZERO:
                raise ValidationError(
                    f"{document.document_type.value} {document.document_number or document.id} is posted with "
                    f"paid_amount {document.paid_amount}; settle it through PAYMENT allocations",
                    {"document_id": str(document.id), "paid_amount": str(document.paid_amount)},
                )
            origin = None
            if document.is_return:
                self._check_return(ledger, document)
                if document.origin_document_id is not None:
                    origin = ledger.documents[document.origin_document_id]
                    origin = origin.model_copy(
                        update={"returned_amount": origin.returned_amount + document.total_amount}
                    )

            settled: List[Document] = []
            if document.document_type == DocumentType.PAYMENT and document.allocations:
                bills = {d.id: d for d in ledger.documents.values() if d.document_type in BILLING_TYPES}
                settled = self.allocator.allocate(document, bills.values())

            due_date = None
            if document.document_type in BILLING_TYPES:
                due_date = effective_due_date(document, party.payment_terms_days)

            entry = LedgerEntry(
                sequence=head.sequence + 1,
                party_id=party_id,
                company_id=party.company_id,
                document_id=document.id,
                document_type=get_enum_value(document.document_type),
                document_number=document.document_number,
                entry_date=document.document_date,
                due_date=due_date,
                origin_document_id=document.origin_document_id,
                amount=delta,
                running_balance=head.running_balance + delta,
                narration=document.narration,
                created_at=datetime.now(timezone.utc),
                **self._split(party, delta),
            )

            ledger.entries.append(entry)
            ledger.documents[document.id] = document
            for bill in settled:
                ledger.documents[bill.id] = bill
            if origin is not None:
                ledger.documents[origin.id] = origin

            logger.info(
                f"Posted {document.document_type.value} {document.document_number or document.id} "
                f"to {party.name}: amount={delta}, balance={entry.running_balance}"
            )
            return entry.running_balance

    def apply_return(self, result: ReturnResult, expected_sequence: Optional[int] = None) -> Decimal:
        """Post a reconciled return, checking the ledger effect matches its instruction."""
        instruction = result.instruction
        with self.lock(instruction.party_id):
            ledger = self._ledger(instruction.party_id)
            delta = self._signed_delta(ledger.party, result.document)
            if delta != instruction.amount:
                raise ValidationError(
                    f"Return {result.document.id} posts {delta} but its instruction says {instruction.amount}",
                    {"document_id": str(result.document.id)},
                )
            return self.append_entry(instruction.party_id, result.document, expected_sequence)

    def post_return(
        self,
        party_id: UUID,
        origin_id: UUID,
        requested: Mapping[str, object],
        return_type: Optional[DocumentType] = None,
        document_date: Optional[date] = None,
        document_number: Optional[str] = None,
        round_to: Optional[Decimal] = None,
        expected_sequence: Optional[int] = None,
    ) -> ReturnResult:
        """
        Reconcile and post a return against a posted bill/invoice in one step.

        The over-return check and the append use the same snapshot of prior
        returns, taken under the party lock.
        """
        with self.lock(party_id):
            ledger = self._ledger(party_id)
            origin = self.document(party_id, origin_id)
            prior = [d for d in ledger.documents.values() if d.origin_document_id == origin_id]
            result = self.reconciler.reconcile(
                origin,
                requested,
                prior_returns=prior,
                return_type=return_type,
                document_date=document_date,
                document_number=document_number,
                round_to=round_to,
            )
            self.apply_return(result, expected_sequence)
            return result

    # -------------------------------------------------------------------------
    # Replay & reporting
    # -------------------------------------------------------------------------

    def _replay_order(self, entries: Iterable[LedgerEntry]) -> List[LedgerEntry]:
        return sorted(entries, key=lambda e: (e.entry_date, e.sequence))

    def recompute_balance(self, party_id: UUID, as_of: Optional[date] = None) -> BalanceSummary:
        """
        Replay entries (document-date order, ties by sequence) up to ``as_of``.

        Read-only and idempotent; the result equals the incrementally
        maintained running balance.
        """
        with self.lock(party_id):
            ledger = self._ledger(party_id)
            entries = [
                e for e in self._replay_order(ledger.entries)
                if as_of is None or e.entry_date <= as_of
            ]
            documents = dict(ledger.documents)
            party = ledger.party

        opening = billed = paid = returned = adjusted = unallocated = ZERO
        for entry in entries:
            if entry.document_type == OPENING_BALANCE:
                opening += entry.amount
                continue
            doc_type = DocumentType(entry.document_type)
            if doc_type in BILLING_TYPES:
                billed += entry.amount
            elif doc_type == DocumentType.PAYMENT:
                paid -= entry.amount
                payment = documents[entry.document_id]
                unallocated += payment.amount - sum((a.amount for a in payment.allocations), ZERO)
            elif doc_type in RETURN_TYPES:
                returned -= entry.amount
            else:
                adjusted += entry.amount

        return BalanceSummary(
            party_id=party_id,
            party_type=party.party_type,
            as_of=as_of,
            opening_balance=opening,
            total_billed=billed,
            total_paid=paid,
            total_returned=returned,
            total_adjusted=adjusted,
            closing_balance=opening + billed - paid - returned + adjusted,
            unallocated_payments=unallocated,
            credit_limit=party.credit_limit,
            entry_count=len(entries),
        )

    def statement(
        self,
        party_id: UUID,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> LedgerStatement:
        """Ledger statement for a date range with balance brought forward."""
        if date_from and date_to and date_from > date_to:
            raise ValidationError(
                "date_from cannot be after date_to",
                {"date_from": str(date_from), "date_to": str(date_to)},
            )
        with self.lock(party_id):
            entries = self._replay_order(self._ledger(party_id).entries)

        brought_forward = ZERO
        in_range: List[LedgerEntry] = []
        for entry in entries:
            if date_from and entry.entry_date < date_from:
                brought_forward += entry.amount
            elif date_to is None or entry.entry_date <= date_to:
                in_range.append(entry)

        return LedgerStatement(
            party_id=party_id,
            date_from=date_from,
            date_to=date_to,
            balance_brought_forward=brought_forward,
            entries=in_range,
            total_debit=sum((e.debit_amount for e in in_range), ZERO),
            total_credit=sum((e.credit_amount for e in in_range), ZERO),
            closing_balance=brought_forward + sum((e.amount for e in in_range), ZERO),
        )

    def overdue_exposure(self, party_id: UUID, today: date) -> OverdueExposure:
        """Overdue bills/invoices of a party bucketed by days past due."""
        with self.lock(party_id):
            ledger = self._ledger(party_id)
            bills = [d for d in ledger.documents.values() if d.document_type in BILLING_TYPES]
            terms = ledger.party.payment_terms_days
        return classify_overdue(bills, today, terms, party_id=party_id)

    def verify(self, party_id: UUID) -> Decimal:
        """
        Check that stored running balances reproduce from history.

        Raises ConcurrentModificationError on a gap in sequences or a running
        balance that does not match its predecessor plus its amount.
        """
        with self.lock(party_id):
            entries = list(self._ledger(party_id).entries)

        balance = ZERO
        for expected, entry in enumerate(entries):
            if entry.sequence != expected:
                raise ConcurrentModificationError(
                    f"Ledger for party {party_id} has a sequence gap at {expected}",
                    {"party_id": str(party_id), "expected_sequence": expected, "found": entry.sequence},
                )
            balance += entry.amount
            if entry.running_balance != balance:
                raise ConcurrentModificationError(
                    f"Running balance mismatch at sequence {entry.sequence}: "
                    f"stored {entry.running_balance}, replayed {balance}",
                    {"party_id": str(party_id), "sequence": entry.sequence,
                     "stored": str(entry.running_balance), "replayed": str(balance)},
                )

        replayed = self.recompute_balance(party_id).closing_balance
        if replayed != balance:
            raise ConcurrentModificationError(
                f"Date-order replay {replayed} differs from stored balance {balance}",
                {"party_id": str(party_id), "stored": str(balance), "replayed": str(replayed)},
            )
        return balance
