"""Shared fixtures for the ledger engine tests."""
from datetime import date
from decimal import Decimal

import pytest

from gst_ledger.schemas import (
    Document, DocumentStatus, DocumentType, LineItem, Party, PartyType, PaymentAllocation, TaxRate,
)
from gst_ledger.services.document_totals import finalize_document
from gst_ledger.services.ledger_engine import LedgerEngine


HOME_STATE = "27"       # Maharashtra
OTHER_STATE = "29"      # Karnataka
BILL_DATE = date(2024, 4, 1)


@pytest.fixture
def gst18():
    return TaxRate(
        name="GST 18%",
        total_rate=Decimal("18"),
        cgst_rate=Decimal("9"),
        sgst_rate=Decimal("9"),
        igst_rate=Decimal("18"),
    )


@pytest.fixture
def nil_rated():
    return TaxRate(name="Nil", total_rate=Decimal("0"))


@pytest.fixture
def vendor():
    return Party(
        name="Acme Components",
        party_type=PartyType.VENDOR,
        state_code=HOME_STATE,
        payment_terms_days=30,
    )


@pytest.fixture
def customer():
    return Party(
        name="Sharma Traders",
        party_type="customer",
        state_code=OTHER_STATE,
        credit_limit=Decimal("1000"),
        payment_terms_days=15,
    )


@pytest.fixture
def engine():
    return LedgerEngine(enforce_chronological=True)


@pytest.fixture
def make_line(gst18):
    def _make(item_id="SKU-1", quantity="10", rate="100", discount="10", tax_rate=None):
        return LineItem(
            item_id=item_id,
            quantity=Decimal(quantity),
            rate=Decimal(rate),
            discount_percentage=Decimal(discount),
            tax_rate=tax_rate or gst18,
        )
    return _make


@pytest.fixture
def make_bill(make_line):
    """POSTED bill/invoice, by default the 10 x 100 @ 10% discount, 18% intrastate line."""
    def _make(
        party,
        items=None,
        document_type=DocumentType.BILL,
        document_number="BILL-001",
        document_date=BILL_DATE,
        due_date=None,
        seller_state=HOME_STATE,
        buyer_state=HOME_STATE,
    ):
        draft = Document(
            document_type=document_type,
            document_number=document_number,
            party_id=party.id,
            document_date=document_date,
            due_date=due_date,
            items=items or [make_line()],
        )
        return finalize_document(draft, seller_state, buyer_state)
    return _make


@pytest.fixture
def make_payment():
    def _make(party, amount, allocations=(), document_date=BILL_DATE, document_number="PAY-001"):
        return Document(
            document_type=DocumentType.PAYMENT,
            document_number=document_number,
            party_id=party.id,
            document_date=document_date,
            status=DocumentStatus.POSTED,
            amount=Decimal(amount),
            allocations=[
                PaymentAllocation(document_id=bill.id, amount=Decimal(value))
                for bill, value in allocations
            ],
        )
    return _make
