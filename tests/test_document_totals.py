from datetime import date
from decimal import Decimal, ROUND_HALF_EVEN

import pytest

from gst_ledger.core.exceptions import ValidationError
from gst_ledger.schemas import Document, DocumentStatus, DocumentType
from gst_ledger.services.document_totals import compute_document, compute_totals, finalize_document

from tests.conftest import HOME_STATE, OTHER_STATE


def _draft(party, items, document_type=DocumentType.PURCHASE_ORDER):
    return Document(
        document_type=document_type,
        document_number="PO-001",
        party_id=party.id,
        document_date=date(2024, 4, 1),
        items=items,
    )


def test_totals_aggregate_lines(vendor, make_line):
    draft = _draft(vendor, [
        make_line("SKU-1", "10", "100", "10"),
        make_line("SKU-2", "1", "500", "0"),
    ])

    document = compute_document(draft, HOME_STATE, HOME_STATE)
    totals = document.totals

    assert totals.subtotal == Decimal("1400")
    assert totals.total_discount == Decimal("100")
    assert totals.cgst_total == Decimal("126")
    assert totals.sgst_total == Decimal("126")
    assert totals.igst_total == 0
    assert totals.tax_total == Decimal("252")
    assert totals.grand_total == Decimal("1652")
    assert totals.round_off == 0


def test_interstate_document_uses_igst_only(vendor, make_line):
    document = compute_document(_draft(vendor, [make_line()]), HOME_STATE, OTHER_STATE)

    assert document.totals.igst_total == Decimal("162")
    assert document.totals.cgst_total == document.totals.sgst_total == 0
    assert document.totals.grand_total == Decimal("1062")


def test_round_off_reconciles_to_line_totals(vendor, make_line):
    draft = _draft(vendor, [make_line("SKU-1", "3", "33.33", "12.5"), make_line("SKU-2", "7", "0.99", "0")])

    document = compute_document(draft, HOME_STATE, HOME_STATE)
    exact = sum(line.line_total for line in document.lines)

    assert document.totals.grand_total - document.totals.round_off == exact
    assert document.totals.unrounded_total == exact
    assert abs(document.totals.round_off) <= Decimal("0.005")


def test_whole_rupee_rounding(vendor, make_line, nil_rated):
    lines = compute_document(
        _draft(vendor, [make_line("SKU-1", "1", "10.50", "0", tax_rate=nil_rated)]),
        HOME_STATE, HOME_STATE,
    ).lines

    half_up = compute_totals(lines, round_to=Decimal("1"))
    half_even = compute_totals(lines, round_to=Decimal("1"), rounding=ROUND_HALF_EVEN)

    assert half_up.grand_total == Decimal("11")
    assert half_up.round_off == Decimal("0.50")
    assert half_even.grand_total == Decimal("10")
    assert half_even.round_off == Decimal("-0.50")


def test_compute_is_idempotent_and_does_not_mutate_input(vendor, make_line):
    draft = _draft(vendor, [make_line()])

    first = compute_document(draft, HOME_STATE, HOME_STATE)
    second = compute_document(first, HOME_STATE, HOME_STATE)

    assert first.totals == second.totals
    assert first.lines == second.lines
    assert draft.totals is None


def test_compute_follows_current_line_state(vendor, make_line):
    first = compute_document(_draft(vendor, [make_line(quantity="10")]), HOME_STATE, HOME_STATE)
    edited = first.model_copy(update={"items": [make_line(quantity="5")]})

    second = compute_document(edited, HOME_STATE, HOME_STATE)

    assert second.totals.grand_total == Decimal("531")


def test_document_without_items_is_rejected(vendor):
    with pytest.raises(ValidationError):
        compute_document(_draft(vendor, []), HOME_STATE, HOME_STATE)


def test_posted_document_is_not_recomputed(vendor, make_bill):
    bill = make_bill(vendor)

    with pytest.raises(ValidationError):
        compute_document(bill, HOME_STATE, OTHER_STATE)


def test_finalize_posts_document(vendor, make_line):
    posted = finalize_document(_draft(vendor, [make_line()], DocumentType.BILL), HOME_STATE, HOME_STATE)

    assert posted.status == DocumentStatus.POSTED
    assert posted.total_amount == Decimal("1062")


def test_payment_documents_have_no_lines(vendor):
    payment = Document(
        document_type=DocumentType.PAYMENT,
        party_id=vendor.id,
        document_date=date(2024, 4, 2),
        amount=Decimal("500"),
    )

    assert compute_document(payment, HOME_STATE, HOME_STATE) is payment
