from datetime import date
from decimal import Decimal

import pytest

from gst_ledger.core.exceptions import NotPostableError, OverReturnError, ValidationError
from gst_ledger.schemas import Document, DocumentStatus, DocumentType
from gst_ledger.services.return_reconciler import ReturnReconciler


RETURN_DATE = date(2024, 4, 10)


@pytest.fixture
def reconciler():
    return ReturnReconciler()


@pytest.fixture
def bill(vendor, make_bill):
    return make_bill(vendor)


def test_partial_return_mirrors_origin_pricing(reconciler, bill):
    result = reconciler.reconcile(bill, {"SKU-1": Decimal("4")}, document_date=RETURN_DATE)
    totals = result.document.totals

    assert result.document.document_type == DocumentType.PURCHASE_RETURN
    assert result.document.status == DocumentStatus.POSTED
    assert result.document.origin_document_id == bill.id
    assert totals.subtotal == Decimal("360")
    assert totals.cgst_total == Decimal("32.4")
    assert totals.sgst_total == Decimal("32.4")
    assert totals.grand_total == Decimal("424.8")
    assert result.instruction.amount == Decimal("-424.8")
    assert result.instruction.party_id == bill.party_id
    assert result.remaining_quantities == {"SKU-1": Decimal("6")}


def test_over_return_reports_remaining_maximum(reconciler, bill):
    first = reconciler.reconcile(bill, {"SKU-1": "4"}, document_date=RETURN_DATE)

    with pytest.raises(OverReturnError) as exc:
        reconciler.reconcile(bill, {"SKU-1": "7"}, prior_returns=[first.document])

    assert exc.value.max_returnable == Decimal("6")
    assert exc.value.item_id == "SKU-1"
    assert exc.value.details["origin_document_id"] == str(bill.id)


def test_returning_everything_in_parts_reverses_the_bill_exactly(reconciler, bill):
    first = reconciler.reconcile(bill, {"SKU-1": "4"}, document_date=RETURN_DATE)
    second = reconciler.reconcile(bill, {"SKU-1": "6"}, prior_returns=[first.document])

    assert first.document.totals.grand_total + second.document.totals.grand_total == bill.total_amount
    assert second.remaining_quantities == {"SKU-1": Decimal("0")}
    assert reconciler.returnable_quantities(bill, [first.document, second.document]) == {"SKU-1": Decimal("0")}


def test_draft_prior_returns_do_not_consume_quantity(reconciler, bill):
    first = reconciler.reconcile(bill, {"SKU-1": "4"}, document_date=RETURN_DATE)
    draft_copy = first.document.model_copy(update={"status": DocumentStatus.DRAFT})

    assert reconciler.returnable_quantities(bill, [draft_copy]) == {"SKU-1": Decimal("10")}


def test_zero_quantities_are_skipped(reconciler, vendor, make_bill, make_line):
    bill = make_bill(vendor, items=[make_line("SKU-1"), make_line("SKU-2", quantity="2", rate="300")])

    result = reconciler.reconcile(bill, {"SKU-1": "0", "SKU-2": "1"}, document_date=RETURN_DATE)

    assert [line.item_id for line in result.document.lines] == ["SKU-2"]
    assert result.returned_quantities == {"SKU-2": Decimal("1")}


@pytest.mark.parametrize("requested", [{}, {"SKU-1": "0"}])
def test_empty_request_is_rejected(reconciler, bill, requested):
    with pytest.raises(ValidationError):
        reconciler.reconcile(bill, requested)


def test_unknown_item_is_rejected(reconciler, bill):
    with pytest.raises(ValidationError) as exc:
        reconciler.reconcile(bill, {"SKU-404": "1"})
    assert exc.value.details["item_id"] == "SKU-404"


def test_negative_quantity_is_rejected(reconciler, bill):
    with pytest.raises(ValidationError):
        reconciler.reconcile(bill, {"SKU-1": "-1"})


def test_origin_must_be_posted(reconciler, bill):
    draft = bill.model_copy(update={"status": DocumentStatus.DRAFT})

    with pytest.raises(NotPostableError):
        reconciler.reconcile(draft, {"SKU-1": "1"})


def test_settled_origin_is_rejected(reconciler, bill):
    settled = bill.model_copy(update={"paid_amount": bill.total_amount})

    with pytest.raises(ValidationError, match="fully settled"):
        reconciler.reconcile(settled, {"SKU-1": "1"})


def test_only_bills_and_invoices_can_be_returned(reconciler, vendor, make_bill):
    order = make_bill(vendor, document_type=DocumentType.PURCHASE_ORDER)

    with pytest.raises(ValidationError):
        reconciler.reconcile(order, {"SKU-1": "1"})


def test_invoice_returns(reconciler, customer, make_bill):
    invoice = make_bill(customer, document_type=DocumentType.INVOICE, document_number="INV-001")

    sales_return = reconciler.reconcile(invoice, {"SKU-1": "1"}, document_date=RETURN_DATE)
    credit_note = reconciler.reconcile(
        invoice, {"SKU-1": "1"}, return_type=DocumentType.CREDIT_NOTE, document_date=RETURN_DATE,
    )

    assert sales_return.document.document_type == DocumentType.SALES_RETURN
    assert credit_note.document.document_type == DocumentType.CREDIT_NOTE
    with pytest.raises(ValidationError):
        reconciler.reconcile(invoice, {"SKU-1": "1"}, return_type=DocumentType.PURCHASE_RETURN)


def test_duplicate_origin_items_are_rejected(reconciler, vendor, make_bill, make_line):
    bill = make_bill(vendor, items=[make_line("SKU-1"), make_line("SKU-1", quantity="1")])

    with pytest.raises(ValidationError):
        reconciler.reconcile(bill, {"SKU-1": "1"})


def test_return_is_a_document(reconciler, bill):
    result = reconciler.reconcile(bill, {"SKU-1": "1"}, document_number="DN-001", document_date=RETURN_DATE)

    assert isinstance(result.document, Document)
    assert result.document.document_number == "DN-001"
    assert result.document.is_return
