"""
Document totals and document finalization.

Totals are a pure function of the computed lines; nothing is cached between
calls. Rounding happens exactly once, on the grand total, and ``round_off``
records the difference so that ``grand_total - round_off`` is the exact sum
of line totals.
"""
import logging
from decimal import Decimal
from typing import Iterable, Optional

from gst_ledger.config import settings
from gst_ledger.core.exceptions import ValidationError
from gst_ledger.core.money import ZERO, quantize
from gst_ledger.schemas.document import ComputedLine, Document, DocumentStatus, DocumentTotals, AMOUNT_TYPES
from gst_ledger.services.document_state_machine import ensure_editable, transition_document
from gst_ledger.services.line_item_calculator import calculate_line_item
from gst_ledger.services.tax_rate_resolver import TaxRateResolver


logger = logging.getLogger(__name__)


def compute_totals(
    lines: Iterable[ComputedLine],
    round_to: Optional[Decimal] = None,
    rounding: Optional[str] = None,
) -> DocumentTotals:
    """
    Aggregate computed lines into document totals.

    Args:
        lines: Computed lines, in document order
        round_to: Round-off unit (default ROUND_OFF_UNIT; 1 for whole rupees)
        rounding: Decimal rounding mode (default ROUNDING_MODE)
    """
    subtotal = ZERO
    total_discount = ZERO
    cgst_total = ZERO
    sgst_total = ZERO
    igst_total = ZERO
    cess_total = ZERO

    for line in lines:
        subtotal += line.taxable_amount
        total_discount += line.discount_amount
        cgst_total += line.cgst_amount
        sgst_total += line.sgst_amount
        igst_total += line.igst_amount
        cess_total += line.cess_amount

    tax_total = cgst_total + sgst_total + igst_total + cess_total
    unrounded = subtotal + tax_total
    grand_total = quantize(unrounded, round_to or settings.ROUND_OFF_UNIT, rounding)

    return DocumentTotals(
        subtotal=subtotal,
        total_discount=total_discount,
        cgst_total=cgst_total,
        sgst_total=sgst_total,
        igst_total=igst_total,
        cess_total=cess_total,
        tax_total=tax_total,
        round_off=grand_total - unrounded,
        grand_total=grand_total,
    )


def compute_document(
    document: Document,
    seller_state: str,
    buyer_state: str,
    resolver: Optional[TaxRateResolver] = None,
    round_to: Optional[Decimal] = None,
) -> Document:
    """
    Recompute lines and totals of an editable document.

    Returns a new Document; the input is not modified. PAYMENT and
    ADJUSTMENT documents have no lines and are returned unchanged.
    """
    ensure_editable(document)
    if document.document_type in AMOUNT_TYPES:
        return document
    if not document.items:
        raise ValidationError(
            f"{document.document_type.value} has no line items",
            {"document_id": str(document.id)},
        )

    resolver = resolver or TaxRateResolver()
    lines = [
        calculate_line_item(item, resolver.resolve(seller_state, buyer_state, item.tax_rate))
        for item in document.items
    ]
    return document.model_copy(update={
        "lines": lines,
        "totals": compute_totals(lines, round_to),
    })


def finalize_document(
    document: Document,
    seller_state: str,
    buyer_state: str,
    resolver: Optional[TaxRateResolver] = None,
    round_to: Optional[Decimal] = None,
) -> Document:
    """
    Compute a draft document one last time and mark it POSTED.

    After this the document is immutable with respect to tax recomputation
    and may be appended to the ledger.
    """
    computed = compute_document(document, seller_state, buyer_state, resolver, round_to)
    posted = transition_document(computed, DocumentStatus.POSTED)
    logger.info(
        f"Finalized {posted.document_type.value} {posted.document_number or posted.id}: "
        f"total={posted.total_amount}"
    )
    return posted
