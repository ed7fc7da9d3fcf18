"""Return reconciliation against an originating bill or invoice.

A return (purchase return / debit note, sales return, credit note) is a
partial or full reversal of a POSTED origin document:
- Quantities are validated against what is still returnable per origin line
- Lines are priced at the origin's rate, discount and resolved tax rates
- Totals run through the same document totals as every other document
- The result carries a ledger instruction reversing the party balance

The check must run against the same snapshot of prior returns that the
caller posts under (see LedgerEngine.post_return).
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, Mapping, Optional

from gst_ledger.core.exceptions import NotPostableError, OverReturnError, ValidationError
from gst_ledger.core.money import ZERO, to_decimal
from gst_ledger.schemas.document import (
    Document, DocumentStatus, DocumentType, LedgerInstruction, ReturnResult,
)
from gst_ledger.services.document_totals import compute_totals
from gst_ledger.services.line_item_calculator import reprice_line


logger = logging.getLogger(__name__)


# Return document types allowed for each origin type, first one is the default
RETURN_TYPES_BY_ORIGIN = {
    DocumentType.BILL: [DocumentType.PURCHASE_RETURN],
    DocumentType.INVOICE: [DocumentType.SALES_RETURN, DocumentType.CREDIT_NOTE],
}


def returned_quantities(origin_id, prior_returns: Iterable[Document]) -> Dict[str, Decimal]:
    """Sum POSTED returned quantities per item for one origin document."""
    totals: Dict[str, Decimal] = {}
    for ret in prior_returns:
        if ret.origin_document_id != origin_id or ret.status != DocumentStatus.POSTED:
            continue
        for line in ret.lines:
            totals[line.item_id] = totals.get(line.item_id, ZERO) + line.quantity
    return totals


class ReturnReconciler:
    """Builds return documents that consistently reverse an origin document."""

    def _origin_lines(self, origin: Document) -> Dict:
        lines = {}
        for line in origin.lines:
            if line.item_id in lines:
                raise ValidationError(
                    f"Item '{line.item_id}' appears more than once on {origin.document_number or origin.id}; "
                    f"returns are tracked per item",
                    {"item_id": line.item_id, "origin_document_id": str(origin.id)},
                )
            lines[line.item_id] = line
        return lines

    def _validate_origin(self, origin: Document, return_type: Optional[DocumentType]) -> DocumentType:
        allowed = RETURN_TYPES_BY_ORIGIN.get(origin.document_type)
        if not allowed:
            raise ValidationError(
                f"Returns can only be created against a bill or invoice, not {origin.document_type.value}",
                {"origin_document_id": str(origin.id), "document_type": origin.document_type.value},
            )
        if origin.status != DocumentStatus.POSTED or origin.totals is None:
            raise NotPostableError(
                f"{origin.document_type.value} {origin.document_number or origin.id} is "
                f"{origin.status.value}; returns need a POSTED origin",
                {"origin_document_id": str(origin.id), "status": origin.status.value},
            )
        if origin.balance_amount <= ZERO:
            raise ValidationError(
                f"{origin.document_type.value} {origin.document_number or origin.id} is fully settled",
                {"origin_document_id": str(origin.id), "balance_amount": str(origin.balance_amount)},
            )

        return_type = return_type or allowed[0]
        if return_type not in allowed:
            raise ValidationError(
                f"{return_type.value} cannot reverse a {origin.document_type.value}",
                {"origin_document_id": str(origin.id), "return_type": return_type.value},
            )
        return return_type

    def returnable_quantities(self, origin: Document, prior_returns: Iterable[Document] = ()) -> Dict[str, Decimal]:
        """Remaining returnable quantity per origin item."""
        already = returned_quantities(origin.id, prior_returns)
        return {
            item_id: line.quantity - already.get(item_id, ZERO)
            for item_id, line in self._origin_lines(origin).items()
        }

    def reconcile(
        self,
        origin: Document,
        requested: Mapping[str, object],
        prior_returns: Iterable[Document] = (),
        return_type: Optional[DocumentType] = None,
        document_date: Optional[date] = None,
        document_number: Optional[str] = None,
        round_to: Optional[Decimal] = None,
        narration: Optional[str] = None,
    ) -> ReturnResult:
        """
        Create a POSTED return document for the requested quantities.

        Args:
            origin: POSTED bill or invoice with computed lines
            requested: item_id -> quantity to return
            prior_returns: Snapshot of returns already posted against origin
            return_type: PURCHASE_RETURN for bills; SALES_RETURN (default)
                or CREDIT_NOTE for invoices

        Raises:
            OverReturnError: Quantity exceeds what remains returnable
            NotPostableError: Origin is not POSTED
            ValidationError: Unknown item, negative quantity, empty request,
                settled origin or mismatched return type
        """
        return_type = self._validate_origin(origin, return_type)
        origin_lines = self._origin_lines(origin)
        remaining = self.returnable_quantities(origin, list(prior_returns))

        lines = []
        returned: Dict[str, Decimal] = {}
        for item_id, raw_quantity in requested.items():
            quantity = to_decimal(raw_quantity, "return_quantity")
            if item_id not in origin_lines:
                raise ValidationError(
                    f"Item '{item_id}' is not on {origin.document_number or origin.id}",
                    {"item_id": item_id, "origin_document_id": str(origin.id)},
                )
            if quantity < ZERO:
                raise ValidationError(
                    f"Item '{item_id}': return quantity cannot be negative",
                    {"item_id": item_id, "value": str(quantity)},
                )
            if quantity > remaining[item_id]:
                logger.warning(
                    f"Over-return on {origin.document_number or origin.id}: item '{item_id}' "
                    f"requested {quantity}, returnable {remaining[item_id]}"
                )
                raise OverReturnError(item_id, quantity, remaining[item_id], origin.id)
            if quantity == ZERO:
                continue

            lines.append(reprice_line(origin_lines[item_id], quantity))
            returned[item_id] = quantity

        if not lines:
            raise ValidationError(
                "No quantities to return",
                {"origin_document_id": str(origin.id)},
            )

        totals = compute_totals(lines, round_to)
        document = Document(
            document_type=return_type,
            document_number=document_number,
            party_id=origin.party_id,
            document_date=document_date or date.today(),
            status=DocumentStatus.POSTED,
            lines=lines,
            totals=totals,
            origin_document_id=origin.id,
            narration=narration or f"Return against {origin.document_number or origin.id}",
        )
        instruction = LedgerInstruction(
            party_id=origin.party_id,
            document_id=document.id,
            document_type=return_type,
            amount=-totals.grand_total,
            narration=document.narration,
        )

        logger.info(
            f"Reconciled {return_type.value} against {origin.document_number or origin.id}: "
            f"{len(lines)} line(s), total={totals.grand_total}"
        )

        return ReturnResult(
            document=document,
            instruction=instruction,
            returned_quantities=returned,
            remaining_quantities={
                item_id: remaining[item_id] - returned.get(item_id, ZERO)
                for item_id in origin_lines
            },
        )
