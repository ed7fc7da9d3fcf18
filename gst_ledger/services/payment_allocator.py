"""Service for applying a payment across open bills and invoices."""
import logging
from decimal import Decimal
from typing import Dict, Iterable, List
from uuid import UUID

from gst_ledger.core.exceptions import ValidationError
from gst_ledger.core.money import ZERO
from gst_ledger.schemas.document import (
    Document, DocumentStatus, DocumentType, BILLING_TYPES,
)


logger = logging.getLogger(__name__)


class PaymentAllocator:
    """
    Validates payment allocations and settles bills.

    Bills are never mutated; settled copies are returned.
    """

    def validate(self, payment: Document, bills: Dict[UUID, Document]) -> Decimal:
        """
        Check the allocations of a payment against the open bills.

        Args:
            payment: PAYMENT document with ``amount`` and ``allocations``
            bills: Bills/invoices by id (current paid amounts)

        Returns:
            Unallocated remainder (advance)

        Raises:
            ValidationError: Wrong document type, unknown or foreign bill,
                allocation above the bill's balance, or allocations above
                the payment amount
        """
        if payment.document_type != DocumentType.PAYMENT:
            raise ValidationError(
                f"{payment.document_type.value} cannot carry allocations",
                {"document_id": str(payment.id)},
            )
        if payment.amount is None or payment.amount <= ZERO:
            raise ValidationError(
                "Payment amount must be greater than zero",
                {"document_id": str(payment.id), "amount": str(payment.amount)},
            )

        allocated_per_bill: Dict[UUID, Decimal] = {}
        for allocation in payment.allocations:
            bill = bills.get(allocation.document_id)
            if bill is None or bill.document_type not in BILLING_TYPES:
                raise ValidationError(
                    f"Bill {allocation.document_id} not found",
                    {"document_id": str(allocation.document_id)},
                )
            if bill.party_id != payment.party_id:
                raise ValidationError(
                    f"{bill.document_number or bill.id} belongs to a different party",
                    {"document_id": str(bill.id), "party_id": str(payment.party_id)},
                )
            if bill.status != DocumentStatus.POSTED:
                raise ValidationError(
                    f"{bill.document_number or bill.id} is {bill.status.value}; payments apply to POSTED bills only",
                    {"document_id": str(bill.id), "status": bill.status.value},
                )
            allocated_per_bill[bill.id] = allocated_per_bill.get(bill.id, ZERO) + allocation.amount
            if allocated_per_bill[bill.id] > bill.balance_amount:
                logger.warning(
                    f"Payment {payment.document_number or payment.id} exceeds balance for "
                    f"{bill.document_number or bill.id}: {allocated_per_bill[bill.id]} > {bill.balance_amount}"
                )
                raise ValidationError(
                    f"Payment amount exceeds balance for bill {bill.document_number or bill.id}",
                    {
                        "document_id": str(bill.id),
                        "allocated": str(allocated_per_bill[bill.id]),
                        "balance_amount": str(bill.balance_amount),
                    },
                )

        total_allocated = sum(allocated_per_bill.values(), ZERO)
        if total_allocated > payment.amount:
            raise ValidationError(
                f"Allocations ({total_allocated}) exceed payment amount ({payment.amount})",
                {"document_id": str(payment.id), "allocated": str(total_allocated), "amount": str(payment.amount)},
            )
        return payment.amount - total_allocated

    def allocate(self, payment: Document, bills: Iterable[Document]) -> List[Document]:
        """
        Apply a payment to bills.

        Returns the settled copies of the bills the payment touches, with
        ``paid_amount`` increased; ``payment_status`` follows from it.
        """
        by_id = {bill.id: bill for bill in bills}
        self.validate(payment, by_id)

        settled: Dict[UUID, Document] = {}
        for allocation in payment.allocations:
            bill = settled.get(allocation.document_id, by_id[allocation.document_id])
            settled[bill.id] = bill.model_copy(update={"paid_amount": bill.paid_amount + allocation.amount})

        for bill in settled.values():
            logger.info(
                f"Applied payment {payment.document_number or payment.id} to "
                f"{bill.document_number or bill.id}: paid={bill.paid_amount}, status={bill.payment_status.value}"
            )
        return list(settled.values())
