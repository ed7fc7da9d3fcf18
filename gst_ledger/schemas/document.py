"""
Document schemas shared by every document type.

Purchase orders, bills, purchase returns, payments, invoices, sales returns,
credit notes and adjustments use the same Document shape. Line inputs
(``items``) are the only authored money data; ``lines`` and ``totals`` are
derived by the tax calculation services and are never trusted from upstream.
"""
import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import Field, computed_field

from gst_ledger.core.enum_utils import create_uppercase_validator, enum_values
from gst_ledger.schemas.base import BaseCreateSchema, BaseRecordSchema
from gst_ledger.schemas.tax import TaxRate, ResolvedTaxRate


class DocumentType(str, Enum):
    """Document type enumeration."""
    PURCHASE_ORDER = "PURCHASE_ORDER"     # No ledger effect
    BILL = "BILL"                         # Vendor bill (increases payable)
    PURCHASE_RETURN = "PURCHASE_RETURN"   # Debit note to vendor
    PAYMENT = "PAYMENT"                   # Payment made / received
    INVOICE = "INVOICE"                   # Sales invoice (increases receivable)
    SALES_RETURN = "SALES_RETURN"         # Goods returned by customer
    CREDIT_NOTE = "CREDIT_NOTE"           # Credit to customer
    ADJUSTMENT = "ADJUSTMENT"             # Compensating entry


class DocumentStatus(str, Enum):
    """Document lifecycle status."""
    DRAFT = "DRAFT"
    POSTED = "POSTED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    """Settlement status of a bill or invoice."""
    UNPAID = "UNPAID"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"


RETURN_TYPES = {
    DocumentType.PURCHASE_RETURN,
    DocumentType.SALES_RETURN,
    DocumentType.CREDIT_NOTE,
}

BILLING_TYPES = {DocumentType.BILL, DocumentType.INVOICE}

# Document types whose money comes from an amount instead of line items
AMOUNT_TYPES = {DocumentType.PAYMENT, DocumentType.ADJUSTMENT}


class LineItem(BaseCreateSchema):
    """
    One authored document line.

    Quantity, rate and discount are validated by the line calculator so that
    violations surface as ledger ValidationErrors naming the item.
    """
    item_id: str = Field(..., max_length=100)
    description: Optional[str] = None
    hsn_sac_code: Optional[str] = Field(None, max_length=20)
    quantity: Decimal
    rate: Decimal
    discount_percentage: Decimal = Decimal("0")
    tax_rate: TaxRate


class ComputedLine(BaseRecordSchema):
    """A line after tax computation. Every amount is reproducible from the inputs."""
    item_id: str
    description: Optional[str] = None
    hsn_sac_code: Optional[str] = None
    quantity: Decimal
    rate: Decimal
    discount_percentage: Decimal
    tax_rate_name: Optional[str] = None
    tax: ResolvedTaxRate

    line_amount: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    cgst_amount: Decimal
    sgst_amount: Decimal
    igst_amount: Decimal
    cess_amount: Decimal
    line_total: Decimal

    @computed_field
    @property
    def tax_amount(self) -> Decimal:
        return self.cgst_amount + self.sgst_amount + self.igst_amount + self.cess_amount


class DocumentTotals(BaseRecordSchema):
    """Aggregated document money."""
    subtotal: Decimal = Decimal("0")
    total_discount: Decimal = Decimal("0")
    cgst_total: Decimal = Decimal("0")
    sgst_total: Decimal = Decimal("0")
    igst_total: Decimal = Decimal("0")
    cess_total: Decimal = Decimal("0")
    tax_total: Decimal = Decimal("0")
    round_off: Decimal = Decimal("0")
    grand_total: Decimal = Decimal("0")

    @computed_field
    @property
    def unrounded_total(self) -> Decimal:
        """Sum of line totals before round-off."""
        return self.grand_total - self.round_off


class PaymentAllocation(BaseCreateSchema):
    """Portion of a payment applied to one bill or invoice."""
    document_id: uuid.UUID
    amount: Decimal = Field(..., gt=0)


class Document(BaseCreateSchema):
    """Business document affecting (or preparing to affect) a party."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    document_type: DocumentType
    document_number: Optional[str] = Field(None, max_length=50)
    party_id: uuid.UUID
    document_date: date
    due_date: Optional[date] = None
    status: DocumentStatus = DocumentStatus.DRAFT

    # Line items (absent for PAYMENT / ADJUSTMENT)
    items: List[LineItem] = []
    lines: List[ComputedLine] = []
    totals: Optional[DocumentTotals] = None

    # PAYMENT amount, or signed ADJUSTMENT amount
    amount: Optional[Decimal] = None
    allocations: List[PaymentAllocation] = []

    # Settlement (BILL / INVOICE)
    paid_amount: Decimal = Field(Decimal("0"), ge=0)
    # Grand total of POSTED returns against this bill / invoice
    returned_amount: Decimal = Field(Decimal("0"), ge=0)

    # Returns reference their origin BILL / INVOICE
    origin_document_id: Optional[uuid.UUID] = None

    narration: Optional[str] = None

    normalize_document_type = create_uppercase_validator('document_type', set(enum_values(DocumentType)))
    normalize_status = create_uppercase_validator('status', set(enum_values(DocumentStatus)))

    @property
    def is_return(self) -> bool:
        return self.document_type in RETURN_TYPES

    @property
    def total_amount(self) -> Optional[Decimal]:
        """Finalized money of the document, None while not computed."""
        if self.document_type in AMOUNT_TYPES:
            return self.amount
        return self.totals.grand_total if self.totals else None

    @property
    def balance_amount(self) -> Decimal:
        """Unsettled part of a bill or invoice, net of posted returns. Never negative."""
        balance = (self.total_amount or Decimal("0")) - self.paid_amount - self.returned_amount
        return max(balance, Decimal("0"))

    @property
    def payment_status(self) -> PaymentStatus:
        if self.total_amount is not None and self.balance_amount <= 0:
            return PaymentStatus.PAID
        if self.paid_amount > 0:
            return PaymentStatus.PARTIALLY_PAID
        return PaymentStatus.UNPAID


class LedgerInstruction(BaseRecordSchema):
    """Balance effect a finalized document asks the ledger engine to post."""
    party_id: uuid.UUID
    document_id: uuid.UUID
    document_type: DocumentType
    amount: Decimal  # signed effect on the balance owed
    narration: Optional[str] = None


class ReturnResult(BaseRecordSchema):
    """Output of a return reconciliation."""
    document: Document
    instruction: LedgerInstruction
    returned_quantities: dict[str, Decimal]
    remaining_quantities: dict[str, Decimal]
