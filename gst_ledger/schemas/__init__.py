# Schemas module
from gst_ledger.schemas.tax import SupplyType, TaxRate, ResolvedTaxRate
from gst_ledger.schemas.party import PartyType, BalanceType, Party
from gst_ledger.schemas.document import (
    DocumentType, DocumentStatus, PaymentStatus,
    LineItem, ComputedLine, DocumentTotals, PaymentAllocation, Document,
    LedgerInstruction, ReturnResult,
)
from gst_ledger.schemas.ledger import (
    LedgerEntry, BalanceSummary, LedgerStatement,
    AgingBucket, OverdueBill, OverdueExposure,
)

__all__ = [
    "SupplyType",
    "TaxRate",
    "ResolvedTaxRate",
    "PartyType",
    "BalanceType",
    "Party",
    "DocumentType",
    "DocumentStatus",
    "PaymentStatus",
    "LineItem",
    "ComputedLine",
    "DocumentTotals",
    "PaymentAllocation",
    "Document",
    "LedgerInstruction",
    "ReturnResult",
    # Ledger
    "LedgerEntry",
    "BalanceSummary",
    "LedgerStatement",
    "AgingBucket",
    "OverdueBill",
    "OverdueExposure",
]
