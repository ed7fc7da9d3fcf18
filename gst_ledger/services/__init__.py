# Services module
from gst_ledger.services.tax_rate_resolver import TaxRateResolver
from gst_ledger.services.line_item_calculator import calculate_line, calculate_line_item
from gst_ledger.services.document_totals import compute_totals, compute_document, finalize_document
from gst_ledger.services.document_state_machine import transition_document
from gst_ledger.services.return_reconciler import ReturnReconciler
from gst_ledger.services.payment_allocator import PaymentAllocator
from gst_ledger.services.ledger_engine import LedgerEngine, classify_overdue

# Storage
from gst_ledger.services.ledger_repository import LedgerRepository

__all__ = [
    "TaxRateResolver",
    "calculate_line",
    "calculate_line_item",
    "compute_totals",
    "compute_document",
    "finalize_document",
    "transition_document",
    "ReturnReconciler",
    "PaymentAllocator",
    "LedgerEngine",
    "classify_overdue",
    # Storage
    "LedgerRepository",
]
