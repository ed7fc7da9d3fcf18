from gst_ledger.models.ledger import PartyLedgerEntry

__all__ = [
    "PartyLedgerEntry",
]
