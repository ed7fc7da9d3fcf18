"""
Ledger engine error taxonomy.

Every error is a local, recoverable condition. Each carries a human readable
message plus a ``details`` dict (item id, party id, offending value, ...) so
request handlers can render a precise message without parsing strings.
"""

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception for tax computation and ledger errors."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(LedgerError):
    """Malformed input: negative quantity, discount above 100%, missing jurisdiction."""
    pass


class ConfigurationError(LedgerError):
    """Tax rate record whose components do not add up to the declared total."""
    pass


class OverReturnError(LedgerError):
    """Return quantity exceeds what is still returnable on the origin line."""
    def __init__(self, item_id: str, requested, max_returnable, origin_document_id=None):
        self.item_id = item_id
        self.requested = requested
        self.max_returnable = max_returnable
        super().__init__(
            f"Cannot return {requested} of item '{item_id}': "
            f"maximum returnable quantity is {max_returnable}",
            {
                "item_id": item_id,
                "requested_quantity": str(requested),
                "max_returnable_quantity": str(max_returnable),
                "origin_document_id": str(origin_document_id) if origin_document_id else None,
            },
        )


class NotPostableError(LedgerError):
    """Document is not in a state (or of a type) that may affect a ledger balance."""
    pass


class ConcurrentModificationError(LedgerError):
    """A party ledger moved on between read and append."""
    pass
