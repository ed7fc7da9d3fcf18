# Core utilities: errors, money helpers, enum helpers, logging
from gst_ledger.core.exceptions import (
    LedgerError,
    ValidationError,
    ConfigurationError,
    OverReturnError,
    NotPostableError,
    ConcurrentModificationError,
)

__all__ = [
    "LedgerError",
    "ValidationError",
    "ConfigurationError",
    "OverReturnError",
    "NotPostableError",
    "ConcurrentModificationError",
]
