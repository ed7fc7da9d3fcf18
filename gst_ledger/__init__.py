"""GST document tax computation and party ledger engine."""

__version__ = "1.0.0"
