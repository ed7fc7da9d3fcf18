"""
Base Schema Classes for Pydantic Models

This module provides base classes that handle common patterns like UUID and
Decimal serialization, ensuring consistency across all ledger schemas.

RULE: Schemas that are built from stored ledger rows (``from_attributes=True``)
MUST inherit from BaseResponseSchema. Computed results that must never be
mutated after creation inherit from BaseRecordSchema.
"""

from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict


class BaseResponseSchema(BaseModel):
    """
    Base class for schemas that read from ORM models.

    Features:
    - Enables from_attributes for ORM compatibility
    - Serializes UUIDs as strings and Decimals as strings (no float drift)

    Usage:
        class LedgerEntry(BaseResponseSchema):
            party_id: UUID
            running_balance: Decimal
    """
    model_config = ConfigDict(
        from_attributes=True,
        json_encoders={
            UUID: str,
            Decimal: str,
            datetime: lambda v: v.isoformat() if v else None,
            date: lambda v: v.isoformat() if v else None,
        },
        populate_by_name=True,
    )


class BaseRecordSchema(BaseModel):
    """
    Base class for immutable computed records (lines, totals, ledger rows).

    Any change must go through ``model_copy(update=...)`` which yields a new
    record; the original is never mutated.
    """
    model_config = ConfigDict(
        frozen=True,
        from_attributes=True,
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for input schemas supplied by collaborators.

    Extra fields coming from the UI payload (unit names, addresses, ...) are
    ignored.
    """
    model_config = ConfigDict(
        extra='ignore',
        validate_assignment=True,
    )


# Type aliases for common UUID patterns
UUIDField = UUID
OptionalUUID = Optional[UUID]
