"""
Enum Utilities for VARCHAR-based Type and Status Fields

STANDARD:
━━━━━━━━━
• Storage: VARCHAR(30) - NOT a database ENUM
• SQLAlchemy: String(30) with Mapped[str]
• Pydantic: Python str-Enum for input validation
• Case: All enum values stored in UPPERCASE

DATA FLOW:
━━━━━━━━━━
INPUT (collaborator payload):
    "bill" → normalize → DocumentType.BILL → .value → "BILL" → VARCHAR

OUTPUT (stored row):
    VARCHAR "BILL" → returned as string (no conversion needed)
"""

from enum import Enum
from typing import Any, Set


def get_enum_value(value: Any) -> str:
    """
    Safely get string value from an enum or string.

    Examples:
        >>> get_enum_value(DocumentType.BILL)
        'BILL'
        >>> get_enum_value("BILL")
        'BILL'
        >>> get_enum_value(None)
        None
    """
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    return str(value)


def enum_values(enum_class) -> list:
    """Get all values from an enum class."""
    return [e.value for e in enum_class]


def enum_comment(enum_class) -> str:
    """
    Generate a comment string for a VARCHAR column.

    Examples:
        >>> enum_comment(PartyType)
        'VENDOR, CUSTOMER'
    """
    return ", ".join(enum_values(enum_class))


# =============================================================================
# CASE NORMALIZATION FOR PYDANTIC SCHEMAS
# =============================================================================

def normalize_to_uppercase(value: Any, valid_values: Set[str]) -> Any:
    """
    Normalize a string value to UPPERCASE if it's a valid enum value.

    Input documents coming from the UI use lowercase snake case
    ('purchase_return', 'bill'); storage uses UPPERCASE.

    Examples:
        >>> normalize_to_uppercase('bill', {'BILL', 'PAYMENT'})
        'BILL'
        >>> normalize_to_uppercase('invalid', {'BILL', 'PAYMENT'})
        'invalid'  # Returned as-is for Pydantic to reject
    """
    if value is None:
        return value
    if isinstance(value, str):
        upper_v = value.strip().upper()
        if upper_v in valid_values:
            return upper_v
    return value


def create_uppercase_validator(field_name: str, valid_values: Set[str]) -> classmethod:
    """
    Create a Pydantic field_validator that normalizes values to UPPERCASE.

    Usage:
        class Document(BaseModel):
            document_type: DocumentType

            normalize_document_type = create_uppercase_validator(
                'document_type', set(enum_values(DocumentType))
            )
    """
    from pydantic import field_validator

    @field_validator(field_name, mode='before')
    @classmethod
    def validate(cls, v):
        return normalize_to_uppercase(v, valid_values)

    return validate
