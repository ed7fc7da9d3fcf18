"""Business party (vendor / customer) schemas."""
import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from gst_ledger.core.enum_utils import create_uppercase_validator, enum_values
from gst_ledger.schemas.base import BaseCreateSchema


class PartyType(str, Enum):
    """Party type. Fixes the ledger polarity for the life of the ledger."""
    VENDOR = "VENDOR"       # Accounts payable, natural side CREDIT
    CUSTOMER = "CUSTOMER"   # Accounts receivable, natural side DEBIT


class BalanceType(str, Enum):
    """Side of an opening balance."""
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


# Natural side of the balance owed for each party type
NATURAL_SIDE = {
    PartyType.VENDOR: BalanceType.CREDIT,
    PartyType.CUSTOMER: BalanceType.DEBIT,
}


class Party(BaseCreateSchema):
    """Vendor or customer as supplied by the master-data collaborator."""
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    company_id: Optional[uuid.UUID] = None
    name: str = Field(..., max_length=200)
    party_type: PartyType
    state_code: Optional[str] = Field(None, description="GST state code, state name or GSTIN")
    gstin: Optional[str] = Field(None, max_length=15)

    opening_balance: Decimal = Field(Decimal("0"), ge=0)
    opening_balance_type: Optional[BalanceType] = None
    opening_balance_date: Optional[date] = None

    credit_limit: Decimal = Field(Decimal("0"), ge=0)
    payment_terms_days: int = Field(0, ge=0)

    normalize_party_type = create_uppercase_validator('party_type', set(enum_values(PartyType)))
    normalize_balance_type = create_uppercase_validator('opening_balance_type', set(enum_values(BalanceType)))

    @property
    def natural_side(self) -> BalanceType:
        return NATURAL_SIDE[self.party_type]

    @property
    def signed_opening_balance(self) -> Decimal:
        """
        Opening balance expressed as amount owed.

        Positive when on the natural side (we owe the vendor / the customer
        owes us), negative for an advance.
        """
        side = self.opening_balance_type or self.natural_side
        if side == self.natural_side:
            return self.opening_balance
        return -self.opening_balance
