"""Tax rate schemas."""
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid

from pydantic import Field, computed_field

from gst_ledger.schemas.base import BaseCreateSchema, BaseRecordSchema


class SupplyType(str, Enum):
    """Place-of-supply classification."""
    INTRASTATE = "INTRASTATE"   # CGST + SGST
    INTERSTATE = "INTERSTATE"   # IGST


class TaxRate(BaseCreateSchema):
    """
    Tax rate master record.

    Components are optional: a record may carry only ``total_rate``, in which
    case the standard split is derived. When components are present they must
    agree with the total.
    """
    id: Optional[uuid.UUID] = None
    name: str = Field(..., max_length=100)
    total_rate: Decimal
    cgst_rate: Optional[Decimal] = None
    sgst_rate: Optional[Decimal] = None
    igst_rate: Optional[Decimal] = None
    cess_rate: Decimal = Decimal("0")


class ResolvedTaxRate(BaseRecordSchema):
    """Component rates applicable to one transaction."""
    supply_type: SupplyType
    cgst_rate: Decimal = Decimal("0")
    sgst_rate: Decimal = Decimal("0")
    igst_rate: Decimal = Decimal("0")
    cess_rate: Decimal = Decimal("0")

    @computed_field
    @property
    def gst_rate(self) -> Decimal:
        """CGST + SGST + IGST, excluding cess."""
        return self.cgst_rate + self.sgst_rate + self.igst_rate

    @property
    def is_interstate(self) -> bool:
        return self.supply_type == SupplyType.INTERSTATE
