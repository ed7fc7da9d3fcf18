"""Tax rate resolution for GST.

Determines place-of-supply (intrastate vs interstate) from the seller and
buyer jurisdictions and resolves the applicable component rates:
- Same state: CGST + SGST, each half of the total rate
- Different states: IGST at the full rate
- Cess is carried through in both cases
"""
import logging
import re
from decimal import Decimal
from typing import Optional

from gst_ledger.config import settings
from gst_ledger.core.exceptions import ConfigurationError, ValidationError
from gst_ledger.core.money import HUNDRED, ZERO, to_decimal
from gst_ledger.schemas.tax import TaxRate, ResolvedTaxRate, SupplyType


logger = logging.getLogger(__name__)


# GST State Code mapping
GST_STATE_CODES = {
    "01": "Jammu & Kashmir", "02": "Himachal Pradesh", "03": "Punjab",
    "04": "Chandigarh", "05": "Uttarakhand", "06": "Haryana",
    "07": "Delhi", "08": "Rajasthan", "09": "Uttar Pradesh",
    "10": "Bihar", "11": "Sikkim", "12": "Arunachal Pradesh",
    "13": "Nagaland", "14": "Manipur", "15": "Mizoram",
    "16": "Tripura", "17": "Meghalaya", "18": "Assam",
    "19": "West Bengal", "20": "Jharkhand", "21": "Odisha",
    "22": "Chhattisgarh", "23": "Madhya Pradesh", "24": "Gujarat",
    "26": "Dadra & Nagar Haveli and Daman & Diu", "27": "Maharashtra",
    "28": "Andhra Pradesh (Old)", "29": "Karnataka", "30": "Goa",
    "31": "Lakshadweep", "32": "Kerala", "33": "Tamil Nadu",
    "34": "Puducherry", "35": "Andaman & Nicobar Islands",
    "36": "Telangana", "37": "Andhra Pradesh",
    "38": "Ladakh", "97": "Other Territory"
}

# Reverse mapping: State name to code
STATE_TO_CODE = {v.upper(): k for k, v in GST_STATE_CODES.items()}

GSTIN_PATTERN = re.compile(r"^\d{2}[A-Z0-9]{13}$")


def normalize_state_code(value: Optional[str], role: str = "party") -> str:
    """
    Get GST state code from a code, a state name or a GSTIN.

    Raises ValidationError when the jurisdiction is missing or unknown; a
    wrong state silently flips CGST/SGST into IGST, so there is no default.
    """
    if value is None or not str(value).strip():
        raise ValidationError(f"Missing jurisdiction for {role}", {"role": role})

    raw = str(value).strip().upper()

    if GSTIN_PATTERN.match(raw):
        raw = raw[:2]

    if raw.isdigit():
        code = raw.zfill(2)
        if code in GST_STATE_CODES:
            return code
    elif raw in STATE_TO_CODE:
        return STATE_TO_CODE[raw]

    logger.warning(f"Unknown jurisdiction '{value}' for {role}")
    raise ValidationError(
        f"Unknown jurisdiction '{value}' for {role}",
        {"role": role, "value": value},
    )


def gst_components(total_rate) -> dict:
    """Standard CGST/SGST/IGST split for a total GST rate."""
    rate = to_decimal(total_rate, "total_rate")
    half_rate = rate / 2
    return {
        "cgst_rate": half_rate,
        "sgst_rate": half_rate,
        "igst_rate": rate,
        "total_rate": rate,
    }


def validate_tax_rate(tax_rate: TaxRate, tolerance: Decimal = None) -> None:
    """
    Check a tax rate record for internal consistency.

    Raises:
        ValidationError: rate outside 0-100
        ConfigurationError: CGST + SGST or IGST disagree with the total
    """
    tolerance = settings.TAX_RATE_TOLERANCE if tolerance is None else tolerance
    total = tax_rate.total_rate

    for field in ("total_rate", "cgst_rate", "sgst_rate", "igst_rate", "cess_rate"):
        rate = getattr(tax_rate, field)
        if rate is not None and (rate < ZERO or rate > HUNDRED):
            raise ValidationError(
                f"Tax rate '{tax_rate.name}': {field} must be between 0 and 100",
                {"tax_rate": tax_rate.name, "field": field, "value": str(rate)},
            )

    cgst, sgst = tax_rate.cgst_rate, tax_rate.sgst_rate
    if cgst is not None or sgst is not None:
        component_sum = (cgst or ZERO) + (sgst or ZERO)
        if abs(component_sum - total) > tolerance:
            logger.warning(f"Tax rate '{tax_rate.name}': CGST + SGST = {component_sum}, total = {total}")
            raise ConfigurationError(
                f"Tax rate '{tax_rate.name}': CGST + SGST ({component_sum}) should equal total tax rate ({total})",
                {"tax_rate": tax_rate.name, "total_rate": str(total), "component_sum": str(component_sum)},
            )

    if tax_rate.igst_rate is not None and abs(tax_rate.igst_rate - total) > tolerance:
        logger.warning(f"Tax rate '{tax_rate.name}': IGST = {tax_rate.igst_rate}, total = {total}")
        raise ConfigurationError(
            f"Tax rate '{tax_rate.name}': IGST ({tax_rate.igst_rate}) should equal total tax rate ({total})",
            {"tax_rate": tax_rate.name, "total_rate": str(total), "igst_rate": str(tax_rate.igst_rate)},
        )


class TaxRateResolver:
    """Resolves component rates for a transaction between two jurisdictions."""

    def __init__(self, tolerance: Decimal = None):
        self.tolerance = settings.TAX_RATE_TOLERANCE if tolerance is None else tolerance

    def supply_type(self, seller_state: str, buyer_state: str) -> SupplyType:
        seller = normalize_state_code(seller_state, "seller")
        buyer = normalize_state_code(buyer_state, "buyer")
        return SupplyType.INTRASTATE if seller == buyer else SupplyType.INTERSTATE

    def resolve(self, seller_state: str, buyer_state: str, tax_rate: TaxRate) -> ResolvedTaxRate:
        validate_tax_rate(tax_rate, self.tolerance)
        total = tax_rate.total_rate

        if self.supply_type(seller_state, buyer_state) == SupplyType.INTRASTATE:
            return ResolvedTaxRate(
                supply_type=SupplyType.INTRASTATE,
                cgst_rate=total / 2,
                sgst_rate=total / 2,
                igst_rate=ZERO,
                cess_rate=tax_rate.cess_rate,
            )

        return ResolvedTaxRate(
            supply_type=SupplyType.INTERSTATE,
            cgst_rate=ZERO,
            sgst_rate=ZERO,
            igst_rate=total,
            cess_rate=tax_rate.cess_rate,
        )
