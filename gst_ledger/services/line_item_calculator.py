"""
Line item tax calculation.

One formula for every document type (purchase order, bill, return, invoice):

    line_amount     = quantity * rate
    discount_amount = line_amount * discount_percentage / 100
    taxable_amount  = line_amount - discount_amount
    <x>_amount      = taxable_amount * <x>_rate / 100     (cgst, sgst, igst, cess)
    line_total      = taxable_amount + all component amounts

Arithmetic is exact Decimal; rounding happens once, at document level.
"""
import logging
from decimal import Decimal
from typing import Optional

from gst_ledger.core.exceptions import ValidationError
from gst_ledger.core.money import HUNDRED, ZERO, to_decimal
from gst_ledger.schemas.document import ComputedLine, LineItem
from gst_ledger.schemas.tax import ResolvedTaxRate


logger = logging.getLogger(__name__)


def _reject(item_id: str, field: str, value, reason: str):
    logger.warning(f"Rejected line for item '{item_id}': {field}={value} ({reason})")
    raise ValidationError(
        f"Item '{item_id}': {field} {reason}",
        {"item_id": item_id, "field": field, "value": str(value)},
    )


def calculate_line(
    item_id: str,
    quantity,
    rate,
    discount_percentage,
    tax: ResolvedTaxRate,
    description: Optional[str] = None,
    hsn_sac_code: Optional[str] = None,
    tax_rate_name: Optional[str] = None,
    allow_zero_quantity: bool = False,
) -> ComputedLine:
    """
    Compute taxable amount and tax components for one line.

    Args:
        item_id: Item reference, used in error details
        quantity: Quantity (> 0, or >= 0 with allow_zero_quantity)
        rate: Unit rate (>= 0)
        discount_percentage: Discount percentage (0-100)
        tax: Resolved component rates

    Raises:
        ValidationError: Non-numeric or out-of-range input. Values are
            never clamped or defaulted.
    """
    quantity = to_decimal(quantity, "quantity")
    rate = to_decimal(rate, "rate")
    discount_percentage = to_decimal(discount_percentage, "discount_percentage")

    if quantity < ZERO or (quantity == ZERO and not allow_zero_quantity):
        _reject(item_id, "quantity", quantity, "must be greater than zero")
    if rate < ZERO:
        _reject(item_id, "rate", rate, "cannot be negative")
    if discount_percentage < ZERO or discount_percentage > HUNDRED:
        _reject(item_id, "discount_percentage", discount_percentage, "must be between 0 and 100")

    line_amount = quantity * rate
    discount_amount = line_amount * discount_percentage / HUNDRED
    taxable_amount = line_amount - discount_amount

    cgst_amount = taxable_amount * tax.cgst_rate / HUNDRED
    sgst_amount = taxable_amount * tax.sgst_rate / HUNDRED
    igst_amount = taxable_amount * tax.igst_rate / HUNDRED
    cess_amount = taxable_amount * tax.cess_rate / HUNDRED

    line_total = taxable_amount + cgst_amount + sgst_amount + igst_amount + cess_amount

    return ComputedLine(
        item_id=item_id,
        description=description,
        hsn_sac_code=hsn_sac_code,
        quantity=quantity,
        rate=rate,
        discount_percentage=discount_percentage,
        tax_rate_name=tax_rate_name,
        tax=tax,
        line_amount=line_amount,
        discount_amount=discount_amount,
        taxable_amount=taxable_amount,
        cgst_amount=cgst_amount,
        sgst_amount=sgst_amount,
        igst_amount=igst_amount,
        cess_amount=cess_amount,
        line_total=line_total,
    )


def calculate_line_item(item: LineItem, tax: ResolvedTaxRate) -> ComputedLine:
    """Compute an authored LineItem with its already resolved tax rates."""
    return calculate_line(
        item_id=item.item_id,
        quantity=item.quantity,
        rate=item.rate,
        discount_percentage=item.discount_percentage,
        tax=tax,
        description=item.description,
        hsn_sac_code=item.hsn_sac_code,
        tax_rate_name=item.tax_rate.name,
    )


def reprice_line(line: ComputedLine, quantity: Decimal) -> ComputedLine:
    """
    Recompute an existing line for a different quantity.

    Rate, discount percentage and resolved tax rates are reused verbatim so a
    return prices at the original terms, never at current catalog prices.
    """
    return calculate_line(
        item_id=line.item_id,
        quantity=quantity,
        rate=line.rate,
        discount_percentage=line.discount_percentage,
        tax=line.tax,
        description=line.description,
        hsn_sac_code=line.hsn_sac_code,
        tax_rate_name=line.tax_rate_name,
    )
