"""Decimal helpers for currency and percentage values."""
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from gst_ledger.config import settings
from gst_ledger.core.exceptions import ValidationError


ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """
    Convert user input to Decimal.

    Floats go through ``str`` so 0.1 stays 0.1. Blank or non-numeric input
    raises ValidationError instead of silently becoming zero.
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number", {"field": field, "value": value})
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be a number", {"field": field, "value": value})
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number", {"field": field, "value": str(value)})
    return result


def ensure_unit_multiple(value: Decimal, field: str = "amount", unit: Optional[Decimal] = None) -> Decimal:
    """Reject amounts finer than ROUND_OFF_UNIT; stored balances keep only that precision."""
    unit = unit or settings.ROUND_OFF_UNIT
    if value % unit != ZERO:
        raise ValidationError(
            f"{field} {value} is not a whole multiple of {unit}",
            {"field": field, "value": str(value), "unit": str(unit)},
        )
    return value


def quantize(value: Decimal, unit: Optional[Decimal] = None, rounding: Optional[str] = None) -> Decimal:
    """Round to ``unit`` (defaults to ROUND_OFF_UNIT) with the configured rounding mode."""
    return value.quantize(unit or settings.ROUND_OFF_UNIT, rounding=rounding or settings.rounding)
