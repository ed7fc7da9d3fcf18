from decimal import Decimal

import pytest

from gst_ledger.core.exceptions import ConfigurationError, ValidationError
from gst_ledger.schemas import SupplyType, TaxRate
from gst_ledger.services.tax_rate_resolver import (
    TaxRateResolver, gst_components, normalize_state_code, validate_tax_rate,
)


@pytest.fixture
def resolver():
    return TaxRateResolver()


def test_same_state_splits_into_cgst_and_sgst(resolver, gst18):
    resolved = resolver.resolve("27", "27", gst18)

    assert resolved.supply_type == SupplyType.INTRASTATE
    assert resolved.cgst_rate == Decimal("9")
    assert resolved.sgst_rate == Decimal("9")
    assert resolved.igst_rate == 0
    assert resolved.gst_rate == Decimal("18")


def test_different_states_use_igst(resolver, gst18):
    resolved = resolver.resolve("27", "29", gst18)

    assert resolved.is_interstate
    assert resolved.igst_rate == Decimal("18")
    assert resolved.cgst_rate == 0
    assert resolved.sgst_rate == 0


def test_cess_is_carried_in_both_regimes(resolver):
    tobacco = TaxRate(name="GST 28% + cess", total_rate=Decimal("28"), cess_rate=Decimal("12"))

    assert resolver.resolve("07", "07", tobacco).cess_rate == Decimal("12")
    assert resolver.resolve("07", "09", tobacco).cess_rate == Decimal("12")


def test_total_only_record_uses_standard_split(resolver):
    gst5 = TaxRate(name="GST 5%", total_rate=Decimal("5"))

    resolved = resolver.resolve("33", "33", gst5)

    assert resolved.cgst_rate == Decimal("2.5")
    assert resolved.sgst_rate == Decimal("2.5")


@pytest.mark.parametrize("value,expected", [
    ("27", "27"),
    ("7", "07"),
    ("Maharashtra", "27"),
    ("karnataka", "29"),
    ("27AAPFU0939F1ZV", "27"),
])
def test_normalize_state_code_accepts_codes_names_and_gstins(value, expected):
    assert normalize_state_code(value) == expected


@pytest.mark.parametrize("value", [None, "", "   ", "99", "Atlantis"])
def test_missing_or_unknown_jurisdiction_is_rejected(value):
    with pytest.raises(ValidationError) as exc:
        normalize_state_code(value, "buyer")
    assert exc.value.details["role"] == "buyer"


def test_resolve_without_buyer_state_fails(resolver, gst18):
    with pytest.raises(ValidationError):
        resolver.resolve("27", None, gst18)


def test_components_not_adding_up_is_a_configuration_error(resolver):
    broken = TaxRate(name="Broken", total_rate=Decimal("18"), cgst_rate=Decimal("9"), sgst_rate=Decimal("8"))

    with pytest.raises(ConfigurationError) as exc:
        resolver.resolve("27", "27", broken)
    assert exc.value.details["tax_rate"] == "Broken"


def test_igst_mismatch_is_a_configuration_error():
    broken = TaxRate(name="Broken IGST", total_rate=Decimal("18"), igst_rate=Decimal("12"))

    with pytest.raises(ConfigurationError):
        validate_tax_rate(broken)


def test_component_drift_within_tolerance_is_accepted():
    drifted = TaxRate(
        name="GST 18% (legacy)",
        total_rate=Decimal("18"),
        cgst_rate=Decimal("9.005"),
        sgst_rate=Decimal("9"),
    )

    validate_tax_rate(drifted, tolerance=Decimal("0.01"))


@pytest.mark.parametrize("field", ["total_rate", "cess_rate"])
def test_rate_outside_percentage_range_is_rejected(field):
    values = {"total_rate": Decimal("18"), field: Decimal("120")}
    rate = TaxRate(name="Out of range", **values)

    with pytest.raises(ValidationError) as exc:
        validate_tax_rate(rate)
    assert exc.value.details["field"] == field


def test_gst_components():
    components = gst_components("12")

    assert components["cgst_rate"] == Decimal("6")
    assert components["sgst_rate"] == Decimal("6")
    assert components["igst_rate"] == Decimal("12")
