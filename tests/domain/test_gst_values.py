"""
Tests for decimal helpers and domain DTOs.

Covers:
- Float refusal and half-up paisa rounding
- Inclusive effective windows
- Draft normalization
- Per-component amount with min/max clamping
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from gst_kernel.domain.dtos import (
    EffectiveWindow,
    Page,
    TaxConfigurationDraft,
    TaxConfigurationInfo,
    TaxRateDraft,
    TaxRateInfo,
    ValidationError,
    ValidationResult,
)
from gst_kernel.domain.enums import BusinessType, GeographicalZone, TaxComponentType
from gst_kernel.domain.values import (
    display_decimal,
    percent_of,
    round_money,
    round_rate,
    to_decimal,
)
from gst_kernel.exceptions import UnknownBusinessTypeError


class TestToDecimal:
    def test_exact_inputs(self):
        assert to_decimal(5) == Decimal("5")
        assert to_decimal(" 0.125 ") == Decimal("0.125")
        assert to_decimal(Decimal("1.10")) == Decimal("1.10")
        assert to_decimal(None) is None

    def test_float_refused(self):
        with pytest.raises(TypeError):
            to_decimal(0.1)

    def test_bool_refused(self):
        with pytest.raises(TypeError):
            to_decimal(True)


class TestRounding:
    """Half-up to paisa at each step."""

    def test_round_money_half_up(self):
        assert round_money(Decimal("0.005")) == Decimal("0.01")
        assert round_money(Decimal("50.005")) == Decimal("50.01")
        assert round_money(Decimal("2.344")) == Decimal("2.34")

    def test_percent_of(self):
        assert percent_of(Decimal("1000"), Decimal("18")) == Decimal("180.00")
        assert percent_of(Decimal("99.99"), Decimal("5")) == Decimal("5.00")

    def test_round_rate(self):
        assert round_rate(Decimal("12.345678")) == Decimal("12.3457")

    def test_display_decimal_drops_trailing_zeros(self):
        assert display_decimal(Decimal("9.000000000")) == "9"
        assert display_decimal(Decimal("10.000")) == "10"
        assert display_decimal(Decimal("0.125")) == "0.125"


class TestEffectiveWindow:
    """Both ends inclusive; None end is open."""

    def test_contains_both_ends(self):
        window = EffectiveWindow(date(2024, 1, 1), date(2024, 12, 31))
        assert window.contains(date(2024, 1, 1))
        assert window.contains(date(2024, 12, 31))
        assert not window.contains(date(2025, 1, 1))
        assert not window.contains(date(2023, 12, 31))

    def test_open_window(self):
        window = EffectiveWindow(date(2024, 1, 1))
        assert window.is_open
        assert window.contains(date(2099, 1, 1))
        assert str(window) == "[2024-01-01, open]"

    def test_touching_windows_overlap(self):
        first = EffectiveWindow(date(2024, 1, 1), date(2024, 6, 30))
        assert first.overlaps(EffectiveWindow(date(2024, 6, 30), None))
        assert not first.overlaps(EffectiveWindow(date(2024, 7, 1), None))


class TestDrafts:
    def test_configuration_draft_normalizes(self):
        draft = TaxConfigurationDraft(
            classification_code="8471",
            business_type="b2b",
            total_gst_rate="18",
            cgst_rate=9,
            sgst_rate="9",
            effective_from=date(2024, 1, 1),
            geographical_zone="ALL_INDIA",
            igst_rate=None,
        )
        assert draft.business_type is BusinessType.B2B
        assert draft.geographical_zone is None
        assert draft.total_gst_rate == Decimal("18")
        assert draft.igst_rate == Decimal("0")

    def test_configuration_draft_unknown_business_type(self):
        with pytest.raises(UnknownBusinessTypeError):
            TaxConfigurationDraft("8471", "RETAIL", "18", date(2024, 1, 1))

    def test_rate_draft_defaults_rate_to_zero(self):
        draft = TaxRateDraft(
            classification_code="2202",
            business_type="B2B",
            component_type="cess",
            effective_from=date(2024, 1, 1),
            rate_percentage=None,
            fixed_amount_per_unit="1.50",
            geographical_zone="south",
        )
        assert draft.component_type is TaxComponentType.CESS
        assert draft.rate_percentage == Decimal("0")
        assert draft.geographical_zone is GeographicalZone.SOUTH


def _rate(**overrides) -> TaxRateInfo:
    values = {
        "id": uuid4(),
        "classification_code_id": uuid4(),
        "classification_code": "8471",
        "business_type": BusinessType.B2B,
        "component_type": TaxComponentType.IGST,
        "geographical_zone": None,
        "rate_percentage": Decimal("18"),
        "effective_from": date(2024, 1, 1),
    }
    values.update(overrides)
    return TaxRateInfo(**values)


class TestRateAmount:
    """TaxRateInfo.compute_amount."""

    def test_percentage(self):
        assert _rate().compute_amount(Decimal("1000")) == Decimal("180.00")

    def test_fixed_per_unit(self):
        rate = _rate(rate_percentage=Decimal("0"), fixed_amount_per_unit=Decimal("2.5"))
        assert rate.is_fixed_basis
        assert rate.compute_amount(Decimal("1000"), Decimal("4")) == Decimal("10.00")

    def test_minimum_clamp(self):
        rate = _rate(rate_percentage=Decimal("1"), minimum_amount=Decimal("25"))
        assert rate.compute_amount(Decimal("100")) == Decimal("25.00")

    def test_maximum_clamp(self):
        rate = _rate(maximum_amount=Decimal("100"))
        assert rate.compute_amount(Decimal("1000")) == Decimal("100.00")

    def test_effective_on_respects_active_flag(self):
        assert _rate().is_effective_on(date(2024, 5, 1))
        assert not _rate(is_active=False).is_effective_on(date(2024, 5, 1))


class TestConfigurationInfo:
    def test_has_cess(self):
        base = {
            "id": uuid4(),
            "classification_code_id": uuid4(),
            "classification_code": "2202",
            "business_type": BusinessType.B2B,
            "geographical_zone": None,
            "total_gst_rate": Decimal("28"),
            "effective_from": date(2024, 1, 1),
        }
        assert not TaxConfigurationInfo(**base).has_cess
        assert TaxConfigurationInfo(**base, cess_rate=Decimal("12")).has_cess
        assert TaxConfigurationInfo(**base, cess_amount_per_unit=Decimal("400")).has_cess
        assert not TaxConfigurationInfo(**base, cess_rate=Decimal("0")).has_cess


class TestValidationResult:
    def test_bool_and_has(self):
        assert ValidationResult.success()
        failed = ValidationResult.from_errors([ValidationError("X", "bad")])
        assert not failed
        assert failed.has("X")
        assert not failed.has("Y")


class TestPage:
    def test_paging_math(self):
        page = Page(items=(), page=0, size=2, total=5)
        assert page.total_pages == 3
        assert page.has_next
        assert not Page(items=(), page=2, size=2, total=5).has_next
