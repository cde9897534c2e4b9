"""
Tests for engine settings and seed set loading.

Covers:
- parse_settings defaults, overrides and validation errors
- get_engine_settings against the bundled defaults.yaml
- Seed set parsing (decimals, dates, enums) and load_seed_set
- Checksum determinism
"""

from datetime import date
from decimal import Decimal

import pytest

from gst_config import default_seed_path, get_engine_settings, load_seed_set
from gst_config.loader import (
    compute_checksum,
    parse_configuration,
    parse_date,
    parse_decimal,
    parse_rate,
    parse_settings,
)
from gst_config.schema import EngineSettings
from gst_kernel.domain.enums import BusinessType, GeographicalZone, TaxComponentType
from gst_kernel.exceptions import UnknownComponentTypeError


class TestParseSettings:
    def test_empty_mapping_gives_defaults(self):
        settings = parse_settings({})
        assert settings.monetary_places == 2
        assert settings.rate_places == 4
        assert settings.default_business_type is BusinessType.B2B
        assert settings.component_preference == EngineSettings().component_preference
        assert settings.fallback_to_component_rates
        assert settings.checksum == compute_checksum({})

    def test_overrides(self):
        settings = parse_settings(
            {
                "rate_places": 2,
                "default_business_type": "b2c",
                "component_preference": ["CGST", "SGST"],
                "split_union_territory": True,
                "expected_business_types": ["B2B"],
            }
        )
        assert settings.rate_places == 2
        assert settings.default_business_type is BusinessType.B2C
        assert settings.component_preference == (TaxComponentType.CGST, TaxComponentType.SGST)
        assert settings.split_union_territory
        assert settings.expected_business_types == (BusinessType.B2B,)

    @pytest.mark.parametrize(
        "data, message",
        [
            ({"component_preference": []}, "must not be empty"),
            ({"component_preference": ["IGST", "igst"]}, "duplicates"),
            ({"fallback_to_component_rates": "yes"}, "true or false"),
            ({"monetary_places": 10}, "between 0 and 9"),
            ({"rate_places": True}, "between 0 and 9"),
        ],
    )
    def test_invalid_settings(self, data, message):
        with pytest.raises(ValueError, match=message):
            parse_settings(data)

    def test_unknown_component(self):
        with pytest.raises(UnknownComponentTypeError):
            parse_settings({"component_preference": ["VAT"]})

    def test_checksum_is_deterministic(self):
        first = parse_settings({"rate_places": 3, "monetary_places": 2})
        second = parse_settings({"monetary_places": 2, "rate_places": 3})
        assert first.checksum == second.checksum
        assert first.checksum != parse_settings({"rate_places": 2}).checksum


class TestGetEngineSettings:
    def test_bundled_defaults(self, captured_logs):
        settings = get_engine_settings()
        assert settings.component_preference == (
            TaxComponentType.IGST,
            TaxComponentType.CGST,
            TaxComponentType.SGST,
        )
        assert settings.expected_business_types == (BusinessType.B2B, BusinessType.B2C)
        loaded = [r for r in captured_logs() if r["message"] == "gst_config_loaded"]
        assert loaded[0]["checksum"] == settings.checksum

    def test_file_without_settings(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert get_engine_settings(path).monetary_places == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_engine_settings(tmp_path / "missing.yaml")


class TestScalars:
    def test_parse_decimal(self):
        assert parse_decimal("18", "rate") == Decimal("18")
        assert parse_decimal(0.25, "rate") == Decimal("0.25")
        assert parse_decimal(None, "rate") is None

    def test_parse_decimal_rejects(self):
        with pytest.raises(ValueError, match="boolean"):
            parse_decimal(True, "rate")
        with pytest.raises(ValueError, match="cannot parse"):
            parse_decimal("eighteen", "rate")

    def test_parse_date(self):
        assert parse_date("2024-07-01") == date(2024, 7, 1)
        assert parse_date(date(2024, 7, 1)) == date(2024, 7, 1)
        with pytest.raises(ValueError):
            parse_date(20240701)


class TestSeedParsing:
    def test_configuration_entry(self):
        draft = parse_configuration(
            {
                "classification_code": 8471,
                "business_type": "B2B",
                "total_gst_rate": "18",
                "cgst_rate": 9,
                "sgst_rate": 9,
                "geographical_zone": "south",
                "effective_from": "2024-01-01",
                "effective_to": "2024-12-31",
            }
        )
        assert draft.classification_code == "8471"
        assert draft.business_type is BusinessType.B2B
        assert draft.geographical_zone is GeographicalZone.SOUTH
        assert draft.cgst_rate == Decimal("9")
        assert draft.igst_rate == Decimal("0")
        assert draft.cess_rate is None
        assert draft.effective_to == date(2024, 12, 31)

    def test_configuration_requires_rate(self):
        with pytest.raises(KeyError):
            parse_configuration(
                {"classification_code": "8471", "business_type": "B2B",
                 "effective_from": "2024-01-01"}
            )

    def test_rate_entry(self):
        draft = parse_rate(
            {
                "classification_code": "2202",
                "business_type": "B2B",
                "component_type": "cess",
                "fixed_amount_per_unit": "1.50",
                "effective_from": "2024-01-01",
                "notification_date": "2023-12-28",
            }
        )
        assert draft.component_type is TaxComponentType.CESS
        assert draft.rate_percentage == Decimal("0")
        assert draft.fixed_amount_per_unit == Decimal("1.50")
        assert draft.notification_date == date(2023, 12, 28)


class TestLoadSeedSet:
    def test_bundled_sample(self):
        seed = load_seed_set(default_seed_path())
        assert seed.name == "india_sample"
        assert [c.code for c in seed.codes] == ["8471", "847130", "2202", "8703", "9983"]
        assert len(seed.configurations) == 5
        assert len(seed.rates) == 4
        assert seed.configurations[2].cess_rate == Decimal("12")
        assert seed.configurations[4].reverse_charge_applicable

    def test_name_defaults_to_file_stem(self, tmp_path):
        path = tmp_path / "fy2025_rules.yaml"
        path.write_text(
            "codes:\n"
            "  - code: '9983'\n"
            "    description: Professional services\n"
        )
        seed = load_seed_set(path)
        assert seed.name == "fy2025_rules"
        assert seed.codes[0].code == "9983"
        assert not seed.is_empty

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("name: nothing\n")
        seed = load_seed_set(path)
        assert seed.is_empty
        assert seed.checksum == compute_checksum({"name": "nothing"})
