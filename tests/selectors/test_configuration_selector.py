"""
Tests for configuration resolution and reporting queries.

Covers:
- resolve_configuration with default and explicit as-of dates
- Zone precedence and the wildcard
- Typed NotFound with the failing scope
- Listings: effective, reverse charge, composition, expiring, notification
- Statistics
"""

from datetime import date
from decimal import Decimal

import pytest

from gst_kernel.domain.enums import BusinessType, GeographicalZone
from gst_kernel.exceptions import ConfigurationNotFoundError
from gst_kernel.selectors.configuration_selector import ConfigurationSelector


@pytest.fixture
def selector(session, clock):
    return ConfigurationSelector(session, clock)


class TestResolve:
    def test_defaults_to_clock_date(self, code_8471, make_configuration, selector, clock):
        make_configuration(effective_to=date(2024, 6, 15))
        assert selector.resolve_configuration("8471", "B2B").total_gst_rate == Decimal("18")
        clock.advance_days(1)
        with pytest.raises(ConfigurationNotFoundError):
            selector.resolve_configuration("8471", "B2B")

    def test_explicit_as_of(self, code_8471, make_configuration, selector):
        make_configuration(effective_from=date(2025, 1, 1))
        with pytest.raises(ConfigurationNotFoundError):
            selector.resolve_configuration("8471", "B2B")
        found = selector.resolve_configuration("8471", "B2B", as_of=date(2025, 1, 1))
        assert found.effective_from == date(2025, 1, 1)

    def test_not_found_carries_scope(self, code_8471, selector):
        with pytest.raises(ConfigurationNotFoundError) as exc_info:
            selector.resolve_configuration("8471", "B2C", "south", date(2024, 3, 1))
        err = exc_info.value
        assert err.code == "CONFIGURATION_NOT_FOUND"
        assert err.classification_code == "8471"
        assert err.business_type == "B2C"
        assert err.zone == "SOUTH"
        assert err.as_of == date(2024, 3, 1)

    def test_business_type_is_exact(self, code_8471, make_configuration, selector):
        make_configuration(business_type="B2C")
        with pytest.raises(ConfigurationNotFoundError):
            selector.resolve_configuration("8471", BusinessType.B2B)

    def test_exact_zone_preferred(self, code_8471, make_configuration, selector):
        make_configuration()
        make_configuration(
            geographical_zone="SOUTH",
            total_gst_rate=Decimal("12"),
            cgst_rate=Decimal("6"),
            sgst_rate=Decimal("6"),
        )
        south = selector.resolve_configuration("8471", "B2B", GeographicalZone.SOUTH)
        west = selector.resolve_configuration("8471", "B2B", "WEST")
        wildcard = selector.resolve_configuration("8471", "B2B")
        all_india = selector.resolve_configuration("8471", "B2B", "ALL_INDIA")
        assert south.total_gst_rate == Decimal("12")
        assert west.total_gst_rate == Decimal("18")
        assert wildcard.total_gst_rate == Decimal("18")
        assert all_india.id == wildcard.id

    def test_deactivated_row_not_resolved(
        self, code_8471, make_configuration, configuration_service, actor_id, selector
    ):
        info = make_configuration()
        configuration_service.deactivate_configuration(info.id, actor_id)
        with pytest.raises(ConfigurationNotFoundError):
            selector.resolve_configuration("8471", "B2B")

    def test_same_result_on_repeat(self, code_8471, make_configuration, selector):
        make_configuration()
        first = selector.resolve_configuration("8471", "B2B")
        assert all(selector.resolve_configuration("8471", "B2B") == first for _ in range(3))


class TestHistory:
    def test_history_lists_every_version(
        self, code_8471, make_configuration, configuration_service, actor_id, selector
    ):
        old = make_configuration()
        configuration_service.supersede_configuration(
            old.id, {"description": "v2"}, date(2024, 7, 1), actor_id
        )
        history = selector.history("8471", "B2B")
        assert [h.effective_from for h in history] == [date(2024, 1, 1), date(2024, 7, 1)]


class TestListings:
    @pytest.fixture
    def rules(self, make_code, make_configuration):
        make_code("8471")
        make_code("9983")
        make_code("2202")
        make_configuration(notification_reference="01/2017")
        make_configuration(
            classification_code="9983",
            reverse_charge_applicable=True,
            effective_to=date(2024, 6, 30),
        )
        make_configuration(
            classification_code="2202",
            total_gst_rate=Decimal("28"),
            cgst_rate=Decimal("14"),
            sgst_rate=Decimal("14"),
            cess_rate=Decimal("12"),
            composition_scheme_applicable=True,
            composition_rate=Decimal("1"),
            effective_from=date(2024, 7, 1),
            notification_reference="01/2017",
        )

    def test_effective_configurations(self, rules, selector):
        codes = [c.classification_code for c in selector.effective_configurations()]
        assert codes == ["8471", "9983"]
        later = selector.effective_configurations(as_of=date(2024, 7, 1))
        assert [c.classification_code for c in later] == ["2202", "8471"]

    def test_filters(self, rules, selector):
        assert selector.effective_configurations("9983", "B2B")[0].reverse_charge_applicable
        assert selector.effective_configurations(business_type="B2C") == []

    def test_reverse_charge_and_composition(self, rules, selector):
        assert [c.classification_code for c in selector.reverse_charge_configurations()] == [
            "9983"
        ]
        composition = selector.composition_configurations(as_of=date(2024, 7, 1))
        assert [c.classification_code for c in composition] == ["2202"]

    def test_expiring_and_starting(self, rules, selector):
        expiring = selector.expiring_between(date(2024, 6, 1), date(2024, 6, 30))
        assert [c.classification_code for c in expiring] == ["9983"]
        starting = selector.starting_between(date(2024, 7, 1), date(2024, 7, 31))
        assert [c.classification_code for c in starting] == ["2202"]

    def test_by_notification_reference(self, rules, selector):
        found = selector.by_notification_reference("01/2017")
        assert [c.classification_code for c in found] == ["2202", "8471"]

    def test_distinct_rates(self, rules, selector):
        assert selector.distinct_gst_rates(as_of=date(2024, 7, 1)) == [
            Decimal("18"),
            Decimal("28"),
        ]

    def test_statistics(self, rules, selector):
        stats = selector.statistics(as_of=date(2024, 7, 1))
        assert stats.total_active == 2
        assert stats.with_cess == 1
        assert stats.with_fixed_cess == 0
        assert stats.reverse_charge == 0
        assert stats.composition_scheme == 1
        assert stats.distinct_gst_rates == (Decimal("18"), Decimal("28"))

    def test_count_active(self, rules, selector):
        assert selector.count_active() == 3
