"""
Tests for per-component rate resolution and reporting.

Covers:
- Explicit component and preference-order resolution
- RateNotFoundError naming the components tried
- effective_components, search and statistics
"""

from datetime import date
from decimal import Decimal

import pytest

from gst_kernel.domain.enums import TaxComponentType
from gst_kernel.exceptions import RateNotFoundError
from gst_kernel.selectors.rate_selector import RateSelector


@pytest.fixture
def selector(session, clock):
    return RateSelector(session, clock)


@pytest.fixture
def intra_rates(code_8471, make_rate):
    make_rate(component_type="CGST", rate_percentage=Decimal("9"))
    make_rate(component_type="SGST", rate_percentage=Decimal("9"))


class TestResolveRate:
    def test_explicit_component(self, code_8471, make_rate, selector):
        make_rate()
        rate = selector.resolve_rate("8471", "B2B", "igst")
        assert rate.component_type is TaxComponentType.IGST

    def test_preference_order_prefers_igst(self, intra_rates, make_rate, selector):
        make_rate()
        assert selector.resolve_rate("8471", "B2B").component_type is TaxComponentType.IGST

    def test_preference_falls_through_to_cgst(self, intra_rates, selector):
        assert selector.resolve_rate("8471", "B2B").component_type is TaxComponentType.CGST

    def test_custom_preference(self, intra_rates, session, clock):
        selector = RateSelector(session, clock, component_preference=("SGST", "CGST"))
        assert selector.resolve_rate("8471", "B2B").component_type is TaxComponentType.SGST

    def test_not_found_lists_components_tried(self, code_8471, selector):
        with pytest.raises(RateNotFoundError) as exc_info:
            selector.resolve_rate("8471", "B2B")
        err = exc_info.value
        assert err.code == "RATE_NOT_FOUND"
        assert err.component_types == ("IGST", "CGST", "SGST")
        assert err.as_of == date(2024, 6, 15)

    def test_zone_precedence(self, code_8471, make_rate, selector):
        make_rate()
        south = make_rate(geographical_zone="SOUTH", rate_percentage=Decimal("12"))
        assert selector.resolve_rate("8471", "B2B", "IGST", "SOUTH").id == south.id
        assert selector.resolve_rate("8471", "B2B", "IGST").rate_percentage == Decimal("18")


class TestEffectiveComponents:
    def test_all_resolving_components(self, intra_rates, make_rate, selector):
        make_rate(component_type="CESS", rate_percentage=Decimal("12"))
        components = selector.effective_components("8471", "B2B")
        assert set(components) == {
            TaxComponentType.CGST,
            TaxComponentType.SGST,
            TaxComponentType.CESS,
        }

    def test_respects_as_of(self, code_8471, make_rate, selector):
        make_rate(effective_from=date(2025, 1, 1))
        assert selector.effective_components("8471", "B2B") == {}
        assert TaxComponentType.IGST in selector.effective_components(
            "8471", "B2B", as_of=date(2025, 1, 1)
        )


class TestSearch:
    def test_filters_and_paging(self, intra_rates, make_rate, selector):
        make_rate(business_type="B2C")
        page = selector.search(classification_code="8471", business_type="B2B")
        assert page.total == 2
        assert [r.component_type.value for r in page.items] == ["CGST", "SGST"]

        page = selector.search(component_type="IGST")
        assert page.total == 1
        assert page.items[0].business_type.value == "B2C"

        assert selector.search(page=1, size=2).items[0].component_type.value == "SGST"

    def test_as_of_filter(self, code_8471, make_rate, selector):
        make_rate(effective_from=date(2025, 1, 1))
        assert selector.search(as_of=date(2024, 6, 15)).total == 0
        assert selector.search(as_of=date(2025, 1, 1)).total == 1

    def test_inactive_hidden_by_default(self, code_8471, make_rate, rate_service, actor_id,
                                        selector):
        info = make_rate()
        rate_service.deactivate_rate(info.id, actor_id)
        assert selector.search().total == 0
        assert selector.search(active_only=False).total == 1


class TestStatistics:
    def test_statistics(self, intra_rates, make_rate, make_code, selector):
        make_code("2202")
        make_rate(
            classification_code="2202",
            component_type="CESS",
            rate_percentage=Decimal("0"),
            fixed_amount_per_unit=Decimal("1.5"),
        )
        make_rate(business_type="B2C")
        stats = selector.statistics()
        assert stats.total_active == 4
        assert stats.by_component == {"CGST": 1, "SGST": 1, "CESS": 1, "IGST": 1}
        assert stats.by_business_type == {"B2B": 3, "B2C": 1}
        assert stats.average_rate == Decimal("12.0000")
        assert stats.highest_rate == Decimal("18")
        assert stats.lowest_rate == Decimal("9")
        assert stats.fixed_basis_count == 1
