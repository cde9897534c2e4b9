"""
Tests for the per-component rate write path.

Covers:
- Rate basis and overlap validation per (code, business type, component, zone)
- Version numbering on create and supersede
- Expire / deactivate transitions
"""

from datetime import date
from decimal import Decimal

import pytest

from gst_kernel.domain.enums import TaxComponentType
from gst_kernel.domain.validation import INVALID_RATE_BASIS, SCOPE_CHANGE_NOT_ALLOWED
from gst_kernel.exceptions import (
    InvalidExpiryError,
    OverlappingRateError,
    RecordInactiveError,
    TaxValidationError,
)
from gst_kernel.selectors.rate_selector import RateSelector
from gst_kernel.services.audit_sink import ChangeAction


class TestCreateRate:
    def test_first_version(self, code_8471, make_rate):
        info = make_rate()
        assert info.version_number == 1
        assert info.component_type is TaxComponentType.IGST
        assert info.rate_percentage == Decimal("18")

    def test_components_are_separate_scopes(self, code_8471, make_rate):
        make_rate()
        make_rate(component_type="CGST", rate_percentage=Decimal("9"))
        make_rate(component_type="SGST", rate_percentage=Decimal("9"))

    def test_overlap_rejected(self, code_8471, make_rate):
        first = make_rate()
        with pytest.raises(OverlappingRateError) as exc_info:
            make_rate(effective_from=date(2025, 1, 1))
        assert exc_info.value.conflicting_id == str(first.id)
        assert exc_info.value.code == "OVERLAPPING_RATE"

    def test_later_version_numbered_after_existing(self, code_8471, make_rate):
        make_rate(effective_to=date(2024, 6, 30))
        second = make_rate(effective_from=date(2024, 7, 1), rate_percentage=Decimal("12"))
        assert second.version_number == 2

    def test_invalid_basis(self, code_8471, make_rate):
        with pytest.raises(TaxValidationError) as exc_info:
            make_rate(rate_percentage=Decimal("0"))
        assert INVALID_RATE_BASIS in exc_info.value.error_codes

    def test_fixed_cess(self, make_code, make_rate):
        make_code("2202")
        info = make_rate(
            classification_code="2202",
            component_type="CESS",
            rate_percentage=Decimal("0"),
            fixed_amount_per_unit=Decimal("1.50"),
        )
        assert info.is_fixed_basis

    def test_logs_rate_created(self, code_8471, make_rate, captured_logs):
        info = make_rate()
        created = [r for r in captured_logs() if r["message"] == "rate_created"]
        assert created[0]["rate_id"] == str(info.id)
        assert created[0]["component_type"] == "IGST"


class TestLifecycle:
    def test_expire(self, code_8471, make_rate, rate_service, actor_id):
        info = make_rate()
        assert rate_service.expire_rate(info.id, date(2024, 12, 31), actor_id).effective_to == (
            date(2024, 12, 31)
        )

    def test_expire_before_start(self, code_8471, make_rate, rate_service, actor_id):
        info = make_rate()
        with pytest.raises(InvalidExpiryError):
            rate_service.expire_rate(info.id, date(2023, 1, 1), actor_id)

    def test_deactivate(self, code_8471, make_rate, rate_service, actor_id, audit_sink):
        info = make_rate()
        assert not rate_service.deactivate_rate(info.id, actor_id).is_active
        assert audit_sink.actions()[-1] == ("TaxRate", ChangeAction.DEACTIVATED)
        with pytest.raises(RecordInactiveError):
            rate_service.deactivate_rate(info.id, actor_id)


class TestSupersedeRate:
    def test_next_version(self, code_8471, make_rate, rate_service, actor_id, session):
        old = make_rate()
        new = rate_service.supersede_rate(
            old.id, {"rate_percentage": Decimal("12")}, date(2024, 7, 1), actor_id
        )
        assert new.version_number == 2
        assert new.rate_percentage == Decimal("12")

        previous = RateSelector(session).get(old.id)
        assert previous.effective_to == date(2024, 6, 30)
        assert previous.superseded_by_id == new.id

    def test_component_change_rejected(self, code_8471, make_rate, rate_service, actor_id):
        old = make_rate()
        with pytest.raises(TaxValidationError) as exc_info:
            rate_service.supersede_rate(
                old.id, {"component_type": "CGST"}, date(2024, 7, 1), actor_id
            )
        assert exc_info.value.error_codes == (SCOPE_CHANGE_NOT_ALLOWED,)

    def test_chain_of_versions(self, code_8471, make_rate, rate_service, actor_id, clock, session):
        v1 = make_rate()
        v2 = rate_service.supersede_rate(
            v1.id, {"rate_percentage": Decimal("12")}, date(2024, 4, 1), actor_id
        )
        v3 = rate_service.supersede_rate(
            v2.id, {"rate_percentage": Decimal("5")}, date(2024, 8, 1), actor_id
        )
        assert v3.version_number == 3

        selector = RateSelector(session, clock)
        assert selector.resolve_rate("8471", "B2B", "IGST", as_of=date(2024, 3, 31)).id == v1.id
        assert selector.resolve_rate("8471", "B2B", "IGST", as_of=date(2024, 4, 1)).id == v2.id
        assert selector.resolve_rate("8471", "B2B", "IGST").id == v2.id
        assert selector.resolve_rate("8471", "B2B", "IGST", as_of=date(2024, 8, 1)).id == v3.id
