"""
Tests for the configuration write path.

Covers:
- Validated insert (component consistency, overlap, inactive code)
- Expire, deactivate and supersede transitions
- Audit events and structured logs for each transition
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from gst_kernel.domain.validation import (
    COMPONENT_SUM_MISMATCH,
    OVERLAPPING_CONFIGURATION,
    SCOPE_CHANGE_NOT_ALLOWED,
)
from gst_kernel.exceptions import (
    ClassificationCodeNotFoundError,
    InvalidExpiryError,
    OverlappingConfigurationError,
    RecordInactiveError,
    RecordNotFoundError,
    TaxValidationError,
)
from gst_kernel.selectors.configuration_selector import ConfigurationSelector
from gst_kernel.services.audit_sink import ChangeAction


class TestCreateConfiguration:
    def test_create_returns_snapshot(self, code_8471, make_configuration, actor_id):
        info = make_configuration(notification_reference="01/2017-Central Tax (Rate)")
        assert info.classification_code == "8471"
        assert info.classification_code_id == code_8471.id
        assert info.total_gst_rate == Decimal("18")
        assert info.cgst_rate == Decimal("9")
        assert info.geographical_zone is None
        assert info.is_active
        assert info.notification_reference == "01/2017-Central Tax (Rate)"

    def test_unknown_code(self, make_configuration):
        with pytest.raises(ClassificationCodeNotFoundError):
            make_configuration(classification_code="9999")

    def test_inactive_code(self, code_8471, catalog_service, make_configuration, actor_id):
        catalog_service.deactivate_code("8471", actor_id)
        with pytest.raises(RecordInactiveError) as exc_info:
            make_configuration()
        assert exc_info.value.entity_type == "ClassificationCode"

    def test_component_mismatch_rejected(self, code_8471, make_configuration, session):
        with pytest.raises(TaxValidationError) as exc_info:
            make_configuration(sgst_rate=Decimal("8"))
        assert COMPONENT_SUM_MISMATCH in exc_info.value.error_codes
        assert ConfigurationSelector(session).for_code("8471") == []

    def test_overlap_rejected(self, code_8471, make_configuration):
        first = make_configuration()
        with pytest.raises(OverlappingConfigurationError) as exc_info:
            make_configuration(effective_from=date(2024, 6, 1))
        err = exc_info.value
        assert err.code == OVERLAPPING_CONFIGURATION
        assert err.conflicting_id == str(first.id)
        assert err.conflicting_from == date(2024, 1, 1)
        assert err.conflicting_to is None
        assert isinstance(err, TaxValidationError)

    def test_overlap_is_per_scope(self, code_8471, make_configuration):
        make_configuration()
        make_configuration(business_type="B2C")
        make_configuration(geographical_zone="SOUTH")

    def test_adjacent_versions_allowed(self, code_8471, make_configuration):
        make_configuration(effective_to=date(2024, 6, 30))
        make_configuration(effective_from=date(2024, 7, 1), total_gst_rate=Decimal("12"),
                           cgst_rate=Decimal("6"), sgst_rate=Decimal("6"))

    def test_rejection_logged(self, code_8471, make_configuration, captured_logs):
        with pytest.raises(TaxValidationError):
            make_configuration(sgst_rate=Decimal("8"))
        rejected = [r for r in captured_logs() if r["message"] == "configuration_rejected"]
        assert rejected[0]["error_codes"] == [COMPONENT_SUM_MISMATCH]

    def test_audit_and_log(self, code_8471, make_configuration, audit_sink, captured_logs):
        info = make_configuration()
        assert audit_sink.actions() == [("TaxConfiguration", ChangeAction.CREATED)]
        assert audit_sink.events[0].entity_id == info.id
        created = [r for r in captured_logs() if r["message"] == "configuration_created"]
        assert created[0]["configuration_id"] == str(info.id)


class TestExpire:
    def test_expire_sets_end(self, code_8471, make_configuration, configuration_service, actor_id):
        info = make_configuration()
        expired = configuration_service.expire_configuration(info.id, date(2024, 12, 31), actor_id)
        assert expired.effective_to == date(2024, 12, 31)

    def test_expire_same_day_allowed(
        self, code_8471, make_configuration, configuration_service, actor_id
    ):
        info = make_configuration()
        expired = configuration_service.expire_configuration(info.id, date(2024, 1, 1), actor_id)
        assert expired.effective_to == date(2024, 1, 1)

    def test_expire_before_start(
        self, code_8471, make_configuration, configuration_service, actor_id
    ):
        info = make_configuration()
        with pytest.raises(InvalidExpiryError):
            configuration_service.expire_configuration(info.id, date(2023, 12, 31), actor_id)

    def test_extending_into_neighbour_rejected(
        self, code_8471, make_configuration, configuration_service, actor_id
    ):
        first = make_configuration(effective_to=date(2024, 6, 30))
        make_configuration(effective_from=date(2024, 7, 1))
        with pytest.raises(OverlappingConfigurationError):
            configuration_service.expire_configuration(first.id, date(2024, 7, 1), actor_id)

    def test_unknown_id(self, configuration_service, actor_id):
        with pytest.raises(RecordNotFoundError):
            configuration_service.expire_configuration(uuid4(), date(2024, 1, 1), actor_id)

    def test_audit_payload(
        self, code_8471, make_configuration, configuration_service, actor_id, audit_sink
    ):
        info = make_configuration()
        configuration_service.expire_configuration(info.id, date(2024, 12, 31), actor_id)
        event = audit_sink.events[-1]
        assert event.action is ChangeAction.EXPIRED
        assert event.payload == {
            "previous_effective_to": None,
            "effective_to": date(2024, 12, 31),
        }


class TestDeactivate:
    def test_deactivate(self, code_8471, make_configuration, configuration_service, actor_id):
        info = make_configuration()
        assert not configuration_service.deactivate_configuration(info.id, actor_id).is_active

    def test_deactivate_twice(self, code_8471, make_configuration, configuration_service, actor_id):
        info = make_configuration()
        configuration_service.deactivate_configuration(info.id, actor_id)
        with pytest.raises(RecordInactiveError):
            configuration_service.deactivate_configuration(info.id, actor_id)

    def test_deactivated_row_frees_window(
        self, code_8471, make_configuration, configuration_service, actor_id
    ):
        info = make_configuration()
        configuration_service.deactivate_configuration(info.id, actor_id)
        replacement = make_configuration(total_gst_rate=Decimal("12"),
                                         cgst_rate=Decimal("6"), sgst_rate=Decimal("6"))
        assert replacement.is_active

    def test_expire_inactive(self, code_8471, make_configuration, configuration_service, actor_id):
        info = make_configuration()
        configuration_service.deactivate_configuration(info.id, actor_id)
        with pytest.raises(RecordInactiveError):
            configuration_service.expire_configuration(info.id, date(2024, 12, 31), actor_id)


class TestSupersede:
    def test_rate_change(self, code_8471, make_configuration, configuration_service, actor_id,
                         session):
        old = make_configuration()
        new = configuration_service.supersede_configuration(
            old.id,
            {"total_gst_rate": Decimal("12"), "cgst_rate": Decimal("6"), "sgst_rate": Decimal("6")},
            date(2024, 7, 1),
            actor_id,
        )
        assert new.effective_from == date(2024, 7, 1)
        assert new.effective_to is None
        assert new.total_gst_rate == Decimal("12")

        previous = ConfigurationSelector(session).get(old.id)
        assert previous.effective_to == date(2024, 6, 30)
        assert previous.superseded_by_id == new.id
        assert previous.is_active

    def test_resolution_switches_on_boundary(
        self, code_8471, make_configuration, configuration_service, actor_id, session, clock
    ):
        old = make_configuration()
        configuration_service.supersede_configuration(
            old.id,
            {"total_gst_rate": Decimal("12"), "cgst_rate": Decimal("6"), "sgst_rate": Decimal("6")},
            date(2024, 7, 1),
            actor_id,
        )
        selector = ConfigurationSelector(session, clock)
        before = selector.resolve_configuration("8471", "B2B", as_of=date(2024, 6, 30))
        after = selector.resolve_configuration("8471", "B2B", as_of=date(2024, 7, 1))
        assert before.total_gst_rate == Decimal("18")
        assert after.total_gst_rate == Decimal("12")

    def test_successor_inherits_bounded_end(
        self, code_8471, make_configuration, configuration_service, actor_id
    ):
        old = make_configuration(effective_to=date(2024, 12, 31))
        new = configuration_service.supersede_configuration(
            old.id, {"description": "Corrected"}, date(2024, 7, 1), actor_id
        )
        assert new.effective_to == date(2024, 12, 31)
        assert new.description == "Corrected"

    def test_scope_change_rejected(
        self, code_8471, make_configuration, configuration_service, actor_id
    ):
        old = make_configuration()
        with pytest.raises(TaxValidationError) as exc_info:
            configuration_service.supersede_configuration(
                old.id, {"business_type": "B2C"}, date(2024, 7, 1), actor_id
            )
        assert exc_info.value.error_codes == (SCOPE_CHANGE_NOT_ALLOWED,)

    def test_must_start_after_old(
        self, code_8471, make_configuration, configuration_service, actor_id
    ):
        old = make_configuration()
        with pytest.raises(InvalidExpiryError):
            configuration_service.supersede_configuration(
                old.id, {}, date(2024, 1, 1), actor_id
            )

    def test_invalid_successor_leaves_old_untouched(
        self, code_8471, make_configuration, configuration_service, actor_id, session
    ):
        old = make_configuration()
        with pytest.raises(TaxValidationError):
            configuration_service.supersede_configuration(
                old.id, {"total_gst_rate": Decimal("12")}, date(2024, 7, 1), actor_id
            )
        session.expire_all()
        previous = ConfigurationSelector(session).get(old.id)
        assert previous.effective_to is None
        assert previous.superseded_by_id is None

    def test_audit_sequence(
        self, code_8471, make_configuration, configuration_service, actor_id, audit_sink
    ):
        old = make_configuration()
        new = configuration_service.supersede_configuration(
            old.id, {"description": "v2"}, date(2024, 7, 1), actor_id
        )
        assert audit_sink.actions() == [
            ("TaxConfiguration", ChangeAction.CREATED),
            ("TaxConfiguration", ChangeAction.SUPERSEDED),
            ("TaxConfiguration", ChangeAction.CREATED),
        ]
        assert audit_sink.for_entity(old.id)[-1].payload["superseded_by_id"] == new.id
