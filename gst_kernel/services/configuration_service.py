"""
ConfigurationService -- validated write path for GST configurations.

Responsibility:
    Creates, expires, deactivates and supersedes denormalized
    TaxConfiguration rows.  A rule change is always "expire the old row,
    insert a new row"; the numbers of an existing row never change.

Architecture position:
    Kernel > Services -- imperative shell.  Uses domain/validation.py for
    the checks, ConfigurationSelector for the scope's existing rows and
    ScopeLockService to serialize writers of one scope.

Invariants enforced:
    - Component consistency (exact Decimal) and no-overlap are checked
      under the scope lock before anything is flushed.
    - The classification code must exist and be active in the catalog.
    - Supersede keeps the scope: code, business type and zone of the
      successor equal those of the row it replaces.
    - Supersede is atomic: the expiry of the old row and the insert of the
      new one run in one savepoint, so a rejected successor leaves the old
      row untouched.

Failure modes:
    - ClassificationCodeNotFoundError, RecordInactiveError (inactive code).
    - TaxValidationError / OverlappingConfigurationError.
    - RecordNotFoundError, RecordInactiveError, InvalidExpiryError for
      lifecycle transitions.

Audit relevance:
    ``configuration_created``, ``configuration_expired``,
    ``configuration_deactivated`` and ``configuration_superseded`` are
    logged and sent to the AuditSink with the actor id.
"""

from dataclasses import fields, replace
from datetime import date, timedelta
from typing import Any
from uuid import UUID

from gst_kernel.domain.dtos import (
    TaxConfigurationDraft,
    TaxConfigurationInfo,
    ValidationError,
    ValidationResult,
)
from gst_kernel.domain.validation import (
    OVERLAPPING_CONFIGURATION,
    SCOPE_CHANGE_NOT_ALLOWED,
    validate_configuration,
)
from gst_kernel.domain.enums import BusinessType, normalize_zone
from gst_kernel.exceptions import (
    InvalidExpiryError,
    OverlappingConfigurationError,
    RecordInactiveError,
    TaxValidationError,
)
from gst_kernel.logging_config import get_logger
from gst_kernel.models.tax_configuration import TaxConfiguration
from gst_kernel.selectors.catalog_selector import CatalogSelector
from gst_kernel.selectors.configuration_selector import ConfigurationSelector
from gst_kernel.services.audit_sink import ChangeAction
from gst_kernel.services.rule_lifecycle import VersionedRuleService
from gst_kernel.services.scope_lock_service import configuration_scope_key

logger = get_logger("services.configuration")

_SCOPE_FIELDS = ("classification_code", "business_type", "geographical_zone")
_DRAFT_FIELDS = tuple(f.name for f in fields(TaxConfigurationDraft))


def require_active_code(session, classification_code: str):
    """Catalog entry for the code; inactive codes cannot receive new rules."""
    info = CatalogSelector(session).lookup(classification_code)
    if not info.is_active:
        raise RecordInactiveError("ClassificationCode", info.code)
    return info


class ConfigurationService(VersionedRuleService[TaxConfiguration]):
    """Write side for TaxConfiguration."""

    model = TaxConfiguration
    entity_type = "TaxConfiguration"
    overlap_code = OVERLAPPING_CONFIGURATION
    overlap_error = OverlappingConfigurationError

    def _scope_key(self, row) -> str:
        return configuration_scope_key(
            row.classification_code,
            _business_type(row),
            _zone(row),
        )

    def _scope_rows(self, row) -> list[TaxConfigurationInfo]:
        return ConfigurationSelector(self.session, self._clock).scope_rows(
            row.classification_code, _business_type(row), _zone(row)
        )

    def create_configuration(
        self,
        draft: TaxConfigurationDraft,
        actor_id: UUID,
    ) -> TaxConfigurationInfo:
        """
        Validate and insert a new configuration version.

        Raises:
            ClassificationCodeNotFoundError: Unknown code.
            OverlappingConfigurationError: Window intersects an active row
                of the same scope.
            TaxValidationError: Any other rule violation.
        """
        code_info = require_active_code(self.session, draft.classification_code)
        self._locks.acquire(self._scope_key(draft))
        row = self._insert(draft, code_info.id, actor_id)

        self._record(
            row,
            ChangeAction.CREATED,
            actor_id,
            {
                "total_gst_rate": row.total_gst_rate,
                "effective_from": row.effective_from,
                "effective_to": row.effective_to,
            },
        )
        logger.info(
            "configuration_created",
            extra={
                "configuration_id": str(row.id),
                "hsn_code": row.classification_code,
                "business_type": row.business_type,
                "zone": row.geographical_zone,
                "total_gst_rate": row.total_gst_rate,
                "effective_from": row.effective_from,
                "effective_to": row.effective_to,
                "actor_id": str(actor_id),
            },
        )
        return row.to_dto()

    def deactivate_configuration(self, configuration_id: UUID, actor_id: UUID) -> TaxConfigurationInfo:
        return self.deactivate(configuration_id, actor_id)

    def expire_configuration(
        self,
        configuration_id: UUID,
        effective_to: date,
        actor_id: UUID,
    ) -> TaxConfigurationInfo:
        return self.expire(configuration_id, effective_to, actor_id)

    def supersede_configuration(
        self,
        configuration_id: UUID,
        changes: dict[str, Any],
        effective_from: date,
        actor_id: UUID,
    ) -> TaxConfigurationInfo:
        """
        Replace a configuration from ``effective_from`` onwards.

        The old row is expired on the day before ``effective_from`` (unless
        it already ends earlier) and linked to the successor through
        superseded_by_id.  ``changes`` overrides fields of the old row;
        the successor inherits the old effective_to when that lies on or
        after ``effective_from`` and ``changes`` does not set one.

        Returns:
            The new configuration.

        Raises:
            RecordNotFoundError, RecordInactiveError.
            InvalidExpiryError: effective_from is not after the old start.
            TaxValidationError: ``changes`` alters the scope or yields an
                invalid successor.
        """
        old = self._require_active(configuration_id)
        if effective_from <= old.effective_from:
            raise InvalidExpiryError(
                self.entity_type,
                str(old.id),
                old.effective_from,
                effective_from - timedelta(days=1),
            )
        _reject_scope_change(self.entity_type, changes)

        draft = replace(
            _draft_from_row(old),
            **{**changes, "effective_from": effective_from},
        )
        if "effective_to" not in changes and old.effective_to is not None:
            if old.effective_to < effective_from:
                draft = replace(draft, effective_to=None)

        self._locks.acquire(self._scope_key(old))
        with self.session.begin_nested():
            previous_end = old.effective_to
            new_end = effective_from - timedelta(days=1)
            if previous_end is None or previous_end > new_end:
                old.effective_to = new_end
                old.updated_by_id = actor_id
                self.session.flush()

            new = self._insert(draft, old.classification_code_id, actor_id)
            old.superseded_by_id = new.id
            self.session.flush()

        self._record(
            old,
            ChangeAction.SUPERSEDED,
            actor_id,
            {
                "superseded_by_id": new.id,
                "previous_effective_to": previous_end,
                "effective_to": old.effective_to,
            },
        )
        self._record(
            new,
            ChangeAction.CREATED,
            actor_id,
            {
                "supersedes_id": old.id,
                "total_gst_rate": new.total_gst_rate,
                "effective_from": new.effective_from,
                "effective_to": new.effective_to,
            },
        )
        logger.info(
            "configuration_superseded",
            extra={
                "configuration_id": str(old.id),
                "successor_id": str(new.id),
                "hsn_code": old.classification_code,
                "effective_from": effective_from,
                "actor_id": str(actor_id),
            },
        )
        return new.to_dto()

    def _insert(
        self,
        draft: TaxConfigurationDraft,
        classification_code_id: UUID,
        actor_id: UUID,
    ) -> TaxConfiguration:
        existing = ConfigurationSelector(self.session, self._clock).scope_rows(
            draft.classification_code, draft.business_type, draft.geographical_zone
        )
        result = validate_configuration(draft, existing)
        if not result:
            self._reject(result, draft.classification_code)

        row = TaxConfiguration(
            classification_code_id=classification_code_id,
            classification_code=draft.classification_code,
            business_type=draft.business_type.value,
            geographical_zone=(
                draft.geographical_zone.value if draft.geographical_zone else None
            ),
            total_gst_rate=draft.total_gst_rate,
            cgst_rate=draft.cgst_rate,
            sgst_rate=draft.sgst_rate,
            utgst_rate=draft.utgst_rate,
            igst_rate=draft.igst_rate,
            cess_rate=draft.cess_rate,
            cess_amount_per_unit=draft.cess_amount_per_unit,
            effective_from=draft.effective_from,
            effective_to=draft.effective_to,
            reverse_charge_applicable=draft.reverse_charge_applicable,
            composition_scheme_applicable=draft.composition_scheme_applicable,
            composition_rate=draft.composition_rate,
            notification_reference=draft.notification_reference,
            description=draft.description,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(row)
        self.session.flush()
        return row


def _business_type(row) -> BusinessType:
    return BusinessType.parse(row.business_type)


def _zone(row):
    return normalize_zone(row.geographical_zone)


def _draft_from_row(row: TaxConfiguration) -> TaxConfigurationDraft:
    return TaxConfigurationDraft(**{name: getattr(row, name) for name in _DRAFT_FIELDS})


def _reject_scope_change(entity_type: str, changes: dict[str, Any]) -> None:
    moved = sorted(set(changes) & set(_SCOPE_FIELDS + ("effective_from",)))
    if moved:
        raise TaxValidationError(
            entity_type,
            ValidationResult.failure(
                *(
                    ValidationError(
                        code=SCOPE_CHANGE_NOT_ALLOWED,
                        message=f"{name} cannot change on supersede",
                        field=name,
                    )
                    for name in moved
                )
            ).errors,
        )
