"""
RateService -- validated write path for per-component tax rates.

Responsibility:
    Creates, expires, deactivates and supersedes TaxRate rows.  Each
    supersede produces the next version of the rate (version_number + 1)
    and links the expired row to it.

Architecture position:
    Kernel > Services -- imperative shell.  Same lifecycle as
    ConfigurationService (see rule_lifecycle.py); the scope additionally
    includes the component type.

Invariants enforced:
    - Exactly one primary basis (percentage or fixed per unit), bounds in
      order, no negatives, no overlap within the scope.
    - version_number of a successor is the predecessor's plus one.

Failure modes:
    - ClassificationCodeNotFoundError, RecordInactiveError (inactive code).
    - TaxValidationError / OverlappingRateError.
    - RecordNotFoundError, RecordInactiveError, InvalidExpiryError.
"""

from dataclasses import fields, replace
from datetime import date, timedelta
from typing import Any
from uuid import UUID

from gst_kernel.domain.dtos import TaxRateDraft, TaxRateInfo, ValidationError
from gst_kernel.domain.enums import BusinessType, TaxComponentType, normalize_zone
from gst_kernel.domain.validation import (
    OVERLAPPING_RATE,
    SCOPE_CHANGE_NOT_ALLOWED,
    validate_rate,
)
from gst_kernel.exceptions import InvalidExpiryError, OverlappingRateError, TaxValidationError
from gst_kernel.logging_config import get_logger
from gst_kernel.models.tax_rate import TaxRate
from gst_kernel.selectors.rate_selector import RateSelector
from gst_kernel.services.audit_sink import ChangeAction
from gst_kernel.services.configuration_service import require_active_code
from gst_kernel.services.rule_lifecycle import VersionedRuleService
from gst_kernel.services.scope_lock_service import rate_scope_key

logger = get_logger("services.rate")

_SCOPE_FIELDS = (
    "classification_code",
    "business_type",
    "component_type",
    "geographical_zone",
    "effective_from",
)
_DRAFT_FIELDS = tuple(f.name for f in fields(TaxRateDraft))


class RateService(VersionedRuleService[TaxRate]):
    """Write side for TaxRate."""

    model = TaxRate
    entity_type = "TaxRate"
    overlap_code = OVERLAPPING_RATE
    overlap_error = OverlappingRateError

    def _scope(self, row) -> tuple:
        return (
            row.classification_code,
            BusinessType.parse(row.business_type),
            TaxComponentType.parse(row.component_type),
            normalize_zone(row.geographical_zone),
        )

    def _scope_key(self, row) -> str:
        return rate_scope_key(*self._scope(row))

    def _scope_rows(self, row) -> list[TaxRateInfo]:
        return RateSelector(self.session, self._clock).scope_rows(*self._scope(row))

    def create_rate(self, draft: TaxRateDraft, actor_id: UUID) -> TaxRateInfo:
        """
        Validate and insert the first version of a rate in its scope (or a
        later, non-overlapping version).

        Raises:
            ClassificationCodeNotFoundError, OverlappingRateError,
            TaxValidationError.
        """
        code_info = require_active_code(self.session, draft.classification_code)
        self._locks.acquire(self._scope_key(draft))
        row = self._insert(draft, code_info.id, actor_id, version_number=self._next_version(draft))

        self._record(
            row,
            ChangeAction.CREATED,
            actor_id,
            {
                "component_type": row.component_type,
                "rate_percentage": row.rate_percentage,
                "fixed_amount_per_unit": row.fixed_amount_per_unit,
                "version_number": row.version_number,
            },
        )
        logger.info(
            "rate_created",
            extra={
                "rate_id": str(row.id),
                "hsn_code": row.classification_code,
                "business_type": row.business_type,
                "component_type": row.component_type,
                "zone": row.geographical_zone,
                "rate_percentage": row.rate_percentage,
                "version_number": row.version_number,
                "effective_from": row.effective_from,
                "actor_id": str(actor_id),
            },
        )
        return row.to_dto()

    def deactivate_rate(self, rate_id: UUID, actor_id: UUID) -> TaxRateInfo:
        return self.deactivate(rate_id, actor_id)

    def expire_rate(self, rate_id: UUID, effective_to: date, actor_id: UUID) -> TaxRateInfo:
        return self.expire(rate_id, effective_to, actor_id)

    def supersede_rate(
        self,
        rate_id: UUID,
        changes: dict[str, Any],
        effective_from: date,
        actor_id: UUID,
    ) -> TaxRateInfo:
        """
        Replace a rate from ``effective_from`` with its next version.

        Same window handling as ConfigurationService.supersede_configuration.

        Returns:
            The new version.
        """
        old = self._require_active(rate_id)
        if effective_from <= old.effective_from:
            raise InvalidExpiryError(
                self.entity_type,
                str(old.id),
                old.effective_from,
                effective_from - timedelta(days=1),
            )
        moved = sorted(set(changes) & set(_SCOPE_FIELDS))
        if moved:
            raise TaxValidationError(
                self.entity_type,
                tuple(
                    ValidationError(
                        code=SCOPE_CHANGE_NOT_ALLOWED,
                        message=f"{name} cannot change on supersede",
                        field=name,
                    )
                    for name in moved
                ),
            )

        base = TaxRateDraft(**{name: getattr(old, name) for name in _DRAFT_FIELDS})
        draft = replace(base, **{**changes, "effective_from": effective_from})
        if (
            "effective_to" not in changes
            and old.effective_to is not None
            and old.effective_to < effective_from
        ):
            draft = replace(draft, effective_to=None)

        self._locks.acquire(self._scope_key(old))
        with self.session.begin_nested():
            previous_end = old.effective_to
            new_end = effective_from - timedelta(days=1)
            if previous_end is None or previous_end > new_end:
                old.effective_to = new_end
                old.updated_by_id = actor_id
                self.session.flush()

            new = self._insert(
                draft,
                old.classification_code_id,
                actor_id,
                version_number=max(old.version_number + 1, self._next_version(draft)),
            )
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
            {"supersedes_id": old.id, "version_number": new.version_number},
        )
        logger.info(
            "rate_superseded",
            extra={
                "rate_id": str(old.id),
                "successor_id": str(new.id),
                "hsn_code": old.classification_code,
                "component_type": old.component_type,
                "version_number": new.version_number,
                "effective_from": effective_from,
                "actor_id": str(actor_id),
            },
        )
        return new.to_dto()

    def _next_version(self, draft: TaxRateDraft) -> int:
        """One past the highest version already in the scope, or 1."""
        rows = self._scope_rows(draft)
        return max((r.version_number for r in rows), default=0) + 1

    def _insert(
        self,
        draft: TaxRateDraft,
        classification_code_id: UUID,
        actor_id: UUID,
        *,
        version_number: int,
    ) -> TaxRate:
        result = validate_rate(draft, self._scope_rows(draft))
        if not result:
            self._reject(result, draft.classification_code)

        row = TaxRate(
            classification_code_id=classification_code_id,
            classification_code=draft.classification_code,
            business_type=draft.business_type.value,
            component_type=draft.component_type.value,
            geographical_zone=(
                draft.geographical_zone.value if draft.geographical_zone else None
            ),
            rate_percentage=draft.rate_percentage,
            fixed_amount_per_unit=draft.fixed_amount_per_unit,
            minimum_amount=draft.minimum_amount,
            maximum_amount=draft.maximum_amount,
            effective_from=draft.effective_from,
            effective_to=draft.effective_to,
            reverse_charge_applicable=draft.reverse_charge_applicable,
            composition_scheme_applicable=draft.composition_scheme_applicable,
            is_active=True,
            version_number=version_number,
            notification_number=draft.notification_number,
            notification_date=draft.notification_date,
            description=draft.description,
            source_reference=draft.source_reference,
            created_by_id=actor_id,
        )
        self.session.add(row)
        self.session.flush()
        return row
