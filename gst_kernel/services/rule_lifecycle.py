"""
VersionedRuleService -- shared lifecycle for append-only tax rule rows.

Responsibility:
    Implements the transitions that rates and configurations share:
    deactivate, expire, and the lock/validate/reject sequence that guards
    every insert.  ConfigurationService and RateService supply the model,
    the scope key and the validation function.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Every write to a scope runs under that scope's lock row.
    - Nothing is flushed until validation has passed.
    - Expiry never ends a window before it starts and never extends a
      window into an active neighbour.
    - Deactivated rows stay deactivated (reactivation is blocked at the
      ORM layer too).

Failure modes:
    - RecordNotFoundError, RecordInactiveError, InvalidExpiryError.
    - TaxValidationError or its overlap subclass from ``_reject``.

Audit relevance:
    Every transition emits a TaxChange through the injected AuditSink and
    a structured log line naming the row, the actor and the change.
"""

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from gst_kernel.domain.clock import Clock, SystemClock
from gst_kernel.domain.dtos import ValidationResult
from gst_kernel.domain.resolution import find_overlaps
from gst_kernel.exceptions import (
    InvalidExpiryError,
    RecordInactiveError,
    RecordNotFoundError,
    TaxValidationError,
)
from gst_kernel.logging_config import get_logger
from gst_kernel.services.audit_sink import AuditSink, ChangeAction, NullAuditSink, TaxChange
from gst_kernel.services.base import BaseService, ModelType
from gst_kernel.services.scope_lock_service import ScopeLockService

logger = get_logger("services.rule_lifecycle")


class VersionedRuleService(BaseService[ModelType]):
    """
    Base for services over append-only, date-scoped rule rows.

    Subclasses set ``model``, ``entity_type``, ``overlap_code`` and
    ``overlap_error`` and implement ``_scope_key`` and ``_scope_rows``.
    """

    model: type
    entity_type: str
    overlap_code: str
    overlap_error: type

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        audit_sink: AuditSink | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._audit = audit_sink or NullAuditSink()
        self._locks = ScopeLockService(session)

    # -- subclass hooks ----------------------------------------------------

    def _scope_key(self, row) -> str:
        raise NotImplementedError

    def _scope_rows(self, row) -> list:
        raise NotImplementedError

    # -- shared transitions ------------------------------------------------

    def deactivate(self, row_id: UUID, actor_id: UUID):
        """
        Soft-deactivate a row.  Its history stays in place.

        Raises:
            RecordNotFoundError, RecordInactiveError.
        """
        row = self._require_active(row_id)
        self._locks.acquire(self._scope_key(row))
        row.is_active = False
        row.updated_by_id = actor_id
        self.session.flush()

        self._record(row, ChangeAction.DEACTIVATED, actor_id, {})
        logger.info(
            f"{self._event_prefix}_deactivated",
            extra={
                "entity_id": str(row.id),
                "hsn_code": row.classification_code,
                "actor_id": str(actor_id),
            },
        )
        return row.to_dto()

    def expire(self, row_id: UUID, effective_to: date, actor_id: UUID):
        """
        Set (or move) the inclusive end date of a row's window.

        Raises:
            RecordNotFoundError, RecordInactiveError, InvalidExpiryError,
            the overlap error if the new window would reach an active
            neighbour.
        """
        row = self._require_active(row_id)
        if effective_to < row.effective_from:
            raise InvalidExpiryError(
                self.entity_type, str(row.id), row.effective_from, effective_to
            )

        self._locks.acquire(self._scope_key(row))
        conflicts = find_overlaps(
            row.effective_from,
            effective_to,
            self._scope_rows(row),
            exclude_id=row.id,
        )
        if conflicts:
            self._raise_overlap(conflicts[0], ())

        previous = row.effective_to
        row.effective_to = effective_to
        row.updated_by_id = actor_id
        self.session.flush()

        self._record(
            row,
            ChangeAction.EXPIRED,
            actor_id,
            {"previous_effective_to": previous, "effective_to": effective_to},
        )
        logger.info(
            f"{self._event_prefix}_expired",
            extra={
                "entity_id": str(row.id),
                "hsn_code": row.classification_code,
                "effective_to": effective_to,
                "previous_effective_to": previous,
                "actor_id": str(actor_id),
            },
        )
        return row.to_dto()

    # -- helpers -----------------------------------------------------------

    @property
    def _event_prefix(self) -> str:
        return "configuration" if self.entity_type == "TaxConfiguration" else "rate"

    def _get(self, row_id: UUID):
        row = self.session.get(self.model, row_id)
        if row is None:
            raise RecordNotFoundError(self.entity_type, str(row_id))
        return row

    def _require_active(self, row_id: UUID):
        row = self._get(row_id)
        if not row.is_active:
            raise RecordInactiveError(self.entity_type, str(row.id))
        return row

    def _reject(self, result: ValidationResult, classification_code: str) -> None:
        """Raise the typed error for a failed validation result."""
        logger.warning(
            f"{self._event_prefix}_rejected",
            extra={
                "hsn_code": classification_code,
                "error_codes": [e.code for e in result.errors],
            },
        )
        overlaps = [e for e in result.errors if e.code == self.overlap_code]
        if overlaps:
            details = overlaps[0].details or {}
            raise self.overlap_error(
                details.get("conflicting_id"),
                details.get("conflicting_from"),
                details.get("conflicting_to"),
                errors=result.errors,
            )
        raise TaxValidationError(self.entity_type, result.errors)

    def _raise_overlap(self, conflict, errors: tuple) -> None:
        raise self.overlap_error(
            str(conflict.id),
            conflict.effective_from,
            conflict.effective_to,
            errors=errors,
        )

    def _record(self, row, action: ChangeAction, actor_id: UUID, payload: dict) -> None:
        self._audit.record(
            TaxChange(
                entity_type=self.entity_type,
                entity_id=row.id,
                action=action,
                actor_id=actor_id,
                occurred_at=self._clock.now(),
                classification_code=row.classification_code,
                payload=payload,
            )
        )
