"""
CatalogService -- maintenance of the HSN/SAC classification catalog.

Responsibility:
    Creates, updates and deactivates classification codes.  The engine
    itself treats the catalog as read-only; this service is what operator
    tooling (scripts/seed_catalog.py) writes through.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Codes are 4, 6 or 8 digits.  level, chapter and heading are always
      derived from the code, never accepted from the caller.
    - A code exists at most once.  Deactivated codes stay in the catalog
      (rates reference them by id) and are reactivated, not re-created.
    - A parent, when given or found, is a strict prefix of the child.

Failure modes:
    - InvalidClassificationCodeError on malformed codes or a non-prefix parent.
    - DuplicateCodeError when the code already exists.
    - ClassificationCodeNotFoundError when updating an unknown code or
      naming an unknown parent.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import select

from gst_kernel.domain.dtos import ClassificationCodeInfo
from gst_kernel.domain.validation import validate_code_format
from gst_kernel.exceptions import (
    ClassificationCodeNotFoundError,
    DuplicateCodeError,
    InvalidClassificationCodeError,
)
from gst_kernel.logging_config import get_logger
from gst_kernel.models.classification_code import ClassificationCode
from gst_kernel.services.base import BaseService

logger = get_logger("services.catalog")


class CatalogService(BaseService[ClassificationCode]):
    """Write side of the classification catalog."""

    def create_code(
        self,
        code: str,
        description: str,
        actor_id: UUID,
        *,
        parent_code: str | None = None,
        exemption_available: bool = False,
        unit_of_measurement: str | None = None,
        business_category_rules: dict[str, Any] | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> ClassificationCodeInfo:
        """
        Add a code to the catalog.

        Without ``parent_code`` the longest existing prefix (6 then 4
        digits) becomes the parent, if any.

        Raises:
            InvalidClassificationCodeError, DuplicateCodeError,
            ClassificationCodeNotFoundError (unknown parent_code).
        """
        code = (code or "").strip()
        if not validate_code_format(code):
            raise InvalidClassificationCodeError(code, "must be 4, 6 or 8 digits")

        existing = self._row(code)
        if existing is not None:
            raise DuplicateCodeError(code, str(existing.id))

        parent = self._resolve_parent(code, parent_code)

        row = ClassificationCode(
            description=description,
            parent_id=parent.id if parent else None,
            exemption_available=exemption_available,
            is_active=True,
            unit_of_measurement=unit_of_measurement,
            business_category_rules=dict(business_category_rules or {}),
            attributes=dict(attributes or {}),
            created_by_id=actor_id,
        )
        row.set_code(code)
        self.session.add(row)
        self.session.flush()

        logger.info(
            "classification_code_created",
            extra={
                "hsn_code": code,
                "code_id": str(row.id),
                "code_level": row.level,
                "parent_code": parent.code if parent else None,
                "actor_id": str(actor_id),
            },
        )
        return row.to_dto()

    def update_code(
        self,
        code: str,
        actor_id: UUID,
        *,
        description: str | None = None,
        exemption_available: bool | None = None,
        unit_of_measurement: str | None = None,
        business_category_rules: dict[str, Any] | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> ClassificationCodeInfo:
        """
        Update descriptive fields.  The code itself never changes.

        Raises:
            ClassificationCodeNotFoundError: If the code is unknown.
        """
        row = self._require(code)
        changes = {
            "description": description,
            "exemption_available": exemption_available,
            "unit_of_measurement": unit_of_measurement,
            "business_category_rules": business_category_rules,
            "attributes": attributes,
        }
        changed = []
        for name, value in changes.items():
            if value is not None and getattr(row, name) != value:
                setattr(row, name, dict(value) if isinstance(value, dict) else value)
                changed.append(name)
        if changed:
            row.updated_by_id = actor_id
            self.session.flush()
            logger.info(
                "classification_code_updated",
                extra={"hsn_code": row.code, "fields": changed, "actor_id": str(actor_id)},
            )
        return row.to_dto()

    def deactivate_code(self, code: str, actor_id: UUID) -> ClassificationCodeInfo:
        """Soft-deactivate; idempotent."""
        return self._set_active(code, actor_id, False)

    def reactivate_code(self, code: str, actor_id: UUID) -> ClassificationCodeInfo:
        return self._set_active(code, actor_id, True)

    def _set_active(self, code: str, actor_id: UUID, active: bool) -> ClassificationCodeInfo:
        row = self._require(code)
        if row.is_active != active:
            row.is_active = active
            row.updated_by_id = actor_id
            self.session.flush()
            logger.info(
                "classification_code_activated" if active else "classification_code_deactivated",
                extra={"hsn_code": row.code, "actor_id": str(actor_id)},
            )
        return row.to_dto()

    def _resolve_parent(self, code: str, parent_code: str | None) -> ClassificationCode | None:
        if parent_code is not None:
            parent_code = parent_code.strip()
            if len(parent_code) >= len(code) or not code.startswith(parent_code):
                raise InvalidClassificationCodeError(
                    code, f"parent {parent_code} is not a prefix of the code"
                )
            return self._require(parent_code)
        for prefix_len in range(len(code) - 2, 3, -2):
            parent = self._row(code[:prefix_len])
            if parent is not None:
                return parent
        return None

    def _row(self, code: str) -> ClassificationCode | None:
        return self.session.execute(
            select(ClassificationCode).where(ClassificationCode.code == code)
        ).scalar_one_or_none()

    def _require(self, code: str) -> ClassificationCode:
        row = self._row(code.strip())
        if row is None:
            raise ClassificationCodeNotFoundError(code)
        return row
