"""
Module: gst_kernel.models.classification_code
Responsibility: ORM persistence for the HSN/SAC classification catalog.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - code is 4, 6 or 8 digits.
    - level, chapter and heading are derived from code.  ``set_code()`` and
      the before_insert/before_update listeners recompute them on every
      write, so a caller-supplied value never survives a flush.

Failure modes:
    - InvalidClassificationCodeError from ``set_code()`` or on flush when
      code is malformed.
    - IntegrityError on a second row with the same code (uq_classification_code).

Audit relevance:
    Rates and configurations reference codes by id.  Codes are deactivated,
    never deleted, so historical rules always point at a catalog entry.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, Index, Integer, String, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column

from gst_kernel.db.base import TrackedBase, UUIDString
from gst_kernel.domain.dtos import ClassificationCodeInfo
from gst_kernel.domain.validation import derive_code_parts, validate_code_format
from gst_kernel.exceptions import InvalidClassificationCodeError


class ClassificationCode(TrackedBase):
    """
    One HSN (goods) or SAC (services) code.

    Contract:
        Level 1 = 4-digit heading, level 2 = 6-digit sub-heading,
        level 3 = 8-digit tariff item.  chapter is the first two digits.

    Non-goals:
        - Importing or refreshing codes from tax authorities.
    """

    __tablename__ = "gst_classification_codes"

    __table_args__ = (
        UniqueConstraint("code", name="uq_classification_code"),
        Index("idx_classification_chapter", "chapter"),
        Index("idx_classification_heading", "heading"),
        Index("idx_classification_parent", "parent_id"),
    )

    code: Mapped[str] = mapped_column(String(8), nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    # Derived from code
    chapter: Mapped[str] = mapped_column(String(2), nullable=False)
    heading: Mapped[str] = mapped_column(String(4), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)

    # Weak reference, no ORM relationship
    parent_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    exemption_available: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    unit_of_measurement: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Business-category applicability, e.g. {"B2C": {"allowed": false}}
    business_category_rules: Mapped[dict[str, Any]] = mapped_column(
        JSON, default=dict, nullable=False
    )

    attributes: Mapped[dict[str, Any]] = mapped_column(
        JSON, default=dict, nullable=False
    )

    def set_code(self, code: str) -> None:
        """Assign code and recompute its derived fields."""
        code = (code or "").strip()
        if not validate_code_format(code):
            raise InvalidClassificationCodeError(code, "must be 4, 6 or 8 digits")
        self.code = code
        self.level, self.chapter, self.heading = derive_code_parts(code)

    def to_dto(self) -> ClassificationCodeInfo:
        return ClassificationCodeInfo(
            id=self.id,
            code=self.code,
            description=self.description,
            chapter=self.chapter,
            heading=self.heading,
            level=self.level,
            parent_id=self.parent_id,
            exemption_available=self.exemption_available,
            is_active=self.is_active,
            unit_of_measurement=self.unit_of_measurement,
            business_category_rules=dict(self.business_category_rules or {}),
            attributes=dict(self.attributes or {}),
        )

    def __repr__(self) -> str:
        return f"<ClassificationCode {self.code} L{self.level}>"


def _recompute_derived_fields(mapper, connection, target: ClassificationCode) -> None:
    target.set_code(target.code)


event.listen(ClassificationCode, "before_insert", _recompute_derived_fields)
event.listen(ClassificationCode, "before_update", _recompute_derived_fields)
