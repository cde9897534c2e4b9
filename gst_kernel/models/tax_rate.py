"""
Module: gst_kernel.models.tax_rate
Responsibility: ORM persistence for versioned, date-scoped per-component
    tax rates (one row per code / business type / component / zone version).
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - Append-only history: after insert only is_active, effective_to and
      superseded_by_id may change (db/immutability.py).
    - component_type, business_type and geographical_zone are stored as
      strings and parsed back through the fail-loud enum mappings.
    - Basis, bounds and no-overlap are validated by RateService before
      insert; the table does not repeat them as CHECK constraints.

Failure modes:
    - UnknownComponentTypeError / UnknownBusinessTypeError / UnknownZoneError
      from ``to_dto()`` if a row holds a value outside the vocabulary.
    - ImmutabilityViolationError on forbidden updates or deletes.

Audit relevance:
    version_number increases by one each time a rate is superseded, and
    superseded_by_id links the expired row to its successor.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from gst_kernel.db.base import TrackedBase, UUIDString
from gst_kernel.domain.dtos import TaxRateInfo
from gst_kernel.domain.enums import BusinessType, GeographicalZone, TaxComponentType


class TaxRate(TrackedBase):
    """
    One version of a per-component GST rate.

    Contract:
        geographical_zone NULL means "all zones".  effective_to NULL means
        open-ended.  Either rate_percentage or fixed_amount_per_unit is the
        primary basis, never both.
    """

    __tablename__ = "gst_tax_rates"

    __table_args__ = (
        Index(
            "idx_tax_rate_scope",
            "classification_code",
            "business_type",
            "component_type",
            "geographical_zone",
        ),
        Index("idx_tax_rate_effective", "effective_from", "effective_to"),
        Index("idx_tax_rate_code_id", "classification_code_id"),
    )

    classification_code_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Denormalized code string for scope queries without a join
    classification_code: Mapped[str] = mapped_column(String(8), nullable=False)

    business_type: Mapped[str] = mapped_column(String(20), nullable=False)
    component_type: Mapped[str] = mapped_column(String(10), nullable=False)
    geographical_zone: Mapped[str | None] = mapped_column(String(20), nullable=True)

    rate_percentage: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    fixed_amount_per_unit: Mapped[Decimal | None] = mapped_column(nullable=True)
    minimum_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    maximum_amount: Mapped[Decimal | None] = mapped_column(nullable=True)

    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    reverse_charge_applicable: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    composition_scheme_applicable: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    version_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    # Government notification that published this rate
    notification_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notification_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    source_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    superseded_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def to_dto(self) -> TaxRateInfo:
        return TaxRateInfo(
            id=self.id,
            classification_code_id=self.classification_code_id,
            classification_code=self.classification_code,
            business_type=BusinessType.parse(self.business_type),
            component_type=TaxComponentType.parse(self.component_type),
            geographical_zone=(
                GeographicalZone.parse(self.geographical_zone)
                if self.geographical_zone
                else None
            ),
            rate_percentage=self.rate_percentage,
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            fixed_amount_per_unit=self.fixed_amount_per_unit,
            minimum_amount=self.minimum_amount,
            maximum_amount=self.maximum_amount,
            reverse_charge_applicable=self.reverse_charge_applicable,
            composition_scheme_applicable=self.composition_scheme_applicable,
            is_active=self.is_active,
            version_number=self.version_number,
            notification_number=self.notification_number,
            notification_date=self.notification_date,
            description=self.description,
            source_reference=self.source_reference,
            superseded_by_id=self.superseded_by_id,
        )

    def __repr__(self) -> str:
        zone = self.geographical_zone or "*"
        return (
            f"<TaxRate {self.classification_code}/{self.business_type}/"
            f"{self.component_type}/{zone} v{self.version_number} "
            f"{self.effective_from}..{self.effective_to or 'open'}>"
        )
