"""
Module: gst_kernel.models.tax_configuration
Responsibility: ORM persistence for the denormalized, date-scoped GST
    configuration: one row per (code, business type, zone) version holding
    the total rate, its CGST/SGST/UTGST/IGST decomposition, cess terms and
    regulatory flags.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - Invariant A (component consistency) and Invariant B (no overlap) are
      validated by ConfigurationService under the scope lock before insert.
    - Append-only history: after insert only is_active, effective_to and
      superseded_by_id may change (db/immutability.py).  Deletes are refused.

Failure modes:
    - Enum mapping errors from ``to_dto()`` on out-of-vocabulary strings.
    - ImmutabilityViolationError on forbidden updates or deletes.

Audit relevance:
    notification_reference ties each configuration to the government
    notification that published it.  This is the row a calculation cites.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from gst_kernel.db.base import TrackedBase, UUIDString
from gst_kernel.domain.dtos import TaxConfigurationInfo
from gst_kernel.domain.enums import BusinessType, GeographicalZone


class TaxConfiguration(TrackedBase):
    """
    One version of the composite GST rule for a scope.

    Contract:
        geographical_zone NULL is the wildcard.  Intra-state shape uses
        cgst/sgst/utgst; inter-state shape uses igst.  Rates are percentages.
    """

    __tablename__ = "gst_tax_configurations"

    __table_args__ = (
        Index(
            "idx_tax_config_scope",
            "classification_code",
            "business_type",
            "geographical_zone",
        ),
        Index("idx_tax_config_effective", "effective_from", "effective_to"),
        Index("idx_tax_config_code_id", "classification_code_id"),
        Index("idx_tax_config_notification", "notification_reference"),
    )

    classification_code_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    classification_code: Mapped[str] = mapped_column(String(8), nullable=False)

    business_type: Mapped[str] = mapped_column(String(20), nullable=False)
    geographical_zone: Mapped[str | None] = mapped_column(String(20), nullable=True)

    total_gst_rate: Mapped[Decimal] = mapped_column(nullable=False)
    cgst_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    sgst_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    utgst_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    igst_rate: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    cess_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    cess_amount_per_unit: Mapped[Decimal | None] = mapped_column(nullable=True)

    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    reverse_charge_applicable: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    composition_scheme_applicable: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    composition_rate: Mapped[Decimal | None] = mapped_column(nullable=True)

    notification_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    superseded_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def to_dto(self) -> TaxConfigurationInfo:
        return TaxConfigurationInfo(
            id=self.id,
            classification_code_id=self.classification_code_id,
            classification_code=self.classification_code,
            business_type=BusinessType.parse(self.business_type),
            geographical_zone=(
                GeographicalZone.parse(self.geographical_zone)
                if self.geographical_zone
                else None
            ),
            total_gst_rate=self.total_gst_rate,
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            cgst_rate=self.cgst_rate,
            sgst_rate=self.sgst_rate,
            utgst_rate=self.utgst_rate,
            igst_rate=self.igst_rate,
            cess_rate=self.cess_rate,
            cess_amount_per_unit=self.cess_amount_per_unit,
            reverse_charge_applicable=self.reverse_charge_applicable,
            composition_scheme_applicable=self.composition_scheme_applicable,
            composition_rate=self.composition_rate,
            notification_reference=self.notification_reference,
            description=self.description,
            is_active=self.is_active,
            superseded_by_id=self.superseded_by_id,
        )

    def __repr__(self) -> str:
        zone = self.geographical_zone or "*"
        return (
            f"<TaxConfiguration {self.classification_code}/{self.business_type}/{zone} "
            f"{self.total_gst_rate}% {self.effective_from}..{self.effective_to or 'open'}>"
        )
