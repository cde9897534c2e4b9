"""
ConfigurationSelector -- resolution and queries over TaxConfiguration rows.

Responsibility:
    ``resolve_configuration`` is the authoritative lookup for a calculation:
    load every configuration for the code, then apply the shared selection
    rule in domain/resolution.py.  The remaining methods serve
    administrative tooling.

Architecture position:
    Kernel > Selectors -- read side.  Lock-free; any number of resolutions
    may run in parallel.

Invariants enforced:
    - Never returns a zero-rate placeholder: no match raises
      ConfigurationNotFoundError with (code, business type, zone, date).
    - Each (business type, zone) is an independent scope; nothing merges
      rows across business types.

Failure modes:
    - ConfigurationNotFoundError.
    - Enum mapping errors for malformed stored rows or arguments.
"""

from datetime import date

from sqlalchemy import and_, func, select

from gst_kernel.domain.clock import Clock, SystemClock
from gst_kernel.domain.dtos import ConfigurationStatistics, TaxConfigurationInfo
from gst_kernel.domain.enums import BusinessType, GeographicalZone, normalize_zone
from gst_kernel.domain.resolution import effective_on, select_effective
from gst_kernel.exceptions import ConfigurationNotFoundError
from gst_kernel.logging_config import get_logger
from gst_kernel.models.tax_configuration import TaxConfiguration
from gst_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.configuration")


def _effective_clause(as_of: date):
    return and_(
        TaxConfiguration.is_active.is_(True),
        TaxConfiguration.effective_from <= as_of,
        (TaxConfiguration.effective_to.is_(None)) | (TaxConfiguration.effective_to >= as_of),
    )


class ConfigurationSelector(BaseSelector[TaxConfiguration]):
    """Read model for denormalized GST configurations."""

    def __init__(self, session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def resolve_configuration(
        self,
        classification_code: str,
        business_type: BusinessType | str,
        zone: GeographicalZone | str | None = None,
        as_of: date | None = None,
    ) -> TaxConfigurationInfo:
        """
        The single configuration effective for the scope on ``as_of``.

        Args:
            classification_code: HSN/SAC code string.
            business_type: Exact business type.
            zone: Requested zone; an exact-zone row beats a wildcard row.
                None (or ALL_INDIA) matches wildcard rows only.
            as_of: Defaults to the clock's date.

        Raises:
            ConfigurationNotFoundError: If no row matches.
        """
        btype = BusinessType.parse(business_type)
        zone_value = normalize_zone(zone)
        day = as_of or self._clock.today()

        candidates = self.for_code(classification_code)
        chosen = select_effective(
            candidates, btype, zone_value, day, scope="configuration"
        )
        if chosen is None:
            logger.info(
                "configuration_not_found",
                extra={
                    "hsn_code": classification_code,
                    "business_type": btype.value,
                    "zone": zone_value.value if zone_value else None,
                    "as_of": day,
                    "candidates": len(candidates),
                },
            )
            raise ConfigurationNotFoundError(
                classification_code,
                btype.value,
                zone_value.value if zone_value else None,
                day,
            )

        logger.debug(
            "configuration_resolved",
            extra={
                "hsn_code": classification_code,
                "configuration_id": str(chosen.id),
                "as_of": day,
            },
        )
        return chosen

    def get(self, configuration_id) -> TaxConfigurationInfo | None:
        row = self.session.get(TaxConfiguration, configuration_id)
        return row.to_dto() if row else None

    def for_code(self, classification_code: str) -> list[TaxConfigurationInfo]:
        """Every row for the code, all versions, ordered by effective_from."""
        rows = self.session.execute(
            select(TaxConfiguration)
            .where(TaxConfiguration.classification_code == classification_code)
            .order_by(TaxConfiguration.effective_from, TaxConfiguration.id)
        ).scalars()
        return [r.to_dto() for r in rows]

    def scope_rows(
        self,
        classification_code: str,
        business_type: BusinessType,
        zone: GeographicalZone | None,
    ) -> list[TaxConfigurationInfo]:
        """All versions in one exact scope (NULL zone matches NULL only)."""
        zone_clause = (
            TaxConfiguration.geographical_zone.is_(None)
            if zone is None
            else TaxConfiguration.geographical_zone == zone.value
        )
        rows = self.session.execute(
            select(TaxConfiguration)
            .where(
                TaxConfiguration.classification_code == classification_code,
                TaxConfiguration.business_type == business_type.value,
                zone_clause,
            )
            .order_by(TaxConfiguration.effective_from, TaxConfiguration.id)
        ).scalars()
        return [r.to_dto() for r in rows]

    def history(
        self,
        classification_code: str,
        business_type: BusinessType | str,
        zone: GeographicalZone | str | None = None,
    ) -> list[TaxConfigurationInfo]:
        return self.scope_rows(
            classification_code, BusinessType.parse(business_type), normalize_zone(zone)
        )

    def effective_configurations(
        self,
        classification_code: str | None = None,
        business_type: BusinessType | str | None = None,
        zone: GeographicalZone | str | None = None,
        as_of: date | None = None,
    ) -> list[TaxConfigurationInfo]:
        """Every configuration effective on ``as_of`` matching the filters."""
        day = as_of or self._clock.today()
        stmt = select(TaxConfiguration).where(_effective_clause(day))
        if classification_code is not None:
            stmt = stmt.where(TaxConfiguration.classification_code == classification_code)
        if business_type is not None:
            stmt = stmt.where(
                TaxConfiguration.business_type == BusinessType.parse(business_type).value
            )
        zone_value = normalize_zone(zone)
        if zone_value is not None:
            stmt = stmt.where(TaxConfiguration.geographical_zone == zone_value.value)
        rows = self.session.execute(
            stmt.order_by(
                TaxConfiguration.classification_code,
                TaxConfiguration.business_type,
                TaxConfiguration.effective_from,
            )
        ).scalars()
        return [r.to_dto() for r in rows]

    def reverse_charge_configurations(self, as_of: date | None = None) -> list[TaxConfigurationInfo]:
        return [c for c in self.effective_configurations(as_of=as_of) if c.reverse_charge_applicable]

    def composition_configurations(self, as_of: date | None = None) -> list[TaxConfigurationInfo]:
        return [
            c for c in self.effective_configurations(as_of=as_of) if c.composition_scheme_applicable
        ]

    def expiring_between(self, start: date, end: date) -> list[TaxConfigurationInfo]:
        """Active rows whose effective_to falls in [start, end]."""
        rows = self.session.execute(
            select(TaxConfiguration)
            .where(
                TaxConfiguration.is_active.is_(True),
                TaxConfiguration.effective_to.is_not(None),
                TaxConfiguration.effective_to >= start,
                TaxConfiguration.effective_to <= end,
            )
            .order_by(TaxConfiguration.effective_to, TaxConfiguration.classification_code)
        ).scalars()
        return [r.to_dto() for r in rows]

    def starting_between(self, start: date, end: date) -> list[TaxConfigurationInfo]:
        """Active rows whose effective_from falls in [start, end]."""
        rows = self.session.execute(
            select(TaxConfiguration)
            .where(
                TaxConfiguration.is_active.is_(True),
                TaxConfiguration.effective_from >= start,
                TaxConfiguration.effective_from <= end,
            )
            .order_by(TaxConfiguration.effective_from, TaxConfiguration.classification_code)
        ).scalars()
        return [r.to_dto() for r in rows]

    def by_notification_reference(self, reference: str) -> list[TaxConfigurationInfo]:
        rows = self.session.execute(
            select(TaxConfiguration)
            .where(TaxConfiguration.notification_reference == reference)
            .order_by(TaxConfiguration.classification_code, TaxConfiguration.effective_from)
        ).scalars()
        return [r.to_dto() for r in rows]

    def distinct_gst_rates(self, as_of: date | None = None) -> list:
        day = as_of or self._clock.today()
        rates = self.session.execute(
            select(TaxConfiguration.total_gst_rate)
            .where(_effective_clause(day))
            .distinct()
        ).scalars()
        # Numeric round-trips may differ in exponent; normalize before dedupe
        return sorted({r.normalize() for r in rates})

    def statistics(self, as_of: date | None = None) -> ConfigurationStatistics:
        day = as_of or self._clock.today()
        effective = effective_on(self.effective_configurations(as_of=day), day)
        return ConfigurationStatistics(
            total_active=len(effective),
            with_cess=sum(1 for c in effective if c.has_cess),
            with_fixed_cess=sum(
                1
                for c in effective
                if c.cess_amount_per_unit is not None and c.cess_amount_per_unit > 0
            ),
            reverse_charge=sum(1 for c in effective if c.reverse_charge_applicable),
            composition_scheme=sum(1 for c in effective if c.composition_scheme_applicable),
            distinct_gst_rates=tuple(self.distinct_gst_rates(as_of=day)),
        )

    def count_active(self) -> int:
        return self.session.execute(
            select(func.count(TaxConfiguration.id)).where(TaxConfiguration.is_active.is_(True))
        ).scalar_one()
