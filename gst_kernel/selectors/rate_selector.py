"""
RateSelector -- resolution and queries over per-component TaxRate rows.

Responsibility:
    ``resolve_rate`` picks the single effective rate for a scope.  With an
    explicit component type it resolves that component; without one it
    tries each component of the preference order (IGST, CGST, SGST by
    default) and returns the first that resolves.

    ``effective_components`` resolves every component independently; the
    calculation service uses it to project a configuration when no
    denormalized configuration exists.

Architecture position:
    Kernel > Selectors -- read side.  Lock-free.

Invariants enforced:
    - Candidates are partitioned by component type before selection, so a
      CGST row never competes with an IGST row.
    - No match raises RateNotFoundError; never a zero-rate placeholder.

Failure modes:
    - RateNotFoundError (carries the component types tried).
    - Enum mapping errors on malformed arguments or stored rows.
"""

from collections import Counter, defaultdict
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select

from gst_kernel.domain.clock import Clock, SystemClock
from gst_kernel.domain.dtos import Page, RateStatistics, TaxRateInfo
from gst_kernel.domain.enums import (
    BusinessType,
    GeographicalZone,
    TaxComponentType,
    normalize_zone,
)
from gst_kernel.domain.resolution import select_effective
from gst_kernel.domain.values import ZERO, round_rate
from gst_kernel.exceptions import RateNotFoundError
from gst_kernel.logging_config import get_logger
from gst_kernel.models.tax_rate import TaxRate
from gst_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.rate")

DEFAULT_COMPONENT_PREFERENCE: tuple[TaxComponentType, ...] = (
    TaxComponentType.IGST,
    TaxComponentType.CGST,
    TaxComponentType.SGST,
)


class RateSelector(BaseSelector[TaxRate]):
    """Read model for versioned per-component rates."""

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        component_preference: tuple[TaxComponentType, ...] = DEFAULT_COMPONENT_PREFERENCE,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._preference = tuple(TaxComponentType.parse(c) for c in component_preference)

    def resolve_rate(
        self,
        classification_code: str,
        business_type: BusinessType | str,
        component_type: TaxComponentType | str | None = None,
        zone: GeographicalZone | str | None = None,
        as_of: date | None = None,
    ) -> TaxRateInfo:
        """
        The single rate effective for the scope on ``as_of``.

        Raises:
            RateNotFoundError: If no component in scope resolves.
        """
        btype = BusinessType.parse(business_type)
        zone_value = normalize_zone(zone)
        day = as_of or self._clock.today()
        components = (
            (TaxComponentType.parse(component_type),)
            if component_type is not None
            else self._preference
        )

        by_component = self._partition(self.for_code(classification_code))
        for component in components:
            chosen = select_effective(
                by_component.get(component, ()),
                btype,
                zone_value,
                day,
                scope=f"rate:{component.value}",
            )
            if chosen is not None:
                logger.debug(
                    "rate_resolved",
                    extra={
                        "hsn_code": classification_code,
                        "rate_id": str(chosen.id),
                        "component_type": component.value,
                        "as_of": day,
                    },
                )
                return chosen

        tried = tuple(c.value for c in components)
        logger.info(
            "rate_not_found",
            extra={
                "hsn_code": classification_code,
                "business_type": btype.value,
                "zone": zone_value.value if zone_value else None,
                "as_of": day,
                "component_types": tried,
            },
        )
        raise RateNotFoundError(
            classification_code,
            btype.value,
            zone_value.value if zone_value else None,
            day,
            component_types=tried,
        )

    def effective_components(
        self,
        classification_code: str,
        business_type: BusinessType | str,
        zone: GeographicalZone | str | None = None,
        as_of: date | None = None,
    ) -> dict[TaxComponentType, TaxRateInfo]:
        """Every component that resolves for the scope, keyed by type."""
        btype = BusinessType.parse(business_type)
        zone_value = normalize_zone(zone)
        day = as_of or self._clock.today()

        resolved: dict[TaxComponentType, TaxRateInfo] = {}
        for component, rows in self._partition(self.for_code(classification_code)).items():
            chosen = select_effective(
                rows, btype, zone_value, day, scope=f"rate:{component.value}"
            )
            if chosen is not None:
                resolved[component] = chosen
        return resolved

    def get(self, rate_id) -> TaxRateInfo | None:
        row = self.session.get(TaxRate, rate_id)
        return row.to_dto() if row else None

    def for_code(self, classification_code: str) -> list[TaxRateInfo]:
        rows = self.session.execute(
            select(TaxRate)
            .where(TaxRate.classification_code == classification_code)
            .order_by(TaxRate.component_type, TaxRate.effective_from, TaxRate.id)
        ).scalars()
        return [r.to_dto() for r in rows]

    def scope_rows(
        self,
        classification_code: str,
        business_type: BusinessType,
        component_type: TaxComponentType,
        zone: GeographicalZone | None,
    ) -> list[TaxRateInfo]:
        """All versions in one exact scope (NULL zone matches NULL only)."""
        zone_clause = (
            TaxRate.geographical_zone.is_(None)
            if zone is None
            else TaxRate.geographical_zone == zone.value
        )
        rows = self.session.execute(
            select(TaxRate)
            .where(
                TaxRate.classification_code == classification_code,
                TaxRate.business_type == business_type.value,
                TaxRate.component_type == component_type.value,
                zone_clause,
            )
            .order_by(TaxRate.effective_from, TaxRate.version_number)
        ).scalars()
        return [r.to_dto() for r in rows]

    def search(
        self,
        *,
        classification_code: str | None = None,
        business_type: BusinessType | str | None = None,
        component_type: TaxComponentType | str | None = None,
        zone: GeographicalZone | str | None = None,
        as_of: date | None = None,
        active_only: bool = True,
        page: int = 0,
        size: int = 20,
    ) -> Page:
        """
        Filtered, paginated rate listing.

        ``as_of`` restricts to rows effective on that date; a ``zone`` filter
        matches the stored zone exactly.
        """
        stmt = select(TaxRate)
        if classification_code is not None:
            stmt = stmt.where(TaxRate.classification_code == classification_code)
        if business_type is not None:
            stmt = stmt.where(TaxRate.business_type == BusinessType.parse(business_type).value)
        if component_type is not None:
            stmt = stmt.where(
                TaxRate.component_type == TaxComponentType.parse(component_type).value
            )
        zone_value = normalize_zone(zone)
        if zone_value is not None:
            stmt = stmt.where(TaxRate.geographical_zone == zone_value.value)
        if active_only:
            stmt = stmt.where(TaxRate.is_active.is_(True))
        if as_of is not None:
            stmt = stmt.where(
                TaxRate.effective_from <= as_of,
                (TaxRate.effective_to.is_(None)) | (TaxRate.effective_to >= as_of),
            )

        total = self.session.execute(
            select(func.count()).select_from(stmt.subquery())
        ).scalar_one()
        rows = self.session.execute(
            stmt.order_by(
                TaxRate.classification_code,
                TaxRate.component_type,
                TaxRate.effective_from,
            )
            .offset(page * size)
            .limit(size)
        ).scalars()
        return Page(items=tuple(r.to_dto() for r in rows), page=page, size=size, total=total)

    def statistics(self, as_of: date | None = None) -> RateStatistics:
        day = as_of or self._clock.today()
        rows = [
            r.to_dto()
            for r in self.session.execute(
                select(TaxRate).where(
                    TaxRate.is_active.is_(True),
                    TaxRate.effective_from <= day,
                    (TaxRate.effective_to.is_(None)) | (TaxRate.effective_to >= day),
                )
            ).scalars()
        ]
        percentages = [r.rate_percentage for r in rows if r.rate_percentage > ZERO]
        average = (
            round_rate(sum(percentages, ZERO) / Decimal(len(percentages)))
            if percentages
            else ZERO
        )
        return RateStatistics(
            total_active=len(rows),
            by_component=dict(Counter(r.component_type.value for r in rows)),
            by_business_type=dict(Counter(r.business_type.value for r in rows)),
            average_rate=average,
            highest_rate=max(percentages, default=ZERO),
            lowest_rate=min(percentages, default=ZERO),
            fixed_basis_count=sum(1 for r in rows if r.is_fixed_basis),
        )

    @staticmethod
    def _partition(rows: list[TaxRateInfo]) -> dict[TaxComponentType, list[TaxRateInfo]]:
        grouped: dict[TaxComponentType, list[TaxRateInfo]] = defaultdict(list)
        for row in rows:
            grouped[row.component_type].append(row)
        return grouped
