"""
Rate Diagnostics - read-side health check of the rates for one code.

Pure function over a list of rate snapshots; the caller loads them
(gst_services.diagnostics_service).  Used by administrative tooling, not
by the calculation path.

Reports:
    has_active_tax_rate     some active rate is effective today
    conflicting_rates       more than one rate effective today in the same
                            (business type, component, zone) scope; the
                            write path should have prevented this
    missing_business_types  expected business types with no effective rate
    warnings                several open-ended rates in one scope, and
                            rates that only start in the future
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

from gst_kernel.domain.dtos import TaxRateInfo
from gst_kernel.domain.enums import BusinessType
from gst_kernel.logging_config import get_logger

logger = get_logger("engines.diagnostics")


@dataclass(frozen=True)
class RateConflict:
    """Rates simultaneously effective in one scope."""

    business_type: BusinessType
    scope: str
    rate_ids: tuple[str, ...]

    @property
    def message(self) -> str:
        return (
            f"{len(self.rate_ids)} rates effective at once for "
            f"{self.business_type.value} {self.scope}: {', '.join(self.rate_ids)}"
        )


@dataclass(frozen=True)
class TaxValidationResult:
    classification_code: str
    as_of: date
    has_active_tax_rate: bool
    conflicting_rates: tuple[RateConflict, ...] = ()
    missing_business_types: tuple[BusinessType, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return self.has_active_tax_rate and not self.conflicting_rates

    @property
    def errors(self) -> tuple[str, ...]:
        found = [] if self.has_active_tax_rate else [
            f"No active tax rate is effective for {self.classification_code} on {self.as_of}"
        ]
        return tuple(found + [c.message for c in self.conflicting_rates])


def _scope_label(rate: TaxRateInfo) -> str:
    zone = rate.geographical_zone.value if rate.geographical_zone else "*"
    return f"{rate.component_type.value}/{zone}"


def validate_tax_configuration(
    classification_code: str,
    rates: Iterable[TaxRateInfo],
    today: date,
    business_types: Sequence[BusinessType] = (BusinessType.B2B, BusinessType.B2C),
) -> TaxValidationResult:
    """
    Diagnose the rates of ``classification_code`` as of ``today``.

    Args:
        classification_code: Code being diagnosed (for messages).
        rates: Every rate row for the code, any state.
        today: Reference date.
        business_types: Business types expected to have an effective rate.
    """
    active = [r for r in rates if r.is_active]
    effective = [r for r in active if r.is_effective_on(today)]

    by_scope: dict[tuple, list[TaxRateInfo]] = defaultdict(list)
    for rate in effective:
        by_scope[(rate.business_type, _scope_label(rate))].append(rate)
    conflicts = tuple(
        RateConflict(
            business_type=btype,
            scope=scope,
            rate_ids=tuple(sorted(str(r.id) for r in rows)),
        )
        for (btype, scope), rows in sorted(
            by_scope.items(), key=lambda item: (item[0][0].value, item[0][1])
        )
        if len(rows) > 1
    )

    covered = {r.business_type for r in effective}
    missing = tuple(b for b in business_types if b not in covered)

    warnings: list[str] = []
    open_ended: dict[tuple, list[TaxRateInfo]] = defaultdict(list)
    for rate in active:
        if rate.effective_to is None:
            open_ended[(rate.business_type.value, _scope_label(rate))].append(rate)
    for (btype, scope), rows in sorted(open_ended.items()):
        if len(rows) > 1:
            warnings.append(
                f"{len(rows)} open-ended rates for {btype} {scope}"
            )
    for rate in sorted(active, key=lambda r: (r.effective_from, str(r.id))):
        if rate.effective_from > today:
            warnings.append(
                f"Rate {rate.id} ({rate.business_type.value} {_scope_label(rate)}) "
                f"starts in the future on {rate.effective_from}"
            )

    result = TaxValidationResult(
        classification_code=classification_code,
        as_of=today,
        has_active_tax_rate=bool(effective),
        conflicting_rates=conflicts,
        missing_business_types=missing,
        warnings=tuple(warnings),
    )
    logger.info(
        "tax_configuration_diagnosed",
        extra={
            "hsn_code": classification_code,
            "as_of": today,
            "is_valid": result.is_valid,
            "conflicts": len(conflicts),
            "missing_business_types": [b.value for b in missing],
            "warning_count": len(warnings),
        },
    )
    return result
