"""
gst_services.calculation_service -- resolve-then-calculate shell.

Responsibility:
    Resolves the configuration governing a calculation request and hands
    it to the pure GstCalculator.  When no configuration is effective it
    can project one from the per-component TaxRate rows; when neither
    path resolves, the calculation fails with CalculationRateNotFoundError.

Architecture position:
    Services -- stateful orchestration over engines + kernel.  Holds the
    session and the clock; the calculator itself never touches either.

Invariants enforced:
    - Resolution uses the wildcard zone (zone=None) as of the clock date
      or an explicit ``as_of``.
    - Never falls back to a zero rate.  A projection is built only from
      effective, percentage-basis GST component rows.
    - Bulk requests are all-or-nothing; every line resolves on its own.

Failure modes:
    - CalculationRateNotFoundError with (code, business type, zone, date)
      and the failing line index for bulk requests.
    - InvalidCalculationInputError for non-positive amount or quantity.
    - Enum mapping errors for malformed business types.

Audit relevance:
    Each calculation logs ``tax_calculation_completed`` with the id of the
    configuration used.  A projected configuration reports the id of its
    primary component rate and says so in the calculation notes.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Sequence

from sqlalchemy.orm import Session

from gst_config.schema import EngineSettings
from gst_engines.calculation import (
    BulkTaxCalculationResult,
    GstCalculator,
    TaxCalculationRequest,
    TaxCalculationResult,
)
from gst_kernel.domain.clock import Clock, SystemClock
from gst_kernel.domain.dtos import TaxConfigurationInfo, TaxRateInfo
from gst_kernel.domain.enums import BusinessType, TaxComponentType
from gst_kernel.domain.values import ZERO
from gst_kernel.exceptions import CalculationRateNotFoundError, ConfigurationNotFoundError
from gst_kernel.logging_config import LogContext, get_logger
from gst_kernel.selectors.configuration_selector import ConfigurationSelector
from gst_kernel.selectors.rate_selector import RateSelector

logger = get_logger("services.calculation")

_INTRA_COMPONENTS = (TaxComponentType.CGST, TaxComponentType.SGST, TaxComponentType.UTGST)


def calculator_for(settings: EngineSettings) -> GstCalculator:
    """GstCalculator configured from engine settings."""
    return GstCalculator(
        monetary_places=settings.monetary_places,
        rate_places=settings.rate_places,
        split_union_territory=settings.split_union_territory,
        treat_missing_state_as_inter_state=settings.treat_missing_state_as_inter_state,
    )


def project_configuration(
    components: dict[TaxComponentType, TaxRateInfo],
    preference: Sequence[TaxComponentType],
) -> TaxConfigurationInfo | None:
    """
    Build a configuration from effective per-component rates.

    The first component of ``preference`` that is available decides the
    shape: IGST gives an inter-state configuration, CGST/SGST gives an
    intra-state one (CGST plus SGST or UTGST must both be present).  A
    CESS row contributes a cess rate or a per-unit cess amount.  Minimum
    and maximum amounts of the rows used travel as ``component_bounds``
    and are applied by the calculator.  Returns None when no GST shape can
    be built.
    """
    usable = {c: r for c, r in components.items() if not r.is_fixed_basis}

    shape: tuple[TaxRateInfo, ...] = ()
    for component in preference:
        if component is TaxComponentType.IGST and component in usable:
            shape = (usable[component],)
            break
        if component in _INTRA_COMPONENTS:
            state = usable.get(TaxComponentType.SGST) or usable.get(TaxComponentType.UTGST)
            central = usable.get(TaxComponentType.CGST)
            if central is not None and state is not None:
                shape = (central, state)
                break
    if not shape:
        return None

    primary = shape[0]
    rates = {r.component_type: r.rate_percentage for r in shape}
    total = sum(rates.values(), ZERO)

    cess = components.get(TaxComponentType.CESS)
    used = shape + ((cess,) if cess is not None else ())
    ends = [r.effective_to for r in used if r.effective_to is not None]
    notification = next((r.notification_number for r in used if r.notification_number), None)

    return TaxConfigurationInfo(
        id=primary.id,
        classification_code_id=primary.classification_code_id,
        classification_code=primary.classification_code,
        business_type=primary.business_type,
        geographical_zone=None,
        total_gst_rate=total,
        effective_from=max(r.effective_from for r in used),
        effective_to=min(ends) if ends else None,
        cgst_rate=rates.get(TaxComponentType.CGST, ZERO),
        sgst_rate=rates.get(TaxComponentType.SGST, ZERO),
        utgst_rate=rates.get(TaxComponentType.UTGST, ZERO),
        igst_rate=rates.get(TaxComponentType.IGST, ZERO),
        cess_rate=(
            cess.rate_percentage if cess is not None and not cess.is_fixed_basis else None
        ),
        cess_amount_per_unit=(
            cess.fixed_amount_per_unit if cess is not None and cess.is_fixed_basis else None
        ),
        reverse_charge_applicable=any(r.reverse_charge_applicable for r in used),
        composition_scheme_applicable=any(r.composition_scheme_applicable for r in used),
        notification_reference=notification,
        component_bounds=tuple((r.component_type, r.bounds) for r in used if r.bounds),
        description="Projected from component rates: "
        + ", ".join(f"{r.component_type.value} v{r.version_number}" for r in used),
    )


class TaxCalculationService:
    """
    Calculates GST for requests against the stored rules.

    Contract:
        Receives a Session plus optional Clock and EngineSettings.  Reads
        only; never flushes or commits.
    Guarantees:
        - ``calculate_tax`` returns a result computed from exactly one
          resolved configuration.
        - ``calculate_bulk_tax`` returns every line or raises for the
          first line that cannot be resolved.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
        calculator: GstCalculator | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._settings = settings or EngineSettings()
        self._calculator = calculator or calculator_for(self._settings)
        self._configurations = ConfigurationSelector(session, self._clock)
        self._rates = RateSelector(
            session, self._clock, component_preference=self._settings.component_preference
        )

    @property
    def calculator(self) -> GstCalculator:
        return self._calculator

    def calculate_tax(
        self, request: TaxCalculationRequest, as_of: date | None = None
    ) -> TaxCalculationResult:
        """
        Resolve and calculate one request.

        Raises:
            CalculationRateNotFoundError: Nothing resolves for the request.
            InvalidCalculationInputError: Non-positive amount or quantity.
        """
        day = as_of or self._clock.today()
        request = self._with_default_business_type(request)
        with LogContext.bind(
            classification_code=request.classification_code,
            business_type=request.business_type,
        ):
            self._calculator.validate_request(request)
            configuration = self.resolve_for(request, day)
            return self._calculator.calculate(request, configuration, as_of=day)

    def calculate_bulk_tax(
        self,
        requests: Sequence[TaxCalculationRequest],
        as_of: date | None = None,
    ) -> BulkTaxCalculationResult:
        """
        Calculate every line against the rules effective on one date.

        Raises:
            CalculationRateNotFoundError: For the first unresolvable line
                (``line_index`` is set); no partial result is returned.
            InvalidCalculationInputError: For the first invalid line.
        """
        day = as_of or self._clock.today()
        prepared = [self._with_default_business_type(r) for r in requests]
        return self._calculator.calculate_bulk(
            prepared,
            lambda request, index: self.resolve_for(request, day, line_index=index),
            as_of=day,
        )

    def resolve_for(
        self,
        request: TaxCalculationRequest,
        as_of: date,
        line_index: int | None = None,
    ) -> TaxConfigurationInfo:
        """
        The configuration that governs ``request`` on ``as_of``.

        Raises:
            CalculationRateNotFoundError: Neither a configuration nor (when
                enabled) a component-rate projection resolves.
        """
        business_type = request.business_type or self._settings.default_business_type
        try:
            return self._configurations.resolve_configuration(
                request.classification_code, business_type, None, as_of
            )
        except ConfigurationNotFoundError as exc:
            projected = None
            if self._settings.fallback_to_component_rates:
                projected = self._project(request.classification_code, business_type, as_of)
            if projected is not None:
                return projected
            raise CalculationRateNotFoundError(
                exc.classification_code,
                exc.business_type,
                exc.zone,
                exc.as_of,
                line_index,
            ) from exc

    def _project(
        self, classification_code: str, business_type: BusinessType, as_of: date
    ) -> TaxConfigurationInfo | None:
        components = self._rates.effective_components(
            classification_code, business_type, None, as_of
        )
        projected = project_configuration(components, self._settings.component_preference)
        if projected is not None:
            logger.info(
                "configuration_projected_from_rates",
                extra={
                    "hsn_code": classification_code,
                    "business_type": business_type.value,
                    "as_of": as_of,
                    "total_gst_rate": projected.total_gst_rate,
                    "components": sorted(c.value for c in components),
                },
            )
        return projected

    def _with_default_business_type(
        self, request: TaxCalculationRequest
    ) -> TaxCalculationRequest:
        if request.business_type is not None:
            return request
        return replace(request, business_type=self._settings.default_business_type)


__all__ = [
    "TaxCalculationService",
    "calculator_for",
    "project_configuration",
]
