"""
gst_services.tax_engine -- TaxEngine, the facade collaborators call.

Responsibility:
    Wires selectors, write services, the calculation service and the
    diagnostics service over one Session, one Clock, one AuditSink and one
    EngineSettings value.  Every external operation of the engine is a
    method here.

Architecture position:
    Services -- the outermost layer of the package.  HTTP controllers,
    invoicing and admin tooling depend on this class; nothing inside the
    package depends on it.

Invariants enforced:
    - Writes only flush.  The caller owns the transaction (see
      ``gst_kernel.db.engine.session_scope``).
    - All collaborators share the same clock, so resolution and audit
      timestamps agree within one call.

Failure modes:
    Propagates the typed errors of the underlying selector or service.

Usage:
    from gst_kernel.db.engine import session_scope
    from gst_kernel.services import DatabaseAuditSink
    from gst_services import TaxEngine

    with session_scope() as session:
        engine = TaxEngine(session, audit_sink=DatabaseAuditSink(session))
        result = engine.calculate_tax(
            TaxCalculationRequest("8471", Decimal("1000"), 1, "KA", "MH", "B2B")
        )
"""

from __future__ import annotations

from datetime import date
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from gst_config.schema import EngineSettings
from gst_engines.calculation import (
    BulkTaxCalculationResult,
    TaxCalculationRequest,
    TaxCalculationResult,
)
from gst_engines.diagnostics import TaxValidationResult
from gst_kernel.domain.clock import Clock, SystemClock
from gst_kernel.domain.dtos import (
    TaxConfigurationDraft,
    TaxConfigurationInfo,
    TaxRateDraft,
    TaxRateInfo,
)
from gst_kernel.domain.enums import BusinessType, GeographicalZone, TaxComponentType
from gst_kernel.selectors.catalog_selector import CatalogSelector
from gst_kernel.selectors.configuration_selector import ConfigurationSelector
from gst_kernel.selectors.rate_selector import RateSelector
from gst_kernel.services.audit_sink import AuditSink, NullAuditSink
from gst_kernel.services.catalog_service import CatalogService
from gst_kernel.services.configuration_service import ConfigurationService
from gst_kernel.services.rate_service import RateService
from gst_services.calculation_service import TaxCalculationService
from gst_services.diagnostics_service import DiagnosticsService


class TaxEngine:
    """
    Facade over resolution, calculation, the validated write path and
    diagnostics.

    The read models are exposed as ``catalog``, ``configurations`` and
    ``rates`` for queries the facade does not wrap (statistics, search,
    expiring windows).
    """

    def __init__(
        self,
        session: Session,
        *,
        clock: Clock | None = None,
        audit_sink: AuditSink | None = None,
        settings: EngineSettings | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.settings = settings or EngineSettings()
        audit = audit_sink or NullAuditSink()

        self.catalog = CatalogSelector(session)
        self.configurations = ConfigurationSelector(session, self.clock)
        self.rates = RateSelector(
            session, self.clock, component_preference=self.settings.component_preference
        )

        self.catalog_service = CatalogService(session)
        self._configuration_service = ConfigurationService(session, self.clock, audit)
        self._rate_service = RateService(session, self.clock, audit)
        self._calculation = TaxCalculationService(session, self.clock, self.settings)
        self._diagnostics = DiagnosticsService(session, self.clock, self.settings)

    # -- resolution --------------------------------------------------------

    def resolve_configuration(
        self,
        classification_code: str,
        business_type: BusinessType | str,
        zone: GeographicalZone | str | None = None,
        as_of: date | None = None,
    ) -> TaxConfigurationInfo:
        return self.configurations.resolve_configuration(
            classification_code, business_type, zone, as_of
        )

    def resolve_rate(
        self,
        classification_code: str,
        business_type: BusinessType | str,
        component_type: TaxComponentType | str | None = None,
        zone: GeographicalZone | str | None = None,
        as_of: date | None = None,
    ) -> TaxRateInfo:
        return self.rates.resolve_rate(
            classification_code, business_type, component_type, zone, as_of
        )

    # -- calculation -------------------------------------------------------

    def calculate_tax(
        self, request: TaxCalculationRequest, as_of: date | None = None
    ) -> TaxCalculationResult:
        return self._calculation.calculate_tax(request, as_of)

    def calculate_bulk_tax(
        self,
        requests: Sequence[TaxCalculationRequest],
        as_of: date | None = None,
    ) -> BulkTaxCalculationResult:
        return self._calculation.calculate_bulk_tax(requests, as_of)

    # -- write path --------------------------------------------------------

    def create_configuration(
        self, draft: TaxConfigurationDraft, actor_id: UUID
    ) -> TaxConfigurationInfo:
        return self._configuration_service.create_configuration(draft, actor_id)

    def create_rate(self, draft: TaxRateDraft, actor_id: UUID) -> TaxRateInfo:
        return self._rate_service.create_rate(draft, actor_id)

    def deactivate_configuration(
        self, configuration_id: UUID, actor_id: UUID
    ) -> TaxConfigurationInfo:
        return self._configuration_service.deactivate_configuration(configuration_id, actor_id)

    def expire_configuration(
        self, configuration_id: UUID, effective_to: date, actor_id: UUID
    ) -> TaxConfigurationInfo:
        return self._configuration_service.expire_configuration(
            configuration_id, effective_to, actor_id
        )

    def supersede_configuration(
        self,
        configuration_id: UUID,
        changes: dict[str, Any],
        effective_from: date,
        actor_id: UUID,
    ) -> TaxConfigurationInfo:
        return self._configuration_service.supersede_configuration(
            configuration_id, changes, effective_from, actor_id
        )

    def deactivate_rate(self, rate_id: UUID, actor_id: UUID) -> TaxRateInfo:
        return self._rate_service.deactivate_rate(rate_id, actor_id)

    def expire_rate(self, rate_id: UUID, effective_to: date, actor_id: UUID) -> TaxRateInfo:
        return self._rate_service.expire_rate(rate_id, effective_to, actor_id)

    def supersede_rate(
        self,
        rate_id: UUID,
        changes: dict[str, Any],
        effective_from: date,
        actor_id: UUID,
    ) -> TaxRateInfo:
        return self._rate_service.supersede_rate(rate_id, changes, effective_from, actor_id)

    # -- diagnostics -------------------------------------------------------

    def validate_tax_configuration(
        self, classification_code: str, as_of: date | None = None
    ) -> TaxValidationResult:
        return self._diagnostics.validate_tax_configuration(classification_code, as_of)
