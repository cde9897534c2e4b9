"""
gst_services.diagnostics_service -- load rates and run the diagnostics engine.

Read-only.  Used by administrative tooling, never by the calculation path.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from gst_config.schema import EngineSettings
from gst_engines.diagnostics import TaxValidationResult, validate_tax_configuration
from gst_kernel.domain.clock import Clock, SystemClock
from gst_kernel.selectors.catalog_selector import CatalogSelector
from gst_kernel.selectors.rate_selector import RateSelector


class DiagnosticsService:
    """Health check of the stored rates for one classification code."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._settings = settings or EngineSettings()

    def validate_tax_configuration(
        self, classification_code: str, as_of: date | None = None
    ) -> TaxValidationResult:
        """
        Raises:
            ClassificationCodeNotFoundError: If the code is not in the catalog.
        """
        CatalogSelector(self.session).lookup(classification_code)
        rates = RateSelector(self.session, self._clock).for_code(classification_code)
        return validate_tax_configuration(
            classification_code,
            rates,
            as_of or self._clock.today(),
            business_types=self._settings.expected_business_types,
        )
