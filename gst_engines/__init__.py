"""
Module: gst_engines
Responsibility:
    Package entrypoint re-exporting the pure GST engines: the calculator
    (single and bulk) and the rate diagnostics.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import gst_kernel.domain, gst_kernel.exceptions and
    gst_kernel.logging_config.  MUST NOT import gst_services or gst_config.

Invariants enforced:
    - Purity: engines NEVER read the clock.  Dates are passed in by the
      calling service.
    - Decimal-only arithmetic, rounded half-up at each monetary step.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from gst_engines import GstCalculator, TaxCalculationRequest
    from gst_engines import validate_tax_configuration
"""

from gst_engines.calculation import (
    BulkTaxCalculationResult,
    ConfigurationResolver,
    GstCalculator,
    TaxBreakdownItem,
    TaxCalculationRequest,
    TaxCalculationResult,
)
from gst_engines.diagnostics import (
    RateConflict,
    TaxValidationResult,
    validate_tax_configuration,
)

__all__ = [
    "BulkTaxCalculationResult",
    "ConfigurationResolver",
    "GstCalculator",
    "TaxBreakdownItem",
    "TaxCalculationRequest",
    "TaxCalculationResult",
    "RateConflict",
    "TaxValidationResult",
    "validate_tax_configuration",
]
