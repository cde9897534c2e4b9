"""
gst_services -- Package init and public API.

Responsibility:
    Stateful orchestration that composes the pure engines (gst_engines/)
    with database sessions, the clock and engine settings.  This is the
    only layer that holds a session and reads the clock on behalf of a
    calculation.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction (enforced by tests/architecture/test_layer_boundary.py):
        gst_services/ -> gst_engines/  (allowed)
        gst_services/ -> gst_kernel/   (allowed)
        gst_services/ -> gst_config/   (allowed)
        gst_engines/  -> gst_services/ (FORBIDDEN)
        gst_kernel/   -> gst_services/ (FORBIDDEN)

Failure modes:
    - ImportError at startup if a service's dependency graph is broken.
"""

from gst_kernel.logging_config import get_logger

logger = get_logger("services")

from gst_services.calculation_service import (  # noqa: E402
    TaxCalculationService,
    calculator_for,
    project_configuration,
)
from gst_services.diagnostics_service import DiagnosticsService  # noqa: E402
from gst_services.tax_engine import TaxEngine  # noqa: E402

__all__ = [
    "DiagnosticsService",
    "TaxCalculationService",
    "TaxEngine",
    "calculator_for",
    "project_configuration",
]
