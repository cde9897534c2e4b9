"""
Pure domain layer.

Enums, DTOs, decimal rounding, rule resolution and write-path validation,
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- System time (Clock is injected)

All domain objects are immutable and deterministic.
"""

from gst_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from gst_kernel.domain.dtos import (
    ClassificationCodeInfo,
    EffectiveWindow,
    Page,
    TaxConfigurationDraft,
    TaxConfigurationInfo,
    TaxRateDraft,
    TaxRateInfo,
    ValidationError,
    ValidationResult,
)
from gst_kernel.domain.enums import (
    BusinessType,
    GeographicalZone,
    TaxComponentType,
    TransactionType,
)
from gst_kernel.domain.resolution import select_effective
from gst_kernel.domain.values import round_money

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "BusinessType",
    "GeographicalZone",
    "TaxComponentType",
    "TransactionType",
    "ClassificationCodeInfo",
    "EffectiveWindow",
    "Page",
    "TaxConfigurationDraft",
    "TaxConfigurationInfo",
    "TaxRateDraft",
    "TaxRateInfo",
    "ValidationError",
    "ValidationResult",
    "select_effective",
    "round_money",
]
