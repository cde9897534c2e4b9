"""
Engine settings and seed set schema.

Frozen dataclasses that YAML files are parsed into by the loader.
EngineSettings tunes the calculation and resolution behaviour; SeedSet is
a reviewable bundle of catalog codes, configurations and rates that
scripts/seed_catalog.py applies through the validated write path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from gst_kernel.domain.dtos import TaxConfigurationDraft, TaxRateDraft
from gst_kernel.domain.enums import BusinessType, TaxComponentType


@dataclass(frozen=True)
class EngineSettings:
    """Runtime knobs for the tax engine."""

    monetary_places: int = 2
    rate_places: int = 4
    default_business_type: BusinessType = BusinessType.B2B
    component_preference: tuple[TaxComponentType, ...] = (
        TaxComponentType.IGST,
        TaxComponentType.CGST,
        TaxComponentType.SGST,
    )
    fallback_to_component_rates: bool = True
    split_union_territory: bool = False
    treat_missing_state_as_inter_state: bool = True
    expected_business_types: tuple[BusinessType, ...] = (BusinessType.B2B, BusinessType.B2C)
    checksum: str | None = None


@dataclass(frozen=True)
class SeedCode:
    """One catalog entry to create."""

    code: str
    description: str
    parent_code: str | None = None
    exemption_available: bool = False
    unit_of_measurement: str | None = None
    business_category_rules: dict[str, Any] = field(default_factory=dict)
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SeedSet:
    """Catalog codes, configurations and rates, applied in that order."""

    name: str
    codes: tuple[SeedCode, ...] = ()
    configurations: tuple[TaxConfigurationDraft, ...] = ()
    rates: tuple[TaxRateDraft, ...] = ()
    checksum: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.codes or self.configurations or self.rates)
