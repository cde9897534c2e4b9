"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Defines the immutable data structures that flow between the store and
    the pure core: catalog entries, rate and configuration snapshots, write
    drafts, effective windows, validation results and statistics.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  ORM models convert themselves with
    ``to_dto()``; selectors and services return these objects, never ORM rows.

Invariants enforced:
    - Effective windows are inclusive on both ends: a row with
      effective_to=2024-12-31 is effective on 2024-12-31 and not on
      2025-01-01.  ``effective_to=None`` is open-ended.
    - Drafts normalize enum-typed fields on construction (fail loud on
      unknown strings) and convert numeric fields to Decimal.  They do NOT
      validate business rules; that is domain/validation.py.

Failure modes:
    - EnumMappingError subclasses from draft construction.
    - TaxValidationError (code INVALID_NUMBER) when a draft numeric field
      is a float, a malformed string, NaN or infinite.

Audit relevance:
    TaxConfigurationInfo and TaxRateInfo carry the row id and version so
    every calculation and diagnostic can name the exact rule it used.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from gst_kernel.domain.enums import (
    BusinessType,
    GeographicalZone,
    TaxComponentType,
    normalize_zone,
)
from gst_kernel.domain.values import ZERO, is_positive, percent_of, round_money, to_decimal
from gst_kernel.exceptions import TaxValidationError

INVALID_NUMBER = "INVALID_NUMBER"

# ---------------------------------------------------------------------------
# Effective window
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EffectiveWindow:
    """Inclusive [start, end] date range; end=None is open-ended."""

    start: date
    end: date | None = None

    def contains(self, day: date) -> bool:
        return self.start <= day and (self.end is None or day <= self.end)

    def overlaps(self, other: EffectiveWindow) -> bool:
        # start1 <= end2 AND start2 <= end1, with None as +infinity
        starts_before_other_ends = other.end is None or self.start <= other.end
        other_starts_before_end = self.end is None or other.start <= self.end
        return starts_before_other_ends and other_starts_before_end

    @property
    def is_open(self) -> bool:
        return self.end is None

    def __str__(self) -> str:
        return f"[{self.start}, {self.end or 'open'}]"


@dataclass(frozen=True)
class AmountBounds:
    """Floor and ceiling for one component's tax amount; None is unbounded."""

    minimum: Decimal | None = None
    maximum: Decimal | None = None

    def clamp(self, amount: Decimal) -> Decimal:
        if self.minimum is not None and amount < self.minimum:
            amount = self.minimum
        if self.maximum is not None and amount > self.maximum:
            amount = self.maximum
        return amount

    def __bool__(self) -> bool:
        return self.minimum is not None or self.maximum is not None


def _convert_draft_numbers(draft: Any, entity_type: str, names: tuple[str, ...]) -> None:
    """Replace each named field with its Decimal; collect every bad field first."""
    errors: list[ValidationError] = []
    for name in names:
        value = getattr(draft, name)
        try:
            number = to_decimal(value)
        except (TypeError, InvalidOperation):
            errors.append(
                ValidationError(
                    code=INVALID_NUMBER,
                    message=f"{value!r} is not an exact decimal (int, str or Decimal)",
                    field=name,
                )
            )
            continue
        if number is not None and not number.is_finite():
            errors.append(
                ValidationError(
                    code=INVALID_NUMBER,
                    message=f"{value!r} is not a finite number",
                    field=name,
                )
            )
            continue
        object.__setattr__(draft, name, number)
    if errors:
        raise TaxValidationError(entity_type, tuple(errors))


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClassificationCodeInfo:
    """Read-only snapshot of an HSN/SAC catalog entry."""

    id: UUID
    code: str
    description: str
    chapter: str
    heading: str
    level: int
    parent_id: UUID | None = None
    exemption_available: bool = False
    is_active: bool = True
    unit_of_measurement: str | None = None
    business_category_rules: dict[str, Any] = field(default_factory=dict)
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def is_chapter_root(self) -> bool:
        return self.level == 1


@dataclass(frozen=True)
class CatalogStatistics:
    total_codes: int
    active_codes: int
    codes_by_level: dict[int, int]
    chapters: int
    with_exemption: int


# ---------------------------------------------------------------------------
# Rates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxRateInfo:
    """Snapshot of one per-component rate version."""

    id: UUID
    classification_code_id: UUID
    classification_code: str
    business_type: BusinessType
    component_type: TaxComponentType
    geographical_zone: GeographicalZone | None
    rate_percentage: Decimal
    effective_from: date
    effective_to: date | None = None
    fixed_amount_per_unit: Decimal | None = None
    minimum_amount: Decimal | None = None
    maximum_amount: Decimal | None = None
    reverse_charge_applicable: bool = False
    composition_scheme_applicable: bool = False
    is_active: bool = True
    version_number: int = 1
    notification_number: str | None = None
    notification_date: date | None = None
    description: str | None = None
    source_reference: str | None = None
    superseded_by_id: UUID | None = None

    @property
    def window(self) -> EffectiveWindow:
        return EffectiveWindow(self.effective_from, self.effective_to)

    @property
    def is_fixed_basis(self) -> bool:
        return not is_positive(self.rate_percentage) and is_positive(
            self.fixed_amount_per_unit
        )

    def is_effective_on(self, day: date) -> bool:
        return self.is_active and self.window.contains(day)

    @property
    def bounds(self) -> AmountBounds:
        return AmountBounds(self.minimum_amount, self.maximum_amount)

    def compute_amount(self, base_amount: Decimal, quantity: Decimal = Decimal("1")) -> Decimal:
        """
        Component amount for ``base_amount`` and ``quantity``.

        Percentage of base plus fixed-per-unit times quantity, then clamped
        to minimum_amount / maximum_amount, each step rounded to paisa.
        """
        amount = ZERO
        if is_positive(self.rate_percentage):
            amount += percent_of(base_amount, self.rate_percentage)
        if is_positive(self.fixed_amount_per_unit):
            amount += round_money(self.fixed_amount_per_unit * quantity)
        return round_money(self.bounds.clamp(amount))


@dataclass(frozen=True)
class TaxRateDraft:
    """Caller input for a new rate version."""

    classification_code: str
    business_type: BusinessType | str
    component_type: TaxComponentType | str
    effective_from: date
    rate_percentage: Decimal | int | str = ZERO
    geographical_zone: GeographicalZone | str | None = None
    effective_to: date | None = None
    fixed_amount_per_unit: Decimal | int | str | None = None
    minimum_amount: Decimal | int | str | None = None
    maximum_amount: Decimal | int | str | None = None
    reverse_charge_applicable: bool = False
    composition_scheme_applicable: bool = False
    notification_number: str | None = None
    notification_date: date | None = None
    description: str | None = None
    source_reference: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "business_type", BusinessType.parse(self.business_type))
        object.__setattr__(self, "component_type", TaxComponentType.parse(self.component_type))
        object.__setattr__(self, "geographical_zone", normalize_zone(self.geographical_zone))
        _convert_draft_numbers(
            self,
            "TaxRate",
            ("rate_percentage", "fixed_amount_per_unit", "minimum_amount", "maximum_amount"),
        )
        if self.rate_percentage is None:
            object.__setattr__(self, "rate_percentage", ZERO)

    @property
    def window(self) -> EffectiveWindow:
        return EffectiveWindow(self.effective_from, self.effective_to)


@dataclass(frozen=True)
class RateStatistics:
    total_active: int
    by_component: dict[str, int]
    by_business_type: dict[str, int]
    average_rate: Decimal
    highest_rate: Decimal
    lowest_rate: Decimal
    fixed_basis_count: int


# ---------------------------------------------------------------------------
# Configurations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TaxConfigurationInfo:
    """Snapshot of one denormalized configuration version."""

    id: UUID
    classification_code_id: UUID
    classification_code: str
    business_type: BusinessType
    geographical_zone: GeographicalZone | None
    total_gst_rate: Decimal
    effective_from: date
    effective_to: date | None = None
    cgst_rate: Decimal = ZERO
    sgst_rate: Decimal = ZERO
    utgst_rate: Decimal = ZERO
    igst_rate: Decimal = ZERO
    cess_rate: Decimal | None = None
    cess_amount_per_unit: Decimal | None = None
    reverse_charge_applicable: bool = False
    composition_scheme_applicable: bool = False
    composition_rate: Decimal | None = None
    notification_reference: str | None = None
    description: str | None = None
    is_active: bool = True
    superseded_by_id: UUID | None = None
    # Only set on configurations projected from bounded component rates
    component_bounds: tuple[tuple[TaxComponentType, AmountBounds], ...] = ()

    @property
    def window(self) -> EffectiveWindow:
        return EffectiveWindow(self.effective_from, self.effective_to)

    def is_effective_on(self, day: date) -> bool:
        return self.is_active and self.window.contains(day)

    def bounds_for(self, component: TaxComponentType) -> AmountBounds:
        for bounded, bounds in self.component_bounds:
            if bounded is component:
                return bounds
        return AmountBounds()

    @property
    def has_cess(self) -> bool:
        return is_positive(self.cess_rate) or is_positive(self.cess_amount_per_unit)


@dataclass(frozen=True)
class TaxConfigurationDraft:
    """Caller input for a new configuration version."""

    classification_code: str
    business_type: BusinessType | str
    total_gst_rate: Decimal | int | str
    effective_from: date
    geographical_zone: GeographicalZone | str | None = None
    effective_to: date | None = None
    cgst_rate: Decimal | int | str = ZERO
    sgst_rate: Decimal | int | str = ZERO
    utgst_rate: Decimal | int | str = ZERO
    igst_rate: Decimal | int | str = ZERO
    cess_rate: Decimal | int | str | None = None
    cess_amount_per_unit: Decimal | int | str | None = None
    reverse_charge_applicable: bool = False
    composition_scheme_applicable: bool = False
    composition_rate: Decimal | int | str | None = None
    notification_reference: str | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "business_type", BusinessType.parse(self.business_type))
        object.__setattr__(self, "geographical_zone", normalize_zone(self.geographical_zone))
        _convert_draft_numbers(
            self,
            "TaxConfiguration",
            (
                "total_gst_rate",
                "cgst_rate",
                "sgst_rate",
                "utgst_rate",
                "igst_rate",
                "cess_rate",
                "cess_amount_per_unit",
                "composition_rate",
            ),
        )
        for name in ("cgst_rate", "sgst_rate", "utgst_rate", "igst_rate"):
            if getattr(self, name) is None:
                object.__setattr__(self, name, ZERO)

    @property
    def window(self) -> EffectiveWindow:
        return EffectiveWindow(self.effective_from, self.effective_to)


@dataclass(frozen=True)
class ConfigurationStatistics:
    total_active: int
    with_cess: int
    with_fixed_cess: int
    reverse_charge: int
    composition_scheme: int
    distinct_gst_rates: tuple[Decimal, ...]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationError:
    """
    A single write-path validation failure.

    Carries a machine-readable code, a message, the offending field and an
    optional details dict (e.g. the conflicting row id and window).
    """

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class ValidationResult:
    """
    Aggregates zero or more ValidationErrors.

    bool(result) == result.is_valid.
    """

    is_valid: bool
    errors: tuple[ValidationError, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls) -> ValidationResult:
        return cls(is_valid=True, errors=())

    @classmethod
    def failure(cls, *errors: ValidationError) -> ValidationResult:
        return cls(is_valid=False, errors=tuple(errors))

    @classmethod
    def from_errors(cls, errors: list[ValidationError]) -> ValidationResult:
        return cls.failure(*errors) if errors else cls.success()

    def has(self, code: str) -> bool:
        return any(e.code == code for e in self.errors)

    def __bool__(self) -> bool:
        return self.is_valid


# ---------------------------------------------------------------------------
# Paging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Page:
    """One page of a filtered result set."""

    items: tuple
    page: int
    size: int
    total: int

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 0
        return (self.total + self.size - 1) // self.size

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages
