"""
Validation -- pure write-path checks for tax rules.

Responsibility:
    Collects every structural problem with a candidate configuration or rate
    into a ``ValidationResult``.  Services run these checks under the scope
    lock and refuse to flush anything unless the result is valid.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The overlap check
    receives the existing rows for the candidate's scope from the caller.

Invariants enforced:
    - Component consistency, compared as exact Decimals (no epsilon):
      cgst + sgst + utgst == total when any of them is > 0; igst == total
      when igst > 0; the two shapes are never both populated.
    - Rate basis: exactly one of rate_percentage > 0 and
      fixed_amount_per_unit > 0.
    - No two active rows in one scope have intersecting inclusive windows.
    - Input is never corrected; problems are reported.

Failure modes:
    (none -- returns ValidationResult)
"""

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal
from typing import Iterable

from gst_kernel.domain.dtos import (
    TaxConfigurationDraft,
    TaxConfigurationInfo,
    TaxRateDraft,
    TaxRateInfo,
    ValidationError,
    ValidationResult,
)
from gst_kernel.domain.enums import TaxComponentType
from gst_kernel.domain.resolution import find_overlaps
from gst_kernel.domain.values import ZERO, is_positive

CODE_PATTERN = re.compile(r"^\d{4}(\d{2}(\d{2})?)?$")

MAX_RATE = Decimal("100")

# Error codes
INVALID_CODE_FORMAT = "INVALID_CODE_FORMAT"
NEGATIVE_TOTAL_RATE = "NEGATIVE_TOTAL_RATE"
NEGATIVE_COMPONENT_RATE = "NEGATIVE_COMPONENT_RATE"
RATE_OUT_OF_RANGE = "RATE_OUT_OF_RANGE"
INVALID_DATE_RANGE = "INVALID_DATE_RANGE"
COMPONENT_SUM_MISMATCH = "COMPONENT_SUM_MISMATCH"
IGST_MISMATCH = "IGST_MISMATCH"
MIXED_COMPONENT_SHAPE = "MIXED_COMPONENT_SHAPE"
NEGATIVE_CESS = "NEGATIVE_CESS"
OVERLAPPING_CONFIGURATION = "OVERLAPPING_CONFIGURATION"
INVALID_RATE_BASIS = "INVALID_RATE_BASIS"
NEGATIVE_AMOUNT = "NEGATIVE_AMOUNT"
INVALID_AMOUNT_BOUNDS = "INVALID_AMOUNT_BOUNDS"
OVERLAPPING_RATE = "OVERLAPPING_RATE"
SCOPE_CHANGE_NOT_ALLOWED = "SCOPE_CHANGE_NOT_ALLOWED"


# ---------------------------------------------------------------------------
# Classification codes
# ---------------------------------------------------------------------------


def derive_code_parts(code: str) -> tuple[int, str, str]:
    """(level, chapter, heading) for a well-formed 4/6/8 digit code."""
    level = {4: 1, 6: 2, 8: 3}[len(code)]
    return level, code[:2], code[:4]


def validate_code_format(code: str) -> ValidationResult:
    if not isinstance(code, str) or not CODE_PATTERN.match(code):
        return ValidationResult.failure(
            ValidationError(
                code=INVALID_CODE_FORMAT,
                message=f"Classification code must be 4, 6 or 8 digits, got {code!r}",
                field="code",
            )
        )
    return ValidationResult.success()


# ---------------------------------------------------------------------------
# Shared checks
# ---------------------------------------------------------------------------


def _check_window(effective_from: date, effective_to: date | None) -> list[ValidationError]:
    if effective_to is not None and effective_to < effective_from:
        return [
            ValidationError(
                code=INVALID_DATE_RANGE,
                message=f"effective_to {effective_to} is before effective_from {effective_from}",
                field="effective_to",
                details={"effective_from": effective_from, "effective_to": effective_to},
            )
        ]
    return []


def _overlap_error(code: str, conflicting) -> ValidationError:
    return ValidationError(
        code=code,
        message=(
            f"Window overlaps active row {conflicting.id} "
            f"{conflicting.window}"
        ),
        field="effective_from",
        details={
            "conflicting_id": str(conflicting.id),
            "conflicting_from": conflicting.effective_from,
            "conflicting_to": conflicting.effective_to,
        },
    )


# ---------------------------------------------------------------------------
# Configurations
# ---------------------------------------------------------------------------


def check_component_consistency(
    total: Decimal,
    cgst: Decimal,
    sgst: Decimal,
    utgst: Decimal,
    igst: Decimal,
) -> list[ValidationError]:
    """Exact-decimal intra/inter-state shape check."""
    errors: list[ValidationError] = []
    intra_parts = (cgst, sgst, utgst)
    intra_shape = any(p > ZERO for p in intra_parts)
    inter_shape = igst > ZERO

    if intra_shape and inter_shape:
        errors.append(
            ValidationError(
                code=MIXED_COMPONENT_SHAPE,
                message="Intra-state (CGST/SGST/UTGST) and IGST rates are both populated",
                field="igst_rate",
                details={"cgst": cgst, "sgst": sgst, "utgst": utgst, "igst": igst},
            )
        )
    if intra_shape and cgst + sgst + utgst != total:
        errors.append(
            ValidationError(
                code=COMPONENT_SUM_MISMATCH,
                message=(
                    f"CGST {cgst} + SGST {sgst} + UTGST {utgst} != total {total}"
                ),
                field="total_gst_rate",
                details={"component_sum": cgst + sgst + utgst, "total_gst_rate": total},
            )
        )
    if inter_shape and igst != total:
        errors.append(
            ValidationError(
                code=IGST_MISMATCH,
                message=f"IGST {igst} != total {total}",
                field="igst_rate",
                details={"igst_rate": igst, "total_gst_rate": total},
            )
        )
    return errors


def validate_configuration(
    candidate: TaxConfigurationDraft,
    existing: Iterable[TaxConfigurationInfo] = (),
) -> ValidationResult:
    """
    Validate a configuration draft against the rows already in its scope.

    Args:
        candidate: The draft to insert.
        existing: Rows for the same (code, business type, zone-or-NULL).
    """
    errors: list[ValidationError] = []

    if candidate.total_gst_rate < ZERO:
        errors.append(
            ValidationError(
                code=NEGATIVE_TOTAL_RATE,
                message=f"total_gst_rate {candidate.total_gst_rate} is negative",
                field="total_gst_rate",
            )
        )
    elif candidate.total_gst_rate > MAX_RATE:
        errors.append(
            ValidationError(
                code=RATE_OUT_OF_RANGE,
                message=f"total_gst_rate {candidate.total_gst_rate} exceeds {MAX_RATE}",
                field="total_gst_rate",
            )
        )

    for name in ("cgst_rate", "sgst_rate", "utgst_rate", "igst_rate", "composition_rate"):
        value = getattr(candidate, name)
        if value is not None and value < ZERO:
            errors.append(
                ValidationError(
                    code=NEGATIVE_COMPONENT_RATE,
                    message=f"{name} {value} is negative",
                    field=name,
                )
            )
    for name in ("cess_rate", "cess_amount_per_unit"):
        value = getattr(candidate, name)
        if value is not None and value < ZERO:
            errors.append(
                ValidationError(
                    code=NEGATIVE_CESS,
                    message=f"{name} {value} is negative",
                    field=name,
                )
            )

    errors.extend(_check_window(candidate.effective_from, candidate.effective_to))
    errors.extend(
        check_component_consistency(
            candidate.total_gst_rate,
            candidate.cgst_rate,
            candidate.sgst_rate,
            candidate.utgst_rate,
            candidate.igst_rate,
        )
    )

    for conflict in find_overlaps(candidate.effective_from, candidate.effective_to, existing):
        errors.append(_overlap_error(OVERLAPPING_CONFIGURATION, conflict))

    return ValidationResult.from_errors(errors)


# ---------------------------------------------------------------------------
# Rates
# ---------------------------------------------------------------------------


def validate_rate(
    candidate: TaxRateDraft,
    existing: Iterable[TaxRateInfo] = (),
) -> ValidationResult:
    """
    Validate a rate draft against the rows already in its scope.

    Args:
        candidate: The draft to insert.
        existing: Rows for the same (code, business type, component, zone-or-NULL).
    """
    errors: list[ValidationError] = []

    for name in ("rate_percentage", "fixed_amount_per_unit", "minimum_amount", "maximum_amount"):
        value = getattr(candidate, name)
        if value is not None and value < ZERO:
            errors.append(
                ValidationError(
                    code=NEGATIVE_AMOUNT,
                    message=f"{name} {value} is negative",
                    field=name,
                )
            )

    # Compensation cess may legitimately exceed 100%
    if (
        candidate.component_type is not TaxComponentType.CESS
        and candidate.rate_percentage > MAX_RATE
    ):
        errors.append(
            ValidationError(
                code=RATE_OUT_OF_RANGE,
                message=f"rate_percentage {candidate.rate_percentage} exceeds {MAX_RATE}",
                field="rate_percentage",
            )
        )

    has_percentage = is_positive(candidate.rate_percentage)
    has_fixed = is_positive(candidate.fixed_amount_per_unit)
    if has_percentage == has_fixed:
        errors.append(
            ValidationError(
                code=INVALID_RATE_BASIS,
                message=(
                    "Exactly one of rate_percentage > 0 and fixed_amount_per_unit > 0 "
                    "must be the primary basis"
                ),
                field="rate_percentage",
                details={
                    "rate_percentage": candidate.rate_percentage,
                    "fixed_amount_per_unit": candidate.fixed_amount_per_unit,
                },
            )
        )

    if (
        candidate.minimum_amount is not None
        and candidate.maximum_amount is not None
        and candidate.minimum_amount > candidate.maximum_amount
    ):
        errors.append(
            ValidationError(
                code=INVALID_AMOUNT_BOUNDS,
                message=(
                    f"minimum_amount {candidate.minimum_amount} exceeds "
                    f"maximum_amount {candidate.maximum_amount}"
                ),
                field="minimum_amount",
            )
        )

    errors.extend(_check_window(candidate.effective_from, candidate.effective_to))

    for conflict in find_overlaps(candidate.effective_from, candidate.effective_to, existing):
        errors.append(_overlap_error(OVERLAPPING_RATE, conflict))

    return ValidationResult.from_errors(errors)
