"""
Typed Exception Hierarchy for the GST Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Tax resolution failures must be diagnosable without re-deriving context.
A caller that gets "no rate found" needs to know WHICH code, business type,
zone and date failed, and must be able to catch that case by type rather than
by parsing a message.

Every exception in this module:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (not just a message string)

Example:
    try:
        config = engine.resolve_configuration("8471", BusinessType.B2B)
    except ConfigurationNotFoundError as e:
        api_response(code=e.code, hsn=e.classification_code, as_of=e.as_of)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from GstKernelError:

    GstKernelError (base)
    |
    +-- CatalogError
    |   +-- ClassificationCodeNotFoundError
    |   +-- DuplicateCodeError
    |   +-- InvalidClassificationCodeError
    |
    +-- EnumMappingError
    |   +-- UnknownComponentTypeError
    |   +-- UnknownBusinessTypeError
    |   +-- UnknownZoneError
    |   +-- UnknownTransactionTypeError
    |
    +-- NotFoundError
    |   +-- ConfigurationNotFoundError
    |   +-- RateNotFoundError
    |
    +-- RecordNotFoundError
    |
    +-- TaxValidationError
    |   +-- OverlappingConfigurationError
    |   +-- OverlappingRateError
    |
    +-- CalculationError
    |   +-- CalculationRateNotFoundError
    |   +-- InvalidCalculationInputError
    |
    +-- LifecycleError
    |   +-- RecordInactiveError
    |   +-- InvalidExpiryError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
Catalog         | CLASSIFICATION_CODE_NOT_FOUND | HSN/SAC code is not in the catalog
                | DUPLICATE_CLASSIFICATION_CODE | Active code already exists
                | INVALID_CLASSIFICATION_CODE   | Not 4, 6 or 8 digits
----------------|-------------------------------|---------------------------------------
Enum mapping    | UNKNOWN_COMPONENT_TYPE        | String is not CGST/SGST/IGST/UTGST/CESS
                | UNKNOWN_BUSINESS_TYPE         | String is not a known business type
                | UNKNOWN_ZONE                  | String is not a known geographical zone
                | UNKNOWN_TRANSACTION_TYPE      | String is not a known transaction type
----------------|-------------------------------|---------------------------------------
Resolution      | CONFIGURATION_NOT_FOUND       | No effective configuration for scope/date
                | RATE_NOT_FOUND                | No effective rate for scope/date
                | RECORD_NOT_FOUND              | Row id does not exist
----------------|-------------------------------|---------------------------------------
Validation      | TAX_VALIDATION_FAILED         | One or more write-path checks failed
                | OVERLAPPING_CONFIGURATION     | Windows intersect for the same scope
                | OVERLAPPING_RATE              | Windows intersect for the same scope
----------------|-------------------------------|---------------------------------------
Calculation     | CALCULATION_RATE_NOT_FOUND    | Calculation could not resolve a rule
                | INVALID_CALCULATION_INPUT     | Non-positive amount or quantity
----------------|-------------------------------|---------------------------------------
Lifecycle       | RECORD_INACTIVE               | Transition on a deactivated row
                | INVALID_EXPIRY                | effective_to before effective_from
----------------|-------------------------------|---------------------------------------
Immutability    | IMMUTABILITY_VIOLATION        | Mutation of an append-only tax row

===============================================================================
"""

from datetime import date
from typing import Any


class GstKernelError(Exception):
    """Base exception for all GST kernel errors."""

    code: str = "GST_KERNEL_ERROR"


# Catalog exceptions


class CatalogError(GstKernelError):
    """Base exception for classification catalog errors."""

    code: str = "CATALOG_ERROR"


class ClassificationCodeNotFoundError(CatalogError):
    """The requested HSN/SAC code does not exist in the catalog."""

    code: str = "CLASSIFICATION_CODE_NOT_FOUND"

    def __init__(self, classification_code: str):
        self.classification_code = classification_code
        super().__init__(f"Classification code not found: {classification_code}")


class DuplicateCodeError(CatalogError):
    """An active classification code with the same identifier already exists."""

    code: str = "DUPLICATE_CLASSIFICATION_CODE"

    def __init__(self, classification_code: str, existing_id: str):
        self.classification_code = classification_code
        self.existing_id = existing_id
        super().__init__(
            f"Classification code {classification_code} already exists "
            f"(id={existing_id})"
        )


class InvalidClassificationCodeError(CatalogError):
    """Code is not a 4, 6 or 8 digit HSN/SAC identifier."""

    code: str = "INVALID_CLASSIFICATION_CODE"

    def __init__(self, classification_code: str, reason: str):
        self.classification_code = classification_code
        self.reason = reason
        super().__init__(
            f"Invalid classification code {classification_code!r}: {reason}"
        )


# Enum mapping exceptions


class EnumMappingError(GstKernelError):
    """Base exception for string-to-enum mapping failures."""

    code: str = "ENUM_MAPPING_ERROR"

    def __init__(self, enum_name: str, value: Any):
        self.enum_name = enum_name
        self.value = value
        super().__init__(f"Unknown {enum_name}: {value!r}")


class UnknownComponentTypeError(EnumMappingError):
    """String does not name a tax component type."""

    code: str = "UNKNOWN_COMPONENT_TYPE"

    def __init__(self, value: Any):
        super().__init__("TaxComponentType", value)


class UnknownBusinessTypeError(EnumMappingError):
    """String does not name a business type."""

    code: str = "UNKNOWN_BUSINESS_TYPE"

    def __init__(self, value: Any):
        super().__init__("BusinessType", value)


class UnknownZoneError(EnumMappingError):
    """String does not name a geographical zone."""

    code: str = "UNKNOWN_ZONE"

    def __init__(self, value: Any):
        super().__init__("GeographicalZone", value)


class UnknownTransactionTypeError(EnumMappingError):
    """String does not name a transaction type."""

    code: str = "UNKNOWN_TRANSACTION_TYPE"

    def __init__(self, value: Any):
        super().__init__("TransactionType", value)


# Resolution exceptions


class NotFoundError(GstKernelError):
    """
    No effective rule exists for the requested scope and date.

    Carries the exact (code, business type, zone, date) that failed so the
    caller can diagnose the gap without re-deriving context.  Never replaced
    by a zero rate.
    """

    code: str = "NOT_FOUND"
    kind: str = "rule"

    def __init__(
        self,
        classification_code: str,
        business_type: str,
        zone: str | None,
        as_of: date,
    ):
        self.classification_code = classification_code
        self.business_type = business_type
        self.zone = zone
        self.as_of = as_of
        super().__init__(
            f"No effective {self.kind} for code={classification_code} "
            f"business_type={business_type} zone={zone or '*'} as_of={as_of}"
        )


class ConfigurationNotFoundError(NotFoundError):
    """No active configuration is effective for the scope on the date."""

    code: str = "CONFIGURATION_NOT_FOUND"
    kind: str = "configuration"


class RateNotFoundError(NotFoundError):
    """No active rate is effective for the scope on the date."""

    code: str = "RATE_NOT_FOUND"
    kind: str = "rate"

    def __init__(
        self,
        classification_code: str,
        business_type: str,
        zone: str | None,
        as_of: date,
        component_types: tuple[str, ...] = (),
    ):
        self.component_types = component_types
        super().__init__(classification_code, business_type, zone, as_of)


class RecordNotFoundError(GstKernelError):
    """A rate or configuration row with the given id does not exist."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


# Validation exceptions


class TaxValidationError(GstKernelError):
    """
    Write-path validation failed.

    ``errors`` holds every ``ValidationError`` collected for the candidate
    row; nothing was flushed.
    """

    code: str = "TAX_VALIDATION_FAILED"

    def __init__(self, entity_type: str, errors: tuple, message: str | None = None):
        self.entity_type = entity_type
        self.errors = tuple(errors)
        self.error_codes = tuple(e.code for e in self.errors)
        super().__init__(
            message
            or f"{entity_type} rejected: "
            + "; ".join(f"{e.code}: {e.message}" for e in self.errors)
        )


class OverlappingConfigurationError(TaxValidationError):
    """
    Inserting the configuration would create two simultaneously effective
    rules for the same (code, business type, zone) scope.
    """

    code: str = "OVERLAPPING_CONFIGURATION"

    def __init__(
        self,
        conflicting_id: str,
        conflicting_from: date,
        conflicting_to: date | None,
        errors: tuple = (),
    ):
        self.conflicting_id = conflicting_id
        self.conflicting_from = conflicting_from
        self.conflicting_to = conflicting_to
        super().__init__(
            "TaxConfiguration",
            errors,
            message=(
                f"Configuration overlaps active configuration {conflicting_id} "
                f"[{conflicting_from}, {conflicting_to or 'open'}]"
            ),
        )


class OverlappingRateError(TaxValidationError):
    """Inserting the rate would overlap an active rate in the same scope."""

    code: str = "OVERLAPPING_RATE"

    def __init__(
        self,
        conflicting_id: str,
        conflicting_from: date,
        conflicting_to: date | None,
        errors: tuple = (),
    ):
        self.conflicting_id = conflicting_id
        self.conflicting_from = conflicting_from
        self.conflicting_to = conflicting_to
        super().__init__(
            "TaxRate",
            errors,
            message=(
                f"Rate overlaps active rate {conflicting_id} "
                f"[{conflicting_from}, {conflicting_to or 'open'}]"
            ),
        )


# Calculation exceptions


class CalculationError(GstKernelError):
    """Base exception for tax calculation failures."""

    code: str = "CALCULATION_ERROR"


class CalculationRateNotFoundError(CalculationError):
    """
    Calculation could not resolve an effective rule.

    Aborts the single calculation, or the whole batch for bulk requests.
    """

    code: str = "CALCULATION_RATE_NOT_FOUND"

    def __init__(
        self,
        classification_code: str,
        business_type: str,
        zone: str | None,
        as_of: date,
        line_index: int | None = None,
    ):
        self.classification_code = classification_code
        self.business_type = business_type
        self.zone = zone
        self.as_of = as_of
        self.line_index = line_index
        where = f" (line {line_index})" if line_index is not None else ""
        super().__init__(
            f"No tax rule for code={classification_code} "
            f"business_type={business_type} zone={zone or '*'} "
            f"as_of={as_of}{where}"
        )


class InvalidCalculationInputError(CalculationError):
    """Amount or quantity is not a positive number."""

    code: str = "INVALID_CALCULATION_INPUT"

    def __init__(self, field: str, value: Any, reason: str, line_index: int | None = None):
        self.field = field
        self.value = value
        self.reason = reason
        self.line_index = line_index
        where = f" (line {line_index})" if line_index is not None else ""
        super().__init__(f"Invalid {field}={value!r}: {reason}{where}")


# Lifecycle exceptions


class LifecycleError(GstKernelError):
    """Base exception for soft lifecycle transition errors."""

    code: str = "LIFECYCLE_ERROR"


class RecordInactiveError(LifecycleError):
    """Transition requested on a row that is already deactivated."""

    code: str = "RECORD_INACTIVE"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} is inactive")


class InvalidExpiryError(LifecycleError):
    """Requested effective_to would end the window before it starts."""

    code: str = "INVALID_EXPIRY"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        effective_from: date,
        effective_to: date,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.effective_from = effective_from
        self.effective_to = effective_to
        super().__init__(
            f"Cannot expire {entity_type} {entity_id} on {effective_to}: "
            f"window starts {effective_from}"
        )


# Immutability exceptions


class ImmutabilityError(GstKernelError):
    """Base exception for append-only history violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to mutate or delete an append-only tax row.

    Rates and configurations only allow deactivation, expiry and the
    superseded_by link after insert.  Every other change is a new row.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
