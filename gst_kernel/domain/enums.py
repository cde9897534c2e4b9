"""
Enums -- closed vocabularies for GST resolution and calculation.

Responsibility:
    Defines the tax component, business type, geographical zone and
    transaction type vocabularies.  Storage and external callers use plain
    strings; everything inside the kernel uses these enums.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Every string-to-enum conversion goes through ``parse()``, a total
      mapping that raises a typed ``EnumMappingError`` subclass on unknown
      input.  There is no fallback member.
    - ``GeographicalZone.ALL_INDIA`` is the wildcard.  ``normalize_zone``
      maps it (and None) to None, which is how a wildcard is stored.

Failure modes:
    - UnknownComponentTypeError, UnknownBusinessTypeError, UnknownZoneError,
      UnknownTransactionTypeError.
"""

from __future__ import annotations

from enum import Enum

from gst_kernel.exceptions import (
    UnknownBusinessTypeError,
    UnknownComponentTypeError,
    UnknownTransactionTypeError,
    UnknownZoneError,
)


def _lookup(enum_cls, value, error_cls):
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        raise error_cls(value)
    key = value.strip().upper().replace("-", "_").replace(" ", "_")
    try:
        return enum_cls[key]
    except KeyError:
        raise error_cls(value) from None


class TaxComponentType(str, Enum):
    """Kind of GST levy carried by a rate row or breakdown line."""

    CGST = "CGST"
    SGST = "SGST"
    IGST = "IGST"
    UTGST = "UTGST"
    CESS = "CESS"

    @classmethod
    def parse(cls, value: str | TaxComponentType) -> TaxComponentType:
        return _lookup(cls, value, UnknownComponentTypeError)

    @property
    def display_name(self) -> str:
        return _COMPONENT_NAMES[self]


_COMPONENT_NAMES = {
    TaxComponentType.CGST: "Central GST",
    TaxComponentType.SGST: "State GST",
    TaxComponentType.IGST: "Integrated GST",
    TaxComponentType.UTGST: "Union Territory GST",
    TaxComponentType.CESS: "Compensation Cess",
}


class BusinessType(str, Enum):
    """Commercial relationship a rule applies to.  Each is its own scope."""

    B2B = "B2B"
    B2C = "B2C"
    COMPOSITION = "COMPOSITION"
    EXPORT = "EXPORT"
    SEZ = "SEZ"
    EXEMPT = "EXEMPT"
    NIL_RATED = "NIL_RATED"

    @classmethod
    def parse(cls, value: str | BusinessType) -> BusinessType:
        return _lookup(cls, value, UnknownBusinessTypeError)


# State and UT codes per zone (two-letter GSTIN state abbreviations)
_ZONE_STATES: dict[str, frozenset[str]] = {
    "NORTH": frozenset({"JK", "LA", "HP", "PB", "CH", "UK", "HR", "DL", "RJ", "UP"}),
    "SOUTH": frozenset({"KA", "KL", "TN", "AP", "TS", "PY", "LD"}),
    "EAST": frozenset({"WB", "OD", "BR", "JH", "AN"}),
    "WEST": frozenset({"MH", "GA", "GJ", "DH"}),
    "NORTH_EAST": frozenset({"AS", "AR", "MN", "ML", "MZ", "NL", "TR", "SK"}),
    "CENTRAL": frozenset({"MP", "CG"}),
}

# Union territories without a legislature levy UTGST instead of SGST
UNION_TERRITORY_CODES: frozenset[str] = frozenset({"AN", "CH", "DH", "LA", "LD"})


class GeographicalZone(str, Enum):
    """Regional scope of a rule.  ALL_INDIA is the wildcard."""

    ALL_INDIA = "ALL_INDIA"
    NORTH = "NORTH"
    SOUTH = "SOUTH"
    EAST = "EAST"
    WEST = "WEST"
    NORTH_EAST = "NORTH_EAST"
    CENTRAL = "CENTRAL"

    @classmethod
    def parse(cls, value: str | GeographicalZone) -> GeographicalZone:
        return _lookup(cls, value, UnknownZoneError)

    @property
    def state_codes(self) -> frozenset[str]:
        if self is GeographicalZone.ALL_INDIA:
            return frozenset().union(*_ZONE_STATES.values())
        return _ZONE_STATES[self.value]

    @classmethod
    def for_state(cls, state_code: str | None) -> GeographicalZone | None:
        """Zone containing ``state_code``, or None if the code is unknown."""
        code = normalize_state(state_code)
        if code is None:
            return None
        for name, states in _ZONE_STATES.items():
            if code in states:
                return cls[name]
        return None

    @staticmethod
    def is_union_territory(state_code: str | None) -> bool:
        return normalize_state(state_code) in UNION_TERRITORY_CODES


class TransactionType(str, Enum):
    """Supply classification derived from source/destination jurisdictions."""

    INTRA_STATE = "INTRA_STATE"
    INTER_STATE = "INTER_STATE"
    UNION_TERRITORY = "UNION_TERRITORY"
    EXPORT = "EXPORT"
    IMPORT = "IMPORT"

    @classmethod
    def parse(cls, value: str | TransactionType) -> TransactionType:
        return _lookup(cls, value, UnknownTransactionTypeError)


def normalize_state(state_code: str | None) -> str | None:
    """Strip and upper-case a state code; blank becomes None."""
    if state_code is None:
        return None
    code = state_code.strip().upper()
    return code or None


def normalize_zone(zone: str | GeographicalZone | None) -> GeographicalZone | None:
    """Map a zone input to its stored form.  None and ALL_INDIA mean wildcard."""
    if zone is None:
        return None
    parsed = GeographicalZone.parse(zone)
    if parsed is GeographicalZone.ALL_INDIA:
        return None
    return parsed
