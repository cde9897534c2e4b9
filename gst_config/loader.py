"""
Configuration Loader (``gst_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into the frozen dataclasses of
``gst_config.schema``: engine settings and seed sets.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  May import
``gst_kernel.domain``; the kernel never imports this package.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required keys have no silent defaults.
* Amounts and rates are parsed to ``Decimal`` from their YAML text.
  A YAML float is converted through ``str()`` so ``0.25`` stays 0.25.
* ``compute_checksum`` is a deterministic SHA-256 of the canonical JSON.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown enum strings  -> the kernel's typed ``EnumMappingError``.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from gst_config.schema import EngineSettings, SeedCode, SeedSet
from gst_kernel.domain.dtos import TaxConfigurationDraft, TaxRateDraft
from gst_kernel.domain.enums import BusinessType, TaxComponentType


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """
    Parse a date from YAML (string or date object).

    Raises:
        ValueError: if ``value`` is not a valid date representation.
    """
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_optional_date(value: Any) -> date | None:
    return None if value is None else parse_date(value)


def parse_decimal(value: Any, field_name: str) -> Decimal | None:
    """Parse a YAML scalar into Decimal; None passes through."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"{field_name}: boolean is not a number")
    try:
        # YAML floats go through their repr, never binary float arithmetic
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"{field_name}: cannot parse {value!r} as a decimal") from None


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization (``default=str``)."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def _places(data: dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 9:
        raise ValueError(f"settings.{key} must be an integer between 0 and 9, got {value!r}")
    return value


def parse_settings(data: dict[str, Any]) -> EngineSettings:
    """
    Parse the ``settings`` mapping.

    Raises:
        ValueError: out-of-range places, an empty or duplicated component
            preference, or a non-boolean flag.
    """
    defaults = EngineSettings()

    preference = tuple(
        TaxComponentType.parse(c)
        for c in data.get(
            "component_preference", [c.value for c in defaults.component_preference]
        )
    )
    if not preference:
        raise ValueError("settings.component_preference must not be empty")
    if len(set(preference)) != len(preference):
        raise ValueError("settings.component_preference contains duplicates")

    flags = {}
    for key in (
        "fallback_to_component_rates",
        "split_union_territory",
        "treat_missing_state_as_inter_state",
    ):
        value = data.get(key, getattr(defaults, key))
        if not isinstance(value, bool):
            raise ValueError(f"settings.{key} must be true or false, got {value!r}")
        flags[key] = value

    expected = tuple(
        BusinessType.parse(b)
        for b in data.get(
            "expected_business_types", [b.value for b in defaults.expected_business_types]
        )
    )

    return EngineSettings(
        monetary_places=_places(data, "monetary_places", defaults.monetary_places),
        rate_places=_places(data, "rate_places", defaults.rate_places),
        default_business_type=BusinessType.parse(
            data.get("default_business_type", defaults.default_business_type.value)
        ),
        component_preference=preference,
        expected_business_types=expected,
        checksum=compute_checksum(data),
        **flags,
    )


# ---------------------------------------------------------------------------
# Seed sets
# ---------------------------------------------------------------------------


def parse_seed_code(data: dict[str, Any]) -> SeedCode:
    return SeedCode(
        code=str(data["code"]),
        description=data["description"],
        parent_code=str(data["parent_code"]) if data.get("parent_code") else None,
        exemption_available=bool(data.get("exemption_available", False)),
        unit_of_measurement=data.get("unit_of_measurement"),
        business_category_rules=dict(data.get("business_category_rules") or {}),
        attributes=dict(data.get("attributes") or {}),
    )


def parse_configuration(data: dict[str, Any]) -> TaxConfigurationDraft:
    """Parse one configuration entry.  Required: code, business_type,
    total_gst_rate, effective_from."""
    return TaxConfigurationDraft(
        classification_code=str(data["classification_code"]),
        business_type=data["business_type"],
        total_gst_rate=parse_decimal(data["total_gst_rate"], "total_gst_rate"),
        effective_from=parse_date(data["effective_from"]),
        effective_to=parse_optional_date(data.get("effective_to")),
        geographical_zone=data.get("geographical_zone"),
        cgst_rate=parse_decimal(data.get("cgst_rate", 0), "cgst_rate"),
        sgst_rate=parse_decimal(data.get("sgst_rate", 0), "sgst_rate"),
        utgst_rate=parse_decimal(data.get("utgst_rate", 0), "utgst_rate"),
        igst_rate=parse_decimal(data.get("igst_rate", 0), "igst_rate"),
        cess_rate=parse_decimal(data.get("cess_rate"), "cess_rate"),
        cess_amount_per_unit=parse_decimal(
            data.get("cess_amount_per_unit"), "cess_amount_per_unit"
        ),
        reverse_charge_applicable=bool(data.get("reverse_charge_applicable", False)),
        composition_scheme_applicable=bool(data.get("composition_scheme_applicable", False)),
        composition_rate=parse_decimal(data.get("composition_rate"), "composition_rate"),
        notification_reference=data.get("notification_reference"),
        description=data.get("description"),
    )


def parse_rate(data: dict[str, Any]) -> TaxRateDraft:
    """Parse one per-component rate entry."""
    return TaxRateDraft(
        classification_code=str(data["classification_code"]),
        business_type=data["business_type"],
        component_type=data["component_type"],
        effective_from=parse_date(data["effective_from"]),
        effective_to=parse_optional_date(data.get("effective_to")),
        rate_percentage=parse_decimal(data.get("rate_percentage", 0), "rate_percentage"),
        geographical_zone=data.get("geographical_zone"),
        fixed_amount_per_unit=parse_decimal(
            data.get("fixed_amount_per_unit"), "fixed_amount_per_unit"
        ),
        minimum_amount=parse_decimal(data.get("minimum_amount"), "minimum_amount"),
        maximum_amount=parse_decimal(data.get("maximum_amount"), "maximum_amount"),
        reverse_charge_applicable=bool(data.get("reverse_charge_applicable", False)),
        composition_scheme_applicable=bool(data.get("composition_scheme_applicable", False)),
        notification_number=data.get("notification_number"),
        notification_date=parse_optional_date(data.get("notification_date")),
        description=data.get("description"),
        source_reference=data.get("source_reference"),
    )


def parse_seed_set(data: dict[str, Any], default_name: str = "seed") -> SeedSet:
    return SeedSet(
        name=data.get("name", default_name),
        codes=tuple(parse_seed_code(c) for c in data.get("codes") or ()),
        configurations=tuple(parse_configuration(c) for c in data.get("configurations") or ()),
        rates=tuple(parse_rate(r) for r in data.get("rates") or ()),
        checksum=compute_checksum(data),
    )


def load_seed_set(path: Path) -> SeedSet:
    """
    Load a seed set YAML file.

    The file holds an optional ``name`` and the lists ``codes``,
    ``configurations`` and ``rates``.  A ``seed`` key, when present, is
    used as the root (so defaults.yaml can carry settings and a sample
    seed side by side).
    """
    path = Path(path)
    data = load_yaml_file(path)
    if "seed" in data:
        data = data["seed"] or {}
    return parse_seed_set(data, default_name=path.stem)
