"""
gst_config -- single public entrypoint for engine settings and seed data.

Responsibility:
    Provides the ONLY way to obtain engine settings at runtime through
    ``get_engine_settings()``, and loads reviewable seed sets for
    ``scripts/seed_catalog.py``.  No other component reads YAML files or
    environment variables for settings.

Architecture position:
    Configuration -- sits above ``gst_kernel`` and below
    ``gst_services``.  The kernel MUST NEVER import from ``gst_config``;
    services receive an ``EngineSettings`` value and translate it into
    calculator and selector arguments.

Invariants enforced:
    - Single entrypoint: runtime settings flow through ``get_engine_settings()``.
    - Deterministic: the same YAML always yields the same settings checksum.

Failure modes:
    - ``FileNotFoundError`` -- the settings or seed file does not exist.
    - ``ValueError`` -- a setting is out of range or has the wrong type.
    - ``EnumMappingError`` -- an unknown business type or component name.

Audit relevance:
    Every ``get_engine_settings()`` call emits a ``gst_config_loaded`` log
    entry with the source path and checksum, so a calculation can be tied
    back to the settings that governed its rounding and split rules.
"""

from __future__ import annotations

import logging
from pathlib import Path

from gst_config.loader import load_seed_set, load_yaml_file, parse_settings
from gst_config.schema import EngineSettings, SeedCode, SeedSet

__all__ = [
    "DEFAULT_SETTINGS_PATH",
    "EngineSettings",
    "SeedCode",
    "SeedSet",
    "default_seed_path",
    "get_engine_settings",
    "load_seed_set",
]

_logger = logging.getLogger("gst_kernel.config")

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "defaults.yaml"


def default_seed_path() -> Path:
    """Sample seed set shipped with the package (a handful of HSN/SAC codes)."""
    return DEFAULT_SETTINGS_PATH


def get_engine_settings(path: Path | None = None) -> EngineSettings:
    """
    Load and validate engine settings.

    Args:
        path: YAML file holding a ``settings`` mapping.  Defaults to
            gst_config/defaults.yaml.

    Returns:
        Frozen EngineSettings carrying the checksum of the parsed mapping.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If a setting fails validation.
    """
    source = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    data = load_yaml_file(source)
    settings = parse_settings(data.get("settings") or {})

    _logger.info(
        "gst_config_loaded",
        extra={
            "trace_type": "gst_config_loaded",
            "source": str(source),
            "checksum": settings.checksum,
            "monetary_places": settings.monetary_places,
            "rate_places": settings.rate_places,
            "default_business_type": settings.default_business_type.value,
        },
    )
    return settings
