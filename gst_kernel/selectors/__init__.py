"""
Read-only query selectors.

Selectors never write, never lock and return DTOs.
"""

from gst_kernel.selectors.catalog_selector import CatalogSelector
from gst_kernel.selectors.configuration_selector import ConfigurationSelector
from gst_kernel.selectors.rate_selector import DEFAULT_COMPONENT_PREFERENCE, RateSelector

__all__ = [
    "CatalogSelector",
    "ConfigurationSelector",
    "RateSelector",
    "DEFAULT_COMPONENT_PREFERENCE",
]
