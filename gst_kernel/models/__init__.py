"""ORM models for the GST kernel."""

from gst_kernel.models.change_event import TaxChangeEvent
from gst_kernel.models.classification_code import ClassificationCode
from gst_kernel.models.scope_lock import TaxScopeLock
from gst_kernel.models.tax_configuration import TaxConfiguration
from gst_kernel.models.tax_rate import TaxRate

__all__ = [
    "ClassificationCode",
    "TaxRate",
    "TaxConfiguration",
    "TaxScopeLock",
    "TaxChangeEvent",
]
