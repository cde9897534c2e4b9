"""
Kernel write services.

Every service flushes into the caller's session and never commits.
"""

from gst_kernel.services.audit_sink import (
    AuditSink,
    ChangeAction,
    DatabaseAuditSink,
    InMemoryAuditSink,
    NullAuditSink,
    TaxChange,
)
from gst_kernel.services.catalog_service import CatalogService
from gst_kernel.services.configuration_service import ConfigurationService
from gst_kernel.services.rate_service import RateService
from gst_kernel.services.scope_lock_service import ScopeLockService

__all__ = [
    "AuditSink",
    "ChangeAction",
    "DatabaseAuditSink",
    "InMemoryAuditSink",
    "NullAuditSink",
    "TaxChange",
    "CatalogService",
    "ConfigurationService",
    "RateService",
    "ScopeLockService",
]
