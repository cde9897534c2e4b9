"""
Pytest fixtures for the GST tax engine test suite.

Provides:
- A session-scoped engine (in-memory SQLite unless DATABASE_URL is set)
- Per-test sessions rolled back at teardown
- A deterministic clock, an in-memory audit sink and a test actor
- Builders for catalog codes, configurations and rates

Environment Variables:
- DATABASE_URL: SQLAlchemy URL.  Defaults to sqlite:///:memory:.
  Tests marked ``postgres`` are skipped unless it names a PostgreSQL database.
"""

import json
import logging
import os
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from gst_config.schema import EngineSettings
from gst_kernel.db.engine import create_tables, drop_tables, init_engine_from_url, reset_engine
from gst_kernel.db.immutability import register_immutability_listeners
from gst_kernel.domain.clock import DeterministicClock
from gst_kernel.domain.dtos import TaxConfigurationDraft, TaxRateDraft
from gst_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from gst_kernel.services.audit_sink import InMemoryAuditSink
from gst_kernel.services.catalog_service import CatalogService
from gst_kernel.services.configuration_service import ConfigurationService
from gst_kernel.services.rate_service import RateService
from gst_services.tax_engine import TaxEngine

DEFAULT_DATABASE_URL = "sqlite:///:memory:"

# Day the deterministic clock is pinned to
TODAY = date(2024, 6, 15)


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def is_postgres_url(url: str) -> bool:
    return url.startswith("postgresql")


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "postgres: mark test as requiring PostgreSQL")


def pytest_collection_modifyitems(config, items):
    if is_postgres_url(get_database_url()):
        return
    skip_pg = pytest.mark.skip(reason="requires DATABASE_URL pointing at PostgreSQL")
    for item in items:
        if "postgres" in item.keywords:
            item.add_marker(skip_pg)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture gst_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, engine):
            engine.calculate_tax(...)
            logs = captured_logs()
            assert any(r["message"] == "tax_calculation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("gst_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single engine and schema for the whole test session."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    create_tables()
    register_immutability_listeners()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """
    Session joined to an outer transaction that is rolled back at teardown.

    ``session.commit()`` inside a test only releases a savepoint.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Core fixtures
# =============================================================================


@pytest.fixture
def actor_id() -> UUID:
    return uuid4()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock.on(TODAY)


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def catalog_service(session) -> CatalogService:
    return CatalogService(session)


@pytest.fixture
def configuration_service(session, clock, audit_sink) -> ConfigurationService:
    return ConfigurationService(session, clock, audit_sink)


@pytest.fixture
def rate_service(session, clock, audit_sink) -> RateService:
    return RateService(session, clock, audit_sink)


@pytest.fixture
def engine(session, clock, audit_sink, settings) -> TaxEngine:
    return TaxEngine(session, clock=clock, audit_sink=audit_sink, settings=settings)


# =============================================================================
# Builders
# =============================================================================


@pytest.fixture
def make_code(catalog_service, actor_id):
    """Create a catalog entry; the description defaults to the code."""

    def _make(code: str = "8471", description: str | None = None, **kwargs):
        return catalog_service.create_code(
            code, description or f"Code {code}", actor_id, **kwargs
        )

    return _make


def configuration_draft(**overrides) -> TaxConfigurationDraft:
    """18% intra-state B2B configuration for 8471 from 2024-01-01, open-ended."""
    values = {
        "classification_code": "8471",
        "business_type": "B2B",
        "total_gst_rate": Decimal("18"),
        "cgst_rate": Decimal("9"),
        "sgst_rate": Decimal("9"),
        "effective_from": date(2024, 1, 1),
    }
    values.update(overrides)
    return TaxConfigurationDraft(**values)


def rate_draft(**overrides) -> TaxRateDraft:
    """18% IGST B2B rate for 8471 from 2024-01-01, open-ended."""
    values = {
        "classification_code": "8471",
        "business_type": "B2B",
        "component_type": "IGST",
        "rate_percentage": Decimal("18"),
        "effective_from": date(2024, 1, 1),
    }
    values.update(overrides)
    return TaxRateDraft(**values)


@pytest.fixture
def make_configuration(configuration_service, actor_id):
    """Insert a configuration through the validated write path."""

    def _make(**overrides):
        return configuration_service.create_configuration(
            configuration_draft(**overrides), actor_id
        )

    return _make


@pytest.fixture
def make_rate(rate_service, actor_id):
    """Insert a rate through the validated write path."""

    def _make(**overrides):
        return rate_service.create_rate(rate_draft(**overrides), actor_id)

    return _make


@pytest.fixture
def code_8471(make_code):
    return make_code("8471", "Automatic data processing machines")


@pytest.fixture
def build_configuration_draft():
    return configuration_draft


@pytest.fixture
def build_rate_draft():
    return rate_draft
