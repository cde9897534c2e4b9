"""Tests for the structured logging system (gst_kernel/logging_config.py)."""

import json
import logging
import sys
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from gst_kernel.domain.enums import BusinessType
from gst_kernel.exceptions import ConfigurationNotFoundError
from gst_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state around each test, then restore the suite's DEBUG setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


def _record(msg: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("gst_kernel.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    def test_base_fields(self):
        payload = json.loads(StructuredFormatter().format(_record("tax_calculation_completed")))
        assert payload["message"] == "tax_calculation_completed"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "gst_kernel.test"
        assert "ts" in payload

    def test_extras_serialized(self):
        rate_id = uuid4()
        payload = json.loads(
            StructuredFormatter().format(
                _record(
                    "rate_created",
                    rate_id=rate_id,
                    rate=Decimal("18.00"),
                    effective_from=date(2024, 7, 1),
                    business_type=BusinessType.B2B,
                )
            )
        )
        assert payload["rate_id"] == str(rate_id)
        assert payload["rate"] == "18.00"
        assert payload["effective_from"] == "2024-07-01"
        assert payload["business_type"] == "B2B"

    def test_exception_fields(self):
        try:
            raise ConfigurationNotFoundError("8471", "B2B", None, date(2024, 6, 15))
        except ConfigurationNotFoundError:
            record = logging.LogRecord(
                "gst_kernel.test", logging.ERROR, __file__, 1, "failed", (), None
            )
            record.exc_info = sys.exc_info()
        payload = json.loads(StructuredFormatter().format(record))
        assert payload["exc_type"] == "ConfigurationNotFoundError"
        assert payload["exc_code"] == "CONFIGURATION_NOT_FOUND"
        assert payload["exc_classification_code"] == "8471"
        assert "traceback" in payload


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    def test_set_and_clear(self):
        LogContext.set(correlation_id="abc", classification_code="8471")
        assert LogContext.get_all() == {"correlation_id": "abc", "classification_code": "8471"}
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_restores_previous_values(self):
        LogContext.set(actor_id="outer")
        with LogContext.bind(actor_id="inner", business_type="B2C", unknown="ignored"):
            assert LogContext.get_all() == {"actor_id": "inner", "business_type": "B2C"}
        assert LogContext.get_all() == {"actor_id": "outer"}

    def test_context_in_output(self):
        handler, stream = _make_handler()
        logger = get_logger("test.context")
        logging.getLogger("gst_kernel").addHandler(handler)
        logging.getLogger("gst_kernel").setLevel(logging.INFO)
        with LogContext.bind(request_id="req-1"):
            logger.info("inside")
        logger.info("outside")
        inside, outside = _parse_all_logs(stream)
        assert inside["request_id"] == "req-1"
        assert "request_id" not in outside


# ---------------------------------------------------------------------------
# Logger factory and configuration
# ---------------------------------------------------------------------------


class TestConfiguration:
    def test_logger_namespace(self):
        assert get_logger("engines.calculation").name == "gst_kernel.engines.calculation"

    def test_configure_is_idempotent(self):
        handler, stream = _make_handler()
        second = logging.NullHandler()
        root = logging.getLogger("gst_kernel")
        configure_logging(level=logging.INFO, handler=handler)
        installed = list(root.handlers)
        configure_logging(level=logging.DEBUG, handler=second)
        assert handler in root.handlers
        assert second not in root.handlers
        assert root.handlers == installed
        assert root.level == logging.INFO
        assert root.propagate is False

        get_logger("test").debug("hidden")
        get_logger("test").info("shown", extra={"hsn_code": "8471"})
        records = _parse_all_logs(stream)
        assert [r["message"] for r in records] == ["shown"]
        assert records[0]["hsn_code"] == "8471"

    def test_reset(self):
        configure_logging(stream=StringIO())
        reset_logging()
        root = logging.getLogger("gst_kernel")
        assert root.handlers == []
        assert root.level == logging.WARNING
