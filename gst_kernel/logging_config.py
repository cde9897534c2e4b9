"""
Structured JSON logging for the GST kernel.

Every logger lives under the ``gst_kernel`` namespace and emits one JSON
object per line.  Fields passed through ``extra=`` become top-level keys,
and the fields bound on ``LogContext`` (the code being resolved, the actor
publishing a rule) are stamped onto every record emitted while bound.

Kernel errors carry their scope as attributes (classification_code,
business_type, as_of, line_index); the formatter copies those into
``exc_*`` keys so a failed resolution can be filtered without parsing the
message text.
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator
from uuid import UUID

NAMESPACE = "gst_kernel"


class LogContext:
    """
    Request-scoped log fields, safe across threads and asyncio tasks.

    Only the names in ``FIELDS`` are accepted; anything else passed to
    ``set`` or ``bind`` is ignored.
    """

    FIELDS: tuple[str, ...] = (
        "correlation_id",
        "request_id",
        "actor_id",
        "classification_code",
        "business_type",
        "trace_id",
    )

    _fields: ContextVar[dict[str, str]] = ContextVar("gst_log_context", default={})

    @classmethod
    def _merged(cls, values: dict[str, Any]) -> dict[str, str]:
        merged = dict(cls._fields.get())
        for name, value in values.items():
            if name in cls.FIELDS and value is not None:
                merged[name] = _text(value)
        return merged

    @classmethod
    def set(cls, **values: Any) -> None:
        """Overwrite the given fields; None leaves a field untouched."""
        cls._fields.set(cls._merged(values))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(cls._fields.get())

    @classmethod
    def clear(cls) -> None:
        cls._fields.set({})

    @classmethod
    @contextmanager
    def bind(cls, **values: Any) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block, then restore."""
        token = cls._fields.set(cls._merged(values))
        try:
            yield cls
        finally:
            cls._fields.reset(token)


def _text(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

# Attributes every LogRecord carries; anything else arrived through extra=.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}

_ERROR_ATTRS_SKIPPED = frozenset({"args", "code", "errors"})


def _jsonable(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (tuple, set, frozenset)):
        return list(value)
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Render a record as one JSON line: base fields, context, extras, error."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._error_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_jsonable)

    @staticmethod
    def _error_fields(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for name, value in vars(exc).items():
            if not name.startswith("_") and name not in _ERROR_ATTRS_SKIPPED:
                fields[f"exc_{name}"] = value
        return fields


def get_logger(name: str) -> logging.Logger:
    """``get_logger("engines.calculation")`` -> ``gst_kernel.engines.calculation``."""
    return logging.getLogger(f"{NAMESPACE}.{name}")


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_state_lock = threading.Lock()
_handler_installed = False


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Install one JSON handler on the ``gst_kernel`` logger.

    Only the first call since the last ``reset_logging`` has any effect,
    so engine initialization can call this unconditionally without
    overriding what the host application configured first.
    """
    global _handler_installed
    with _state_lock:
        if _handler_installed:
            return
        _handler_installed = True

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    namespace_logger = logging.getLogger(NAMESPACE)
    namespace_logger.setLevel(level)
    namespace_logger.propagate = False
    namespace_logger.addHandler(handler)


def reset_logging() -> None:
    """Remove the installed handler so the next configure_logging applies. Tests only."""
    global _handler_installed
    with _state_lock:
        _handler_installed = False
    namespace_logger = logging.getLogger(NAMESPACE)
    namespace_logger.handlers.clear()
    namespace_logger.setLevel(logging.WARNING)
