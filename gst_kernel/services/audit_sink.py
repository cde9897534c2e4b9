"""
AuditSink -- write-only destination for tax rule change events.

Responsibility:
    Receives one ``TaxChange`` per create, expire, deactivate or supersede
    of a rate or configuration.  The write services call ``record()`` after
    the row has been flushed, inside the same transaction.

Architecture position:
    Kernel > Services.  The sink is injected into ConfigurationService and
    RateService; the engine never reads events back.

Implementations:
    NullAuditSink       -- discards events (default).
    InMemoryAuditSink   -- keeps events in a list (tests, tooling).
    DatabaseAuditSink   -- persists ``TaxChangeEvent`` rows in the caller's
                           session, so a rollback discards them with the
                           change they describe.

Audit relevance:
    Payload values are stored as JSON; Decimal, date and UUID values are
    written as strings so the stored event is exact.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from gst_kernel.logging_config import get_logger
from gst_kernel.models.change_event import TaxChangeEvent

logger = get_logger("services.audit_sink")


class ChangeAction(str, Enum):
    CREATED = "created"
    EXPIRED = "expired"
    DEACTIVATED = "deactivated"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class TaxChange:
    """One audited change to a rate or configuration row."""

    entity_type: str
    entity_id: UUID
    action: ChangeAction
    actor_id: UUID
    occurred_at: datetime
    classification_code: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)


def jsonable(value: Any) -> Any:
    """Convert Decimal/date/UUID/Enum values (recursively) to JSON-safe forms."""
    if isinstance(value, dict):
        return {str(k): jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


class AuditSink(ABC):
    """Write-only change event sink."""

    @abstractmethod
    def record(self, change: TaxChange) -> None:
        ...


class NullAuditSink(AuditSink):
    def record(self, change: TaxChange) -> None:
        return None


class InMemoryAuditSink(AuditSink):
    """Collects events in memory, in the order they were recorded."""

    def __init__(self) -> None:
        self.events: list[TaxChange] = []

    def record(self, change: TaxChange) -> None:
        self.events.append(change)

    def actions(self) -> list[tuple[str, ChangeAction]]:
        return [(e.entity_type, e.action) for e in self.events]

    def for_entity(self, entity_id: UUID) -> list[TaxChange]:
        return [e for e in self.events if e.entity_id == entity_id]

    def clear(self) -> None:
        self.events.clear()


class DatabaseAuditSink(AuditSink):
    """Persists each change as an immutable TaxChangeEvent row."""

    def __init__(self, session: Session):
        self._session = session

    def record(self, change: TaxChange) -> None:
        event = TaxChangeEvent(
            entity_type=change.entity_type,
            entity_id=change.entity_id,
            action=change.action.value,
            classification_code=change.classification_code,
            actor_id=change.actor_id,
            occurred_at=change.occurred_at,
            payload=jsonable(change.payload),
        )
        self._session.add(event)
        self._session.flush()
        logger.debug(
            "tax_change_event_recorded",
            extra={
                "event_id": str(event.id),
                "entity_type": change.entity_type,
                "entity_id": str(change.entity_id),
                "action": change.action.value,
            },
        )
