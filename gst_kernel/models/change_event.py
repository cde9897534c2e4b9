"""
Module: gst_kernel.models.change_event
Responsibility: Persisted audit trail of tax rule changes (who changed what,
    when).  Written only through DatabaseAuditSink.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Rows are immutable from creation (db/immutability.py).

Audit relevance:
    Every create, expire, deactivate and supersede of a rate or
    configuration produces one row carrying the entity id, the actor and
    the relevant before/after values.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from gst_kernel.db.base import Base, UUIDString


class TaxChangeEvent(Base):
    """One audited change to a tax rule row."""

    __tablename__ = "gst_tax_change_events"

    __table_args__ = (
        Index("idx_tax_change_entity", "entity_type", "entity_id"),
        Index("idx_tax_change_occurred", "occurred_at"),
    )

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # created / expired / deactivated / superseded
    action: Mapped[str] = mapped_column(String(30), nullable=False)

    classification_code: Mapped[str | None] = mapped_column(String(8), nullable=True)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    payload: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    def __repr__(self) -> str:
        return f"<TaxChangeEvent {self.action} {self.entity_type} {self.entity_id}>"
