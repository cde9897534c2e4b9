"""
Module: gst_kernel.db.base
Responsibility: Declarative bases for the gst_* ORM models.  Fixes the
    primary key convention, the Python-type-to-column mapping, and the
    publisher/timestamp columns carried by every rule table.
Architecture position: Kernel > DB.  Imported by every model file; imports
    nothing else from the package.

Invariants enforced:
    - Primary keys are uuid4 values stored as 36-character strings, so ids
      quoted in overlap and not-found diagnostics read the same on SQLite
      and PostgreSQL.
    - Every Decimal column is Numeric(38, 9).  A 0.125% rate or a 1.5
      rupee per-unit cess round-trips exactly; float never reaches a rate
      or amount column.
    - Effective windows are calendar days (Date), audit instants are
      timezone-aware (DateTime(timezone=True)).

Audit relevance:
    TrackedBase.created_by_id is the actor who published a rule version.
    Expiry and deactivation are the only updates an append-only row
    accepts; they stamp updated_by_id (see db/immutability.py).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """uuid.UUID in Python, String(36) in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    """Root of every gst_* model; supplies ``id`` and the column type map."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        date: Date,
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Publisher and timestamp columns for rule tables.

    created_at is set by the database on insert.  updated_at moves on every
    UPDATE, which for append-only rows means an expiry or a deactivation.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )
    created_by_id: Mapped[PyUUID] = mapped_column()
    updated_by_id: Mapped[PyUUID | None] = mapped_column()


UUID = PyUUID
