"""
Module: gst_kernel.models.scope_lock
Responsibility: One row per write scope, locked with SELECT ... FOR UPDATE
    to serialize overlap-validation-then-insert for that scope.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - scope_key is unique, so concurrent first writers race on INSERT and
      exactly one wins (the loser retries the locked SELECT).

Failure modes:
    - IntegrityError on concurrent creation (handled by ScopeLockService).
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from gst_kernel.db.base import Base


class TaxScopeLock(Base):
    """
    Lock row for a (kind, code, business type, [component], zone) scope.

    ``write_count`` is bumped on every locked write so the row is always
    part of the writing transaction.
    """

    __tablename__ = "gst_scope_locks"

    scope_key: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)

    write_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<TaxScopeLock {self.scope_key} writes={self.write_count}>"
