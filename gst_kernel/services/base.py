"""
BaseService -- abstract base for all kernel write services.

Responsibility:
    Common constructor and session contract.  Concrete services receive a
    SQLAlchemy ``Session`` and persist with ``session.flush()``, never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Transaction boundaries belong to the caller.  A create, expire or
      supersede becomes visible only when the caller commits, and a
      rollback discards all of it, scope lock increments included.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from gst_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Non-goals:
        - Does NOT manage commit/rollback.
        - Does NOT provide read queries; those live in selectors/.
    """

    def __init__(self, session: Session):
        self.session = session
