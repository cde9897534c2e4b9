"""
Module: gst_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.  Selectors
    are the read side of the rule store: catalog lookups, rule resolution and
    administrative queries.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors MUST NOT call session.add(), session.delete(),
      session.commit(), or session.flush().  Resolution takes no locks.
    - DTO return convention: selectors return frozen dataclasses, never ORM rows.
    - Session ownership: the caller owns the session and its transaction.

Failure modes:
    - Typed NotFound errors raised by subclasses when nothing matches.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from gst_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.
    """

    def __init__(self, session: Session):
        self.session = session
