"""
ScopeLockService -- per-scope write serialization via locked rows.

Responsibility:
    Serializes "validate overlaps, then insert" for one rule scope so two
    concurrent writers cannot both pass the overlap check and both insert.
    Each scope has one ``gst_scope_locks`` row, locked with
    ``SELECT ... FOR UPDATE`` for the rest of the caller's transaction.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Called by
    ConfigurationService and RateService before they read the scope.

Invariants enforced:
    - The lock is held until the caller commits or rolls back.
    - First use of a scope creates its row inside a savepoint.  A
      concurrent creator loses on the unique scope_key, rolls back the
      savepoint only, and re-acquires the winner's row with the lock.

Failure modes:
    - IntegrityError on concurrent creation (handled, retried once).
    - Deadlock if one transaction locks two scopes in opposite order to
      another.  Services lock exactly one scope per write; supersede locks
      the single scope shared by the old and new row.

Audit relevance:
    ``scope_lock_acquired`` is logged at DEBUG with the scope key and the
    write count.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gst_kernel.domain.enums import BusinessType, GeographicalZone, TaxComponentType
from gst_kernel.logging_config import get_logger
from gst_kernel.models.scope_lock import TaxScopeLock

logger = get_logger("services.scope_lock")


def configuration_scope_key(
    classification_code: str,
    business_type: BusinessType,
    zone: GeographicalZone | None,
) -> str:
    return ":".join(
        ("configuration", classification_code, business_type.value, zone.value if zone else "*")
    )


def rate_scope_key(
    classification_code: str,
    business_type: BusinessType,
    component_type: TaxComponentType,
    zone: GeographicalZone | None,
) -> str:
    return ":".join(
        (
            "rate",
            classification_code,
            business_type.value,
            component_type.value,
            zone.value if zone else "*",
        )
    )


class ScopeLockService:
    """
    Acquires the row lock for a write scope.

    Usage:
        with session.begin():
            ScopeLockService(session).acquire(key)
            # read scope rows, validate, insert
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked(self, scope_key: str) -> TaxScopeLock | None:
        return self._session.execute(
            select(TaxScopeLock)
            .where(TaxScopeLock.scope_key == scope_key)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def acquire(self, scope_key: str) -> int:
        """
        Lock ``scope_key`` and bump its write counter.

        Returns:
            The scope's write count including this write.
        """
        lock = self._locked(scope_key)

        if lock is None:
            savepoint = self._session.begin_nested()
            try:
                lock = TaxScopeLock(scope_key=scope_key, write_count=1)
                self._session.add(lock)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "scope_lock_acquired",
                    extra={"scope_key": scope_key, "write_count": 1, "lock_created": True},
                )
                return 1
            except IntegrityError:
                logger.debug("scope_lock_race_retry", extra={"scope_key": scope_key})
                savepoint.rollback()
                lock = self._session.execute(
                    select(TaxScopeLock)
                    .where(TaxScopeLock.scope_key == scope_key)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one()

        lock.write_count += 1
        self._session.flush()
        logger.debug(
            "scope_lock_acquired",
            extra={"scope_key": scope_key, "write_count": lock.write_count, "lock_created": False},
        )
        return lock.write_count

    def write_count(self, scope_key: str) -> int:
        """Writes recorded for the scope, 0 if it was never written."""
        lock = self._session.execute(
            select(TaxScopeLock).where(TaxScopeLock.scope_key == scope_key)
        ).scalar_one_or_none()
        return lock.write_count if lock else 0
