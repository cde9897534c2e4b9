"""
Module: gst_kernel.db.engine
Responsibility: One process-wide SQLAlchemy engine and session factory for
    the tax tables, plus the commit-or-rollback unit of work callers wrap
    writes in.
Architecture position: Kernel > DB.  May import from db/base.py and, inside
    create_tables/drop_tables only, the model registry.

Backends:
    - PostgreSQL (production): pooled connections at READ COMMITTED.  Rule
      writes serialize per scope through SELECT ... FOR UPDATE on the
      scope lock row, so nothing stronger than READ COMMITTED is needed.
    - SQLite (tests, seeding, local tooling): no pool tuning.  An in-memory
      database is pinned to a single shared connection so every session
      sees the same tables.

Failure modes:
    - RuntimeError from any accessor used before init_engine_from_url().
    - sqlalchemy TimeoutError when every pooled connection is checked out
      for longer than pool_timeout.

Audit relevance:
    session_scope() commits or rolls back as a whole, so a supersede
    (expire the old version, insert the new one, record both audit events)
    is never half applied.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from gst_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Tax database not initialized. Call init_engine_from_url() first."


def _sqlite_options(url: URL, echo: bool) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": echo}
    if url.database in (None, "", ":memory:"):
        options["poolclass"] = StaticPool
        options["connect_args"] = {"check_same_thread": False}
    return options


def _postgres_options(
    echo: bool,
    pool_size: int,
    max_overflow: int,
    pool_pre_ping: bool,
    pool_timeout: int,
    pool_recycle: int,
) -> dict[str, Any]:
    return {
        "echo": echo,
        "poolclass": QueuePool,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": pool_pre_ping,
        "pool_timeout": pool_timeout,
        "pool_recycle": pool_recycle,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine and session factory, replacing any previous pair.

    Pool arguments only apply to server backends; SQLite ignores them.
    Sessions are created with ``expire_on_commit=False`` so resolved rule
    rows stay readable after the unit of work closes.
    """
    global _engine, _SessionFactory

    url = make_url(database_url)
    backend = url.get_backend_name()

    if backend == "sqlite":
        engine = create_engine(url, **_sqlite_options(url, echo))
        _let_sqlalchemy_begin(engine)
    else:
        engine = create_engine(
            url,
            **_postgres_options(
                echo, pool_size, max_overflow, pool_pre_ping, pool_timeout, pool_recycle
            ),
        )

    _engine = engine
    _SessionFactory = sessionmaker(bind=engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": backend,
            "database": url.database,
            "pool_size": None if backend == "sqlite" else pool_size,
            "echo": echo,
        },
    )
    return engine


def _let_sqlalchemy_begin(engine: Engine) -> None:
    """
    Emit BEGIN ourselves on pysqlite connections.

    The driver defers BEGIN until the first DML statement; a SAVEPOINT sent
    before that opens an implicit transaction of its own and rolling the
    savepoint back no longer works (scope lock creation, test isolation).
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """The session factory.  Concurrent writers take one session per thread."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Unit of work: commit on clean exit, roll back and re-raise otherwise.

    Usage:
        with session_scope() as session:
            TaxEngine(session).create_configuration(draft, actor_id)
    """
    session = get_session_factory()()
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _tax_metadata():
    from gst_kernel.db.base import Base
    import gst_kernel.models  # noqa: F401  registers every gst_* table

    return Base.metadata


def create_tables() -> None:
    """Create every gst_* table that does not exist yet."""
    metadata = _tax_metadata()
    metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(metadata.tables)})


def drop_tables() -> None:
    """Drop every gst_* table.  Test and tooling use only."""
    _tax_metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
