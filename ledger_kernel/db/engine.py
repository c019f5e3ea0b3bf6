"""
Module: ledger_kernel.db.engine
Responsibility: The process-wide engine and session factory, plus the
    ``session_scope()`` transaction boundary every caller wraps ledger
    operations in.
Architecture position: Kernel > DB.  May import from db/base.py (and the
    models package when creating tables).  MUST NOT import from services/,
    selectors/, domain/, or outer layers.
Invariants enforced:
    - PostgreSQL runs at READ COMMITTED and the posting engine takes
      SELECT ... FOR UPDATE row locks on entries.  SQLite (tests, local
      tooling) has its driver-level transaction handling disabled so
      SQLAlchemy's BEGIN / SAVEPOINT nest correctly.
    - Services flush only; ``session_scope()`` commits or rolls back.
    - Reports read one snapshot: ``report_session_scope()`` opens its
      transaction at REPEATABLE READ on PostgreSQL.  On SQLite the explicit
      BEGIN keeps every read of a transaction on the same database state.
Failure modes:
    - RuntimeError from get_engine / get_session / get_session_factory
      before init_engine_from_url().
Audit relevance:
    A post, void, reversal or reconcile and its audit record commit in the
    same transaction or not at all.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledger_kernel.logging_config import get_logger

logger = get_logger("db.engine")


@dataclass
class _EngineState:
    engine: Engine | None = None
    factory: sessionmaker[Session] | None = None


_state = _EngineState()

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."


def _use_explicit_begin(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def _engine_options(url: URL, pool_size: int, max_overflow: int) -> dict[str, Any]:
    if url.get_backend_name() == "sqlite":
        options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            # A second connection would open a second, empty database
            options["poolclass"] = StaticPool
        return options
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
) -> Engine:
    """
    Create the engine and session factory for ``database_url``.

    A second call replaces the first.  ``pool_size`` and ``max_overflow``
    only apply to server databases.
    """
    url = make_url(database_url)
    engine = create_engine(
        url, echo=echo, **_engine_options(url, pool_size, max_overflow)
    )
    if url.get_backend_name() == "sqlite":
        _use_explicit_begin(engine)

    _state.engine = engine
    _state.factory = sessionmaker(bind=engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={"dialect": url.get_backend_name(), "echo": echo},
    )
    return engine


def get_engine() -> Engine:
    if _state.engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _state.engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory for callers that open one session per thread."""
    if _state.factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _state.factory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Commit on normal exit, roll back and re-raise on any exception.

    Usage:
        with session_scope() as session:
            ledger = build_ledger(settings, session)
            ledger.posting.post_entry(org_id, entry_id, actor_id)
    """
    session = get_session()
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


SNAPSHOT_ISOLATION = "REPEATABLE READ"

# Levels at which every SELECT of a transaction sees the same data
SNAPSHOT_LEVELS = frozenset({"REPEATABLE READ", "SERIALIZABLE"})


def begin_snapshot(session: Session) -> str | None:
    """
    Start ``session``'s transaction at REPEATABLE READ on PostgreSQL.

    Returns the isolation level the transaction runs at, or None on SQLite,
    where reads inside one transaction are consistent already.  A
    transaction that is already open keeps the level it was started with.
    """
    options = None
    if not session.in_transaction() and session.get_bind().dialect.name == "postgresql":
        options = {"isolation_level": SNAPSHOT_ISOLATION}
    connection = session.connection(execution_options=options)
    if connection.dialect.name != "postgresql":
        return None
    return connection.get_isolation_level()


@contextmanager
def report_session_scope() -> Iterator[Session]:
    """
    Read-only session whose reads share one snapshot.  Always rolled back.

    Usage:
        with report_session_scope() as session:
            report = ReportingService(session).generate_balance_sheet(org_id, as_of)
    """
    session = get_session()
    try:
        begin_snapshot(session)
        yield session
    finally:
        session.rollback()
        session.close()


def create_tables() -> None:
    from ledger_kernel.db.base import Base
    import ledger_kernel.models  # noqa: F401  registers every table

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop every ledger table.  Tests against a server database only."""
    from ledger_kernel.db.base import Base
    import ledger_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    if _state.engine is not None:
        _state.engine.dispose()
    _state.engine = None
    _state.factory = None


def is_postgres() -> bool:
    return _state.engine is not None and _state.engine.dialect.name == "postgresql"


@atexit.register
def _dispose_on_exit() -> None:
    if _state.engine is None:
        return
    try:
        _state.engine.dispose()
    except SQLAlchemyError:
        logger.warning("engine_dispose_failed", exc_info=True)
