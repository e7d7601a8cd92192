"""
Module: approval_kernel.db.engine
Responsibility: Owns the process-wide SQLAlchemy engine and session factory,
    and the ``session_scope()`` commit boundary used by callers of the
    approval services.
Architecture position: Kernel > DB.  May import from db/base.py.
    create_tables/drop_tables import models so Base.metadata is complete.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED behind a pre-pinged QueuePool.
    - SQLite connections open their transactions with BEGIN IMMEDIATE and
      wait on a busy timeout, so concurrent approvers queue on the write
      lock instead of failing with "database is locked".
    - Services flush, session_scope() commits.  A rejection and its SKIPPED
      cascade therefore land together or not at all.

Failure modes:
    - RuntimeError from any accessor called before init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from approval_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."


def _sqlite_engine(url: str, echo: bool, busy_timeout: int) -> Engine:
    engine = create_engine(
        url,
        echo=echo,
        connect_args={"timeout": busy_timeout, "check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # hand transaction control to the "begin" hook below
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def _server_engine(url: str, echo: bool, pool: dict[str, Any]) -> Engine:
    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        isolation_level="READ COMMITTED",
        **pool,
    )


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    sqlite_busy_timeout: int = 30,
) -> Engine:
    """
    Create the engine for ``database_url`` and a session factory bound to it.

    Pool arguments only apply to server backends; ``sqlite_busy_timeout``
    only applies to SQLite.  Calling this again replaces the previous
    engine without disposing it, use reset_engine() for that.
    """
    global _engine, _SessionFactory

    backend = make_url(database_url).get_backend_name()
    if backend == "sqlite":
        _engine = _sqlite_engine(database_url, echo, sqlite_busy_timeout)
    else:
        _engine = _server_engine(
            database_url,
            echo,
            {
                "pool_size": pool_size,
                "max_overflow": max_overflow,
                "pool_pre_ping": pool_pre_ping,
                "pool_timeout": pool_timeout,
                "pool_recycle": pool_recycle,
            },
        )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": backend, "echo": echo})
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory for callers that need one session per thread."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Commit on normal exit, roll back and re-raise on error, always close.

    Usage::

        with session_scope() as session:
            ApprovalWorkflowService(session).approve(tenant_id, step_id, actor_id)
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


def _metadata():
    from approval_kernel.db.base import Base
    import approval_kernel.models  # noqa: F401  registers every table

    return Base.metadata


def create_tables() -> None:
    _metadata().create_all(get_engine())


def drop_tables() -> None:
    """Drop every approval table. Tests and local resets only."""
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_at_exit() -> None:
    if _engine is not None:
        _engine.dispose()
