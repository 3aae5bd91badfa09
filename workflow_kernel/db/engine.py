"""
Module: workflow_kernel.db.engine
Responsibility: SQLAlchemy engine construction, session factories and
    transactional scope.  This is the single point of database connection
    configuration for the kernel.
Architecture position: Kernel > DB.  May import from db/base.py.
    MUST NOT import from services/ or domain/ at module level
    (create_tables imports models lazily so that Base.metadata is
    populated).

Invariants enforced:
    - Every ledger operation runs inside session_scope(): commit on success,
      rollback on any exception.  No partial writes are ever visible.
    - SQLite engines (tests, local development) share one connection through
      StaticPool and enforce foreign keys; server databases (PostgreSQL) use
      a pre-pinged QueuePool.

Failure modes:
    - Connection pool exhaustion if pool_size + max_overflow is exceeded.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from workflow_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create an engine for ``database_url``.

    Args:
        database_url: Any SQLAlchemy URL.  ``sqlite://`` gives a private
            in-memory database.
        echo: If True, log all SQL statements.
        pool_size: Number of connections to keep in the pool (server DBs).
        max_overflow: Max connections beyond pool_size (server DBs).
        pool_pre_ping: If True, test connections before use.
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.

    Returns:
        SQLAlchemy Engine instance.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
        )

    logger.info(
        "engine_initialized",
        extra={"dialect": engine.dialect.name, "echo": echo},
    )
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory for ``engine``.  Loaded rows stay usable after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


@contextmanager
def session_scope(
    session_factory: sessionmaker[Session],
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed.  The exception
        is re-raised to the caller.

    Usage:
        with session_scope(factory) as session:
            session.add(entity)
            # Commits on successful exit, rolls back on exception
    """
    session = session_factory()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.debug("transaction_rolled_back")
        raise
    finally:
        session.close()


def create_tables(engine: Engine) -> None:
    """
    Create all ledger tables and seed the well-known sequence counters.
    """
    from workflow_kernel.db.base import Base
    import workflow_kernel.models  # noqa: F401  (populates Base.metadata)
    from workflow_kernel.services.sequence_service import SequenceService

    Base.metadata.create_all(engine)

    with session_scope(create_session_factory(engine)) as session:
        SequenceService(session).initialize_sequences()
