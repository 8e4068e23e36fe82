"""
Engine and session management.

One process-wide engine, built by init_engine_from_url(), and two session
factories on top of it:

    ordinary       READ COMMITTED on PostgreSQL; drafts, reads, provisioning
    serializable   SERIALIZABLE on PostgreSQL; voucher posting only

SQLite has no isolation levels to choose from.  Instead every transaction
opens with ``BEGIN IMMEDIATE``, which takes the write lock up front, so the
two factories are the same there.  Foreign keys are switched on for each
new SQLite connection.
"""

import atexit
from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from ledger_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None
_SerializableSessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."


def _sqlite_engine(url: str, echo: bool, pool: dict[str, Any], busy_timeout: float) -> Engine:
    connect_args = {"timeout": busy_timeout, "check_same_thread": False}
    if ":memory:" in url or url.rstrip("/") == "sqlite:":
        # One shared connection, otherwise each checkout sees an empty database
        engine = create_engine(url, echo=echo, poolclass=StaticPool, connect_args=connect_args)
    else:
        engine = create_engine(
            url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool["pool_size"],
            max_overflow=pool["max_overflow"],
            pool_timeout=pool["pool_timeout"],
            connect_args=connect_args,
        )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # pysqlite must not issue its own BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def _postgres_engine(url: str, echo: bool, pool: dict[str, Any]) -> Engine:
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
    sqlite_busy_timeout: float = 30.0,
) -> Engine:
    """
    Build the engine and both session factories for ``database_url``.

    Calling it again replaces the previous engine without disposing it;
    use reset_engine() first when that matters.  ``pool_pre_ping`` and
    ``pool_recycle`` only apply to PostgreSQL.  ``sqlite_busy_timeout`` is
    how long a SQLite writer waits for the database lock.
    """
    global _engine, _SessionFactory, _SerializableSessionFactory

    pool = {"pool_size": pool_size, "max_overflow": max_overflow, "pool_timeout": pool_timeout}
    if database_url.startswith("sqlite"):
        engine = _sqlite_engine(database_url, echo, pool, sqlite_busy_timeout)
        posting_bind = engine
    else:
        pool.update(pool_pre_ping=pool_pre_ping, pool_recycle=pool_recycle)
        engine = _postgres_engine(database_url, echo, pool)
        posting_bind = engine.execution_options(isolation_level="SERIALIZABLE")

    _engine = engine
    _SessionFactory = sessionmaker(bind=engine, expire_on_commit=False)
    _SerializableSessionFactory = sessionmaker(bind=posting_bind, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": engine.dialect.name, "pool_size": pool_size, "echo": echo},
    )
    return engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_serializable_session_factory() -> sessionmaker[Session]:
    """Factory for posting transactions (the ordinary one on SQLite)."""
    if _SerializableSessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SerializableSessionFactory


def get_session() -> Session:
    """A new session from the ordinary factory.  The caller closes it."""
    return get_session_factory()()


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    Run a block as one transaction: commit if it returns, roll back if it
    raises (and re-raise).  The session is closed either way.

        with session_scope() as session:
            session.add(voucher)
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """CREATE every ledger table that does not exist yet."""
    from ledger_kernel.db.base import Base
    import ledger_kernel.models  # noqa: F401  registers the mappers

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    from ledger_kernel.db.base import Base
    import ledger_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def is_postgres() -> bool:
    return _engine is not None and _engine.dialect.name == "postgresql"


def reset_engine() -> None:
    """Dispose the engine and forget both factories."""
    global _engine, _SessionFactory, _SerializableSessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
    _SerializableSessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
