"""
Module: vacation_kernel.db.engine
Responsibility: The process-wide SQLAlchemy engine, its session factory and
    the transactional scope every store operation runs in.
Architecture position: Kernel > DB.  May import from db/base.py.  Imports
    models lazily in ``create_tables`` so their tables register.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED; correctness under concurrent
      approvals comes from the version-token conditional UPDATE, not from
      the isolation level.
    - SQLite (tests, demos) is opened with a busy timeout so concurrent
      writers queue instead of failing immediately, and with
      check_same_thread disabled so each worker thread can own a session.
    - Sessions keep loaded attributes after commit (``expire_on_commit``
      off), so DTOs can be built after the scope closes.

Failure modes:
    - RuntimeError from any accessor called before init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from vacation_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Database engine not initialized; call init_engine_from_url() first"


def _engine_options(
    url: URL,
    pool_size: int,
    max_overflow: int,
    pool_pre_ping: bool,
    sqlite_busy_timeout: float,
) -> dict[str, Any]:
    if url.get_backend_name() == "sqlite":
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": sqlite_busy_timeout,
            },
        }
    return {
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": pool_pre_ping,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    sqlite_busy_timeout: float = 30.0,
) -> Engine:
    """
    Create the engine and session factory for ``database_url``.

    Replaces any previously initialized engine (the old one is disposed).

    Args:
        database_url: SQLAlchemy URL (postgresql://... or sqlite:///...).
        echo: Log every SQL statement.
        pool_size, max_overflow, pool_pre_ping: Pool settings, ignored
            for SQLite.
        sqlite_busy_timeout: Seconds a SQLite writer waits for the lock.
    """
    global _engine, _session_factory

    url = make_url(database_url)
    options = _engine_options(url, pool_size, max_overflow, pool_pre_ping, sqlite_busy_timeout)

    reset_engine()
    _engine = create_engine(url, echo=echo, **options)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": url.get_backend_name(),
            "database": url.database,
            "echo": echo,
        },
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """
    Factory the stores open their per-operation sessions from.

    Raises:
        RuntimeError: If the engine has not been initialized.
    """
    if _session_factory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _session_factory


@contextmanager
def session_scope(
    factory: Callable[[], Session] | None = None,
) -> Iterator[Session]:
    """
    One transaction: commit on normal exit, roll back and re-raise on error.

    The session is always closed on exit.
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.debug("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every table the kernel defines (idempotent)."""
    from vacation_kernel.db.base import Base
    import vacation_kernel.models  # noqa: F401
    import vacation_kernel.services.sequence_service  # noqa: F401

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


atexit.register(reset_engine)
