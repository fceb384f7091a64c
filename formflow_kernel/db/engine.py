"""
Engine and session lifecycle for the forms database.

One engine is active per process.  ``init_engine_from_url`` builds it along
with a session factory; ``session_scope`` is the unit of work used by the
seeding script and by callers that do not manage their own sessions.

Backends:
    postgresql  READ COMMITTED.  Draft rewrites and later-stage submissions
                take row locks (SELECT ... FOR UPDATE) in the services.
    sqlite      Local runs and the test suite.  pysqlite's implicit BEGIN is
                replaced by an explicit one so SAVEPOINTs nest correctly, and
                foreign keys are switched on so ON DELETE CASCADE removes the
                stages, sections and fields of a rewritten draft.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import create_engine, event
from sqlalchemy.engine import URL, Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from formflow_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")


@dataclass(frozen=True)
class _Database:
    engine: Engine
    make_session: sessionmaker[Session]


_active: _Database | None = None


def _require() -> _Database:
    if _active is None:
        raise RuntimeError("No database configured; call init_engine_from_url() first.")
    return _active


def _sqlite_engine(url: URL, echo: bool) -> Engine:
    options: dict = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        # Every session must see the same in-memory database.
        options["poolclass"] = StaticPool
    engine = create_engine(url, echo=echo, **options)

    @event.listens_for(engine, "connect")
    def _configure_connection(dbapi_connection, _record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _emit_begin(connection):
        connection.exec_driver_sql("BEGIN")

    return engine


def init_engine_from_url(
    database_url: str,
    *,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
) -> Engine:
    """
    Create the process-wide engine, replacing any previous one.

    ``pool_size`` and ``max_overflow`` only apply to server backends; SQLite
    uses its own pooling.
    """
    global _active

    url = make_url(database_url)
    backend = url.get_backend_name()

    if backend == "sqlite":
        engine = _sqlite_engine(url, echo)
    else:
        engine = create_engine(
            url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            isolation_level="READ COMMITTED",
        )

    if _active is not None:
        _active.engine.dispose()
    _active = _Database(engine, sessionmaker(bind=engine, expire_on_commit=False))

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "backend": backend,
            "database": url.database,
            "pool_size": None if backend == "sqlite" else pool_size,
        },
    )
    return engine


def get_engine() -> Engine:
    return _require().engine


def get_session() -> Session:
    """A new, unmanaged session; the caller commits and closes it."""
    return _require().make_session()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Commit on success, roll back and re-raise on error, always close.

        with session_scope() as session:
            CatalogService(session).register_field_type("email", FieldKind.EMAIL)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _metadata():
    from formflow_kernel.db.base import Base
    import formflow_kernel.models  # noqa: F401  registers the tables

    return Base.metadata


def create_tables() -> None:
    metadata = _metadata()
    metadata.create_all(get_engine())
    logger.info("tables_created", extra={"table_count": len(metadata.tables)})


def drop_tables() -> None:
    """Drop every forms table.  Test-suite use only."""
    _metadata().drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the active engine and forget it."""
    global _active
    if _active is not None:
        _active.engine.dispose()
        _active = None


atexit.register(reset_engine)
