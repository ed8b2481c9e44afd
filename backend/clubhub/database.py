"""Database engine lifecycle and session helpers.

The engine is process-wide state owned by this module: `init_db` builds it
and creates tables on application startup, `dispose_db` releases pooled
connections on shutdown. Request handlers obtain sessions through
`get_session` rather than importing an engine directly.

SQLite connections are switched to explicit transaction control and every
transaction starts with ``BEGIN IMMEDIATE``. That takes the database write
lock up front, so two transactions touching the same follow edge run one
after the other instead of both reading "no edge" and racing to insert.
Waiting writers block for up to ``DB_LOCK_TIMEOUT_SECONDS`` before SQLite
reports ``database is locked``, which the services treat as a retryable
conflict.
"""

import logging
from typing import Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from . import models  # noqa: F401  (registers tables on SQLModel.metadata)
from .config import settings

logger = logging.getLogger("clubhub.db")

_engine: Optional[Engine] = None


def _install_sqlite_transaction_hooks(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # let SQLAlchemy emit BEGIN itself instead of pysqlite's implicit one
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str) -> Engine:
    """Create an engine for `url`, applying SQLite locking behaviour when needed."""
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=False,
            connect_args={"check_same_thread": False, "timeout": settings.DB_LOCK_TIMEOUT_SECONDS},
        )
        _install_sqlite_transaction_hooks(engine)
        return engine
    return create_engine(url, echo=False, pool_pre_ping=True)


def init_db(url: Optional[str] = None) -> Engine:
    """Build the process-wide engine (once) and create missing tables.

    Production deployments should manage schema changes with a proper
    migration tool; `create_all` only adds tables that do not exist yet.
    """
    global _engine
    if _engine is None:
        _engine = build_engine(url or settings.DATABASE_URL)
        logger.info("database engine created for %s", _engine.url.render_as_string(hide_password=True))
    SQLModel.metadata.create_all(_engine)
    return _engine


def get_engine() -> Engine:
    """Return the live engine; `init_db` must have been called first."""
    if _engine is None:
        raise RuntimeError("database not initialised; call init_db() first")
    return _engine


def dispose_db() -> None:
    """Close pooled connections and forget the engine (application shutdown)."""
    global _engine
    if _engine is not None:
        _engine.dispose()
        logger.info("database engine disposed")
    _engine = None


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes.
    """
    with Session(get_engine()) as session:
        yield session
