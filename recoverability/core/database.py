"""SQLAlchemy engine and session management for the snapshot history table.

Features:
- One engine per database URL, created on demand
- Query performance monitoring and slow query logging
- SQLite pragmas for durable append-only writes
"""

import logging
import time
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from recoverability.core.config import get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()

_engines: dict[str, Engine] = {}


def _attach_query_monitoring(engine: Engine, slow_query_threshold_ms: float, log_queries: bool) -> None:
    """Register timing listeners on an engine."""

    @event.listens_for(engine, "before_cursor_execute")
    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start_time = conn.info["query_start_time"].pop()
        total_time = (time.perf_counter() - start_time) * 1000

        if total_time > slow_query_threshold_ms:
            logger.warning(f"Slow query detected ({total_time:.2f}ms): {statement[:200]}...")

        if log_queries:
            logger.debug(f"Query executed in {total_time:.2f}ms: {statement[:100]}...")


def _attach_sqlite_pragmas(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Set SQLite pragmas for performance."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()


def get_engine(database_url: str) -> Engine:
    """Get (or create) the engine for a database URL."""
    if database_url in _engines:
        return _engines[database_url]

    settings = get_settings()
    engine_args: dict[str, Any] = {"echo": settings.debug and settings.enable_query_logging}

    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        engine_args["connect_args"] = {"check_same_thread": False}
        db_path = database_url.replace("sqlite:///", "")
        if db_path and ":memory:" not in database_url:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    else:
        engine_args.update({
            "pool_pre_ping": True,
            "pool_recycle": 3600,
        })

    engine = create_engine(database_url, **engine_args)
    _attach_query_monitoring(
        engine,
        settings.slow_query_threshold_ms,
        settings.debug and settings.enable_query_logging,
    )
    if is_sqlite and ":memory:" not in database_url:
        _attach_sqlite_pragmas(engine)

    _engines[database_url] = engine
    return engine


def get_session_factory(database_url: str) -> sessionmaker:
    """Create a session factory bound to the engine for a URL."""
    return sessionmaker(autocommit=False, autoflush=False, bind=get_engine(database_url))


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Context manager committing on success and rolling back on error."""
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(database_url: str) -> None:
    """Create the snapshot tables and indexes for a database URL."""
    # Import models to register them with Base
    from recoverability import models  # noqa: F401

    engine = get_engine(database_url)
    Base.metadata.create_all(bind=engine)


def dispose_engines() -> None:
    """Dispose every cached engine."""
    for engine in _engines.values():
        engine.dispose()
    _engines.clear()
