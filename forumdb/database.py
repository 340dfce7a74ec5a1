import logging
import time
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings

query_logger = logging.getLogger("forumdb.query")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE rules unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    conn.info.setdefault("forumdb_query_start", []).append(time.perf_counter())


def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    started = conn.info["forumdb_query_start"].pop()
    if query_logger.isEnabledFor(logging.INFO):
        elapsed_ms = (time.perf_counter() - started) * 1000
        query_logger.info(f"{statement} -- params={parameters!r} duration={elapsed_ms:.2f}ms")


def make_engine(database_url: Optional[str] = None, *, echo: bool = False) -> Engine:
    """Create an Engine with forum defaults.

    SQLite connections get foreign-key enforcement; an in-memory SQLite URL
    shares one connection so every session sees the same database. Every
    engine reports executed statements to the ``forumdb.query`` logger.
    """
    database_url = database_url or settings.DATABASE_URL
    if not database_url:
        raise RuntimeError("DATABASE_URL not set")

    kwargs = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True

    engine = create_engine(database_url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    event.listen(engine, "before_cursor_execute", _before_cursor_execute)
    event.listen(engine, "after_cursor_execute", _after_cursor_execute)
    return engine


# Create database engine
engine = make_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# Create SessionLocal class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()
