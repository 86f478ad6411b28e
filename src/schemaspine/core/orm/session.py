"""SQLAlchemy engine factory and session factory.

This module provides:

* ``create_schema_engine``    -- Create a SA engine from a URL, with
  slow-statement reporting wired in.
* ``SchemaSession``           -- A pre-configured ``Session`` subclass.
* ``schema_session_factory``  -- ``sessionmaker`` producing ``SchemaSession``.

Tags:
    schema-spine, orm, sqlalchemy, session, engine

Doc-Types:
    api-reference
"""

from __future__ import annotations

import time
from typing import Any

from sqlalchemy import create_engine as _sa_create_engine
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from schemaspine.core.logging import get_logger

logger = get_logger(__name__)

_START_KEY = "schemaspine_query_start"


def create_schema_engine(
    url: str = "sqlite:///schemaspine.db",
    *,
    echo: bool = False,
    slow_query_threshold: float | None = 2.0,
    **kwargs: Any,
) -> Engine:
    """Create a SQLAlchemy engine with sane defaults.

    Parameters
    ----------
    url:
        Database URL (``sqlite:///…``, ``postgresql+psycopg://…``, etc.)
    echo:
        If ``True``, log all SQL through ``sqlalchemy.engine``.
    slow_query_threshold:
        Statements taking longer than this many seconds are logged at
        warning.  ``None`` disables the check.
    **kwargs:
        Extra arguments forwarded to ``sqlalchemy.create_engine``.
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})

    engine = _sa_create_engine(url, echo=echo, **kwargs)

    if url.startswith("sqlite"):

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection: Any, _rec: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    if slow_query_threshold is not None:
        watch_slow_queries(engine, slow_query_threshold)

    return engine


def watch_slow_queries(engine: Engine, threshold: float) -> None:
    """Log statements on *engine* that run longer than *threshold* seconds."""

    @event.listens_for(engine, "before_cursor_execute")
    def _before(conn, cursor, statement, parameters, context, executemany) -> None:
        conn.info.setdefault(_START_KEY, []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def _after(conn, cursor, statement, parameters, context, executemany) -> None:
        starts = conn.info.get(_START_KEY)
        if not starts:
            return
        elapsed = time.perf_counter() - starts.pop()
        if elapsed > threshold:
            logger.warning(
                "sql.slow_statement",
                elapsed_seconds=round(elapsed, 3),
                threshold_seconds=threshold,
                statement=statement[:500],
            )

    @event.listens_for(engine, "handle_error")
    def _on_error(exception_context) -> None:
        conn = exception_context.connection
        if conn is not None and conn.info.get(_START_KEY):
            conn.info[_START_KEY].pop()


class SchemaSession(Session):
    """Pre-configured session with ``expire_on_commit=False``.

    Prevents lazy-load surprises after commit.
    """

    def __init__(self, bind: Engine | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("expire_on_commit", False)
        super().__init__(bind=bind, **kwargs)


def schema_session_factory(engine: Engine) -> sessionmaker[SchemaSession]:
    """Return a ``sessionmaker`` bound to *engine* that produces ``SchemaSession`` instances."""
    # sessionmaker passes its own expire_on_commit=True unless told otherwise.
    return sessionmaker(bind=engine, class_=SchemaSession, expire_on_commit=False)
