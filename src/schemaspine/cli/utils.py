"""
CLI utility helpers: engine construction, connection waits and output.
"""

from __future__ import annotations

import json
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError

from schemaspine.core.errors import DatabaseConnectionError, SchemaSpineError
from schemaspine.core.logging import configure_sql_logging
from schemaspine.core.orm.session import create_schema_engine
from schemaspine.core.settings import SchemaSpineSettings
from schemaspine.execution.rate_limit import AdaptiveRateLimiter
from schemaspine.execution.retry import retry_paced

console = Console()
err_console = Console(stderr=True)


# ── Engine helpers ───────────────────────────────────────────────────────


def build_engine(settings: SchemaSpineSettings, database_url: str | None = None) -> Engine:
    """Create the engine described by *settings* (URL overridable)."""
    configure_sql_logging(settings.sql_log_level)
    return create_schema_engine(
        database_url or settings.database_url,
        echo=settings.database_echo,
        slow_query_threshold=settings.slow_query_threshold,
    )


def check_connection(engine: Engine) -> None:
    """Open and close one connection.

    Raises:
        DatabaseConnectionError: If the database cannot be reached.
    """
    try:
        with engine.connect():
            pass
    except OperationalError as exc:
        raise DatabaseConnectionError(
            f"Cannot connect to {engine.url.render_as_string(hide_password=True)}", cause=exc
        ) from exc


def wait_for_database(engine: Engine, *, attempts: int, base_interval: float) -> None:
    """Check the connection, retrying with adaptive pacing."""
    with AdaptiveRateLimiter(base_interval) as limiter:
        retry_paced(lambda: check_connection(engine), limiter, attempts=attempts)


# ── Output helpers ───────────────────────────────────────────────────────


def fail(error: SchemaSpineError) -> None:
    """Print *error* and exit with status 1."""
    err_console.print(f"[bold red]Error[/bold red] ({type(error).__name__}): {escape(error.message)}")
    if error.cause is not None:
        err_console.print(f"  caused by: {escape(str(error.cause))}")
    raise typer.Exit(code=1)


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def print_table(title: str, columns: list[str], rows: list[list[Any]]) -> None:
    table = Table(title=title)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*(escape(str(value)) for value in row))
    console.print(table)
