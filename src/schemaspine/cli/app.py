"""
Root Typer application for the schema-spine CLI.

``schemaspine update`` is meant to run once at deploy/startup, before
anything that depends on the schema starts serving; a non-zero exit
means the schema may be incomplete.
"""

from __future__ import annotations

import sys
from datetime import datetime

import typer
from rich.markup import escape
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from schemaspine.cli.utils import (
    build_engine,
    check_connection,
    console,
    fail,
    print_json,
    print_table,
    wait_for_database,
)
from schemaspine.core.declarations import load_catalog
from schemaspine.core.errors import CatalogLoadError, DatabaseError, InvalidConfigError, SchemaSpineError
from schemaspine.core.logging import configure_logging
from schemaspine.core.migrations.ledger import MigrationLedger
from schemaspine.core.migrations.runner import MigrationRunner
from schemaspine.core.orm.session import schema_session_factory
from schemaspine.core.resources import HashStore, ResourceType
from schemaspine.core.schema import SchemaOrchestrator
from schemaspine.core.settings import get_settings

app = typer.Typer(
    name="schemaspine",
    help="schema-spine: keep views, functions and named migrations in line with code.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

_AS_OF_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from schemaspine import __version__

        typer.echo(f"schema-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override SCHEMASPINE_LOG_LEVEL."),
) -> None:
    """schema-spine CLI: update the schema, inspect hashes and migrations."""
    settings = get_settings()
    # Logs go to stderr; stdout carries command output only.
    try:
        configure_logging(
            level=log_level or settings.log_level,
            json_format=settings.log_format == "json",
            stream=sys.stderr,
            cache_loggers=False,
        )
    except InvalidConfigError as exc:
        fail(exc)


def _resolve_catalog(catalog: str | None):
    path = catalog or get_settings().catalog
    if not path:
        raise CatalogLoadError("No catalog given; pass --catalog or set SCHEMASPINE_CATALOG")
    return load_catalog(path)


# ── Commands ─────────────────────────────────────────────────────────────


@app.command()
def update(
    catalog: str | None = typer.Option(None, "--catalog", "-c", help="SchemaCatalog import path, module:attribute"),
    database_url: str | None = typer.Option(None, "--database-url", "-d", help="Override SCHEMASPINE_DATABASE_URL"),
    as_of: datetime | None = typer.Option(None, "--as-of", formats=_AS_OF_FORMATS, help="End of the report window for time-bounded views"),
    force: bool = typer.Option(False, "--force", help="Recreate every view, index and function"),
    retries: int | None = typer.Option(None, "--retries", min=1, help="Connection attempts before giving up"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Bring the database schema in line with the catalog."""
    settings = get_settings()
    try:
        schema_catalog = _resolve_catalog(catalog)
        engine = build_engine(settings, database_url)
        wait_for_database(
            engine,
            attempts=retries or settings.connect_retries,
            base_interval=settings.retry_base_interval,
        )
        result = SchemaOrchestrator(
            engine, schema_catalog, force_update=force or settings.force_update
        ).update_schema(as_of)
    except SchemaSpineError as exc:
        fail(exc)
        return

    if json_out:
        print_json(
            {
                "tables": result.tables,
                "seeded_rows": result.seeded_rows,
                "recreated": dict(result.recreated),
                "unchanged": dict(result.unchanged),
                "migrations_applied": result.migrations.applied,
                "migrations_skipped": result.migrations.skipped,
            }
        )
        return

    rows = [[rtype, name, "recreated"] for rtype, names in result.recreated.items() for name in names]
    rows += [[rtype, name, "unchanged"] for rtype, names in result.unchanged.items() for name in names]
    if rows:
        print_table("Resources", ["Type", "Name", "Action"], rows)
    console.print(
        f"[green]Schema updated[/green]: {len(result.tables)} tables ensured, "
        f"{result.seeded_rows} reference rows written, "
        f"{len(result.migrations.applied)} migrations applied, "
        f"{len(result.migrations.skipped)} already applied."
    )


@app.command()
def status(
    database_url: str | None = typer.Option(None, "--database-url", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show stored schema hashes and applied migrations."""
    settings = get_settings()
    try:
        engine = build_engine(settings, database_url)
        check_connection(engine)
        factory = schema_session_factory(engine)
        inspector = inspect(engine)
        hashes = HashStore(factory).rows() if inspector.has_table("schema_hashes") else []
        applied = MigrationLedger(factory).applied() if inspector.has_table("migrations") else []
    except SQLAlchemyError as exc:
        fail(DatabaseError("Error reading schema status", cause=exc))
        return
    except SchemaSpineError as exc:
        fail(exc)
        return

    if json_out:
        print_json(
            {
                "schema_hashes": [{"type": h.type, "name": h.name, "hash": h.hash} for h in hashes],
                "migrations": [{"name": m.name, "applied_at": m.applied_at} for m in applied],
            }
        )
        return

    print_table("Schema hashes", ["Type", "Name", "Hash"], [[h.type, h.name, h.hash] for h in hashes])
    print_table("Applied migrations", ["Name", "Applied at"], [[m.name, m.applied_at] for m in applied])


@app.command()
def pending(
    catalog: str | None = typer.Option(None, "--catalog", "-c"),
    database_url: str | None = typer.Option(None, "--database-url", "-d"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List catalog migrations not yet applied, in application order."""
    settings = get_settings()
    try:
        schema_catalog = _resolve_catalog(catalog)
        engine = build_engine(settings, database_url)
        check_connection(engine)
        if inspect(engine).has_table("migrations"):
            names = MigrationRunner(schema_session_factory(engine)).pending(schema_catalog.migrations)
        else:
            names = sorted(schema_catalog.migrations)
    except SQLAlchemyError as exc:
        fail(DatabaseError("Error reading migration ledger", cause=exc))
        return
    except SchemaSpineError as exc:
        fail(exc)
        return

    if json_out:
        print_json(names)
        return
    if not names:
        console.print("No pending migrations.")
        return
    for name in names:
        console.print(name)


@app.command()
def forget(
    resource_type: ResourceType = typer.Argument(..., help="materialized-view, materialized-view-index or function"),
    name: str = typer.Argument(..., help="Resource name"),
    database_url: str | None = typer.Option(None, "--database-url", "-d"),
) -> None:
    """Delete a stored hash so the resource is recreated on the next update."""
    settings = get_settings()
    try:
        engine = build_engine(settings, database_url)
        check_connection(engine)
        deleted = HashStore(schema_session_factory(engine)).forget(resource_type, name)
    except SQLAlchemyError as exc:
        fail(DatabaseError(f"Error deleting schema hash for {name}", cause=exc))
        return
    except SchemaSpineError as exc:
        fail(exc)
        return

    if deleted:
        console.print(f"Forgot {resource_type.value} [bold]{escape(name)}[/bold]; it will be recreated on the next update.")
    else:
        console.print(f"No stored hash for {resource_type.value} {name}.")
