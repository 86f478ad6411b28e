"""
Schema orchestration: bring a database in line with a ``SchemaCatalog``.

Manifesto:
    A process must not serve traffic against a half-updated schema.
    ``update_schema`` runs once at startup, in a fixed order, and stops
    at the first failure so the caller can refuse to start.

Architecture:
    ::

        update_schema(as_of)
          1. tables      create-if-missing: schema_hashes, migrations, catalog tables
          2. seed        idempotent upsert of static reference rows
          3. resources   views ─▶ view indexes ─▶ functions   (ResourceSynchronizer)
          4. migrations  sorted by name, each in its own transaction (MigrationRunner)

    A view index is force-recreated whenever its view was recreated in
    the same pass, since dropping a materialized view drops its indexes.

Guardrails:
    Not safe to run from several processes at once against the same
    database. The unique ledger constraint turns a migration race into
    a failed insert, but two processes may both rebuild the same view.
    Wrap the call in an external advisory lock if that can happen.

Tags:
    schema-spine, orchestration, startup, migrations, materialized-view

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from schemaspine.core.declarations import SchemaCatalog
from schemaspine.core.dialect import get_dialect
from schemaspine.core.errors import SchemaSetupError
from schemaspine.core.logging import LogContext, get_logger
from schemaspine.core.migrations.runner import MigrationResult, MigrationRunner
from schemaspine.core.orm.base import SchemaSpineBase
from schemaspine.core.orm.session import schema_session_factory
from schemaspine.core.resources import Resource, ResourceSynchronizer
from schemaspine.core.seed import seed_reference_data

logger = get_logger(__name__)


@dataclass
class SchemaUpdateResult:
    """What one ``update_schema`` call did."""

    tables: list[str] = field(default_factory=list)
    seeded_rows: int = 0
    recreated: dict[str, list[str]] = field(default_factory=lambda: defaultdict(list))
    unchanged: dict[str, list[str]] = field(default_factory=lambda: defaultdict(list))
    migrations: MigrationResult = field(default_factory=MigrationResult)

    @property
    def changed(self) -> bool:
        return bool(self.seeded_rows or any(self.recreated.values()) or self.migrations.applied)


class SchemaOrchestrator:
    """Runs the four schema update steps against one engine.

    Parameters
    ----------
    engine
        Target database.
    catalog
        Declared tables, reference rows, views, functions and migrations.
    force_update
        Recreate every resource even when its hash is unchanged.
    """

    def __init__(
        self,
        engine: Engine,
        catalog: SchemaCatalog,
        *,
        force_update: bool = False,
        session_factory=None,
    ) -> None:
        self._engine = engine
        self._catalog = catalog
        self._force_update = force_update
        self._session_factory = session_factory or schema_session_factory(engine)
        self._synchronizer = ResourceSynchronizer(self._session_factory)
        self._runner = MigrationRunner(self._session_factory)

    @property
    def synchronizer(self) -> ResourceSynchronizer:
        return self._synchronizer

    @property
    def runner(self) -> MigrationRunner:
        return self._runner

    def update_schema(self, as_of: datetime | None = None) -> SchemaUpdateResult:
        """Bring the database in line with the catalog.

        Args:
            as_of: End of the reporting window for time-bounded views;
                ``None`` means the database's current time.

        Raises:
            SchemaSpineError: The first failure, from whichever step.
        """
        result = SchemaUpdateResult()

        with LogContext(step="tables"):
            self._ensure_tables(result)

        with LogContext(step="seed"):
            result.seeded_rows = seed_reference_data(self._session_factory, self._catalog.reference_data)

        with LogContext(step="resources"):
            self._sync_resources(as_of, result)

        with LogContext(step="migrations"):
            result.migrations = self._runner.apply(self._catalog.migrations)

        logger.info(
            "schema.updated",
            recreated=sum(len(names) for names in result.recreated.values()),
            migrations_applied=len(result.migrations.applied),
        )
        return result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _ensure_tables(self, result: SchemaUpdateResult) -> None:
        tables = list(SchemaSpineBase.metadata.sorted_tables)
        if self._catalog.metadata is not None:
            tables.extend(self._catalog.metadata.sorted_tables)

        for table in tables:
            try:
                table.create(self._engine, checkfirst=True)
            except SQLAlchemyError as exc:
                logger.error("schema.table_failed", table=table.name, error=str(exc))
                raise SchemaSetupError(f"Error creating table {table.name}", cause=exc).with_context(
                    step="tables", table=table.name
                ) from exc
            logger.debug("schema.table_ensured", table=table.name)
            result.tables.append(table.name)

    def _sync_resources(self, as_of: datetime | None, result: SchemaUpdateResult) -> None:
        views = self._catalog.views
        dialect = get_dialect(self._engine.dialect.name) if views else None

        recreated_views: set[str] = set()
        for view in views:
            if self._sync(view.view_resource(as_of, dialect), result):
                recreated_views.add(view.name)

        for view in views:
            index = view.index_resource(dialect)
            if index is None:
                continue
            self._sync(index, result, force_update=view.name in recreated_views)

        for function in self._catalog.functions:
            self._sync(function.resource(), result)

    def _sync(self, resource: Resource, result: SchemaUpdateResult, force_update: bool = False) -> bool:
        changed = self._synchronizer.sync_resource(
            resource, force_update=self._force_update or force_update
        )
        bucket = result.recreated if changed else result.unchanged
        bucket[resource.type.value].append(resource.name)
        return changed


def update_schema(
    engine: Engine,
    catalog: SchemaCatalog,
    as_of: datetime | None = None,
    *,
    force_update: bool = False,
) -> SchemaUpdateResult:
    """Convenience wrapper: build a ``SchemaOrchestrator`` and run it once."""
    return SchemaOrchestrator(engine, catalog, force_update=force_update).update_schema(as_of)


__all__ = ["SchemaOrchestrator", "SchemaUpdateResult", "update_schema"]
