"""End-to-end tests for SchemaOrchestrator on SQLite."""

from __future__ import annotations

from datetime import datetime

import pytest
from sqlalchemy import inspect, text

from schemaspine.core.declarations import Function, MaterializedView, SchemaCatalog
from schemaspine.core.dialect import PostgreSQLDialect
from schemaspine.core.errors import (
    InvalidConfigError,
    MigrationFailedError,
    ResourceCreateError,
    SchemaSpineError,
)
from schemaspine.core.migrations import MigrationLedger, migration, get_migrations
from schemaspine.core.orm import schema_session_factory
from schemaspine.core.resources import HashStore
from schemaspine.core.schema import SchemaOrchestrator, SchemaUpdateResult, update_schema
from schemaspine.core.seed import ReferenceData
from tests._support.db import ddl, object_exists

TRIGGER_SQL = (
    "CREATE TRIGGER items_default_label AFTER INSERT ON items "
    "WHEN NEW.label IS NULL "
    "BEGIN UPDATE items SET label = 'auto' WHERE id = NEW.id; END"
)


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture()
def catalog(app_metadata, items_table):
    @migration("2024_01_01_add_manual_item")
    def add_manual_item(session):
        session.execute(text("INSERT INTO items (name) VALUES ('manual')"))

    return SchemaCatalog(
        metadata=app_metadata,
        reference_data=[ReferenceData(items_table, [{"name": "seeded", "label": "S"}], key=["name"])],
        views=[MaterializedView("item_count", "SELECT COUNT(*) AS n FROM items", index_columns=("n",))],
        functions=[Function("items_default_label", TRIGGER_SQL, drop_sql="DROP TRIGGER IF EXISTS items_default_label")],
        migrations=get_migrations(),
    )


def labels(engine) -> dict[str, str]:
    with engine.connect() as conn:
        return dict(conn.execute(text("SELECT name, label FROM items")).all())


# ── Full run ──────────────────────────────────────────────────────────


class TestUpdateSchema:
    def test_first_run_does_everything(self, engine, catalog):
        result = update_schema(engine, catalog)

        assert {"schema_hashes", "migrations", "items"} <= set(inspect(engine).get_table_names())
        assert result.seeded_rows == 1
        assert result.recreated == {"materialized-view": ["item_count"], "function": ["items_default_label"]}
        assert result.migrations.applied == ["2024_01_01_add_manual_item"]
        assert result.changed

        assert object_exists(engine, "view", "item_count")
        assert object_exists(engine, "trigger", "items_default_label")
        # Seeded before the trigger existed; migrated row went through it
        assert labels(engine) == {"seeded": "S", "manual": "auto"}

    def test_second_run_is_noop(self, engine, catalog, statements):
        update_schema(engine, catalog)
        statements.clear()

        result = update_schema(engine, catalog)
        assert ddl(statements) == []
        assert result.seeded_rows == 0
        assert dict(result.recreated) == {}
        assert result.unchanged == {"materialized-view": ["item_count"], "function": ["items_default_label"]}
        assert result.migrations.skipped == ["2024_01_01_add_manual_item"]
        assert not result.changed

    def test_force_update_recreates_resources_only(self, engine, catalog, statements):
        update_schema(engine, catalog)
        statements.clear()

        result = update_schema(engine, catalog, force_update=True)
        assert result.recreated == {"materialized-view": ["item_count"], "function": ["items_default_label"]}
        assert result.migrations.applied == []
        assert "DROP VIEW IF EXISTS item_count" in ddl(statements)

    def test_as_of_renders_into_hash(self, engine, app_metadata):
        catalog = SchemaCatalog(
            metadata=app_metadata,
            views=[MaterializedView("recent", "SELECT |||TIMENOW||| AS as_of")],
        )
        first = update_schema(engine, catalog, datetime(2024, 1, 1))
        same = update_schema(engine, catalog, datetime(2024, 1, 1))
        later = update_schema(engine, catalog, datetime(2024, 1, 2))

        assert first.recreated["materialized-view"] == ["recent"]
        assert same.unchanged["materialized-view"] == ["recent"]
        assert later.recreated["materialized-view"] == ["recent"]
        with engine.connect() as conn:
            assert conn.execute(text("SELECT as_of FROM recent")).scalar_one() == "2024-01-02 00:00:00"

    def test_changed_view_definition(self, engine, catalog):
        update_schema(engine, catalog)
        catalog.views = [MaterializedView("item_count", "SELECT COUNT(*) AS total FROM items")]

        result = update_schema(engine, catalog)
        assert result.recreated["materialized-view"] == ["item_count"]
        with engine.connect() as conn:
            assert conn.execute(text("SELECT total FROM item_count")).scalar_one() == 2

    def test_empty_catalog_creates_bookkeeping_tables(self, engine):
        result = update_schema(engine, SchemaCatalog())
        assert result.tables == ["migrations", "schema_hashes"]
        assert not result.changed


# ── Failure stops later steps ─────────────────────────────────────────


class TestFailures:
    def test_broken_view_stops_before_migrations(self, engine, catalog):
        catalog.views = [MaterializedView("broken", "SELEC nothing")]
        with pytest.raises(ResourceCreateError):
            update_schema(engine, catalog)

        factory = schema_session_factory(engine)
        assert MigrationLedger(factory).applied_names() == set()
        assert HashStore(factory).get("materialized-view", "broken") is None
        # Functions come after views and never ran
        assert not object_exists(engine, "trigger", "items_default_label")

    def test_failed_migration_propagates(self, engine, app_metadata):
        def boom(session):
            raise RuntimeError("nope")

        catalog = SchemaCatalog(metadata=app_metadata, migrations={"001_boom": boom})
        with pytest.raises(MigrationFailedError):
            update_schema(engine, catalog)

    def test_unsupported_backend_with_views(self, engine, monkeypatch):
        monkeypatch.setattr(engine.dialect, "name", "mysql")
        catalog = SchemaCatalog(views=[MaterializedView("v1", "SELECT 1 AS a")])
        with pytest.raises(InvalidConfigError, match="Unknown dialect 'mysql'") as exc_info:
            update_schema(engine, catalog)
        assert isinstance(exc_info.value, SchemaSpineError)


# ── Resource ordering and forced indexes ──────────────────────────────


class TestResourceOrdering:
    """Drive the orchestrator with a scripted synchronizer and a
    materialized-view dialect so index behaviour is visible on SQLite."""

    @pytest.fixture()
    def scripted(self, engine, monkeypatch):
        calls: list[tuple[str, str, bool]] = []
        recreated_views = {"v_changed"}

        monkeypatch.setattr("schemaspine.core.schema.get_dialect", lambda name: PostgreSQLDialect())

        catalog = SchemaCatalog(
            views=[
                MaterializedView("v_changed", "SELECT 1 AS a", index_columns=("a",)),
                MaterializedView("v_same", "SELECT 1 AS a", index_columns=("a",)),
                MaterializedView("v_noindex", "SELECT 1 AS a"),
            ],
            functions=[Function("f1", "CREATE FUNCTION f1() ...")],
        )
        orchestrator = SchemaOrchestrator(engine, catalog)

        def fake_sync(resource, force_update=False):
            calls.append((resource.type.value, resource.name, force_update))
            if resource.name in recreated_views:
                return True
            return force_update

        monkeypatch.setattr(orchestrator.synchronizer, "sync_resource", fake_sync)
        return orchestrator, calls

    def test_views_then_indexes_then_functions(self, scripted):
        orchestrator, calls = scripted
        orchestrator.update_schema()
        assert [(t, n) for t, n, _ in calls] == [
            ("materialized-view", "v_changed"),
            ("materialized-view", "v_same"),
            ("materialized-view", "v_noindex"),
            ("materialized-view-index", "idx_v_changed"),
            ("materialized-view-index", "idx_v_same"),
            ("function", "f1"),
        ]

    def test_index_forced_when_view_recreated(self, scripted):
        orchestrator, calls = scripted
        result = orchestrator.update_schema()
        forced = {n: f for t, n, f in calls if t == "materialized-view-index"}
        assert forced == {"idx_v_changed": True, "idx_v_same": False}
        assert result.recreated["materialized-view-index"] == ["idx_v_changed"]
        assert result.unchanged["materialized-view-index"] == ["idx_v_same"]


class TestSchemaUpdateResult:
    def test_defaults(self):
        result = SchemaUpdateResult()
        assert result.tables == []
        assert not result.changed
        result.recreated["function"].append("f")
        assert result.changed
