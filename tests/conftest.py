"""
Shared pytest fixtures for schema-spine tests.

This module provides:
- An in-memory SQLite engine shared by every session in a test
- A statement recorder for asserting which DDL ran (see tests._support.db)
- Registry cleanup for test isolation
- A small application ``MetaData`` with an ``items`` table

Usage:
    Fixtures are auto-discovered by pytest::

        def test_something(engine, session_factory, statements):
            ...
"""

import sys
from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import Column, Integer, MetaData, String, Table, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

# Ensure schemaspine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from schemaspine.core.migrations.registry import clear_migrations
from schemaspine.core.orm import SchemaSpineBase, create_schema_engine, schema_session_factory


# =============================================================================
# Registry Cleanup Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_migration_registry() -> Generator[None, None, None]:
    """Clear the migration registry before and after each test."""
    clear_migrations()
    yield
    clear_migrations()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """
    In-memory SQLite engine.

    StaticPool keeps one connection, so every session in the test sees
    the same database.
    """
    eng = create_schema_engine("sqlite://", poolclass=StaticPool, slow_query_threshold=None)
    yield eng
    eng.dispose()


@pytest.fixture
def bookkeeping_engine(engine: Engine) -> Engine:
    """Engine with ``schema_hashes`` and ``migrations`` already created."""
    SchemaSpineBase.metadata.create_all(engine)
    return engine


@pytest.fixture
def session_factory(bookkeeping_engine: Engine):
    return schema_session_factory(bookkeeping_engine)


@pytest.fixture
def statements(engine: Engine) -> list[str]:
    """Every SQL statement sent to the driver, in order."""
    recorded: list[str] = []

    @event.listens_for(engine, "before_cursor_execute")
    def _record(conn, cursor, statement, parameters, context, executemany) -> None:
        recorded.append(statement)

    return recorded


# =============================================================================
# Application Schema Fixtures
# =============================================================================


@pytest.fixture
def app_metadata() -> MetaData:
    """Application tables: ``items(id, name UNIQUE, label)``."""
    metadata = MetaData()
    Table(
        "items",
        metadata,
        Column("id", Integer, primary_key=True),
        Column("name", String(64), nullable=False, unique=True),
        Column("label", String(64)),
    )
    return metadata


@pytest.fixture
def items_table(app_metadata: MetaData) -> Table:
    return app_metadata.tables["items"]
