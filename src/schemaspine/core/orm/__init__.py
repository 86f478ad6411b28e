"""SQLAlchemy 2.0 ORM layer for schema-spine.

Modules
-------
base        SchemaSpineBase (declarative base)
session     Engine factory, SchemaSession, schema_session_factory
tables      SchemaHashTable, MigrationTable

Tags:
    schema-spine, orm, sqlalchemy, declarative
"""

from __future__ import annotations

from schemaspine.core.orm.base import SchemaSpineBase
from schemaspine.core.orm.session import (
    SchemaSession,
    create_schema_engine,
    schema_session_factory,
    watch_slow_queries,
)
from schemaspine.core.orm.tables import MigrationTable, SchemaHashTable

__all__ = [
    "SchemaSpineBase",
    "SchemaSession",
    "create_schema_engine",
    "schema_session_factory",
    "watch_slow_queries",
    "MigrationTable",
    "SchemaHashTable",
]
