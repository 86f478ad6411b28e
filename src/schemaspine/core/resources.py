"""
Hash-based synchronization of views, view indexes and functions.

Resources that cannot be updated incrementally are recreated wholesale
whenever the SQL that creates them changes. The SHA-256 of that SQL is
stored in ``schema_hashes`` keyed by ``(type, name)``; a resource whose
stored hash matches its current SQL is left alone.

Manifesto:
    Hand-written ALTERs for views and functions are a last-write-wins
    trap when several developers edit the same definition on separate
    branches. Declaring the full CREATE statement and letting the engine
    decide whether to rebuild removes the trap:

    - **Full recreation:** drop, then create, never alter in place
    - **Idempotent:** an unchanged definition issues no DDL at all
    - **Forced refresh:** ``force_update`` rebuilds without a definition change
    - **Honest bookkeeping:** the hash is only written after a successful create

Architecture:
    ::

        sync(type, name, create_sql, drop_sql, force_update)
          │
          ├─ hash = compute_schema_hash(create_sql)
          ├─ row  = HashStore.get(type, name)
          │
          ├─ row is None            → recreate, insert row
          ├─ row.hash != hash       → recreate, update row
          ├─ force_update           → recreate, row unchanged
          └─ otherwise              → no-op (returns False)

        recreate:  drop_sql ─commit─▶ create_sql ─commit─▶ save hash ─commit─▶

Guardrails:
    ❌ DON'T: pass a drop statement that fails when the object is missing
    ✅ DO: always use ``IF EXISTS`` in ``drop_sql``

    ❌ DON'T: drop a resource by hand and expect it to come back
    ✅ DO: also delete its ``schema_hashes`` row (``HashStore.forget``)

    The drop and create statements are not wrapped in one transaction.
    A failure between them leaves the resource absent until the next
    successful run.

Tags:
    schema-sync, materialized-view, ddl, hashing, schema-spine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schemaspine.core.errors import (
    HashLookupError,
    HashPersistError,
    ResourceCreateError,
    ResourceDropError,
)
from schemaspine.core.hashing import compute_schema_hash
from schemaspine.core.logging import get_logger
from schemaspine.core.orm.tables import SchemaHashTable

logger = get_logger(__name__)

SessionFactory = Callable[[], Session]


class ResourceType(str, Enum):
    """Kinds of resources kept in sync by hash."""

    MATERIALIZED_VIEW = "materialized-view"
    MATERIALIZED_VIEW_INDEX = "materialized-view-index"
    FUNCTION = "function"


@dataclass(frozen=True)
class Resource:
    """A resource as the synchronizer sees it: a name and two SQL statements.

    ``create_sql`` must recreate the resource from nothing and
    ``drop_sql`` must succeed when the resource does not exist.
    """

    type: ResourceType
    name: str
    create_sql: str
    drop_sql: str

    @property
    def hash(self) -> str:
        return compute_schema_hash(self.create_sql)


class HashStore:
    """Reads and writes ``schema_hashes`` rows."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def get(self, resource_type: ResourceType | str, name: str) -> SchemaHashTable | None:
        """Return the stored row for ``(resource_type, name)``, or ``None``.

        Raises:
            HashLookupError: If the query itself fails.
        """
        type_value = ResourceType(resource_type).value
        stmt = select(SchemaHashTable).where(
            SchemaHashTable.type == type_value,
            SchemaHashTable.name == name,
        )
        try:
            with self._session_factory() as session:
                return session.scalars(stmt).one_or_none()
        except SQLAlchemyError as exc:
            raise HashLookupError(
                f"Error looking up schema hash for {type_value} {name}",
                resource_type=type_value,
                name=name,
                cause=exc,
            ) from exc

    def save(self, row: SchemaHashTable) -> SchemaHashTable:
        """Insert *row* if it is new, otherwise update its hash.

        Raises:
            HashPersistError: If the write fails.
        """
        try:
            with self._session_factory() as session:
                if row.id is None:
                    session.add(row)
                else:
                    row = session.merge(row)
                session.commit()
                return row
        except SQLAlchemyError as exc:
            raise HashPersistError(
                f"Error saving schema hash for {row.type} {row.name}",
                resource_type=row.type,
                name=row.name,
                cause=exc,
            ) from exc

    def rows(self) -> list[SchemaHashTable]:
        """All stored rows, ordered by type then name."""
        stmt = select(SchemaHashTable).order_by(SchemaHashTable.type, SchemaHashTable.name)
        with self._session_factory() as session:
            return list(session.scalars(stmt).all())

    def forget(self, resource_type: ResourceType | str, name: str) -> bool:
        """Delete the row so the resource is recreated on the next run.

        Returns ``True`` if a row was deleted.
        """
        type_value = ResourceType(resource_type).value
        stmt = delete(SchemaHashTable).where(
            SchemaHashTable.type == type_value,
            SchemaHashTable.name == name,
        )
        with self._session_factory() as session:
            result = session.execute(stmt)
            session.commit()
            return result.rowcount > 0


class ResourceSynchronizer:
    """Recreates resources whose create SQL no longer matches the stored hash.

    Parameters
    ----------
    session_factory
        Callable returning a new ``Session``; each statement runs in its
        own short-lived session.
    store
        ``HashStore`` to use.  Defaults to one over the same sessions.

    Example::

        sync = ResourceSynchronizer(schema_session_factory(engine))
        changed = sync.sync(
            ResourceType.MATERIALIZED_VIEW,
            "v1",
            "CREATE MATERIALIZED VIEW v1 AS SELECT 1",
            "DROP MATERIALIZED VIEW IF EXISTS v1",
        )
    """

    def __init__(self, session_factory: SessionFactory, store: HashStore | None = None) -> None:
        self._session_factory = session_factory
        self._store = store or HashStore(session_factory)

    @property
    def store(self) -> HashStore:
        return self._store

    def sync_resource(self, resource: Resource, force_update: bool = False) -> bool:
        """Synchronize a ``Resource`` value object."""
        return self.sync(
            resource.type,
            resource.name,
            resource.create_sql,
            resource.drop_sql,
            force_update=force_update,
        )

    def sync(
        self,
        resource_type: ResourceType | str,
        name: str,
        create_sql: str,
        drop_sql: str,
        force_update: bool = False,
    ) -> bool:
        """Recreate the resource if its SQL changed (or *force_update*).

        Returns ``True`` if the resource was recreated.

        Raises:
            HashLookupError: Reading the stored hash failed.
            ResourceDropError: ``drop_sql`` failed; hash left untouched.
            ResourceCreateError: ``create_sql`` failed; hash left untouched.
            HashPersistError: Recreated, but the hash row could not be written.
        """
        resource_type = ResourceType(resource_type)
        hash_str = compute_schema_hash(create_sql)
        vlog = logger.bind(name=name, type=resource_type.value)
        vlog.debug("schema.hash_generated", hash=hash_str)

        try:
            current = self._store.get(resource_type, name)
        except HashLookupError as exc:
            vlog.error("schema.hash_lookup_failed", error=str(exc.cause))
            raise

        if current is None:
            vlog.debug("schema.hash_missing", action="create")
            current = SchemaHashTable(type=resource_type.value, name=name, hash=hash_str)
        elif current.hash != hash_str:
            vlog.debug("schema.hash_changed", old_hash=current.hash, action="recreate")
            current.hash = hash_str
        elif force_update:
            vlog.debug("schema.force_update", action="recreate")
        else:
            vlog.debug("schema.unchanged")
            return False

        try:
            self._execute(drop_sql)
        except SQLAlchemyError as exc:
            vlog.error("schema.drop_failed", error=str(exc))
            raise ResourceDropError(
                f"Error dropping {resource_type.value} {name}",
                resource_type=resource_type.value,
                name=name,
                cause=exc,
            ) from exc

        vlog.info("schema.creating")

        try:
            self._execute(create_sql)
        except SQLAlchemyError as exc:
            vlog.error("schema.create_failed", error=str(exc))
            raise ResourceCreateError(
                f"Error creating {resource_type.value} {name}",
                resource_type=resource_type.value,
                name=name,
                cause=exc,
            ) from exc

        try:
            self._store.save(current)
        except HashPersistError as exc:
            vlog.error("schema.hash_persist_failed", error=str(exc.cause))
            raise

        vlog.info("schema.hash_updated", hash=hash_str)
        return True

    def _execute(self, sql: str) -> None:
        # Raw driver SQL: the text is opaque and may contain colons.
        with self._session_factory() as session:
            session.connection().exec_driver_sql(sql)
            session.commit()


__all__ = [
    "HashStore",
    "Resource",
    "ResourceSynchronizer",
    "ResourceType",
]
