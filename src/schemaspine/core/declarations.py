"""
Declarations of the desired schema: views, indexes, functions, catalog.

A ``SchemaCatalog`` bundles everything the orchestrator brings into
line on startup.  Views and functions are declared once here and
rendered into the ``Resource`` SQL pairs the synchronizer hashes.

Time-windowed views write ``|||TIMENOW|||`` where they need "now"; the
placeholder is replaced by the ``as_of`` timestamp passed to
``update_schema`` (or the backend's now-expression when it is ``None``).
Because the rendered SQL is what gets hashed, a different ``as_of``
recreates the view.

Example::

    CATALOG = SchemaCatalog(
        metadata=Base.metadata,
        views=[
            MaterializedView(
                name="prow_test_report_7d",
                definition=\"\"\"
                    SELECT test_id, count(*) AS runs
                    FROM prow_job_run_tests
                    WHERE created_at > |||TIMENOW||| - INTERVAL '7 days'
                    GROUP BY test_id
                \"\"\",
                index_columns=("test_id",),
            ),
        ],
        functions=[Function("job_name_prefix", "CREATE OR REPLACE FUNCTION ...")],
        migrations=get_migrations(),
    )

Tags:
    schema-spine, declarations, materialized-view, catalog
"""

from __future__ import annotations

import importlib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import MetaData

from schemaspine.core.dialect import Dialect
from schemaspine.core.errors import CatalogLoadError
from schemaspine.core.migrations.runner import Procedure
from schemaspine.core.resources import Resource, ResourceType
from schemaspine.core.seed import ReferenceData

TIMENOW_PLACEHOLDER = "|||TIMENOW|||"


@dataclass(frozen=True)
class MaterializedView:
    """A materialized view and its optional index.

    Attributes:
        name: View name; the index is named ``idx_<name>``
        definition: The SELECT body of the view
        index_columns: Columns of the index; empty for no index
        unique_index: Create a UNIQUE index (needed for concurrent refresh)
        replacements: Extra literal substitutions applied to ``definition``
    """

    name: str
    definition: str
    index_columns: tuple[str, ...] = ()
    unique_index: bool = True
    replacements: Mapping[str, str] = field(default_factory=dict)

    @property
    def index_name(self) -> str:
        return f"idx_{self.name}"

    def render_definition(self, as_of: datetime | None, dialect: Dialect) -> str:
        now = dialect.timestamp_literal(as_of) if as_of is not None else dialect.now()
        definition = self.definition.replace(TIMENOW_PLACEHOLDER, now)
        for old, new in self.replacements.items():
            definition = definition.replace(old, new)
        return definition.strip()

    def view_resource(self, as_of: datetime | None, dialect: Dialect) -> Resource:
        definition = self.render_definition(as_of, dialect)
        if dialect.supports_materialized_views:
            create_sql = f"CREATE MATERIALIZED VIEW {self.name} AS {definition}"
            drop_sql = f"DROP MATERIALIZED VIEW IF EXISTS {self.name}"
        else:
            # No materialized views on this backend; a plain view keeps
            # the same name and columns.
            create_sql = f"CREATE VIEW {self.name} AS {definition}"
            drop_sql = f"DROP VIEW IF EXISTS {self.name}"
        return Resource(ResourceType.MATERIALIZED_VIEW, self.name, create_sql, drop_sql)

    def index_resource(self, dialect: Dialect) -> Resource | None:
        """The index resource, or ``None`` if there is nothing to index."""
        if not self.index_columns or not dialect.supports_materialized_views:
            return None
        unique = "UNIQUE " if self.unique_index else ""
        columns = ", ".join(self.index_columns)
        return Resource(
            ResourceType.MATERIALIZED_VIEW_INDEX,
            self.index_name,
            f"CREATE {unique}INDEX {self.index_name} ON {self.name} ({columns})",
            f"DROP INDEX IF EXISTS {self.index_name}",
        )


@dataclass(frozen=True)
class Function:
    """A stored function given as its complete CREATE statement."""

    name: str
    definition: str
    drop_sql: str | None = None

    def resource(self) -> Resource:
        drop_sql = self.drop_sql or f"DROP FUNCTION IF EXISTS {self.name}"
        return Resource(ResourceType.FUNCTION, self.name, self.definition.strip(), drop_sql)


@dataclass
class SchemaCatalog:
    """Everything the orchestrator keeps in line with the database."""

    metadata: MetaData | None = None
    reference_data: Sequence[ReferenceData] = ()
    views: Sequence[MaterializedView] = ()
    functions: Sequence[Function] = ()
    migrations: Mapping[str, Procedure] = field(default_factory=dict)


def load_catalog(path: str) -> SchemaCatalog:
    """Import a ``SchemaCatalog`` from ``"package.module:attribute"``.

    The attribute may also be a zero-argument callable returning the
    catalog.

    Raises:
        CatalogLoadError: If the path is malformed, the import fails or
            the object is not a ``SchemaCatalog``.
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise CatalogLoadError(f"Catalog path must look like 'module:attribute', got {path!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise CatalogLoadError(f"Cannot import catalog module {module_name!r}", cause=exc) from exc

    try:
        obj = getattr(module, attr)
    except AttributeError as exc:
        raise CatalogLoadError(f"Module {module_name!r} has no attribute {attr!r}", cause=exc) from exc

    if callable(obj) and not isinstance(obj, SchemaCatalog):
        obj = obj()
    if not isinstance(obj, SchemaCatalog):
        raise CatalogLoadError(f"{path} is a {type(obj).__name__}, not a SchemaCatalog")
    return obj


__all__ = [
    "TIMENOW_PLACEHOLDER",
    "Function",
    "MaterializedView",
    "SchemaCatalog",
    "load_catalog",
]
