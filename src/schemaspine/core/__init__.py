"""
schema-spine core: hash-synchronized resources and named migrations.

Modules
-------
resources      HashStore, ResourceSynchronizer, Resource, ResourceType
migrations     MigrationLedger, MigrationRunner, migration registry
declarations   MaterializedView, Function, SchemaCatalog
seed           ReferenceData, seed_reference_data
schema         SchemaOrchestrator, update_schema
orm            Bookkeeping tables and engine/session factory
errors         SchemaSpineError hierarchy
logging        structlog configuration
settings       SchemaSpineSettings
"""

from schemaspine.core.declarations import Function, MaterializedView, SchemaCatalog, load_catalog
from schemaspine.core.errors import SchemaSpineError
from schemaspine.core.hashing import compute_schema_hash
from schemaspine.core.migrations import MigrationResult, MigrationRunner, migration
from schemaspine.core.resources import HashStore, Resource, ResourceSynchronizer, ResourceType
from schemaspine.core.schema import SchemaOrchestrator, SchemaUpdateResult, update_schema
from schemaspine.core.seed import ReferenceData

__all__ = [
    "Function",
    "HashStore",
    "MaterializedView",
    "MigrationResult",
    "MigrationRunner",
    "ReferenceData",
    "Resource",
    "ResourceSynchronizer",
    "ResourceType",
    "SchemaCatalog",
    "SchemaOrchestrator",
    "SchemaSpineError",
    "SchemaUpdateResult",
    "compute_schema_hash",
    "load_catalog",
    "migration",
    "update_schema",
]
