"""Named, forward-only migrations tracked in a ledger table."""

from schemaspine.core.migrations.ledger import MigrationLedger
from schemaspine.core.migrations.registry import (
    clear_migrations,
    get_migrations,
    migration,
    register_migration,
)
from schemaspine.core.migrations.runner import MigrationResult, MigrationRunner, Procedure

__all__ = [
    "MigrationLedger",
    "MigrationResult",
    "MigrationRunner",
    "Procedure",
    "clear_migrations",
    "get_migrations",
    "migration",
    "register_migration",
]
