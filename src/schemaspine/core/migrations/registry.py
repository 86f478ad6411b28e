"""Migration registry for declaring named one-time migrations.

Tags:
    schema-spine, migrations, registry

Doc-Types:
    api-reference
"""

from collections.abc import Callable

from schemaspine.core.errors import DuplicateMigrationError
from schemaspine.core.logging import get_logger
from schemaspine.core.migrations.runner import Procedure

logger = get_logger(__name__)

# Global migration registry
_registry: dict[str, Procedure] = {}


def register_migration(name: str, procedure: Procedure) -> Procedure:
    """Register *procedure* under *name*.

    Raises:
        DuplicateMigrationError: If *name* is already registered.
    """
    if name in _registry:
        raise DuplicateMigrationError(name)
    _registry[name] = procedure
    logger.debug("migration_registered", migration=name, procedure=getattr(procedure, "__name__", repr(procedure)))
    return procedure


def migration(name: str) -> Callable[[Procedure], Procedure]:
    """Decorator to register a migration procedure.

    Names sort lexicographically to give the application order, so
    prefix them with a date or sequence number::

        @migration("2024_03_01_backfill_suite_ids")
        def backfill_suite_ids(session):
            session.execute(text("UPDATE tests SET suite_id = ..."))
    """

    def decorator(procedure: Procedure) -> Procedure:
        return register_migration(name, procedure)

    return decorator


def get_migrations() -> dict[str, Procedure]:
    """Return a copy of the registered name → procedure table."""
    return dict(_registry)


def clear_migrations() -> None:
    """Clear registry (for testing)."""
    _registry.clear()
