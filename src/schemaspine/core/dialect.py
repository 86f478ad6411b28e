"""SQL dialect helpers for rendering resource declarations.

The engine treats resource SQL as opaque text, but the declarations in
:mod:`schemaspine.core.declarations` render that text and need a few
backend-specific fragments: the "now" expression, a timestamp literal,
and whether the backend has materialized views at all.

Examples:
    >>> get_dialect("postgresql").now()
    'NOW()'
    >>> get_dialect("sqlite").supports_materialized_views
    False
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from schemaspine.core.errors import InvalidConfigError


class Dialect(Protocol):
    """SQL dialect contract."""

    @property
    def name(self) -> str:
        """Dialect name as reported by SQLAlchemy (e.g. ``'sqlite'``)."""
        ...

    @property
    def supports_materialized_views(self) -> bool:
        ...

    def now(self) -> str:
        """SQL expression for the current timestamp."""
        ...

    def timestamp_literal(self, value: datetime) -> str:
        """SQL literal for a fixed timestamp."""
        ...


class SQLiteDialect:
    """SQLite dialect: plain views only, ``datetime('now')``."""

    @property
    def name(self) -> str:
        return "sqlite"

    @property
    def supports_materialized_views(self) -> bool:
        return False

    def now(self) -> str:
        return "datetime('now')"

    def timestamp_literal(self, value: datetime) -> str:
        return f"'{value.strftime('%Y-%m-%d %H:%M:%S')}'"


class PostgreSQLDialect:
    """PostgreSQL dialect: materialized views, ``NOW()``."""

    @property
    def name(self) -> str:
        return "postgresql"

    @property
    def supports_materialized_views(self) -> bool:
        return True

    def now(self) -> str:
        return "NOW()"

    def timestamp_literal(self, value: datetime) -> str:
        return f"TO_TIMESTAMP('{value.strftime('%Y-%m-%d %H:%M:%S')}', 'YYYY-MM-DD HH24:MI:SS')"


_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),
}


def get_dialect(db_type: str) -> Dialect:
    """Get a dialect by database type name.

    Raises:
        InvalidConfigError: If ``db_type`` is not recognised.
    """
    key = db_type.lower()
    if key not in _DIALECTS:
        raise InvalidConfigError(
            "dialect",
            db_type,
            f"Unknown dialect '{db_type}'. "
            f"Supported: {sorted(set(_DIALECTS) - {'postgres'})}",
        )
    return _DIALECTS[key]


__all__ = ["Dialect", "SQLiteDialect", "PostgreSQLDialect", "get_dialect"]
