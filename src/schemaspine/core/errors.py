"""
Structured error types for schema-spine.

Every failure the engine reports carries a category, a retry flag, a
structured context and the underlying cause. Callers decide what to do
with a failure by type, never by parsing messages.

Manifesto:
    A schema update either finishes or it stops the process from
    starting. Errors therefore need to say *which* step failed (lookup,
    drop, create, bookkeeping, migration) and *what* it failed on
    (resource type and name, migration name) so the operator can fix
    the database by hand if needed.

    - **Typed hierarchy:** One subclass per failure point
    - **Explicit retry semantics:** Only connection problems are retryable
    - **Rich context:** resource type/name and migration name travel with the error
    - **Error chaining:** The driver exception is always kept as ``cause``

Architecture:
    ::

        SchemaSpineError  (category, retryable, context, cause)
          ├── TransientError (retryable)
          │     └── DatabaseConnectionError
          ├── ConfigError
          │     ├── InvalidConfigError
          │     ├── CatalogLoadError
          │     └── DuplicateMigrationError
          └── DatabaseError
                ├── SchemaSetupError
                ├── SeedError
                ├── ResourceSyncError
                │     ├── HashLookupError
                │     ├── ResourceDropError
                │     ├── ResourceCreateError
                │     └── HashPersistError
                └── MigrationError
                      ├── MigrationLookupError
                      ├── MigrationFailedError
                      └── LedgerWriteError

Examples:
    >>> err = ResourceCreateError("boom", resource_type="function", name="f1")
    >>> err.context.resource_type
    'function'
    >>> err.retryable
    False

Tags:
    error-handling, exception-hierarchy, schema-spine

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Coarse classification used when routing or reporting a failure."""

    DATABASE = "DATABASE"
    NETWORK = "NETWORK"
    CONFIG = "CONFIG"
    VALIDATION = "VALIDATION"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


_CONTEXT_FIELDS = ("resource_type", "name", "migration", "step")


@dataclass
class ErrorContext:
    """What the engine was working on when the error happened.

    Attributes:
        resource_type: ``materialized-view``, ``materialized-view-index`` or ``function``
        name: Resource name
        migration: Migration name
        step: Orchestrator step (``tables``, ``seed``, ``resources``, ``migrations``)
        metadata: Anything else worth reporting (table name, applied migrations)
    """

    resource_type: str | None = None
    name: str | None = None
    migration: str | None = None
    step: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Set fields only, with metadata merged in."""
        known = {key: getattr(self, key) for key in _CONTEXT_FIELDS}
        return {**{k: v for k, v in known.items() if v is not None}, **self.metadata}


class SchemaSpineError(Exception):
    """
    Root of every error schema-spine raises.

    Subclasses pick their ``default_category`` and ``default_retryable``;
    call sites pass only the message, the context and the driver error.

    Examples:
        >>> err = SchemaSpineError("Something went wrong")
        >>> err.category.value
        'INTERNAL'
        >>> err.with_context(step="seed").context.step
        'seed'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = self.default_category if category is None else category
        self.retryable = self.default_retryable if retryable is None else retryable
        self.context = ErrorContext() if context is None else context
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> SchemaSpineError:
        """Attach context and return ``self``, for use in a ``raise``.

        Known context fields are set directly; other keys land in
        ``context.metadata``::

            raise SeedError("Failed").with_context(step="seed", table="suites")
        """
        extra = {key: kwargs.pop(key) for key in list(kwargs) if key not in _CONTEXT_FIELDS}
        for key, value in kwargs.items():
            setattr(self.context, key, value)
        self.context.metadata.update(extra)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Flat dictionary suitable for a structlog event or JSON output."""
        payload: dict[str, Any] = dict(
            error_type=type(self).__name__,
            message=self.message,
            category=self.category.value,
            retryable=self.retryable,
        )
        if context := self.context.to_dict():
            payload["context"] = context
        if self.cause is not None:
            payload["cause"] = str(self.cause)
        return payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# TRANSIENT ERRORS
# =============================================================================


class TransientError(SchemaSpineError):
    """Temporary error that may succeed on retry."""

    default_category = ErrorCategory.NETWORK
    default_retryable = True


class DatabaseConnectionError(TransientError):
    """Could not connect to the target database."""

    default_category = ErrorCategory.DATABASE


# =============================================================================
# CONFIG ERRORS
# =============================================================================


class ConfigError(SchemaSpineError):
    """Configuration error."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class InvalidConfigError(ConfigError):
    """A configuration value is present but not valid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        msg = message or f"Invalid value for {key}: {value!r}"
        super().__init__(msg)
        self.with_context(key=key, value=value)


class CatalogLoadError(ConfigError):
    """The schema catalog import path could not be resolved."""

    pass


class DuplicateMigrationError(ConfigError):
    """Two procedures were registered under the same migration name."""

    def __init__(self, name: str):
        super().__init__(f"Migration already registered: {name}")
        self.with_context(migration=name)


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(SchemaSpineError):
    """Database query or transaction error."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class SchemaSetupError(DatabaseError):
    """Creating a base table failed."""

    pass


class SeedError(DatabaseError):
    """Seeding static reference data failed."""

    pass


class ResourceSyncError(DatabaseError):
    """Base for failures while synchronizing a hashed resource."""

    def __init__(
        self,
        message: str,
        *,
        resource_type: str | None = None,
        name: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(
            message,
            context=ErrorContext(resource_type=resource_type, name=name),
            cause=cause,
        )


class HashLookupError(ResourceSyncError):
    """Reading the stored schema hash failed."""

    pass


class ResourceDropError(ResourceSyncError):
    """Executing the drop statement failed."""

    pass


class ResourceCreateError(ResourceSyncError):
    """Executing the create statement failed."""

    pass


class HashPersistError(ResourceSyncError):
    """The resource was recreated but its hash row could not be written."""

    pass


class MigrationError(DatabaseError):
    """Base for failures while applying named migrations."""

    def __init__(self, message: str, *, migration: str | None = None, cause: Exception | None = None):
        super().__init__(message, context=ErrorContext(migration=migration), cause=cause)
        # Partial MigrationResult of the run that stopped here, set by the runner.
        self.result: Any = None


class MigrationLookupError(MigrationError):
    """Querying the migration ledger failed for a reason other than not-found."""

    pass


class MigrationFailedError(MigrationError):
    """The migration procedure itself failed; its transaction was rolled back."""

    pass


class LedgerWriteError(MigrationError):
    """The ledger row could not be written; the migration was rolled back."""

    pass


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, SchemaSpineError):
        return error.retryable
    return isinstance(error, (ConnectionError, TimeoutError))


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "SchemaSpineError",
    "TransientError",
    "DatabaseConnectionError",
    "ConfigError",
    "InvalidConfigError",
    "CatalogLoadError",
    "DuplicateMigrationError",
    "DatabaseError",
    "SchemaSetupError",
    "SeedError",
    "ResourceSyncError",
    "HashLookupError",
    "ResourceDropError",
    "ResourceCreateError",
    "HashPersistError",
    "MigrationError",
    "MigrationLookupError",
    "MigrationFailedError",
    "LedgerWriteError",
    "is_retryable",
]
