"""Named migration runner.

Applies one-time migration procedures in lexicographic name order,
recording each in the ``migrations`` ledger inside the same transaction
as its effects.  Names already in the ledger are skipped, so re-running
after a failure only retries what never committed.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schemaspine.core.errors import (
    LedgerWriteError,
    MigrationError,
    MigrationFailedError,
    MigrationLookupError,
)
from schemaspine.core.logging import get_logger
from schemaspine.core.migrations.ledger import MigrationLedger

logger = get_logger(__name__)

# A procedure receives a session with an open transaction.  It fails by
# raising, or by returning False.
Procedure = Callable[[Session], object]


@dataclass
class MigrationResult:
    """Result of a migration run."""

    applied: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: str | None = None

    @property
    def success(self) -> bool:
        return self.failed is None


class MigrationRunner:
    """Applies named migration procedures exactly once each.

    Parameters
    ----------
    session_factory
        Callable returning a new ``Session``.
    ledger
        ``MigrationLedger`` to use.  Defaults to one over the same sessions.

    Example::

        runner = MigrationRunner(schema_session_factory(engine))
        result = runner.apply({
            "2024_01_backfill_suites": backfill_suites,
            "2024_02_drop_legacy_rows": drop_legacy_rows,
        })
        print(f"Applied {len(result.applied)} migrations")
    """

    def __init__(self, session_factory, ledger: MigrationLedger | None = None) -> None:
        self._session_factory = session_factory
        self._ledger = ledger or MigrationLedger(session_factory)

    @property
    def ledger(self) -> MigrationLedger:
        return self._ledger

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def apply(self, migrations: Mapping[str, Procedure]) -> MigrationResult:
        """Apply every migration not yet in the ledger, in name order.

        Stops at the first error.  Migrations committed before the error
        stay committed, and the raised error carries the partial result
        (with ``failed`` set) as ``exc.result``.

        Raises:
            MigrationLookupError: The ledger could not be queried.
            MigrationFailedError: A procedure failed; it was rolled back.
            LedgerWriteError: The ledger row could not be written; the
                procedure's effects were rolled back with it.
        """
        result = MigrationResult()
        logger.info("migrations.applying", count=len(migrations))

        for name in sorted(migrations):
            try:
                if self._ledger.is_applied(name):
                    logger.debug("migration.skipped", migration=name)
                    result.skipped.append(name)
                    continue
            except MigrationLookupError as exc:
                logger.warning("migration.lookup_failed", migration=name, error=str(exc.cause))
                result.failed = name
                exc.result = result
                raise exc.with_context(applied=list(result.applied))

            logger.info("migration.applying", migration=name)
            try:
                self._apply_one(name, migrations[name])
            except MigrationError as exc:
                logger.warning(
                    "migration.failed",
                    migration=name,
                    error_type=type(exc).__name__,
                    error=str(exc.cause or exc),
                )
                result.failed = name
                exc.result = result
                raise exc.with_context(applied=list(result.applied))
            logger.info("migration.applied", migration=name)
            result.applied.append(name)

        logger.info("migrations.complete", applied=len(result.applied), skipped=len(result.skipped))
        return result

    def pending(self, migrations: Mapping[str, Procedure]) -> list[str]:
        """Return names of migrations not yet applied, in application order."""
        applied = self._ledger.applied_names()
        return [name for name in sorted(migrations) if name not in applied]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _apply_one(self, name: str, procedure: Procedure) -> None:
        with self._session_factory() as session:
            try:
                with session.begin():
                    try:
                        outcome = procedure(session)
                    except Exception as exc:
                        raise MigrationFailedError(
                            f"Migration {name!r} failed", migration=name, cause=exc
                        ) from exc
                    if outcome is False:
                        raise MigrationFailedError(
                            f"Migration {name!r} reported failure", migration=name
                        )

                    try:
                        self._ledger.record(session, name)
                    except SQLAlchemyError as exc:
                        raise LedgerWriteError(
                            f"Could not record migration {name!r}", migration=name, cause=exc
                        ) from exc
            except SQLAlchemyError as exc:
                # Commit itself failed.
                raise LedgerWriteError(
                    f"Could not commit migration {name!r}", migration=name, cause=exc
                ) from exc
