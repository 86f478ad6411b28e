"""Durable record of which named migrations have been applied."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from schemaspine.core.errors import MigrationLookupError
from schemaspine.core.orm.tables import MigrationTable


class MigrationLedger:
    """Reads and writes ``migrations`` rows.

    ``is_applied`` and ``applied`` open their own sessions; ``record``
    writes into the caller's session so the ledger row commits (or rolls
    back) together with the migration's own effects.
    """

    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    def is_applied(self, name: str) -> bool:
        """Return whether *name* has a ledger row.

        Raises:
            MigrationLookupError: If the query fails.  Not-found is ``False``.
        """
        stmt = select(MigrationTable.id).where(MigrationTable.name == name)
        try:
            with self._session_factory() as session:
                return session.scalars(stmt).first() is not None
        except SQLAlchemyError as exc:
            raise MigrationLookupError(
                f"Error looking up migration {name!r}", migration=name, cause=exc
            ) from exc

    def applied(self) -> list[MigrationTable]:
        """All ledger rows, ordered by name."""
        stmt = select(MigrationTable).order_by(MigrationTable.name)
        with self._session_factory() as session:
            return list(session.scalars(stmt).all())

    def applied_names(self) -> set[str]:
        with self._session_factory() as session:
            return set(session.scalars(select(MigrationTable.name)).all())

    @staticmethod
    def record(session: Session, name: str) -> MigrationTable:
        """Add the ledger row for *name* to *session* and flush it."""
        row = MigrationTable(name=name)
        session.add(row)
        session.flush()
        return row
