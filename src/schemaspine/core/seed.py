"""Idempotent seeding of static reference rows.

Some tables hold a small fixed set of rows the application expects to
exist (suite names, status codes).  ``ReferenceData`` declares them and
``seed_reference_data`` inserts the missing ones and corrects drifted
values, keyed by the declared key columns.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Table, and_, insert, select, update
from sqlalchemy.exc import SQLAlchemyError

from schemaspine.core.errors import SeedError
from schemaspine.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReferenceData:
    """Fixed rows for one table.

    Attributes:
        table: A ``Table`` or a mapped ORM class
        rows: Column → value mappings; every row must carry the key columns
        key: Columns identifying a row (usually a natural key, not ``id``)
    """

    table: Any
    rows: Sequence[Mapping[str, Any]]
    key: Sequence[str]

    def __post_init__(self) -> None:
        for position, row in enumerate(self.rows):
            missing = [col for col in self.key if col not in row]
            if missing:
                raise SeedError(
                    f"Reference row {position} for {self.sql_table.name} lacks key columns {missing}"
                ).with_context(step="seed", table=self.sql_table.name, missing=missing)

    @property
    def sql_table(self) -> Table:
        return getattr(self.table, "__table__", self.table)


def seed_reference_data(session_factory, entries: Sequence[ReferenceData]) -> int:
    """Insert or correct every declared row.  Returns rows written.

    Each entry is seeded in its own transaction.

    Raises:
        SeedError: If a query or write fails.
    """
    written = 0
    for entry in entries:
        table = entry.sql_table
        try:
            with session_factory() as session, session.begin():
                for row in entry.rows:
                    written += _seed_row(session, table, entry.key, row)
        except SQLAlchemyError as exc:
            logger.error("seed.failed", table=table.name, error=str(exc))
            raise SeedError(f"Error seeding {table.name}", cause=exc).with_context(
                step="seed", table=table.name
            ) from exc
        logger.debug("seed.table_done", table=table.name, rows=len(entry.rows))
    if written:
        logger.info("seed.complete", rows_written=written)
    return written


def _seed_row(session, table: Table, key: Sequence[str], row: Mapping[str, Any]) -> int:
    condition = and_(*(table.c[col] == row[col] for col in key))
    existing = session.execute(select(table).where(condition)).mappings().first()

    if existing is None:
        session.execute(insert(table).values(**row))
        logger.info("seed.inserted", table=table.name, key={col: row[col] for col in key})
        return 1

    changes = {col: value for col, value in row.items() if col not in key and existing[col] != value}
    if not changes:
        return 0
    session.execute(update(table).where(condition).values(**changes))
    logger.info("seed.updated", table=table.name, key={col: row[col] for col in key}, columns=sorted(changes))
    return 1
