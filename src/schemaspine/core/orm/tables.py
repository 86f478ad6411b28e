"""Bookkeeping table definitions: schema hashes and the migration ledger.

Tags:
    schema-spine, orm, sqlalchemy, tables

Doc-Types:
    api-reference, data-model
"""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from schemaspine.core.orm.base import SchemaSpineBase


class SchemaHashTable(SchemaSpineBase):
    """Last-applied content hash of a synchronized resource."""

    __tablename__ = "schema_hashes"
    __table_args__ = (UniqueConstraint("type", "name", name="uq_schema_hashes_type_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"SchemaHashTable(type={self.type!r}, name={self.name!r}, hash={self.hash!r})"


class MigrationTable(SchemaSpineBase):
    """One row per applied named migration."""

    __tablename__ = "migrations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    applied_at: Mapped[datetime.datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.current_timestamp()
    )

    def __repr__(self) -> str:
        return f"MigrationTable(name={self.name!r})"


__all__ = ["SchemaHashTable", "MigrationTable"]
