"""Declarative base for schema-spine's bookkeeping tables.

Uses SQLAlchemy 2.0 ``DeclarativeBase`` with a ``type_annotation_map``
that maps Python built-in types to portable column types.
"""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import DeclarativeBase


class SchemaSpineBase(DeclarativeBase):
    """Shared declarative base for ``schema_hashes`` and ``migrations``.

    Caller-owned tables live in their own metadata and are passed to the
    orchestrator through the catalog; they never share this base.

    * ``str``   → ``Text``
    * ``int``   → ``Integer``
    * ``datetime.datetime`` → ``DateTime``
    """

    type_annotation_map = {
        str: Text,
        int: Integer,
        datetime.datetime: DateTime,
    }
