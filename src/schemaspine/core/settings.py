"""
Centralized settings for schema-spine.

All fields can be set via ``SCHEMASPINE_*`` environment variables (e.g.
``SCHEMASPINE_DATABASE_URL=postgresql+psycopg://...``) or a ``.env``
file in the working directory.

Tags:
    schema-spine, configuration, settings, pydantic

Doc-Types:
    api-reference
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from schemaspine.core.errors import InvalidConfigError
from schemaspine.core.logging import parse_sql_log_level


class SchemaSpineSettings(BaseSettings):
    """Runtime configuration for the schema engine and its CLI."""

    model_config = SettingsConfigDict(
        env_prefix="SCHEMASPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ─────────────────────────────────────────────────
    database_url: str = Field(default="sqlite:///schemaspine.db")
    database_echo: bool = Field(default=False)
    sql_log_level: str = Field(default="warn", description="info, warn, error or silent")
    slow_query_threshold: float = Field(default=2.0, description="Seconds before a statement is logged as slow")

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console", description="json or console")

    # ── Schema update ────────────────────────────────────────────
    catalog: str | None = Field(default=None, description="Import path of the SchemaCatalog, module:attribute")
    force_update: bool = Field(default=False, description="Recreate every resource even if its hash is unchanged")

    # ── Connection retries ───────────────────────────────────────
    connect_retries: int = Field(default=1, ge=1)
    retry_base_interval: float = Field(default=1.0, gt=0)

    @field_validator("sql_log_level")
    @classmethod
    def _check_sql_log_level(cls, value: str) -> str:
        try:
            parse_sql_log_level(value)
        except InvalidConfigError as exc:
            raise ValueError(str(exc)) from exc
        return value.lower()

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "console"):
            raise ValueError(f"log_format must be 'json' or 'console', got {value!r}")
        return value

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> SchemaSpineSettings:
    """Return a cached settings instance."""
    return SchemaSpineSettings()


__all__ = ["SchemaSpineSettings", "get_settings"]
