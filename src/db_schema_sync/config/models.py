"""Pydantic models for schema-sync configuration."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from db_schema_sync.ddl import Dialect, resolve_dialect
from db_schema_sync.migration.gate import MigrationMode


# ============================================================================
# Configuration Models
# ============================================================================


class DatabaseProfile(BaseModel):
    """Database connection profile from schema-sync.toml."""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    description: str = ""
    db_password: str | None = None  # For [YOUR-PASSWORD] placeholder substitution
    dialect: Dialect = Dialect.POSTGRESQL
    schema_name: str = Field(default="public", alias="schema")

    @field_validator("dialect", mode="before")
    @classmethod
    def _resolve_dialect(cls, value: object) -> object:
        # Accept aliases such as "postgres" or "mssql"
        if isinstance(value, str):
            return resolve_dialect(value)
        return value


class MigrationSettings(BaseModel):
    """The ``[migration]`` section: defaults for CLI commands."""

    models: str | None = None  # "package.module" or "package.module:attribute"
    default_mode: MigrationMode = MigrationMode.NORMAL
    output: str | None = None


class SchemaSyncConfig(BaseModel):
    """Complete configuration from schema-sync.toml."""

    profiles: dict[str, DatabaseProfile] = Field(default_factory=dict)
    migration: MigrationSettings = Field(default_factory=MigrationSettings)
