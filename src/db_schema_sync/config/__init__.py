"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from db_schema_sync.config import load_config, DatabaseProfile, SchemaSyncConfig
"""

from db_schema_sync.config.loader import DEFAULT_CONFIG_FILE, load_config
from db_schema_sync.config.models import DatabaseProfile, MigrationSettings, SchemaSyncConfig

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "load_config",
    "DatabaseProfile",
    "MigrationSettings",
    "SchemaSyncConfig",
]
