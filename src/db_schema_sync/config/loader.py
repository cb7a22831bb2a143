"""Configuration loading from ``schema-sync.toml``."""

import tomllib
from pathlib import Path

from pydantic import ValidationError

from db_schema_sync.config.models import DatabaseProfile, MigrationSettings, SchemaSyncConfig

DEFAULT_CONFIG_FILE = "schema-sync.toml"


def load_config(config_path: str | Path | None = None) -> SchemaSyncConfig:
    """Load configuration from a TOML file.

    Args:
        config_path: Path to the config file (default: ``schema-sync.toml``
            in the current working directory)

    Returns:
        SchemaSyncConfig with all profiles and migration settings

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid
    """
    if config_path is None:
        config_path = Path.cwd() / DEFAULT_CONFIG_FILE
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Config not found: {config_path}\n"
            f"Create {DEFAULT_CONFIG_FILE} with a [profiles.<name>] section."
        )

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {config_path}: {e}") from e

    try:
        # Parse profiles
        profiles = {}
        for name, profile_data in data.get("profiles", {}).items():
            profiles[name] = DatabaseProfile(**profile_data)

        return SchemaSyncConfig(
            profiles=profiles,
            migration=MigrationSettings(**data.get("migration", {})),
        )
    except (ValidationError, TypeError) as e:
        raise ValueError(f"Invalid configuration in {config_path}: {e}") from e
