"""Profile resolution, executor creation and model loading.

Glue between ``schema-sync.toml`` profiles and the engine:
- Profile selection (explicit name, else ``<PREFIX>DB_PROFILE``)
- URL resolution with ``[YOUR-PASSWORD]`` substitution
- ``AsyncSqlExecutor`` and live introspection for a profile
- Loading model declarations from a ``module`` or ``module:attribute`` path
"""

import dataclasses
import importlib
import logging
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Any
from urllib.parse import quote

import psycopg

from db_schema_sync.adapters.engine import AsyncSqlExecutor
from db_schema_sync.analysis.declarations import TableDeclaration, declaration_from_dataclass
from db_schema_sync.config.loader import load_config
from db_schema_sync.config.models import DatabaseProfile
from db_schema_sync.ddl import Dialect
from db_schema_sync.errors import SchemaSyncError, UnsupportedOperationError
from db_schema_sync.schema.introspector import SchemaIntrospector
from db_schema_sync.schema.models import Table

logger = logging.getLogger(__name__)


class ProfileNotFoundError(SchemaSyncError):
    """Raised when no database profile is configured or the name is unknown."""

    pass


# ============================================================================
# Profiles
# ============================================================================


def get_active_profile_name(env_prefix: str = "", explicit: str | None = None) -> str:
    """Get the active profile name.

    Priority:
    1. ``explicit`` (e.g. ``--profile`` on the command line)
    2. ``{env_prefix}DB_PROFILE`` env var
    3. Raise ProfileNotFoundError

    Args:
        env_prefix: Prefix for the environment variable lookup.
        explicit: Profile name given by the caller.

    Raises:
        ProfileNotFoundError: If no profile is configured
    """
    if explicit:
        return explicit

    env_var = f"{env_prefix}DB_PROFILE"
    env_profile = os.environ.get(env_var)
    if env_profile:
        return env_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Run: {env_var}=<name> db-schema-sync <command> "
        "or pass --profile <name>"
    )


def get_active_profile(
    profile_name: str | None = None,
    env_prefix: str = "",
    config_path: str | Path | None = None,
) -> tuple[str, DatabaseProfile]:
    """Get active profile name and configuration.

    Returns:
        Tuple of (profile_name, DatabaseProfile)

    Raises:
        ProfileNotFoundError: If no profile is configured or the name is not
            in the config file
        FileNotFoundError: If the config file does not exist
    """
    name = get_active_profile_name(env_prefix=env_prefix, explicit=profile_name)
    config = load_config(config_path)

    if name not in config.profiles:
        available = ", ".join(config.profiles) or "(none)"
        raise ProfileNotFoundError(
            f"Profile '{name}' not found in config.\nAvailable profiles: {available}"
        )
    return name, config.profiles[name]


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with password substituted
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


# ============================================================================
# Database access
# ============================================================================


async def get_executor(
    profile_name: str | None = None,
    env_prefix: str = "",
    config_path: str | Path | None = None,
    **engine_kwargs: Any,
) -> AsyncSqlExecutor:
    """Create an ``AsyncSqlExecutor`` for the active profile.

    Example:
        >>> executor = await get_executor("local")
        >>> try:
        ...     result = await apply_migration(executor, plan)
        ... finally:
        ...     await executor.close()
    """
    _, profile = get_active_profile(profile_name, env_prefix, config_path)
    return AsyncSqlExecutor(resolve_url(profile), **engine_kwargs)


async def introspect_profile(
    profile: DatabaseProfile,
    excluded_tables: set[str] | None = None,
) -> list[Table]:
    """Introspect the live schema behind ``profile``.

    Raises:
        UnsupportedOperationError: If the profile's dialect has no
            introspector (only PostgreSQL does).
        ConnectionError: If the database cannot be reached or queried.
    """
    if profile.dialect != Dialect.POSTGRESQL:
        raise UnsupportedOperationError(
            "Live introspection is only available for PostgreSQL profiles; "
            "use a snapshot for other dialects",
            dialect=profile.dialect,
        )

    url = resolve_url(profile)
    try:
        async with SchemaIntrospector(url, excluded_tables=excluded_tables) as introspector:
            await introspector.test_connection()
            return await introspector.introspect(profile.schema_name)
    except psycopg.Error as e:
        raise ConnectionError(f"Failed to connect to database: {e}") from e


def default_schema_for(profile: DatabaseProfile | None) -> str | None:
    """Schema to give models declared without one.

    ``public`` maps to None because introspected public tables are
    unqualified.
    """
    if profile is None or profile.schema_name == "public":
        return None
    return profile.schema_name


# ============================================================================
# Model loading
# ============================================================================


def _as_declaration(obj: Any) -> TableDeclaration | None:
    if isinstance(obj, TableDeclaration):
        return obj
    if isinstance(obj, type) and dataclasses.is_dataclass(obj):
        return declaration_from_dataclass(
            obj,
            table=getattr(obj, "__tablename__", None),
            schema=getattr(obj, "__schema__", None),
        )
    return None


def _collect(objects: Iterable[Any], source: str) -> list[TableDeclaration]:
    declarations = []
    for obj in objects:
        declaration = _as_declaration(obj)
        if declaration is None:
            raise TypeError(
                f"{source}: {obj!r} is neither a TableDeclaration nor a dataclass"
            )
        declarations.append(declaration)
    return declarations


def load_declarations(path: str) -> list[TableDeclaration]:
    """Load model declarations from ``module`` or ``module:attribute``.

    With an attribute, it may be a declaration, a dataclass, an iterable of
    either, or a callable returning one of those.  Without one, every
    module-level ``TableDeclaration`` and every dataclass defined in the
    module is taken, in definition order.  Dataclasses may set
    ``__tablename__`` and ``__schema__``.

    Raises:
        ImportError: If the module cannot be imported.
        AttributeError: If the attribute does not exist.
        TypeError: If the attribute holds something that is not a model.
    """
    module_name, _, attribute = path.partition(":")
    module = importlib.import_module(module_name)

    if attribute:
        target = getattr(module, attribute)
        if callable(target) and _as_declaration(target) is None:
            target = target()
        single = _as_declaration(target)
        if single is not None:
            return [single]
        return _collect(target, path)

    declarations = []
    for value in vars(module).values():
        if isinstance(value, TableDeclaration):
            declarations.append(value)
        elif (
            isinstance(value, type)
            and dataclasses.is_dataclass(value)
            and value.__module__ == module.__name__
        ):
            declarations.append(_as_declaration(value))

    logger.debug("Loaded %d declaration(s) from %s", len(declarations), path)
    return declarations
