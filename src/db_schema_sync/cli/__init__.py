"""CLI module for schema generation, validation and migration.

Provides commands to render DDL for a model, validate it against a dialect,
plan and apply migrations against a live profile or a snapshot, and capture
snapshots.

Usage:
    db-schema-sync generate --models app.models --dialect postgresql --output schema.sql
    db-schema-sync validate --models app.models --dialect mysql
    db-schema-sync plan --models app.models --current snapshots/prod.json --dialect postgresql
    DB_PROFILE=local db-schema-sync sync --models app.models --dry-run
    db-schema-sync snapshot --profile local --output snapshots/local.json
    db-schema-sync profiles

Commands:
    generate  - Write the full CREATE script for a model
    validate  - Check a model against a dialect's capabilities
    plan      - Show the migration and its risks without executing
    sync      - Introspect, gate and apply a migration
    snapshot  - Save a JSON snapshot of a live schema or a model
    profiles  - List configured profiles
"""

import argparse
import asyncio
import logging
import os
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from db_schema_sync.analysis.analyzer import analyze_models
from db_schema_sync.analysis.validator import validate_models
from db_schema_sync.config.loader import DEFAULT_CONFIG_FILE, load_config
from db_schema_sync.config.models import DatabaseProfile, SchemaSyncConfig
from db_schema_sync.ddl import Dialect, resolve_dialect
from db_schema_sync.errors import (
    MigrationAbortedError,
    SchemaSyncError,
    UnsupportedOperationError,
)
from db_schema_sync.factory import (
    default_schema_for,
    get_active_profile,
    get_executor,
    introspect_profile,
    load_declarations,
)
from db_schema_sync.migration.executor import apply_migration
from db_schema_sync.migration.gate import MigrationMode, MigrationPlan, prepare_migration
from db_schema_sync.migration.risk import RiskReport, Severity
from db_schema_sync.migration.script import write_create_script
from db_schema_sync.schema.models import Table as SchemaTable
from db_schema_sync.schema.snapshot import load_snapshot, save_snapshot

console = Console()

_SEVERITY_STYLES = {
    Severity.HIGH: "bold red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "dim",
}

# Errors reported as a one-line message with exit code 1
_USER_ERRORS = (
    SchemaSyncError,
    FileNotFoundError,
    ValueError,
    ImportError,
    AttributeError,
    TypeError,
    ConnectionError,
)


# ============================================================================
# Helpers
# ============================================================================


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_config(args: argparse.Namespace, required: bool = False) -> SchemaSyncConfig:
    """Load the config file; an absent file yields an empty config unless ``required``.

    Raises:
        FileNotFoundError: If ``required`` and the file does not exist.
        ValueError: If the file is malformed.
    """
    path = getattr(args, "config", None)
    try:
        return load_config(path)
    except FileNotFoundError:
        if required or path:
            raise
        return SchemaSyncConfig()


def _load_target(
    args: argparse.Namespace,
    config: SchemaSyncConfig,
    default_schema: str | None = None,
) -> list[SchemaTable]:
    """Analyze the models named by ``--models`` (or ``[migration] models``).

    Raises:
        ValueError: If no model path is given.
        ModelValidationError: If a declaration is malformed.
    """
    models = getattr(args, "models", None) or config.migration.models
    if not models:
        raise ValueError(
            f"No models given. Pass --models or set [migration] models in {DEFAULT_CONFIG_FILE}"
        )
    declarations = load_declarations(models)
    return analyze_models(declarations, default_schema)


def _resolve_profile(args: argparse.Namespace) -> tuple[str, DatabaseProfile]:
    return get_active_profile(
        profile_name=getattr(args, "profile", None),
        env_prefix=getattr(args, "env_prefix", ""),
        config_path=getattr(args, "config", None),
    )


def _print_error(message: object) -> None:
    console.print(f"[bold red]x[/bold red] {message}", highlight=False)


def _print_report(report: RiskReport) -> None:
    """Render findings as a table, highest severity first."""
    if not report.findings:
        console.print("[green]No data-loss risks detected[/green]")
        return

    table = Table(title="Data-Loss Risks", show_header=True, header_style="bold")
    table.add_column("Severity")
    table.add_column("Kind", style="dim")
    table.add_column("Table")
    table.add_column("Column")
    table.add_column("Description")

    for finding in sorted(report.findings, key=lambda f: -f.severity):
        style = _SEVERITY_STYLES[finding.severity]
        table.add_row(
            f"[{style}]{finding.severity.name}[/{style}]",
            finding.kind.value,
            finding.table,
            finding.column or "",
            finding.description,
        )
    console.print(table)


def _print_plan(plan: MigrationPlan) -> None:
    if not plan.has_changes:
        console.print("[bold green]v[/bold green] Schema is up to date - nothing to do")
        return
    console.print()
    console.print(f"[bold]Statements ({len(plan.statements)}):[/bold]")
    for sql in plan.statements:
        console.print(sql, markup=False, highlight=False)
        console.print()


# ============================================================================
# Async command implementations
# ============================================================================


async def _current_tables(
    args: argparse.Namespace,
) -> tuple[list[SchemaTable], Dialect, DatabaseProfile | None]:
    """Resolve the "current" side from ``--current`` or a profile."""
    dialect_arg = getattr(args, "dialect", None)

    if getattr(args, "current", None):
        if not dialect_arg:
            raise ValueError("--dialect is required with --current")
        return load_snapshot(args.current), resolve_dialect(dialect_arg), None

    name, profile = _resolve_profile(args)
    dialect = resolve_dialect(dialect_arg) if dialect_arg else profile.dialect
    console.print(f"Introspecting profile: [bold cyan]{name}[/bold cyan]", style="dim")
    return await introspect_profile(profile), dialect, profile


async def _async_plan(args: argparse.Namespace) -> int:
    """Async implementation for plan command.

    Args:
        args: Parsed arguments with models, dialect, current, profile,
            output and env_prefix.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = _load_config(args)
        current, dialect, profile = await _current_tables(args)
        target = _load_target(args, config, default_schema_for(profile))
        plan = prepare_migration(current, target, dialect, MigrationMode.DRY_RUN)
    except _USER_ERRORS as e:
        _print_error(e)
        return 1

    _print_report(plan.report)
    _print_plan(plan)

    if args.output and plan.has_changes:
        path = plan.write_script(args.output)
        console.print(f"Script written to [cyan]{path}[/cyan]")
    return 0


async def _async_sync(args: argparse.Namespace) -> int:
    """Async implementation for sync command.

    Introspects the profile, gates the migration by mode and applies it.
    ``--force`` and ``--dry-run`` override ``[migration] default_mode``.

    Returns:
        0 on success, 1 on failure or abort.
    """
    if args.force and args.dry_run:
        _print_error("--force and --dry-run are mutually exclusive")
        return 1

    try:
        config = _load_config(args, required=True)
        name, profile = _resolve_profile(args)
        target = _load_target(args, config, default_schema_for(profile))

        console.print(f"Introspecting profile: [bold cyan]{name}[/bold cyan]", style="dim")
        current = await introspect_profile(profile)
    except _USER_ERRORS as e:
        _print_error(e)
        return 1

    if args.force:
        mode = MigrationMode.FORCED
    elif args.dry_run:
        mode = MigrationMode.DRY_RUN
    else:
        mode = config.migration.default_mode

    try:
        plan = prepare_migration(current, target, profile.dialect, mode)
    except MigrationAbortedError as e:
        _print_report(e.report)
        console.print()
        _print_error(e)
        return 1
    except UnsupportedOperationError as e:
        _print_error(e)
        return 1

    _print_report(plan.report)
    _print_plan(plan)

    output = args.output or config.migration.output
    if output and plan.has_changes:
        path = plan.write_script(output)
        console.print(f"Script written to [cyan]{path}[/cyan]")

    if not plan.should_execute:
        if plan.mode == MigrationMode.DRY_RUN and plan.has_changes:
            console.print("[dim]Dry run: nothing was executed.[/dim]")
        return 0

    console.print("[bold]Applying migration...[/bold]")
    executor = await get_executor(
        profile_name=name,
        env_prefix=args.env_prefix,
        config_path=args.config,
    )
    try:
        result = await apply_migration(executor, plan)
    except RuntimeError as e:
        _print_error(e)
        return 1
    finally:
        await executor.close()

    if result.success:
        console.print(
            f"[bold green]v Migration complete![/bold green] "
            f"{result.statements_executed}/{result.statements_total} statement(s) applied"
        )
        return 0

    _print_error(f"Migration failed: {result.error}")
    console.print(
        f"  Applied {result.statements_executed}/{result.statements_total} statement(s) "
        "before the failure"
    )
    if result.failed_statement:
        console.print("  Failed statement:")
        console.print(f"    {result.failed_statement}", markup=False, highlight=False)
    return 1


async def _async_snapshot(args: argparse.Namespace) -> int:
    """Async implementation for snapshot command.

    With ``--models`` the analyzed model is captured; otherwise the live
    schema of the active profile.
    """
    try:
        if args.models:
            config = _load_config(args)
            profile = _resolve_profile(args)[1] if args.profile else None
            tables = _load_target(args, config, default_schema_for(profile))
            metadata = {"source": args.models}
        else:
            name, profile = _resolve_profile(args)
            console.print(f"Introspecting profile: [bold cyan]{name}[/bold cyan]", style="dim")
            tables = await introspect_profile(profile)
            metadata = {"profile": name, "dialect": profile.dialect.value}
    except _USER_ERRORS as e:
        _print_error(e)
        return 1

    path = save_snapshot(tables, args.output, metadata=metadata)
    console.print(
        f"[bold green]v[/bold green] Snapshot of {len(tables)} table(s) written to "
        f"[cyan]{path}[/cyan]"
    )
    return 0


# ============================================================================
# Command handlers
# ============================================================================


def cmd_generate(args: argparse.Namespace) -> int:
    """Write the full CREATE script for a model.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        config = _load_config(args)
        tables = _load_target(args, config, args.schema)
        output = args.output or config.migration.output or "schema.sql"
        path = write_create_script(tables, args.dialect, output, source=args.models)
    except _USER_ERRORS as e:
        _print_error(e)
        return 1

    console.print(
        f"[bold green]v[/bold green] DDL for {len(tables)} table(s) written to "
        f"[cyan]{path}[/cyan]"
    )
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a model against a dialect.

    Returns:
        0 when valid (warnings allowed), 1 on errors.
    """
    try:
        config = _load_config(args)
        models = args.models or config.migration.models
        if not models:
            raise ValueError("No models given. Pass --models")
        declarations = load_declarations(models)
        report = validate_models(declarations, args.dialect)
    except _USER_ERRORS as e:
        _print_error(e)
        return 1

    if report.valid:
        console.print(
            f"[bold green]v[/bold green] {report.table_count} table(s) checked"
        )
    console.print(report.format_report(), markup=False, highlight=False)
    return 0 if report.valid else 1


def cmd_plan(args: argparse.Namespace) -> int:
    """Show the migration plan and its risks without executing.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_plan(args))


def cmd_sync(args: argparse.Namespace) -> int:
    """Introspect, gate and apply a migration.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_sync(args))


def cmd_snapshot(args: argparse.Namespace) -> int:
    """Save a JSON snapshot.

    Wraps the async implementation with ``asyncio.run()``.
    """
    return asyncio.run(_async_snapshot(args))


def cmd_profiles(args: argparse.Namespace) -> int:
    """List configured profiles.

    Reads only the local TOML config -- no database calls.

    Returns:
        0 on success, 1 if the config file is missing or invalid.
    """
    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    current = os.environ.get(f"{args.env_prefix}DB_PROFILE")

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Dialect")
    table.add_column("Schema")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        table.add_row(
            marker,
            f"[bold cyan]{name}[/bold cyan]" if name == current else name,
            profile.dialect.value,
            profile.schema_name,
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print("\n[bold green]*[/bold green] = active profile")
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="db-schema-sync",
        description="Schema synchronization and migration safety toolkit",
    )

    # Global options
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument(
        "--config",
        default=None,
        help=f"Path to config file (default: ./{DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    dialects = [d.value for d in Dialect]

    # generate command
    p_generate = subparsers.add_parser(
        "generate",
        help="Write the full CREATE script for a model",
    )
    p_generate.add_argument("--models", help="Model path: module or module:attribute")
    p_generate.add_argument("--dialect", required=True, choices=dialects)
    p_generate.add_argument("--schema", help="Schema for models declared without one")
    p_generate.add_argument("--output", "-o", help="Output file (default: schema.sql)")
    p_generate.set_defaults(func=cmd_generate)

    # validate command
    p_validate = subparsers.add_parser(
        "validate",
        help="Check a model against a dialect's capabilities",
    )
    p_validate.add_argument("--models", help="Model path: module or module:attribute")
    p_validate.add_argument("--dialect", required=True, choices=dialects)
    p_validate.set_defaults(func=cmd_validate)

    # plan command
    p_plan = subparsers.add_parser(
        "plan",
        help="Show the migration and its risks without executing",
    )
    p_plan.add_argument("--models", help="Model path: module or module:attribute")
    p_plan.add_argument("--dialect", choices=dialects, help="Default: the profile's dialect")
    source = p_plan.add_mutually_exclusive_group()
    source.add_argument("--current", help="Snapshot file holding the current schema")
    source.add_argument("--profile", help="Profile to introspect")
    p_plan.add_argument("--output", "-o", help="Write the migration script to this file")
    p_plan.set_defaults(func=cmd_plan)

    # sync command
    p_sync = subparsers.add_parser(
        "sync",
        help="Introspect, gate and apply a migration",
    )
    p_sync.add_argument("--models", help="Model path: module or module:attribute")
    p_sync.add_argument("--profile", help="Target profile (default: DB_PROFILE)")
    p_sync.add_argument(
        "--force",
        action="store_true",
        help="Apply even when high-risk operations are present",
    )
    p_sync.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be executed without making changes",
    )
    p_sync.add_argument("--output", "-o", help="Write the migration script to this file")
    p_sync.set_defaults(func=cmd_sync)

    # snapshot command
    p_snapshot = subparsers.add_parser(
        "snapshot",
        help="Save a JSON snapshot of a live schema or a model",
    )
    p_snapshot.add_argument("--profile", help="Profile to introspect")
    p_snapshot.add_argument("--models", help="Capture this model instead of a live schema")
    p_snapshot.add_argument("--output", "-o", required=True, help="Snapshot file")
    p_snapshot.set_defaults(func=cmd_snapshot)

    # profiles command
    p_profiles = subparsers.add_parser(
        "profiles",
        help="List configured profiles",
    )
    p_profiles.set_defaults(func=cmd_profiles)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
