"""db-schema-sync: Schema synchronization with data-loss safety checks.

Analyzes declared models into an abstract schema, generates DDL for
PostgreSQL, SQL Server, MySQL and SQLite, plans migrations against a
current schema, and gates destructive changes by data-loss risk.

Usage:
    from db_schema_sync import analyze_models, prepare_migration, MigrationMode
    from db_schema_sync import SchemaIntrospector, AsyncSqlExecutor, apply_migration
    from db_schema_sync import TableDeclaration, FieldDeclaration, PrimaryKey
"""

__version__ = "0.1.0"

# Adapters
from db_schema_sync.adapters.base import DatabaseClient
from db_schema_sync.adapters.engine import AsyncSqlExecutor

# Analysis
from db_schema_sync.analysis.analyzer import ModelAnalyzer, analyze_models
from db_schema_sync.analysis.declarations import (
    ColumnOptions,
    FieldDeclaration,
    PrimaryKey,
    TableDeclaration,
    declaration_from_dataclass,
)
from db_schema_sync.analysis.validator import validate_models

# Config
from db_schema_sync.config.loader import load_config
from db_schema_sync.config.models import DatabaseProfile, SchemaSyncConfig

# DDL
from db_schema_sync.ddl import DdlGenerator, Dialect, get_generator

# Errors
from db_schema_sync.errors import (
    MigrationAbortedError,
    ModelValidationError,
    SchemaSyncError,
    UnsupportedOperationError,
)

# Factory
from db_schema_sync.factory import ProfileNotFoundError, get_executor, resolve_url

# Migration
from db_schema_sync.migration import (
    MigrationMode,
    MigrationPlan,
    MigrationResult,
    RiskReport,
    Severity,
    apply_migration,
    classify,
    plan_migration,
    prepare_migration,
    synchronize,
)

# Schema
from db_schema_sync.schema.comparator import diff_schemas
from db_schema_sync.schema.introspector import SchemaIntrospector
from db_schema_sync.schema.models import Column, Constraint, Index, SemanticType, Table
from db_schema_sync.schema.snapshot import load_snapshot, save_snapshot

__all__ = [
    # Adapters
    "DatabaseClient",
    "AsyncSqlExecutor",
    # Analysis
    "ModelAnalyzer",
    "analyze_models",
    "ColumnOptions",
    "FieldDeclaration",
    "PrimaryKey",
    "TableDeclaration",
    "declaration_from_dataclass",
    "validate_models",
    # Config
    "load_config",
    "DatabaseProfile",
    "SchemaSyncConfig",
    # DDL
    "DdlGenerator",
    "Dialect",
    "get_generator",
    # Errors
    "SchemaSyncError",
    "ModelValidationError",
    "UnsupportedOperationError",
    "MigrationAbortedError",
    # Factory
    "ProfileNotFoundError",
    "get_executor",
    "resolve_url",
    # Migration
    "MigrationMode",
    "MigrationPlan",
    "MigrationResult",
    "RiskReport",
    "Severity",
    "apply_migration",
    "classify",
    "plan_migration",
    "prepare_migration",
    "synchronize",
    # Schema
    "Column",
    "Constraint",
    "Index",
    "SemanticType",
    "Table",
    "diff_schemas",
    "SchemaIntrospector",
    "load_snapshot",
    "save_snapshot",
]
