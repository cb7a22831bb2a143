"""Migration planning, risk classification, gating and execution.

Usage:
    from db_schema_sync.migration import MigrationMode, prepare_migration

    plan = prepare_migration(current, target, "postgresql", MigrationMode.FORCED)
"""

from db_schema_sync.migration.executor import MigrationResult, apply_migration, synchronize
from db_schema_sync.migration.gate import MigrationMode, MigrationPlan, prepare_migration
from db_schema_sync.migration.planner import plan_migration, statements_for_diff
from db_schema_sync.migration.risk import (
    RiskFinding,
    RiskKind,
    RiskReport,
    Severity,
    classify,
    log_findings,
)
from db_schema_sync.migration.script import generate_create_script, write_create_script

__all__ = [
    # Planner
    "plan_migration",
    "statements_for_diff",
    # Risk
    "RiskFinding",
    "RiskKind",
    "RiskReport",
    "Severity",
    "classify",
    "log_findings",
    # Gate
    "MigrationMode",
    "MigrationPlan",
    "prepare_migration",
    # Executor
    "MigrationResult",
    "apply_migration",
    "synchronize",
    # Script
    "generate_create_script",
    "write_create_script",
]
