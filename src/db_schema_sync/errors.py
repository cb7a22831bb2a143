"""Exception types raised by the schema synchronization engine.

All errors are raised synchronously at the point of detection and are never
retried internally.

Usage:
    from db_schema_sync.errors import MigrationAbortedError

    try:
        plan = prepare_migration(current, target, "postgresql")
    except MigrationAbortedError as e:
        print(e.report.format_report())
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from db_schema_sync.migration.risk import RiskReport


class SchemaSyncError(Exception):
    """Base class for all db-schema-sync errors."""

    pass


class ModelValidationError(SchemaSyncError):
    """Raised when a model declaration is malformed.

    Examples: duplicate composite primary-key order, an index group with
    inconsistent index types, a foreign key with an empty referenced table.
    The declaration must be fixed before re-running.
    """

    def __init__(self, message: str, table: str | None = None, field: str | None = None):
        self.table = table
        self.field = field
        super().__init__(message)


class UnsupportedOperationError(SchemaSyncError):
    """Raised when a requested index or DDL feature is not legal on a dialect."""

    def __init__(self, message: str, dialect: str | None = None):
        self.dialect = dialect
        super().__init__(message)


class MigrationAbortedError(SchemaSyncError):
    """Raised by the normal-mode safety gate when confirmation is required.

    Carries the full risk report so callers can display every finding.
    Recoverable by re-running in forced or dry-run mode.
    """

    def __init__(self, report: "RiskReport", message: str | None = None):
        self.report = report
        if message is None:
            high = sum(1 for f in report.findings if f.severity.name == "HIGH")
            message = (
                f"Migration aborted: {high} high-risk operation(s) detected. "
                "Use forced mode to override or dry-run to generate the script only."
            )
        super().__init__(message)
