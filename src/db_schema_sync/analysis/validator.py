"""Model validation against a dialect's capabilities.

Checks analyzed tables without generating a migration: index types and
index features the dialect lacks, identity columns, and dialect-specific
limitations.  Findings are collected rather than raised so a single run
reports every problem.

Usage:
    from db_schema_sync.analysis.validator import validate_models

    report = validate_models(declarations, "mysql")
    if not report.valid:
        print(report.format_report())
"""

import logging
from collections.abc import Iterable

from pydantic import BaseModel, Field

from db_schema_sync.analysis.analyzer import ModelAnalyzer
from db_schema_sync.analysis.declarations import TableDeclaration
from db_schema_sync.ddl import DdlGenerator, Dialect, get_generator
from db_schema_sync.errors import ModelValidationError, UnsupportedOperationError
from db_schema_sync.schema.models import (
    ConstraintType,
    IndexType,
    ReferentialAction,
    Table,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Result Models
# ============================================================================


class ValidationIssue(BaseModel):
    """A single validation problem.  Only ``error`` issues fail validation."""

    level: str  # "error" | "warning"
    message: str
    table: str | None = None


class ValidationReport(BaseModel):
    """Result of model validation.

    Example:
        >>> report = ValidationReport(dialect=Dialect.SQLITE)
        >>> report.valid
        True
        >>> report.format_report()
        'Models valid for sqlite'
    """

    dialect: Dialect
    table_count: int = 0
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.level == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.level == "warning"]

    @property
    def valid(self) -> bool:
        return not self.errors

    def format_report(self) -> str:
        """Format validation result as human-readable report."""
        if not self.issues:
            return f"Models valid for {self.dialect.value}"

        lines = [
            f"Models valid for {self.dialect.value} (with warnings):"
            if self.valid
            else f"Model validation failed for {self.dialect.value}:"
        ]
        if self.errors:
            lines.append(f"\n  Errors ({len(self.errors)}):")
            for issue in self.errors:
                lines.append(f"    - {issue.message}")
        if self.warnings:
            lines.append(f"\n  Warnings ({len(self.warnings)}):")
            for issue in self.warnings:
                lines.append(f"    - {issue.message}")
        return "\n".join(lines)


# ============================================================================
# Validation
# ============================================================================


def _validate_table(table: Table, generator: DdlGenerator) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    name = table.full_name

    def error(message: str) -> None:
        issues.append(ValidationIssue(level="error", message=message, table=name))

    def warning(message: str) -> None:
        issues.append(ValidationIssue(level="warning", message=message, table=name))

    for index in table.indexes:
        try:
            generator.check_index(index)
        except UnsupportedOperationError as e:
            error(f"{name}: {e}")

        if (
            index.index_type == IndexType.FULLTEXT
            and generator.dialect == Dialect.SQLSERVER
            and not table.primary_key_columns
        ):
            error(f"{name}: full-text index '{index.name}' requires a primary key")

    for column in table.columns:
        if column.identity and not column.semantic_type.is_integer and not column.native_type:
            warning(
                f"{name}: identity column '{column.name}' is not an integer type "
                f"({column.semantic_type.value})"
            )

    if table.schema_name and not generator.supports_schemas:
        warning(
            f"{name}: schema '{table.schema_name}' is ignored; "
            f"{generator.dialect.value} does not support schemas"
        )

    if generator.dialect == Dialect.MYSQL:
        keyed = set(table.primary_key_columns)
        keyed.update(i.column_names[0] for i in table.indexes if i.columns)
        for column in table.columns:
            if column.identity and column.name not in keyed:
                error(f"{name}: AUTO_INCREMENT column '{column.name}' must be a key")

    if generator.dialect == Dialect.SQLITE:
        for constraint in table.constraints:
            if constraint.constraint_type != ConstraintType.FOREIGN_KEY:
                continue
            if (
                constraint.on_delete != ReferentialAction.NO_ACTION
                or constraint.on_update != ReferentialAction.NO_ACTION
            ):
                warning(
                    f"{name}: foreign key '{constraint.name}' uses referential actions, "
                    "which SQLite enforces only with PRAGMA foreign_keys=ON"
                )

    return issues


def validate_tables(
    tables: Iterable[Table],
    dialect: "Dialect | str | DdlGenerator",
) -> ValidationReport:
    """Validate analyzed tables against ``dialect``."""
    generator = get_generator(dialect)
    tables = list(tables)
    report = ValidationReport(dialect=generator.dialect, table_count=len(tables))

    for table in tables:
        logger.debug("Validating table: %s", table.full_name)
        report.issues.extend(_validate_table(table, generator))

    for issue in report.issues:
        log = logger.error if issue.level == "error" else logger.warning
        log(issue.message)
    return report


def validate_models(
    declarations: Iterable[TableDeclaration],
    dialect: "Dialect | str | DdlGenerator",
    default_schema: str | None = None,
) -> ValidationReport:
    """Analyze ``declarations`` and validate the result against ``dialect``.

    A ``ModelValidationError`` from the analyzer is reported as an error
    issue rather than raised.
    """
    generator = get_generator(dialect)
    try:
        tables = ModelAnalyzer().analyze(declarations, default_schema)
    except ModelValidationError as e:
        logger.error("Model analysis failed: %s", e)
        return ValidationReport(
            dialect=generator.dialect,
            issues=[ValidationIssue(level="error", message=str(e), table=e.table)],
        )
    return validate_tables(tables, generator)
