"""Safety gate: combine the planned statements with the risk report.

Three mutually exclusive modes:

- ``normal``: abort with ``MigrationAbortedError`` when any finding is HIGH;
  nothing is executed.
- ``forced``: return the full statement list; findings are logged as warnings.
- ``dry-run``: return statements and findings; the plan is never executed.

Usage:
    from db_schema_sync.migration.gate import MigrationMode, prepare_migration

    plan = prepare_migration(current, target, "postgresql", MigrationMode.DRY_RUN)
    plan.write_script("migration.sql")
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from db_schema_sync.ddl import DdlGenerator, Dialect, get_generator
from db_schema_sync.errors import MigrationAbortedError
from db_schema_sync.migration.planner import plan_migration
from db_schema_sync.migration.risk import RiskReport, Severity, classify, log_findings
from db_schema_sync.schema.models import Table

logger = logging.getLogger(__name__)


class MigrationMode(str, Enum):
    NORMAL = "normal"
    FORCED = "forced"
    DRY_RUN = "dry-run"


class MigrationPlan(BaseModel):
    """Gated migration: ordered statements plus the risk report.

    Example:
        >>> plan = MigrationPlan(dialect=Dialect.SQLITE, mode=MigrationMode.DRY_RUN)
        >>> plan.should_execute
        False
    """

    dialect: Dialect
    mode: MigrationMode
    statements: list[str] = Field(default_factory=list)
    report: RiskReport = Field(default_factory=RiskReport)

    @property
    def should_execute(self) -> bool:
        """True if the statements are meant to run (never in dry-run)."""
        return self.mode != MigrationMode.DRY_RUN and bool(self.statements)

    @property
    def has_changes(self) -> bool:
        return bool(self.statements)

    def to_sql(self) -> str:
        """Render the statements as a reviewable script with a comment header."""
        header = [
            f"-- Migration script ({self.dialect.value}, mode: {self.mode.value})",
            f"-- Generated: {datetime.now(timezone.utc):%Y-%m-%d %H:%M:%S} UTC",
            f"-- Statements: {len(self.statements)}",
        ]
        for finding in self.report.findings:
            header.append(f"-- [{finding.severity.name}] {finding.description}")
        return "\n".join(header) + "\n\n" + "\n\n".join(self.statements) + "\n"

    def write_script(self, path: str | Path) -> Path:
        """Write ``to_sql()`` to ``path`` and return the resolved path."""
        script_path = Path(path)
        script_path.parent.mkdir(parents=True, exist_ok=True)
        script_path.write_text(self.to_sql(), encoding="utf-8")
        logger.info("Migration script written to %s", script_path)
        return script_path


def prepare_migration(
    current_tables: Iterable[Table],
    target_tables: Iterable[Table],
    dialect: "Dialect | str | DdlGenerator",
    mode: MigrationMode | str = MigrationMode.NORMAL,
) -> MigrationPlan:
    """Plan, classify and gate a migration.

    Args:
        current_tables: Tables as they exist now (may be empty).
        target_tables: Tables as declared.
        dialect: ``Dialect``, dialect name, or generator instance.
        mode: ``MigrationMode`` or its value (``"normal"``, ``"forced"``,
            ``"dry-run"``).

    Returns:
        ``MigrationPlan`` with the ordered statements and the full report.

    Raises:
        MigrationAbortedError: In normal mode when a HIGH finding exists.
            Raised before any statement is handed out.
    """
    mode = MigrationMode(mode)
    current_tables = list(current_tables)
    target_tables = list(target_tables)
    generator = get_generator(dialect)

    statements = plan_migration(current_tables, target_tables, generator)
    report = classify(current_tables, target_tables, generator)
    log_findings(report)

    if mode == MigrationMode.NORMAL and report.requires_confirmation:
        logger.error(
            "Migration aborted: %d high-risk finding(s)", report.count(Severity.HIGH)
        )
        raise MigrationAbortedError(report)

    if mode == MigrationMode.FORCED and report.requires_confirmation:
        logger.warning("Forced mode: executing despite high-risk findings")

    logger.info(
        "Migration prepared: %d statement(s), mode %s", len(statements), mode.value
    )
    return MigrationPlan(
        dialect=generator.dialect,
        mode=mode,
        statements=statements,
        report=report,
    )
