"""Full CREATE script generation for a model.

Renders every table as if the database were empty, one commented block per
table, in input order.

Usage:
    from db_schema_sync.migration.script import write_create_script

    write_create_script(tables, "postgresql", "schema.sql", source="app.models")
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from db_schema_sync.ddl import DdlGenerator, Dialect, get_generator
from db_schema_sync.schema.models import Table

logger = logging.getLogger(__name__)


def generate_create_script(
    tables: Iterable[Table],
    dialect: "Dialect | str | DdlGenerator",
    source: str | None = None,
) -> str:
    """Return the CREATE script for ``tables`` on ``dialect``.

    Raises:
        UnsupportedOperationError: If a table uses an index feature the
            dialect lacks.
    """
    generator = get_generator(dialect)
    lines = [
        f"-- Generated DDL for {generator.dialect.value}",
        f"-- Generated at: {datetime.now():%Y-%m-%d %H:%M:%S}",
    ]
    if source:
        lines.append(f"-- Models: {source}")
    lines.append("")

    for table in tables:
        logger.debug("Generating DDL for table: %s", table.full_name)
        lines.append(f"-- Table: {table.full_name}")
        lines.append(generator.generate_create_table(table))
        lines.append("")

    return "\n".join(lines)


def write_create_script(
    tables: Iterable[Table],
    dialect: "Dialect | str | DdlGenerator",
    path: str | Path,
    source: str | None = None,
) -> Path:
    """Write ``generate_create_script()`` output to ``path``."""
    script_path = Path(path)
    script_path.parent.mkdir(parents=True, exist_ok=True)
    script_path.write_text(generate_create_script(tables, dialect, source), encoding="utf-8")
    logger.info("DDL script written to %s", script_path)
    return script_path
