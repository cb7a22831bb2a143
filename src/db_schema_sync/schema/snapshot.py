"""JSON snapshots of a table list.

A snapshot captures the "current" schema (usually from the introspector)
so a migration can be planned later without a live connection.

Usage:
    from db_schema_sync.schema.snapshot import load_snapshot, save_snapshot

    save_snapshot(tables, "snapshots/prod.json", metadata={"profile": "prod"})
    current = load_snapshot("snapshots/prod.json")
"""

import json
import logging
from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from db_schema_sync.schema.models import Table

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0"

_TABLES = TypeAdapter(list[Table])


def save_snapshot(
    tables: Iterable[Table],
    path: str | Path,
    metadata: dict[str, Any] | None = None,
) -> Path:
    """Write ``tables`` to ``path`` as JSON.

    Non-JSON default values (datetimes, UUIDs, bytes) are stored in their
    JSON form and load back as strings.

    Args:
        tables: Tables to capture.
        path: Output file; parent directories are created.
        metadata: Optional extra fields merged into the ``metadata`` section.

    Returns:
        The written path.
    """
    tables = list(tables)
    data: dict[str, Any] = {
        "metadata": {
            "created_at": datetime.now().isoformat(),
            "version": SNAPSHOT_VERSION,
            "table_count": len(tables),
        },
        "tables": _TABLES.dump_python(tables, mode="json", by_alias=True),
    }
    if metadata:
        data["metadata"].update(metadata)

    snapshot_path = Path(path)
    snapshot_path.parent.mkdir(parents=True, exist_ok=True)
    with open(snapshot_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, default=str)

    logger.info("Snapshot of %d table(s) written to %s", len(tables), snapshot_path)
    return snapshot_path


def load_snapshot(path: str | Path) -> list[Table]:
    """Load the tables from a snapshot file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid JSON, has an unsupported
            version, or holds invalid table data.
    """
    snapshot_path = Path(path)
    if not snapshot_path.exists():
        raise FileNotFoundError(f"Snapshot not found: {snapshot_path}")

    try:
        with open(snapshot_path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid snapshot JSON in {snapshot_path}: {e}") from e

    if not isinstance(data, dict) or "tables" not in data:
        raise ValueError(f"Snapshot {snapshot_path} is missing the 'tables' key")

    version = data.get("metadata", {}).get("version")
    if version != SNAPSHOT_VERSION:
        raise ValueError(
            f"Unsupported snapshot version '{version}' (expected '{SNAPSHOT_VERSION}')"
        )

    try:
        tables = _TABLES.validate_python(data["tables"])
    except ValidationError as e:
        raise ValueError(f"Invalid table data in {snapshot_path}: {e}") from e

    logger.debug("Loaded %d table(s) from %s", len(tables), snapshot_path)
    return tables
