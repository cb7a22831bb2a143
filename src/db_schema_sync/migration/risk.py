"""Data-loss risk classification.

Re-walks the same diff the planner uses and grades every destructive change:

- HIGH: table drop, column drop, narrowing or lossy type change, length
  reduction (including unbounded to bounded), precision/scale reduction.
- MEDIUM: nullable to NOT NULL without a default, same-family type change
  with a different encoding, any other unrecognized type change.
- LOW: type widening (recorded for visibility).

New tables and columns, length or precision increases and NOT NULL to
nullable produce no finding.

Usage:
    from db_schema_sync.migration.risk import classify

    report = classify(current_tables, target_tables)
    if report.requires_confirmation:
        print(report.format_report())
"""

import logging
import re
from collections.abc import Iterable
from enum import Enum, IntEnum
from typing import NamedTuple

from pydantic import BaseModel, Field

from db_schema_sync.ddl import DdlGenerator, Dialect, get_generator
from db_schema_sync.schema.comparator import ColumnChange, diff_schemas
from db_schema_sync.schema.models import Column, SemanticType, Table

logger = logging.getLogger(__name__)

DEFAULT_TEXT_LENGTH = 255
DEFAULT_DECIMAL = (18, 2)


# ============================================================================
# Findings
# ============================================================================


class Severity(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3


class RiskKind(str, Enum):
    TABLE_DROP = "table_drop"
    COLUMN_DROP = "column_drop"
    TYPE_CHANGE = "type_change"
    LENGTH_REDUCTION = "length_reduction"
    PRECISION_REDUCTION = "precision_reduction"
    NULLABILITY_CHANGE = "nullability_change"


class RiskFinding(BaseModel):
    """One graded change."""

    severity: Severity
    kind: RiskKind
    description: str
    table: str
    column: str | None = None
    details: str | None = None


class RiskReport(BaseModel):
    """Ordered findings for one migration.

    Example:
        >>> RiskReport().requires_confirmation
        False
        >>> RiskReport().format_report()
        'No data-loss risks detected'
    """

    findings: list[RiskFinding] = Field(default_factory=list)

    @property
    def requires_confirmation(self) -> bool:
        """True if any finding is HIGH."""
        return self.has_high_risk

    @property
    def has_high_risk(self) -> bool:
        return any(f.severity == Severity.HIGH for f in self.findings)

    @property
    def has_medium_risk(self) -> bool:
        return any(f.severity == Severity.MEDIUM for f in self.findings)

    def count(self, severity: Severity) -> int:
        return sum(1 for f in self.findings if f.severity == severity)

    def for_column(self, table: str, column: str) -> list[RiskFinding]:
        return [f for f in self.findings if f.table == table and f.column == column]

    def format_report(self) -> str:
        """Format findings as a human-readable report, highest severity first."""
        if not self.findings:
            return "No data-loss risks detected"

        lines = [f"Data-loss risks ({len(self.findings)}):"]
        for finding in sorted(self.findings, key=lambda f: -f.severity):
            lines.append(f"  [{finding.severity.name}] {finding.description}")
            if finding.details:
                lines.append(f"      {finding.details}")

        if self.requires_confirmation:
            lines.append("\n  High-risk operations present: confirmation required")
        return "\n".join(lines)


# ============================================================================
# Type signatures
# ============================================================================


class TypeSignature(NamedTuple):
    """Type identity used for classification.

    ``semantic`` is None when a raw native type is not recognized.
    ``encoding`` is the normalized native base name, or None for columns
    without a raw override.
    """

    semantic: SemanticType | None
    encoding: str | None


_NATIVE_TYPES: dict[str, SemanticType] = {
    "BOOLEAN": SemanticType.BOOLEAN,
    "BOOL": SemanticType.BOOLEAN,
    "BIT": SemanticType.BOOLEAN,
    "TINYINT": SemanticType.INT8,
    "TINYINT UNSIGNED": SemanticType.UINT8,
    "SMALLINT": SemanticType.INT16,
    "INT2": SemanticType.INT16,
    "SMALLINT UNSIGNED": SemanticType.UINT16,
    "INT": SemanticType.INT32,
    "INTEGER": SemanticType.INT32,
    "INT4": SemanticType.INT32,
    "MEDIUMINT": SemanticType.INT32,
    "SERIAL": SemanticType.INT32,
    "INT UNSIGNED": SemanticType.UINT32,
    "INTEGER UNSIGNED": SemanticType.UINT32,
    "BIGINT": SemanticType.INT64,
    "INT8": SemanticType.INT64,
    "BIGSERIAL": SemanticType.INT64,
    "BIGINT UNSIGNED": SemanticType.UINT64,
    "REAL": SemanticType.FLOAT32,
    "FLOAT4": SemanticType.FLOAT32,
    "FLOAT": SemanticType.FLOAT64,
    "FLOAT8": SemanticType.FLOAT64,
    "DOUBLE": SemanticType.FLOAT64,
    "DOUBLE PRECISION": SemanticType.FLOAT64,
    "DECIMAL": SemanticType.DECIMAL,
    "NUMERIC": SemanticType.DECIMAL,
    "MONEY": SemanticType.DECIMAL,
    "DATE": SemanticType.DATETIME,
    "DATETIME": SemanticType.DATETIME,
    "DATETIME2": SemanticType.DATETIME,
    "SMALLDATETIME": SemanticType.DATETIME,
    "TIMESTAMP": SemanticType.DATETIME,
    "TIMESTAMP WITHOUT TIME ZONE": SemanticType.DATETIME,
    "TIMESTAMPTZ": SemanticType.DATETIME_OFFSET,
    "TIMESTAMP WITH TIME ZONE": SemanticType.DATETIME_OFFSET,
    "DATETIMEOFFSET": SemanticType.DATETIME_OFFSET,
    "INTERVAL": SemanticType.DURATION,
    "TIME": SemanticType.DURATION,
    "UUID": SemanticType.UUID,
    "UNIQUEIDENTIFIER": SemanticType.UUID,
    "CHAR": SemanticType.TEXT,
    "NCHAR": SemanticType.TEXT,
    "CHARACTER": SemanticType.TEXT,
    "VARCHAR": SemanticType.TEXT,
    "NVARCHAR": SemanticType.TEXT,
    "CHARACTER VARYING": SemanticType.TEXT,
    "TEXT": SemanticType.TEXT,
    "NTEXT": SemanticType.TEXT,
    "TINYTEXT": SemanticType.TEXT,
    "MEDIUMTEXT": SemanticType.TEXT,
    "LONGTEXT": SemanticType.TEXT,
    "CITEXT": SemanticType.TEXT,
    "BYTEA": SemanticType.BINARY,
    "BINARY": SemanticType.BINARY,
    "VARBINARY": SemanticType.BINARY,
    "BLOB": SemanticType.BINARY,
    "MEDIUMBLOB": SemanticType.BINARY,
    "LONGBLOB": SemanticType.BINARY,
    "IMAGE": SemanticType.BINARY,
}

_UNBOUNDED_NATIVE = frozenset(
    {"TEXT", "NTEXT", "MEDIUMTEXT", "LONGTEXT", "CITEXT", "BYTEA", "BLOB", "MEDIUMBLOB",
     "LONGBLOB", "IMAGE"}
)

_PARAMS = re.compile(r"\(([^)]*)\)")


def native_base_name(native_type: str) -> str:
    """Normalize a native type name: upper case, parameters removed.

    Examples:
        >>> native_base_name("nvarchar(200)")
        'NVARCHAR'
        >>> native_base_name("int(11) unsigned")
        'INT UNSIGNED'
    """
    return " ".join(_PARAMS.sub("", native_type).upper().split())


def type_signature(column: Column) -> TypeSignature:
    if column.native_type and column.native_type.strip():
        base = native_base_name(column.native_type)
        return TypeSignature(_NATIVE_TYPES.get(base), base)
    return TypeSignature(column.semantic_type, None)


def _effective_length(column: Column, signature: TypeSignature) -> float:
    if column.max_length is not None:
        return float("inf") if column.is_unbounded else column.max_length
    if signature.encoding is not None:
        match = _PARAMS.search(column.native_type or "")
        if match:
            arg = match.group(1).strip().upper()
            if arg == "MAX":
                return float("inf")
            if arg.isdigit():
                return int(arg)
        if signature.encoding in _UNBOUNDED_NATIVE:
            return float("inf")
    return DEFAULT_TEXT_LENGTH


def _effective_precision(column: Column) -> tuple[int, int]:
    if column.precision is None:
        return DEFAULT_DECIMAL
    return column.precision, column.scale or 0


def _decimal_bounds(column: Column, signature: TypeSignature) -> tuple[int, int] | None:
    """``(precision, scale)`` of a decimal column; None when it is unbounded.

    A raw ``NUMERIC`` without parameters is unbounded (PostgreSQL).
    """
    if column.precision is not None:
        return column.precision, column.scale or 0
    if signature.encoding is None:
        return DEFAULT_DECIMAL
    match = _PARAMS.search(column.native_type or "")
    if not match:
        return None
    parts = [p.strip() for p in match.group(1).split(",")]
    if not parts[0].isdigit():
        return None
    scale = int(parts[1]) if len(parts) > 1 and parts[1].isdigit() else 0
    return int(parts[0]), scale


# ============================================================================
# Type change rules
# ============================================================================

_INT_WIDTH: dict[SemanticType, int] = {
    SemanticType.INT8: 1,
    SemanticType.UINT8: 1,
    SemanticType.INT16: 2,
    SemanticType.UINT16: 2,
    SemanticType.INT32: 4,
    SemanticType.UINT32: 4,
    SemanticType.INT64: 8,
    SemanticType.UINT64: 8,
    SemanticType.ENUM: 4,
}
_UNSIGNED = frozenset(
    {SemanticType.UINT8, SemanticType.UINT16, SemanticType.UINT32, SemanticType.UINT64}
)
_FLOATS = frozenset({SemanticType.FLOAT32, SemanticType.FLOAT64})
_FRACTIONAL = _FLOATS | {SemanticType.DECIMAL}
_TEXT_LOSSY_SOURCES = frozenset(
    {SemanticType.DATETIME, SemanticType.DATETIME_OFFSET, SemanticType.UUID}
)
# Decimal digits needed to hold every value of an integer type
_INT_DIGITS: dict[SemanticType, int] = {
    SemanticType.INT8: 3,
    SemanticType.UINT8: 3,
    SemanticType.INT16: 5,
    SemanticType.UINT16: 5,
    SemanticType.INT32: 10,
    SemanticType.UINT32: 10,
    SemanticType.INT64: 19,
    SemanticType.UINT64: 20,
    SemanticType.ENUM: 10,
}


def _integer_change(a: SemanticType, b: SemanticType) -> tuple[Severity, str] | None:
    width_a, width_b = _INT_WIDTH[a], _INT_WIDTH[b]
    unsigned_a, unsigned_b = a in _UNSIGNED, b in _UNSIGNED

    if width_b < width_a:
        return Severity.HIGH, "integer narrowing; out-of-range values are lost"
    if unsigned_a != unsigned_b:
        if width_a == width_b:
            return Severity.MEDIUM, "signedness change at the same width"
        if not unsigned_a:
            return Severity.MEDIUM, "signed to unsigned; negative values are lost"
    if width_b > width_a:
        return Severity.LOW, "integer widening"
    return None


def type_change_risk(a: SemanticType, b: SemanticType) -> tuple[Severity, str] | None:
    """Grade a semantic type change ``a -> b``; None when it is a no-op."""
    if a == b:
        return None
    if a in _INT_WIDTH and b in _INT_WIDTH:
        return _integer_change(a, b)
    if a in _FRACTIONAL and b in _INT_WIDTH:
        return Severity.HIGH, "fractional values are truncated to integers"
    if a == SemanticType.FLOAT64 and b == SemanticType.FLOAT32:
        return Severity.HIGH, "double to single precision"
    if a == SemanticType.FLOAT32 and b == SemanticType.FLOAT64:
        return Severity.LOW, "floating-point widening"
    if a in _FRACTIONAL and b in _FRACTIONAL:
        return Severity.MEDIUM, "decimal and floating point use different encodings"
    if a in _INT_WIDTH and b in _FLOATS:
        return Severity.MEDIUM, "integer to floating point may round large values"
    if a in _INT_WIDTH and b == SemanticType.DECIMAL:
        return Severity.LOW, "integer to decimal widening"
    if a == SemanticType.BOOLEAN and b in _INT_WIDTH:
        return Severity.LOW, "boolean to integer widening"
    if a == SemanticType.TEXT:
        return Severity.HIGH, "text values may not convert"
    if a == SemanticType.BINARY:
        return Severity.HIGH, "binary values may not convert"
    if a in _TEXT_LOSSY_SOURCES and b == SemanticType.TEXT:
        return Severity.HIGH, f"{a.value} values lose their type when stored as text"
    if {a, b} == {SemanticType.DATETIME, SemanticType.DATETIME_OFFSET}:
        return Severity.MEDIUM, "time-zone offset is added or dropped"
    return Severity.MEDIUM, "unrecognized type change"


def decimal_target_risk(
    source: SemanticType, bounds: tuple[int, int] | None
) -> tuple[Severity, str] | None:
    """Grade a numeric change into a decimal of ``bounds``.

    Returns HIGH when the decimal cannot hold the source range: an integer
    needing more whole digits than ``precision - scale`` leaves, or any
    floating-point source into a bounded decimal.  None when the decimal is
    large enough (or unbounded), leaving ``type_change_risk`` to decide.
    """
    if bounds is None:
        return None
    precision, scale = bounds
    if source in _INT_DIGITS and precision - scale < _INT_DIGITS[source]:
        return (
            Severity.HIGH,
            f"{source.value} needs {_INT_DIGITS[source]} digits but "
            f"decimal({precision},{scale}) holds {precision - scale}; "
            "out-of-range values are lost",
        )
    if source in _FLOATS:
        return (
            Severity.HIGH,
            f"floating-point values exceed decimal({precision},{scale}) range and scale",
        )
    return None


# ============================================================================
# Classification
# ============================================================================


class _Classifier:
    def __init__(self, generator: DdlGenerator | None) -> None:
        self.generator = generator
        self.findings: list[RiskFinding] = []

    def type_label(self, column: Column) -> str:
        if self.generator is not None:
            return self.generator.map_type(column)
        return column.native_type or column.semantic_type.value

    def add(
        self,
        severity: Severity,
        kind: RiskKind,
        description: str,
        table: str,
        column: str | None = None,
        details: str | None = None,
    ) -> None:
        self.findings.append(
            RiskFinding(
                severity=severity,
                kind=kind,
                description=description,
                table=table,
                column=column,
                details=details,
            )
        )

    def drop_table(self, table: Table) -> None:
        self.add(
            Severity.HIGH,
            RiskKind.TABLE_DROP,
            f"Table '{table.full_name}' will be dropped; all rows will be lost",
            table.full_name,
            details=f"Table has {len(table.columns)} column(s)",
        )

    def drop_column(self, table: str, column: Column) -> None:
        self.add(
            Severity.HIGH,
            RiskKind.COLUMN_DROP,
            f"Column '{table}.{column.name}' will be dropped; all data in it will be lost",
            table,
            column.name,
            details=f"Column type: {self.type_label(column)}",
        )

    def change_column(self, table: str, change: ColumnChange) -> None:
        current, target = change.current, change.target
        qualified = f"{table}.{target.name}"
        sig_a, sig_b = type_signature(current), type_signature(target)
        types = f"{self.type_label(current)} -> {self.type_label(target)}"

        if sig_a.semantic is None or sig_b.semantic is None:
            if sig_a.encoding != sig_b.encoding or sig_a.semantic != sig_b.semantic:
                self.add(
                    Severity.MEDIUM,
                    RiskKind.TYPE_CHANGE,
                    f"Column '{qualified}' type changing ({types}): unrecognized type change",
                    table,
                    target.name,
                    details=types,
                )
        elif sig_a.semantic != sig_b.semantic:
            graded = type_change_risk(sig_a.semantic, sig_b.semantic)
            if sig_b.semantic == SemanticType.DECIMAL:
                bounds = _decimal_bounds(target, sig_b)
                graded = decimal_target_risk(sig_a.semantic, bounds) or graded
            if graded is not None:
                severity, reason = graded
                self.add(
                    severity,
                    RiskKind.TYPE_CHANGE,
                    f"Column '{qualified}' type changing ({types}): {reason}",
                    table,
                    target.name,
                    details=types,
                )
        elif sig_a.encoding and sig_b.encoding and sig_a.encoding != sig_b.encoding:
            self.add(
                Severity.MEDIUM,
                RiskKind.TYPE_CHANGE,
                f"Column '{qualified}' type changing ({types}): same family, different encoding",
                table,
                target.name,
                details=types,
            )

        same_family = sig_a.semantic is not None and sig_a.semantic == sig_b.semantic
        if same_family and sig_a.semantic in (SemanticType.TEXT, SemanticType.BINARY):
            self._check_length(table, current, target, sig_a, sig_b)
        if same_family and sig_a.semantic == SemanticType.DECIMAL:
            self._check_precision(table, current, target)

        if current.nullable and not target.nullable and not target.has_default:
            self.add(
                Severity.MEDIUM,
                RiskKind.NULLABILITY_CHANGE,
                f"Column '{qualified}' changing from nullable to NOT NULL without a "
                "default; rows holding NULL will fail",
                table,
                target.name,
                details="Add a default or update NULL values before migrating",
            )

    def _check_length(
        self,
        table: str,
        current: Column,
        target: Column,
        sig_a: TypeSignature,
        sig_b: TypeSignature,
    ) -> None:
        before = _effective_length(current, sig_a)
        after = _effective_length(target, sig_b)
        if after < before:
            shown = "unbounded" if before == float("inf") else str(int(before))
            self.add(
                Severity.HIGH,
                RiskKind.LENGTH_REDUCTION,
                f"Column '{table}.{target.name}' max length reducing from {shown} "
                f"to {int(after)}; data may be truncated",
                table,
                target.name,
                details=f"Length change: {shown} -> {int(after)}",
            )

    def _check_precision(self, table: str, current: Column, target: Column) -> None:
        p_a, s_a = _effective_precision(current)
        p_b, s_b = _effective_precision(target)
        if p_b < p_a or s_b < s_a:
            self.add(
                Severity.HIGH,
                RiskKind.PRECISION_REDUCTION,
                f"Column '{table}.{target.name}' precision/scale reducing from "
                f"({p_a},{s_a}) to ({p_b},{s_b}); numeric data may be truncated",
                table,
                target.name,
                details=f"Precision: {p_a},{s_a} -> {p_b},{s_b}",
            )


def classify(
    current_tables: Iterable[Table],
    target_tables: Iterable[Table],
    dialect: "Dialect | str | DdlGenerator | None" = None,
) -> RiskReport:
    """Grade every change between ``current_tables`` and ``target_tables``.

    Args:
        current_tables: Tables as they exist now (may be empty).
        target_tables: Tables as declared.
        dialect: Optional dialect.  When given, columns are matched with the
            same native-type comparison the planner uses and findings show
            native type names.

    Returns:
        ``RiskReport``; findings follow the diff walk (altered tables in
        target order, then dropped tables in current order).

    Raises:
        ValueError: If either list repeats a fully-qualified table name.
    """
    generator = get_generator(dialect) if dialect is not None else None
    type_mapper = generator.map_type if generator is not None else None
    diff = diff_schemas(current_tables, target_tables, type_mapper)

    classifier = _Classifier(generator)
    for delta in diff.altered_tables:
        table = delta.target.full_name
        for change in delta.changed_columns:
            classifier.change_column(table, change)
        for column in delta.dropped_columns:
            classifier.drop_column(table, column)
    for table in diff.dropped_tables:
        classifier.drop_table(table)

    return RiskReport(findings=classifier.findings)


def log_findings(report: RiskReport) -> None:
    """Log each finding: warning for MEDIUM/HIGH, info for LOW."""
    if not report.findings:
        logger.info("No data-loss risks detected")
        return

    for finding in sorted(report.findings, key=lambda f: -f.severity):
        level = logging.INFO if finding.severity == Severity.LOW else logging.WARNING
        logger.log(level, "%s risk: %s", finding.severity.name, finding.description)
        if finding.details:
            logger.log(level, "  Details: %s", finding.details)
