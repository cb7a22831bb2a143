"""Schema comparison between a current and a target table list.

Pure logic -- no I/O, no database connections.  The diff produced here is
the single walk shared by the migration planner (which turns it into DDL)
and the risk classifier (which grades it for data loss).

Usage:
    from db_schema_sync.schema.comparator import diff_schemas

    diff = diff_schemas(current_tables, target_tables)
    for delta in diff.altered_tables:
        print(delta.target.full_name, [c.name for c in delta.added_columns])
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from db_schema_sync.schema.models import Column, Constraint, Index, Table

TypeMapper = Callable[[Column], str]


# ------------------------------------------------------------------
# Diff data classes
# ------------------------------------------------------------------


@dataclass(frozen=True)
class ColumnChange:
    """A column present on both sides whose definition differs."""

    current: Column
    target: Column

    @property
    def name(self) -> str:
        return self.target.name


@dataclass
class TableDelta:
    """Column, index and constraint differences for one table.

    Attributes:
        current: The table as it exists now.
        target: The table as declared.
        added_columns: Target-only columns, in target order.
        changed_columns: Columns on both sides whose definition differs.
        dropped_columns: Current-only columns, in current order.
        added_indexes: Indexes to create (new, or redefined under the same name).
        dropped_indexes: Indexes to drop (removed, or redefined).
        added_constraints: Non-PK and PK constraints to add.
        dropped_constraints: Constraints to drop.
    """

    current: Table
    target: Table
    added_columns: list[Column] = field(default_factory=list)
    changed_columns: list[ColumnChange] = field(default_factory=list)
    dropped_columns: list[Column] = field(default_factory=list)
    added_indexes: list[Index] = field(default_factory=list)
    dropped_indexes: list[Index] = field(default_factory=list)
    added_constraints: list[Constraint] = field(default_factory=list)
    dropped_constraints: list[Constraint] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        """True if anything differs between current and target."""
        return bool(
            self.added_columns
            or self.changed_columns
            or self.dropped_columns
            or self.added_indexes
            or self.dropped_indexes
            or self.added_constraints
            or self.dropped_constraints
        )

    @property
    def is_column_additive_only(self) -> bool:
        """True if the column delta consists only of added columns."""
        return not self.changed_columns and not self.dropped_columns

    @property
    def common_column_names(self) -> list[str]:
        """Columns present in both schemas, in current order."""
        target_names = {c.name for c in self.target.columns}
        return [c.name for c in self.current.columns if c.name in target_names]


@dataclass
class SchemaDiff:
    """Table-level differences, each bucket in input order."""

    created_tables: list[Table] = field(default_factory=list)
    altered_tables: list[TableDelta] = field(default_factory=list)
    dropped_tables: list[Table] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.created_tables or self.altered_tables or self.dropped_tables)


# ------------------------------------------------------------------
# Comparison
# ------------------------------------------------------------------


def index_tables(tables: Iterable[Table]) -> dict[str, Table]:
    """Map fully-qualified name to table, preserving order.

    Raises:
        ValueError: If two tables share a fully-qualified name.
    """
    result: dict[str, Table] = {}
    for table in tables:
        if table.full_name in result:
            raise ValueError(f"Duplicate table '{table.full_name}' in table list")
        result[table.full_name] = table
    return result


def _type_key(column: Column, type_mapper: TypeMapper | None) -> str:
    if type_mapper is not None:
        return type_mapper(column).upper()
    if column.native_type:
        return column.native_type.strip().upper()
    return column.semantic_type.value.upper()


def _sizes_differ(current: Column, target: Column, lenient: bool) -> bool:
    pairs = (
        (current.max_length, target.max_length),
        (current.precision, target.precision),
        (current.scale, target.scale),
    )
    for before, after in pairs:
        if before == after:
            continue
        # An unset size means the dialect default, already in the rendered type
        if lenient and (before is None or after is None):
            continue
        return True
    return False


def columns_differ(
    current: Column,
    target: Column,
    type_mapper: TypeMapper | None = None,
) -> bool:
    """Return True if any of type, length, precision, scale, nullability,
    identity or default differs.

    Args:
        current: Column as it exists now.
        target: Column as declared.
        type_mapper: Optional dialect type mapper.  When given, types are
            compared by their native rendering and a size set on only one
            side is not a change; otherwise types compare by raw override
            or semantic type and sizes must match exactly.
    """
    return (
        _type_key(current, type_mapper) != _type_key(target, type_mapper)
        or _sizes_differ(current, target, lenient=type_mapper is not None)
        or current.nullable != target.nullable
        or current.identity != target.identity
        or current.default != target.default
        or current.default_is_raw_sql != target.default_is_raw_sql
    )


def _diff_named(current: list, target: list) -> tuple[list, list]:
    """Diff two named-entity lists by name and value.

    Returns ``(added, dropped)``; an entity redefined under the same name
    appears in both.
    """
    current_by_name = {item.name: item for item in current}
    target_by_name = {item.name: item for item in target}

    added = [
        item for item in target
        if item.name not in current_by_name or current_by_name[item.name] != item
    ]
    dropped = [
        item for item in current
        if item.name not in target_by_name or target_by_name[item.name] != item
    ]
    return added, dropped


def diff_table(
    current: Table,
    target: Table,
    type_mapper: TypeMapper | None = None,
) -> TableDelta:
    """Compute the delta between two versions of the same table."""
    delta = TableDelta(current=current, target=target)
    current_columns = {c.name: c for c in current.columns}
    target_columns = {c.name: c for c in target.columns}

    for column in target.columns:
        existing = current_columns.get(column.name)
        if existing is None:
            delta.added_columns.append(column)
        elif columns_differ(existing, column, type_mapper):
            delta.changed_columns.append(ColumnChange(current=existing, target=column))

    delta.dropped_columns = [c for c in current.columns if c.name not in target_columns]

    delta.added_indexes, delta.dropped_indexes = _diff_named(current.indexes, target.indexes)
    delta.added_constraints, delta.dropped_constraints = _diff_named(
        current.constraints, target.constraints
    )
    return delta


def diff_schemas(
    current_tables: Iterable[Table],
    target_tables: Iterable[Table],
    type_mapper: TypeMapper | None = None,
) -> SchemaDiff:
    """Compare current and target table lists keyed by fully-qualified name.

    Returns:
        ``SchemaDiff`` with created tables (target order), altered tables
        with changes (target order) and dropped tables (current order).

    Raises:
        ValueError: If either list repeats a fully-qualified name.

    Examples:
        >>> users = Table(name="Users", columns=[Column(name="Id")])
        >>> diff_schemas([], [users]).created_tables[0].name
        'Users'
        >>> diff_schemas([users], [users]).has_changes
        False
    """
    current = index_tables(current_tables)
    target = index_tables(target_tables)
    diff = SchemaDiff()

    for name, table in target.items():
        existing = current.get(name)
        if existing is None:
            diff.created_tables.append(table)
            continue
        delta = diff_table(existing, table, type_mapper)
        if delta.has_changes:
            diff.altered_tables.append(delta)

    diff.dropped_tables = [t for name, t in current.items() if name not in target]
    return diff
