"""Model analyzer: turns table declarations into abstract ``Table`` entities.

Pure logic -- no I/O, no database connections.  Safe to call repeatedly and
concurrently for disjoint declaration sets.

Usage:
    from db_schema_sync.analysis.analyzer import ModelAnalyzer

    tables = ModelAnalyzer().analyze([users, orders], default_schema="public")
    for table in tables:
        print(table.full_name, [c.name for c in table.columns])
"""

import logging
import types
import typing
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from db_schema_sync.analysis.declarations import (
    ColumnOptions,
    FieldDeclaration,
    IndexMarker,
    TableDeclaration,
)
from db_schema_sync.errors import ModelValidationError
from db_schema_sync.schema.models import (
    UNBOUNDED,
    Column,
    Constraint,
    ConstraintType,
    Index,
    IndexColumn,
    IndexType,
    SemanticType,
    Table,
)

logger = logging.getLogger(__name__)

_PYTHON_TYPES: dict[type, SemanticType] = {
    bool: SemanticType.BOOLEAN,
    int: SemanticType.INT32,
    float: SemanticType.FLOAT64,
    Decimal: SemanticType.DECIMAL,
    str: SemanticType.TEXT,
    bytes: SemanticType.BINARY,
    bytearray: SemanticType.BINARY,
    datetime: SemanticType.DATETIME,
    date: SemanticType.DATETIME,
    timedelta: SemanticType.DURATION,
    UUID: SemanticType.UUID,
}

# Reference-like semantic types default to nullable when declared bare
_NULLABLE_BY_DEFAULT = frozenset({SemanticType.TEXT, SemanticType.BINARY})


def resolve_semantic_type(declared: Any) -> tuple[SemanticType, bool]:
    """Resolve a declared field type to ``(semantic_type, nullable)``.

    ``Optional[X]`` / ``X | None`` annotations are nullable; bare Python types
    are not.  A bare ``SemanticType`` is nullable only for text and binary.
    Unknown annotations fall back to text.

    Examples:
        >>> resolve_semantic_type(int)
        (<SemanticType.INT32: 'int32'>, False)
        >>> resolve_semantic_type(str | None)
        (<SemanticType.TEXT: 'text'>, True)
    """
    if isinstance(declared, SemanticType):
        return declared, declared in _NULLABLE_BY_DEFAULT

    nullable = False
    origin = typing.get_origin(declared)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(declared) if a is not type(None)]
        nullable = len(args) < len(typing.get_args(declared))
        declared = args[0] if len(args) == 1 else declared

    if isinstance(declared, SemanticType):
        return declared, nullable

    if isinstance(declared, type):
        if issubclass(declared, Enum):
            return SemanticType.ENUM, nullable
        if declared in _PYTHON_TYPES:
            return _PYTHON_TYPES[declared], nullable

    logger.debug("Unmapped field type %r, falling back to text", declared)
    return SemanticType.TEXT, nullable


class ModelAnalyzer:
    """Builds ``Table`` entities from ``TableDeclaration`` objects.

    Validation failures (duplicate composite key order, inconsistent index
    group type, empty foreign-key target, two fields on one column, unknown
    index include) raise ``ModelValidationError``.
    """

    def analyze(
        self,
        declarations: Iterable[TableDeclaration],
        default_schema: str | None = None,
    ) -> list[Table]:
        """Analyze every mapped, non-abstract declaration, preserving input order."""
        tables: list[Table] = []
        for declaration in declarations:
            if not declaration.mapped or declaration.abstract:
                continue
            tables.append(self.analyze_declaration(declaration, default_schema))
        return tables

    def analyze_declaration(
        self,
        declaration: TableDeclaration,
        default_schema: str | None = None,
    ) -> Table:
        """Analyze one declaration into a ``Table``."""
        table_name = declaration.name
        schema = declaration.schema or default_schema

        # "schema.table" names carry their own schema
        if "." in table_name:
            schema, table_name = table_name.split(".", 1)

        fields = [f for f in declaration.fields if not f.computed]
        pk_fields = self._ordered_primary_key(fields, table_name)

        columns = [self._build_column(f, pk_fields) for f in fields]
        column_names = {f.name: c.name for f, c in zip(fields, columns)}

        seen: dict[str, str] = {}
        for f, column in zip(fields, columns):
            if column.name in seen:
                raise ModelValidationError(
                    f"Fields '{seen[column.name]}' and '{f.name}' on '{table_name}' "
                    f"both map to column '{column.name}'",
                    table=table_name,
                    field=f.name,
                )
            seen[column.name] = f.name

        constraints: list[Constraint] = []
        if pk_fields:
            constraints.append(
                Constraint(
                    name=f"PK_{table_name}",
                    constraint_type=ConstraintType.PRIMARY_KEY,
                    columns=[column_names[f.name] for f in pk_fields],
                )
            )
        constraints.extend(self._build_constraints(fields, column_names, table_name))

        indexes = self._build_indexes(fields, column_names, table_name)
        try:
            return Table(
                name=table_name,
                schema_name=schema,
                columns=columns,
                indexes=indexes,
                constraints=constraints,
                source=declaration.model,
            )
        except ValidationError as e:
            raise ModelValidationError(
                f"Invalid declaration for '{table_name}': {e}", table=table_name
            ) from e

    # ------------------------------------------------------------------
    # Columns and keys
    # ------------------------------------------------------------------

    def _ordered_primary_key(
        self, fields: list[FieldDeclaration], table_name: str
    ) -> list[FieldDeclaration]:
        members = [(i, f) for i, f in enumerate(fields) if f.primary_key is not None]

        if len(members) > 1:
            seen: dict[int, str] = {}
            for _, f in members:
                order = f.primary_key.order
                if order in seen:
                    raise ModelValidationError(
                        f"Composite primary key on '{table_name}' has duplicate order "
                        f"{order} for fields '{seen[order]}' and '{f.name}'",
                        table=table_name,
                        field=f.name,
                    )
                seen[order] = f.name

        members.sort(key=lambda m: (m[1].primary_key.order, m[0]))
        return [f for _, f in members]

    def _build_column(
        self, f: FieldDeclaration, pk_fields: list[FieldDeclaration]
    ) -> Column:
        semantic_type, nullable = resolve_semantic_type(f.type)
        opts = f.column or ColumnOptions()

        if opts.nullable is not None:
            nullable = opts.nullable

        is_pk = f.primary_key is not None
        identity = False
        if is_pk:
            nullable = False
            if semantic_type.is_integer:
                if f.primary_key.identity is not None:
                    identity = f.primary_key.identity
                else:
                    identity = len(pk_fields) == 1

        max_length = opts.max_length
        if max_length is not None and max_length <= 0 and max_length != UNBOUNDED:
            max_length = None

        return Column(
            name=opts.name or f.name,
            semantic_type=semantic_type,
            native_type=opts.type_name or None,
            max_length=max_length,
            precision=opts.precision if opts.precision and opts.precision > 0 else None,
            scale=opts.scale if opts.scale is not None and opts.scale >= 0 else None,
            nullable=nullable,
            primary_key=is_pk,
            identity=identity,
            default=f.default.value if f.default else None,
            default_is_raw_sql=f.default.raw_sql if f.default else False,
            collation=opts.collation,
        )

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    def _build_indexes(
        self,
        fields: list[FieldDeclaration],
        column_names: dict[str, str],
        table_name: str,
    ) -> list[Index]:
        groups: dict[str, list[tuple[int, IndexMarker, str]]] = defaultdict(list)

        for position, f in enumerate(fields):
            column = column_names[f.name]
            for marker in f.indexes:
                if marker.name:
                    index_name = marker.name
                elif marker.group:
                    index_name = f"IX_{table_name}_{marker.group}"
                else:
                    index_name = f"IX_{table_name}_{column}"
                groups[index_name].append((position, marker, column))

        indexes: list[Index] = []
        for index_name, members in groups.items():
            index_types = {m.index_type for _, m, _ in members}
            if len(index_types) > 1:
                listed = ", ".join(sorted(t.value for t in index_types))
                raise ModelValidationError(
                    f"Index '{index_name}' on '{table_name}' declares conflicting "
                    f"index types: {listed}",
                    table=table_name,
                )

            members.sort(key=lambda m: (m[1].order, m[0]))
            first = members[0][1]
            index_type = first.index_type

            known = set(column_names.values())
            include: list[str] = []
            for _, m, _ in members:
                for name in m.include:
                    resolved = column_names.get(name, name)
                    if resolved not in known:
                        raise ModelValidationError(
                            f"Index '{index_name}' on '{table_name}' includes unknown "
                            f"field '{name}'",
                            table=table_name,
                            field=name,
                        )
                    if resolved not in include:
                        include.append(resolved)

            indexes.append(
                Index(
                    name=index_name,
                    columns=[
                        IndexColumn(name=column, order=i, descending=m.descending)
                        for i, (_, m, column) in enumerate(members)
                    ],
                    index_type=index_type,
                    unique=any(m.unique for _, m, _ in members),
                    clustered=index_type == IndexType.CLUSTERED,
                    include_columns=include,
                    where=next((m.where for _, m, _ in members if m.where), None),
                )
            )

        return indexes

    # ------------------------------------------------------------------
    # Constraints
    # ------------------------------------------------------------------

    def _build_constraints(
        self,
        fields: list[FieldDeclaration],
        column_names: dict[str, str],
        table_name: str,
    ) -> list[Constraint]:
        constraints: list[Constraint] = []
        unique_groups: dict[str, list[tuple[int, int, str]]] = defaultdict(list)

        for position, f in enumerate(fields):
            column = column_names[f.name]

            if f.unique is not None:
                if f.unique.name:
                    name = f.unique.name
                elif f.unique.group:
                    name = f"UQ_{table_name}_{f.unique.group}"
                else:
                    name = f"UQ_{table_name}_{column}"
                unique_groups[name].append((f.unique.order, position, column))

            fk = f.foreign_key
            if fk is not None:
                if not fk.table or not fk.table.strip():
                    raise ModelValidationError(
                        f"Foreign key on '{table_name}.{f.name}' has an empty "
                        "referenced table",
                        table=table_name,
                        field=f.name,
                    )
                constraints.append(
                    Constraint(
                        name=fk.name or f"FK_{table_name}_{column}",
                        constraint_type=ConstraintType.FOREIGN_KEY,
                        columns=[column],
                        referenced_table=fk.table,
                        referenced_column=fk.column or "Id",
                        on_delete=fk.on_delete,
                        on_update=fk.on_update,
                    )
                )

            if f.check is not None:
                constraints.append(
                    Constraint(
                        name=f.check.name or f"CK_{table_name}_{column}",
                        constraint_type=ConstraintType.CHECK,
                        columns=[column],
                        expression=f.check.expression,
                    )
                )

        for name, members in unique_groups.items():
            members.sort()
            constraints.append(
                Constraint(
                    name=name,
                    constraint_type=ConstraintType.UNIQUE,
                    columns=[column for _, _, column in members],
                )
            )

        return constraints


def analyze_models(
    declarations: Iterable[TableDeclaration],
    default_schema: str | None = None,
) -> list[Table]:
    """Convenience wrapper around ``ModelAnalyzer().analyze()``."""
    return ModelAnalyzer().analyze(declarations, default_schema)
