"""Model declarations consumed by the model analyzer.

A declaration is a plain, explicitly constructed description of one mapped
type: its table name and, per field, the declared type plus optional markers
(key, column options, index, unique, foreign key, check, default, computed).
The analyzer depends only on these objects, never on how they were produced.

Usage:
    from db_schema_sync.analysis.declarations import (
        ColumnOptions, FieldDeclaration, PrimaryKey, TableDeclaration,
    )

    users = TableDeclaration(
        name="Users",
        fields=[
            FieldDeclaration("Id", int, primary_key=PrimaryKey()),
            FieldDeclaration("Name", str, column=ColumnOptions(max_length=200)),
        ],
    )

Models can also be written as annotated dataclasses:

    @dataclass
    class User:
        Id: Annotated[int, PrimaryKey()]
        Name: Annotated[str, ColumnOptions(max_length=200)]

    users = declaration_from_dataclass(User, table="Users")
"""

import dataclasses
import typing
from dataclasses import dataclass, field
from typing import Annotated, Any

from db_schema_sync.schema.models import IndexType, ReferentialAction, SemanticType


# ------------------------------------------------------------------
# Field markers
# ------------------------------------------------------------------


@dataclass(frozen=True)
class ColumnOptions:
    """Column-level overrides.

    ``max_length=UNBOUNDED`` (-1) requests max storage; ``None`` leaves the
    dialect default.  ``nullable=None`` keeps the nullability derived from
    the declared type.
    """

    name: str | None = None
    type_name: str | None = None
    max_length: int | None = None
    precision: int | None = None
    scale: int | None = None
    nullable: bool | None = None
    collation: str | None = None


@dataclass(frozen=True)
class PrimaryKey:
    """Primary-key membership.  ``order`` positions the field in a composite key.

    ``identity=None`` applies the convention (a single integer key is an
    identity column); ``True``/``False`` override it.
    """

    order: int = 0
    identity: bool | None = None


@dataclass(frozen=True)
class IndexMarker:
    """Index membership.  Markers sharing a resolved name form one index."""

    name: str | None = None
    group: str | None = None
    order: int = 0
    unique: bool = False
    index_type: IndexType = IndexType.BTREE
    include: tuple[str, ...] = ()
    where: str | None = None
    descending: bool = False


@dataclass(frozen=True)
class UniqueMarker:
    name: str | None = None
    group: str | None = None
    order: int = 0


@dataclass(frozen=True)
class ForeignKeyMarker:
    table: str
    column: str | None = None
    name: str | None = None
    on_delete: ReferentialAction = ReferentialAction.NO_ACTION
    on_update: ReferentialAction = ReferentialAction.NO_ACTION


@dataclass(frozen=True)
class CheckMarker:
    expression: str
    name: str | None = None


@dataclass(frozen=True)
class DefaultValue:
    """Column default.  ``raw_sql=True`` passes ``value`` through verbatim."""

    value: Any
    raw_sql: bool = False


@dataclass(frozen=True)
class Computed:
    """Marks a derived, non-persisted field."""

    pass


# ------------------------------------------------------------------
# Declarations
# ------------------------------------------------------------------


@dataclass(frozen=True)
class FieldDeclaration:
    """One field of a mapped type.

    ``type`` is either a ``SemanticType`` or a Python annotation such as
    ``int``, ``str | None`` or an ``Enum`` subclass.
    """

    name: str
    type: Any
    column: ColumnOptions | None = None
    primary_key: PrimaryKey | None = None
    indexes: tuple[IndexMarker, ...] = ()
    unique: UniqueMarker | None = None
    foreign_key: ForeignKeyMarker | None = None
    check: CheckMarker | None = None
    default: DefaultValue | None = None
    computed: bool = False

    def __post_init__(self) -> None:
        # Accept a single marker or any iterable for convenience
        if isinstance(self.indexes, IndexMarker):
            object.__setattr__(self, "indexes", (self.indexes,))
        elif not isinstance(self.indexes, tuple):
            object.__setattr__(self, "indexes", tuple(self.indexes))


@dataclass(frozen=True)
class TableDeclaration:
    """A mapped type: the analyzer's unit of input.

    ``mapped=False`` or ``abstract=True`` declarations are skipped.
    ``model`` is an opaque handle carried through to ``Table.source``.
    """

    name: str
    fields: tuple[FieldDeclaration, ...] = ()
    schema: str | None = None
    mapped: bool = True
    abstract: bool = False
    model: Any = None

    def __post_init__(self) -> None:
        if not isinstance(self.fields, tuple):
            object.__setattr__(self, "fields", tuple(self.fields))


# ------------------------------------------------------------------
# Annotated dataclass support
# ------------------------------------------------------------------


def declaration_from_dataclass(
    cls: type,
    table: str | None = None,
    schema: str | None = None,
) -> TableDeclaration:
    """Build a ``TableDeclaration`` from a dataclass with ``Annotated`` markers.

    Each dataclass field becomes a ``FieldDeclaration``; markers found in the
    field's ``Annotated[...]`` metadata are attached to it.  A ``Computed()``
    marker excludes the field.  Classes flagged ``__abstract__ = True`` yield an
    abstract declaration.

    Args:
        cls: A dataclass type.
        table: Table name (default: the class name).
        schema: Optional schema name.

    Returns:
        ``TableDeclaration`` whose ``model`` is ``cls``.

    Raises:
        TypeError: If ``cls`` is not a dataclass.
    """
    if not dataclasses.is_dataclass(cls):
        raise TypeError(f"{cls!r} is not a dataclass")

    hints = typing.get_type_hints(cls, include_extras=True)
    fields: list[FieldDeclaration] = []

    for dc_field in dataclasses.fields(cls):
        hint = hints.get(dc_field.name, dc_field.type)
        base_type = hint
        markers: tuple[Any, ...] = ()
        if typing.get_origin(hint) is Annotated:
            base_type, *extra = typing.get_args(hint)
            markers = tuple(extra)

        kwargs: dict[str, Any] = {}
        indexes: list[IndexMarker] = []
        computed = False
        for marker in markers:
            if isinstance(marker, ColumnOptions):
                kwargs["column"] = marker
            elif isinstance(marker, PrimaryKey):
                kwargs["primary_key"] = marker
            elif isinstance(marker, IndexMarker):
                indexes.append(marker)
            elif isinstance(marker, UniqueMarker):
                kwargs["unique"] = marker
            elif isinstance(marker, ForeignKeyMarker):
                kwargs["foreign_key"] = marker
            elif isinstance(marker, CheckMarker):
                kwargs["check"] = marker
            elif isinstance(marker, DefaultValue):
                kwargs["default"] = marker
            elif isinstance(marker, Computed):
                computed = True

        fields.append(
            FieldDeclaration(
                dc_field.name,
                base_type,
                indexes=tuple(indexes),
                computed=computed,
                **kwargs,
            )
        )

    return TableDeclaration(
        name=table or cls.__name__,
        fields=tuple(fields),
        schema=schema,
        abstract=bool(cls.__dict__.get("__abstract__", False)),
        model=cls,
    )


__all__ = [
    "CheckMarker",
    "ColumnOptions",
    "Computed",
    "DefaultValue",
    "FieldDeclaration",
    "ForeignKeyMarker",
    "IndexMarker",
    "PrimaryKey",
    "SemanticType",
    "TableDeclaration",
    "UniqueMarker",
    "declaration_from_dataclass",
]
