"""Pydantic models for the abstract schema.

This module contains the dialect-neutral schema entities shared by every
other component:
- Enums: SemanticType, IndexType, ConstraintType, ReferentialAction
- Entities: Column, IndexColumn, Index, Constraint, Table

All entities are frozen value objects.  They are built once (by the model
analyzer, the introspector, or a snapshot load) and never edited; diffing
produces statement text, not modified entities.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Sentinel max_length meaning "unbounded / max storage".
UNBOUNDED = -1


# ============================================================================
# Enums
# ============================================================================


class SemanticType(str, Enum):
    """Dialect-neutral column type."""

    BOOLEAN = "boolean"
    INT8 = "int8"
    UINT8 = "uint8"
    INT16 = "int16"
    UINT16 = "uint16"
    INT32 = "int32"
    UINT32 = "uint32"
    INT64 = "int64"
    UINT64 = "uint64"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    DECIMAL = "decimal"
    DATETIME = "datetime"
    DATETIME_OFFSET = "datetime_offset"
    DURATION = "duration"
    UUID = "uuid"
    TEXT = "text"
    BINARY = "binary"
    ENUM = "enum"

    @property
    def is_integer(self) -> bool:
        """True for integer-like types (enums are stored as integers)."""
        return self in INTEGER_TYPES


INTEGER_TYPES = frozenset(
    {
        SemanticType.INT8,
        SemanticType.UINT8,
        SemanticType.INT16,
        SemanticType.UINT16,
        SemanticType.INT32,
        SemanticType.UINT32,
        SemanticType.INT64,
        SemanticType.UINT64,
        SemanticType.ENUM,
    }
)


class IndexType(str, Enum):
    """Index access method.  Each dialect supports a subset."""

    BTREE = "btree"
    HASH = "hash"
    GIN = "gin"
    GIST = "gist"
    BRIN = "brin"
    SPGIST = "spgist"
    CLUSTERED = "clustered"
    NONCLUSTERED = "nonclustered"
    COLUMNSTORE = "columnstore"
    FULLTEXT = "fulltext"
    SPATIAL = "spatial"


class ConstraintType(str, Enum):
    PRIMARY_KEY = "primary_key"
    FOREIGN_KEY = "foreign_key"
    UNIQUE = "unique"
    CHECK = "check"


class ReferentialAction(str, Enum):
    NO_ACTION = "no_action"
    CASCADE = "cascade"
    SET_NULL = "set_null"
    SET_DEFAULT = "set_default"
    RESTRICT = "restrict"

    @property
    def sql(self) -> str:
        """SQL keyword(s) for this action."""
        return self.value.replace("_", " ").upper()


# ============================================================================
# Schema Entities
# ============================================================================


class Column(BaseModel):
    """A table column.

    Example:
        >>> col = Column(name="Name", semantic_type=SemanticType.TEXT, max_length=200)
        >>> col.nullable
        True
        >>> col.is_unbounded
        False
    """

    model_config = ConfigDict(frozen=True)

    name: str
    semantic_type: SemanticType = SemanticType.TEXT
    native_type: str | None = None  # Raw override; bypasses type mapping
    max_length: int | None = None  # UNBOUNDED (-1) means max storage
    precision: int | None = None
    scale: int | None = None
    nullable: bool = True
    primary_key: bool = False
    identity: bool = False
    default: Any = None
    default_is_raw_sql: bool = False
    collation: str | None = None

    @property
    def is_unbounded(self) -> bool:
        """True if max_length is the unbounded sentinel."""
        return self.max_length == UNBOUNDED

    @property
    def has_default(self) -> bool:
        return self.default is not None


class IndexColumn(BaseModel):
    """A member column of an index, with its position and direction."""

    model_config = ConfigDict(frozen=True)

    name: str
    order: int = 0
    descending: bool = False


class Index(BaseModel):
    """A (possibly composite, partial or covering) index."""

    model_config = ConfigDict(frozen=True)

    name: str
    columns: list[IndexColumn] = Field(default_factory=list)
    index_type: IndexType = IndexType.BTREE
    unique: bool = False
    clustered: bool = False
    include_columns: list[str] = Field(default_factory=list)
    where: str | None = None

    @property
    def column_names(self) -> list[str]:
        """Member column names in index order."""
        return [c.name for c in sorted(self.columns, key=lambda c: c.order)]


class Constraint(BaseModel):
    """A table constraint (primary key, foreign key, unique, check)."""

    model_config = ConfigDict(frozen=True)

    name: str
    constraint_type: ConstraintType
    columns: list[str] = Field(default_factory=list)
    referenced_table: str | None = None
    referenced_column: str | None = None
    on_delete: ReferentialAction = ReferentialAction.NO_ACTION
    on_update: ReferentialAction = ReferentialAction.NO_ACTION
    expression: str | None = None  # CHECK only


class Table(BaseModel):
    """A table with its columns, indexes and constraints.

    ``source`` is an opaque handle back to whatever declared the table (the
    model class, or ``None`` for introspected tables).  It is excluded from
    serialization and equality.

    Example:
        >>> t = Table(name="Users", schema="app", columns=[Column(name="Id")])
        >>> t.full_name
        'app.Users'
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    schema_name: str | None = Field(default=None, alias="schema")
    columns: list[Column] = Field(default_factory=list)
    indexes: list[Index] = Field(default_factory=list)
    constraints: list[Constraint] = Field(default_factory=list)
    source: Any = Field(default=None, exclude=True, repr=False)

    @model_validator(mode="after")
    def _check_column_references(self) -> "Table":
        names: set[str] = set()
        for column in self.columns:
            if column.name in names:
                raise ValueError(f"Duplicate column '{column.name}' in table '{self.name}'")
            names.add(column.name)

        for index in self.indexes:
            for ref in [c.name for c in index.columns] + list(index.include_columns):
                if ref not in names:
                    raise ValueError(
                        f"Index '{index.name}' references unknown column "
                        f"'{ref}' in table '{self.name}'"
                    )

        for constraint in self.constraints:
            for ref in constraint.columns:
                if ref not in names:
                    raise ValueError(
                        f"Constraint '{constraint.name}' references unknown column "
                        f"'{ref}' in table '{self.name}'"
                    )
        return self

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Table):
            return NotImplemented
        return self.model_dump() == other.model_dump()

    __hash__ = None  # type: ignore[assignment]

    @property
    def full_name(self) -> str:
        """Fully-qualified name: ``schema.name`` or just ``name``."""
        return f"{self.schema_name}.{self.name}" if self.schema_name else self.name

    @property
    def primary_key_columns(self) -> list[str]:
        """Primary-key column names in key order.

        Uses the PRIMARY KEY constraint when present, otherwise the columns
        flagged ``primary_key`` in declaration order.
        """
        for constraint in self.constraints:
            if constraint.constraint_type == ConstraintType.PRIMARY_KEY:
                return list(constraint.columns)
        return [c.name for c in self.columns if c.primary_key]

    def get_column(self, name: str) -> Column | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None
