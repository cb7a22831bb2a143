"""Tests for model declarations and the model analyzer.

Covers:
- Semantic type resolution from Python annotations
- Column construction (identity convention, options, defaults, computed fields)
- Primary key, foreign key, unique and check constraints with default names
- Index grouping, ordering and validation
- Schema handling and skipping of unmapped/abstract declarations
- Annotated dataclass declarations
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional

import pytest

from db_schema_sync.analysis.analyzer import ModelAnalyzer, analyze_models, resolve_semantic_type
from db_schema_sync.analysis.declarations import (
    CheckMarker,
    ColumnOptions,
    Computed,
    DefaultValue,
    FieldDeclaration,
    ForeignKeyMarker,
    IndexMarker,
    PrimaryKey,
    TableDeclaration,
    UniqueMarker,
    declaration_from_dataclass,
)
from db_schema_sync.errors import ModelValidationError
from db_schema_sync.schema.models import (
    UNBOUNDED,
    ConstraintType,
    IndexType,
    ReferentialAction,
    SemanticType,
)


class Status(Enum):
    DRAFT = 1
    PUBLISHED = 2


def _users(name: str = "Users", **extra) -> TableDeclaration:
    fields = [
        FieldDeclaration("Id", int, primary_key=PrimaryKey()),
        FieldDeclaration("Name", str, column=ColumnOptions(max_length=200)),
    ]
    return TableDeclaration(name=name, fields=fields, **extra)


# ============================================================
# Test: Semantic type resolution
# ============================================================


class TestResolveSemanticType:
    """Verify declared field types map to (semantic type, nullable)."""

    def test_bare_int_is_not_nullable(self) -> None:
        assert resolve_semantic_type(int) == (SemanticType.INT32, False)

    def test_optional_str_is_nullable(self) -> None:
        assert resolve_semantic_type(str | None) == (SemanticType.TEXT, True)

    def test_typing_optional(self) -> None:
        assert resolve_semantic_type(Optional[Decimal]) == (SemanticType.DECIMAL, True)

    def test_enum_is_stored_as_enum(self) -> None:
        assert resolve_semantic_type(Status) == (SemanticType.ENUM, False)

    def test_bare_semantic_text_is_nullable(self) -> None:
        """Text and binary are reference-like and default to nullable."""
        assert resolve_semantic_type(SemanticType.TEXT) == (SemanticType.TEXT, True)
        assert resolve_semantic_type(SemanticType.BINARY) == (SemanticType.BINARY, True)

    def test_bare_semantic_integer_is_not_nullable(self) -> None:
        assert resolve_semantic_type(SemanticType.INT64) == (SemanticType.INT64, False)

    def test_unknown_annotation_falls_back_to_text(self) -> None:
        assert resolve_semantic_type(list) == (SemanticType.TEXT, False)


# ============================================================
# Test: Columns
# ============================================================


class TestColumns:
    """Verify column construction from field declarations."""

    def test_single_integer_key_is_identity(self) -> None:
        table = ModelAnalyzer().analyze_declaration(_users())
        column = table.get_column("Id")

        assert column.primary_key is True
        assert column.identity is True
        assert column.nullable is False
        assert column.semantic_type == SemanticType.INT32

    def test_identity_override(self) -> None:
        declaration = TableDeclaration(
            name="Codes",
            fields=[FieldDeclaration("Id", int, primary_key=PrimaryKey(identity=False))],
        )
        table = ModelAnalyzer().analyze_declaration(declaration)
        assert table.get_column("Id").identity is False

    def test_text_key_is_not_identity(self) -> None:
        declaration = TableDeclaration(
            name="Countries",
            fields=[FieldDeclaration("Code", str, primary_key=PrimaryKey())],
        )
        column = ModelAnalyzer().analyze_declaration(declaration).get_column("Code")
        assert column.identity is False
        assert column.nullable is False

    def test_column_options_applied(self) -> None:
        declaration = TableDeclaration(
            name="Users",
            fields=[
                FieldDeclaration(
                    "email",
                    str | None,
                    column=ColumnOptions(name="Email", max_length=320, collation="C"),
                ),
                FieldDeclaration(
                    "Balance",
                    Decimal,
                    column=ColumnOptions(precision=12, scale=4, nullable=True),
                ),
            ],
        )
        table = ModelAnalyzer().analyze_declaration(declaration)

        email = table.get_column("Email")
        assert email is not None
        assert email.max_length == 320
        assert email.collation == "C"
        assert email.nullable is True

        balance = table.get_column("Balance")
        assert (balance.precision, balance.scale) == (12, 4)
        assert balance.nullable is True

    def test_non_positive_length_ignored_but_unbounded_kept(self) -> None:
        declaration = TableDeclaration(
            name="Docs",
            fields=[
                FieldDeclaration("Title", str, column=ColumnOptions(max_length=0)),
                FieldDeclaration("Body", str, column=ColumnOptions(max_length=UNBOUNDED)),
            ],
        )
        table = ModelAnalyzer().analyze_declaration(declaration)
        assert table.get_column("Title").max_length is None
        assert table.get_column("Body").is_unbounded

    def test_native_type_override(self) -> None:
        declaration = TableDeclaration(
            name="Docs",
            fields=[FieldDeclaration("Tags", str, column=ColumnOptions(type_name="text[]"))],
        )
        column = ModelAnalyzer().analyze_declaration(declaration).get_column("Tags")
        assert column.native_type == "text[]"

    def test_defaults(self) -> None:
        declaration = TableDeclaration(
            name="Posts",
            fields=[
                FieldDeclaration("Status", str, default=DefaultValue("draft")),
                FieldDeclaration("Created", str, default=DefaultValue("now()", raw_sql=True)),
            ],
        )
        table = ModelAnalyzer().analyze_declaration(declaration)

        status = table.get_column("Status")
        assert status.default == "draft"
        assert status.default_is_raw_sql is False

        created = table.get_column("Created")
        assert created.default == "now()"
        assert created.default_is_raw_sql is True

    def test_computed_fields_excluded(self) -> None:
        declaration = TableDeclaration(
            name="Users",
            fields=[
                FieldDeclaration("Id", int, primary_key=PrimaryKey()),
                FieldDeclaration("DisplayName", str, computed=True),
            ],
        )
        table = ModelAnalyzer().analyze_declaration(declaration)
        assert [c.name for c in table.columns] == ["Id"]


# ============================================================
# Test: Keys and constraints
# ============================================================


class TestKeysAndConstraints:
    """Verify primary keys and constraint naming."""

    def test_primary_key_constraint_named_after_table(self) -> None:
        table = ModelAnalyzer().analyze_declaration(_users())
        pk = table.constraints[0]

        assert pk.name == "PK_Users"
        assert pk.constraint_type == ConstraintType.PRIMARY_KEY
        assert pk.columns == ["Id"]

    def test_composite_key_ordered_by_order(self) -> None:
        declaration = TableDeclaration(
            name="OrderLines",
            fields=[
                FieldDeclaration("LineNo", int, primary_key=PrimaryKey(order=1)),
                FieldDeclaration("OrderId", int, primary_key=PrimaryKey(order=0)),
            ],
        )
        table = ModelAnalyzer().analyze_declaration(declaration)

        assert table.primary_key_columns == ["OrderId", "LineNo"]
        # Composite keys never get the identity convention
        assert not any(c.identity for c in table.columns)

    def test_duplicate_composite_order_raises(self) -> None:
        declaration = TableDeclaration(
            name="OrderLines",
            fields=[
                FieldDeclaration("OrderId", int, primary_key=PrimaryKey()),
                FieldDeclaration("LineNo", int, primary_key=PrimaryKey()),
            ],
        )
        with pytest.raises(ModelValidationError, match="duplicate order 0") as exc_info:
            ModelAnalyzer().analyze_declaration(declaration)
        assert exc_info.value.table == "OrderLines"
        assert exc_info.value.field == "LineNo"

    def test_fields_mapping_to_same_column_raise(self) -> None:
        declaration = TableDeclaration(
            name="Users",
            fields=[
                FieldDeclaration("Id", int, primary_key=PrimaryKey()),
                FieldDeclaration("Name", str),
                FieldDeclaration("DisplayName", str, column=ColumnOptions(name="Name")),
            ],
        )
        with pytest.raises(ModelValidationError, match="both map to column 'Name'") as exc_info:
            ModelAnalyzer().analyze_declaration(declaration)
        assert exc_info.value.table == "Users"
        assert exc_info.value.field == "DisplayName"

    def test_foreign_key_defaults(self) -> None:
        declaration = TableDeclaration(
            name="Orders",
            fields=[
                FieldDeclaration("Id", int, primary_key=PrimaryKey()),
                FieldDeclaration(
                    "UserId",
                    int,
                    foreign_key=ForeignKeyMarker("Users", on_delete=ReferentialAction.CASCADE),
                ),
            ],
        )
        table = ModelAnalyzer().analyze_declaration(declaration)
        fk = next(c for c in table.constraints if c.constraint_type == ConstraintType.FOREIGN_KEY)

        assert fk.name == "FK_Orders_UserId"
        assert fk.referenced_table == "Users"
        assert fk.referenced_column == "Id"
        assert fk.on_delete == ReferentialAction.CASCADE
        assert fk.on_update == ReferentialAction.NO_ACTION

    @pytest.mark.parametrize("target", ["", "   "])
    def test_foreign_key_empty_table_raises(self, target: str) -> None:
        declaration = TableDeclaration(
            name="Orders",
            fields=[FieldDeclaration("UserId", int, foreign_key=ForeignKeyMarker(target))],
        )
        with pytest.raises(ModelValidationError, match="empty referenced table"):
            ModelAnalyzer().analyze_declaration(declaration)

    def test_check_constraint(self) -> None:
        declaration = TableDeclaration(
            name="Products",
            fields=[FieldDeclaration("Price", Decimal, check=CheckMarker('"Price" >= 0'))],
        )
        check = ModelAnalyzer().analyze_declaration(declaration).constraints[0]

        assert check.name == "CK_Products_Price"
        assert check.constraint_type == ConstraintType.CHECK
        assert check.expression == '"Price" >= 0'

    def test_unique_group_ordered(self) -> None:
        declaration = TableDeclaration(
            name="Accounts",
            fields=[
                FieldDeclaration("Email", str, unique=UniqueMarker(group="Login", order=1)),
                FieldDeclaration("Tenant", str, unique=UniqueMarker(group="Login", order=0)),
                FieldDeclaration("Handle", str, unique=UniqueMarker()),
            ],
        )
        constraints = ModelAnalyzer().analyze_declaration(declaration).constraints
        by_name = {c.name: c for c in constraints}

        assert by_name["UQ_Accounts_Login"].columns == ["Tenant", "Email"]
        assert by_name["UQ_Accounts_Handle"].columns == ["Handle"]


# ============================================================
# Test: Indexes
# ============================================================


class TestIndexes:
    """Verify index grouping and validation."""

    def test_default_index_name(self) -> None:
        declaration = TableDeclaration(
            name="Users",
            fields=[FieldDeclaration("Name", str, indexes=IndexMarker())],
        )
        index = ModelAnalyzer().analyze_declaration(declaration).indexes[0]

        assert index.name == "IX_Users_Name"
        assert index.column_names == ["Name"]
        assert index.index_type == IndexType.BTREE
        assert index.unique is False

    def test_grouped_index_members_sorted(self) -> None:
        declaration = TableDeclaration(
            name="Events",
            fields=[
                FieldDeclaration("Happened", str, indexes=IndexMarker(group="Lookup", order=2, descending=True)),
                FieldDeclaration("Tenant", str, indexes=IndexMarker(group="Lookup", order=1, unique=True)),
                FieldDeclaration("Kind", str),
            ],
        )
        index = ModelAnalyzer().analyze_declaration(declaration).indexes[0]

        assert index.name == "IX_Events_Lookup"
        assert index.column_names == ["Tenant", "Happened"]
        assert [c.descending for c in index.columns] == [False, True]
        assert index.unique is True

    def test_conflicting_index_types_raise(self) -> None:
        declaration = TableDeclaration(
            name="Docs",
            fields=[
                FieldDeclaration("A", str, indexes=IndexMarker(group="G", index_type=IndexType.GIN)),
                FieldDeclaration("B", str, indexes=IndexMarker(group="G")),
            ],
        )
        with pytest.raises(ModelValidationError, match="conflicting index types: btree, gin"):
            ModelAnalyzer().analyze_declaration(declaration)

    def test_include_and_filter(self) -> None:
        declaration = TableDeclaration(
            name="Users",
            fields=[
                FieldDeclaration(
                    "Email",
                    str,
                    indexes=IndexMarker(include=("Name",), where='"Deleted" = false'),
                ),
                FieldDeclaration("Name", str),
                FieldDeclaration("Deleted", bool),
            ],
        )
        index = ModelAnalyzer().analyze_declaration(declaration).indexes[0]

        assert index.include_columns == ["Name"]
        assert index.where == '"Deleted" = false'

    def test_include_of_unknown_field_raises(self) -> None:
        declaration = TableDeclaration(
            name="Users",
            fields=[
                FieldDeclaration("Email", str, indexes=IndexMarker(include=("Missing",))),
                FieldDeclaration("Name", str),
            ],
        )
        with pytest.raises(ModelValidationError, match="unknown field 'Missing'") as exc_info:
            ModelAnalyzer().analyze_declaration(declaration)
        assert exc_info.value.table == "Users"
        assert exc_info.value.field == "Missing"

    def test_include_resolves_renamed_column(self) -> None:
        declaration = TableDeclaration(
            name="Users",
            fields=[
                FieldDeclaration("Email", str, indexes=IndexMarker(include=("name",))),
                FieldDeclaration("name", str, column=ColumnOptions(name="DisplayName")),
            ],
        )
        index = ModelAnalyzer().analyze_declaration(declaration).indexes[0]
        assert index.include_columns == ["DisplayName"]

    def test_clustered_index_type_sets_clustered(self) -> None:
        declaration = TableDeclaration(
            name="Logs",
            fields=[FieldDeclaration("At", str, indexes=IndexMarker(index_type=IndexType.CLUSTERED))],
        )
        index = ModelAnalyzer().analyze_declaration(declaration).indexes[0]
        assert index.clustered is True


# ============================================================
# Test: Schemas and skipping
# ============================================================


class TestAnalyze:
    """Verify batch analysis behavior."""

    def test_dotted_name_carries_schema(self) -> None:
        declaration = TableDeclaration(
            name="audit.Events",
            fields=[FieldDeclaration("Id", int, primary_key=PrimaryKey())],
        )
        table = ModelAnalyzer().analyze_declaration(declaration, default_schema="public")

        assert table.name == "Events"
        assert table.schema_name == "audit"
        assert table.full_name == "audit.Events"
        assert table.constraints[0].name == "PK_Events"

    def test_default_schema_applies_when_undeclared(self) -> None:
        tables = analyze_models([_users(), _users(name="Admins", schema="ops")], "app")
        assert [t.full_name for t in tables] == ["app.Users", "ops.Admins"]

    def test_unmapped_and_abstract_skipped(self) -> None:
        tables = analyze_models(
            [
                _users(name="Base", abstract=True),
                _users(name="Scratch", mapped=False),
                _users(),
            ]
        )
        assert [t.name for t in tables] == ["Users"]

    def test_model_handle_carried_to_source(self) -> None:
        marker = object()
        table = ModelAnalyzer().analyze_declaration(_users(model=marker))
        assert table.source is marker


# ============================================================
# Test: Annotated dataclasses
# ============================================================


@dataclass
class Article:
    Id: Annotated[int, PrimaryKey()]
    Title: Annotated[str, ColumnOptions(max_length=120), IndexMarker()]
    AuthorId: Annotated[int, ForeignKeyMarker("Authors")]
    Summary: Optional[str]
    WordCount: Annotated[int, Computed()]


@dataclass
class Timestamped:
    __abstract__ = True
    Created: str


class TestDataclassDeclarations:
    """Verify declaration_from_dataclass reads Annotated markers."""

    def test_fields_and_markers(self) -> None:
        declaration = declaration_from_dataclass(Article, table="Articles")
        table = ModelAnalyzer().analyze_declaration(declaration)

        assert table.name == "Articles"
        assert [c.name for c in table.columns] == ["Id", "Title", "AuthorId", "Summary"]
        assert table.get_column("Title").max_length == 120
        assert table.get_column("Summary").nullable is True
        assert table.indexes[0].name == "IX_Articles_Title"
        assert any(c.name == "FK_Articles_AuthorId" for c in table.constraints)
        assert table.source is Article

    def test_table_defaults_to_class_name(self) -> None:
        assert declaration_from_dataclass(Article).name == "Article"

    def test_abstract_flag(self) -> None:
        declaration = declaration_from_dataclass(Timestamped)
        assert declaration.abstract is True
        assert analyze_models([declaration]) == []

    def test_non_dataclass_raises(self) -> None:
        with pytest.raises(TypeError, match="is not a dataclass"):
            declaration_from_dataclass(Status)
