"""Tests for the schema comparator and the migration planner.

Covers:
- Column comparison (strict and dialect-rendered)
- Table and schema diffs (buckets, ordering, duplicate names)
- Planner statement order and idempotence
- SQLite recreation decisions at the plan level
"""

import pytest

from db_schema_sync.ddl import Dialect
from db_schema_sync.migration.planner import plan_migration
from db_schema_sync.schema.comparator import columns_differ, diff_schemas, diff_table
from db_schema_sync.schema.models import (
    Column,
    Constraint,
    ConstraintType,
    Index,
    IndexColumn,
    SemanticType,
    Table,
)

ID = Column(name="Id", semantic_type=SemanticType.INT32, nullable=False, primary_key=True, identity=True)


def _table(name: str, *columns: Column, schema: str | None = None, **fields) -> Table:
    return Table(
        name=name,
        schema=schema,
        columns=[ID, *columns],
        constraints=[
            Constraint(name=f"PK_{name}", constraint_type=ConstraintType.PRIMARY_KEY, columns=["Id"])
        ],
        **fields,
    )


def _name(length: int | None = 200, **fields) -> Column:
    return Column(name="Name", semantic_type=SemanticType.TEXT, max_length=length, nullable=False, **fields)


# ============================================================
# Test: Column comparison
# ============================================================


class TestColumnsDiffer:
    """Verify columns_differ in strict and rendered modes."""

    def test_identical(self) -> None:
        assert columns_differ(_name(), _name()) is False

    def test_length_change(self) -> None:
        assert columns_differ(_name(200), _name(50)) is True

    def test_unset_length_is_strict_without_mapper(self) -> None:
        assert columns_differ(_name(None), _name(255)) is True

    def test_unset_length_matches_rendered_default(self) -> None:
        """VARCHAR(255) on both sides is not a change on PostgreSQL."""
        assert plan_migration([_table("Users", _name(None))], [_table("Users", _name(255))], "postgresql") == []

    def test_declared_lengths_compared_even_when_rendering_matches(self) -> None:
        """SQLite renders both as TEXT, but the declared lengths differ."""
        statements = plan_migration([_table("Users", _name(200))], [_table("Users", _name(50))], "sqlite")
        assert statements != []

    def test_default_and_raw_flag(self) -> None:
        assert columns_differ(_name(default="x"), _name(default="y")) is True
        assert columns_differ(
            _name(default="now()"), _name(default="now()", default_is_raw_sql=True)
        ) is True

    def test_native_type_case_insensitive(self) -> None:
        current = Column(name="Tags", native_type="text[]")
        target = Column(name="Tags", native_type="TEXT[]")
        assert columns_differ(current, target) is False


# ============================================================
# Test: Diffs
# ============================================================


class TestDiffSchemas:
    """Verify table-level diff buckets."""

    def test_buckets(self) -> None:
        users = _table("Users", _name())
        legacy = _table("Legacy")
        products = _table("Products")
        users_v2 = _table("Users", _name(), Column(name="Email"))

        diff = diff_schemas([users, legacy], [users_v2, products])

        assert [t.name for t in diff.created_tables] == ["Products"]
        assert [d.target.name for d in diff.altered_tables] == ["Users"]
        assert [t.name for t in diff.dropped_tables] == ["Legacy"]
        assert [c.name for c in diff.altered_tables[0].added_columns] == ["Email"]

    def test_unchanged_tables_not_altered(self) -> None:
        users = _table("Users", _name())
        diff = diff_schemas([users], [users])
        assert diff.has_changes is False
        assert diff.altered_tables == []

    def test_tables_matched_by_qualified_name(self) -> None:
        diff = diff_schemas([_table("Users", schema="app")], [_table("Users", schema="ops")])
        assert [t.full_name for t in diff.created_tables] == ["ops.Users"]
        assert [t.full_name for t in diff.dropped_tables] == ["app.Users"]

    def test_duplicate_names_raise(self) -> None:
        with pytest.raises(ValueError, match="Duplicate table 'Users'"):
            diff_schemas([_table("Users"), _table("Users")], [])

    def test_redefined_index_dropped_and_added(self) -> None:
        old = Index(name="IX_Users_Name", columns=[IndexColumn(name="Name")])
        new = old.model_copy(update={"unique": True})
        delta = diff_table(_table("Users", _name(), indexes=[old]), _table("Users", _name(), indexes=[new]))

        assert delta.dropped_indexes == [old]
        assert delta.added_indexes == [new]
        assert delta.is_column_additive_only is True

    def test_common_columns_in_current_order(self) -> None:
        current = _table("Users", _name(), Column(name="Legacy"), Column(name="Email"))
        target = _table("Users", Column(name="Email"), _name())
        delta = diff_table(current, target)

        assert delta.common_column_names == ["Id", "Name", "Email"]
        assert [c.name for c in delta.dropped_columns] == ["Legacy"]


# ============================================================
# Test: Planner
# ============================================================


class TestPlanMigration:
    """Verify planner output."""

    @pytest.mark.parametrize("dialect", list(Dialect))
    def test_idempotent(self, dialect: Dialect) -> None:
        """Planning a schema against itself yields nothing."""
        tables = [
            _table("Users", _name(), indexes=[Index(name="IX_Users_Name", columns=[IndexColumn(name="Name")])]),
            _table("Products", Column(name="Title", max_length=120)),
        ]
        assert plan_migration(tables, tables, dialect) == []

    def test_single_added_column(self) -> None:
        current = [_table("Users", _name())]
        target = [_table("Users", _name(), Column(name="Email", max_length=100))]

        assert plan_migration(current, target, "postgresql") == [
            'ALTER TABLE "Users" ADD COLUMN "Email" VARCHAR(100) NULL;'
        ]

    def test_creates_then_alters_then_drops(self) -> None:
        current = [_table("Users", _name()), _table("Legacy")]
        target = [_table("Users", _name(50)), _table("Products")]

        statements = plan_migration(current, target, "postgresql")

        assert statements[0].startswith('CREATE TABLE "Products" (')
        assert statements[1] == 'ALTER TABLE "Users" ALTER COLUMN "Name" TYPE VARCHAR(50);'
        assert statements[-1] == 'DROP TABLE "Legacy";'
        assert len(statements) == 3

    def test_create_order_follows_input(self) -> None:
        target = [_table("B"), _table("A")]
        statements = plan_migration([], target, "mysql")
        assert [s.split("\n")[0] for s in statements] == ["CREATE TABLE `B` (", "CREATE TABLE `A` ("]

    def test_sqlite_recreation_for_not_null_column(self) -> None:
        current = [_table("Users", _name())]
        target = [_table("Users", _name(), Column(name="Email", nullable=False))]

        statements = plan_migration(current, target, "sqlite")

        assert "DROP TABLE [Users];" in statements
        assert statements[-1].endswith("RENAME TO [Users];")

    def test_sqlite_nullable_column_in_place(self) -> None:
        current = [_table("Users", _name())]
        target = [_table("Users", _name(), Column(name="Email"))]

        assert plan_migration(current, target, "sqlite") == ["ALTER TABLE [Users] ADD COLUMN [Email] TEXT NULL;"]

    def test_constraint_change_in_place(self) -> None:
        check = Constraint(
            name="CK_Users_Name",
            constraint_type=ConstraintType.CHECK,
            columns=["Name"],
            expression="length(\"Name\") > 0",
        )
        current = _table("Users", _name())
        target = current.model_copy(update={"constraints": [*current.constraints, check]})

        assert plan_migration([current], [target], "postgresql") == [
            'ALTER TABLE "Users" ADD CONSTRAINT "CK_Users_Name" CHECK (length("Name") > 0);'
        ]
