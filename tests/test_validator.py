"""Tests for model validation against dialect capabilities."""

from db_schema_sync.analysis.declarations import (
    FieldDeclaration,
    ForeignKeyMarker,
    IndexMarker,
    PrimaryKey,
    TableDeclaration,
)
from db_schema_sync.analysis.validator import ValidationReport, validate_models, validate_tables
from db_schema_sync.ddl import Dialect
from db_schema_sync.schema.models import (
    Column,
    Index,
    IndexColumn,
    IndexType,
    ReferentialAction,
    SemanticType,
    Table,
)


def _docs(index_type: IndexType) -> TableDeclaration:
    return TableDeclaration(
        name="Docs",
        fields=[
            FieldDeclaration("Id", int, primary_key=PrimaryKey()),
            FieldDeclaration("Body", str, indexes=IndexMarker(index_type=index_type)),
        ],
    )


class TestValidateModels:
    """Verify validate_models() findings."""

    def test_valid_model(self) -> None:
        report = validate_models([_docs(IndexType.BTREE)], "postgresql")

        assert report.valid is True
        assert report.table_count == 1
        assert report.format_report() == "Models valid for postgresql"

    def test_unsupported_index_type_is_error(self) -> None:
        report = validate_models([_docs(IndexType.GIN)], "mysql")

        assert report.valid is False
        assert len(report.errors) == 1
        assert "'gin' is not supported by mysql" in report.errors[0].message
        assert report.format_report().startswith("Model validation failed for mysql:")

    def test_analyzer_error_reported_not_raised(self) -> None:
        declaration = TableDeclaration(
            name="Orders",
            fields=[FieldDeclaration("UserId", int, foreign_key=ForeignKeyMarker(""))],
        )
        report = validate_models([declaration], "sqlite")

        assert report.valid is False
        assert report.errors[0].table == "Orders"

    def test_unknown_include_reported_as_error(self) -> None:
        declaration = TableDeclaration(
            name="Docs",
            fields=[
                FieldDeclaration("Id", int, primary_key=PrimaryKey()),
                FieldDeclaration("Body", str, indexes=IndexMarker(include=("Title",))),
            ],
        )
        report = validate_models([declaration], "postgresql")

        assert report.valid is False
        assert report.errors[0].table == "Docs"
        assert "unknown field 'Title'" in report.errors[0].message

    def test_schema_ignored_warning(self) -> None:
        report = validate_models([_docs(IndexType.BTREE)], "sqlite", default_schema="app")

        assert report.valid is True
        assert "does not support schemas" in report.warnings[0].message
        assert "(with warnings)" in report.format_report()

    def test_sqlite_referential_action_warning(self) -> None:
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
        report = validate_models([declaration], Dialect.SQLITE)
        assert any("PRAGMA foreign_keys" in w.message for w in report.warnings)


class TestValidateTables:
    """Verify dialect-specific table checks."""

    def test_mysql_auto_increment_must_be_key(self) -> None:
        table = Table(
            name="Counters",
            columns=[Column(name="Seq", semantic_type=SemanticType.INT32, nullable=False, identity=True)],
        )
        report = validate_tables([table], "mysql")
        assert "AUTO_INCREMENT column 'Seq' must be a key" in report.errors[0].message

    def test_sqlserver_fulltext_requires_primary_key(self) -> None:
        table = Table(
            name="Docs",
            columns=[Column(name="Body")],
            indexes=[Index(name="FT_Docs", columns=[IndexColumn(name="Body")], index_type=IndexType.FULLTEXT)],
        )
        report = validate_tables([table], "sqlserver")
        assert any("requires a primary key" in e.message for e in report.errors)

    def test_non_integer_identity_warning(self) -> None:
        table = Table(name="Keys", columns=[Column(name="Code", identity=True, primary_key=True)])
        report = validate_tables([table], "postgresql")
        assert "is not an integer type" in report.warnings[0].message

    def test_raw_native_types_raise_no_issues(self) -> None:
        table = Table(
            name="Shapes",
            columns=[
                Column(name="Id", semantic_type=SemanticType.INT32, nullable=False, primary_key=True),
                Column(name="Outline", native_type="geometry"),
                Column(name="Amount", semantic_type=SemanticType.DECIMAL, precision=30, scale=4),
            ],
        )
        for dialect in ("postgresql", "sqlserver", "mysql", "sqlite"):
            assert validate_tables([table], dialect).issues == []

    def test_empty_report(self) -> None:
        report = ValidationReport(dialect=Dialect.MYSQL)
        assert report.valid is True
        assert report.errors == []
