"""Tests for data-loss risk classification.

Covers:
- Table and column drops
- Length and precision reductions (including unbounded to bounded)
- Type change grading (narrowing, widening, encoding changes)
- Nullability changes
- RiskReport helpers and formatting
"""

import pytest

from db_schema_sync.errors import MigrationAbortedError
from db_schema_sync.migration.gate import MigrationMode, prepare_migration
from db_schema_sync.migration.risk import (
    RiskKind,
    RiskReport,
    Severity,
    classify,
    native_base_name,
    type_change_risk,
)
from db_schema_sync.schema.models import (
    UNBOUNDED,
    Column,
    Constraint,
    ConstraintType,
    SemanticType,
    Table,
)

ID = Column(name="Id", semantic_type=SemanticType.INT32, nullable=False, primary_key=True, identity=True)


def _table(name: str, *columns: Column) -> Table:
    return Table(
        name=name,
        columns=[ID, *columns],
        constraints=[
            Constraint(name=f"PK_{name}", constraint_type=ConstraintType.PRIMARY_KEY, columns=["Id"])
        ],
    )


def _classify_column(current: Column, target: Column, dialect=None) -> RiskReport:
    return classify([_table("Users", current)], [_table("Users", target)], dialect)


def _text(length: int | None, **fields) -> Column:
    return Column(name="Name", semantic_type=SemanticType.TEXT, max_length=length, **fields)


def _typed(semantic_type: SemanticType, **fields) -> Column:
    return Column(name="Value", semantic_type=semantic_type, **fields)


# ============================================================
# Test: Drops
# ============================================================


class TestDrops:
    """Verify drops are HIGH."""

    def test_table_drop(self) -> None:
        report = classify([_table("Legacy")], [])

        assert len(report.findings) == 1
        finding = report.findings[0]
        assert finding.severity == Severity.HIGH
        assert finding.kind == RiskKind.TABLE_DROP
        assert finding.description == "Table 'Legacy' will be dropped; all rows will be lost"

    def test_column_drop(self) -> None:
        report = classify([_table("Users", _text(200))], [_table("Users")], "postgresql")

        assert len(report.findings) == 1
        finding = report.findings[0]
        assert finding.kind == RiskKind.COLUMN_DROP
        assert finding.column == "Name"
        assert finding.description.startswith("Column 'Users.Name' will be dropped")
        assert finding.details == "Column type: VARCHAR(200)"

    def test_new_table_and_column_are_safe(self) -> None:
        report = classify(
            [_table("Users")],
            [_table("Users", _text(100)), _table("Products")],
        )
        assert report.findings == []


# ============================================================
# Test: Length and precision
# ============================================================


class TestLengthAndPrecision:
    """Verify size reductions."""

    @pytest.mark.parametrize("dialect", [None, "postgresql", "sqlserver", "mysql", "sqlite"])
    def test_length_reduction_is_single_high(self, dialect) -> None:
        report = _classify_column(_text(200, nullable=False), _text(50, nullable=False), dialect)

        assert len(report.findings) == 1
        finding = report.findings[0]
        assert finding.severity == Severity.HIGH
        assert finding.kind == RiskKind.LENGTH_REDUCTION
        assert "length reducing from 200 to 50" in finding.description

    def test_length_increase_is_safe(self) -> None:
        assert _classify_column(_text(50), _text(200)).findings == []

    def test_unbounded_to_bounded(self) -> None:
        report = _classify_column(_text(UNBOUNDED), _text(100))

        assert report.findings[0].severity == Severity.HIGH
        assert "from unbounded to 100" in report.findings[0].description

    def test_unset_length_uses_default(self) -> None:
        report = _classify_column(_text(None), _text(100))
        assert "from 255 to 100" in report.findings[0].description

    def test_native_length_parsed(self) -> None:
        report = _classify_column(
            Column(name="Name", native_type="nvarchar(max)"),
            Column(name="Name", native_type="nvarchar(40)"),
        )
        assert [f.kind for f in report.findings] == [RiskKind.LENGTH_REDUCTION]

    def test_precision_reduction(self) -> None:
        report = _classify_column(
            _typed(SemanticType.DECIMAL, precision=10, scale=2),
            _typed(SemanticType.DECIMAL, precision=8, scale=2),
        )

        assert len(report.findings) == 1
        assert report.findings[0].kind == RiskKind.PRECISION_REDUCTION
        assert "(10,2) to (8,2)" in report.findings[0].description

    def test_scale_reduction(self) -> None:
        report = _classify_column(
            _typed(SemanticType.DECIMAL, precision=10, scale=4),
            _typed(SemanticType.DECIMAL, precision=12, scale=2),
        )
        assert report.findings[0].severity == Severity.HIGH


# ============================================================
# Test: Type changes
# ============================================================


class TestTypeChanges:
    """Verify type change grading."""

    def test_integer_narrowing_is_high(self) -> None:
        report = _classify_column(_typed(SemanticType.INT64), _typed(SemanticType.INT32), "postgresql")

        finding = report.findings[0]
        assert finding.severity == Severity.HIGH
        assert finding.kind == RiskKind.TYPE_CHANGE
        assert "(BIGINT -> INTEGER)" in finding.description

    def test_integer_widening_is_low(self) -> None:
        report = _classify_column(_typed(SemanticType.INT32), _typed(SemanticType.INT64))

        assert report.findings[0].severity == Severity.LOW
        assert report.requires_confirmation is False

    def test_integer_into_small_decimal_is_high(self) -> None:
        report = _classify_column(
            _typed(SemanticType.INT64),
            _typed(SemanticType.DECIMAL, precision=5, scale=0),
            "postgresql",
        )

        assert len(report.findings) == 1
        finding = report.findings[0]
        assert finding.severity == Severity.HIGH
        assert "(BIGINT -> NUMERIC(5,0))" in finding.description
        assert report.requires_confirmation is True

    def test_integer_into_large_decimal_is_low(self) -> None:
        report = _classify_column(
            _typed(SemanticType.INT32),
            _typed(SemanticType.DECIMAL, precision=18, scale=2),
            "postgresql",
        )

        assert report.findings[0].severity == Severity.LOW
        assert report.requires_confirmation is False

    def test_bigint_into_default_decimal_is_high(self) -> None:
        """DECIMAL without precision is (18,2): 16 whole digits, BIGINT needs 19."""
        report = _classify_column(_typed(SemanticType.INT64), _typed(SemanticType.DECIMAL))
        assert report.findings[0].severity == Severity.HIGH

    def test_float_into_bounded_decimal_is_high(self) -> None:
        report = _classify_column(
            _typed(SemanticType.FLOAT64),
            _typed(SemanticType.DECIMAL, precision=4, scale=2),
            "postgresql",
        )

        assert report.findings[0].severity == Severity.HIGH
        assert "decimal(4,2)" in report.findings[0].description
        assert report.requires_confirmation is True

    def test_integer_into_raw_decimal(self) -> None:
        small = _classify_column(_typed(SemanticType.INT32), _typed(SemanticType.INT32, native_type="numeric(6,0)"))
        unbounded = _classify_column(_typed(SemanticType.INT64), _typed(SemanticType.INT64, native_type="numeric"))

        assert small.findings[0].severity == Severity.HIGH
        assert unbounded.findings[0].severity == Severity.LOW

    def test_normal_gate_stops_integer_into_small_decimal(self) -> None:
        with pytest.raises(MigrationAbortedError):
            prepare_migration(
                [_table("Users", _typed(SemanticType.INT64))],
                [_table("Users", _typed(SemanticType.DECIMAL, precision=5, scale=0))],
                "postgresql",
                MigrationMode.NORMAL,
            )

    def test_text_to_integer_is_high(self) -> None:
        report = _classify_column(_typed(SemanticType.TEXT), _typed(SemanticType.INT32))
        assert report.findings[0].severity == Severity.HIGH

    def test_same_family_different_encoding_is_medium(self) -> None:
        report = _classify_column(
            Column(name="Name", native_type="varchar(100)"),
            Column(name="Name", native_type="nvarchar(100)"),
        )

        assert len(report.findings) == 1
        assert report.findings[0].severity == Severity.MEDIUM
        assert "same family, different encoding" in report.findings[0].description

    def test_unrecognized_native_change_is_medium(self) -> None:
        report = _classify_column(
            Column(name="Shape", native_type="geometry"),
            Column(name="Shape", native_type="geography"),
        )
        assert report.findings[0].severity == Severity.MEDIUM
        assert "unrecognized type change" in report.findings[0].description

    @pytest.mark.parametrize(
        "before, after, expected",
        [
            (SemanticType.INT32, SemanticType.UINT32, Severity.MEDIUM),
            (SemanticType.INT8, SemanticType.UINT16, Severity.MEDIUM),
            (SemanticType.UINT8, SemanticType.INT16, Severity.LOW),
            (SemanticType.FLOAT64, SemanticType.FLOAT32, Severity.HIGH),
            (SemanticType.FLOAT32, SemanticType.FLOAT64, Severity.LOW),
            (SemanticType.DECIMAL, SemanticType.INT64, Severity.HIGH),
            (SemanticType.DECIMAL, SemanticType.FLOAT64, Severity.MEDIUM),
            (SemanticType.INT32, SemanticType.DECIMAL, Severity.LOW),
            (SemanticType.BOOLEAN, SemanticType.INT32, Severity.LOW),
            (SemanticType.UUID, SemanticType.TEXT, Severity.HIGH),
            (SemanticType.DATETIME, SemanticType.DATETIME_OFFSET, Severity.MEDIUM),
            (SemanticType.DURATION, SemanticType.UUID, Severity.MEDIUM),
        ],
    )
    def test_type_change_rules(self, before, after, expected) -> None:
        severity, _ = type_change_risk(before, after)
        assert severity == expected

    def test_same_type_is_not_a_change(self) -> None:
        assert type_change_risk(SemanticType.TEXT, SemanticType.TEXT) is None

    def test_native_base_name(self) -> None:
        assert native_base_name("nvarchar(200)") == "NVARCHAR"
        assert native_base_name("int(11)  unsigned") == "INT UNSIGNED"


# ============================================================
# Test: Nullability
# ============================================================


class TestNullability:
    """Verify nullable to NOT NULL handling."""

    def test_not_null_without_default_is_medium(self) -> None:
        report = _classify_column(_text(100), _text(100, nullable=False))

        assert len(report.findings) == 1
        assert report.findings[0].severity == Severity.MEDIUM
        assert report.findings[0].kind == RiskKind.NULLABILITY_CHANGE

    def test_not_null_with_default_is_safe(self) -> None:
        report = _classify_column(_text(100), _text(100, nullable=False, default="n/a"))
        assert report.findings == []

    def test_relaxing_to_nullable_is_safe(self) -> None:
        assert _classify_column(_text(100, nullable=False), _text(100)).findings == []


# ============================================================
# Test: Report
# ============================================================


class TestRiskReport:
    """Verify report helpers."""

    def test_empty_report(self) -> None:
        report = RiskReport()
        assert report.requires_confirmation is False
        assert report.format_report() == "No data-loss risks detected"

    def test_counts_and_lookup(self) -> None:
        report = classify(
            [_table("Users", _text(200), _typed(SemanticType.INT32)), _table("Legacy")],
            [_table("Users", _text(50), _typed(SemanticType.INT64))],
        )

        assert report.count(Severity.HIGH) == 2
        assert report.count(Severity.LOW) == 1
        assert report.has_high_risk is True
        assert report.has_medium_risk is False
        assert len(report.for_column("Users", "Name")) == 1

    def test_format_report_highest_first(self) -> None:
        report = classify(
            [_table("Users", _typed(SemanticType.INT32)), _table("Legacy")],
            [_table("Users", _typed(SemanticType.INT64))],
        )
        text = report.format_report()
        lines = text.splitlines()

        assert lines[0] == "Data-loss risks (2):"
        assert lines[1].startswith("  [HIGH] Table 'Legacy'")
        assert any(line.startswith("  [LOW]") for line in lines)
        assert "confirmation required" in text
