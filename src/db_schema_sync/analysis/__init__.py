"""Model declarations, the model analyzer and dialect validation.

Usage:
    from db_schema_sync.analysis import TableDeclaration, analyze_models
"""

from db_schema_sync.analysis.analyzer import (
    ModelAnalyzer,
    analyze_models,
    resolve_semantic_type,
)
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
from db_schema_sync.analysis.validator import (
    ValidationIssue,
    ValidationReport,
    validate_models,
    validate_tables,
)

__all__ = [
    # Declarations
    "CheckMarker",
    "ColumnOptions",
    "Computed",
    "DefaultValue",
    "FieldDeclaration",
    "ForeignKeyMarker",
    "IndexMarker",
    "PrimaryKey",
    "TableDeclaration",
    "UniqueMarker",
    "declaration_from_dataclass",
    # Analyzer
    "ModelAnalyzer",
    "analyze_models",
    "resolve_semantic_type",
    # Validator
    "ValidationIssue",
    "ValidationReport",
    "validate_models",
    "validate_tables",
]
