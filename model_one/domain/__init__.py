"""
Domain package for model-one.

Exports the table schema definitions, the record/result contracts, and the
error taxonomy. Keep this package focused on data definitions; it performs no I/O.
"""

from model_one.domain.errors import (
    FieldError,
    MissingIdentity,
    ModelError,
    RecordNotFound,
    SchemaViolation,
    StorageFailure,
    ValidationFailure,
)
from model_one.domain.records import DeleteOutcome, QueryResult, Record
from model_one.domain.schema import (
    ColumnRules,
    ColumnSpec,
    Constraint,
    ConstraintKind,
    LogicalType,
    StorageType,
    TableSchema,
)

__all__ = [
    # Schema
    "ColumnRules",
    "ColumnSpec",
    "Constraint",
    "ConstraintKind",
    "LogicalType",
    "StorageType",
    "TableSchema",
    # Records
    "DeleteOutcome",
    "QueryResult",
    "Record",
    # Errors
    "FieldError",
    "MissingIdentity",
    "ModelError",
    "RecordNotFound",
    "SchemaViolation",
    "StorageFailure",
    "ValidationFailure",
]
