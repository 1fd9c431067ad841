"""
model-one - a minimal, schema-driven SQLite record layer.

A `TableSchema` describes a table; the package turns it into parameterized SQL,
runs it through an `Executor`, and maps rows back into `Record` values:

- ValueCodec: logical types <-> SQLite storage values
- StatementBuilder: INSERT/UPDATE/DELETE/SELECT text plus bound parameters
- RecordMapper: raw rows -> decoded records (public or complete view)
- Repository / Model: CRUD, soft delete and restore orchestration

Timestamps are engine-generated, ids are UUID v4 text, and soft-deleted rows are
hidden from finds unless explicitly requested.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from model_one.codec import decode, encode
from model_one.config import Settings, get_settings
from model_one.domain import (
    ColumnRules,
    ColumnSpec,
    Constraint,
    DeleteOutcome,
    FieldError,
    LogicalType,
    MissingIdentity,
    ModelError,
    QueryResult,
    Record,
    RecordNotFound,
    SchemaViolation,
    StorageFailure,
    TableSchema,
    ValidationFailure,
)
from model_one.infrastructure import Executor, SqliteExecutor
from model_one.mapper import View, to_record, to_records
from model_one.repository import Model, Repository
from model_one.statements import Statement, StatementBuilder
from model_one.utils.logging import configure_logging, get_logger
from model_one.validation import ModelClassValidator, SchemaValidator, Validator

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Schema
    "ColumnRules",
    "ColumnSpec",
    "Constraint",
    "LogicalType",
    "TableSchema",
    # Codec / statements / mapping
    "decode",
    "encode",
    "Statement",
    "StatementBuilder",
    "View",
    "to_record",
    "to_records",
    # Facade
    "Model",
    "Repository",
    "Record",
    "DeleteOutcome",
    "QueryResult",
    # Capabilities
    "Executor",
    "SqliteExecutor",
    "ModelClassValidator",
    "SchemaValidator",
    "Validator",
    # Errors
    "FieldError",
    "MissingIdentity",
    "ModelError",
    "RecordNotFound",
    "SchemaViolation",
    "StorageFailure",
    "ValidationFailure",
    # Logging
    "configure_logging",
    "get_logger",
]
