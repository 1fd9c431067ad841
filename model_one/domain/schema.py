"""
Declarative table schema for model-one.

A `TableSchema` is the single source of truth the statement builder, codec,
mapper, and validator read from. It is immutable after construction and is
normally declared once at application start:

    users = TableSchema(
        table_name="users",
        columns=[
            ColumnSpec(name="name", type="string", required=True),
            ColumnSpec(name="active", type="boolean"),
            ColumnSpec(name="settings", type="json"),
        ],
        timestamps=True,
        soft_deletes=True,
    )

Uniques and constraints are advisory: they inform the generated validator and
the uniqueness check, they are never emitted as DDL.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from model_one.domain.errors import SchemaViolation

ID_COLUMN = "id"
CREATED_AT = "created_at"
UPDATED_AT = "updated_at"
DELETED_AT = "deleted_at"


class LogicalType(str, Enum):
    """Application-level type of a column."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"
    DATE = "date"


class StorageType(str, Enum):
    """SQLite storage hint. Informational only."""

    TEXT = "TEXT"
    INTEGER = "INTEGER"
    REAL = "REAL"
    NUMERIC = "NUMERIC"
    BLOB = "BLOB"
    BOOLEAN = "BOOLEAN"
    TIMESTAMP = "TIMESTAMP"
    DATE = "DATE"


class ConstraintKind(str, Enum):
    PRIMARY_KEY = "PRIMARY KEY"
    NOT_NULL = "NOT NULL"
    UNIQUE = "UNIQUE"
    CHECK = "CHECK"
    DEFAULT = "DEFAULT"
    FOREIGN_KEY = "FOREIGN KEY"


_DEFAULT_STORAGE: Dict[LogicalType, StorageType] = {
    LogicalType.STRING: StorageType.TEXT,
    LogicalType.NUMBER: StorageType.REAL,
    LogicalType.BOOLEAN: StorageType.INTEGER,
    LogicalType.JSON: StorageType.TEXT,
    LogicalType.DATE: StorageType.TEXT,
}


def default_storage_type(logical_type: LogicalType) -> StorageType:
    """Map a logical type to the SQLite type it is stored as by default."""
    return _DEFAULT_STORAGE.get(LogicalType(logical_type), StorageType.TEXT)


_FROZEN = {"frozen": True, "populate_by_name": True, "extra": "forbid"}


class Constraint(BaseModel):
    """A column constraint, e.g. `{"kind": "DEFAULT", "value": 0}`."""

    kind: ConstraintKind = Field(..., alias="type")
    value: Optional[Union[bool, int, float, str]] = None

    model_config = _FROZEN


class ColumnRules(BaseModel):
    """
    Validation rules for a column, consumed by the generated validator only.

    `min_length`/`max_length` apply to string columns, `minimum`/`maximum` to
    number columns. `email` and `uuid` are shorthands for well-known patterns.
    """

    min_length: Optional[int] = None
    max_length: Optional[int] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    pattern: Optional[str] = None
    email: bool = False
    uuid: bool = False

    model_config = _FROZEN


class ColumnSpec(BaseModel):
    """Declarative description of a single column."""

    name: str = Field(..., min_length=1)
    type: LogicalType
    storage_type: Optional[StorageType] = Field(None, alias="sqlite_type")
    required: bool = False
    constraints: Tuple[Constraint, ...] = ()
    rules: Optional[ColumnRules] = Field(None, alias="validation")

    model_config = _FROZEN

    @field_validator("type", mode="before")
    @classmethod
    def _accept_jsonb(cls, value: Any) -> Any:
        if isinstance(value, str) and value.lower() == "jsonb":
            return LogicalType.JSON
        return value

    def _has(self, kind: ConstraintKind) -> bool:
        return any(c.kind == kind for c in self.constraints)

    @property
    def is_primary_key(self) -> bool:
        return self._has(ConstraintKind.PRIMARY_KEY)

    @property
    def is_not_null(self) -> bool:
        return self.required or self._has(ConstraintKind.NOT_NULL)

    @property
    def default(self) -> Any:
        for constraint in self.constraints:
            if constraint.kind == ConstraintKind.DEFAULT:
                return constraint.value
        return None

    @property
    def has_default(self) -> bool:
        return self._has(ConstraintKind.DEFAULT)

    @property
    def effective_storage_type(self) -> StorageType:
        return self.storage_type or default_storage_type(self.type)


class TableSchema(BaseModel):
    """
    Immutable description of a table and its behaviour flags.

    Column order is the SQL column order used by generated statements.
    `timestamps` defaults to True; `soft_deletes` defaults to False.
    """

    table_name: str = Field(..., min_length=1)
    columns: Tuple[ColumnSpec, ...]
    uniques: Tuple[Tuple[str, ...], ...] = ()
    timestamps: bool = True
    soft_deletes: bool = Field(False, alias="softDeletes")

    model_config = _FROZEN

    @field_validator("uniques", mode="before")
    @classmethod
    def _normalize_uniques(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, str):
            return ((value,),)
        return tuple((item,) if isinstance(item, str) else tuple(item) for item in value)

    @model_validator(mode="after")
    def _check_columns(self) -> "TableSchema":
        names = [c.name for c in self.columns]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise SchemaViolation(
                f"Duplicate column(s) {', '.join(duplicates)} in table \"{self.table_name}\"",
                operation="schema",
                table=self.table_name,
                column=duplicates[0],
            )

        primary = [c.name for c in self.columns if c.is_primary_key]
        if len(primary) > 1:
            raise SchemaViolation(
                f"Table \"{self.table_name}\" declares more than one primary key: {', '.join(primary)}",
                operation="schema",
                table=self.table_name,
            )

        for name in self.bookkeeping_columns:
            if name in names:
                raise SchemaViolation(
                    f"Column \"{name}\" is managed automatically for table \"{self.table_name}\"",
                    operation="schema",
                    table=self.table_name,
                    column=name,
                )

        for combo in self.uniques:
            for name in combo:
                if name not in names:
                    raise SchemaViolation(
                        f"Unique column \"{name}\" is not declared in table \"{self.table_name}\"",
                        operation="schema",
                        table=self.table_name,
                        column=name,
                    )
        return self

    def column(self, name: str) -> Optional[ColumnSpec]:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    @property
    def data_columns(self) -> Tuple[ColumnSpec, ...]:
        """Every declared column except the id column."""
        return tuple(c for c in self.columns if c.name != ID_COLUMN)

    @property
    def bookkeeping_columns(self) -> Tuple[str, ...]:
        names: Tuple[str, ...] = ()
        if self.timestamps:
            names += (CREATED_AT, UPDATED_AT)
        if self.soft_deletes:
            names += (DELETED_AT,)
        return names

    @property
    def selectable_columns(self) -> Tuple[str, ...]:
        """Columns a lookup may filter on: id, data columns, bookkeeping."""
        return (ID_COLUMN,) + tuple(c.name for c in self.data_columns) + self.bookkeeping_columns


__all__ = [
    "CREATED_AT",
    "ColumnRules",
    "ColumnSpec",
    "Constraint",
    "ConstraintKind",
    "DELETED_AT",
    "ID_COLUMN",
    "LogicalType",
    "StorageType",
    "TableSchema",
    "UPDATED_AT",
    "default_storage_type",
]
