"""
Statement builder: TableSchema + operation + payload -> SQL text and parameters.

Every value is bound through a `?` placeholder and every identifier is
double-quoted, so values containing quotes or SQL metacharacters are stored
verbatim. "Now" is never computed client-side: timestamps are delegated to the
engine through `NOW_SQL`, which yields ISO-8601 text with millisecond
resolution (e.g. 2024-05-01T12:30:45.123Z).

Usage:
    builder = StatementBuilder(schema)
    stmt = builder.insert({"name": "Ana"})
    result = await executor.execute(stmt.sql, stmt.params)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from model_one.codec import JSON_NULL, encode, storage_literal
from model_one.domain.errors import MissingIdentity, SchemaViolation
from model_one.domain.schema import (
    CREATED_AT,
    DELETED_AT,
    ID_COLUMN,
    UPDATED_AT,
    LogicalType,
    TableSchema,
)

NOW_SQL = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"

IdGenerator = Callable[[], str]


def uuid4_generator() -> str:
    """Default identity source: textual UUID v4."""
    return str(uuid.uuid4())


def quote_identifier(name: str) -> str:
    """Quote a table/column name for SQLite ("a""b" for a"b)."""
    return '"' + name.replace('"', '""') + '"'


class StatementKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    SOFT_DELETE = "soft_delete"
    RESTORE = "restore"
    SELECT = "select"


@dataclass(frozen=True)
class Statement:
    """
    A generated statement.

    `columns` lists the columns written (insert/update) in parameter order;
    `record_id` is the id the statement targets or, for inserts, generated.
    """

    kind: StatementKind
    sql: str
    params: Tuple[Any, ...] = ()
    columns: Tuple[str, ...] = ()
    record_id: Optional[str] = None
    table: str = ""

    def render(self) -> str:
        """Inline the parameters as literals. For display only."""
        pieces = self.sql.split("?")
        if len(pieces) - 1 != len(self.params):
            return self.sql
        out = [pieces[0]]
        for value, piece in zip(self.params, pieces[1:]):
            out.append(storage_literal(value))
            out.append(piece)
        return "".join(out)


class StatementBuilder:
    """
    Builds INSERT/UPDATE/DELETE/SELECT statements for one table schema.

    Parameters
    ----------
    schema : TableSchema
        The table the statements target.
    id_generator : callable, optional
        Zero-argument callable returning a new record id. Defaults to UUID v4.
    """

    def __init__(self, schema: TableSchema, id_generator: Optional[IdGenerator] = None) -> None:
        self.schema = schema
        self.id_generator = id_generator or uuid4_generator
        self._table = quote_identifier(schema.table_name)

    # ------------------------------------------------------------------ writes

    def insert(self, fields: Mapping[str, Any]) -> Statement:
        """
        INSERT with a freshly generated id.

        Only schema columns whose key is present in `fields` are written;
        unspecified optional columns are omitted, not set to NULL.
        """
        record_id = self.id_generator()
        columns: List[str] = [ID_COLUMN]
        params: List[Any] = [record_id]
        for column in self.schema.data_columns:
            if column.name in fields:
                columns.append(column.name)
                params.append(encode(fields[column.name], column.type))

        placeholders = ["?"] * len(columns)
        written = list(columns)
        if self.schema.timestamps:
            written += [CREATED_AT, UPDATED_AT]
            placeholders += [NOW_SQL, NOW_SQL]

        sql = (
            f"INSERT INTO {self._table} ({', '.join(quote_identifier(c) for c in written)}) "
            f"VALUES ({', '.join(placeholders)}) RETURNING *"
        )
        return Statement(
            kind=StatementKind.INSERT,
            sql=sql,
            params=tuple(params),
            columns=tuple(columns),
            record_id=record_id,
            table=self.schema.table_name,
        )

    def update(self, record_id: Optional[str], fields: Mapping[str, Any]) -> Optional[Statement]:
        """
        UPDATE the columns present in `fields`.

        Presence decides: a missing key leaves the column unchanged, an explicit
        None sets it to NULL (JSON null for json columns). Returns None when no
        schema column is present, leaving the fallback to the caller.
        """
        self._require_id(record_id, "update")
        assignments: List[str] = []
        columns: List[str] = []
        params: List[Any] = []
        for column in self.schema.data_columns:
            if column.name in fields:
                assignments.append(f"{quote_identifier(column.name)} = ?")
                columns.append(column.name)
                params.append(encode(fields[column.name], column.type))

        if not assignments:
            return None

        if self.schema.timestamps:
            assignments.append(f"{quote_identifier(UPDATED_AT)} = {NOW_SQL}")

        sql = (
            f"UPDATE {self._table} SET {', '.join(assignments)} "
            f"WHERE {quote_identifier(ID_COLUMN)} = ? RETURNING *"
        )
        return Statement(
            kind=StatementKind.UPDATE,
            sql=sql,
            params=tuple(params) + (record_id,),
            columns=tuple(columns),
            record_id=record_id,
            table=self.schema.table_name,
        )

    def delete(self, record_id: Optional[str]) -> Statement:
        """Soft delete (stamp deleted_at) when enabled, hard DELETE otherwise."""
        self._require_id(record_id, "delete")
        where = f"WHERE {quote_identifier(ID_COLUMN)} = ? RETURNING {quote_identifier(ID_COLUMN)}"
        if self.schema.soft_deletes:
            return Statement(
                kind=StatementKind.SOFT_DELETE,
                sql=f"UPDATE {self._table} SET {quote_identifier(DELETED_AT)} = {NOW_SQL} {where}",
                params=(record_id,),
                record_id=record_id,
                table=self.schema.table_name,
            )
        return Statement(
            kind=StatementKind.DELETE,
            sql=f"DELETE FROM {self._table} {where}",
            params=(record_id,),
            record_id=record_id,
            table=self.schema.table_name,
        )

    def restore(self, record_id: Optional[str]) -> Statement:
        """Clear deleted_at. Only valid for soft-delete schemas."""
        if not self.schema.soft_deletes:
            raise SchemaViolation(
                f'Soft deletes are not enabled for table "{self.schema.table_name}"',
                operation="restore",
                table=self.schema.table_name,
                record_id=record_id,
            )
        self._require_id(record_id, "restore")
        return Statement(
            kind=StatementKind.RESTORE,
            sql=(
                f"UPDATE {self._table} SET {quote_identifier(DELETED_AT)} = NULL "
                f"WHERE {quote_identifier(ID_COLUMN)} = ? RETURNING *"
            ),
            params=(record_id,),
            record_id=record_id,
            table=self.schema.table_name,
        )

    # ------------------------------------------------------------------- reads

    def select_all(self, include_deleted: bool = False) -> Statement:
        return self._select([], [], include_deleted=include_deleted)

    def find_by_id(self, record_id: Optional[str], include_deleted: bool = False) -> Statement:
        self._require_id(record_id, "find_by_id")
        return self._select(
            [f"{quote_identifier(ID_COLUMN)} = ?"],
            [record_id],
            include_deleted=include_deleted,
            limit_one=True,
            record_id=record_id,
        )

    def find_one(self, column: str, value: Any, include_deleted: bool = False) -> Statement:
        condition, params = self._lookup(column, value, "find_one")
        return self._select([condition], params, include_deleted=include_deleted, limit_one=True)

    def find_by(self, column: str, value: Any, include_deleted: bool = False) -> Statement:
        condition, params = self._lookup(column, value, "find_by")
        return self._select([condition], params, include_deleted=include_deleted)

    def unique_lookup(
        self,
        columns: Sequence[str],
        values: Mapping[str, Any],
        exclude_id: Optional[str] = None,
    ) -> Statement:
        """
        SELECT the id of any row already holding this combination of values.

        Soft-deleted rows are included: they still occupy the value.
        """
        conditions: List[str] = []
        params: List[Any] = []
        for name in columns:
            condition, bound = self._lookup(name, values.get(name), "unique_lookup")
            conditions.append(condition)
            params.extend(bound)
        if exclude_id:
            conditions.append(f"{quote_identifier(ID_COLUMN)} <> ?")
            params.append(exclude_id)
        sql = (
            f"SELECT {quote_identifier(ID_COLUMN)} FROM {self._table} "
            f"WHERE {' AND '.join(conditions)} LIMIT 1"
        )
        return Statement(
            kind=StatementKind.SELECT,
            sql=sql,
            params=tuple(params),
            columns=tuple(columns),
            record_id=exclude_id,
            table=self.schema.table_name,
        )

    # ----------------------------------------------------------------- helpers

    def _select(
        self,
        conditions: List[str],
        params: List[Any],
        include_deleted: bool,
        limit_one: bool = False,
        record_id: Optional[str] = None,
    ) -> Statement:
        conditions = list(conditions)
        if self.schema.soft_deletes and not include_deleted:
            conditions.append(f"{quote_identifier(DELETED_AT)} IS NULL")
        sql = f"SELECT * FROM {self._table}"
        if conditions:
            sql += f" WHERE {' AND '.join(conditions)}"
        if limit_one:
            sql += " LIMIT 1"
        return Statement(
            kind=StatementKind.SELECT,
            sql=sql,
            params=tuple(params),
            record_id=record_id,
            table=self.schema.table_name,
        )

    def _lookup(self, column: str, value: Any, operation: str) -> Tuple[str, List[Any]]:
        if column not in self.schema.selectable_columns:
            raise SchemaViolation(
                f'Unknown column "{column}" for table "{self.schema.table_name}"',
                operation=operation,
                table=self.schema.table_name,
                column=column,
            )
        spec = self.schema.column(column)
        logical_type = spec.type if spec is not None else LogicalType.STRING
        quoted = quote_identifier(column)
        if value is None:
            # a JSON column holding "null" and a NULL column both mean "no value"
            if logical_type is LogicalType.JSON:
                return f"({quoted} IS NULL OR {quoted} = ?)", [JSON_NULL]
            return f"{quoted} IS NULL", []
        return f"{quoted} = ?", [encode(value, logical_type)]

    def _require_id(self, record_id: Optional[str], operation: str) -> None:
        if not record_id:
            raise MissingIdentity(
                f'{operation} on table "{self.schema.table_name}" requires a record id',
                operation=operation,
                table=self.schema.table_name,
            )


__all__ = [
    "IdGenerator",
    "NOW_SQL",
    "Statement",
    "StatementBuilder",
    "StatementKind",
    "quote_identifier",
    "uuid4_generator",
]
