"""
Record mapper: raw storage rows -> decoded `Record` values.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, List, Mapping

from model_one.codec import decode
from model_one.domain.records import Record
from model_one.domain.schema import CREATED_AT, DELETED_AT, ID_COLUMN, UPDATED_AT, TableSchema


class View(str, Enum):
    """PUBLIC drops the bookkeeping timestamps; COMPLETE keeps them."""

    PUBLIC = "public"
    COMPLETE = "complete"


def _text(value: Any) -> Any:
    return None if value is None else str(value)


def to_record(row: Mapping[str, Any], schema: TableSchema, view: View = View.COMPLETE) -> Record:
    """
    Decode one row into a Record.

    Every column declared in the schema is present in `fields`, decoded to None
    when the row does not carry it. Row keys outside the schema are ignored.
    """
    fields = {column.name: decode(row.get(column.name), column.type) for column in schema.data_columns}

    bookkeeping = {}
    if View(view) is View.COMPLETE:
        bookkeeping = {
            "created_at": _text(row.get(CREATED_AT)),
            "updated_at": _text(row.get(UPDATED_AT)),
            "deleted_at": _text(row.get(DELETED_AT)),
        }

    return Record(id=_text(row.get(ID_COLUMN)), fields=fields, **bookkeeping)


def to_records(
    rows: Iterable[Mapping[str, Any]], schema: TableSchema, view: View = View.COMPLETE
) -> List[Record]:
    return [to_record(row, schema, view) for row in rows]


__all__ = ["View", "to_record", "to_records"]
