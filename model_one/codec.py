"""
Value codec: application values <-> SQLite storage values.

`encode` turns a logical value into the value bound to a statement parameter;
`decode` turns what SQLite hands back into the logical value. Both are pure and
never raise: a value whose runtime shape disagrees with the declared type is
coerced on a best-effort basis (type-correctness is the validator's job).

Round-trip law: `decode(encode(v, t), t) == v` for string, number, boolean and
JSON values. Dates are the documented exception: a `date`/`datetime` encodes to
its ISO-8601 string and decodes to that same string, not back to a date object.

JSON null: `None` on a JSON column encodes to the text "null" rather than SQL
NULL. An absent key leaves the column untouched on update while an explicit
`None` writes a JSON null, and the two must stay distinguishable.
"""

from __future__ import annotations

import json
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Optional, Union

from model_one.domain.schema import LogicalType

JSON_NULL = "null"

_FALSE_WORDS = frozenset({"", "0", "false", "f", "no", "off"})

StorageValue = Union[None, int, float, str, bytes]


def _parse_number(text: str) -> Optional[Union[int, float]]:
    """Parse "42" -> 42 and "1.5" -> 1.5; None when the text is not numeric."""
    stripped = text.strip()
    if not stripped:
        return None
    try:
        return int(stripped)
    except ValueError:
        pass
    try:
        return float(stripped)
    except ValueError:
        return None


def _as_bool(value: Any) -> bool:
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    if isinstance(value, str):
        number = _parse_number(value)
        if number is not None:
            return number != 0
        return value.strip().lower() not in _FALSE_WORDS
    return bool(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=repr)
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    return str(value)


def dump_json(value: Any) -> str:
    """Deterministic JSON text: sorted keys, compact separators."""
    try:
        return json.dumps(
            value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=_json_default
        )
    except TypeError:
        # mixed-type keys cannot be sorted
        pass
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=_json_default)
    except (TypeError, ValueError):
        return json.dumps(str(value), ensure_ascii=False)


def encode(value: Any, logical_type: Union[LogicalType, str]) -> StorageValue:
    """
    Convert a logical value into the value bound for storage.

    Parameters
    ----------
    value : Any
        Application value (None means NULL, or JSON null for json columns).
    logical_type : LogicalType | str
        Declared logical type of the column.

    Returns
    -------
    StorageValue
        None (SQL NULL), int, float, str or bytes.
    """
    kind = LogicalType(logical_type)

    if value is None:
        return JSON_NULL if kind is LogicalType.JSON else None

    if kind is LogicalType.BOOLEAN:
        return 1 if _as_bool(value) else 0

    if kind is LogicalType.JSON:
        return dump_json(value)

    if kind is LogicalType.DATE:
        if isinstance(value, (datetime, date, time)):
            return value.isoformat()
        return value if isinstance(value, (str, int, float, bytes)) else str(value)

    if kind is LogicalType.NUMBER:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, Decimal):
            return float(value)
        if isinstance(value, str):
            number = _parse_number(value)
            return value if number is None else number
        return str(value)

    # string
    if isinstance(value, (str, bytes)):
        return value
    if isinstance(value, (dict, list, tuple, set, frozenset)):
        return dump_json(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def decode(value: Any, logical_type: Union[LogicalType, str]) -> Any:
    """
    Convert a storage value back into its logical value.

    None (SQL NULL) always decodes to None.
    """
    kind = LogicalType(logical_type)

    if value is None:
        return None

    if kind is LogicalType.BOOLEAN:
        return _as_bool(value)

    if kind is LogicalType.NUMBER:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, (int, float)):
            return value
        if isinstance(value, str):
            number = _parse_number(value)
            return value if number is None else number
        return value

    if kind is LogicalType.JSON:
        if isinstance(value, (bytes, bytearray)):
            value = value.decode("utf-8", errors="replace")
        if not isinstance(value, str):
            return value
        if value == "" or value == JSON_NULL:
            return None
        try:
            return json.loads(value)
        except ValueError:
            return value

    # string and date are passthrough
    return value


def storage_literal(value: StorageValue) -> str:
    """
    Render an encoded value as SQL literal text.

    Only used to display statements (logs, CLI); execution always binds.
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, (bytes, bytearray)):
        return f"X'{bytes(value).hex()}'"
    text = str(value).replace("'", "''")
    return f"'{text}'"


__all__ = ["JSON_NULL", "StorageValue", "decode", "dump_json", "encode", "storage_literal"]
