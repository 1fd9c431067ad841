"""
Error taxonomy for model-one.

Every failure raised by the repository derives from `ModelError` and carries the
operation kind plus the table, record id, and column involved where they are
known. Callers branch on the subclass rather than on message text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

# SQLite reports constraint failures as "<KIND> constraint failed: <detail>".
_CONSTRAINT_RE = re.compile(
    r"(?P<kind>UNIQUE|NOT NULL|CHECK|FOREIGN KEY|PRIMARY KEY) constraint failed(?::\s*(?P<detail>.+))?",
    re.IGNORECASE,
)


class ModelError(Exception):
    """Base class for every error surfaced by model-one."""

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        record_id: Optional[str] = None,
        column: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.table = table
        self.record_id = record_id
        self.column = column

    def __str__(self) -> str:
        return self.message


class SchemaViolation(ModelError):
    """An operation or definition the table schema does not allow."""


class MissingIdentity(ModelError):
    """update/delete/restore invoked without a usable record id."""


class RecordNotFound(ModelError):
    """A write targeted an id that matched no row."""


@dataclass(frozen=True)
class FieldError:
    """One offending field reported by a validator."""

    field: str
    kind: str
    message: str


class ValidationFailure(ModelError):
    """The validator rejected the payload; all field errors are kept."""

    def __init__(self, errors: Sequence[FieldError], **kwargs) -> None:
        self.errors: List[FieldError] = list(errors)
        summary = "; ".join(f"{e.field}: {e.message}" for e in self.errors) or "invalid payload"
        super().__init__(f"Validation failed: {summary}", **kwargs)

    @property
    def messages(self) -> List[str]:
        return [e.message for e in self.errors]

    @property
    def fields(self) -> List[str]:
        return [e.field for e in self.errors]


class StorageFailure(ModelError):
    """
    The execution capability reported a failure.

    `raw_message` is the engine text, verbatim. When it is a SQLite constraint
    failure, `constraint` holds the constraint kind (e.g. "UNIQUE") and
    `column` the first column named in the message.
    """

    def __init__(self, raw_message: str, **kwargs) -> None:
        self.raw_message = raw_message
        self.constraint: Optional[str] = None
        constraint, column = parse_constraint_failure(raw_message)
        if constraint is not None:
            self.constraint = constraint
            if kwargs.get("column") is None:
                kwargs["column"] = column
        super().__init__(raw_message, **kwargs)


def parse_constraint_failure(raw_message: str) -> tuple[Optional[str], Optional[str]]:
    """
    Extract (constraint kind, column) from a SQLite constraint error message.

    "UNIQUE constraint failed: users.email" -> ("UNIQUE", "email")
    "CHECK constraint failed: age > 0"      -> ("CHECK", None)
    """
    match = _CONSTRAINT_RE.search(raw_message or "")
    if match is None:
        return None, None
    kind = match.group("kind").upper()
    detail = (match.group("detail") or "").strip()
    first = detail.split(",")[0].strip()
    column: Optional[str] = None
    if "." in first and " " not in first:
        column = first.rsplit(".", 1)[1]
    return kind, column


__all__ = [
    "FieldError",
    "MissingIdentity",
    "ModelError",
    "RecordNotFound",
    "SchemaViolation",
    "StorageFailure",
    "ValidationFailure",
    "parse_constraint_failure",
]
