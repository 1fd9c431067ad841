"""
Record value and result contracts returned by the repository.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, TypedDict

from pydantic import BaseModel, Field


class Record(BaseModel):
    """
    A decoded row of a table.

    `fields` holds every schema column (missing values decoded as None). The
    bookkeeping timestamps are only populated for the complete view.
    """

    id: Optional[str] = Field(None, description="UUID v4 text; None while pending.")
    fields: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    deleted_at: Optional[str] = None

    model_config = {
        "frozen": True,
        "arbitrary_types_allowed": False,
    }

    def __getitem__(self, key: str) -> Any:
        if key == "id":
            return self.id
        if key in ("created_at", "updated_at", "deleted_at"):
            return getattr(self, key)
        return self.fields[key]

    def __contains__(self, key: object) -> bool:
        return key in ("id", "created_at", "updated_at", "deleted_at") or key in self.fields

    def get(self, key: str, default: Any = None) -> Any:
        try:
            return self[key]
        except KeyError:
            return default

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def as_dict(self, bookkeeping: bool = True) -> Dict[str, Any]:
        """Flatten into `{"id": ..., **fields}` plus any non-null timestamps."""
        data: Dict[str, Any] = {"id": self.id}
        data.update(self.fields)
        if bookkeeping:
            for key in ("created_at", "updated_at", "deleted_at"):
                value = getattr(self, key)
                if value is not None:
                    data[key] = value
        return data


class QueryResult(TypedDict, total=False):
    """
    Contract returned by the execution capability.

    `error` carries the engine message verbatim when `success` is False.
    """

    success: bool
    rows: List[Dict[str, Any]]
    error: Optional[str]


class DeleteOutcome(TypedDict):
    """Result of a delete: a human-readable message plus what happened."""

    message: str
    id: str
    table: str
    soft: bool
    found: bool


__all__ = ["DeleteOutcome", "QueryResult", "Record"]
