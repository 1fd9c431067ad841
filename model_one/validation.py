"""
Validation capability for model-one.

The repository validates every create/update payload through a `Validator`
before any SQL is generated. Two implementations are provided:

- `SchemaValidator` generates a pydantic model from the `TableSchema`
  (types, required flags, NOT NULL / DEFAULT constraints, column rules);
- `ModelClassValidator` validates against a pydantic model supplied by the
  caller, for rules a column definition cannot express.

A rejected payload raises `ValidationFailure` carrying one `FieldError` per
offending field, each with a machine-readable kind ("required", "too_short",
"wrong_type", "pattern_mismatch", ...).
"""

from __future__ import annotations

from datetime import date, datetime
from functools import lru_cache
from typing import (
    Annotated,
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    Type,
    Union,
    runtime_checkable,
)

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError, create_model
from pydantic_core import PydanticCustomError

from model_one.domain.errors import FieldError, ValidationFailure
from model_one.domain.schema import ColumnSpec, LogicalType, TableSchema

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"

_KIND_BY_ERROR_TYPE = {
    "missing": "required",
    "string_too_short": "too_short",
    "too_short": "too_short",
    "string_too_long": "too_long",
    "too_long": "too_long",
    "greater_than": "too_small",
    "greater_than_equal": "too_small",
    "less_than": "too_large",
    "less_than_equal": "too_large",
    "string_pattern_mismatch": "pattern_mismatch",
    "extra_forbidden": "unknown_field",
    "value_error": "invalid_value",
    "null_not_allowed": "required",
}


@runtime_checkable
class Validator(Protocol):
    """
    Validates a candidate payload for a table.

    `partial=True` is used for updates: only the supplied keys are checked and
    required columns may be absent (but not explicitly null).
    """

    def validate(
        self, schema: TableSchema, candidate: Mapping[str, Any], partial: bool = False
    ) -> Dict[str, Any]:
        ...


def error_kind(error_type: str) -> str:
    """Map a pydantic error type onto a stable failure kind."""
    if error_type in _KIND_BY_ERROR_TYPE:
        return _KIND_BY_ERROR_TYPE[error_type]
    if error_type.endswith("_type") or "parsing" in error_type:
        return "wrong_type"
    return error_type


def field_errors(exc: ValidationError, only: Optional[set] = None) -> List[FieldError]:
    """
    Convert a pydantic ValidationError into one FieldError per field.

    Union members report one error each; the first error per field is kept.
    """
    errors: Dict[str, FieldError] = {}
    for err in exc.errors():
        loc = err.get("loc") or ("__root__",)
        name = str(loc[0])
        if only is not None and name not in only:
            continue
        if name in errors:
            continue
        errors[name] = FieldError(field=name, kind=error_kind(err["type"]), message=err["msg"])
    return list(errors.values())


def _check_iso_date(value: str) -> str:
    text = value.strip()
    try:
        datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            date.fromisoformat(text)
        except ValueError:
            raise ValueError("Input should be an ISO-8601 date or datetime") from None
    return value


IsoDateString = Annotated[str, AfterValidator(_check_iso_date)]


def _reject_none(value: Any) -> Any:
    if value is None:
        raise PydanticCustomError("null_not_allowed", "Value is required and may not be null")
    return value


NonNullJson = Annotated[Any, AfterValidator(_reject_none)]


def _string_annotation(column: ColumnSpec) -> Any:
    rules = column.rules
    if rules is None:
        return str
    pattern = rules.pattern
    if pattern is None and rules.email:
        pattern = EMAIL_PATTERN
    if pattern is None and rules.uuid:
        pattern = UUID_PATTERN
    kwargs = {
        key: value
        for key, value in (
            ("min_length", rules.min_length),
            ("max_length", rules.max_length),
            ("pattern", pattern),
        )
        if value is not None
    }
    return Annotated[str, Field(**kwargs)] if kwargs else str


def _number_annotation(column: ColumnSpec) -> Any:
    rules = column.rules
    kwargs = {}
    if rules is not None and rules.minimum is not None:
        kwargs["ge"] = rules.minimum
    if rules is not None and rules.maximum is not None:
        kwargs["le"] = rules.maximum
    if not kwargs:
        return Union[int, float]
    return Union[Annotated[int, Field(**kwargs)], Annotated[float, Field(**kwargs)]]


def annotation_for(column: ColumnSpec) -> Any:
    """Python annotation a column's values are validated against."""
    if column.type is LogicalType.STRING:
        return _string_annotation(column)
    if column.type is LogicalType.NUMBER:
        return _number_annotation(column)
    if column.type is LogicalType.BOOLEAN:
        return bool
    if column.type is LogicalType.DATE:
        return Union[datetime, date, IsoDateString]
    return Any


def _model_name(table_name: str, partial: bool) -> str:
    base = "".join(part.capitalize() for part in table_name.replace("-", "_").split("_") if part)
    return f"{base or 'Table'}{'Update' if partial else 'Create'}Payload"


@lru_cache(maxsize=256)
def build_payload_model(schema: TableSchema, partial: bool = False) -> Type[BaseModel]:
    """
    Generate (and cache) the pydantic model validating payloads for `schema`.

    Create mode: NOT NULL / required columns without a DEFAULT must be present.
    Update mode: every column is optional, but a required column may not be
    explicitly set to None.
    """
    definitions: Dict[str, Tuple[Any, Any]] = {}
    for column in schema.data_columns:
        annotation = annotation_for(column)
        if column.is_not_null and column.type is LogicalType.JSON:
            annotation = NonNullJson
        must_exist = column.is_not_null and not column.has_default and not column.is_primary_key
        if column.is_not_null:
            definitions[column.name] = (annotation, None if partial or not must_exist else ...)
        else:
            definitions[column.name] = (Optional[annotation], None)

    return create_model(  # type: ignore[call-overload]
        _model_name(schema.table_name, partial),
        __config__=ConfigDict(extra="forbid"),
        **definitions,
    )


class SchemaValidator:
    """Validator generated from the table schema."""

    def validate(
        self, schema: TableSchema, candidate: Mapping[str, Any], partial: bool = False
    ) -> Dict[str, Any]:
        model = build_payload_model(schema, partial)
        try:
            instance = model.model_validate(dict(candidate))
        except ValidationError as exc:
            raise ValidationFailure(
                field_errors(exc), operation="update" if partial else "create", table=schema.table_name
            ) from exc
        return instance.model_dump(exclude_unset=True)


class ModelClassValidator:
    """
    Validator backed by a caller-supplied pydantic model.

    For partial payloads the full model is validated and only errors on the
    supplied keys are reported; the supplied values are returned unchanged.
    """

    def __init__(self, model: Type[BaseModel]) -> None:
        self.model = model

    def validate(
        self, schema: TableSchema, candidate: Mapping[str, Any], partial: bool = False
    ) -> Dict[str, Any]:
        operation = "update" if partial else "create"
        try:
            instance = self.model.model_validate(dict(candidate))
        except ValidationError as exc:
            errors = field_errors(exc, only=set(candidate) if partial else None)
            if errors:
                raise ValidationFailure(errors, operation=operation, table=schema.table_name) from exc
            return dict(candidate)
        dumped = instance.model_dump(exclude_unset=True)
        return {key: value for key, value in dumped.items() if key in candidate}


__all__ = [
    "EMAIL_PATTERN",
    "ModelClassValidator",
    "SchemaValidator",
    "UUID_PATTERN",
    "Validator",
    "annotation_for",
    "build_payload_model",
    "error_kind",
    "field_errors",
]
