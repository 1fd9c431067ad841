from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from pydantic import ValidationError

from model_one.config import get_settings
from model_one.domain.errors import ModelError
from model_one.domain.records import QueryResult
from model_one.domain.schema import TableSchema
from model_one.infrastructure.executor import SqliteExecutor
from model_one.reporter import print_rows, print_statement
from model_one.statements import Statement, StatementBuilder
from model_one.utils.logging import configure_logging
from model_one.validation import SchemaValidator

app = typer.Typer(help="model-one: schema-driven SQLite records.")

OPERATIONS = ("insert", "update", "delete", "restore", "find_all", "find_by_id", "find_one")


@app.callback()
def _setup() -> None:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_path} | timeout={settings.db_timeout_seconds}s "
        f"retries={settings.db_retry_attempts} | env={settings.app_env} "
        f"log={settings.log_level}{' (json)' if settings.log_json else ''} "
        f"check_uniques={settings.check_uniques}"
    )


def _coerce_param(raw: str) -> Any:
    """Numbers, booleans and null are bound as such; anything else as text."""
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return raw
    return value if isinstance(value, (int, float, bool)) or value is None else raw


async def _run_query(sql: str, params: List[Any], db_path: Optional[str]) -> QueryResult:
    async with SqliteExecutor(db_path) as executor:
        return await executor.execute(sql, params)


@app.command()
def query(
    sql: str = typer.Argument(..., help="SQL statement; use ? placeholders for parameters."),
    params: List[str] = typer.Option(
        [],
        "--param",
        "-p",
        help="Positional parameter (repeatable). Numbers, true/false and null are bound as such.",
    ),
    db: Optional[str] = typer.Option(None, "--db", help="SQLite database path (default from settings)."),
    as_json: bool = typer.Option(False, "--json", help="Print rows as JSON instead of a table."),
) -> None:
    """
    Run a raw statement and print the rows it returns.
    """
    result = asyncio.run(_run_query(sql, [_coerce_param(p) for p in params], db))
    if not result.get("success"):
        typer.echo(f"Query failed: {result.get('error')}", err=True)
        raise typer.Exit(code=1)

    rows = result.get("rows") or []
    if as_json:
        typer.echo(json.dumps(rows, indent=2, default=str))
        return
    print_rows(rows)


def _load_json(text: str, what: str) -> Any:
    path = Path(text)
    try:
        if path.suffix == ".json" and path.is_file():
            return json.loads(path.read_text(encoding="utf-8"))
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{what} is not valid JSON: {exc}") from exc


def build_statement(
    schema: TableSchema,
    operation: str,
    data: Dict[str, Any],
    record_id: Optional[str],
    include_deleted: bool,
) -> Optional[Statement]:
    """Statement the repository would send for `operation`, after validating `data`."""
    builder = StatementBuilder(schema)
    validator = SchemaValidator()
    if operation == "insert":
        return builder.insert(validator.validate(schema, data))
    if operation == "update":
        return builder.update(record_id, validator.validate(schema, data, partial=True))
    if operation == "delete":
        return builder.delete(record_id)
    if operation == "restore":
        return builder.restore(record_id)
    if operation == "find_all":
        return builder.select_all(include_deleted)
    if operation == "find_by_id":
        return builder.find_by_id(record_id, include_deleted)
    if len(data) != 1:
        raise typer.BadParameter("find_one expects --data with exactly one column, e.g. '{\"email\": \"a@b.c\"}'")
    ((column, value),) = data.items()
    return builder.find_one(column, value, include_deleted)


@app.command()
def sql(
    schema_json: str = typer.Argument(..., help="Table schema as inline JSON or a path to a .json file."),
    operation: str = typer.Argument(..., help=f"One of: {', '.join(OPERATIONS)}."),
    data: Optional[str] = typer.Option(None, "--data", "-d", help="Payload as a JSON object."),
    record_id: Optional[str] = typer.Option(None, "--id", help="Target record id."),
    include_deleted: bool = typer.Option(False, "--include-deleted", help="Include soft-deleted rows in finds."),
) -> None:
    """
    Print the statement generated for an operation, without executing it.
    """
    if operation not in OPERATIONS:
        raise typer.BadParameter(f"unknown operation {operation!r}; expected one of {', '.join(OPERATIONS)}")

    payload = _load_json(data, "--data") if data else {}
    if not isinstance(payload, dict):
        raise typer.BadParameter("--data must be a JSON object")

    try:
        schema = TableSchema.model_validate(_load_json(schema_json, "SCHEMA_JSON"))
        statement = build_statement(schema, operation, payload, record_id, include_deleted)
    except ValidationError as exc:
        typer.echo(f"Invalid schema: {exc}", err=True)
        raise typer.Exit(code=1)
    except ModelError as exc:
        typer.echo(f"{type(exc).__name__}: {exc}", err=True)
        raise typer.Exit(code=1)

    if statement is None:
        typer.echo("Nothing to update: no schema column in --data.")
        return
    print_statement(statement)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
    except ModelError as exc:
        typer.echo(f"{type(exc).__name__}: {exc}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
