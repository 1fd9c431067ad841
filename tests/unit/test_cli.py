from __future__ import annotations

import json
import sqlite3

import pytest
from typer.testing import CliRunner

from model_one import main as cli

runner = CliRunner()

NOTES_SCHEMA_JSON = json.dumps(
    {
        "table_name": "notes",
        "columns": [{"name": "title", "type": "string", "required": True}],
    }
)


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)


def test_info_shows_effective_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SQLITE_DB_PATH", "cli.db")

    result = runner.invoke(cli.app, ["info"])

    assert result.exit_code == 0
    assert "DB=cli.db" in result.output
    assert "check_uniques=True" in result.output


def test_query_prints_rows_as_json(db_path: str) -> None:
    conn = sqlite3.connect(db_path)
    conn.execute("INSERT INTO notes (id, title) VALUES ('n1', 'O''Neil')")
    conn.commit()
    conn.close()

    result = runner.invoke(
        cli.app, ["query", "SELECT id, title FROM notes WHERE id = ?", "-p", "n1", "--db", db_path, "--json"]
    )

    assert result.exit_code == 0
    assert json.loads(result.output) == [{"id": "n1", "title": "O'Neil"}]


def test_query_binds_numeric_parameters(db_path: str) -> None:
    result = runner.invoke(cli.app, ["query", "SELECT ? + 1 AS v", "-p", "41", "--db", db_path, "--json"])

    assert result.exit_code == 0
    assert json.loads(result.output) == [{"v": 42}]


def test_query_renders_a_table(db_path: str) -> None:
    result = runner.invoke(cli.app, ["query", "SELECT 'Ana' AS name", "--db", db_path])

    assert result.exit_code == 0
    assert "Ana" in result.output
    assert "1 row" in result.output


def test_failed_query_exits_non_zero(db_path: str) -> None:
    result = runner.invoke(cli.app, ["query", "SELECT * FROM missing_table", "--db", db_path])

    assert result.exit_code == 1
    assert "no such table" in result.output


def test_sql_prints_the_generated_statement() -> None:
    result = runner.invoke(cli.app, ["sql", NOTES_SCHEMA_JSON, "delete", "--id", "n1"])

    assert result.exit_code == 0
    assert "DELETE FROM" in result.output


def test_sql_reports_schema_violations() -> None:
    result = runner.invoke(cli.app, ["sql", NOTES_SCHEMA_JSON, "restore", "--id", "n1"])

    assert result.exit_code == 1
    assert "Soft deletes are not enabled" in result.output


def test_sql_validates_the_payload() -> None:
    result = runner.invoke(cli.app, ["sql", NOTES_SCHEMA_JSON, "insert", "--data", "{}"])

    assert result.exit_code == 1
    assert "ValidationFailure" in result.output


def test_sql_rejects_unknown_operations() -> None:
    result = runner.invoke(cli.app, ["sql", NOTES_SCHEMA_JSON, "truncate"])

    assert result.exit_code != 0
