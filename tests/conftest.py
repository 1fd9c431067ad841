"""
Pytest configuration for model-one.

Provides fixtures for:
- Table schemas used across the suite (soft-delete users, hard-delete notes)
- A deterministic id generator
- A recording fake executor for unit tests
- A temporary SQLite database with DDL plus aiosqlite-backed repositories
  for integration tests
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

import pytest
import pytest_asyncio

from model_one.config import get_settings
from model_one.domain.records import QueryResult
from model_one.domain.schema import TableSchema
from model_one.infrastructure.executor import SqliteExecutor
from model_one.repository import Repository

USERS_DDL = """
CREATE TABLE users (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT UNIQUE,
    age INTEGER,
    active INTEGER,
    settings TEXT,
    birthday TEXT,
    created_at TEXT,
    updated_at TEXT,
    deleted_at TEXT
)
"""

NOTES_DDL = """
CREATE TABLE notes (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    body TEXT,
    created_at TEXT,
    updated_at TEXT
)
"""


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Isolate every test from the caller's environment and the settings cache."""
    for name in ("SQLITE_DB_PATH", "CHECK_UNIQUES", "LOG_JSON", "LOG_LEVEL", "SQLITE_RETRY_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def users_schema() -> TableSchema:
    return TableSchema.model_validate(
        {
            "table_name": "users",
            "timestamps": True,
            "softDeletes": True,
            "uniques": ["email"],
            "columns": [
                {"name": "name", "type": "string", "required": True, "validation": {"min_length": 1}},
                {"name": "email", "type": "string", "validation": {"email": True}},
                {"name": "age", "type": "number", "validation": {"minimum": 0}},
                {"name": "active", "type": "boolean"},
                {"name": "settings", "type": "json"},
                {"name": "birthday", "type": "date"},
            ],
        }
    )


@pytest.fixture(scope="session")
def notes_schema() -> TableSchema:
    return TableSchema.model_validate(
        {
            "table_name": "notes",
            "columns": [
                {"name": "title", "type": "string", "required": True},
                {"name": "body", "type": "string"},
            ],
        }
    )


@pytest.fixture
def id_sequence() -> Callable[[], str]:
    """Deterministic UUID-shaped ids: ...0001, ...0002, ..."""
    counter = {"value": 0}

    def _next() -> str:
        counter["value"] += 1
        return f"00000000-0000-4000-8000-{counter['value']:012d}"

    return _next


class FakeExecutor:
    """
    Executor double: records every call and replays queued results.

    When the queue is empty it answers `success=True` with no rows.
    """

    def __init__(self, results: Optional[List[QueryResult]] = None) -> None:
        self.results: List[QueryResult] = list(results or [])
        self.calls: List[Dict[str, Any]] = []

    def queue(self, *results: QueryResult) -> "FakeExecutor":
        self.results.extend(results)
        return self

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        self.calls.append({"sql": sql, "params": tuple(params)})
        if self.results:
            return self.results.pop(0)
        return QueryResult(success=True, rows=[], error=None)

    @property
    def statements(self) -> List[str]:
        return [call["sql"] for call in self.calls]


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Temporary SQLite file with the users and notes tables created."""
    path = tmp_path / "model_one_test.db"
    conn = sqlite3.connect(path)
    try:
        conn.execute(USERS_DDL)
        conn.execute(NOTES_DDL)
        conn.commit()
    finally:
        conn.close()
    return str(path)


@pytest_asyncio.fixture
async def sqlite_executor(db_path: str):
    executor = SqliteExecutor(db_path, timeout=1.0, retry_attempts=2)
    try:
        yield executor
    finally:
        await executor.close()


@pytest.fixture
def users_repo(users_schema: TableSchema, sqlite_executor: SqliteExecutor) -> Repository:
    return Repository(users_schema, sqlite_executor)


@pytest.fixture
def notes_repo(notes_schema: TableSchema, sqlite_executor: SqliteExecutor) -> Repository:
    return Repository(notes_schema, sqlite_executor)
