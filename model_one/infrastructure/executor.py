"""
Execution capability for model-one.

`Executor` is the only I/O seam of the package: it takes a SQL statement plus
bound parameters and returns a `QueryResult` (`success`, `rows`, `error`). The
repository never inspects engine error codes beyond the success flag.

`SqliteExecutor` is the default implementation, backed by aiosqlite. It owns a
single connection opened lazily on first use (a `:memory:` database only lives
as long as its connection), runs in autocommit mode, and retries transient
"database is locked/busy" errors with tenacity. Every other engine error is
returned as `success=False` with the engine message verbatim.

Usage:
    async with SqliteExecutor("app.db") as executor:
        result = await executor.execute("SELECT * FROM users WHERE id = ?", ["..."])
"""

from __future__ import annotations

import asyncio
import sqlite3
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

import aiosqlite
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from model_one.config import get_settings
from model_one.domain.records import QueryResult
from model_one.utils.logging import get_logger

log = get_logger(__name__)

_TRANSIENT_MARKERS = ("database is locked", "database is busy", "database table is locked")


@runtime_checkable
class Executor(Protocol):
    """Runs one statement and reports rows plus a success flag."""

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        ...


def _is_transient(exc: BaseException) -> bool:
    """Locked/busy errors are worth retrying; constraint and syntax errors are not."""
    return isinstance(exc, sqlite3.OperationalError) and any(
        marker in str(exc).lower() for marker in _TRANSIENT_MARKERS
    )


class SqliteExecutor:
    """
    aiosqlite-backed executor holding one connection.

    Parameters
    ----------
    db_path : str, optional
        Database file path or ":memory:". Defaults to settings.db_path.
    timeout : float, optional
        Seconds SQLite waits on a locked database before failing.
    retry_attempts : int, optional
        Attempts for transient locked/busy errors (tenacity, exponential backoff).
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        timeout: Optional[float] = None,
        retry_attempts: Optional[int] = None,
    ) -> None:
        settings = get_settings()
        self.db_path = db_path or settings.db_path
        self.timeout = timeout if timeout is not None else settings.db_timeout_seconds
        self.retry_attempts = max(
            1, retry_attempts if retry_attempts is not None else settings.db_retry_attempts
        )
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "SqliteExecutor":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def connect(self) -> aiosqlite.Connection:
        """Open the connection if needed (idempotent)."""
        async with self._lock:
            if self._conn is None:
                conn = await aiosqlite.connect(
                    self.db_path, timeout=self.timeout, isolation_level=None
                )
                conn.row_factory = sqlite3.Row
                self._conn = conn
                log.debug("SQLite connection opened", extra={"db_path": self.db_path})
            return self._conn

    async def close(self) -> None:
        """Close the connection and release resources."""
        async with self._lock:
            if self._conn is not None:
                await self._conn.close()
                self._conn = None
                log.debug("SQLite connection closed", extra={"db_path": self.db_path})

    async def _fetch(self, sql: str, params: Sequence[Any]) -> list:
        conn = await self.connect()
        async with conn.execute(sql, tuple(params)) as cursor:
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def execute(self, sql: str, params: Sequence[Any] = ()) -> QueryResult:
        """
        Run a statement and return its rows.

        Engine errors are reported as `success=False` with the raw message;
        transient locked/busy errors are retried first.
        """
        log.debug("[SQL] execute", extra={"sql": sql, "params": list(params)})
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.retry_attempts),
                wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
                retry=retry_if_exception(_is_transient),
                reraise=True,
            ):
                with attempt:
                    rows = await self._fetch(sql, params)
        except sqlite3.Error as exc:
            log.warning("[SQL] failed", extra={"sql": sql, "error": str(exc)})
            return QueryResult(success=False, rows=[], error=str(exc))

        return QueryResult(success=True, rows=rows, error=None)


__all__ = ["Executor", "SqliteExecutor"]
