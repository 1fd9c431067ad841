"""
Infrastructure package for model-one.

Centralizes the SQL execution capability (protocol + aiosqlite implementation).
Keep this layer focused on I/O and resource management, decoupled from the
statement builder and repository logic.
"""

from model_one.infrastructure.executor import Executor, SqliteExecutor

__all__ = [
    "Executor",
    "SqliteExecutor",
]
