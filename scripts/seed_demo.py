"""
Demo database seeding script for model-one.

Creates (or resets) a SQLite file with a `users` table and inserts deterministic
pseudo-random rows through the Repository, so every row goes through validation,
id generation and engine timestamps exactly as application writes do. Every
fifth user is soft deleted to make the visibility rules easy to try out:

    python scripts/seed_demo.py --db demo.db --rows 25
    model-one query 'SELECT id, name, deleted_at FROM users' --db demo.db
"""

from __future__ import annotations

import asyncio
import random
import sys
import time
from pathlib import Path
from typing import List

import typer

from model_one.domain.records import Record
from model_one.domain.schema import TableSchema
from model_one.infrastructure.executor import SqliteExecutor
from model_one.repository import Repository
from model_one.utils.logging import configure_logging

app = typer.Typer(help="Create a demo SQLite database and seed it through the repository.")

DEMO_SCHEMA = TableSchema.model_validate(
    {
        "table_name": "users",
        "timestamps": True,
        "softDeletes": True,
        "uniques": ["email"],
        "columns": [
            {"name": "name", "type": "string", "required": True, "validation": {"min_length": 1}},
            {"name": "email", "type": "string", "validation": {"email": True}},
            {"name": "age", "type": "number", "validation": {"minimum": 0}},
            {"name": "active", "type": "boolean", "constraints": [{"type": "DEFAULT", "value": 1}]},
            {"name": "profile", "type": "jsonb"},
            {"name": "birthday", "type": "date"},
        ],
    }
)

DEMO_DDL = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    email TEXT UNIQUE,
    age INTEGER,
    active INTEGER NOT NULL DEFAULT 1,
    profile TEXT,
    birthday TEXT,
    created_at TEXT,
    updated_at TEXT,
    deleted_at TEXT
)
"""

_FIRST_NAMES = ["Ana", "Bruno", "Carla", "Diego", "Elisa", "Fabio", "Gina", "Hugo"]
_LAST_NAMES = ["Silva", "Souza", "Costa", "Lima", "Alves", "O'Neil"]
_THEMES = ["light", "dark", "system"]


def _fake_user(rng: random.Random, index: int) -> dict:
    first = rng.choice(_FIRST_NAMES)
    last = rng.choice(_LAST_NAMES)
    return {
        "name": f"{first} {last}",
        "email": f"{first.lower()}.{index}@example.com",
        "age": rng.randint(18, 90),
        "active": rng.random() > 0.2,
        "profile": {"theme": rng.choice(_THEMES), "tags": rng.sample(_THEMES, k=2)},
        "birthday": f"{rng.randint(1935, 2006)}-{rng.randint(1, 12):02d}-{rng.randint(1, 28):02d}",
    }


async def seed(db_path: str, rows: int = 25, seed_value: int = 42, reset: bool = False) -> List[Record]:
    """Create the demo table and insert `rows` users; returns the created records."""
    rng = random.Random(seed_value)
    created: List[Record] = []
    async with SqliteExecutor(db_path) as executor:
        if reset:
            await executor.execute("DROP TABLE IF EXISTS users")
        result = await executor.execute(DEMO_DDL)
        if not result.get("success"):
            raise RuntimeError(f"Could not create demo table: {result.get('error')}")

        repo = Repository(DEMO_SCHEMA, executor)
        for index in range(rows):
            record = await repo.create(_fake_user(rng, index))
            if index % 5 == 4:
                await repo.delete(record.id)
            created.append(record)
    return created


@app.command()
def main(
    db: Path = typer.Option(Path("demo.db"), "--db", help="SQLite file to create/seed."),
    rows: int = typer.Option(25, "--rows", "-r", help="Number of users to insert."),
    seed_value: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    reset: bool = typer.Option(False, "--reset", help="Drop the users table first."),
) -> None:
    """
    Seed the demo database.
    """
    configure_logging(level="WARNING")
    db.parent.mkdir(parents=True, exist_ok=True)
    start = time.perf_counter()
    typer.echo(f"Seeding {rows:,} users -> {db} (seed={seed_value}{', reset' if reset else ''})")
    created = asyncio.run(seed(str(db), rows=rows, seed_value=seed_value, reset=reset))
    duration = time.perf_counter() - start
    soft_deleted = sum(1 for index in range(len(created)) if index % 5 == 4)
    typer.echo(f"Inserted {len(created):,} users ({soft_deleted} soft deleted) in {duration:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
