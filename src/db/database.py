"""SQLite connection and migration helpers."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

SCHEMA_PATH = Path(__file__).with_name("schema.sql")

DEFAULT_DB_PATH = "data/documents.db"


async def _init_connection(db: aiosqlite.Connection) -> None:
    await db.execute("PRAGMA journal_mode = WAL")
    await db.execute("PRAGMA synchronous = NORMAL")
    await db.execute("PRAGMA foreign_keys = ON")
    await db.execute("PRAGMA temp_store = MEMORY")


async def run_migrations(db: aiosqlite.Connection) -> None:
    schema_sql = SCHEMA_PATH.read_text(encoding="utf-8")
    await db.executescript(schema_sql)
    await db.commit()
    # Migration: databases created before entity detection lack detected_entity_name
    try:
        await db.execute("ALTER TABLE documents ADD COLUMN detected_entity_name TEXT")
        await db.commit()
    except aiosqlite.OperationalError:
        pass
    # Migration: databases created before completion notices were persisted
    try:
        await db.execute(
            "ALTER TABLE documents ADD COLUMN completion_notified TEXT NOT NULL DEFAULT '[]'"
        )
        await db.commit()
    except aiosqlite.OperationalError:
        pass


@asynccontextmanager
async def get_db(db_path: str = DEFAULT_DB_PATH) -> AsyncIterator[aiosqlite.Connection]:
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(path))
    try:
        db.row_factory = aiosqlite.Row
        await _init_connection(db)
        await run_migrations(db)
        yield db
    finally:
        await db.close()
