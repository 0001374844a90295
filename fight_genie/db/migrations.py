"""Database initialization and migrations."""

from __future__ import annotations

import aiosqlite
import structlog

from fight_genie.db.models import SCHEMA_SQL

log = structlog.get_logger()

# Columns added after the first release: (table, column, DDL for ALTER TABLE).
ADDED_COLUMNS = (
    ("prediction_outcomes", "parlay_outcomes", "TEXT NOT NULL DEFAULT '[]'"),
    ("prediction_outcomes", "prop_outcomes", "TEXT NOT NULL DEFAULT '[]'"),
)


async def init_db(db_path: str) -> aiosqlite.Connection:
    """Create tables if they don't exist and return a connection."""
    db = await aiosqlite.connect(db_path)
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA foreign_keys = ON")
    await db.executescript(SCHEMA_SQL)
    await migrate(db)
    await db.commit()
    log.info("database_initialized", path=db_path)
    return db


async def migrate(db: aiosqlite.Connection) -> list[str]:
    """Add columns missing from databases created by older schemas."""
    added = []
    for table, column, ddl in ADDED_COLUMNS:
        cursor = await db.execute(f"PRAGMA table_info({table})")
        existing = {row[1] for row in await cursor.fetchall()}
        if column in existing:
            continue
        await db.execute(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}")
        added.append(f"{table}.{column}")
    if added:
        log.info("database_migrated", columns=added)
    return added
