"""Database schema creation and versioning.

All CREATE TABLE statements for commit storage and checkpoint state.
Uses IF NOT EXISTS for idempotent runs.
"""
from __future__ import annotations

import logging

import aiosqlite

logger = logging.getLogger("cogcommit.db")

SCHEMA_VERSION = 2

_TABLES = """
-- ── Schema version tracking ────────────────────────────────────────
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TEXT NOT NULL DEFAULT (datetime('now'))
);

-- ── 1. Cognitive commits ───────────────────────────────────────────
CREATE TABLE IF NOT EXISTS cognitive_commits (
    id             TEXT PRIMARY KEY,
    git_hash       TEXT,
    started_at     TEXT NOT NULL,
    closed_at      TEXT NOT NULL,
    closed_by      TEXT NOT NULL,
    parallel       INTEGER DEFAULT 0,
    files_read     TEXT DEFAULT '[]',
    files_changed  TEXT DEFAULT '[]',
    created_at     TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_commits_git_hash ON cognitive_commits(git_hash);
CREATE INDEX IF NOT EXISTS idx_commits_started  ON cognitive_commits(started_at);

-- A merged commit may hold the same session id more than once, so sessions
-- are keyed by their position inside the commit.
CREATE TABLE IF NOT EXISTS commit_sessions (
    commit_id   TEXT NOT NULL REFERENCES cognitive_commits(id) ON DELETE CASCADE,
    ordinal     INTEGER NOT NULL,
    session_id  TEXT NOT NULL,
    label       TEXT,
    started_at  TEXT NOT NULL,
    ended_at    TEXT NOT NULL,
    PRIMARY KEY (commit_id, ordinal)
);

CREATE INDEX IF NOT EXISTS idx_commit_sessions_session ON commit_sessions(session_id);

CREATE TABLE IF NOT EXISTS commit_turns (
    commit_id         TEXT NOT NULL REFERENCES cognitive_commits(id) ON DELETE CASCADE,
    session_ordinal   INTEGER NOT NULL,
    ordinal           INTEGER NOT NULL,
    turn_id           TEXT NOT NULL,
    role              TEXT NOT NULL,
    content           TEXT DEFAULT '',
    timestamp         TEXT NOT NULL,
    tool_calls_json   TEXT,
    triggers_visual   INTEGER,
    PRIMARY KEY (commit_id, session_ordinal, ordinal)
);

-- ── 2. Incremental checkpoint state ────────────────────────────────
CREATE TABLE IF NOT EXISTS file_checkpoints (
    file_path    TEXT PRIMARY KEY,
    byte_offset  INTEGER NOT NULL DEFAULT 0,
    updated_at   TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS daemon_state (
    key    TEXT PRIMARY KEY,
    value  TEXT
);
"""


async def _column_exists(db: aiosqlite.Connection, table: str, column: str) -> bool:
    async with db.execute(f"PRAGMA table_info({table})") as cur:
        rows = await cur.fetchall()
    return any(row[1] == column for row in rows)


async def _ensure_column(db: aiosqlite.Connection, table: str, column: str, definition: str) -> None:
    if await _column_exists(db, table, column):
        return
    await db.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")


async def _ensure_index(db: aiosqlite.Connection, ddl: str) -> None:
    await db.execute(ddl)


async def run_migrations(db: aiosqlite.Connection) -> None:
    """Create all tables. Idempotent."""
    try:
        async with db.execute("SELECT MAX(version) FROM schema_version") as cur:
            row = await cur.fetchone()
            current_version = row[0] if row and row[0] else 0
    except aiosqlite.OperationalError:
        current_version = 0

    if current_version >= SCHEMA_VERSION:
        logger.info(f"Schema is up to date (version {current_version})")
        return

    logger.info(f"Running migrations: {current_version} → {SCHEMA_VERSION}")

    await db.executescript(_TABLES)

    # v2: commits remember which project they were extracted from.
    await _ensure_column(db, "cognitive_commits", "project_name", "TEXT")
    await _ensure_index(db, "CREATE INDEX IF NOT EXISTS idx_commits_project ON cognitive_commits(project_name)")

    await db.execute(
        "INSERT INTO schema_version (version) VALUES (?)",
        (SCHEMA_VERSION,),
    )
    await db.commit()
    logger.info(f"Migrations complete, schema version {SCHEMA_VERSION}")
