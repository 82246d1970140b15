"""Database connection factory.

Provides a singleton async connection to SQLite with WAL mode.
"""
from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

from cogcommit import config

logger = logging.getLogger("cogcommit.db")

DB_PATH = Path(config.DB_PATH)

_connection: aiosqlite.Connection | None = None


async def get_connection() -> aiosqlite.Connection:
    """Return the singleton database connection, creating it if needed."""
    global _connection
    if _connection is not None:
        return _connection

    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = await aiosqlite.connect(str(DB_PATH))
    conn.row_factory = aiosqlite.Row
    await conn.execute("PRAGMA journal_mode=WAL")
    await conn.execute("PRAGMA foreign_keys=ON")
    await conn.execute("PRAGMA busy_timeout=5000")
    logger.info(f"Database connection established: {DB_PATH}")
    _connection = conn
    return _connection


async def close_connection() -> None:
    """Close the database connection."""
    global _connection
    if _connection is not None:
        await _connection.close()
        _connection = None
        logger.info("Database connection closed")
