"""SQLite storage for incremental processing checkpoints."""
from __future__ import annotations

from typing import Optional

import aiosqlite

from cogcommit.date_utils import utc_now_iso

CURRENT_COMMIT_KEY = "current_commit_id"
LAST_ACTIVITY_KEY = "last_activity"


class SqliteCheckpointRepository:
    """Per-file byte offsets plus watcher key/value state."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def get_file_position(self, file_path: str) -> int:
        async with self.db.execute(
            "SELECT byte_offset FROM file_checkpoints WHERE file_path = ?", (file_path,)
        ) as cur:
            row = await cur.fetchone()
            return int(row[0]) if row else 0

    async def set_file_position(self, file_path: str, offset: int) -> None:
        await self.db.execute(
            """INSERT INTO file_checkpoints (file_path, byte_offset, updated_at)
               VALUES (?, ?, ?)
               ON CONFLICT(file_path) DO UPDATE SET
                 byte_offset=excluded.byte_offset, updated_at=excluded.updated_at""",
            (file_path, offset, utc_now_iso()),
        )
        await self.db.commit()

    async def list_file_positions(self) -> dict[str, int]:
        async with self.db.execute(
            "SELECT file_path, byte_offset FROM file_checkpoints ORDER BY file_path"
        ) as cur:
            return {row[0]: int(row[1]) for row in await cur.fetchall()}

    async def get_state(self, key: str) -> Optional[str]:
        async with self.db.execute(
            "SELECT value FROM daemon_state WHERE key = ?", (key,)
        ) as cur:
            row = await cur.fetchone()
            return row[0] if row else None

    async def set_state(self, key: str, value: Optional[str]) -> None:
        if value is None:
            await self.db.execute("DELETE FROM daemon_state WHERE key = ?", (key,))
        else:
            await self.db.execute(
                """INSERT INTO daemon_state (key, value) VALUES (?, ?)
                   ON CONFLICT(key) DO UPDATE SET value=excluded.value""",
                (key, value),
            )
        await self.db.commit()

    async def get_current_commit_id(self) -> Optional[str]:
        return await self.get_state(CURRENT_COMMIT_KEY)

    async def set_current_commit_id(self, commit_id: Optional[str]) -> None:
        await self.set_state(CURRENT_COMMIT_KEY, commit_id)

    async def get_last_activity(self) -> Optional[str]:
        return await self.get_state(LAST_ACTIVITY_KEY)

    async def touch_last_activity(self) -> None:
        await self.set_state(LAST_ACTIVITY_KEY, utc_now_iso())
