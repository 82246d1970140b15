import asyncio
import unittest

import aiosqlite

from cogcommit.db.repositories import SqliteCheckpointRepository, SqliteCommitRepository
from cogcommit.db.sqlite_migrations import SCHEMA_VERSION, run_migrations
from cogcommit.models import ClosedBy, CognitiveCommit, Session, ToolCall, Turn


def _commit(commit_id: str, git_hash: str | None = None, closed_at: str = "2026-02-16T10:05:00.000Z") -> CognitiveCommit:
    turns = [
        Turn(id="u1", role="user", content="Add it", timestamp="2026-02-16T10:00:00.000Z"),
        Turn(
            id="a1",
            role="assistant",
            content="",
            timestamp="2026-02-16T10:01:00.000Z",
            toolCalls=[ToolCall(id="t1", name="Edit", input={"file_path": "/a.py"}, result="ok", isError=False)],
            triggersVisualUpdate=True,
        ),
    ]
    return CognitiveCommit(
        id=commit_id,
        gitHash=git_hash,
        startedAt="2026-02-16T10:00:00.000Z",
        closedAt=closed_at,
        closedBy=ClosedBy.GIT_COMMIT if git_hash else ClosedBy.SESSION_END,
        sessions=[
            Session(id="S-1", startedAt="2026-02-16T10:00:00.000Z", endedAt="2026-02-16T10:01:00.000Z", turns=turns),
            Session(id="S-1", startedAt="2026-02-16T10:02:00.000Z", endedAt="2026-02-16T10:03:00.000Z", turns=turns[:1]),
        ],
        parallel=True,
        filesRead=["/r.py"],
        filesChanged=["/a.py", "/b.py"],
        projectName="demo",
    )


class _StallingConnection:
    """Delegates to a real connection but never finishes ``executemany``."""

    def __init__(self, db) -> None:
        self._db = db
        self.stalled = asyncio.Event()

    def __getattr__(self, name):
        return getattr(self._db, name)

    async def executemany(self, *args, **kwargs):
        self.stalled.set()
        await asyncio.Event().wait()


class CommitRepositoryTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await aiosqlite.connect(":memory:")
        self.db.row_factory = aiosqlite.Row
        await run_migrations(self.db)
        self.repo = SqliteCommitRepository(self.db)

    async def asyncTearDown(self) -> None:
        await self.db.close()

    async def test_commit_round_trips(self) -> None:
        commit = _commit("C-1", "5ab1b76")
        await self.repo.insert_commit(commit)

        loaded = await self.repo.get_commit("C-1")

        self.assertEqual(loaded, commit)

    async def test_lookup_by_git_hash(self) -> None:
        await self.repo.insert_commit(_commit("C-1", "5ab1b76"))

        loaded = await self.repo.get_commit_by_git_hash("5ab1b76")

        self.assertIsNotNone(loaded)
        self.assertEqual(loaded.id, "C-1")
        self.assertIsNone(await self.repo.get_commit_by_git_hash("deadbee"))
        self.assertIsNone(await self.repo.get_commit("missing"))

    async def test_reinsert_replaces_rows(self) -> None:
        await self.repo.insert_commit(_commit("C-1"))
        updated = _commit("C-1").model_copy(update={"sessions": _commit("C-1").sessions[:1]})
        await self.repo.insert_commit(updated)

        loaded = await self.repo.get_commit("C-1")

        self.assertEqual(len(loaded.sessions), 1)
        self.assertEqual(await self.repo.count(), 1)

    async def test_list_paginated_newest_closed_first(self) -> None:
        await self.repo.insert_commit(_commit("C-old", closed_at="2026-02-16T09:00:00.000Z"))
        await self.repo.insert_commit(_commit("C-new", closed_at="2026-02-16T11:00:00.000Z"))

        page = await self.repo.list_paginated(0, 1)

        self.assertEqual([c.id for c in page], ["C-new"])
        self.assertEqual(await self.repo.count(project_name="demo"), 2)
        self.assertEqual(await self.repo.count(project_name="other"), 0)

    async def test_delete_commit(self) -> None:
        await self.repo.insert_commit(_commit("C-1"))

        self.assertTrue(await self.repo.delete_commit("C-1"))
        self.assertFalse(await self.repo.delete_commit("C-1"))
        async with self.db.execute("SELECT COUNT(*) FROM commit_turns") as cur:
            self.assertEqual((await cur.fetchone())[0], 0)

    async def test_cancelled_insert_is_rolled_back(self) -> None:
        stalling = _StallingConnection(self.db)
        task = asyncio.create_task(SqliteCommitRepository(stalling).insert_commit(_commit("C-1")))
        await stalling.stalled.wait()

        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task
        await self.db.commit()

        self.assertEqual(await self.repo.count(), 0)
        self.assertIsNone(await self.repo.get_commit("C-1"))

    async def test_migrations_are_idempotent(self) -> None:
        await run_migrations(self.db)

        async with self.db.execute("SELECT MAX(version), COUNT(*) FROM schema_version") as cur:
            row = await cur.fetchone()
        self.assertEqual((row[0], row[1]), (SCHEMA_VERSION, 1))


class CheckpointRepositoryTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.db = await aiosqlite.connect(":memory:")
        self.db.row_factory = aiosqlite.Row
        await run_migrations(self.db)
        self.repo = SqliteCheckpointRepository(self.db)

    async def asyncTearDown(self) -> None:
        await self.db.close()

    async def test_file_positions(self) -> None:
        self.assertEqual(await self.repo.get_file_position("/logs/a.jsonl"), 0)

        await self.repo.set_file_position("/logs/a.jsonl", 120)
        await self.repo.set_file_position("/logs/a.jsonl", 240)
        await self.repo.set_file_position("/logs/b.jsonl", 10)

        self.assertEqual(await self.repo.get_file_position("/logs/a.jsonl"), 240)
        self.assertEqual(await self.repo.list_file_positions(), {"/logs/a.jsonl": 240, "/logs/b.jsonl": 10})

    async def test_current_commit_pointer(self) -> None:
        self.assertIsNone(await self.repo.get_current_commit_id())

        await self.repo.set_current_commit_id("C-1")
        self.assertEqual(await self.repo.get_current_commit_id(), "C-1")

        await self.repo.set_current_commit_id(None)
        self.assertIsNone(await self.repo.get_current_commit_id())

    async def test_last_activity(self) -> None:
        self.assertIsNone(await self.repo.get_last_activity())

        await self.repo.touch_last_activity()

        self.assertTrue((await self.repo.get_last_activity()).endswith("Z"))


if __name__ == "__main__":
    unittest.main()
