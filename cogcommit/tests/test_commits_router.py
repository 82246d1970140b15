import types
import unittest

from fastapi import HTTPException

from cogcommit.models import ClosedBy, CognitiveCommit, ProcessorStatus, Session, Turn
from cogcommit.routers import commits as commits_router


def _commit(commit_id: str, git_hash: str | None = None) -> CognitiveCommit:
    turn = Turn(id="u1", role="user", content="hi", timestamp="2026-02-16T10:00:00.000Z")
    return CognitiveCommit(
        id=commit_id,
        gitHash=git_hash,
        startedAt=turn.timestamp,
        closedAt=turn.timestamp,
        closedBy=ClosedBy.GIT_COMMIT if git_hash else ClosedBy.EXPLICIT,
        sessions=[Session(id="S-1", startedAt=turn.timestamp, endedAt=turn.timestamp, turns=[turn])],
    )


class _FakeCommitRepository:
    def __init__(self) -> None:
        self.commits = {"C-1": _commit("C-1", "5ab1b76"), "C-2": _commit("C-2")}
        self.list_calls: list[dict] = []

    async def list_paginated(self, offset, limit, project_name=None):
        self.list_calls.append({"offset": offset, "limit": limit, "project_name": project_name})
        return list(self.commits.values())[offset:offset + limit]

    async def count(self, project_name=None):
        return len(self.commits)

    async def get_commit(self, commit_id):
        return self.commits.get(commit_id)

    async def get_commit_by_git_hash(self, git_hash):
        return next((c for c in self.commits.values() if c.gitHash == git_hash), None)

    async def delete_commit(self, commit_id):
        return self.commits.pop(commit_id, None) is not None


class _FakeCheckpointRepository:
    async def get_last_activity(self):
        return "2026-02-16T10:00:00.000Z"


class _FakeProcessor:
    def __init__(self, commit_repo, closed: CognitiveCommit | None) -> None:
        self.commit_repo = commit_repo
        self.checkpoint_repo = _FakeCheckpointRepository()
        self._closed = closed
        self.close_calls = 0

    async def explicit_close(self):
        self.close_calls += 1
        closed, self._closed = self._closed, None
        return closed

    def get_status(self):
        return ProcessorStatus(hasActiveCommit=True, currentCommitId="C-3", turnCount=4)


class CommitsRouterTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.repo = _FakeCommitRepository()
        self.processor = _FakeProcessor(self.repo, _commit("C-3"))

    def _request(self, **state):
        return types.SimpleNamespace(app=types.SimpleNamespace(state=types.SimpleNamespace(**state)))

    async def test_list_commits_is_paginated(self) -> None:
        page = await commits_router.list_commits(self._request(commit_repo=self.repo), offset=1, limit=5, project="demo")

        self.assertEqual([c.id for c in page.items], ["C-2"])
        self.assertEqual((page.total, page.offset, page.limit), (2, 1, 5))
        self.assertEqual(self.repo.list_calls[0]["project_name"], "demo")

    async def test_get_commit_and_by_hash(self) -> None:
        request = self._request(commit_repo=self.repo)

        self.assertEqual((await commits_router.get_commit(request, "C-2")).id, "C-2")
        self.assertEqual((await commits_router.get_commit_by_hash(request, "5ab1b76")).id, "C-1")

    async def test_missing_commit_is_404(self) -> None:
        request = self._request(commit_repo=self.repo)

        with self.assertRaises(HTTPException) as ctx:
            await commits_router.get_commit(request, "C-404")
        self.assertEqual(ctx.exception.status_code, 404)

        with self.assertRaises(HTTPException) as ctx:
            await commits_router.get_commit_by_hash(request, "deadbee")
        self.assertEqual(ctx.exception.status_code, 404)

    async def test_delete_commit(self) -> None:
        request = self._request(commit_repo=self.repo)

        payload = await commits_router.delete_commit(request, "C-1")

        self.assertEqual(payload["status"], "deleted")
        with self.assertRaises(HTTPException) as ctx:
            await commits_router.delete_commit(request, "C-1")
        self.assertEqual(ctx.exception.status_code, 404)

    async def test_uninitialized_storage_is_503(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            await commits_router.get_commit(self._request(), "C-1")
        self.assertEqual(ctx.exception.status_code, 503)

        with self.assertRaises(HTTPException) as ctx:
            await commits_router.close_current_commit(self._request())
        self.assertEqual(ctx.exception.status_code, 503)

    async def test_watcher_status(self) -> None:
        payload = await commits_router.get_watcher_status(self._request(processor=self.processor))

        self.assertEqual(payload["watcher"], "stopped")
        self.assertEqual(payload["commitCount"], 2)
        self.assertEqual(payload["processor"]["currentCommitId"], "C-3")
        self.assertEqual(payload["lastActivity"], "2026-02-16T10:00:00.000Z")

    async def test_explicit_close(self) -> None:
        request = self._request(processor=self.processor)

        closed = await commits_router.close_current_commit(request)
        nothing_open = await commits_router.close_current_commit(request)

        self.assertTrue(closed["closed"])
        self.assertEqual(closed["commit"]["closedBy"], "explicit")
        self.assertEqual(nothing_open, {"closed": False, "commit": None})
        self.assertEqual(self.processor.close_calls, 2)


if __name__ == "__main__":
    unittest.main()
