"""SQLite storage for closed cognitive commits."""
from __future__ import annotations

import json
from typing import Optional

import aiosqlite

from cogcommit.models import ClosedBy, CognitiveCommit, Session, ToolCall, Turn


class SqliteCommitRepository:
    """Commits with their sessions and turns in normalized detail tables."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def insert_commit(self, commit: CognitiveCommit) -> None:
        """Write a commit, replacing any earlier copy with the same id."""
        try:
            await self._delete_rows(commit.id)
            await self.db.execute(
                """INSERT INTO cognitive_commits (
                    id, git_hash, started_at, closed_at, closed_by, parallel,
                    files_read, files_changed, project_name
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    commit.id,
                    commit.gitHash,
                    commit.startedAt,
                    commit.closedAt,
                    commit.closedBy.value,
                    1 if commit.parallel else 0,
                    json.dumps(commit.filesRead),
                    json.dumps(commit.filesChanged),
                    commit.projectName,
                ),
            )
            for s_ord, session in enumerate(commit.sessions):
                await self.db.execute(
                    """INSERT INTO commit_sessions (commit_id, ordinal, session_id, label, started_at, ended_at)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (commit.id, s_ord, session.id, session.label, session.startedAt, session.endedAt),
                )
                await self.db.executemany(
                    """INSERT INTO commit_turns (
                        commit_id, session_ordinal, ordinal, turn_id, role, content,
                        timestamp, tool_calls_json, triggers_visual
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    [
                        (
                            commit.id, s_ord, t_ord, turn.id, turn.role, turn.content, turn.timestamp,
                            json.dumps([call.model_dump() for call in turn.toolCalls])
                            if turn.toolCalls is not None else None,
                            None if turn.triggersVisualUpdate is None else int(turn.triggersVisualUpdate),
                        )
                        for t_ord, turn in enumerate(session.turns)
                    ],
                )
            await self.db.commit()
        except BaseException:
            # Cancellation included: the connection is shared with the checkpoint writes.
            await self.db.rollback()
            raise

    async def get_commit(self, commit_id: str) -> Optional[CognitiveCommit]:
        async with self.db.execute(
            "SELECT * FROM cognitive_commits WHERE id = ?", (commit_id,)
        ) as cur:
            row = await cur.fetchone()
        if not row:
            return None
        return await self._row_to_commit(row)

    async def get_commit_by_git_hash(self, git_hash: str) -> Optional[CognitiveCommit]:
        async with self.db.execute(
            "SELECT * FROM cognitive_commits WHERE git_hash = ? ORDER BY started_at LIMIT 1",
            (git_hash,),
        ) as cur:
            row = await cur.fetchone()
        if not row:
            return None
        return await self._row_to_commit(row)

    async def list_paginated(
        self, offset: int, limit: int, project_name: str | None = None,
    ) -> list[CognitiveCommit]:
        query = "SELECT * FROM cognitive_commits"
        params: list = []
        if project_name:
            query += " WHERE project_name = ?"
            params.append(project_name)
        query += " ORDER BY closed_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        async with self.db.execute(query, params) as cur:
            rows = await cur.fetchall()
        return [await self._row_to_commit(row) for row in rows]

    async def count(self, project_name: str | None = None) -> int:
        if project_name:
            query, params = "SELECT COUNT(*) FROM cognitive_commits WHERE project_name = ?", (project_name,)
        else:
            query, params = "SELECT COUNT(*) FROM cognitive_commits", ()
        async with self.db.execute(query, params) as cur:
            row = await cur.fetchone()
            return row[0] if row else 0

    async def delete_commit(self, commit_id: str) -> bool:
        deleted = await self._delete_rows(commit_id)
        await self.db.commit()
        return deleted

    async def _delete_rows(self, commit_id: str) -> bool:
        await self.db.execute("DELETE FROM commit_turns WHERE commit_id = ?", (commit_id,))
        await self.db.execute("DELETE FROM commit_sessions WHERE commit_id = ?", (commit_id,))
        cur = await self.db.execute("DELETE FROM cognitive_commits WHERE id = ?", (commit_id,))
        return cur.rowcount > 0

    async def _row_to_commit(self, row: aiosqlite.Row) -> CognitiveCommit:
        commit_id = row["id"]
        async with self.db.execute(
            "SELECT * FROM commit_sessions WHERE commit_id = ? ORDER BY ordinal", (commit_id,)
        ) as cur:
            session_rows = await cur.fetchall()
        async with self.db.execute(
            "SELECT * FROM commit_turns WHERE commit_id = ? ORDER BY session_ordinal, ordinal", (commit_id,)
        ) as cur:
            turn_rows = await cur.fetchall()

        turns_by_session: dict[int, list[Turn]] = {}
        for t in turn_rows:
            tool_calls = None
            if t["tool_calls_json"] is not None:
                tool_calls = [ToolCall(**call) for call in json.loads(t["tool_calls_json"])]
            triggers = t["triggers_visual"]
            turns_by_session.setdefault(t["session_ordinal"], []).append(
                Turn(
                    id=t["turn_id"],
                    role=t["role"],
                    content=t["content"] or "",
                    timestamp=t["timestamp"],
                    toolCalls=tool_calls,
                    triggersVisualUpdate=None if triggers is None else bool(triggers),
                )
            )

        sessions = [
            Session(
                id=s["session_id"],
                label=s["label"],
                startedAt=s["started_at"],
                endedAt=s["ended_at"],
                turns=turns_by_session.get(s["ordinal"], []),
            )
            for s in session_rows
        ]

        return CognitiveCommit(
            id=commit_id,
            gitHash=row["git_hash"],
            startedAt=row["started_at"],
            closedAt=row["closed_at"],
            closedBy=ClosedBy(row["closed_by"]),
            sessions=sessions,
            parallel=bool(row["parallel"]),
            filesRead=json.loads(row["files_read"] or "[]"),
            filesChanged=json.loads(row["files_changed"] or "[]"),
            projectName=row["project_name"],
        )
