"""Incremental file → commit processor.

Feeds newly appended session log bytes through the boundary detector and
persists each cognitive commit the moment it closes. Per-file byte offsets and
the id of the open commit are checkpointed so a restarted watcher resumes where
it stopped instead of reprocessing.

Turns of the open commit are held in memory only: after a crash or restart the
offsets are already past them, so they are not recovered.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from cogcommit import observability
from cogcommit.db.repositories import SqliteCheckpointRepository, SqliteCommitRepository
from cogcommit.models import ClosedBy, CognitiveCommit, ProcessorStatus
from cogcommit.parsers.entries import LogEntry
from cogcommit.parsers.extractor import BoundaryDetector, Transition, new_commit_id, sort_entries
from cogcommit.parsers.reader import extract_project_name, extract_session_id, read_log_range

logger = logging.getLogger("cogcommit.processor")

CommitClosedHook = Callable[[CognitiveCommit], Union[Awaitable[None], None]]


@dataclass
class WatcherContext:
    """Mutable state owned by one running watcher."""

    detector: BoundaryDetector
    # Open-commit pointer as last written to the checkpoint store.
    persisted_commit_id: Optional[str] = None
    # Id to hand to the next commit opened after a restart.
    restored_commit_id: Optional[str] = None
    project_name: Optional[str] = None


class IncrementalProcessor:
    """Serializes change events for a single open commit across all watched files."""

    def __init__(
        self,
        commit_repo: SqliteCommitRepository,
        checkpoint_repo: SqliteCheckpointRepository,
        on_commit_closed: Optional[CommitClosedHook] = None,
        id_factory: Callable[[], str] = new_commit_id,
    ):
        self.commit_repo = commit_repo
        self.checkpoint_repo = checkpoint_repo
        self._on_commit_closed = on_commit_closed
        self._id_factory = id_factory
        self._lock = asyncio.Lock()
        self.context = WatcherContext(detector=BoundaryDetector("", id_factory=self._next_commit_id))

    def _next_commit_id(self) -> str:
        restored = self.context.restored_commit_id
        if restored:
            self.context.restored_commit_id = None
            return restored
        return self._id_factory()

    async def restore(self) -> Optional[str]:
        """Load the persisted open-commit pointer. Returns it, if any."""
        commit_id = await self.checkpoint_repo.get_current_commit_id()
        if commit_id and await self.commit_repo.get_commit(commit_id) is not None:
            # Stored before the pointer was cleared; never reuse a closed commit's id.
            logger.info(f"Open-commit pointer {commit_id} names a stored commit; clearing it")
            await self.checkpoint_repo.set_current_commit_id(None)
            commit_id = None
        self.context.persisted_commit_id = commit_id
        self.context.restored_commit_id = commit_id
        if commit_id:
            logger.info(f"Resuming open cognitive commit {commit_id}")
        return commit_id

    # ── Change events ──────────────────────────────────────────────

    async def process_file(self, path: Path) -> int:
        """Process bytes appended to ``path`` since its checkpoint.

        Returns the number of entries consumed. The offset is only advanced once
        every resulting commit has been stored.
        """
        async with self._lock:
            return await self._process_file(Path(path))

    async def process_entries(self, entries: list[LogEntry], path: Path) -> None:
        """Feed already-read entries belonging to ``path``."""
        async with self._lock:
            await self._process_entries(entries, Path(path))

    async def _process_file(self, path: Path) -> int:
        key = str(path)
        size = (await asyncio.to_thread(path.stat)).st_size
        offset = await self.checkpoint_repo.get_file_position(key)

        truncated = offset > size
        if truncated:
            logger.warning(f"{path} is smaller than its checkpoint ({size} < {offset}); reprocessing from start")
            offset = 0
        elif offset == size:
            return 0

        t0 = time.monotonic()
        with observability.start_span("process_file", {"file": key, "offset": offset}):
            read = await asyncio.to_thread(read_log_range, path, offset)
            await self._process_entries(read.entries, path)

        if truncated or read.end_offset != offset:
            await self.checkpoint_repo.set_file_position(key, read.end_offset)

        observability.record_malformed_lines(len(read.errors), project=self.context.project_name or "")
        observability.record_ingestion(
            "session_increment", "success", (time.monotonic() - t0) * 1000,
            project=self.context.project_name or "",
        )
        logger.debug(f"Consumed {len(read.entries)} entries from {path} ({offset} → {read.end_offset})")
        return len(read.entries)

    async def _process_entries(self, entries: list[LogEntry], path: Path) -> None:
        if not entries:
            return
        detector = self.context.detector
        # One accumulator spans every watched file; its session takes the latest file's id.
        detector.session_id = extract_session_id(path)
        self.context.project_name = extract_project_name(path.parent)

        for entry in sort_entries(entries):
            await self._apply(detector.feed(entry))

        await self.checkpoint_repo.touch_last_activity()

    # ── Closing ────────────────────────────────────────────────────

    async def force_close(self) -> Optional[CognitiveCommit]:
        """Close the open commit on shutdown (``session_end``)."""
        async with self._lock:
            return await self._close(ClosedBy.SESSION_END)

    async def explicit_close(self) -> Optional[CognitiveCommit]:
        """Close the open commit on request (``explicit``)."""
        async with self._lock:
            return await self._close(ClosedBy.EXPLICIT)

    async def _close(self, closed_by: ClosedBy) -> Optional[CognitiveCommit]:
        if not self.context.detector.is_open:
            return None
        stored = await self._apply(self.context.detector.close(closed_by))
        if not stored:
            logger.info("Open cognitive commit had no turns; discarded")
            return None
        return stored[0]

    async def _apply(self, transition: Transition) -> list[CognitiveCommit]:
        stored = [await self._persist(commit) for commit in transition.closed]
        await self._sync_pointer()
        return stored

    async def _sync_pointer(self) -> None:
        current = self.context.detector.current_commit_id
        if current != self.context.persisted_commit_id:
            await self.checkpoint_repo.set_current_commit_id(current)
            self.context.persisted_commit_id = current

    async def _persist(self, commit: CognitiveCommit) -> CognitiveCommit:
        if self.context.project_name:
            commit = commit.model_copy(update={"projectName": self.context.project_name})

        await self.commit_repo.insert_commit(commit)
        await self.checkpoint_repo.set_current_commit_id(None)
        self.context.persisted_commit_id = None

        observability.record_commit_closed(commit.closedBy.value, project=self.context.project_name or "")
        logger.info(
            f"Stored cognitive commit {commit.gitHash or commit.id[:8]} "
            f"({commit.closedBy.value}, {commit.turn_count} turns)"
        )

        if self._on_commit_closed is not None:
            try:
                result = self._on_commit_closed(commit)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Commit-closed hook failed for {commit.id}")
        return commit

    def get_status(self) -> ProcessorStatus:
        detector = self.context.detector
        return ProcessorStatus(
            hasActiveCommit=detector.is_open,
            currentCommitId=detector.current_commit_id,
            turnCount=detector.turn_count,
            filesRead=detector.files_read_count,
            filesChanged=detector.files_changed_count,
        )
