"""Cognitive commit extraction from Claude Code session logs.

A cognitive commit is the span of conversation between two boundaries: a
successful ``git commit`` run by the assistant, the end of the session, or an
explicit close. ``BoundaryDetector`` is the state machine shared by the batch
extractor below and the incremental checkpoint processor.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from cogcommit.date_utils import parse_timestamp
from cogcommit.models import ClosedBy, CognitiveCommit, Session, ToolCall, Turn
from cogcommit.parsers.entries import (
    AssistantEntry,
    LogEntry,
    ToolResultBlock,
    ToolUseBlock,
    UserEntry,
)
from cogcommit.parsers.git_output import (
    extract_changed_file_path,
    extract_read_file_path,
    is_file_change_tool,
    is_git_commit_command,
    parse_git_commit_result,
)

logger = logging.getLogger("cogcommit.parser")


def new_commit_id() -> str:
    return str(uuid.uuid4())


class TransitionKind(str, Enum):
    CONTINUE = "continue"
    CLOSED_AND_REOPENED = "closed_and_reopened"
    CLOSED_FINAL = "closed_final"


@dataclass(frozen=True)
class Transition:
    """Outcome of feeding one entry (or closing) the detector.

    ``closed`` holds the commits finished by this step. A closure that found no
    turns is discarded, so a CLOSED_FINAL transition may carry nothing.
    """

    kind: TransitionKind
    closed: tuple[CognitiveCommit, ...] = ()


_CONTINUE = Transition(TransitionKind.CONTINUE)


@dataclass
class _Accumulator:
    commit_id: str
    started_at: str
    turns: list[Turn] = field(default_factory=list)
    # dicts as insertion-ordered sets
    files_read: dict[str, None] = field(default_factory=dict)
    files_changed: dict[str, None] = field(default_factory=dict)
    pending: dict[str, ToolUseBlock] = field(default_factory=dict)
    # tool-use id -> the ToolCall inside an already-appended turn
    calls: dict[str, ToolCall] = field(default_factory=dict)


class BoundaryDetector:
    """Single-session state machine that turns ordered entries into commits.

    A commit opens implicitly at the first entry fed. Entries must arrive in
    timestamp order; one detector instance owns its accumulator exclusively.
    """

    def __init__(self, session_id: str, id_factory: Callable[[], str] = new_commit_id):
        self.session_id = session_id
        self._id_factory = id_factory
        self._acc: Optional[_Accumulator] = None

    @property
    def is_open(self) -> bool:
        return self._acc is not None

    @property
    def current_commit_id(self) -> Optional[str]:
        return self._acc.commit_id if self._acc else None

    @property
    def turn_count(self) -> int:
        return len(self._acc.turns) if self._acc else 0

    @property
    def files_read_count(self) -> int:
        return len(self._acc.files_read) if self._acc else 0

    @property
    def files_changed_count(self) -> int:
        return len(self._acc.files_changed) if self._acc else 0

    @property
    def last_turn_timestamp(self) -> Optional[str]:
        if not self._acc or not self._acc.turns:
            return None
        return self._acc.turns[-1].timestamp

    def open(self, timestamp: str, commit_id: Optional[str] = None) -> str:
        """Start a fresh accumulator, discarding any open one."""
        self._acc = _Accumulator(commit_id=commit_id or self._id_factory(), started_at=timestamp)
        return self._acc.commit_id

    def feed(self, entry: LogEntry) -> Transition:
        if not entry.timestamp:
            return _CONTINUE
        if self._acc is None:
            self.open(entry.timestamp)

        if entry.type == "user":
            return self._on_user(entry)
        if entry.type == "assistant":
            self._on_assistant(entry)
        # progress, file-history-snapshot and summary entries never move a boundary
        return _CONTINUE

    def close(self, closed_by: ClosedBy = ClosedBy.EXPLICIT, git_hash: Optional[str] = None) -> Transition:
        """Close the open commit without reopening."""
        commit = self._close(closed_by, git_hash)
        return Transition(TransitionKind.CLOSED_FINAL, (commit,) if commit else ())

    def finish(self) -> Transition:
        """End of input: close with ``session_end``."""
        return self.close(ClosedBy.SESSION_END)

    # ── Transitions ────────────────────────────────────────────────

    def _on_user(self, entry: UserEntry) -> Transition:
        content = entry.message.content
        if isinstance(content, str):
            self._append_user_turn(entry, content)
            return _CONTINUE

        closed: list[CognitiveCommit] = []
        texts: list[str] = []
        for block in content:
            if block.type == "tool_result":
                commit = self._on_tool_result(block, entry)
                if commit:
                    closed.append(commit)
            elif block.type == "text":
                texts.append(block.text)

        # Tool-result-only entries never become turns.
        self._append_user_turn(entry, "\n".join(texts))

        if not closed:
            return _CONTINUE
        return Transition(TransitionKind.CLOSED_AND_REOPENED, tuple(closed))

    def _append_user_turn(self, entry: UserEntry, text: str) -> None:
        if not text.strip():
            return
        self._acc.turns.append(
            Turn(id=entry.uuid, role="user", content=text, timestamp=entry.timestamp)
        )

    def _on_assistant(self, entry: AssistantEntry) -> None:
        acc = self._acc
        content = entry.message.content
        if isinstance(content, str):
            text = content
            tool_uses: list[ToolUseBlock] = []
        else:
            text = "\n".join(block.text for block in content if block.type == "text")
            tool_uses = [block for block in content if block.type == "tool_use"]

        calls: list[ToolCall] = []
        for tool_use in tool_uses:
            acc.pending[tool_use.id] = tool_use

            read_path = extract_read_file_path(tool_use.name, tool_use.input)
            if read_path:
                acc.files_read[read_path] = None
            changed_path = extract_changed_file_path(tool_use.name, tool_use.input)
            if changed_path:
                acc.files_changed[changed_path] = None

            call = ToolCall(id=tool_use.id, name=tool_use.name, input=dict(tool_use.input))
            acc.calls[tool_use.id] = call
            calls.append(call)

        if not text.strip() and not calls:
            return

        acc.turns.append(
            Turn(
                id=entry.uuid,
                role="assistant",
                content=text,
                timestamp=entry.timestamp,
                toolCalls=calls or None,
                triggersVisualUpdate=True if any(is_file_change_tool(c.name) for c in calls) else None,
            )
        )

    def _on_tool_result(self, block: ToolResultBlock, entry: UserEntry) -> Optional[CognitiveCommit]:
        acc = self._acc
        tool_use = acc.pending.pop(block.tool_use_id, None)
        if tool_use is None:
            logger.debug(f"Ignoring result for unknown tool use {block.tool_use_id}")
            return None

        # Patch before any close so the committing call keeps its output.
        call = acc.calls.pop(block.tool_use_id, None)
        if call is not None:
            call.result = block.content
            call.isError = block.is_error

        if block.is_error or not is_git_commit_command(tool_use.name, tool_use.input):
            return None
        info = parse_git_commit_result(block.content)
        if info is None:
            return None

        commit = self._close(ClosedBy.GIT_COMMIT, info.hash)
        self.open(entry.timestamp)
        logger.info(f"Git commit {info.hash} on {info.branch} closed a cognitive commit in session {self.session_id}")
        return commit

    def _close(self, closed_by: ClosedBy, git_hash: Optional[str]) -> Optional[CognitiveCommit]:
        acc, self._acc = self._acc, None
        if acc is None or not acc.turns:
            return None

        closed_at = acc.turns[-1].timestamp
        session = Session(
            id=self.session_id,
            startedAt=acc.started_at,
            endedAt=closed_at,
            turns=list(acc.turns),
        )
        return CognitiveCommit(
            id=acc.commit_id,
            gitHash=git_hash,
            startedAt=acc.started_at,
            closedAt=closed_at,
            closedBy=closed_by,
            sessions=[session],
            parallel=False,
            filesRead=list(acc.files_read),
            filesChanged=list(acc.files_changed),
        )


def sort_entries(entries: Iterable[LogEntry]) -> list[LogEntry]:
    """Stable timestamp sort. Entries without a parseable timestamp are dropped."""
    keyed = []
    for entry in entries:
        parsed = parse_timestamp(entry.timestamp)
        if parsed is not None:
            keyed.append((parsed, entry))
    keyed.sort(key=lambda item: item[0])
    return [entry for _, entry in keyed]


def extract_cognitive_commits(
    entries: Iterable[LogEntry],
    session_id: str,
    id_factory: Callable[[], str] = new_commit_id,
) -> list[CognitiveCommit]:
    """Extract every cognitive commit from one session's entries."""
    detector = BoundaryDetector(session_id, id_factory)
    commits: list[CognitiveCommit] = []
    for entry in sort_entries(entries):
        commits.extend(detector.feed(entry).closed)
    commits.extend(detector.finish().closed)
    return commits
