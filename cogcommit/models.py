"""Pydantic models for extracted cognitive commits."""
from __future__ import annotations
from enum import Enum
from pydantic import BaseModel, Field
from typing import Any, Optional, Generic, TypeVar

T = TypeVar("T")

class PaginatedResponse(BaseModel, Generic[T]):
    items: list[T]
    total: int
    offset: int
    limit: int

# ── Commit-related models ───────────────────────────────────────────

class ClosedBy(str, Enum):
    GIT_COMMIT = "git_commit"
    SESSION_END = "session_end"
    EXPLICIT = "explicit"


class ToolCall(BaseModel):
    id: str
    name: str = ""
    input: dict[str, Any] = Field(default_factory=dict)
    result: Optional[str] = None
    isError: Optional[bool] = None


class Turn(BaseModel):
    id: str
    role: str  # "user" | "assistant"
    content: str = ""
    timestamp: str
    toolCalls: Optional[list[ToolCall]] = None
    triggersVisualUpdate: Optional[bool] = None


class Session(BaseModel):
    id: str
    label: Optional[str] = None
    startedAt: str
    endedAt: str
    turns: list[Turn] = Field(default_factory=list)


class CognitiveCommit(BaseModel):
    id: str
    gitHash: Optional[str] = None
    startedAt: str
    closedAt: str
    closedBy: ClosedBy = ClosedBy.SESSION_END
    sessions: list[Session] = Field(default_factory=list)
    parallel: bool = False
    filesRead: list[str] = Field(default_factory=list)
    filesChanged: list[str] = Field(default_factory=list)
    projectName: Optional[str] = None

    @property
    def turn_count(self) -> int:
        return sum(len(session.turns) for session in self.sessions)


class GitCommitInfo(BaseModel):
    hash: str
    branch: str
    message: str
    filesChanged: int = 0
    insertions: int = 0
    deletions: int = 0


# ── Parse results ──────────────────────────────────────────────────

class LineError(BaseModel):
    lineNumber: int
    offset: int
    message: str


class ParseResult(BaseModel):
    project: str
    projectPath: str
    cognitiveCommits: list[CognitiveCommit] = Field(default_factory=list)
    totalSessions: int = 0
    totalTurns: int = 0
    parseErrors: list[str] = Field(default_factory=list)
    malformedLines: int = 0


class ProjectInfo(BaseModel):
    name: str
    path: str
    sessionFiles: list[str] = Field(default_factory=list)


class ProcessorStatus(BaseModel):
    hasActiveCommit: bool = False
    currentCommitId: Optional[str] = None
    turnCount: int = 0
    filesRead: int = 0
    filesChanged: int = 0
