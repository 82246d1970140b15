"""Typed models for Claude Code JSONL log entries.

Session logs live at ``~/.claude/projects/<encoded-project-path>/<session-uuid>.jsonl``.
Each line is one entry; entries and message content blocks are discriminated
on their ``type`` field.
"""
from __future__ import annotations

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class _LogModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ── Content blocks ─────────────────────────────────────────────────

class TextBlock(_LogModel):
    type: Literal["text"]
    text: str = ""


class ThinkingBlock(_LogModel):
    type: Literal["thinking"]
    thinking: str = ""
    signature: Optional[str] = None


class ToolUseBlock(_LogModel):
    type: Literal["tool_use"]
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultBlock(_LogModel):
    type: Literal["tool_result"]
    tool_use_id: str
    content: str = ""
    is_error: bool = False

    @field_validator("content", mode="before")
    @classmethod
    def _flatten_content(cls, value: Any) -> str:
        # Results may arrive as a list of text/image blocks; keep only the text.
        if value is None:
            return ""
        if isinstance(value, list):
            parts = [
                str(item.get("text") or "")
                for item in value
                if isinstance(item, dict) and item.get("type") == "text"
            ]
            return "\n".join(parts)
        return value

    @field_validator("is_error", mode="before")
    @classmethod
    def _coerce_error(cls, value: Any) -> bool:
        return bool(value)


ContentBlock = Annotated[
    Union[TextBlock, ThinkingBlock, ToolUseBlock, ToolResultBlock],
    Field(discriminator="type"),
]

_CONTENT_BLOCK_TYPES = frozenset({"text", "thinking", "tool_use", "tool_result"})


def _known_blocks(value: Any) -> Any:
    # Image/document blocks carry nothing the extractor uses.
    if isinstance(value, list):
        return [
            item for item in value
            if isinstance(item, dict) and isinstance(item.get("type"), str) and item["type"] in _CONTENT_BLOCK_TYPES
        ]
    return value


# ── Messages ───────────────────────────────────────────────────────

class UserMessage(_LogModel):
    role: Literal["user"] = "user"
    content: Union[str, list[ContentBlock]] = ""

    @field_validator("content", mode="before")
    @classmethod
    def _drop_unknown_blocks(cls, value: Any) -> Any:
        return _known_blocks(value)


class AssistantMessage(_LogModel):
    id: Optional[str] = None
    role: Literal["assistant"] = "assistant"
    model: Optional[str] = None
    content: Union[str, list[ContentBlock]] = Field(default_factory=list)
    stop_reason: Optional[str] = None

    @field_validator("content", mode="before")
    @classmethod
    def _drop_unknown_blocks(cls, value: Any) -> Any:
        return _known_blocks(value)


# ── Log entries ────────────────────────────────────────────────────

class _BaseEntry(_LogModel):
    uuid: str = ""
    parentUuid: Optional[str] = None
    timestamp: str = ""
    sessionId: str = ""
    cwd: str = ""
    isSidechain: bool = False
    gitBranch: Optional[str] = None
    version: str = ""


class UserEntry(_BaseEntry):
    type: Literal["user"]
    message: UserMessage


class AssistantEntry(_BaseEntry):
    type: Literal["assistant"]
    message: AssistantMessage
    requestId: Optional[str] = None


class ProgressEntry(_BaseEntry):
    type: Literal["progress"]
    data: dict[str, Any] = Field(default_factory=dict)
    toolUseID: Optional[str] = None
    parentToolUseID: Optional[str] = None


class FileHistorySnapshotEntry(_BaseEntry):
    type: Literal["file-history-snapshot"]
    messageId: str = ""
    snapshot: dict[str, Any] = Field(default_factory=dict)
    isSnapshotUpdate: bool = False


class SummaryEntry(_BaseEntry):
    type: Literal["summary"]
    summary: str = ""
    leafUuid: Optional[str] = None


LogEntry = Annotated[
    Union[UserEntry, AssistantEntry, ProgressEntry, FileHistorySnapshotEntry, SummaryEntry],
    Field(discriminator="type"),
]

KNOWN_ENTRY_TYPES = frozenset({"user", "assistant", "progress", "file-history-snapshot", "summary"})

_LOG_ENTRY_ADAPTER: TypeAdapter[LogEntry] = TypeAdapter(LogEntry)


def parse_log_entry(payload: dict[str, Any]) -> LogEntry:
    """Validate one decoded JSONL object. Raises ``pydantic.ValidationError``."""
    return _LOG_ENTRY_ADAPTER.validate_python(payload)
