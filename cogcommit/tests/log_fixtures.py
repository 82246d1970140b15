"""Builders for Claude Code JSONL payloads used across the test modules."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from cogcommit.parsers.entries import parse_log_entry

GIT_COMMIT_OUTPUT = "[main 5ab1b76] Add feature\n 3 files changed, 10 insertions(+), 2 deletions(-)"


def ts(minute: int, second: int = 0, hour: int = 10) -> str:
    return f"2026-02-16T{hour:02d}:{minute:02d}:{second:02d}.000Z"


def user_text(uuid: str, timestamp: str, text: str, session_id: str = "S-1") -> dict[str, Any]:
    return {
        "type": "user",
        "uuid": uuid,
        "timestamp": timestamp,
        "sessionId": session_id,
        "cwd": "/tmp/project",
        "message": {"role": "user", "content": text},
    }


def tool_use(tool_id: str, name: str, **tool_input: Any) -> dict[str, Any]:
    return {"type": "tool_use", "id": tool_id, "name": name, "input": tool_input}


def assistant(uuid: str, timestamp: str, text: str = "", tools: list[dict] | None = None) -> dict[str, Any]:
    content: list[dict] = []
    if text:
        content.append({"type": "text", "text": text})
    content.extend(tools or [])
    return {
        "type": "assistant",
        "uuid": uuid,
        "timestamp": timestamp,
        "sessionId": "S-1",
        "message": {"role": "assistant", "model": "claude-sonnet", "content": content},
    }


def tool_result(uuid: str, timestamp: str, tool_use_id: str, content: Any, is_error: bool = False) -> dict[str, Any]:
    return {
        "type": "user",
        "uuid": uuid,
        "timestamp": timestamp,
        "sessionId": "S-1",
        "message": {
            "role": "user",
            "content": [
                {"type": "tool_result", "tool_use_id": tool_use_id, "content": content, "is_error": is_error}
            ],
        },
    }


def progress(uuid: str, timestamp: str) -> dict[str, Any]:
    return {"type": "progress", "uuid": uuid, "timestamp": timestamp, "data": {"type": "hook_progress"}}


def committing_session(git_output: str = GIT_COMMIT_OUTPUT) -> list[dict[str, Any]]:
    """Prompt, read + edit, git commit, then an uncommitted follow-up."""
    return [
        user_text("u1", ts(0), "Add the feature"),
        assistant("a1", ts(1), "Looking at the code", [tool_use("t-read", "Read", file_path="/repo/app.py")]),
        tool_result("r1", ts(2), "t-read", "def main(): ..."),
        assistant("a2", ts(3), "", [tool_use("t-edit", "Edit", file_path="/repo/app.py", old_string="a", new_string="b")]),
        tool_result("r2", ts(4), "t-edit", "ok"),
        assistant("a3", ts(5), "Committing", [tool_use("t-git", "Bash", command='git add -A && git commit -m "Add feature"')]),
        tool_result("r3", ts(6), "t-git", git_output),
        user_text("u2", ts(7), "Now the docs"),
        assistant("a4", ts(8), "", [tool_use("t-write", "Write", file_path="/repo/README.md", content="docs")]),
    ]


def to_entries(payloads: list[dict[str, Any]]) -> list:
    return [parse_log_entry(payload) for payload in payloads]


def jsonl_bytes(payloads: list[dict[str, Any]]) -> bytes:
    return "".join(json.dumps(payload) + "\n" for payload in payloads).encode("utf-8")


def write_jsonl(directory: Path, name: str, payloads: list[dict[str, Any]]) -> Path:
    path = Path(directory) / name
    path.write_bytes(jsonl_bytes(payloads))
    return path
