"""Git command detection and tool classification for assistant tool calls."""
from __future__ import annotations

import re
from typing import Any, Optional

from cogcommit.models import GitCommitInfo

# `git commit` prints "[<branch> <hash>] <message>" on success.
_COMMIT_HEADER_PATTERN = re.compile(r"\[(\w+(?:/\w+)*)\s+([a-f0-9]+)\]\s+(.+?)(?:\n|$)")
_COMMIT_STATS_PATTERN = re.compile(
    r"(\d+)\s+files?\s+changed(?:,\s+(\d+)\s+insertions?\(\+\))?(?:,\s+(\d+)\s+deletions?\(-\))?"
)
_GIT_COMMIT_COMMAND_PATTERN = re.compile(r"\bgit\s+commit\b")

_SHELL_TOOLS = {"Bash"}
_FILE_READ_TOOLS = {"Read"}
_FILE_CHANGE_TOOLS = {"Edit", "Write", "MultiEdit", "NotebookEdit"}
_FILE_PATH_KEYS = ("file_path", "notebook_path")


def _input_path(tool_input: dict[str, Any]) -> Optional[str]:
    for key in _FILE_PATH_KEYS:
        value = tool_input.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def is_git_commit_command(tool_name: str, tool_input: dict[str, Any]) -> bool:
    if tool_name not in _SHELL_TOOLS:
        return False
    command = tool_input.get("command")
    if not isinstance(command, str) or not command:
        return False
    return bool(_GIT_COMMIT_COMMAND_PATTERN.search(command))


def parse_git_commit_result(output: str) -> Optional[GitCommitInfo]:
    """Parse `git commit` output, e.g. ``[main 5ab1b76] Add repo integration``.

    Returns None when the text is not a commit confirmation.
    """
    if not output:
        return None
    header = _COMMIT_HEADER_PATTERN.search(output)
    if not header:
        return None

    branch, commit_hash, message = header.groups()
    stats = _COMMIT_STATS_PATTERN.search(output)
    return GitCommitInfo(
        hash=commit_hash,
        branch=branch,
        message=message.strip(),
        filesChanged=int(stats.group(1)) if stats else 0,
        insertions=int(stats.group(2)) if stats and stats.group(2) else 0,
        deletions=int(stats.group(3)) if stats and stats.group(3) else 0,
    )


def is_file_change_tool(tool_name: str) -> bool:
    return tool_name in _FILE_CHANGE_TOOLS


def extract_read_file_path(tool_name: str, tool_input: dict[str, Any]) -> Optional[str]:
    if tool_name not in _FILE_READ_TOOLS:
        return None
    return _input_path(tool_input)


def extract_changed_file_path(tool_name: str, tool_input: dict[str, Any]) -> Optional[str]:
    if tool_name not in _FILE_CHANGE_TOOLS:
        return None
    return _input_path(tool_input)
