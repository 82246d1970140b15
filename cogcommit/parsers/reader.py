"""Read Claude Code JSONL session logs into typed entries.

Reads are tolerant of bad lines: undecodable, non-JSON or schema-invalid lines are
skipped and reported as ``LineError``s. Missing files and directories raise.
"""
from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from cogcommit import config
from cogcommit.models import LineError
from cogcommit.parsers.entries import KNOWN_ENTRY_TYPES, LogEntry, parse_log_entry

logger = logging.getLogger("cogcommit.parser")

_MAC_PROJECT_DIR = re.compile(r"^-Users-([^-]+)-(.+)$")
_LINUX_PROJECT_DIR = re.compile(r"^-home-([^-]+)-(.+)$")


@dataclass
class ReadResult:
    entries: list[LogEntry] = field(default_factory=list)
    errors: list[LineError] = field(default_factory=list)
    # Byte offset just past the last consumed line.
    end_offset: int = 0


def _parse_line(raw: bytes) -> Optional[LogEntry]:
    """Decode one raw line. Returns None for blank lines and unmodelled entry types."""
    text = raw.decode("utf-8")
    stripped = text.strip()
    if not stripped:
        return None
    try:
        payload = json.loads(stripped)
    except RecursionError:
        raise ValueError("JSON nested too deeply") from None
    if not isinstance(payload, dict):
        raise ValueError("entry is not a JSON object")
    entry_type = payload.get("type")
    if not isinstance(entry_type, str):
        raise ValueError("entry type is not a string")
    if entry_type not in KNOWN_ENTRY_TYPES:
        return None
    return parse_log_entry(payload)


def _line_error(path: Path, line_number: int, offset: int, exc: Exception) -> LineError:
    message = str(exc).splitlines()[0] if str(exc) else type(exc).__name__
    logger.warning(f"Skipping malformed line {line_number} in {path}: {message}")
    return LineError(lineNumber=line_number, offset=offset, message=message)


def stream_log_entries(
    path: Path,
    on_error: Optional[Callable[[LineError], None]] = None,
) -> Iterator[LogEntry]:
    """Yield entries in file order, reporting skipped lines through ``on_error``."""
    offset = 0
    with Path(path).open("rb") as fh:
        for line_number, raw in enumerate(fh, start=1):
            line_start = offset
            offset += len(raw)
            try:
                entry = _parse_line(raw)
            except ValueError as exc:
                error = _line_error(path, line_number, line_start, exc)
                if on_error:
                    on_error(error)
                continue
            if entry is not None:
                yield entry


def read_log_file(path: Path) -> ReadResult:
    """Read every entry of a session log."""
    path = Path(path)
    result = ReadResult()
    result.entries = list(stream_log_entries(path, on_error=result.errors.append))
    result.end_offset = path.stat().st_size
    return result


def read_log_range(path: Path, start_offset: int = 0) -> ReadResult:
    """Read entries found at or after ``start_offset``.

    Only complete records are consumed. An unterminated final line that does not
    parse is assumed to still be in flight: it is neither reported nor consumed, and
    ``end_offset`` stops in front of it. Line numbers are relative to ``start_offset``.
    """
    path = Path(path)
    result = ReadResult(end_offset=start_offset)
    offset = start_offset
    with path.open("rb") as fh:
        fh.seek(start_offset)
        for line_number, raw in enumerate(fh, start=1):
            line_start = offset
            offset += len(raw)
            try:
                entry = _parse_line(raw)
            except ValueError as exc:
                if not raw.endswith(b"\n"):
                    break
                result.errors.append(_line_error(path, line_number, line_start, exc))
                result.end_offset = offset
                continue
            result.end_offset = offset
            if entry is not None:
                result.entries.append(entry)
    return result


# ── Session file discovery ─────────────────────────────────────────

def _mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0


def list_session_files(project_dir: Path) -> list[Path]:
    """List session logs in a Claude project directory, newest first."""
    project_dir = Path(project_dir)
    if not project_dir.exists():
        raise FileNotFoundError(f"Project directory not found: {project_dir}")
    return sorted(project_dir.glob("*.jsonl"), key=_mtime, reverse=True)


def extract_session_id(path: Path | str) -> str:
    """``abc123-def456.jsonl`` -> ``abc123-def456``."""
    return Path(path).name.removesuffix(".jsonl")


def _probe_project_name(base: Path, rest: str) -> str:
    # Encoded names are lossy for hyphenated directories: try the longest existing prefix.
    segments = rest.split("-")
    for i in range(len(segments), 0, -1):
        candidate = "-".join(segments[:i])
        if (base / candidate).is_dir():
            return candidate
    return segments[-1]


def extract_project_name(project_dir: Path | str) -> str:
    """Recover a project name from Claude's encoded directory name.

    Claude encodes ``/Users/alice/my-app`` as ``-Users-alice-my-app``.
    """
    dir_name = Path(project_dir).name

    mac_match = _MAC_PROJECT_DIR.match(dir_name)
    if mac_match:
        return _probe_project_name(Path("/Users") / mac_match.group(1), mac_match.group(2))

    linux_match = _LINUX_PROJECT_DIR.match(dir_name)
    if linux_match:
        return _probe_project_name(Path("/home") / linux_match.group(1), linux_match.group(2))

    parts = [part for part in dir_name.split("-") if part]
    return parts[-1] if parts else dir_name


def discover_projects(claude_dir: Optional[Path] = None) -> list[Path]:
    """List Claude project directories (one per working directory Claude has seen)."""
    root = Path(claude_dir) if claude_dir else config.CLAUDE_DIR
    if not root.exists():
        return []
    return sorted(p for p in root.iterdir() if p.is_dir())


def detect_claude_project_path(project_path: Path | str, claude_dir: Optional[Path] = None) -> Optional[Path]:
    """Find the Claude log directory for a working directory, if Claude has one."""
    root = Path(claude_dir) if claude_dir else config.CLAUDE_DIR
    if not root.exists():
        return None

    project_path = Path(project_path)
    encoded = "-" + str(project_path).lstrip("/").replace("/", "-")
    direct = root / encoded
    if direct.is_dir():
        return direct

    suffix = f"-{project_path.name}"
    for candidate in discover_projects(root):
        if candidate.name.endswith(suffix):
            return candidate
    return None
