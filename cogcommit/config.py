"""Cognitive commit extractor configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default

# Project root (one level up from cogcommit/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Claude Code keeps one directory per project under ~/.claude/projects
CLAUDE_DIR = Path(os.getenv("COGCOMMIT_CLAUDE_DIR", str(Path.home() / ".claude" / "projects")))
# Working directory whose Claude sessions are watched; its log directory is
# detected under CLAUDE_DIR unless COGCOMMIT_SESSIONS_DIR points at one directly.
PROJECT_PATH = Path(os.getenv("COGCOMMIT_PROJECT_PATH", os.getcwd()))
_sessions_dir = os.getenv("COGCOMMIT_SESSIONS_DIR", "").strip()
SESSIONS_DIR = Path(_sessions_dir) if _sessions_dir else None

# Database
DB_PATH = os.getenv("COGCOMMIT_DB_PATH", str(PROJECT_ROOT / "data" / "cogcommit.db"))

# Watcher
WATCH_ENABLED = _env_bool("COGCOMMIT_WATCH_ENABLED", True)
WATCH_DEBOUNCE_MS = _env_int("COGCOMMIT_WATCH_DEBOUNCE_MS", 500)

# Observability
OTEL_ENABLED = _env_bool("COGCOMMIT_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("COGCOMMIT_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("COGCOMMIT_OTEL_SERVICE_NAME", "cogcommit")
PROM_PORT = _env_int("COGCOMMIT_PROM_PORT", 9464)

# Server settings
HOST = os.getenv("COGCOMMIT_HOST", "127.0.0.1")
PORT = _env_int("COGCOMMIT_PORT", 8000)
