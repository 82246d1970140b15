#!/usr/bin/env python3
"""Extract cognitive commits from a project's Claude Code session logs.

Usage:
  python -m cogcommit.scripts.extract_commits ~/code/my-app
  python -m cogcommit.scripts.extract_commits ~/.claude/projects/-Users-me-my-app --session 7f3c
  python -m cogcommit.scripts.extract_commits ~/code/my-app --store
  python -m cogcommit.scripts.extract_commits --list-projects
"""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from cogcommit import config
from cogcommit.db import connection, sqlite_migrations
from cogcommit.db.repositories import SqliteCommitRepository
from cogcommit.models import ParseResult
from cogcommit.parsers.project import get_project_info, parse_project
from cogcommit.parsers.reader import detect_claude_project_path, discover_projects, extract_project_name


def _resolve_log_dir(target: Path, claude_dir: Path) -> Optional[Path]:
    # Accept either a Claude log directory or the working directory it belongs to.
    if target.is_dir() and any(target.glob("*.jsonl")):
        return target
    return detect_claude_project_path(target.resolve(), claude_dir)


async def _store(result: ParseResult) -> int:
    db = await connection.get_connection()
    await sqlite_migrations.run_migrations(db)
    repo = SqliteCommitRepository(db)
    for commit in result.cognitiveCommits:
        await repo.insert_commit(commit.model_copy(update={"projectName": result.project}))
    await connection.close_connection()
    return len(result.cognitiveCommits)


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("project", nargs="?", default=".", help="Project working directory or Claude log directory")
    parser.add_argument("--session", default="", help="Only parse session files whose name contains this id")
    parser.add_argument("--claude-dir", default=str(config.CLAUDE_DIR), help="Claude projects directory")
    parser.add_argument("--info", action="store_true", help="Print project info without parsing")
    parser.add_argument("--list-projects", action="store_true", help="List Claude project directories")
    parser.add_argument("--store", action="store_true", help="Persist extracted commits to the database")
    parser.add_argument("--output", default="", help="Write JSON to this file instead of stdout")
    args = parser.parse_args()

    claude_dir = Path(args.claude_dir).expanduser()

    if args.list_projects:
        for project_dir in discover_projects(claude_dir):
            print(f"{extract_project_name(project_dir)}\t{project_dir}")
        return 0

    log_dir = _resolve_log_dir(Path(args.project).expanduser(), claude_dir)
    if log_dir is None:
        print(f"No Claude sessions found for {args.project}", file=sys.stderr)
        return 1

    try:
        if args.info:
            payload = get_project_info(log_dir).model_dump()
        else:
            result = parse_project(log_dir, session_id=args.session or None)
            payload = result.model_dump(mode="json")
            if args.store:
                stored = asyncio.run(_store(result))
                print(f"Stored {stored} cognitive commits in {connection.DB_PATH}", file=sys.stderr)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    text = json.dumps(payload, indent=2)
    if args.output:
        Path(args.output).write_text(text + "\n", encoding="utf-8")
    else:
        print(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
