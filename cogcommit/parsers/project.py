"""Batch extraction over a Claude project directory.

Every session file is read and extracted independently, then the per-session
commit lists are merged. A session file that cannot be read is reported in
``ParseResult.parseErrors`` instead of failing the whole project.
"""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional

from cogcommit import observability
from cogcommit.models import CognitiveCommit, ParseResult, ProjectInfo
from cogcommit.parsers.extractor import extract_cognitive_commits
from cogcommit.parsers.merger import merge_commits_from_sessions
from cogcommit.parsers.reader import (
    extract_project_name,
    extract_session_id,
    list_session_files,
    read_log_file,
)

logger = logging.getLogger("cogcommit.parser")


def parse_session(path: Path) -> list[CognitiveCommit]:
    """Unmerged commits for one session file."""
    path = Path(path)
    result = read_log_file(path)
    return extract_cognitive_commits(result.entries, extract_session_id(path))


def parse_project(project_dir: Path, session_id: Optional[str] = None) -> ParseResult:
    project_dir = Path(project_dir)
    project_name = extract_project_name(project_dir)

    session_files = list_session_files(project_dir)
    if session_id:
        session_files = [f for f in session_files if session_id in f.name]
        if not session_files:
            raise FileNotFoundError(f"Session not found: {session_id}")

    logger.info(f"Parsing {len(session_files)} session files for project {project_name}")

    all_commits: list[CognitiveCommit] = []
    parse_errors: list[str] = []
    parsed_sessions = 0
    total_turns = 0
    malformed_lines = 0

    with observability.start_span("parse_project", {"project": project_name}):
        for session_file in session_files:
            sid = extract_session_id(session_file)
            t0 = time.monotonic()
            try:
                read = read_log_file(session_file)
            except OSError as exc:
                message = f"Error parsing {session_file}: {exc}"
                logger.warning(message)
                parse_errors.append(message)
                observability.record_parser_failure("session", project=project_name)
                continue

            malformed_lines += len(read.errors)
            if not read.entries:
                logger.debug(f"Skipping empty session {sid}")
                continue

            commits = extract_cognitive_commits(read.entries, sid)
            parsed_sessions += 1
            total_turns += sum(commit.turn_count for commit in commits)
            all_commits.extend(commits)

            elapsed_ms = (time.monotonic() - t0) * 1000
            observability.record_ingestion("session", "success", elapsed_ms, project=project_name)
            logger.debug(f"Session {sid}: {len(commits)} cognitive commits")

    observability.record_malformed_lines(malformed_lines, project=project_name)

    return ParseResult(
        project=project_name,
        projectPath=str(project_dir),
        cognitiveCommits=merge_commits_from_sessions(all_commits),
        totalSessions=parsed_sessions,
        totalTurns=total_turns,
        parseErrors=parse_errors,
        malformedLines=malformed_lines,
    )


def get_project_info(project_dir: Path) -> ProjectInfo:
    project_dir = Path(project_dir)
    return ProjectInfo(
        name=extract_project_name(project_dir),
        path=str(project_dir),
        sessionFiles=[str(path) for path in list_session_files(project_dir)],
    )
