"""Cognitive commit service: FastAPI application entry point."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from cogcommit import config
from cogcommit.db import connection, sqlite_migrations
from cogcommit.db.file_watcher import file_watcher
from cogcommit.db.processor import IncrementalProcessor
from cogcommit.db.repositories import SqliteCheckpointRepository, SqliteCommitRepository
from cogcommit.observability import initialize as initialize_observability, shutdown as shutdown_observability
from cogcommit.parsers.reader import detect_claude_project_path
from cogcommit.routers.commits import commits_router, watcher_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cogcommit")


def _resolve_sessions_dir() -> Optional[Path]:
    if config.SESSIONS_DIR:
        return config.SESSIONS_DIR
    return detect_claude_project_path(config.PROJECT_PATH, config.CLAUDE_DIR)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("Cognitive commit service starting up")
    initialize_observability(app)

    db = await connection.get_connection()
    await sqlite_migrations.run_migrations(db)

    commit_repo = SqliteCommitRepository(db)
    checkpoint_repo = SqliteCheckpointRepository(db)
    processor = IncrementalProcessor(commit_repo, checkpoint_repo)
    await processor.restore()

    app.state.commit_repo = commit_repo
    app.state.processor = processor

    sessions_dir = _resolve_sessions_dir()
    if not config.WATCH_ENABLED:
        logger.info("Session watcher disabled (COGCOMMIT_WATCH_ENABLED=false)")
    elif sessions_dir is None:
        logger.warning(f"No Claude session directory found for {config.PROJECT_PATH}; watcher not started")
    else:
        await file_watcher.start(processor, sessions_dir)

    yield

    logger.info("Cognitive commit service shutting down")
    await file_watcher.stop()
    # Runs on SIGINT/SIGTERM too: the server drives lifespan shutdown on both.
    commit = await processor.force_close()
    if commit:
        logger.info(f"Flushed open cognitive commit {commit.id} on shutdown")
    shutdown_observability(app)
    await connection.close_connection()


app = FastAPI(
    title="Cognitive Commit API",
    description="Cognitive commits extracted from Claude Code session logs",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(commits_router)
app.include_router(watcher_router)


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "db": "connected" if connection._connection else "disconnected",
        "watcher": "running" if file_watcher.is_running else "stopped",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("cogcommit.main:app", host=config.HOST, port=config.PORT)
