"""Cognitive commit read API + watcher control."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request

from cogcommit.db.file_watcher import file_watcher
from cogcommit.models import CognitiveCommit, PaginatedResponse

logger = logging.getLogger("cogcommit.api")

commits_router = APIRouter(prefix="/api/commits", tags=["commits"])
watcher_router = APIRouter(prefix="/api/watcher", tags=["watcher"])


def _get_commit_repo(request: Request):
    repo = getattr(request.app.state, "commit_repo", None)
    if not repo:
        raise HTTPException(status_code=503, detail="Commit storage not initialized")
    return repo


def _get_processor(request: Request):
    processor = getattr(request.app.state, "processor", None)
    if not processor:
        raise HTTPException(status_code=503, detail="Processor not initialized")
    return processor


@commits_router.get("", response_model=PaginatedResponse[CognitiveCommit])
async def list_commits(
    request: Request,
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    project: Optional[str] = None,
):
    """List stored commits, most recently closed first."""
    repo = _get_commit_repo(request)
    items = await repo.list_paginated(offset, limit, project_name=project)
    total = await repo.count(project_name=project)
    return PaginatedResponse(items=items, total=total, offset=offset, limit=limit)


@commits_router.get("/by-hash/{git_hash}", response_model=CognitiveCommit)
async def get_commit_by_hash(request: Request, git_hash: str):
    commit = await _get_commit_repo(request).get_commit_by_git_hash(git_hash)
    if not commit:
        raise HTTPException(status_code=404, detail=f"No commit for git hash {git_hash}")
    return commit


@commits_router.get("/{commit_id}", response_model=CognitiveCommit)
async def get_commit(request: Request, commit_id: str):
    commit = await _get_commit_repo(request).get_commit(commit_id)
    if not commit:
        raise HTTPException(status_code=404, detail=f"Commit {commit_id} not found")
    return commit


@commits_router.delete("/{commit_id}")
async def delete_commit(request: Request, commit_id: str):
    deleted = await _get_commit_repo(request).delete_commit(commit_id)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Commit {commit_id} not found")
    logger.info(f"Deleted cognitive commit {commit_id}")
    return {"status": "deleted", "id": commit_id}


@watcher_router.get("/status")
async def get_watcher_status(request: Request):
    """Watcher, processor and checkpoint state."""
    processor = _get_processor(request)
    sessions_dir = file_watcher.sessions_dir
    return {
        "watcher": "running" if file_watcher.is_running else "stopped",
        "sessionsDir": str(sessions_dir) if sessions_dir else "",
        "lastError": file_watcher.last_error,
        "lastActivity": await processor.checkpoint_repo.get_last_activity(),
        "commitCount": await processor.commit_repo.count(),
        "processor": processor.get_status().model_dump(),
    }


@watcher_router.post("/close")
async def close_current_commit(request: Request):
    """Close the open cognitive commit now (``explicit``)."""
    commit = await _get_processor(request).explicit_close()
    if commit is None:
        return {"closed": False, "commit": None}
    return {"closed": True, "commit": commit.model_dump(mode="json")}
