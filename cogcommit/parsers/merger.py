"""Cross-session commit merging.

Sessions run side by side in one project can converge on the same git commit,
each producing its own cognitive commit for it. This pass flags overlapping
work as parallel and folds commits that share a git hash into one record.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from cogcommit.date_utils import earliest, iso_to_epoch, latest
from cogcommit.models import CognitiveCommit

logger = logging.getLogger("cogcommit.parser")


def _sorted_by_start(commits: Iterable[CognitiveCommit]) -> list[CognitiveCommit]:
    return sorted(commits, key=lambda commit: iso_to_epoch(commit.startedAt))


def _ordered_union(lists: Iterable[list[str]]) -> list[str]:
    seen: dict[str, None] = {}
    for values in lists:
        for value in values:
            seen.setdefault(value, None)
    return list(seen)


def mark_parallel(commits: Iterable[CognitiveCommit]) -> list[CognitiveCommit]:
    """Return the commits sorted by start, with overlapping ones flagged parallel.

    Intervals are half-open: a commit ending exactly when another starts does not
    overlap it. Quadratic in the worst case.
    """
    ordered = _sorted_by_start(commits)
    bounds = [(iso_to_epoch(c.startedAt), iso_to_epoch(c.closedAt)) for c in ordered]
    parallel = [c.parallel for c in ordered]

    for i, (start_i, end_i) in enumerate(bounds):
        for j in range(i + 1, len(bounds)):
            start_j, end_j = bounds[j]
            if start_j >= end_i:
                # Later commits start no earlier, so none of them overlap i.
                break
            if start_i < end_j:
                parallel[i] = True
                parallel[j] = True

    return [
        commit if commit.parallel == flag else commit.model_copy(update={"parallel": flag})
        for commit, flag in zip(ordered, parallel)
    ]


def group_by_git_hash(commits: Iterable[CognitiveCommit]) -> list[list[CognitiveCommit]]:
    """Partition by git hash, keeping first-seen group order. Hashless commits stay alone."""
    groups: dict[tuple[str, str], list[CognitiveCommit]] = {}
    for commit in commits:
        key = ("hash", commit.gitHash) if commit.gitHash else ("id", commit.id)
        groups.setdefault(key, []).append(commit)
    return list(groups.values())


def merge_group(group: list[CognitiveCommit]) -> CognitiveCommit:
    """Fold commits sharing a git hash into one envelope led by the first member."""
    if len(group) == 1:
        return group[0]

    first = group[0]
    starts = [c.startedAt for c in group]
    ends = [c.closedAt for c in group]
    merged = first.model_copy(
        update={
            "startedAt": earliest(starts),
            "closedAt": latest(ends),
            "sessions": [session for c in group for session in c.sessions],
            "parallel": True,
            "filesRead": _ordered_union(c.filesRead for c in group),
            "filesChanged": _ordered_union(c.filesChanged for c in group),
        }
    )
    logger.debug(f"Merged {len(group)} commits sharing git hash {first.gitHash}")
    return merged


def merge_commits_from_sessions(commits: Iterable[CognitiveCommit]) -> list[CognitiveCommit]:
    """Detect parallel work, merge shared-hash commits and sort by start time.

    Inputs are not modified.
    """
    flagged = mark_parallel(commits)
    merged = [merge_group(group) for group in group_by_git_hash(flagged)]
    return _sorted_by_start(merged)
