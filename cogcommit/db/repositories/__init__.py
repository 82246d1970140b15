"""Repository package for database access."""

from .commits import SqliteCommitRepository
from .checkpoints import SqliteCheckpointRepository

__all__ = [
    "SqliteCommitRepository",
    "SqliteCheckpointRepository",
]
