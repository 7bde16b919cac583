"""Ingestion module exports."""

from gitwalk.ingestion.git_reader import (
    BranchRecord,
    CommitRecord,
    GitRepository,
    open_repository,
)
from gitwalk.ingestion.walker import ExtractionStats, RepositoryWalker, WalkReport

__all__ = [
    "BranchRecord",
    "CommitRecord",
    "ExtractionStats",
    "GitRepository",
    "RepositoryWalker",
    "WalkReport",
    "open_repository",
]
