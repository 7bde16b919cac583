"""
Directory walker that discovers repositories and ingests their history.

Traversal is depth-first and stops at every repository root: directories
inside a repository are never searched for further repositories.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

from gitwalk.errors import (
    GitCommandError,
    NotARepositoryError,
    RepositoryOpenError,
    StoreError,
    WalkRootError,
)
from gitwalk.ingestion.git_reader import GitRepository, open_repository
from gitwalk.ingestion.mapper import (
    EntityFact,
    branch_commit_edges,
    commit_key,
    map_branch,
    map_commit,
    map_repository,
)
from gitwalk.schema import Edge, EntityKey
from gitwalk.store.base import FactStore

_EXTRACTION_ERRORS = (GitCommandError, StoreError, OSError)


@dataclass
class ExtractionStats:
    """Counts for one repository's extraction pass."""

    repository: str
    branches: int = 0
    commits: int = 0
    users: int = 0
    edges: int = 0


@dataclass
class WalkReport:
    """Outcome of a walk: repositories ingested and repositories that failed."""

    succeeded: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)
    extractions: list[ExtractionStats] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def totals(self) -> dict[str, int]:
        return {
            "repositories": len(self.succeeded),
            "failures": len(self.failed),
            "branches": sum(s.branches for s in self.extractions),
            "commits": sum(s.commits for s in self.extractions),
            "edges": sum(s.edges for s in self.extractions),
        }


class RepositoryWalker:
    """
    Walk a directory tree and write every repository's history into a store.

    Attributes:
        store (FactStore): Destination for entity attributes and edges.
        logger (logging.Logger): Receives per-repository and per-write lines.
        opener (Callable): Opens a directory as a repository or raises
            ``RepositoryOpenError``.
        ignore_dirs (set): Directory names never entered.
        continue_on_error (bool): Record per-repository failures and keep going
            instead of aborting the walk.
        echo_writes (bool): Read each written entity back and log it at DEBUG.
    """

    def __init__(
        self,
        store: FactStore,
        *,
        logger: Optional[logging.Logger] = None,
        opener: Callable[[Path], GitRepository] = open_repository,
        ignore_dirs: Iterable[str] = (),
        continue_on_error: bool = False,
        echo_writes: bool = True,
    ):
        self.store = store
        self.logger = logger or logging.getLogger(__name__)
        self.opener = opener
        self.ignore_dirs = set(ignore_dirs)
        self.continue_on_error = continue_on_error
        self.echo_writes = echo_writes

    def walk(self, root: Path | str) -> WalkReport:
        """
        Ingest every repository found beneath ``root``.

        Raises:
            WalkRootError: ``root`` is missing or not a directory.
            RepositoryOpenError, GitCommandError, StoreError, OSError: the first
                failure, unless ``continue_on_error`` is set. This includes a
                directory that cannot be listed.
        """
        root_path = Path(root)
        if not root_path.exists():
            raise WalkRootError(str(root_path))
        if not root_path.is_dir():
            raise WalkRootError(str(root_path), "is not a directory")

        report = WalkReport()

        def on_listing_error(error: OSError) -> None:
            # An unreadable directory is skipped like a failed repository.
            self._record_failure(report, Path(error.filename or root_path), error)

        for dirpath, dirnames, _files in os.walk(root_path, onerror=on_listing_error):
            dirnames[:] = sorted(d for d in dirnames if d not in self.ignore_dirs)
            path = Path(dirpath)

            try:
                repo = self.opener(path)
            except NotARepositoryError:
                continue
            except RepositoryOpenError as e:
                dirnames[:] = []
                self._record_failure(report, path, e)
                continue

            dirnames[:] = []
            try:
                with repo:
                    stats = self.extract(repo)
            except _EXTRACTION_ERRORS as e:
                self._record_failure(report, path, e)
                continue

            report.succeeded.append(stats.repository)
            report.extractions.append(stats)
            self.logger.info(
                "Extraction completed: repo=%s branches=%d commits=%d users=%d edges=%d",
                stats.repository,
                stats.branches,
                stats.commits,
                stats.users,
                stats.edges,
            )
        return report

    def extract(self, repo: GitRepository) -> ExtractionStats:
        """Run the extraction pass for one opened repository."""
        stats = ExtractionStats(repository=str(repo.path))
        repo_fact = map_repository(repo.path)
        self._save(repo_fact)

        seen_commits: set[EntityKey] = set()
        seen_users: set[EntityKey] = set()
        for branch in repo.list_branches():
            branch_fact, branch_edges = map_branch(repo_fact.key, branch)
            self._save(branch_fact)
            self._link(branch_edges, stats)
            stats.branches += 1

            for commit in repo.commit_history(branch.head):
                key = commit_key(commit.sha)
                if key in seen_commits:
                    self._link(branch_commit_edges(branch_fact.key, key), stats)
                    continue

                facts = map_commit(repo_fact.key, commit)
                self._save(facts.commit)
                if facts.user.key not in seen_users:
                    self._save(facts.user)
                    seen_users.add(facts.user.key)
                self._link(facts.edges + branch_commit_edges(branch_fact.key, key), stats)
                seen_commits.add(key)

        stats.commits = len(seen_commits)
        stats.users = len(seen_users)
        return stats

    def _save(self, fact: EntityFact) -> None:
        self.store.upsert_attributes(fact.key, fact.attributes)
        if self.echo_writes and self.logger.isEnabledFor(logging.DEBUG):
            stored = self.store.get_attributes(fact.key, fact.attributes.keys())
            self.logger.debug(
                "Saved %s %s", fact.key, {name: value.data for name, value in stored.items()}
            )

    def _link(self, edges: list[Edge], stats: ExtractionStats) -> None:
        self.store.upsert_edges(edges)
        stats.edges += len(edges)

    def _record_failure(self, report: WalkReport, path: Path, error: Exception) -> None:
        if not self.continue_on_error:
            raise error
        self.logger.error("Failed to ingest %s: %s", path, error)
        report.failed.append((str(path), str(error)))
