"""Read branches and commit history from local git repositories."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator

from gitwalk.errors import (
    CorruptRepositoryError,
    GitCommandError,
    NotARepositoryError,
    RepositoryPermissionError,
)

logger = logging.getLogger(__name__)
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x00"
_LOG_FORMAT = f"%H{_FIELD_SEP}%P{_FIELD_SEP}%an{_FIELD_SEP}%ae{_FIELD_SEP}%aI{_FIELD_SEP}%B"
_BRANCH_FORMAT = "%(refname:lstrip=2)%1f%(objectname)"
_READ_CHUNK = 64 * 1024
_PERMISSION_MARKERS = ("permission denied", "dubious ownership")


@dataclass(frozen=True)
class BranchRecord:
    """A local branch and the commit its ref points at."""

    name: str
    head: str


@dataclass(frozen=True)
class CommitRecord:
    """Commit metadata parsed from `git log` output."""

    sha: str
    parent_count: int
    authored_at: datetime
    author_name: str
    author_email: str
    message: str


def parse_branch_output(output: str) -> list[BranchRecord]:
    """Parse `git for-each-ref` output into branch records."""
    branches: list[BranchRecord] = []
    for raw_line in output.splitlines():
        if not raw_line.strip():
            continue
        name, sep, head = raw_line.partition(_FIELD_SEP)
        if not sep or not name.strip() or not head.strip():
            continue
        branches.append(BranchRecord(name=name.strip(), head=head.strip()))
    return branches


def parse_commit_record(raw: str) -> CommitRecord:
    """Parse one NUL-delimited `git log` record."""
    parts = raw.lstrip("\n").split(_FIELD_SEP, maxsplit=5)
    if len(parts) < 6:
        raise GitCommandError(["log"], f"unable to parse commit record {raw[:80]!r}")

    parents = parts[1].split()
    try:
        authored_at = datetime.fromisoformat(parts[4].strip())
    except ValueError as e:
        raise GitCommandError(["log"], f"bad author date for {parts[0].strip()}: {e}") from e

    return CommitRecord(
        sha=parts[0].strip(),
        parent_count=len(parents),
        authored_at=authored_at,
        author_name=parts[2].strip(),
        author_email=parts[3].strip(),
        message=parts[5].rstrip("\n"),
    )


def _git_env(path: Path) -> dict[str, str]:
    env = dict(os.environ)
    # An inherited repository location would override the directory passed in.
    for name in ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE", "GIT_COMMON_DIR"):
        env.pop(name, None)
    # Discovery must not climb out of the directory being opened.
    env["GIT_CEILING_DIRECTORIES"] = str(path.parent)
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["LC_ALL"] = "C"
    return env


def _run_git(path: Path, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=path,
            env=_git_env(path),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except FileNotFoundError as e:
        raise GitCommandError(list(args), f"git executable not available: {e}") from e
    if check and result.returncode != 0:
        stderr = result.stderr.strip() or result.stdout.strip()
        raise GitCommandError(list(args), stderr)
    return result


def _looks_bare(path: Path) -> bool:
    return (path / "HEAD").is_file() and (path / "objects").is_dir() and (path / "refs").is_dir()


def open_repository(path: Path) -> "GitRepository":
    """
    Open ``path`` as a git repository rooted exactly at that directory.

    Raises:
        NotARepositoryError: no git metadata at ``path``.
        RepositoryPermissionError: metadata exists but cannot be read.
        CorruptRepositoryError: metadata exists but git rejects it.
    """
    path = Path(path)
    dot_git = path / ".git"
    if os.path.lexists(dot_git):
        bare = False
        metadata = dot_git
    elif _looks_bare(path):
        bare = True
        metadata = path
    else:
        raise NotARepositoryError(str(path))

    if not os.access(metadata, os.R_OK):
        raise RepositoryPermissionError(str(path))

    result = _run_git(path, "rev-parse", "--git-dir", check=False)
    if result.returncode != 0:
        stderr = result.stderr.strip() or result.stdout.strip()
        if any(marker in stderr.lower() for marker in _PERMISSION_MARKERS):
            raise RepositoryPermissionError(str(path), stderr)
        raise CorruptRepositoryError(str(path), stderr)

    return GitRepository(path.resolve(), bare=bare)


class GitRepository:
    """An opened repository. Use as a context manager to release history readers."""

    def __init__(self, path: Path, *, bare: bool = False):
        self.path = path
        self.bare = bare
        self._readers: set[subprocess.Popen] = set()

    def __enter__(self) -> "GitRepository":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Terminate any history reader still running."""
        for proc in list(self._readers):
            self._stop(proc)

    def list_branches(self) -> list[BranchRecord]:
        """Return local branches in ref order."""
        output = _run_git(self.path, "for-each-ref", f"--format={_BRANCH_FORMAT}", "refs/heads").stdout
        return parse_branch_output(output)

    def commit_history(self, start: str) -> Iterator[CommitRecord]:
        """
        Lazily yield commits reachable from ``start``, newest first.

        The sequence is single-pass; iterate again by calling this method again.
        """
        args = ["-c", "log.showSignature=false", "log", "-z", "--no-color", f"--format={_LOG_FORMAT}", start, "--"]
        try:
            proc = subprocess.Popen(
                ["git", *args],
                cwd=self.path,
                env=_git_env(self.path),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except FileNotFoundError as e:
            raise GitCommandError(args, f"git executable not available: {e}") from e

        self._readers.add(proc)
        try:
            pending = ""
            for chunk in iter(lambda: proc.stdout.read(_READ_CHUNK), ""):
                pending += chunk
                *complete, pending = pending.split(_RECORD_SEP)
                for raw in complete:
                    if raw.strip():
                        yield parse_commit_record(raw)
            if pending.strip():
                yield parse_commit_record(pending)

            stderr = proc.stderr.read()
            if proc.wait() != 0:
                raise GitCommandError(args, stderr.strip())
        finally:
            self._stop(proc)

    def _stop(self, proc: subprocess.Popen) -> None:
        if proc.poll() is None:
            logger.debug("Stopping unfinished git log in %s", self.path)
            proc.kill()
            proc.wait()
        if proc.stdout:
            proc.stdout.close()
        if proc.stderr:
            proc.stderr.close()
        self._readers.discard(proc)

