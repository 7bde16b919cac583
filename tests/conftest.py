"""Shared fixtures: an in-process fake repository reader and real git helpers."""

import os
import shutil
import subprocess
from datetime import datetime, timezone
from pathlib import Path

import pytest

from gitwalk.errors import NotARepositoryError
from gitwalk.ingestion.git_reader import BranchRecord, CommitRecord

GIT = shutil.which("git")
requires_git = pytest.mark.skipif(GIT is None, reason="git executable not available")


def make_commit(sha, *, parents=1, email="dev@example.com", name="Dev", message="change", day=1):
    """Build a CommitRecord with deterministic defaults."""
    return CommitRecord(
        sha=sha,
        parent_count=parents,
        authored_at=datetime(2026, 1, day, 12, 0, tzinfo=timezone.utc),
        author_name=name,
        author_email=email,
        message=message,
    )


class FakeRepository:
    """Stands in for GitRepository: branches map name -> newest-first commits."""

    def __init__(self, path, branches=None, fail_on_history=None):
        self.path = Path(path).resolve()
        self.branches = branches or {}
        self.fail_on_history = fail_on_history
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self):
        self.closed = True

    def list_branches(self):
        return [BranchRecord(name=name, head=commits[0].sha) for name, commits in self.branches.items()]

    def commit_history(self, start):
        if self.fail_on_history is not None:
            raise self.fail_on_history
        for commits in self.branches.values():
            if commits and commits[0].sha == start:
                return iter(list(commits))
        raise AssertionError(f"unknown head {start}")


class FakeOpener:
    """Opens only the directories registered with it."""

    def __init__(self):
        self.repos = {}
        self.errors = {}
        self.opened = []

    def add(self, repo):
        self.repos[repo.path] = repo
        return repo

    def fail(self, path, error):
        self.errors[Path(path).resolve()] = error

    def __call__(self, path):
        resolved = Path(path).resolve()
        self.opened.append(resolved)
        if resolved in self.errors:
            raise self.errors[resolved]
        if resolved in self.repos:
            return self.repos[resolved]
        raise NotARepositoryError(str(path))


@pytest.fixture
def opener():
    return FakeOpener()


def git(cwd, *args, date="2026-01-01T12:00:00+00:00"):
    """Run git in ``cwd`` isolated from the user's global config."""
    env = dict(os.environ)
    env.update(
        {
            "GIT_CONFIG_NOSYSTEM": "1",
            "GIT_CONFIG_GLOBAL": os.devnull,
            "GIT_AUTHOR_DATE": date,
            "GIT_COMMITTER_DATE": date,
            "GIT_COMMITTER_NAME": "Committer",
            "GIT_COMMITTER_EMAIL": "committer@example.com",
        }
    )
    result = subprocess.run(
        ["git", "-c", "commit.gpgsign=false", *args],
        cwd=cwd,
        env=env,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def init_repo(path):
    """Create an empty repository whose unborn branch is ``main``."""
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init", "--quiet")
    git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    return path


def commit(path, message, *, author="Ada Lovelace <Ada@Example.com>", day=1):
    """Create an empty commit and return its hash."""
    git(
        path,
        "commit",
        "--quiet",
        "--allow-empty",
        "-m",
        message,
        f"--author={author}",
        date=f"2026-01-{day:02d}T12:00:00+00:00",
    )
    return git(path, "rev-parse", "HEAD")
