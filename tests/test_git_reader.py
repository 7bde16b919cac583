"""Tests for git output parsing and opening/reading real repositories."""

from datetime import datetime, timezone

import pytest

from conftest import commit, git, init_repo, requires_git
from gitwalk.errors import CorruptRepositoryError, GitCommandError, NotARepositoryError
from gitwalk.ingestion.git_reader import (
    BranchRecord,
    _git_env,
    open_repository,
    parse_branch_output,
    parse_commit_record,
)


@pytest.mark.unit
def test_parse_branch_output_smoke():
    output = "\n".join(["main\x1fabc123", "feature/login\x1fdef456", "", "broken-line"])

    assert parse_branch_output(output) == [
        BranchRecord(name="main", head="abc123"),
        BranchRecord(name="feature/login", head="def456"),
    ]


@pytest.mark.unit
def test_parse_commit_record_fields():
    raw = "\x1f".join(
        [
            "abc123",
            "p1 p2",
            "Ada Lovelace",
            "ada@example.com",
            "2026-01-02T03:04:05+02:00",
            "Merge branch 'dev'\n\nbody line\n",
        ]
    )

    record = parse_commit_record(raw)

    assert record.sha == "abc123"
    assert record.parent_count == 2
    assert record.author_name == "Ada Lovelace"
    assert record.author_email == "ada@example.com"
    assert record.authored_at == datetime(2026, 1, 2, 1, 4, 5, tzinfo=timezone.utc)
    assert record.message == "Merge branch 'dev'\n\nbody line"


@pytest.mark.unit
def test_parse_root_commit_has_no_parents():
    raw = "\x1f".join(["abc", "", "A", "a@b.c", "2026-01-01T00:00:00+00:00", "init"])

    assert parse_commit_record(raw).parent_count == 0


@pytest.mark.unit
def test_parse_commit_record_rejects_truncated_record():
    with pytest.raises(GitCommandError, match="unable to parse"):
        parse_commit_record("abc\x1fp1")


@pytest.mark.unit
def test_open_plain_directory_is_not_a_repository(tmp_path):
    with pytest.raises(NotARepositoryError):
        open_repository(tmp_path)


@pytest.mark.unit
def test_git_env_drops_inherited_repository_location(tmp_path, monkeypatch):
    for name in ("GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE", "GIT_COMMON_DIR"):
        monkeypatch.setenv(name, str(tmp_path / "elsewhere"))

    env = _git_env(tmp_path / "repo")

    assert not {"GIT_DIR", "GIT_WORK_TREE", "GIT_INDEX_FILE", "GIT_COMMON_DIR"} & env.keys()
    assert env["GIT_CEILING_DIRECTORIES"] == str(tmp_path)


@pytest.mark.integration
@requires_git
def test_repository_is_read_from_its_own_directory_despite_git_dir(tmp_path, monkeypatch):
    repo_path = init_repo(tmp_path / "repo")
    sha = commit(repo_path, "mine")
    other = init_repo(tmp_path / "other")
    commit(other, "theirs", day=2)
    git(other, "branch", "-m", "main", "elsewhere")
    monkeypatch.setenv("GIT_DIR", str(other / ".git"))
    monkeypatch.setenv("GIT_WORK_TREE", str(other))

    with open_repository(repo_path) as repo:
        assert repo.list_branches() == [BranchRecord("main", sha)]
        assert [c.sha for c in repo.commit_history(sha)] == [sha]


@pytest.mark.integration
@requires_git
def test_open_rejects_corrupt_gitfile(tmp_path):
    (tmp_path / "broken").mkdir()
    (tmp_path / "broken" / ".git").write_text("this is not a gitfile\n")

    with pytest.raises(CorruptRepositoryError):
        open_repository(tmp_path / "broken")


@pytest.mark.integration
@requires_git
def test_subdirectory_of_repository_is_not_a_repository(tmp_path):
    repo = init_repo(tmp_path / "repo")
    (repo / "src").mkdir()

    with pytest.raises(NotARepositoryError):
        open_repository(repo / "src")


@pytest.mark.integration
@requires_git
def test_branches_and_history_from_real_repository(tmp_path):
    repo_path = init_repo(tmp_path / "repo")
    first = commit(repo_path, "first", day=1)
    second = commit(repo_path, "second\n\nwith body", author="Bob <bob@example.com>", day=2)
    git(repo_path, "branch", "dev", first)

    with open_repository(repo_path) as repo:
        assert repo.path == repo_path.resolve()
        assert not repo.bare
        branches = repo.list_branches()
        main_history = list(repo.commit_history(second))
        dev_history = list(repo.commit_history(first))

    assert branches == [BranchRecord("dev", first), BranchRecord("main", second)]
    assert [c.sha for c in main_history] == [second, first]
    assert [c.sha for c in dev_history] == [first]
    newest = main_history[0]
    assert newest.author_email == "bob@example.com"
    assert newest.author_name == "Bob"
    assert newest.message == "second\n\nwith body"
    assert newest.parent_count == 1
    assert newest.authored_at == datetime(2026, 1, 2, 12, 0, tzinfo=timezone.utc)
    assert main_history[1].parent_count == 0


@pytest.mark.integration
@requires_git
def test_empty_repository_has_no_branches(tmp_path):
    repo_path = init_repo(tmp_path / "empty")

    with open_repository(repo_path) as repo:
        assert repo.list_branches() == []


@pytest.mark.integration
@requires_git
def test_bare_repository_opens(tmp_path):
    source = init_repo(tmp_path / "source")
    sha = commit(source, "only")
    git(tmp_path, "clone", "--quiet", "--bare", str(source), "mirror.git")

    with open_repository(tmp_path / "mirror.git") as repo:
        assert repo.bare
        assert [b.head for b in repo.list_branches()] == [sha]


@pytest.mark.integration
@requires_git
def test_abandoned_history_is_released_on_close(tmp_path):
    repo_path = init_repo(tmp_path / "repo")
    for day in range(1, 6):
        head = commit(repo_path, f"commit {day}", day=day)

    repo = open_repository(repo_path)
    history = repo.commit_history(head)
    assert next(history).sha == head
    repo.close()
    history.close()

    assert repo._readers == set()


@pytest.mark.integration
@requires_git
def test_unknown_start_raises_git_command_error(tmp_path):
    repo_path = init_repo(tmp_path / "repo")
    commit(repo_path, "only")

    with open_repository(repo_path) as repo:
        with pytest.raises(GitCommandError):
            list(repo.commit_history("0" * 40))
