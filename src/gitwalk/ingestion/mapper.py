"""Map raw repository, branch and commit records to entity facts and edges.

Everything here is pure: no I/O, no store access. Keys are derived only from
natural content (paths, branch names, commit hashes, author emails) so that
re-running the mapping over unchanged history yields identical facts.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from gitwalk.ingestion.git_reader import BranchRecord, CommitRecord
from gitwalk.schema import Edge, EntityKey, EntityKind, Relation, Value

_OWNER_RELATIONS = {
    EntityKind.BRANCH: Relation.HAS_BRANCH,
    EntityKind.COMMIT: Relation.HAS_COMMIT,
}


@dataclass(frozen=True)
class EntityFact:
    """An entity key plus the attributes to upsert for it."""

    key: EntityKey
    attributes: dict[str, Value]


@dataclass(frozen=True)
class CommitFacts:
    """Everything a first sighting of a commit writes."""

    commit: EntityFact
    user: EntityFact
    edges: list[Edge]


def repository_key(path: Path | str) -> EntityKey:
    return EntityKey(EntityKind.REPOSITORY, str(path))


def branch_key(repo_path: Path | str, name: str) -> EntityKey:
    # Branch names are only unique within one repository. Git forbids ":" in
    # ref names, so the last ":" always separates path from name.
    return EntityKey(EntityKind.BRANCH, f"{repo_path}:{name}")


def commit_key(sha: str) -> EntityKey:
    return EntityKey(EntityKind.COMMIT, sha.lower())


def user_key(email: str) -> EntityKey:
    return EntityKey(EntityKind.USER, normalize_email(email))


def normalize_email(email: str) -> str:
    return email.strip().lower()


def edge_pair(owner: EntityKey, owned: EntityKey) -> list[Edge]:
    """Return the forward HAS_* edge and its BELONGS_TO inverse."""
    try:
        relation = _OWNER_RELATIONS[owned.kind]
    except KeyError:
        raise ValueError(f"{owned.kind.value} cannot be owned by another entity") from None
    return [
        Edge(owner, relation, owned),
        Edge(owned, Relation.BELONGS_TO, owner),
    ]


def map_repository(path: Path | str) -> EntityFact:
    """Repository entity keyed by its absolute path."""
    key = repository_key(path)
    return EntityFact(key=key, attributes={"path": Value.text(str(path))})


def map_branch(repo: EntityKey, branch: BranchRecord) -> tuple[EntityFact, list[Edge]]:
    """Branch entity and its Repository link."""
    key = branch_key(repo.id, branch.name)
    fact = EntityFact(
        key=key,
        attributes={
            "name": Value.text(branch.name),
            "head": Value.text(branch.head),
            "repository": Value.text(repo.id),
        },
    )
    return fact, edge_pair(repo, key)


def map_commit(repo: EntityKey, commit: CommitRecord) -> CommitFacts:
    """Commit and author entities, with Repository and User links.

    Branch links are produced separately by :func:`branch_commit_edges` since a
    commit can be reached from several branches.
    """
    key = commit_key(commit.sha)
    author = user_key(commit.author_email)
    commit_fact = EntityFact(
        key=key,
        attributes={
            "hash": Value.text(key.id),
            "email": Value.text(author.id),
            "message": Value.text(commit.message),
            "created_at": Value.timestamp(commit.authored_at),
            "parent_count": Value.integer(commit.parent_count),
        },
    )
    user_fact = EntityFact(
        key=author,
        attributes={
            "name": Value.text(commit.author_name),
            "email": Value.text(author.id),
        },
    )
    return CommitFacts(
        commit=commit_fact,
        user=user_fact,
        edges=edge_pair(repo, key) + edge_pair(author, key),
    )


def branch_commit_edges(branch: EntityKey, commit: EntityKey) -> list[Edge]:
    return edge_pair(branch, commit)
