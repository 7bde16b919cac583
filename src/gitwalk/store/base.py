"""Abstract fact store contract shared by all backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable

from gitwalk.schema import DEFAULT_SCHEMA, Edge, EntityKey, EntityKind, Schema, Value


class FactStore(ABC):
    """
    Key-addressed store of entity attributes and edges.

    All writes are blind upserts keyed by natural key: attribute writes are
    last-write-wins per (entity, attribute), edge writes are idempotent. Each
    call applies atomically or not at all.
    """

    def __init__(self, schema: Schema = DEFAULT_SCHEMA):
        self.schema = schema

    def __enter__(self) -> "FactStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def initialize(self) -> None:
        """Declare the schema before the first write. Safe to call repeatedly."""

    @abstractmethod
    def upsert_attributes(self, key: EntityKey, attributes: dict[str, Value]) -> None:
        """Insert or overwrite the given attributes of ``key``."""

    @abstractmethod
    def upsert_edges(self, edges: Iterable[Edge]) -> None:
        """Record each edge; edges already present are left as they are."""

    @abstractmethod
    def get_attributes(self, key: EntityKey, names: Iterable[str]) -> dict[str, Value]:
        """Return the requested attributes that ``key`` currently has."""

    @abstractmethod
    def count_entities(self, kind: EntityKind) -> int:
        """Number of stored entities of ``kind``."""

    @abstractmethod
    def count_edges(self) -> int:
        """Number of stored edges."""

    def close(self) -> None:
        """Release backend resources."""

    def stats(self) -> dict[str, int]:
        """Entity counts per kind plus the edge count."""
        counts = {kind.value: self.count_entities(kind) for kind in EntityKind}
        counts["edges"] = self.count_edges()
        return counts
