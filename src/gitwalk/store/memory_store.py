"""In-memory fact store for tests and throwaway runs."""

from __future__ import annotations

from typing import Iterable

from gitwalk.schema import DEFAULT_SCHEMA, Edge, EntityKey, EntityKind, Schema, Value
from gitwalk.store.base import FactStore


class MemoryFactStore(FactStore):
    """Process-lifetime store backed by dicts and a set of edges."""

    def __init__(self, schema: Schema = DEFAULT_SCHEMA):
        super().__init__(schema)
        self.entities: dict[EntityKey, dict[str, Value]] = {}
        self.edges: set[Edge] = set()

    def upsert_attributes(self, key: EntityKey, attributes: dict[str, Value]) -> None:
        self.schema.validate(key, attributes)
        self.entities.setdefault(key, {}).update(attributes)

    def upsert_edges(self, edges: Iterable[Edge]) -> None:
        batch = list(edges)
        for edge in batch:
            self.schema.record(edge.source.kind)
            self.schema.record(edge.target.kind)
        self.edges.update(batch)

    def get_attributes(self, key: EntityKey, names: Iterable[str]) -> dict[str, Value]:
        stored = self.entities.get(key, {})
        return {name: stored[name] for name in names if name in stored}

    def count_entities(self, kind: EntityKind) -> int:
        return sum(1 for key in self.entities if key.kind == kind)

    def count_edges(self) -> int:
        return len(self.edges)

    def keys(self, kind: EntityKind) -> list[EntityKey]:
        return sorted(key for key in self.entities if key.kind == kind)
