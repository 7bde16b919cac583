"""Neo4j-backed fact store: entities as labelled nodes, edges as relationships."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Iterable

import neo4j

from gitwalk.errors import StoreError
from gitwalk.schema import (
    DEFAULT_SCHEMA,
    Edge,
    EntityKey,
    EntityKind,
    Relation,
    Schema,
    Value,
    ValueKind,
)
from gitwalk.store.base import FactStore

logger = logging.getLogger(__name__)

_DRIVER_ERRORS = (neo4j.exceptions.Neo4jError, neo4j.exceptions.DriverError)


def _from_property(kind: ValueKind, raw: Any) -> Value:
    if kind == ValueKind.TIMESTAMP:
        # neo4j.time.DateTime
        if hasattr(raw, "to_native"):
            raw = raw.to_native()
        return Value.timestamp(raw)
    if kind == ValueKind.INTEGER:
        return Value.integer(int(raw))
    return Value.text(str(raw))


class Neo4jFactStore(FactStore):
    """Graph store; node labels are entity kinds and each node carries its natural ``key``."""

    def __init__(self, *, uri: str, user: str, password: str, schema: Schema = DEFAULT_SCHEMA):
        super().__init__(schema)
        try:
            self.driver = neo4j.GraphDatabase.driver(uri, auth=(user, password))
        except (ValueError, *_DRIVER_ERRORS) as e:
            raise StoreError(f"Failed to create Neo4j driver for {uri}: {e}") from e

    def close(self) -> None:
        """Close database connection."""
        self.driver.close()

    def initialize(self) -> None:
        """Ensure a uniqueness constraint on ``key`` for every declared kind."""
        queries = [
            (
                f"CREATE CONSTRAINT {record.table}_key_unique IF NOT EXISTS "
                f"FOR (n:{record.kind.value}) REQUIRE n.key IS UNIQUE"
            )
            for record in self.schema.records
        ]
        try:
            with self.driver.session() as session:
                for query in queries:
                    session.run(query)
        except _DRIVER_ERRORS as e:
            raise StoreError(f"Failed to apply graph constraints: {e}") from e

    def upsert_attributes(self, key: EntityKey, attributes: dict[str, Value]) -> None:
        self.schema.validate(key, attributes)
        props = {name: value.data for name, value in attributes.items()}
        try:
            with self.driver.session() as session:
                session.run(
                    f"MERGE (n:{key.kind.value} {{key: $key}}) SET n += $props",
                    key=key.id,
                    props=props,
                )
        except _DRIVER_ERRORS as e:
            raise StoreError(f"Failed to upsert {key}: {e}") from e

    def upsert_edges(self, edges: Iterable[Edge]) -> None:
        groups: dict[tuple[EntityKind, Relation, EntityKind], list[dict[str, str]]] = defaultdict(list)
        for edge in edges:
            self.schema.record(edge.source.kind)
            self.schema.record(edge.target.kind)
            groups[(edge.source.kind, edge.relation, edge.target.kind)].append(
                {"source": edge.source.id, "target": edge.target.id}
            )
        if not groups:
            return

        def write(tx) -> None:
            for (source_kind, relation, target_kind), rows in groups.items():
                tx.run(
                    f"""
                    UNWIND $rows AS row
                    MERGE (a:{source_kind.value} {{key: row.source}})
                    MERGE (b:{target_kind.value} {{key: row.target}})
                    MERGE (a)-[:{relation.value}]->(b)
                    """,
                    rows=rows,
                )

        try:
            with self.driver.session() as session:
                session.execute_write(write)
        except _DRIVER_ERRORS as e:
            raise StoreError(f"Failed to upsert edges: {e}") from e

    def get_attributes(self, key: EntityKey, names: Iterable[str]) -> dict[str, Value]:
        record = self.schema.record(key.kind)
        types = {name: record.attribute_type(name) for name in names}
        try:
            with self.driver.session() as session:
                result = session.run(
                    f"MATCH (n:{key.kind.value} {{key: $key}}) RETURN properties(n) AS props",
                    key=key.id,
                ).single()
        except _DRIVER_ERRORS as e:
            raise StoreError(f"Failed to read {key}: {e}") from e
        if result is None:
            return {}
        props = result["props"]
        return {
            name: _from_property(kind, props[name])
            for name, kind in types.items()
            if props.get(name) is not None
        }

    def count_entities(self, kind: EntityKind) -> int:
        return self._count(f"MATCH (n:{kind.value}) RETURN count(n) AS count")

    def count_edges(self) -> int:
        relations = "|".join(relation.value for relation in Relation)
        return self._count(f"MATCH ()-[r:{relations}]->() RETURN count(r) AS count")

    def _count(self, query: str) -> int:
        try:
            with self.driver.session() as session:
                return session.run(query).single()["count"]
        except _DRIVER_ERRORS as e:
            raise StoreError(f"Query failed: {e}") from e
