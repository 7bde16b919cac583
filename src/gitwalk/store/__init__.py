"""Fact store backends and the factory that selects one from config."""

from gitwalk.store.base import FactStore
from gitwalk.store.memory_store import MemoryFactStore
from gitwalk.store.sqlite_store import SQLiteFactStore


def create_store(backend: str, *, sqlite_path=None, neo4j_config=None) -> FactStore:
    """Build the configured backend. The Neo4j driver is only imported when selected."""
    if backend == "memory":
        return MemoryFactStore()
    if backend == "sqlite":
        if not sqlite_path:
            raise ValueError("sqlite_path is required for the sqlite backend")
        return SQLiteFactStore(sqlite_path)
    if backend == "neo4j":
        if not neo4j_config:
            raise ValueError("neo4j_config is required for the neo4j backend")
        from gitwalk.store.graph_store import Neo4jFactStore

        return Neo4jFactStore(
            uri=neo4j_config["uri"],
            user=neo4j_config["user"],
            password=neo4j_config["password"],
        )
    raise ValueError(f"Unknown store backend: {backend}")


__all__ = [
    "FactStore",
    "MemoryFactStore",
    "SQLiteFactStore",
    "create_store",
]
