"""
SQLite-backed fact store: one table per entity kind plus an edges table.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from gitwalk.errors import StoreError
from gitwalk.schema import (
    DEFAULT_SCHEMA,
    Edge,
    EntityKey,
    EntityKind,
    RecordSchema,
    Schema,
    Value,
    ValueKind,
)
from gitwalk.store.base import FactStore

logger = logging.getLogger(__name__)

_COLUMN_TYPES = {
    ValueKind.TEXT: "TEXT",
    ValueKind.TIMESTAMP: "TEXT",
    ValueKind.INTEGER: "INTEGER",
}


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _to_column(value: Value) -> Any:
    if value.kind == ValueKind.TIMESTAMP:
        return value.data.isoformat()
    return value.data


def _from_column(kind: ValueKind, raw: Any) -> Value:
    if kind == ValueKind.TIMESTAMP:
        return Value.timestamp(datetime.fromisoformat(raw))
    if kind == ValueKind.INTEGER:
        return Value.integer(int(raw))
    return Value.text(str(raw))


class SQLiteFactStore(FactStore):
    """Durable store in a single SQLite database file."""

    def __init__(self, db_path: Path | str, schema: Schema = DEFAULT_SCHEMA):
        super().__init__(schema)
        self.db_path = Path(db_path)
        if str(db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.conn = sqlite3.connect(str(db_path), timeout=30)
            self.conn.execute("PRAGMA journal_mode=WAL;")
            self.conn.execute("PRAGMA busy_timeout=5000;")
        except sqlite3.Error as e:
            raise StoreError(f"Failed to open SQLite store {db_path}: {e}") from e

    def close(self) -> None:
        self.conn.close()

    def initialize(self) -> None:
        statements = [self._create_table_sql(record) for record in self.schema.records]
        statements.append(
            """
            CREATE TABLE IF NOT EXISTS edges (
                source_kind TEXT NOT NULL,
                source_id TEXT NOT NULL,
                relation TEXT NOT NULL,
                target_kind TEXT NOT NULL,
                target_id TEXT NOT NULL,
                PRIMARY KEY (source_kind, source_id, relation, target_kind, target_id)
            );

            CREATE INDEX IF NOT EXISTS idx_edges_target
            ON edges(target_kind, target_id);
            """
        )
        try:
            with self.conn:
                self.conn.executescript("\n".join(statements))
        except sqlite3.Error as e:
            raise StoreError(f"Failed to apply schema to {self.db_path}: {e}") from e
        logger.debug("Schema applied to %s", self.db_path)

    @staticmethod
    def _create_table_sql(record: RecordSchema) -> str:
        columns = ["id TEXT PRIMARY KEY"]
        columns.extend(
            f"{_quote(attr.name)} {_COLUMN_TYPES[attr.type]}" for attr in record.attributes
        )
        return f"CREATE TABLE IF NOT EXISTS {_quote(record.table)} ({', '.join(columns)});"

    def upsert_attributes(self, key: EntityKey, attributes: dict[str, Value]) -> None:
        record = self.schema.validate(key, attributes)
        names = list(attributes)
        columns = ", ".join(["id", *(_quote(name) for name in names)])
        placeholders = ", ".join("?" for _ in range(len(names) + 1))
        if names:
            updates = ", ".join(f"{_quote(name)} = excluded.{_quote(name)}" for name in names)
            conflict = f"ON CONFLICT(id) DO UPDATE SET {updates}"
        else:
            conflict = "ON CONFLICT(id) DO NOTHING"
        sql = f"INSERT INTO {_quote(record.table)} ({columns}) VALUES ({placeholders}) {conflict}"
        params = [key.id, *(_to_column(attributes[name]) for name in names)]
        try:
            with self.conn:
                self.conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to upsert {key}: {e}") from e

    def upsert_edges(self, edges: Iterable[Edge]) -> None:
        rows = []
        for edge in edges:
            self.schema.record(edge.source.kind)
            self.schema.record(edge.target.kind)
            rows.append(
                (
                    edge.source.kind.value,
                    edge.source.id,
                    edge.relation.value,
                    edge.target.kind.value,
                    edge.target.id,
                )
            )
        if not rows:
            return
        try:
            with self.conn:
                self.conn.executemany(
                    """
                    INSERT OR IGNORE INTO edges
                        (source_kind, source_id, relation, target_kind, target_id)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    rows,
                )
        except sqlite3.Error as e:
            raise StoreError(f"Failed to upsert {len(rows)} edge(s): {e}") from e

    def get_attributes(self, key: EntityKey, names: Iterable[str]) -> dict[str, Value]:
        record = self.schema.record(key.kind)
        names = list(names)
        types = {name: record.attribute_type(name) for name in names}
        if not names:
            return {}
        columns = ", ".join(_quote(name) for name in names)
        try:
            row = self.conn.execute(
                f"SELECT {columns} FROM {_quote(record.table)} WHERE id = ?", (key.id,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read {key}: {e}") from e
        if row is None:
            return {}
        return {
            name: _from_column(types[name], raw)
            for name, raw in zip(names, row)
            if raw is not None
        }

    def count_entities(self, kind: EntityKind) -> int:
        record = self.schema.record(kind)
        return self._scalar(f"SELECT count(*) FROM {_quote(record.table)}")

    def count_edges(self) -> int:
        return self._scalar("SELECT count(*) FROM edges")

    def _scalar(self, sql: str) -> int:
        try:
            return self.conn.execute(sql).fetchone()[0]
        except sqlite3.Error as e:
            raise StoreError(f"Query failed: {e}") from e
