"""
Entity schema for the repository fact store.

Declares the entity kinds, relation names, typed attribute values and the
per-kind record layout that durable backends create before the first write.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from gitwalk.errors import SchemaError


class EntityKind(str, Enum):
    """Kinds of entity extracted from repository history."""

    REPOSITORY = "Repository"
    BRANCH = "Branch"
    COMMIT = "Commit"
    USER = "User"


class Relation(str, Enum):
    """Directed edge names. Every HAS_* edge is paired with a BELONGS_TO inverse."""

    HAS_BRANCH = "HAS_BRANCH"
    HAS_COMMIT = "HAS_COMMIT"
    BELONGS_TO = "BELONGS_TO"


class ValueKind(str, Enum):
    """Variants of a stored attribute value."""

    TEXT = "text"
    TIMESTAMP = "timestamp"
    INTEGER = "integer"


_PYTHON_TYPES = {
    ValueKind.TEXT: str,
    ValueKind.TIMESTAMP: datetime,
    ValueKind.INTEGER: int,
}


@dataclass(frozen=True)
class Value:
    """A tagged attribute value: Text, Timestamp or Integer."""

    kind: ValueKind
    data: Any

    def __post_init__(self) -> None:
        expected = _PYTHON_TYPES[self.kind]
        # bool is an int subclass but never a valid Integer
        if isinstance(self.data, bool) or not isinstance(self.data, expected):
            raise SchemaError(
                f"{self.kind.value} value requires {expected.__name__}, "
                f"got {type(self.data).__name__}"
            )

    @classmethod
    def text(cls, data: str) -> "Value":
        return cls(ValueKind.TEXT, data)

    @classmethod
    def timestamp(cls, data: datetime) -> "Value":
        return cls(ValueKind.TIMESTAMP, data)

    @classmethod
    def integer(cls, data: int) -> "Value":
        return cls(ValueKind.INTEGER, data)


@dataclass(frozen=True, order=True)
class EntityKey:
    """Natural key of an entity: its kind plus a content-derived id."""

    kind: EntityKind
    id: str

    def __str__(self) -> str:
        return f"{self.kind.value}/{self.id}"


@dataclass(frozen=True, order=True)
class Edge:
    """A directed, named fact linking two entities."""

    source: EntityKey
    relation: Relation
    target: EntityKey


@dataclass(frozen=True)
class AttributeSpec:
    name: str
    type: ValueKind


@dataclass(frozen=True)
class RecordSchema:
    """Storage layout for one entity kind."""

    kind: EntityKind
    table: str
    attributes: list[AttributeSpec] = field(default_factory=list)

    def attribute_names(self) -> list[str]:
        return [attr.name for attr in self.attributes]

    def attribute_type(self, name: str) -> ValueKind:
        for attr in self.attributes:
            if attr.name == name:
                return attr.type
        raise SchemaError(f"{self.kind.value} has no attribute {name!r}")


@dataclass(frozen=True)
class Schema:
    """All record layouts known to a store."""

    records: list[RecordSchema]

    def record(self, kind: EntityKind) -> RecordSchema:
        for record in self.records:
            if record.kind == kind:
                return record
        raise SchemaError(f"No record declared for kind {kind.value}")

    def validate(self, key: EntityKey, attributes: dict[str, Value]) -> RecordSchema:
        """Check every value against the declared attribute type for ``key``'s kind."""
        record = self.record(key.kind)
        for name, value in attributes.items():
            declared = record.attribute_type(name)
            if not isinstance(value, Value):
                raise SchemaError(f"{key}: attribute {name!r} is not a Value")
            if value.kind != declared:
                raise SchemaError(
                    f"{key}: attribute {name!r} expects {declared.value}, got {value.kind.value}"
                )
        return record


DEFAULT_SCHEMA = Schema(
    records=[
        RecordSchema(
            kind=EntityKind.REPOSITORY,
            table="repositories",
            attributes=[AttributeSpec("path", ValueKind.TEXT)],
        ),
        RecordSchema(
            kind=EntityKind.BRANCH,
            table="branches",
            attributes=[
                AttributeSpec("name", ValueKind.TEXT),
                AttributeSpec("head", ValueKind.TEXT),
                AttributeSpec("repository", ValueKind.TEXT),
            ],
        ),
        RecordSchema(
            kind=EntityKind.COMMIT,
            table="commits",
            attributes=[
                AttributeSpec("hash", ValueKind.TEXT),
                AttributeSpec("email", ValueKind.TEXT),
                AttributeSpec("message", ValueKind.TEXT),
                AttributeSpec("created_at", ValueKind.TIMESTAMP),
                AttributeSpec("parent_count", ValueKind.INTEGER),
            ],
        ),
        RecordSchema(
            kind=EntityKind.USER,
            table="users",
            attributes=[
                AttributeSpec("name", ValueKind.TEXT),
                AttributeSpec("email", ValueKind.TEXT),
            ],
        ),
    ]
)
