"""
Record and header types for Engram files.

Each type maps to one MessagePack map on the wire. Python attributes are
snake_case; wire names are the camelCase names shared by every Engram SDK and
are produced/consumed only by ``to_wire`` / ``from_wire``.
"""

from __future__ import annotations

import struct
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from .errors import DecodingError

if TYPE_CHECKING:
    from .tree import MemoryTree


class Float32(float):
    """A float that is packed as MessagePack float32 on the wire."""


def to_float32(value: float) -> float:
    """Round a Python float to the nearest float32 value."""
    return struct.unpack("f", struct.pack("f", float(value)))[0]


def _float32_list(values: Iterable[float]) -> list[float]:
    values = list(values)
    if not values:
        return []
    return list(struct.unpack(f"{len(values)}f", struct.pack(f"{len(values)}f", *values)))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# =============================================================================
# Wire helpers
# =============================================================================


def _expect_map(value: Any, what: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DecodingError(f"{what}: expected map, got {type(value).__name__}")
    return value


def _get_str(data: dict[str, Any], key: str, what: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise DecodingError(f"{what}.{key}: expected string, got {type(value).__name__}")
    return value


def _get_int(data: dict[str, Any], key: str, what: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise DecodingError(f"{what}.{key}: expected integer, got {type(value).__name__}")
    return value


def _get_float(data: dict[str, Any], key: str, what: str) -> float:
    value = data.get(key)
    if value is None:
        return 0.0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodingError(f"{what}.{key}: expected number, got {type(value).__name__}")
    return float(value)


def _get_list(data: dict[str, Any], key: str, what: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise DecodingError(f"{what}.{key}: expected array, got {type(value).__name__}")
    return list(value)


def _get_str_list(data: dict[str, Any], key: str, what: str) -> list[str]:
    items = _get_list(data, key, what)
    for item in items:
        if not isinstance(item, str):
            raise DecodingError(f"{what}.{key}: expected array of strings")
    return items


def _get_map(data: dict[str, Any], key: str, what: str) -> dict[str, Any]:
    return dict(_expect_map(data.get(key), f"{what}.{key}"))


def _get_time(data: dict[str, Any], key: str, what: str) -> datetime | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, str):
        try:
            return _as_utc(datetime.fromisoformat(value))
        except ValueError as e:
            raise DecodingError(f"{what}.{key}: invalid timestamp {value!r}") from e
    raise DecodingError(f"{what}.{key}: expected timestamp, got {type(value).__name__}")


def _put(wire: dict[str, Any], key: str, value: Any) -> None:
    """Set an optional wire field, omitting empty/zero values."""
    if value is None:
        return
    if isinstance(value, (str, list, tuple, dict)) and not value:
        return
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value == 0:
        return
    wire[key] = value


# =============================================================================
# Node types
# =============================================================================


@dataclass
class Entity:
    """A named entity extracted from a node's content."""

    name: str
    type: str
    confidence: float = 0.0
    start: int = 0
    end: int = 0

    def __post_init__(self) -> None:
        self.confidence = to_float32(self.confidence)

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"name": self.name, "type": self.type}
        _put(wire, "confidence", Float32(self.confidence))
        _put(wire, "start", self.start)
        _put(wire, "end", self.end)
        return wire

    @classmethod
    def from_wire(cls, value: Any) -> Entity:
        data = _expect_map(value, "entity")
        return cls(
            name=_get_str(data, "name", "entity"),
            type=_get_str(data, "type", "entity"),
            confidence=_get_float(data, "confidence", "entity"),
            start=_get_int(data, "start", "entity"),
            end=_get_int(data, "end", "entity"),
        )


@dataclass
class Link:
    """A directed, typed relation from one node to another."""

    target_id: str
    type: str
    weight: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.weight = to_float32(self.weight)

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"targetId": self.target_id, "type": self.type}
        _put(wire, "weight", Float32(self.weight))
        _put(wire, "metadata", self.metadata)
        return wire

    @classmethod
    def from_wire(cls, value: Any) -> Link:
        data = _expect_map(value, "link")
        return cls(
            target_id=_get_str(data, "targetId", "link"),
            type=_get_str(data, "type", "link"),
            weight=_get_float(data, "weight", "link"),
            metadata=_get_map(data, "metadata", "link"),
        )


@dataclass
class NodeMetadata:
    """Provenance and bookkeeping for a single node."""

    source: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    confidence: float = 0.0
    importance: float = 0.0
    access_count: int = 0
    custom: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.confidence = to_float32(self.confidence)
        self.importance = to_float32(self.importance)
        if self.created_at is not None:
            self.created_at = _as_utc(self.created_at)
        if self.updated_at is not None:
            self.updated_at = _as_utc(self.updated_at)

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {}
        _put(wire, "source", self.source)
        _put(wire, "createdAt", self.created_at)
        _put(wire, "updatedAt", self.updated_at)
        _put(wire, "confidence", Float32(self.confidence))
        _put(wire, "importance", Float32(self.importance))
        _put(wire, "accessCount", self.access_count)
        _put(wire, "custom", self.custom)
        return wire

    @classmethod
    def from_wire(cls, value: Any) -> NodeMetadata:
        data = _expect_map(value, "node metadata")
        what = "node metadata"
        return cls(
            source=_get_str(data, "source", what),
            created_at=_get_time(data, "createdAt", what),
            updated_at=_get_time(data, "updatedAt", what),
            confidence=_get_float(data, "confidence", what),
            importance=_get_float(data, "importance", what),
            access_count=_get_int(data, "accessCount", what),
            custom=_get_map(data, "custom", what),
        )


@dataclass
class MemoryNode:
    """
    A single memory record.

    ``embedding`` is stored at float32 precision; an empty list means the node
    has no embedding. ``tags`` may contain duplicates and ``parent_id`` is not
    checked against the rest of the collection.
    """

    id: str
    content: str = ""
    embedding: list[float] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    entities: list[Entity] = field(default_factory=list)
    links: list[Link] = field(default_factory=list)
    metadata: NodeMetadata = field(default_factory=NodeMetadata)
    children: list[str] = field(default_factory=list)
    parent_id: str = ""

    def __post_init__(self) -> None:
        self.embedding = _float32_list(self.embedding)

    @property
    def has_embedding(self) -> bool:
        return len(self.embedding) > 0

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"id": self.id, "content": self.content}
        _put(wire, "embedding", [Float32(x) for x in self.embedding])
        _put(wire, "tags", list(self.tags))
        _put(wire, "entities", [e.to_wire() for e in self.entities])
        _put(wire, "links", [link.to_wire() for link in self.links])
        _put(wire, "metadata", self.metadata.to_wire())
        _put(wire, "children", list(self.children))
        _put(wire, "parentId", self.parent_id)
        return wire

    @classmethod
    def from_wire(cls, value: Any) -> MemoryNode:
        if not isinstance(value, dict):
            raise DecodingError(f"node: expected map, got {type(value).__name__}")
        embedding = _get_list(value, "embedding", "node")
        for x in embedding:
            if isinstance(x, bool) or not isinstance(x, (int, float)):
                raise DecodingError("node.embedding: expected array of numbers")
        return cls(
            id=_get_str(value, "id", "node"),
            content=_get_str(value, "content", "node"),
            embedding=embedding,
            tags=_get_str_list(value, "tags", "node"),
            entities=[Entity.from_wire(e) for e in _get_list(value, "entities", "node")],
            links=[Link.from_wire(link) for link in _get_list(value, "links", "node")],
            metadata=NodeMetadata.from_wire(value.get("metadata")),
            children=_get_str_list(value, "children", "node"),
            parent_id=_get_str(value, "parentId", "node"),
        )


# =============================================================================
# Header types
# =============================================================================


@dataclass
class SchemaInfo:
    """Schema version and embedding model description."""

    version: str = ""
    embedding_model: str = ""
    embedding_dim: int = 0
    features: list[str] = field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {}
        _put(wire, "version", self.version)
        _put(wire, "embeddingModel", self.embedding_model)
        _put(wire, "embeddingDim", self.embedding_dim)
        _put(wire, "features", list(self.features))
        return wire

    @classmethod
    def from_wire(cls, value: Any) -> SchemaInfo:
        data = _expect_map(value, "schema")
        return cls(
            version=_get_str(data, "version", "schema"),
            embedding_model=_get_str(data, "embeddingModel", "schema"),
            embedding_dim=_get_int(data, "embeddingDim", "schema"),
            features=_get_str_list(data, "features", "schema"),
        )


@dataclass
class SecurityInfo:
    """Integrity digest and optional encryption description."""

    integrity: str = ""
    encryption: str = ""
    key_id: str = ""

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {}
        _put(wire, "integrity", self.integrity)
        _put(wire, "encryption", self.encryption)
        _put(wire, "keyId", self.key_id)
        return wire

    @classmethod
    def from_wire(cls, value: Any) -> SecurityInfo:
        data = _expect_map(value, "security")
        return cls(
            integrity=_get_str(data, "integrity", "security"),
            encryption=_get_str(data, "encryption", "security"),
            key_id=_get_str(data, "keyId", "security"),
        )


@dataclass
class FileMetadata:
    """Descriptive metadata for a whole file."""

    title: str = ""
    description: str = ""
    author: str = ""
    license: str = ""
    tags: list[str] = field(default_factory=list)
    custom: dict[str, Any] = field(default_factory=dict)

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {}
        _put(wire, "title", self.title)
        _put(wire, "description", self.description)
        _put(wire, "author", self.author)
        _put(wire, "license", self.license)
        _put(wire, "tags", list(self.tags))
        _put(wire, "custom", self.custom)
        return wire

    @classmethod
    def from_wire(cls, value: Any) -> FileMetadata:
        data = _expect_map(value, "file metadata")
        what = "file metadata"
        return cls(
            title=_get_str(data, "title", what),
            description=_get_str(data, "description", what),
            author=_get_str(data, "author", what),
            license=_get_str(data, "license", what),
            tags=_get_str_list(data, "tags", what),
            custom=_get_map(data, "custom", what),
        )


@dataclass
class EngramHeader:
    """
    File-level metadata.

    ``node_count``, ``modified`` and ``security.integrity`` are recomputed on
    every encode; ``created`` is filled in once if empty.
    """

    version: str = ""
    created: str = ""
    modified: str = ""
    node_count: int = 0
    schema: SchemaInfo = field(default_factory=SchemaInfo)
    security: SecurityInfo = field(default_factory=SecurityInfo)
    metadata: FileMetadata = field(default_factory=FileMetadata)

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "version": self.version,
            "created": self.created,
            "modified": self.modified,
            "nodeCount": self.node_count,
        }
        _put(wire, "schema", self.schema.to_wire())
        _put(wire, "security", self.security.to_wire())
        _put(wire, "metadata", self.metadata.to_wire())
        return wire

    @classmethod
    def from_wire(cls, value: Any) -> EngramHeader:
        if not isinstance(value, dict):
            raise DecodingError(f"header: expected map, got {type(value).__name__}")
        return cls(
            version=_get_str(value, "version", "header"),
            created=_get_str(value, "created", "header"),
            modified=_get_str(value, "modified", "header"),
            node_count=_get_int(value, "nodeCount", "header"),
            schema=SchemaInfo.from_wire(value.get("schema")),
            security=SecurityInfo.from_wire(value.get("security")),
            metadata=FileMetadata.from_wire(value.get("metadata")),
        )


@dataclass
class EngramFile:
    """A header plus its ordered node sequence."""

    header: EngramHeader = field(default_factory=EngramHeader)
    nodes: list[MemoryNode] = field(default_factory=list)

    def tree(self) -> MemoryTree:
        """Build a read-only index over this file's nodes."""
        from .tree import MemoryTree

        return MemoryTree(self.nodes)
