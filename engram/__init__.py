"""
Engram: a portable container format for memory records.

Usage:
    from engram import EngramFile, MemoryNode, read_file, write_file

    write_file("notes.engram", EngramFile(nodes=[MemoryNode(id="n1", content="hello")]))
    tree = read_file("notes.engram").tree()
    tree.search_by_content("hello")
"""

from .codec import MAGIC_BYTES, compute_integrity, decode, encode
from .config import EngramConfig, default_config
from .errors import (
    DecodingError,
    EncodingError,
    EngramError,
    IntegrityError,
    InvalidMagicError,
)
from .files import open_stream, read_file, verify_integrity, write_file
from .stream import StreamReader
from .tree import MemoryTree, SearchResult, cosine_similarity
from .types import (
    EngramFile,
    EngramHeader,
    Entity,
    FileMetadata,
    Link,
    MemoryNode,
    NodeMetadata,
    SchemaInfo,
    SecurityInfo,
)

__version__ = "0.1.0"

__all__ = [
    # codec
    "MAGIC_BYTES",
    "compute_integrity",
    "decode",
    "encode",
    # files
    "open_stream",
    "read_file",
    "verify_integrity",
    "write_file",
    "StreamReader",
    # index
    "MemoryTree",
    "SearchResult",
    "cosine_similarity",
    # types
    "EngramFile",
    "EngramHeader",
    "Entity",
    "FileMetadata",
    "Link",
    "MemoryNode",
    "NodeMetadata",
    "SchemaInfo",
    "SecurityInfo",
    # config / errors
    "EngramConfig",
    "default_config",
    "DecodingError",
    "EncodingError",
    "EngramError",
    "IntegrityError",
    "InvalidMagicError",
]
