"""
Binary codec for Engram files.

Layout, read strictly in sequence with no table of contents:

    offset 0     6 bytes   magic "ENGRAM"
    offset 6     header    MessagePack map
    offset 6+H   payload   MessagePack array of node maps

The SHA-256 digest in ``header.security.integrity`` covers the payload bytes
only. The header has no length prefix; its end is wherever the decoder stops
after reading exactly one object.
"""

from __future__ import annotations

import hashlib
import io
import logging
from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any, BinaryIO

import msgpack

from .config import EngramConfig, default_config
from .errors import DecodingError, EncodingError, IntegrityError, InvalidMagicError
from .types import EngramFile, EngramHeader, Float32, MemoryNode

logger = logging.getLogger(__name__)

MAGIC_BYTES = b"ENGRAM"
MAGIC_SIZE = len(MAGIC_BYTES)

# Errors msgpack raises for malformed input (FormatError, StackError and
# ExtraData are ValueError subclasses; unhashable map keys give TypeError)
UNPACK_ERRORS = (msgpack.UnpackException, ValueError, TypeError)
_PACK_ERRORS = (TypeError, ValueError, OverflowError, RecursionError)


def compute_integrity(payload: bytes) -> str:
    """Return the lowercase hex SHA-256 digest of ``payload``."""
    return hashlib.sha256(payload).hexdigest()


def _utc_now_rfc3339() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def has_magic(data: bytes) -> bool:
    """Check whether ``data`` starts with the Engram magic bytes."""
    return len(data) >= MAGIC_SIZE and bytes(data[:MAGIC_SIZE]) == MAGIC_BYTES


# =============================================================================
# Packing
# =============================================================================


class _WirePacker:
    """
    Packs wire values, switching to float32 for Float32-marked numbers.

    msgpack can only choose float width per Packer, so maps and arrays are
    written header-first and each leaf goes through the matching packer.
    """

    def __init__(self) -> None:
        self._packer = msgpack.Packer(use_bin_type=True, datetime=True)
        self._packer32 = msgpack.Packer(use_bin_type=True, datetime=True, use_single_float=True)

    def pack(self, value: Any) -> bytes:
        out = bytearray()
        self._write(value, out)
        return bytes(out)

    def _write(self, value: Any, out: bytearray) -> None:
        if isinstance(value, Float32):
            out += self._packer32.pack(value)
        elif isinstance(value, msgpack.ExtType):
            # ExtType is a namedtuple; it must not fall through to the array branch
            out += self._packer.pack(value)
        elif isinstance(value, dict):
            out += self._packer.pack_map_header(len(value))
            for key, item in value.items():
                self._write(key, out)
                self._write(item, out)
        elif isinstance(value, (list, tuple)):
            out += self._packer.pack_array_header(len(value))
            for item in value:
                self._write(item, out)
        else:
            out += self._packer.pack(value)


def encode_nodes(nodes: Sequence[MemoryNode]) -> bytes:
    """
    Serialize a node sequence into payload bytes.

    Raises:
        EncodingError: If a node holds a value MessagePack cannot represent
    """
    try:
        return _WirePacker().pack([node.to_wire() for node in nodes])
    except _PACK_ERRORS as e:
        raise EncodingError(f"failed to encode nodes: {e}") from e


def encode_header(header: EngramHeader) -> bytes:
    """Serialize a header as-is, without refreshing any field."""
    try:
        return _WirePacker().pack(header.to_wire())
    except _PACK_ERRORS as e:
        raise EncodingError(f"failed to encode header: {e}") from e


def encode(file: EngramFile, config: EngramConfig | None = None) -> bytes:
    """
    Encode an Engram file to bytes.

    The returned header carries a fresh node count, modification time and
    payload digest; ``created`` and ``version`` are filled in when empty.
    The caller's ``file`` is left untouched.

    Args:
        file: Header and nodes to encode
        config: Codec configuration (module default if None)

    Returns:
        magic + header + payload

    Raises:
        EncodingError: On any serialization failure
    """
    config = config or default_config

    payload = encode_nodes(file.nodes)
    integrity = compute_integrity(payload)

    modified = _utc_now_rfc3339()
    source = file.header
    header = replace(
        source,
        node_count=len(file.nodes),
        modified=modified,
        created=source.created or modified,
        version=source.version or config.default_version,
        security=replace(source.security, integrity=integrity),
    )

    header_bytes = encode_header(header)

    logger.debug(
        "encoded %d nodes: header=%d bytes payload=%d bytes",
        header.node_count,
        len(header_bytes),
        len(payload),
    )
    return MAGIC_BYTES + header_bytes + payload


# =============================================================================
# Unpacking
# =============================================================================


def new_unpacker(source: BinaryIO) -> msgpack.Unpacker:
    """Create an Unpacker configured for Engram wire data."""
    return msgpack.Unpacker(source, raw=False, timestamp=3)


def decode_header(data: bytes) -> tuple[EngramHeader, int]:
    """
    Decode the header that starts at the beginning of ``data``.

    Args:
        data: Bytes following the magic prefix

    Returns:
        (header, number of bytes the header occupied)

    Raises:
        DecodingError: If the bytes are not a valid header map
    """
    unpacker = new_unpacker(io.BytesIO(data))
    try:
        wire = unpacker.unpack()
    except msgpack.OutOfData as e:
        raise DecodingError("failed to decode header: unexpected end of data") from e
    except UNPACK_ERRORS as e:
        raise DecodingError(f"failed to decode header: {e}") from e
    return EngramHeader.from_wire(wire), unpacker.tell()


def decode_node(wire: Any) -> MemoryNode:
    """Build a node from its unpacked wire map."""
    try:
        return MemoryNode.from_wire(wire)
    except (OverflowError, ValueError, TypeError) as e:
        raise DecodingError(f"failed to decode node: {e}") from e


def decode_payload(payload: bytes) -> list[MemoryNode]:
    """
    Decode payload bytes into a node list.

    A MessagePack nil payload is read as an empty list.

    Raises:
        DecodingError: On malformed or trailing data
    """
    try:
        wire = msgpack.unpackb(payload, raw=False, timestamp=3)
    except UNPACK_ERRORS as e:
        raise DecodingError(f"failed to decode nodes: {e}") from e

    if wire is None:
        return []
    if not isinstance(wire, list):
        raise DecodingError(f"failed to decode nodes: expected array, got {type(wire).__name__}")
    return [decode_node(item) for item in wire]


def decode(data: bytes, config: EngramConfig | None = None) -> EngramFile:
    """
    Decode an Engram file from bytes.

    The payload digest is checked before any node is decoded. Files without
    a stored digest are accepted unchecked.

    Args:
        data: Complete file contents
        config: Codec configuration (module default if None)

    Returns:
        Decoded file

    Raises:
        InvalidMagicError: If the magic prefix is missing
        IntegrityError: If the payload digest does not match
        DecodingError: On malformed header or payload
    """
    config = config or default_config

    if not has_magic(data):
        raise InvalidMagicError()

    body = bytes(data[MAGIC_SIZE:])
    header, header_size = decode_header(body)
    payload = body[header_size:]

    expected = header.security.integrity
    if expected and config.verify_integrity:
        actual = compute_integrity(payload)
        if actual != expected.lower():
            logger.warning("integrity mismatch: expected %s, computed %s", expected, actual)
            raise IntegrityError(expected=expected, actual=actual)
    elif not expected:
        logger.debug("no integrity digest stored; payload not verified")

    nodes = decode_payload(payload)
    if header.node_count != len(nodes):
        logger.warning(
            "header nodeCount %d does not match %d decoded nodes",
            header.node_count,
            len(nodes),
        )

    logger.debug("decoded %d nodes: header=%d bytes payload=%d bytes", len(nodes), header_size, len(payload))
    return EngramFile(header=header, nodes=nodes)
