"""
Streaming decode for large Engram files.

A StreamReader reads the magic prefix and header eagerly, then yields one
node per call from the remaining byte stream. It never verifies the payload
digest: the digest covers the whole payload, which a streaming consumer has
not seen until the last record.

Usage:
    with open("memories.engram", "rb") as f:
        reader = StreamReader(f)
        for node in reader:
            ...
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import BinaryIO

import msgpack

from .codec import MAGIC_BYTES, MAGIC_SIZE, UNPACK_ERRORS, decode_node, new_unpacker
from .errors import DecodingError, InvalidMagicError
from .types import EngramHeader, MemoryNode

logger = logging.getLogger(__name__)

# MessagePack type bytes that may open the payload
_NIL = 0xC0
_ARRAY16 = 0xDC
_ARRAY32 = 0xDD


def _read_exact(read: Callable[[int], bytes], size: int) -> bytes:
    """Read up to ``size`` bytes with ``read``, looping over short reads."""
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


class StreamReader:
    """
    Forward-only, single-pass reader over an Engram byte stream.

    Not safe for concurrent use; one consumer drives a reader at a time.
    Production stops after ``header.node_count`` records or at end of input,
    whichever comes first. A malformed record raises DecodingError and ends
    the stream.
    """

    def __init__(self, source: BinaryIO):
        """
        Read and validate the magic prefix and header.

        Args:
            source: Binary file-like object positioned at the file start

        Raises:
            InvalidMagicError: If the stream does not start with the magic bytes
            DecodingError: If the header is malformed
        """
        magic = _read_exact(source.read, MAGIC_SIZE)
        if magic != MAGIC_BYTES:
            raise InvalidMagicError()

        self._unpacker = new_unpacker(source)
        try:
            wire = self._unpacker.unpack()
        except msgpack.OutOfData as e:
            raise DecodingError("failed to decode header: unexpected end of data") from e
        except UNPACK_ERRORS as e:
            raise DecodingError(f"failed to decode header: {e}") from e

        self.header: EngramHeader = EngramHeader.from_wire(wire)
        self._remaining: int | None = None
        self._position = 0
        self._done = self.header.node_count <= 0

    @property
    def position(self) -> int:
        """Number of nodes produced so far."""
        return self._position

    @property
    def done(self) -> bool:
        return self._done

    def _read_array_length(self) -> int | None:
        """
        Read the payload's array header.

        Returns the array length, 0 for a nil payload, or None if the input
        ends first. read_array_header cannot be used here: it rejects nil, and
        whether it consumes the rejected byte differs between msgpack builds.
        """
        marker = _read_exact(self._unpacker.read_bytes, 1)
        if not marker:
            return None

        code = marker[0]
        if code == _NIL:
            logger.debug("payload is nil; reading it as an empty array")
            return 0
        if 0x90 <= code <= 0x9F:
            return code & 0x0F
        if code in (_ARRAY16, _ARRAY32):
            size = 2 if code == _ARRAY16 else 4
            raw = _read_exact(self._unpacker.read_bytes, size)
            if len(raw) < size:
                return None
            return int.from_bytes(raw, "big")

        self._done = True
        raise DecodingError(f"failed to decode nodes: expected array, got type byte 0x{code:02x}")

    def _open_payload(self) -> int:
        length = self._read_array_length()
        if length is None:
            logger.warning("stream ended before payload; header declared %d nodes", self.header.node_count)
            return 0

        if length != self.header.node_count:
            logger.warning(
                "header nodeCount %d does not match payload length %d",
                self.header.node_count,
                length,
            )
        return min(length, self.header.node_count)

    def next_node(self) -> MemoryNode | None:
        """
        Decode the next node.

        Returns:
            The next node, or None when the stream is exhausted

        Raises:
            DecodingError: If the next record is malformed
        """
        if self._done:
            return None

        if self._remaining is None:
            self._remaining = self._open_payload()
        if self._remaining <= 0:
            self._done = True
            return None

        try:
            wire = self._unpacker.unpack()
        except msgpack.OutOfData:
            logger.warning(
                "stream ended after %d of %d nodes",
                self._position,
                self.header.node_count,
            )
            self._done = True
            return None
        except UNPACK_ERRORS as e:
            self._done = True
            raise DecodingError(f"failed to decode node {self._position}: {e}") from e

        try:
            node = decode_node(wire)
        except DecodingError:
            self._done = True
            raise

        self._position += 1
        self._remaining -= 1
        return node

    def __iter__(self) -> Iterator[MemoryNode]:
        return self

    def __next__(self) -> MemoryNode:
        node = self.next_node()
        if node is None:
            raise StopIteration
        return node
