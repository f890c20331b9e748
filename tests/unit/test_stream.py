"""
Unit tests for streaming decode.
"""

import io

import msgpack
import pytest

from engram.codec import MAGIC_BYTES, decode, encode, encode_header, encode_nodes
from engram.errors import DecodingError, InvalidMagicError
from engram.files import open_stream, write_file
from engram.stream import StreamReader
from engram.types import EngramFile, EngramHeader, MemoryNode


def raw_stream(node_count: int, payload: bytes) -> io.BytesIO:
    """Build a stream whose header declares ``node_count`` nodes."""
    header = encode_header(EngramHeader(version="1.0", node_count=node_count))
    return io.BytesIO(MAGIC_BYTES + header + payload)


class ShortReadStream(io.RawIOBase):
    """Returns at most one byte per read call."""

    def __init__(self, data: bytes):
        self._data = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        return self._data.read(1 if size != 0 else 0)


class TestStreamReader:
    """Tests for StreamReader."""

    def test_stream_matches_whole_decode(self, sample_file):
        """Streaming yields the same nodes as decode()."""
        data = encode(sample_file)

        reader = StreamReader(io.BytesIO(data))

        assert list(reader) == decode(data).nodes

    def test_header_available_before_nodes(self, sample_file):
        """The header is read eagerly."""
        reader = StreamReader(io.BytesIO(encode(sample_file)))

        assert reader.header.node_count == 3
        assert reader.header.metadata.title == "Test File"
        assert reader.position == 0

    def test_next_node_returns_none_when_done(self, family_nodes):
        """Exhaustion is signalled with None, repeatedly."""
        reader = StreamReader(io.BytesIO(encode(EngramFile(nodes=family_nodes))))

        ids = [reader.next_node().id for _ in range(3)]

        assert ids == ["root", "child-1", "child-2"]
        assert reader.position == 3
        assert reader.next_node() is None
        assert reader.next_node() is None
        assert reader.done

    def test_empty_file(self):
        """A file with no nodes produces nothing."""
        reader = StreamReader(io.BytesIO(encode(EngramFile())))

        assert reader.next_node() is None

    def test_nil_payload_with_zero_count(self):
        """A nil payload is never read when the count is zero."""
        reader = StreamReader(raw_stream(0, b"\xc0"))

        assert list(reader) == []

    def test_nil_payload_with_declared_count(self, caplog):
        """A nil payload yields no nodes, as whole-buffer decode does."""
        reader = StreamReader(raw_stream(2, b"\xc0"))

        with caplog.at_level("WARNING", logger="engram.stream"):
            assert list(reader) == []

        assert reader.done
        assert "does not match payload length 0" in caplog.text

    def test_payload_not_an_array(self):
        reader = StreamReader(raw_stream(1, msgpack.packb({"id": "n"})))

        with pytest.raises(DecodingError):
            reader.next_node()
        assert reader.done

    def test_array16_payload(self):
        """Payloads of 16 or more nodes use the wider array header."""
        nodes = [MemoryNode(id=f"n{i}") for i in range(20)]

        reader = StreamReader(ShortReadStream(encode(EngramFile(nodes=nodes))))

        assert [n.id for n in reader] == [n.id for n in nodes]

    def test_invalid_magic(self):
        """Wrong magic fails before any header work."""
        with pytest.raises(InvalidMagicError):
            StreamReader(io.BytesIO(b"NOTENGRAM"))

    def test_short_input_is_invalid_magic(self):
        """Fewer than six bytes counts as a magic mismatch."""
        with pytest.raises(InvalidMagicError):
            StreamReader(io.BytesIO(b"ENG"))

    def test_truncated_header(self):
        """A header cut short is a decoding error."""
        with pytest.raises(DecodingError):
            StreamReader(io.BytesIO(MAGIC_BYTES + b"\x84"))

    def test_short_reads(self, sample_file):
        """Sources returning partial reads are handled."""
        data = encode(sample_file)

        reader = StreamReader(ShortReadStream(data))

        assert list(reader) == sample_file.nodes

    def test_stops_at_declared_count(self, family_nodes):
        """Only node_count records are produced."""
        reader = StreamReader(raw_stream(1, encode_nodes(family_nodes)))

        assert [n.id for n in reader] == ["root"]

    def test_stops_at_payload_length(self, family_nodes):
        """An overstated node_count stops at the array length."""
        reader = StreamReader(raw_stream(5, encode_nodes(family_nodes)))

        assert len(list(reader)) == 3

    def test_stops_at_end_of_input(self, family_nodes):
        """Running out of bytes ends the stream without an error."""
        # Array header claims two nodes, but only one follows
        one = encode_nodes(family_nodes[:1])
        payload = b"\x92" + one[1:]

        reader = StreamReader(raw_stream(2, payload))

        assert reader.next_node().id == "root"
        assert reader.next_node() is None

    def test_no_integrity_check(self, family_nodes):
        """Streaming does not verify the digest."""
        data = bytearray(encode(EngramFile(nodes=[MemoryNode(id="x", content="abc")])))
        data[-1] = ord("z")

        reader = StreamReader(io.BytesIO(bytes(data)))

        assert reader.next_node().content == "abz"

    def test_malformed_record_raises(self):
        """A record that is not a map raises and ends the stream."""
        reader = StreamReader(raw_stream(2, b"\x92" + msgpack.packb("oops")))

        with pytest.raises(DecodingError):
            reader.next_node()

        assert reader.next_node() is None

    def test_reserved_code_raises(self):
        """Bytes msgpack cannot parse raise DecodingError."""
        reader = StreamReader(raw_stream(1, b"\x91\xc1"))

        with pytest.raises(DecodingError):
            reader.next_node()

    def test_open_stream_from_path(self, tmp_path, sample_file):
        """open_stream yields a reader over a file on disk."""
        path = tmp_path / "stream.engram"
        write_file(path, sample_file)

        with open_stream(path) as reader:
            nodes = list(reader)

        assert nodes == sample_file.nodes
