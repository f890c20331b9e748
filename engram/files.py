"""
File helpers over the Engram codec.

read_file / write_file read or write a whole file and delegate to decode /
encode. open_stream hands out a StreamReader over an open file.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from .codec import decode, encode
from .config import EngramConfig, default_config
from .errors import IntegrityError
from .stream import StreamReader
from .types import EngramFile

logger = logging.getLogger(__name__)

PathLike = str | os.PathLike[str]


def read_file(path: PathLike, config: EngramConfig | None = None) -> EngramFile:
    """
    Read and decode an Engram file.

    Raises:
        OSError: If the file cannot be read
        InvalidMagicError, IntegrityError, DecodingError: From decode
    """
    data = Path(path).read_bytes()
    logger.debug("read %d bytes from %s", len(data), path)
    return decode(data, config)


def _atomic_write(target: Path, data: bytes, mode: int) -> None:
    """
    Write bytes atomically using temp file + rename.

    The temp file lives in the target directory so the rename stays on one
    filesystem.
    """
    fd, temp_path = tempfile.mkstemp(
        suffix=".tmp",
        prefix=target.stem + "_",
        dir=target.parent,
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.chmod(temp_path, mode)
        os.replace(temp_path, target)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise


def write_file(path: PathLike, file: EngramFile, config: EngramConfig | None = None) -> int:
    """
    Encode ``file`` and write it to ``path``.

    Returns:
        Number of bytes written

    Raises:
        EncodingError: From encode
        OSError: If the file cannot be written
    """
    config = config or default_config
    target = Path(path)
    data = encode(file, config)

    if config.atomic_writes:
        _atomic_write(target, data, config.file_mode)
    else:
        target.write_bytes(data)
        os.chmod(target, config.file_mode)

    logger.debug("wrote %d bytes (%d nodes) to %s", len(data), len(file.nodes), target)
    return len(data)


def verify_integrity(path: PathLike) -> bool:
    """
    Check a file's payload digest.

    Returns:
        True if the file decodes cleanly, False on digest mismatch

    Raises:
        OSError: If the file cannot be read
        InvalidMagicError, DecodingError: Any non-integrity decode failure
    """
    try:
        read_file(path, EngramConfig(verify_integrity=True))
    except IntegrityError:
        return False
    return True


@contextmanager
def open_stream(path: PathLike) -> Iterator[StreamReader]:
    """
    Open a file for streaming decode.

    Usage:
        with open_stream("big.engram") as reader:
            for node in reader:
                ...
    """
    with open(path, "rb") as f:
        yield StreamReader(f)
