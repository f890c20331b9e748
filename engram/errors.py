"""
Exceptions raised by the Engram codec.

All errors derive from EngramError so callers can catch the whole family.
I/O failures are not wrapped; they surface as the usual OSError subclasses.
"""

from __future__ import annotations


class EngramError(Exception):
    """Base class for Engram format errors."""


class InvalidMagicError(EngramError):
    """The buffer does not start with the ENGRAM magic bytes."""

    def __init__(self, message: str = "invalid magic bytes: not an Engram file"):
        super().__init__(message)


class IntegrityError(EngramError):
    """The payload digest does not match the header's integrity field."""

    def __init__(
        self,
        expected: str = "",
        actual: str = "",
        message: str = "integrity check failed: file may be corrupted",
    ):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class DecodingError(EngramError):
    """Malformed binary structure in the header or payload."""


class EncodingError(EngramError):
    """A value could not be serialized."""
