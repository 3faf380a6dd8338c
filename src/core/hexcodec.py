"""Hex codec used wherever identifiers cross the persistence boundary."""

from __future__ import annotations


def encode_hex(data: bytes) -> str:
    """Return lowercase, zero-padded hex without separators."""

    return bytes(data).hex()


def decode_hex(value: str) -> bytes:
    """Inverse of encode_hex for even-length input.

    Malformed hex raises ValueError; callers own producing well-formed input.
    """

    return bytes.fromhex(value)
