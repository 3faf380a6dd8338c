"""Swarm single-owner-chunk primitives.

Pure functions for addressing, mining and signing the chunks a channel is
made of. Isolated from the HTTP adapter so they can be tested offline.
"""

from __future__ import annotations

import itertools
import threading
from typing import Optional

import coincurve
from Crypto.Hash import keccak

SEGMENT_SIZE = 32
CHUNK_SIZE = 4096
SPAN_SIZE = 8
# Candidate keys start above zero; the first keys are well known and 0 is not a valid key.
MINING_START = 0xB33
_SIGNED_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n32"


def keccak256(data: bytes) -> bytes:
    return keccak.new(digest_bits=256, data=data).digest()


def make_identifier(channel_id: str) -> bytes:
    """Channel ids are hashed into the 32-byte chunk identifier."""

    return keccak256(channel_id.encode("utf-8"))


def owner_address(private_key: bytes) -> bytes:
    """Return the 20-byte Ethereum address of a secp256k1 private key."""

    public_key = coincurve.PrivateKey(private_key).public_key.format(compressed=False)
    return keccak256(public_key[1:])[-20:]


def soc_address(identifier: bytes, owner: bytes) -> bytes:
    return keccak256(identifier + owner)


def proximity(one: bytes, other: bytes) -> int:
    """Number of leading bits the two byte strings share."""

    size = min(len(one), len(other))
    diff = int.from_bytes(one[:size], "big") ^ int.from_bytes(other[:size], "big")
    return size * 8 - diff.bit_length()


def mine_resource_id(
    identifier: bytes,
    target: bytes,
    depth: int,
    start: int = MINING_START,
    max_attempts: Optional[int] = None,
    stop: Optional[threading.Event] = None,
) -> tuple[bytes, bytes]:
    """Search private keys until the chunk address lands within depth bits of target.

    Returns (private_key, soc_address). Raises RuntimeError when max_attempts
    is exhausted or stop is set.
    """

    if depth < 0 or depth > len(target) * 8:
        raise ValueError(f"proximity depth must be between 0 and {len(target) * 8}")

    counter = itertools.count(start)
    if max_attempts is not None:
        counter = itertools.islice(counter, max_attempts)
    for candidate in counter:
        if stop is not None and stop.is_set():
            raise RuntimeError("Mining cancelled")
        private_key = candidate.to_bytes(32, "big")
        address = soc_address(identifier, owner_address(private_key))
        if proximity(address, target) >= depth:
            return private_key, address
    raise RuntimeError(f"No resource id within depth {depth} after {max_attempts} attempts")


def bmt_root(data: bytes) -> bytes:
    """Binary merkle tree root over data zero-padded to one chunk."""

    if len(data) > CHUNK_SIZE:
        raise ValueError(f"chunk payload exceeds {CHUNK_SIZE} bytes")
    level = data.ljust(CHUNK_SIZE, b"\x00")
    while len(level) > SEGMENT_SIZE:
        level = b"".join(
            keccak256(level[offset : offset + 2 * SEGMENT_SIZE])
            for offset in range(0, len(level), 2 * SEGMENT_SIZE)
        )
    return level


def make_content_chunk(payload: bytes) -> tuple[bytes, bytes]:
    """Return (span + payload, content address) for one content-addressed chunk."""

    span = len(payload).to_bytes(SPAN_SIZE, "little")
    return span + payload, keccak256(span + bmt_root(payload))


def sign_digest(private_key: bytes, digest: bytes) -> bytes:
    """Ethereum personal-sign a 32-byte digest; returns r || s || v with v in {27, 28}."""

    prefixed = keccak256(_SIGNED_MESSAGE_PREFIX + digest)
    signature = coincurve.PrivateKey(private_key).sign_recoverable(prefixed, hasher=None)
    return signature[:64] + bytes([signature[64] + 27])
