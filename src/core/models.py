"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any node-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from core.hexcodec import decode_hex, encode_hex


@dataclass(frozen=True)
class MiningInputs:
    """Identity of a mining request.

    Equality is exact on all three fields; no normalization is applied to the
    target prefix, so "AB.." and "ab.." are different inputs.
    """

    channel_id: str
    proximity_depth: int
    target_prefix: str


@dataclass(frozen=True)
class MiningResult:
    """Outcome of resolving a MiningInputs."""

    resource_id: bytes
    channel_address: bytes


@dataclass(frozen=True)
class CacheRecord:
    """One persisted inputs/result pair of the address cache."""

    inputs: MiningInputs
    result: MiningResult

    def to_json(self) -> dict[str, Any]:
        return {
            "resourceId": encode_hex(self.result.resource_id),
            "gsocAddress": encode_hex(self.result.channel_address),
            "inputs": {
                "gsocId": self.inputs.channel_id,
                "storageDepth": self.inputs.proximity_depth,
                "targetOverlay": self.inputs.target_prefix,
            },
        }

    @classmethod
    def from_json(cls, entry: dict[str, Any]) -> "CacheRecord":
        """Build a record from its persisted form.

        Raises KeyError, TypeError or ValueError on malformed entries.
        """

        inputs = entry["inputs"]
        depth = inputs["storageDepth"]
        if not isinstance(depth, int) or isinstance(depth, bool):
            raise TypeError("storageDepth must be an integer")
        return cls(
            inputs=MiningInputs(
                channel_id=str(inputs["gsocId"]),
                proximity_depth=depth,
                target_prefix=str(inputs["targetOverlay"]),
            ),
            result=MiningResult(
                resource_id=decode_hex(entry["resourceId"]),
                channel_address=decode_hex(entry["gsocAddress"]),
            ),
        )


@dataclass(frozen=True)
class MessagePayload:
    """The unit exchanged over a channel."""

    text: str
    timestamp: int

    def to_json(self) -> dict[str, Any]:
        return {"text": self.text, "timestamp": self.timestamp}


@dataclass(frozen=True)
class SentReceipt:
    """Acknowledgement returned by the node after a write."""

    address: bytes
    reference: Optional[str] = None


class ChannelDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


@dataclass(frozen=True)
class ChannelHandle:
    """A resolved channel bound to the session that owns it.

    Handles are rebuilt from the cache on every start and never persisted.
    """

    direction: ChannelDirection
    inputs: MiningInputs
    result: MiningResult

    @property
    def resource_id(self) -> bytes:
        return self.result.resource_id

    @property
    def address_hex(self) -> str:
        return encode_hex(self.result.channel_address)
