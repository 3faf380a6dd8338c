"""Ports (interfaces) used by the core.

Ports define the minimal contracts for the address cache, the node and the
terminal so that the core can be reused with different backends and tested
with in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Optional, Protocol, Sequence

from core.models import CacheRecord, MessagePayload, MiningInputs, MiningResult, SentReceipt


class AddressCachePort(Protocol):
    """Durable mapping from MiningInputs to MiningResult."""

    def load(self) -> Sequence[CacheRecord]:
        ...

    def append(self, record: CacheRecord) -> None:
        ...

    def find(self, inputs: MiningInputs) -> Optional[CacheRecord]:
        ...


class MinerPort(Protocol):
    """Proof-of-search that finds a resource id near a target prefix."""

    async def mine(self, target_prefix: str, proximity_depth: int) -> MiningResult:
        ...


@dataclass(frozen=True)
class SubscriptionHandlers:
    """Callbacks invoked by the signal adapter for inbound traffic."""

    on_message: Callable[[Any], None]
    on_error: Callable[[BaseException], None]


class SubscriptionPort(Protocol):
    async def close(self) -> None:
        ...


class SignalPort(MinerPort, Protocol):
    """Broadcast channel operations offered by the node."""

    async def subscribe(self, handlers: SubscriptionHandlers, resource_id: bytes) -> SubscriptionPort:
        ...

    async def write(self, payload: dict[str, Any], resource_id: bytes) -> SentReceipt:
        ...


class ConsolePort(Protocol):
    """Serialized terminal output shared by the send and receive paths."""

    def prompt(self) -> None:
        ...

    def show_message(self, payload: MessagePayload) -> None:
        ...

    def notify(self, text: str) -> None:
        ...

    def error(self, text: str) -> None:
        ...


class LineSourcePort(Protocol):
    """Line-oriented input; iteration ends on EOF."""

    def __aiter__(self) -> AsyncIterator[str]:
        ...

    def close(self) -> None:
        ...
