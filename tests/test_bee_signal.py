from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from aiohttp import WSMsgType

from adapters.bee_signal import BeeInformationSignal, BeeSubscription
from adapters.soc import proximity
from core.consensus import Consensus
from core.errors import DeliveryRejection, TransmissionError, ValidationError
from core.ports import SubscriptionHandlers

OVERLAY = "75" + "00" * 31


class FakeWebSocket:
    def __init__(self, frames: list) -> None:
        self._frames = frames
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self._frames:
            yield frame

    def exception(self) -> Exception:
        return RuntimeError("connection reset")

    async def close(self) -> None:
        self.closed = True


def _frame(kind: WSMsgType, data) -> SimpleNamespace:
    return SimpleNamespace(type=kind, data=data)


def test_subscription_gates_frames_through_consensus() -> None:
    messages: list = []
    errors: list = []
    handlers = SubscriptionHandlers(on_message=messages.append, on_error=errors.append)
    ws = FakeWebSocket(
        [
            _frame(WSMsgType.BINARY, b'{"text":"hi","timestamp":1}'),
            _frame(WSMsgType.TEXT, '{"text":"missing timestamp"}'),
            _frame(WSMsgType.BINARY, b"\xff\xfe"),
            _frame(WSMsgType.ERROR, None),
        ]
    )

    async def scenario() -> None:
        subscription = BeeSubscription(ws, handlers, Consensus(id="comments-v1"))
        for _ in range(10):
            await asyncio.sleep(0)
        await subscription.close()

    asyncio.run(scenario())

    assert messages == [{"text": "hi", "timestamp": 1}]
    assert [type(error) for error in errors] == [
        DeliveryRejection,
        DeliveryRejection,
        TransmissionError,
        TransmissionError,
    ]
    assert "closed by the node" in str(errors[-1])
    assert ws.closed


def test_closing_subscription_does_not_report_an_error() -> None:
    errors: list = []
    handlers = SubscriptionHandlers(on_message=lambda value: None, on_error=errors.append)

    class SilentWebSocket(FakeWebSocket):
        async def _iterate(self):
            await asyncio.Event().wait()
            yield None

    async def scenario() -> None:
        subscription = BeeSubscription(SilentWebSocket([]), handlers, Consensus(id="comments-v1"))
        await asyncio.sleep(0)
        await subscription.close()

    asyncio.run(scenario())
    assert errors == []


def test_write_rejects_invalid_payload_before_network() -> None:
    signal = BeeInformationSignal("http://localhost:1633", Consensus(id="comments-v1"), postage="ab" * 32)
    with pytest.raises(ValidationError):
        asyncio.run(signal.write({"text": "hi"}, b"\x01" * 32))


def test_write_requires_postage() -> None:
    signal = BeeInformationSignal("http://localhost:1633", Consensus(id="comments-v1"))
    with pytest.raises(TransmissionError):
        asyncio.run(signal.write({"text": "hi", "timestamp": 1}, b"\x01" * 32))


def test_write_rejects_messages_larger_than_a_chunk() -> None:
    signal = BeeInformationSignal("http://localhost:1633", Consensus(id="comments-v1"), postage="ab" * 32)
    with pytest.raises(ValidationError):
        asyncio.run(signal.write({"text": "x" * 5000, "timestamp": 1}, b"\x01" * 32))


def test_mine_returns_resource_id_for_channel_address() -> None:
    signal = BeeInformationSignal("http://localhost:1633", Consensus(id="comments-v1"))
    result = asyncio.run(signal.mine(OVERLAY, 4))

    assert signal.channel_address(result.resource_id) == result.channel_address
    assert proximity(result.channel_address, bytes.fromhex(OVERLAY)) >= 4
