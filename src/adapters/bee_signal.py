"""Bee node signal adapter.

Implements the core SignalPort against the Bee HTTP API: mining runs
locally, writes go to /soc and inbound traffic arrives over the
/gsoc/subscribe websocket.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from typing import Any, Optional

import aiohttp
from aiohttp import WSMsgType

from adapters.soc import (
    keccak256,
    make_content_chunk,
    make_identifier,
    mine_resource_id,
    owner_address,
    sign_digest,
    soc_address,
)
from core.consensus import Consensus
from core.errors import DeliveryRejection, TransmissionError, ValidationError
from core.hexcodec import decode_hex, encode_hex
from core.models import MiningResult, SentReceipt
from core.ports import SubscriptionHandlers

LOGGER = logging.getLogger(__name__)


class BeeSubscription:
    """Websocket subscription to one channel address."""

    def __init__(
        self,
        ws: aiohttp.ClientWebSocketResponse,
        handlers: SubscriptionHandlers,
        consensus: Consensus,
    ) -> None:
        self._ws = ws
        self._handlers = handlers
        self._consensus = consensus
        self._closing = False
        self._task = asyncio.ensure_future(self._read_loop())

    async def _read_loop(self) -> None:
        async for msg in self._ws:
            if msg.type in (WSMsgType.BINARY, WSMsgType.TEXT):
                self.dispatch(msg.data)
            elif msg.type == WSMsgType.ERROR:
                self._handlers.on_error(TransmissionError(f"Websocket error: {self._ws.exception()}"))
        if not self._closing:
            self._handlers.on_error(TransmissionError("Subscription closed by the node"))

    def dispatch(self, data: Any) -> None:
        """Decode one frame and hand it to the handlers if the consensus rule accepts it."""

        if isinstance(data, str):
            data = data.encode("utf-8")
        try:
            value = json.loads(data.decode("utf-8"))
        except ValueError as exc:
            self._handlers.on_error(DeliveryRejection(f"Undecodable payload: {exc}"))
            return
        try:
            self._consensus.assert_record(value)
        except ValidationError as exc:
            self._handlers.on_error(DeliveryRejection(str(exc)))
            return
        self._handlers.on_message(value)

    async def close(self) -> None:
        self._closing = True
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        await self._ws.close()


class BeeInformationSignal:
    """Channel operations for one consensus id on one Bee node."""

    def __init__(
        self,
        bee_api: str,
        consensus: Consensus,
        postage: Optional[str] = None,
        *,
        timeout: float = 30.0,
        heartbeat: float = 30.0,
        max_mining_attempts: Optional[int] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._bee_api = bee_api.rstrip("/")
        self._consensus = consensus
        self._postage = postage
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._heartbeat = heartbeat
        self._max_mining_attempts = max_mining_attempts
        self._session = session
        self._owns_session = session is None
        self._identifier = make_identifier(consensus.id)

    @property
    def identifier(self) -> bytes:
        return self._identifier

    async def __aenter__(self) -> "BeeInformationSignal":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _http(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    def _ws_base(self) -> str:
        # http -> ws, https -> wss
        if self._bee_api.startswith("http"):
            return "ws" + self._bee_api[len("http") :]
        return self._bee_api

    def channel_address(self, resource_id: bytes) -> bytes:
        return soc_address(self._identifier, owner_address(resource_id))

    async def mine(self, target_prefix: str, proximity_depth: int) -> MiningResult:
        """Find a resource id whose channel address is near target_prefix.

        The search is CPU bound, so it runs in a worker thread to keep the
        event loop responsive.
        """

        target = decode_hex(target_prefix)
        stop = threading.Event()
        try:
            private_key, address = await asyncio.to_thread(
                mine_resource_id,
                self._identifier,
                target,
                proximity_depth,
                max_attempts=self._max_mining_attempts,
                stop=stop,
            )
        except asyncio.CancelledError:
            # The worker thread keeps running unless told to stop.
            stop.set()
            raise
        return MiningResult(resource_id=private_key, channel_address=address)

    async def subscribe(self, handlers: SubscriptionHandlers, resource_id: bytes) -> BeeSubscription:
        address = encode_hex(self.channel_address(resource_id))
        url = f"{self._ws_base()}/gsoc/subscribe/{address}"
        try:
            ws = await self._http().ws_connect(url, heartbeat=self._heartbeat)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransmissionError(f"Failed to subscribe to {address}: {exc}") from exc
        LOGGER.info("Subscribed to channel %s", address)
        return BeeSubscription(ws, handlers, self._consensus)

    async def write(self, payload: dict[str, Any], resource_id: bytes) -> SentReceipt:
        """Sign and upload one payload as the next chunk of the channel."""

        self._consensus.assert_record(payload)
        if not self._postage:
            raise TransmissionError("A postage batch id is required to send messages")

        data = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        try:
            body, content_address = make_content_chunk(data)
        except ValueError as exc:
            raise ValidationError(f"Message too long: {exc}") from exc

        owner = owner_address(resource_id)
        signature = sign_digest(resource_id, keccak256(self._identifier + content_address))
        url = f"{self._bee_api}/soc/{encode_hex(owner)}/{encode_hex(self._identifier)}"
        headers = {
            "swarm-postage-batch-id": self._postage,
            "content-type": "application/octet-stream",
        }

        try:
            async with self._http().post(
                url,
                params={"sig": encode_hex(signature)},
                data=body,
                headers=headers,
            ) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise TransmissionError(f"Bee API error {response.status}: {text}")
                result = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise TransmissionError(f"Bee API request failed: {exc}") from exc

        reference = result.get("reference") if isinstance(result, dict) else None
        return SentReceipt(address=soc_address(self._identifier, owner), reference=reference)
