"""Session orchestration for a two-way conversation.

The session runs two independent paths:
1) Inbound: the signal adapter pushes decoded records into a queue; a
   receiver task validates each one and renders it on the console.
2) Outbound: the input loop reads one line at a time, validates the payload
   and awaits the write before reading the next line.

They share only the resolved channel handles (read-only after startup) and
the console, whose writes are single "clear, print, prompt" sequences.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from enum import Enum
from typing import Any, Callable, Optional

from core.config import SessionRole
from core.consensus import Consensus
from core.errors import DeliveryRejection, ResolutionError, TransmissionError, ValidationError
from core.models import ChannelDirection, ChannelHandle, MiningInputs, SentReceipt
from core.ports import ConsolePort, LineSourcePort, SignalPort, SubscriptionHandlers, SubscriptionPort
from core.resolver import ChannelResolver

LOGGER = logging.getLogger(__name__)

EXIT_KEYWORD = "exit"


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    RESOLVING_CHANNELS = "resolving_channels"
    READY = "listening_ready"
    SENDING = "sending"
    RECEIVING = "receiving"
    TERMINATING = "terminating"
    TERMINATED = "terminated"


def is_exit_command(line: str) -> bool:
    return line.strip().lower() == EXIT_KEYWORD


def _now_ms() -> int:
    return int(time.time() * 1000)


class SessionOrchestrator:
    """Brings channels online and runs the interactive loop until exit."""

    def __init__(
        self,
        role: SessionRole,
        resolver: ChannelResolver,
        signal: SignalPort,
        consensus: Consensus,
        console: ConsolePort,
        lines: LineSourcePort,
        inbound: Optional[MiningInputs] = None,
        outbound: Optional[MiningInputs] = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        if role.listens and inbound is None:
            raise ValueError(f"{role.value} session requires inbound channel inputs")
        if role.sends and outbound is None:
            raise ValueError(f"{role.value} session requires outbound channel inputs")

        self._role = role
        self._resolver = resolver
        self._signal = signal
        self._consensus = consensus
        self._console = console
        self._lines = lines
        self._inbound_inputs = inbound if role.listens else None
        self._outbound_inputs = outbound if role.sends else None
        self._clock = clock

        self.state = SessionState.INITIALIZING
        self.inbound: Optional[ChannelHandle] = None
        self.outbound: Optional[ChannelHandle] = None
        self._inbox: asyncio.Queue[Any] = asyncio.Queue()
        self._subscription: Optional[SubscriptionPort] = None
        self._receiver: Optional[asyncio.Task] = None
        self._main_task: Optional[asyncio.Task] = None
        self._stopping = False

    def _set_state(self, state: SessionState) -> None:
        LOGGER.debug("Session state %s -> %s", self.state.value, state.value)
        self.state = state

    async def run(self) -> int:
        """Run the whole lifecycle and return the process exit status.

        Startup failures propagate as ResolutionError.
        """

        self._main_task = asyncio.ensure_future(self._lifecycle())
        try:
            await self._main_task
        except asyncio.CancelledError:
            if not self._stopping:
                raise
        finally:
            await self.shutdown()
        return 0

    async def _lifecycle(self) -> None:
        await self.start()
        if self._stopping:
            return
        await self._input_loop()

    async def start(self) -> None:
        """Resolve every channel the role needs, then subscribe inbound."""

        self._set_state(SessionState.RESOLVING_CHANNELS)

        # Both channels are resolved before subscribing so a failing remote
        # overlay halts startup before anything is listening.
        if self._inbound_inputs is not None:
            result = await self._resolver.resolve(self._inbound_inputs)
            self.inbound = ChannelHandle(ChannelDirection.INBOUND, self._inbound_inputs, result)
        if self._stopping:
            return
        if self._outbound_inputs is not None:
            result = await self._resolver.resolve(self._outbound_inputs)
            self.outbound = ChannelHandle(ChannelDirection.OUTBOUND, self._outbound_inputs, result)
        if self._stopping:
            return

        if self.inbound is not None:
            handlers = SubscriptionHandlers(on_message=self._enqueue, on_error=self._on_subscription_error)
            try:
                self._subscription = await self._signal.subscribe(handlers, self.inbound.resource_id)
            except Exception as exc:
                raise ResolutionError(f"Failed to subscribe to {self.inbound.address_hex}: {exc}") from exc
            self._receiver = asyncio.ensure_future(self._receive_loop())
            self._console.notify(f"Listening for messages on channel address: {self.inbound.address_hex}")

        if self.outbound is not None:
            self._console.notify(f"Sending to channel address: {self.outbound.address_hex}")

        self._set_state(SessionState.READY)

    def request_stop(self) -> None:
        """Cancel startup or the input loop; pending mining and sends are not awaited."""

        self._stopping = True
        if self._main_task is not None and not self._main_task.done():
            self._main_task.cancel()
        self._lines.close()

    async def shutdown(self) -> None:
        if self.state is SessionState.TERMINATED:
            return
        self._set_state(SessionState.TERMINATING)
        self._lines.close()

        if self._receiver is not None:
            self._receiver.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._receiver
            self._receiver = None

        # The subscription is dropped, not unsubscribed; the process is exiting.
        if self._subscription is not None:
            subscription, self._subscription = self._subscription, None
            try:
                await subscription.close()
            except Exception:
                LOGGER.debug("Ignoring error while dropping subscription", exc_info=True)

        self._set_state(SessionState.TERMINATED)

    async def _input_loop(self) -> None:
        if self.outbound is not None:
            self._console.notify('Ready to send messages. Type "exit" to quit.')
        else:
            self._console.notify('Type "exit" to quit.')
        self._console.prompt()

        async for line in self._lines:
            if is_exit_command(line):
                self._console.notify("Exiting...")
                return
            if self.outbound is None:
                self._console.notify('This session only listens. Type "exit" to quit.')
                continue
            await self.send(line.strip())

    async def send(self, text: str) -> Optional[SentReceipt]:
        """Validate and write one message; failures are reported, not raised."""

        if self.outbound is None:
            raise RuntimeError("Session has no outbound channel")

        self._set_state(SessionState.SENDING)
        try:
            payload = {"text": text, "timestamp": self._clock()}
            try:
                self._consensus.assert_record(payload)
            except ValidationError as exc:
                self._console.error(f"Message not sent: {exc}")
                return None

            try:
                receipt = await self._signal.write(payload, self.outbound.resource_id)
            except ValidationError as exc:
                self._console.error(f"Message not sent: {exc}")
                return None
            except TransmissionError as exc:
                LOGGER.warning("Failed to send message: %s", exc)
                self._console.error(f"Failed to send message: {exc}")
                return None
            except Exception as exc:
                error = TransmissionError(f"Unexpected write failure: {exc}")
                LOGGER.exception("Failed to send message")
                self._console.error(f"Failed to send message: {error}")
                return None

            self._console.notify("Message sent.")
            return receipt
        finally:
            if self.state is SessionState.SENDING:
                self._set_state(SessionState.READY)

    def _enqueue(self, value: Any) -> None:
        self._inbox.put_nowait(value)

    def _on_subscription_error(self, error: BaseException) -> None:
        if isinstance(error, DeliveryRejection):
            LOGGER.error("Dropped inbound payload: %s", error)
            return
        LOGGER.error("Error in subscription: %s", error)
        self._console.error(f"Subscription error: {error}")

    async def _receive_loop(self) -> None:
        while True:
            value = await self._inbox.get()
            self.deliver(value)

    def deliver(self, value: Any) -> bool:
        """Gate one inbound record through the consensus rule and render it."""

        try:
            payload = self._consensus.parse(value)
        except ValidationError as exc:
            LOGGER.error("Dropped inbound payload: %s", exc)
            return False

        previous = self.state
        if previous is SessionState.READY:
            self._set_state(SessionState.RECEIVING)
        self._console.show_message(payload)
        if self.state is SessionState.RECEIVING:
            self._set_state(previous)
        return True
