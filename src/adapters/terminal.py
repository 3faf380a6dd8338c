"""Terminal adapters: console output sink and stdin line source."""

from __future__ import annotations

import asyncio
import os
import stat
import sys
from datetime import datetime
from typing import IO, Optional

from rich.console import Console
from rich.control import Control
from rich.segment import ControlType
from rich.text import Text

from core.models import MessagePayload

DEFAULT_PROMPT = "Enter your message: "


def format_timestamp(timestamp: int) -> str:
    try:
        return datetime.fromtimestamp(timestamp / 1000).strftime("%H:%M:%S %d-%m-%Y")
    except (OverflowError, OSError, ValueError):
        return str(timestamp)


class TerminalConsole:
    """Console sink shared by the send and receive paths.

    Each write clears the current prompt line, prints, and reprints the prompt,
    so an inbound message arriving mid-typing never leaves a stray prompt.
    """

    def __init__(self, prompt: str = DEFAULT_PROMPT, console: Optional[Console] = None) -> None:
        self._prompt = prompt
        self._console = console or Console(highlight=False)
        self._prompting = False

    def _clear_line(self) -> None:
        self._console.control(
            Control((ControlType.ERASE_IN_LINE, 2), (ControlType.CURSOR_MOVE_TO_COLUMN, 0))
        )

    def _write(self, renderable: Text) -> None:
        self._clear_line()
        self._console.print(renderable)
        if self._prompting:
            self._console.print(self._prompt, end="")

    def prompt(self) -> None:
        self._prompting = True
        self._console.print(self._prompt, end="")

    def show_message(self, payload: MessagePayload) -> None:
        self._write(
            Text.assemble(
                ("Received message", "bold cyan"),
                (f" [{format_timestamp(payload.timestamp)}] ", "dim"),
                payload.text,
            )
        )

    def notify(self, text: str) -> None:
        self._write(Text(text))

    def error(self, text: str) -> None:
        self._write(Text(text, style="bold red"))


class StdinLineSource:
    """Async iterator over lines of stdin (or another text stream).

    Pipes and terminals are read through an asyncio pipe transport. Regular
    files, as in `swarmchat send < messages.txt`, cannot be attached to one,
    so their lines are read in a worker thread.
    """

    def __init__(self, stream: Optional[IO[str]] = None) -> None:
        self._stream = stream or sys.stdin
        self._reader: Optional[asyncio.StreamReader] = None
        self._transport: Optional[asyncio.BaseTransport] = None
        self._closed = False
        self._use_pipe: Optional[bool] = None

    def _is_pipe(self) -> bool:
        try:
            mode = os.fstat(self._stream.fileno()).st_mode
        except (AttributeError, OSError, ValueError):
            return False
        return not stat.S_ISREG(mode)

    async def _open(self) -> asyncio.StreamReader:
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        protocol = asyncio.StreamReaderProtocol(reader)
        self._transport, _ = await loop.connect_read_pipe(lambda: protocol, self._stream)
        self._reader = reader
        return reader

    def __aiter__(self) -> "StdinLineSource":
        return self

    async def __anext__(self) -> str:
        if self._closed:
            raise StopAsyncIteration
        if self._use_pipe is None:
            self._use_pipe = self._is_pipe()

        if self._use_pipe:
            reader = self._reader or await self._open()
            raw = await reader.readline()
            line = raw.decode("utf-8", errors="replace")
        else:
            line = await asyncio.to_thread(self._stream.readline)
        if not line:
            raise StopAsyncIteration
        return line.rstrip("\r\n")

    def close(self) -> None:
        self._closed = True
        if self._transport is not None:
            self._transport.close()
            self._transport = None
