"""Application entry point for swarmchat."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from art import tprint
from dotenv import load_dotenv

import settings
from adapters.json_cache import JsonAddressCache
from adapters.terminal import StdinLineSource, TerminalConsole
from client import build_consensus, build_signal
from core.config import LoggingConfig, SessionRole, Settings
from core.errors import ConfigError, ResolutionError
from core.hexcodec import encode_hex
from core.resolver import ChannelResolver
from core.session import SessionOrchestrator

NAME = "SWARMCHAT"
FONT = "tarty-1"


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = sorted({secret for secret in secrets if secret}, key=len, reverse=True)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _configure_logging(config: LoggingConfig, secrets: list[str]) -> None:
    level = getattr(logging, config.level, logging.WARNING)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [console_handler]

    if config.file_path:
        path = os.path.abspath(config.file_path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)


def _install_stop_handlers(orchestrator: SessionOrchestrator, console: TerminalConsole) -> None:
    loop = asyncio.get_running_loop()

    def _stop(name: str) -> None:
        console.notify(f"{name} received. Cleaning up and exiting...")
        orchestrator.request_stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _stop, sig.name)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; Ctrl-C falls back to KeyboardInterrupt.
            pass


async def _run_session(config: Settings, text: Optional[str] = None) -> int:
    logger = logging.getLogger(__name__)
    console = TerminalConsole()
    lines = StdinLineSource()

    async with build_signal(config) as signal_client:
        orchestrator = SessionOrchestrator(
            role=config.role,
            resolver=ChannelResolver(JsonAddressCache(config.cache_path), signal_client),
            signal=signal_client,
            consensus=build_consensus(config),
            console=console,
            lines=lines,
            inbound=config.inbound_inputs(),
            outbound=config.outbound_inputs(),
        )
        console.notify(f"Initializing channels for {config.role.value} session...")
        try:
            if text is None:
                _install_stop_handlers(orchestrator, console)
                return await orchestrator.run()

            # One-shot send: resolve, write once, exit.
            try:
                await orchestrator.start()
                receipt = await orchestrator.send(text)
            finally:
                await orchestrator.shutdown()
            if receipt is None:
                return 1
            console.notify(f"Message sent successfully! SOC Address: {encode_hex(receipt.address)}")
            return 0
        except ResolutionError as exc:
            logger.error("Channel setup failed: %s", exc)
            console.error(f"Error: {exc}")
            return 1


def _run(role: SessionRole, text: Optional[str] = None) -> int:
    _print_banner()
    try:
        config = settings.load_settings(role)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    _configure_logging(config.logging, [config.batch_id or ""])
    logging.getLogger(__name__).info("Starting swarmchat (%s)", role.value)

    try:
        return asyncio.run(_run_session(config, text))
    except KeyboardInterrupt:
        print("\nInterrupted. Exiting...")
        return 0


def _list_cache() -> int:
    load_dotenv()
    path = os.getenv("MINED_RESULTS_FILE") or settings.DEFAULT_CACHE_FILE
    # Listing must not create or reset the cache file.
    records = JsonAddressCache(path).load() if os.path.exists(path) else []
    if not records:
        print(f"No mined channels cached in {path}.")
        return 0
    for index, record in enumerate(records, start=1):
        inputs = record.inputs
        print(
            f"{index}. {inputs.channel_id} | depth {inputs.proximity_depth} | "
            f"{inputs.target_prefix} | {encode_hex(record.result.channel_address)}"
        )
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="swarmchat")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("chat", help="Listen on your overlay and send to the remote one")
    subparsers.add_parser("listen", help="Only print messages arriving on your overlay")
    send_parser = subparsers.add_parser("send", help="Send messages to the remote overlay")
    send_parser.add_argument("text", nargs="?", help="Send this one message and exit")
    subparsers.add_parser("cache", help="List mined channels stored in the cache file")

    args = parser.parse_args(argv)
    if args.command == "cache":
        raise SystemExit(_list_cache())
    if args.command == "listen":
        raise SystemExit(_run(SessionRole.LISTEN))
    if args.command == "send":
        raise SystemExit(_run(SessionRole.SEND, args.text))
    raise SystemExit(_run(SessionRole.CHAT))


if __name__ == "__main__":
    main()
