from __future__ import annotations

import json
from typing import Any, Optional

import pytest

import app
import settings
from core.errors import TransmissionError
from core.models import MiningResult, SentReceipt
from core.ports import SubscriptionHandlers

OWN = "75" + "00" * 31
REMOTE = "a4" + "00" * 31


class FakeSignal:
    def __init__(self, fail_mining: bool = False, fail_write: bool = False) -> None:
        self.mined: list[str] = []
        self.written: list[dict[str, Any]] = []
        self._fail_mining = fail_mining
        self._fail_write = fail_write

    async def __aenter__(self) -> "FakeSignal":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None

    async def mine(self, target_prefix: str, proximity_depth: int) -> MiningResult:
        if self._fail_mining:
            raise ConnectionError("node unreachable")
        self.mined.append(target_prefix)
        marker = bytes.fromhex(target_prefix[:2])
        return MiningResult(resource_id=marker * 32, channel_address=marker + b"\x01" * 31)

    async def subscribe(self, handlers: SubscriptionHandlers, resource_id: bytes) -> None:
        raise AssertionError("one-shot send never subscribes")

    async def write(self, payload: dict[str, Any], resource_id: bytes) -> SentReceipt:
        if self._fail_write:
            raise TransmissionError("Bee API error 402: payment required")
        self.written.append(payload)
        return SentReceipt(address=b"\xa4" * 32)


@pytest.fixture
def environment(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(settings, "load_dotenv", lambda *args, **kwargs: False)
    monkeypatch.setattr(app, "load_dotenv", lambda *args, **kwargs: False)
    monkeypatch.setattr(app, "_print_banner", lambda: None)
    monkeypatch.setattr(app, "_configure_logging", lambda config, secrets: None)
    values = {
        "BEE_API": "http://localhost:1633",
        "GSOC_ID": "comments-v1",
        "STORAGE_DEPTH": "16",
        "OWN_OVERLAY": OWN,
        "REMOTE_OVERLAY": REMOTE,
        "BATCH_ID": "17" * 32,
        "MINED_RESULTS_FILE": str(tmp_path / "minedResults.json"),
    }
    for name, value in values.items():
        monkeypatch.setenv(name, value)
    return tmp_path


def _use_signal(monkeypatch, signal: FakeSignal) -> None:
    monkeypatch.setattr(app, "build_signal", lambda config: signal)


def _exit_code(argv: list[str]) -> Optional[int]:
    with pytest.raises(SystemExit) as excinfo:
        app.main(argv)
    return excinfo.value.code


def test_missing_configuration_exits_with_failure(environment, monkeypatch, capsys) -> None:
    monkeypatch.delenv("BATCH_ID")
    signal = FakeSignal()
    _use_signal(monkeypatch, signal)

    assert _exit_code(["send", "hello"]) == 1
    assert "BATCH_ID" in capsys.readouterr().err
    assert signal.mined == []


def test_one_shot_send_succeeds(environment, monkeypatch) -> None:
    signal = FakeSignal()
    _use_signal(monkeypatch, signal)

    assert _exit_code(["send", "hello"]) == 0
    assert [payload["text"] for payload in signal.written] == ["hello"]
    assert signal.mined == [REMOTE]

    stored = json.loads((environment / "minedResults.json").read_text(encoding="utf-8"))
    assert [entry["inputs"]["targetOverlay"] for entry in stored] == [REMOTE]


def test_one_shot_send_failure_exits_with_failure(environment, monkeypatch) -> None:
    _use_signal(monkeypatch, FakeSignal(fail_write=True))

    assert _exit_code(["send", "hello"]) == 1


def test_resolution_failure_exits_with_failure(environment, monkeypatch) -> None:
    _use_signal(monkeypatch, FakeSignal(fail_mining=True))

    assert _exit_code(["send", "hello"]) == 1
    stored = json.loads((environment / "minedResults.json").read_text(encoding="utf-8"))
    assert stored == []


def test_cache_listing_shows_mined_channels(environment, monkeypatch, capsys) -> None:
    _use_signal(monkeypatch, FakeSignal())
    assert _exit_code(["send", "hello"]) == 0
    capsys.readouterr()

    assert _exit_code(["cache"]) == 0
    output = capsys.readouterr().out
    assert f"1. comments-v1 | depth 16 | {REMOTE} | a4" in output


def test_cache_listing_does_not_create_the_file(environment, capsys) -> None:
    assert _exit_code(["cache"]) == 0
    assert "No mined channels cached" in capsys.readouterr().out
    assert not (environment / "minedResults.json").exists()
