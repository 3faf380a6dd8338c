from __future__ import annotations

import os

import pytest

from core.config import SessionRole
from core.errors import ConfigError
from core.models import MiningInputs
from settings import DEFAULT_CACHE_FILE, load_settings

OWN = "75" + "00" * 31
REMOTE = "a4" + "00" * 31


def _env(**overrides: str) -> dict[str, str]:
    env = {
        "BEE_API": "http://localhost:1633",
        "GSOC_ID": "comments-v1",
        "STORAGE_DEPTH": "16",
        "OWN_OVERLAY": OWN,
        "REMOTE_OVERLAY": REMOTE,
        "BATCH_ID": "17" * 32,
    }
    env.update(overrides)
    return {key: value for key, value in env.items() if value != ""}


def test_chat_settings_build_both_inputs() -> None:
    settings = load_settings(SessionRole.CHAT, _env())

    assert settings.inbound_inputs() == MiningInputs("comments-v1", 16, OWN)
    assert settings.outbound_inputs() == MiningInputs("comments-v1", 16, REMOTE)
    assert settings.cache_path == os.path.abspath(DEFAULT_CACHE_FILE)
    assert settings.logging.level == "WARNING"


def test_listen_role_does_not_need_remote_or_postage() -> None:
    settings = load_settings(SessionRole.LISTEN, _env(REMOTE_OVERLAY="", BATCH_ID=""))

    assert settings.outbound_inputs() is None
    assert settings.batch_id is None


@pytest.mark.parametrize("missing", ["BEE_API", "GSOC_ID", "STORAGE_DEPTH", "OWN_OVERLAY", "REMOTE_OVERLAY", "BATCH_ID"])
def test_chat_fails_fast_on_missing_setting(missing: str) -> None:
    with pytest.raises(ConfigError) as excinfo:
        load_settings(SessionRole.CHAT, _env(**{missing: ""}))
    assert missing in str(excinfo.value)


@pytest.mark.parametrize("depth", ["sixteen", "-1", "257"])
def test_rejects_bad_depth(depth: str) -> None:
    with pytest.raises(ConfigError):
        load_settings(SessionRole.CHAT, _env(STORAGE_DEPTH=depth))


def test_rejects_malformed_overlay() -> None:
    with pytest.raises(ConfigError):
        load_settings(SessionRole.CHAT, _env(OWN_OVERLAY="75"))


def test_optional_settings() -> None:
    settings = load_settings(
        SessionRole.SEND,
        _env(MINED_RESULTS_FILE="cache/mined.json", LOG_LEVEL="debug", LOG_FILE="logs/chat.log"),
    )

    assert settings.cache_path == os.path.abspath("cache/mined.json")
    assert settings.logging.level == "DEBUG"
    assert settings.logging.file_path == "logs/chat.log"
