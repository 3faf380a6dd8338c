"""Environment configuration for swarmchat.

Settings come from the process environment, optionally seeded from a .env
file via python-dotenv, and are read exactly once into a frozen Settings
object that is passed down explicitly.
"""

from __future__ import annotations

import os
import re
from typing import Mapping, Optional

from dotenv import load_dotenv

from core.config import LoggingConfig, SessionRole, Settings
from core.errors import ConfigError

# Mined channels are cached next to where the tool is run, like the .env file.
DEFAULT_CACHE_FILE = "minedResults.json"

_OVERLAY_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def _required(env: Mapping[str, str], name: str) -> str:
    value = (env.get(name) or "").strip()
    if not value:
        raise ConfigError(f"Missing {name} in environment")
    return value


def _overlay(env: Mapping[str, str], name: str) -> str:
    value = _required(env, name)
    if not _OVERLAY_RE.match(value):
        raise ConfigError(f"{name} must be a 64 character hex overlay address")
    return value


def _int(env: Mapping[str, str], name: str, default: Optional[int] = None) -> int:
    raw = (env.get(name) or "").strip()
    if not raw:
        if default is None:
            raise ConfigError(f"Missing {name} in environment")
        return default
    try:
        value = int(raw, 10)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 0:
        raise ConfigError(f"{name} must not be negative")
    return value


def load_logging_config(env: Optional[Mapping[str, str]] = None) -> LoggingConfig:
    if env is None:
        load_dotenv()
        env = os.environ
    return LoggingConfig(
        level=(env.get("LOG_LEVEL") or "WARNING").strip().upper(),
        file_path=(env.get("LOG_FILE") or "").strip() or None,
        max_bytes=_int(env, "LOG_MAX_BYTES", 5 * 1024 * 1024),
        backup_count=_int(env, "LOG_BACKUP_COUNT", 5),
    )


def load_settings(role: SessionRole, env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings for role, failing fast on anything missing.

    Only the overlays and postage batch the role actually uses are required.
    """

    if env is None:
        load_dotenv()
        env = os.environ

    depth = _int(env, "STORAGE_DEPTH")
    if depth > 256:
        raise ConfigError("STORAGE_DEPTH must be at most 256")

    cache_path = (env.get("MINED_RESULTS_FILE") or "").strip() or DEFAULT_CACHE_FILE

    return Settings(
        role=role,
        bee_api=_required(env, "BEE_API"),
        channel_id=_required(env, "GSOC_ID"),
        proximity_depth=depth,
        own_overlay=_overlay(env, "OWN_OVERLAY") if role.listens else None,
        remote_overlay=_overlay(env, "REMOTE_OVERLAY") if role.sends else None,
        batch_id=_required(env, "BATCH_ID") if role.sends else None,
        cache_path=os.path.abspath(cache_path),
        logging=load_logging_config(env),
    )
