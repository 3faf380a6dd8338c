"""Core configuration dataclasses.

We keep environment parsing outside the core (see settings.py), but these
dataclasses define the shape the core expects so adapters and the app layer
can build them once at startup and pass them down explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.models import MiningInputs


class SessionRole(str, Enum):
    """Which channels a session brings up."""

    LISTEN = "listen"
    SEND = "send"
    CHAT = "chat"

    @property
    def listens(self) -> bool:
        return self in (SessionRole.LISTEN, SessionRole.CHAT)

    @property
    def sends(self) -> bool:
        return self in (SessionRole.SEND, SessionRole.CHAT)


@dataclass(frozen=True)
class LoggingConfig:
    """Logging settings consumed by the app layer."""

    level: str = "WARNING"
    file_path: Optional[str] = None
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 5


@dataclass(frozen=True)
class Settings:
    """Everything the process needs, read once from the environment."""

    role: SessionRole
    bee_api: str
    channel_id: str
    proximity_depth: int
    own_overlay: Optional[str]
    remote_overlay: Optional[str]
    batch_id: Optional[str]
    cache_path: str
    logging: LoggingConfig = LoggingConfig()

    def inbound_inputs(self) -> Optional[MiningInputs]:
        if not self.role.listens or not self.own_overlay:
            return None
        return MiningInputs(self.channel_id, self.proximity_depth, self.own_overlay)

    def outbound_inputs(self) -> Optional[MiningInputs]:
        if not self.role.sends or not self.remote_overlay:
            return None
        return MiningInputs(self.channel_id, self.proximity_depth, self.remote_overlay)
