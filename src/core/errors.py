"""Error taxonomy shared by the core and adapters."""

from __future__ import annotations


class SwarmChatError(Exception):
    """Base class for all swarmchat errors."""


class ConfigError(SwarmChatError):
    """Required configuration is missing or malformed."""


class ValidationError(SwarmChatError):
    """A payload does not satisfy the consensus rule."""


class ResolutionError(SwarmChatError):
    """A channel could not be resolved or subscribed during startup."""


class TransmissionError(SwarmChatError):
    """The node refused or failed to accept an operation."""


class DeliveryRejection(SwarmChatError):
    """An inbound payload was dropped before reaching the session."""
