"""Bee signal factory for swarmchat.

Both peers must construct the signal with the same consensus (channel id and
rule), so the consensus is built here in one place.
"""

from __future__ import annotations

import logging

from adapters.bee_signal import BeeInformationSignal
from core.config import Settings
from core.consensus import Consensus, assert_valid


def build_consensus(settings: Settings) -> Consensus:
    return Consensus(id=settings.channel_id, assert_record=assert_valid)


def build_signal(settings: Settings) -> BeeInformationSignal:
    """Create a Bee signal client from loaded settings."""

    logging.getLogger(__name__).info("Initializing Bee client for %s", settings.bee_api)

    return BeeInformationSignal(
        settings.bee_api,
        build_consensus(settings),
        postage=settings.batch_id,
    )
