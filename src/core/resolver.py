"""Get-or-mine resolution of channel resource ids.

Mining is expensive, and two peers only meet if they agree on the same
channel address, so every resolution consults the cache first and mining is
attempted at most once per distinct MiningInputs.
"""

from __future__ import annotations

import logging

from core.errors import ResolutionError
from core.hexcodec import encode_hex
from core.models import CacheRecord, MiningInputs, MiningResult
from core.ports import AddressCachePort, MinerPort

LOGGER = logging.getLogger(__name__)


class ChannelResolver:
    """Resolves MiningInputs to a MiningResult, reusing cached work."""

    def __init__(self, cache: AddressCachePort, miner: MinerPort) -> None:
        self._cache = cache
        self._miner = miner

    async def resolve(self, inputs: MiningInputs) -> MiningResult:
        """Return the cached result for inputs, mining and persisting on miss.

        Any failure is raised as ResolutionError; nothing is persisted unless
        mining succeeded.
        """

        try:
            existing = self._cache.find(inputs)
        except OSError as exc:
            raise ResolutionError(f"Failed to read address cache: {exc}") from exc

        if existing is not None:
            LOGGER.info(
                "Using cached channel address %s for overlay %s",
                encode_hex(existing.result.channel_address),
                inputs.target_prefix,
            )
            return existing.result

        LOGGER.info(
            "No cached channel for overlay %s (depth %s), mining a new one",
            inputs.target_prefix,
            inputs.proximity_depth,
        )
        try:
            result = await self._miner.mine(inputs.target_prefix, inputs.proximity_depth)
        except ResolutionError:
            raise
        except Exception as exc:
            raise ResolutionError(f"Mining failed for overlay {inputs.target_prefix}: {exc}") from exc

        try:
            self._cache.append(CacheRecord(inputs=inputs, result=result))
        except OSError as exc:
            raise ResolutionError(f"Failed to persist mined channel: {exc}") from exc

        LOGGER.info("New channel mined and saved: %s", encode_hex(result.channel_address))
        return result
