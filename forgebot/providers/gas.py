"""Gas tiers derived from ``eth_feeHistory``.

Each priority maps to a reward percentile over the last few blocks. The
estimate never fails: on any provider error the configured conservative
fallback is returned instead.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Protocol

from ..config import settings
from ..core.execution.models import GasParams
from ..core.flow.errors import ExternalServiceError
from ..core.recovery import RetryConfig, retry_read
from ..services.units import gwei_to_wei

logger = logging.getLogger(__name__)

FEE_HISTORY_BLOCKS = 5


class FeeHistorySource(Protocol):
    async def fee_history(self, percentiles, block_count: int = FEE_HISTORY_BLOCKS) -> Dict: ...


def fallback_gas_params() -> GasParams:
    return GasParams(
        fee_per_unit=gwei_to_wei(settings.gas_fallback_price_gwei),
        max_fee_per_unit=gwei_to_wei(settings.gas_fallback_max_fee_gwei),
        max_priority_fee_per_unit=gwei_to_wei(settings.gas_fallback_max_priority_fee_gwei),
    )


class GasTierProvider:
    def __init__(
        self,
        rpc: FeeHistorySource,
        *,
        percentiles: Optional[Dict[str, int]] = None,
        retry: Optional[RetryConfig] = None,
    ) -> None:
        self.rpc = rpc
        self.percentiles = percentiles or dict(settings.gas_priority_percentiles)
        self.retry = retry

    async def gas_params(self, priority: str = "medium") -> GasParams:
        percentile = self.percentiles.get(priority, self.percentiles.get("medium", 50))
        try:
            history = await retry_read(
                lambda: self.rpc.fee_history([percentile], FEE_HISTORY_BLOCKS),
                name="fee_history",
                config=self.retry,
            )
            return self._from_history(history)
        except (ExternalServiceError, KeyError, IndexError, TypeError, ValueError) as exc:
            logger.warning(f"Gas estimate for {priority} unavailable, using fallback: {exc!r}")
            return fallback_gas_params()

    @staticmethod
    def _from_history(history: Dict) -> GasParams:
        """EIP-1559 params: next base fee plus the mean tier reward; max fee allows a 2x base fee rise."""
        base_fee = int(history["baseFeePerGas"][-1], 16)
        rewards = [int(block[0], 16) for block in history.get("reward") or [] if block]
        if not rewards:
            raise ValueError("fee history has no rewards")
        priority_fee = sum(rewards) // len(rewards)

        return GasParams(
            fee_per_unit=base_fee + priority_fee,
            max_fee_per_unit=2 * base_fee + priority_fee,
            max_priority_fee_per_unit=priority_fee,
        )


__all__ = ["GasTierProvider", "fallback_gas_params"]
