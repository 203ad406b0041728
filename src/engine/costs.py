"""
Rebalance cost model.

Moving capital between yield sources on different parachains costs a
flat cross-chain (XCM) transfer fee per hop. A rebalance across N
distinct sources needs N - 1 hops, however many allocations each source
holds.
"""

from __future__ import annotations

from collections.abc import Iterable

import config


class RebalanceFeeModel:
    """
    Flat fee per cross-source hop, charged once per rebalance event.

    Parameters
    ----------
    fee_per_hop_usd : float
        USD charged for each hop.
    """

    def __init__(self, fee_per_hop_usd: float = config.DEFAULT_XCM_FEE_USD):
        if fee_per_hop_usd < 0:
            raise ValueError("fee_per_hop_usd must be non-negative")
        self.fee_per_hop_usd = fee_per_hop_usd

    @staticmethod
    def hops(sources: Iterable[str]) -> int:
        """Number of transfers needed to touch every distinct source."""
        return max(0, len(set(sources)) - 1)

    def rebalance_fee(self, sources: Iterable[str]) -> float:
        """USD cost of one rebalance across ``sources``."""
        return self.fee_per_hop_usd * self.hops(sources)

    def net_value_after_rebalance(self, total_value: float, sources: Iterable[str]) -> float:
        """Portfolio value left to redistribute after paying the rebalance fee."""
        return total_value - self.rebalance_fee(sources)
