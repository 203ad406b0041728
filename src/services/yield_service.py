"""
Yield recompute across the tracked liquid-staking asset universe.

Each asset's snapshot is stamped with the USD price of its base token.
One asset failing never stops the others.
"""

from __future__ import annotations

import logging
from datetime import datetime

import config
from src.data.models import NO_DATA, NoDataType, YieldSnapshot
from src.data.prices import PriceService
from src.data.store import RateHistoryStore
from src.yields.derivation import YieldDerivationEngine

logger = logging.getLogger(__name__)


class YieldService:
    """
    Parameters
    ----------
    store : RateHistoryStore
        Holds rate observations and receives derived snapshots.
    price_service : PriceService or None
        Base-token prices; built over ``store`` if omitted.
    assets : dict
        Symbol → {"base_token", "decimals", "coingecko_id"}.
    """

    def __init__(
        self,
        store: RateHistoryStore,
        price_service: PriceService | None = None,
        engine: YieldDerivationEngine | None = None,
        assets: dict[str, dict] = config.VTOKENS,
    ):
        self.store = store
        self.price_service = price_service or PriceService(store)
        self.engine = engine or YieldDerivationEngine(store)
        self.assets = assets

    async def base_price(self, asset: str) -> float:
        info = self.assets.get(asset)
        if info is None:
            return 0.0
        return await self.price_service.get_price(info["coingecko_id"])

    async def derive(
        self, asset: str, as_of: datetime | None = None
    ) -> YieldSnapshot | NoDataType:
        price = await self.base_price(asset)
        return self.engine.derive_yield(asset, as_of=as_of, base_price_usd=price)

    async def backfill(self, asset: str) -> int:
        price = await self.base_price(asset)
        return self.engine.backfill_yield_history(asset, base_price_usd=price)

    async def compute_all(self) -> dict[str, YieldSnapshot | NoDataType]:
        """Derive the latest snapshot for every tracked asset."""
        results: dict[str, YieldSnapshot | NoDataType] = {}
        for asset in self.assets:
            try:
                results[asset] = await self.derive(asset)
            except (ArithmeticError, ValueError) as e:
                logger.error("Yield computation failed for %s: %s", asset, e)
                results[asset] = NO_DATA

        computed = sum(1 for snap in results.values() if snap is not NO_DATA)
        logger.info("Computed yields for %d/%d assets", computed, len(self.assets))
        return results

    def latest_yields(self) -> list[dict]:
        """
        Latest stored yield of every tracked asset.

        Each entry carries a ``status``: ``"ok"`` with the snapshot,
        ``"rate_only"`` when observations exist but nothing was derived
        yet, ``"no_data"`` when neither exists, or ``"error"``.
        """
        overview = []
        for asset, info in self.assets.items():
            entry = {"asset": asset, "base_token": info["base_token"]}
            try:
                snapshot = self.store.latest_yield_snapshot(asset)
                if snapshot is not None:
                    entry.update(status="ok", snapshot=snapshot)
                else:
                    observation = self.store.latest_rate(asset)
                    if observation is None:
                        entry.update(status="no_data")
                    else:
                        entry.update(
                            status="rate_only",
                            rate=observation.rate,
                            timestamp=observation.timestamp,
                        )
            except (LookupError, ValueError) as e:
                logger.warning("Latest yield lookup failed for %s: %s", asset, e)
                entry.update(status="error", error=str(e))
            overview.append(entry)
        return overview
