"""
Backtest orchestration: load yield history, then run the pure engine.

History for each distinct protocol is fetched once and concurrently.
A protocol whose history cannot be fetched contributes an empty curve,
so its allocations earn 0% and are reported as unresolved.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from datetime import date, datetime
from typing import Protocol

import config
from src.data.models import PoolHistoryRecord, PoolSnapshot
from src.data.pools_client import PoolsApiError, PoolsClient
from src.data.store import RateHistoryStore
from src.engine.backtest import run_backtest_request
from src.engine.requests import (
    BacktestRequest,
    SimulationRequest,
    validate_backtest_request,
    validate_simulation_request,
)
from src.engine.results import BacktestResult, SimplifiedResult
from src.engine.simulation import run_simulation_request
from src.engine.yield_curve import YieldCurve

logger = logging.getLogger(__name__)


class HistorySource(Protocol):
    async def fetch_pool_history(
        self,
        protocol: str | None = None,
        asset: str | None = None,
        pool_type: str | None = None,
        start: date | datetime | None = None,
        end: date | datetime | None = None,
    ) -> list[PoolHistoryRecord]:
        ...


class StoredYieldSource:
    """
    Pre-aggregated daily yields from the rate store.

    Every tracked asset is served under a single ``protocol`` name, so a
    backtest can run on ``YieldDerivationEngine`` output without the
    pools data server.
    """

    def __init__(
        self,
        store: RateHistoryStore,
        protocol: str = config.CHAIN,
        assets: Iterable[str] = config.VTOKENS,
    ):
        self.store = store
        self.protocol = protocol
        self._assets = {symbol.lower(): symbol for symbol in assets}

    def serves(self, protocol: str) -> bool:
        return protocol.lower() == self.protocol.lower()

    def yield_curve(self, asset_symbol: str, start: date, end: date) -> YieldCurve:
        asset = self._assets.get(asset_symbol.lower(), asset_symbol)
        return YieldCurve.from_records(self.store.query_yield_history(asset, start, end))


class BacktestService:
    """
    Parameters
    ----------
    history_source : HistorySource
        Provides ``fetch_pool_history``; defaults to the pools data server.
    pools_client : PoolsClient or None
        Provides ``fetch_pools`` for quick simulations.
    stored_yields : StoredYieldSource or None
        Answers for its own protocol from the store instead of
        ``history_source``.
    """

    def __init__(
        self,
        history_source: HistorySource | None = None,
        pools_client: PoolsClient | None = None,
        stored_yields: StoredYieldSource | None = None,
    ):
        self.pools_client = pools_client or PoolsClient()
        self.history_source = history_source or self.pools_client
        self.stored_yields = stored_yields

    def _is_stored(self, protocol: str) -> bool:
        return self.stored_yields is not None and self.stored_yields.serves(protocol)

    async def run_backtest(self, request: BacktestRequest) -> BacktestResult:
        validate_backtest_request(request)

        protocols = sorted(
            {a.protocol for a in request.allocations if not self._is_stored(a.protocol)}
        )
        logger.info(
            "Fetching yield history for %d protocol(s): %s → %s",
            len(protocols), request.start, request.end,
        )
        histories = await asyncio.gather(
            *(self._fetch_history(p, request.start, request.end) for p in protocols)
        )
        by_protocol = dict(zip(protocols, histories))

        curves = []
        for alloc in request.allocations:
            if self._is_stored(alloc.protocol):
                curve = self.stored_yields.yield_curve(
                    alloc.asset_symbol, request.start, request.end
                )
            else:
                asset = alloc.asset_symbol.lower()
                curve = YieldCurve.from_pool_history(
                    r for r in by_protocol[alloc.protocol] if r.asset_symbol.lower() == asset
                )
            if not curve.has_data:
                logger.warning(
                    "No historical data for %s/%s", alloc.protocol, alloc.asset_symbol
                )
            curves.append(curve)

        return run_backtest_request(request, curves)

    async def run_quick_simulation(self, request: SimulationRequest) -> SimplifiedResult:
        validate_simulation_request(request)
        pools = await self._fetch_pools(request)
        return run_simulation_request(request, pools)

    async def _fetch_history(
        self, protocol: str, start: date, end: date
    ) -> list[PoolHistoryRecord]:
        try:
            return await self.history_source.fetch_pool_history(
                protocol=protocol, start=start, end=end
            )
        except PoolsApiError as e:
            logger.warning("History fetch failed for %s: %s", protocol, e)
            return []

    async def _fetch_pools(self, request: SimulationRequest) -> list[PoolSnapshot]:
        try:
            return await self.pools_client.fetch_pools(
                start=request.start, end=request.end, limit=config.POOLS_SNAPSHOT_LIMIT
            )
        except PoolsApiError as e:
            logger.warning("Pool snapshot fetch failed: %s", e)
            return []
