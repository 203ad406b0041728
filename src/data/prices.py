"""
USD price lookups for base tokens.

Lookups run down an ordered list of sources (DeFiLlama, then CoinGecko,
then the last price persisted in the store) and stop at the first
positive price. Network hits land in a process-wide TTL cache; the
cache is only a hint, so two concurrent misses may both go upstream.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Protocol

import aiohttp

import config
from src.data import http
from src.data.models import PricePoint
from src.data.store import RateHistoryStore, bucket_timestamp

logger = logging.getLogger(__name__)

FETCH_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, KeyError, TypeError, ValueError)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

class PriceCache:
    """
    coin id → (price, fetched_at) with a fixed time-to-live.

    Parameters
    ----------
    ttl_seconds : float
        Entries older than this are treated as missing.
    clock : callable
        Returns the current time in seconds; injectable for tests.
    """

    def __init__(
        self,
        ttl_seconds: float = config.PRICE_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: dict[str, tuple[float, float]] = {}
        self._lock = threading.Lock()

    def get(self, coin_id: str) -> float | None:
        with self._lock:
            entry = self._entries.get(coin_id)
        if entry is None:
            return None
        price, fetched_at = entry
        if self.clock() - fetched_at >= self.ttl_seconds:
            return None
        return price

    def set(self, coin_id: str, price: float) -> None:
        with self._lock:
            self._entries[coin_id] = (price, self.clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

class PriceSource(Protocol):
    name: str
    networked: bool

    async def fetch(self, coin_id: str) -> float | None:
        ...


class DefiLlamaPriceSource:
    name = "defillama"
    networked = True

    def __init__(
        self,
        base_url: str = config.DEFILLAMA_BASE_URL,
        timeout: float = config.PRICE_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def fetch(self, coin_id: str) -> float | None:
        coin_key = f"coingecko:{coin_id}"
        data = await http.get_json(
            f"{self.base_url}/prices/current/{coin_key}", timeout=self.timeout
        )
        return ((data or {}).get("coins") or {}).get(coin_key, {}).get("price")


class CoinGeckoPriceSource:
    name = "coingecko"
    networked = True

    def __init__(
        self,
        base_url: str = config.COINGECKO_BASE_URL,
        timeout: float = config.PRICE_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def fetch(self, coin_id: str) -> float | None:
        data = await http.get_json(
            f"{self.base_url}/simple/price",
            params={"ids": coin_id, "vs_currencies": "usd"},
            timeout=self.timeout,
        )
        return ((data or {}).get(coin_id) or {}).get("usd")


class StoredPriceSource:
    """Last price persisted in the store, however old."""

    name = "store"
    networked = False

    def __init__(self, store: RateHistoryStore) -> None:
        self.store = store

    async def fetch(self, coin_id: str) -> float | None:
        point = self.store.latest_price(coin_id)
        return point.price_usd if point is not None else None


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class PriceService:
    """
    Resolve USD prices through an ordered fallback chain.

    Parameters
    ----------
    store : RateHistoryStore or None
        Receives a price point whenever the primary source answers, and
        backs the last-known fallback.
    sources : sequence of PriceSource or None
        Lookup order. Defaults to DeFiLlama → CoinGecko → store.
    cache : PriceCache or None
        Shared TTL cache; a fresh one is created if omitted.
    """

    def __init__(
        self,
        store: RateHistoryStore | None = None,
        sources: Sequence[PriceSource] | None = None,
        cache: PriceCache | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        if sources is None:
            sources = [DefiLlamaPriceSource(), CoinGeckoPriceSource()]
            if store is not None:
                sources.append(StoredPriceSource(store))
        self.sources = list(sources)
        self.cache = cache or PriceCache()
        self.now = now

    async def get_price(self, coin_id: str) -> float:
        """USD price of ``coin_id``; 0.0 when every source fails."""
        cached = self.cache.get(coin_id)
        if cached is not None:
            return cached

        for position, source in enumerate(self.sources):
            try:
                price = await source.fetch(coin_id)
            except FETCH_ERRORS as e:
                logger.warning("%s price fetch failed for %s: %s", source.name, coin_id, e)
                continue
            if not price or price <= 0:
                continue

            price = float(price)
            if source.networked:
                self.cache.set(coin_id, price)
                if position == 0 and self.store is not None:
                    self.store.upsert_price(
                        PricePoint(coin_id, bucket_timestamp(self.now()), price, source.name)
                    )
            return price

        logger.warning("No price available for %s", coin_id)
        return 0.0

    async def fetch_historical_prices(
        self,
        coin_id: str,
        start: datetime,
        end: datetime,
        base_url: str = config.DEFILLAMA_BASE_URL,
        timeout: float = config.PRICE_HISTORY_TIMEOUT,
    ) -> int:
        """
        Load a daily DeFiLlama price chart into the store.

        Returns the number of points saved; 0 on any failure.
        """
        if self.store is None:
            raise ValueError("fetch_historical_prices needs a store")

        logger.info("Fetching historical prices for %s...", coin_id)
        coin_key = f"coingecko:{coin_id}"
        span = max(1, (end - start).days + 1)
        try:
            data = await http.get_json(
                f"{base_url.rstrip('/')}/chart/{coin_key}",
                params={
                    "start": str(int(start.timestamp())),
                    "span": str(span),
                    "period": "1d",
                },
                timeout=timeout,
            )
            prices = ((data or {}).get("coins") or {}).get(coin_key, {}).get("prices") or []
            for item in prices:
                self.store.upsert_price(
                    PricePoint(
                        coin_id,
                        datetime.fromtimestamp(int(item["timestamp"]), tz=timezone.utc),
                        float(item["price"]),
                        "defillama",
                    )
                )
        except FETCH_ERRORS as e:
            logger.error("Historical price fetch failed for %s: %s", coin_id, e)
            return 0

        logger.info("Saved %d historical prices for %s", len(prices), coin_id)
        return len(prices)
