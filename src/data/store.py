"""
Rate history store.

The engines only depend on the ``RateHistoryStore`` protocol; the
in-memory implementation here is what the services and tests run on.
Every write is an idempotent upsert keyed the same way the persistent
collections are indexed.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Protocol

import config
from src.data.models import (
    PricePoint,
    RateObservation,
    YieldRecord,
    YieldSnapshot,
    to_utc,
)

logger = logging.getLogger(__name__)


class RateHistoryStore(Protocol):
    """Read/write surface the yield engine and services need."""

    def query_rates(
        self,
        asset: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[RateObservation]:
        """Observations for ``asset`` in ``[start, end]``, ascending by time."""
        ...

    def query_yield_history(
        self, asset: str, start: date, end: date
    ) -> list[YieldRecord]:
        """One total-yield figure per UTC day (last snapshot of the day)."""
        ...

    def latest_rate(self, asset: str) -> RateObservation | None:
        ...

    def upsert_yield_snapshot(self, snapshot: YieldSnapshot) -> None:
        ...

    def query_yield_snapshots(
        self,
        asset: str,
        start: datetime | None = None,
        end: datetime | None = None,
        granularity: str = config.SNAPSHOT_GRANULARITY,
    ) -> list[YieldSnapshot]:
        """Snapshots of one granularity in ``[start, end]``, ascending by time."""
        ...

    def latest_yield_snapshot(
        self, asset: str, granularity: str = config.SNAPSHOT_GRANULARITY
    ) -> YieldSnapshot | None:
        ...

    def upsert_price(self, point: PricePoint) -> None:
        ...

    def latest_price(self, coin_id: str) -> PricePoint | None:
        ...


def bucket_timestamp(ts: datetime, bucket_seconds: int = config.RATE_BUCKET_SECONDS) -> datetime:
    """Floor ``ts`` to the start of its storage bucket."""
    epoch = int(to_utc(ts).timestamp())
    return datetime.fromtimestamp(epoch - epoch % bucket_seconds, tz=timezone.utc)


class InMemoryRateStore:
    """Dictionary-backed ``RateHistoryStore`` with price and snapshot collections."""

    def __init__(self, bucket_seconds: int = config.RATE_BUCKET_SECONDS):
        self.bucket_seconds = bucket_seconds
        self._rates: dict[tuple[str, datetime], RateObservation] = {}
        self._snapshots: dict[tuple[str, datetime, str], YieldSnapshot] = {}
        self._prices: dict[tuple[str, datetime], PricePoint] = {}

    # ── Rate observations ──

    def upsert_rate(self, observation: RateObservation) -> bool:
        """
        Record an observation, overwriting any earlier one in the same bucket.

        Returns False (and records nothing) when the token has zero issuance,
        since no meaningful rate exists yet.
        """
        if observation.total_issuance == 0:
            logger.debug("Skipping %s rate with zero issuance", observation.asset)
            return False
        key = (observation.asset, bucket_timestamp(observation.timestamp, self.bucket_seconds))
        self._rates[key] = observation
        return True

    def query_rates(
        self,
        asset: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[RateObservation]:
        start = to_utc(start) if start is not None else None
        end = to_utc(end) if end is not None else None
        rows = [
            obs
            for (key_asset, _), obs in self._rates.items()
            if key_asset == asset
            and (start is None or obs.timestamp >= start)
            and (end is None or obs.timestamp <= end)
        ]
        return sorted(rows, key=lambda obs: obs.timestamp)

    def latest_rate(self, asset: str) -> RateObservation | None:
        rates = self.query_rates(asset)
        return rates[-1] if rates else None

    def count_rates(self, asset: str | None = None) -> int:
        return sum(1 for key_asset, _ in self._rates if asset is None or key_asset == asset)

    # ── Yield snapshots ──

    def upsert_yield_snapshot(self, snapshot: YieldSnapshot) -> None:
        self._snapshots[snapshot.key] = snapshot

    def query_yield_snapshots(
        self,
        asset: str,
        start: datetime | None = None,
        end: datetime | None = None,
        granularity: str = config.SNAPSHOT_GRANULARITY,
    ) -> list[YieldSnapshot]:
        start = to_utc(start) if start is not None else None
        end = to_utc(end) if end is not None else None
        rows = [
            snap
            for snap in self._snapshots.values()
            if snap.asset == asset
            and snap.granularity == granularity
            and (start is None or snap.timestamp >= start)
            and (end is None or snap.timestamp <= end)
        ]
        return sorted(rows, key=lambda snap: snap.timestamp)

    def latest_yield_snapshot(
        self, asset: str, granularity: str = config.SNAPSHOT_GRANULARITY
    ) -> YieldSnapshot | None:
        snaps = self.query_yield_snapshots(asset, granularity=granularity)
        return snaps[-1] if snaps else None

    def count_yield_snapshots(self, asset: str | None = None) -> int:
        return sum(1 for key in self._snapshots if asset is None or key[0] == asset)

    def query_yield_history(
        self, asset: str, start: date, end: date
    ) -> list[YieldRecord]:
        daily: dict[date, float] = {}
        for snap in self.query_yield_snapshots(asset):
            day = snap.timestamp.date()
            if start <= day <= end:
                daily[day] = snap.total_yield_percent
        return [YieldRecord(day, value) for day, value in sorted(daily.items())]

    # ── Prices ──

    def upsert_price(self, point: PricePoint) -> None:
        self._prices[(point.coin_id, to_utc(point.timestamp))] = point

    def latest_price(self, coin_id: str) -> PricePoint | None:
        points = [p for (cid, _), p in self._prices.items() if cid == coin_id]
        if not points:
            return None
        return max(points, key=lambda p: p.timestamp)

    def query_prices(self, coin_id: str) -> list[PricePoint]:
        points = [p for (cid, _), p in self._prices.items() if cid == coin_id]
        return sorted(points, key=lambda p: p.timestamp)
