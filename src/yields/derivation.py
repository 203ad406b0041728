"""
Yield derivation from exchange-rate history.

A liquid-staking token's exchange rate only grows as rewards accrue, so
the rate change over a trailing window annualises to the staking yield:

    annualized = (rate_now / rate_then) ** (365 / days_between) - 1

Both a 7-day and a 30-day window are computed; the 7-day figure wins
whenever it is positive. The composite yield compounds the staking
component with an auxiliary (farming) component, which is zero until a
second yield source is indexed.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

import numpy as np
import pandas as pd

import config
from src.data.models import NO_DATA, NoDataType, RateObservation, YieldSnapshot, to_utc
from src.data.store import RateHistoryStore

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86_400


# ---------------------------------------------------------------------------
# Pure yield arithmetic
# ---------------------------------------------------------------------------

def annualize_rate_change(
    current_rate: float,
    reference_rate: float,
    days_between: float,
    days_per_year: int = config.DAYS_PER_YEAR,
) -> float:
    """
    Annualised yield (decimal) implied by a rate move over ``days_between``.

    Returns 0 for a non-positive reference rate, a flat or falling rate,
    or a non-positive interval.
    """
    if reference_rate <= 0 or current_rate <= reference_rate or days_between <= 0:
        return 0.0
    period_return = current_rate / reference_rate - 1.0
    return (1.0 + period_return) ** (days_per_year / days_between) - 1.0


def select_staking_yield(yield_short: float, yield_long: float) -> float:
    """Short window if positive, else long window if positive, else 0."""
    if yield_short > 0:
        return yield_short
    if yield_long > 0:
        return yield_long
    return 0.0


def compose_total_yield(staking_percent: float, auxiliary_percent: float) -> float:
    """Compound two yield components (both in percent) into one percent figure."""
    return ((1.0 + staking_percent / 100) * (1.0 + auxiliary_percent / 100) - 1.0) * 100


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class YieldDerivationEngine:
    """
    Derives ``YieldSnapshot`` records from a store's rate observations and
    writes them back to the same store.

    Parameters
    ----------
    store : RateHistoryStore
        Any object with ``query_rates``, ``upsert_yield_snapshot`` and
        ``query_yield_snapshots``.
    windows : tuple[int, int]
        (short, long) trailing windows in days.
    granularity : str
        Granularity tag written on every snapshot.
    """

    def __init__(
        self,
        store: RateHistoryStore,
        windows: tuple[int, int] = config.YIELD_WINDOWS_DAYS,
        granularity: str = config.SNAPSHOT_GRANULARITY,
        decimals: int = config.OUTPUT_DECIMALS,
    ):
        self.store = store
        self.short_window, self.long_window = windows
        self.granularity = granularity
        self.decimals = decimals

    # ── Single point ──

    def derive_yield(
        self,
        asset: str,
        as_of: datetime | None = None,
        base_price_usd: float = 0.0,
        auxiliary_yield_percent: float = 0.0,
    ) -> YieldSnapshot | NoDataType:
        """
        Derive and store the yield snapshot for the latest observation at or
        before ``as_of`` (default: the latest stored observation).

        Returns ``NO_DATA`` when the asset has no observations yet.
        """
        end = to_utc(as_of) if as_of is not None else None
        history = self.store.query_rates(asset, end=end)
        if not history:
            logger.warning("No exchange rate data for %s", asset)
            return NO_DATA

        index = pd.DatetimeIndex([obs.timestamp for obs in history])
        snapshot = self._snapshot_at(
            len(history) - 1, history, index, base_price_usd, auxiliary_yield_percent
        )
        self.store.upsert_yield_snapshot(snapshot)

        logger.debug(
            "%s yield: staking=%.2f%% | 7d=%.2f%% | 30d=%.2f%%",
            asset,
            snapshot.staking_yield_percent,
            snapshot.yield_7d,
            snapshot.yield_30d,
        )
        return snapshot

    # ── Batch backfill ──

    def backfill_yield_history(
        self,
        asset: str,
        base_price_usd: float = 0.0,
        auxiliary_yield_percent: float = 0.0,
    ) -> int:
        """
        Recompute one snapshot per calendar day (latest observation of each
        UTC day) across the asset's whole rate history.

        Days whose staking yield is not positive (insufficient history) are
        skipped. Returns the number of snapshots written.
        """
        logger.info("Starting historical yield backfill for %s...", asset)
        history = self.store.query_rates(asset)
        if not history:
            logger.warning("No exchange rate data for %s", asset)
            return 0

        index = pd.DatetimeIndex([obs.timestamp for obs in history])
        last_of_day = ~index.normalize().duplicated(keep="last")

        count = 0
        for position in np.flatnonzero(last_of_day):
            snapshot = self._snapshot_at(
                int(position), history, index, base_price_usd, auxiliary_yield_percent
            )
            if snapshot.staking_yield_percent > 0:
                self.store.upsert_yield_snapshot(snapshot)
                count += 1

        logger.info("Backfilled %d historical yield records for %s", count, asset)
        return count

    # ── History query ──

    def yield_history(
        self,
        asset: str,
        start: datetime,
        end: datetime,
        granularity: str = "daily",
    ) -> list[YieldSnapshot]:
        """
        Stored snapshots in ``[start, end]``.

        ``"daily"`` keeps the last snapshot of each UTC day; ``"hourly"``
        returns every stored snapshot.
        """
        if granularity not in ("daily", "hourly"):
            raise ValueError(f"Unknown granularity: '{granularity}'")

        snapshots = self.store.query_yield_snapshots(
            asset, start, end, granularity=self.granularity
        )
        if granularity == "hourly":
            return snapshots

        by_day: dict[date, YieldSnapshot] = {}
        for snap in snapshots:
            by_day[snap.timestamp.date()] = snap
        return list(by_day.values())

    # ── Internals ──

    def _reference(
        self,
        history: list[RateObservation],
        index: pd.DatetimeIndex,
        cutoff: datetime,
    ) -> RateObservation | None:
        """Latest observation at or before ``cutoff``."""
        position = int(index.searchsorted(pd.Timestamp(cutoff), side="right")) - 1
        return history[position] if position >= 0 else None

    def _window_yield(
        self,
        current: RateObservation,
        history: list[RateObservation],
        index: pd.DatetimeIndex,
        days: int,
    ) -> float:
        reference = self._reference(history, index, current.timestamp - timedelta(days=days))
        if reference is None:
            return 0.0
        days_between = (current.timestamp - reference.timestamp).total_seconds() / SECONDS_PER_DAY
        return annualize_rate_change(current.rate, reference.rate, days_between)

    def _snapshot_at(
        self,
        position: int,
        history: list[RateObservation],
        index: pd.DatetimeIndex,
        base_price_usd: float,
        auxiliary_yield_percent: float,
    ) -> YieldSnapshot:
        current = history[position]
        yield_short = self._window_yield(current, history, index, self.short_window)
        yield_long = self._window_yield(current, history, index, self.long_window)

        staking_percent = select_staking_yield(yield_short, yield_long) * 100
        total_percent = compose_total_yield(staking_percent, auxiliary_yield_percent)

        return YieldSnapshot(
            asset=current.asset,
            timestamp=current.timestamp,
            yield_7d=round(yield_short * 100, self.decimals),
            yield_30d=round(yield_long * 100, self.decimals),
            staking_yield_percent=round(staking_percent, self.decimals),
            auxiliary_yield_percent=round(auxiliary_yield_percent, self.decimals),
            total_yield_percent=round(total_percent, self.decimals),
            rate_at_snapshot=current.rate,
            base_price_usd=base_price_usd,
            granularity=self.granularity,
            block_number=current.block_number,
        )
