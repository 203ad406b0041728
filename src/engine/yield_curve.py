"""
Per-day annualized yield lookup for one allocation.

A curve holds at most one yield figure per UTC calendar day. Looking up
a day resolves, in order: the exact day, the nearest earlier day with
data, the earliest day with data, and finally 0 when the curve is empty.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

import numpy as np
import pandas as pd

from src.data.models import PoolHistoryRecord, YieldRecord


def _day(value) -> pd.Timestamp:
    """Timezone-naive midnight timestamp of the value's UTC calendar day."""
    ts = pd.Timestamp(value)
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts.normalize()


class YieldCurve:
    """
    Daily annualized yield (percent) for one asset at one source.

    Parameters
    ----------
    daily : pd.Series
        Yield percent indexed by day. Duplicate days keep the last value.
    """

    def __init__(self, daily: pd.Series | None = None):
        if daily is None or daily.empty:
            self.daily = pd.Series(dtype=float)
        else:
            daily = daily.astype(float)
            daily.index = pd.DatetimeIndex([_day(d) for d in daily.index])
            daily = daily[~daily.index.duplicated(keep="last")]
            self.daily = daily.sort_index()

    # ── Constructors ──

    @classmethod
    def empty(cls) -> YieldCurve:
        return cls()

    @classmethod
    def from_pool_history(cls, records: Iterable[PoolHistoryRecord]) -> YieldCurve:
        """Build from raw pool history; the latest record of a day wins."""
        ordered = sorted(records, key=lambda r: r.data_timestamp)
        if not ordered:
            return cls()
        return cls(
            pd.Series(
                [r.effective_yield for r in ordered],
                index=[r.data_timestamp for r in ordered],
            )
        )

    @classmethod
    def from_records(cls, records: Iterable[YieldRecord]) -> YieldCurve:
        """Build from pre-aggregated daily records."""
        records = list(records)
        if not records:
            return cls()
        return cls(
            pd.Series(
                [r.annualized_yield_percent for r in records],
                index=[r.date for r in records],
            )
        )

    # ── Lookup ──

    @property
    def has_data(self) -> bool:
        return not self.daily.empty

    def __len__(self) -> int:
        return len(self.daily)

    def lookup(self, day: date | pd.Timestamp) -> float:
        """Yield percent for a single day under the fallback policy."""
        if self.daily.empty:
            return 0.0
        key = _day(day)
        if key in self.daily.index:
            return float(self.daily.loc[key])
        past = self.daily.loc[:key]
        if not past.empty:
            return float(past.iloc[-1])
        return float(self.daily.iloc[0])

    def align(self, days: pd.DatetimeIndex) -> np.ndarray:
        """
        Yield percent for every day in ``days`` (vectorised ``lookup``).

        Forward-fill over the union of known and requested days gives the
        nearest earlier value; back-fill covers days before the first one.
        """
        days = pd.DatetimeIndex([_day(d) for d in days])
        if self.daily.empty:
            return np.zeros(len(days))
        combined = self.daily.reindex(self.daily.index.union(days)).ffill().bfill()
        return combined.reindex(days).to_numpy(dtype=float)
