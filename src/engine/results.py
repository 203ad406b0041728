"""
Result containers for the backtester and the quick simulator.

Per-allocation breakdown entries are a tagged pair: a ``Resolved*`` entry
carries yield statistics, an ``UnresolvedAllocation`` carries the reason
no yield data was found. Every container is frozen and can be persisted
verbatim through ``to_dict``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Union

import pandas as pd


def _jsonable(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass(frozen=True)
class TimeSeriesPoint:
    date: date
    total_value_usd: float
    daily_return_percent: float


@dataclass(frozen=True)
class UnresolvedAllocation:
    """Allocation for which no yield data was found; it earns 0%."""

    protocol: str
    asset_symbol: str
    allocation_percent: float
    allocated_usd: float
    final_usd: float
    return_usd: float
    return_percent: float
    reason: str
    pool_type: str = "unknown"
    kind: str = field(default="unresolved", init=False)

    @property
    def has_historical_data(self) -> bool:
        return False


# ---------------------------------------------------------------------------
# Backtest
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ResolvedAllocation:
    protocol: str
    asset_symbol: str
    pool_type: str
    allocation_percent: float
    allocated_usd: float
    avg_yield_percent: float
    min_yield_percent: float
    max_yield_percent: float
    il_loss_usd: float
    final_usd: float
    return_usd: float
    return_percent: float
    data_points_used: int
    kind: str = field(default="resolved", init=False)

    @property
    def has_historical_data(self) -> bool:
        return True


AllocationBreakdown = Union[ResolvedAllocation, UnresolvedAllocation]


@dataclass(frozen=True)
class BacktestSummary:
    initial_amount_usd: float
    final_amount_usd: float
    total_return_usd: float
    total_return_percent: float
    annualized_return_percent: float
    max_drawdown_percent: float  # reported as a negative number
    sharpe_ratio: float
    rebalance_count: int
    fees_paid_usd: float
    duration_days: int
    start: date
    end: date
    il_included: bool


@dataclass(frozen=True)
class BacktestResult:
    """Container for all backtest outputs."""

    summary: BacktestSummary
    breakdown: tuple[AllocationBreakdown, ...]
    time_series: tuple[TimeSeriesPoint, ...]

    @property
    def equity_curve(self) -> pd.Series:
        return pd.Series(
            [p.total_value_usd for p in self.time_series],
            index=pd.DatetimeIndex([p.date for p in self.time_series]),
            name="equity",
        )

    @property
    def daily_returns(self) -> pd.Series:
        """Daily returns as decimals, day 0 excluded."""
        return pd.Series(
            [p.daily_return_percent / 100 for p in self.time_series[1:]],
            index=pd.DatetimeIndex([p.date for p in self.time_series[1:]]),
            name="return",
        )

    def to_dict(self) -> dict:
        return _jsonable(asdict(self))


# ---------------------------------------------------------------------------
# Quick simulation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SimulatedAllocation:
    protocol: str
    asset_symbol: str
    network: str
    pool_type: str
    allocation_percent: float
    allocated_usd: float
    yield_used_percent: float
    tvl_usd: float
    final_usd: float
    return_usd: float
    return_percent: float
    annualized_yield_percent: float
    kind: str = field(default="resolved", init=False)

    @property
    def has_historical_data(self) -> bool:
        return True


SimulationBreakdown = Union[SimulatedAllocation, UnresolvedAllocation]


@dataclass(frozen=True)
class SimulationSummary:
    initial_amount_usd: float
    final_amount_usd: float
    total_return_usd: float
    total_return_percent: float
    annualized_yield_percent: float
    weighted_avg_yield_percent: float
    duration_days: float
    start: datetime
    end: datetime


@dataclass(frozen=True)
class SimplifiedResult:
    summary: SimulationSummary
    breakdown: tuple[SimulationBreakdown, ...]

    def to_dict(self) -> dict:
        return _jsonable(asdict(self))
