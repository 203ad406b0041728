"""
Day-by-day yield portfolio backtester.

Daily cycle: look up each allocation's yield → accrue/compound →
rebalance to target weights (minus cross-source fees) → record the
portfolio value → track drawdown.
All history must already be loaded into ``YieldCurve`` objects; the
loop itself performs no I/O.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date

import numpy as np
import pandas as pd

import config
from src.engine.costs import RebalanceFeeModel
from src.engine.requests import (
    AllocationSpec,
    BacktestOptions,
    BacktestRequest,
    validate_backtest_request,
)
from src.engine.results import (
    AllocationBreakdown,
    BacktestResult,
    BacktestSummary,
    ResolvedAllocation,
    TimeSeriesPoint,
    UnresolvedAllocation,
)
from src.engine.yield_curve import YieldCurve
from src.risk.impermanent_loss import calculate_il, estimate_price_ratio, is_liquidity_pool
from src.risk.metrics import DrawdownTracker, annualized_return, sharpe_ratio

logger = logging.getLogger(__name__)

DECIMALS = config.OUTPUT_DECIMALS


# ---------------------------------------------------------------------------
# Per-allocation state
# ---------------------------------------------------------------------------

@dataclass
class AllocationState:
    """Mutable state of one allocation during a single run."""

    spec: AllocationSpec
    value_usd: float
    has_data: bool
    pending_rate: float = 0.0
    yield_samples: list[float] = field(default_factory=list)
    il_loss_usd: float = 0.0

    def accrue(self, daily_rate: float) -> None:
        self.pending_rate += daily_rate

    def credit(self) -> None:
        """Compound any accrued yield into the position value."""
        if self.pending_rate:
            self.value_usd *= 1.0 + self.pending_rate
            self.pending_rate = 0.0


# ---------------------------------------------------------------------------
# Calendar and series helpers
# ---------------------------------------------------------------------------

def build_day_list(start: date, end: date) -> pd.DatetimeIndex:
    """Inclusive sequence of UTC calendar days from ``start`` to ``end``."""
    return pd.date_range(pd.Timestamp(start), pd.Timestamp(end), freq="D")


def downsample(
    points: Sequence[TimeSeriesPoint],
    max_points: int = config.MAX_TIMESERIES_POINTS,
) -> list[TimeSeriesPoint]:
    """
    Uniform stride sampling down to at most ``max_points``.

    The first and last points are always kept.
    """
    points = list(points)
    if len(points) <= max_points:
        return points
    step = math.ceil(len(points) / max_points)
    sampled = points[::step]
    if sampled[-1] is not points[-1]:
        if len(sampled) < max_points:
            sampled.append(points[-1])
        else:
            sampled[-1] = points[-1]
    return sampled


def _should_rebalance(day_index: int, interval_days: int) -> bool:
    return interval_days > 0 and day_index > 0 and day_index % interval_days == 0


def _should_compound(day_index: int, frequency_days: int, last_index: int) -> bool:
    return day_index > 0 and (day_index % frequency_days == 0 or day_index == last_index)


# ---------------------------------------------------------------------------
# Core backtester
# ---------------------------------------------------------------------------

def run_backtest(
    initial_amount_usd: float,
    start: date,
    end: date,
    allocations: Sequence[AllocationSpec],
    curves: Sequence[YieldCurve],
    options: BacktestOptions | None = None,
) -> BacktestResult:
    """
    Simulate a yield portfolio day by day.

    Parameters
    ----------
    initial_amount_usd : float
        Starting capital.
    start, end : date
        Inclusive UTC calendar-day range.
    allocations : sequence of AllocationSpec
        Target percentages, summing to 100.
    curves : sequence of YieldCurve
        One yield lookup per allocation, in the same order. An empty curve
        means no history was found; that allocation earns 0%.
    options : BacktestOptions or None
        Rebalancing, fee, compounding and impermanent-loss settings.

    Returns
    -------
    BacktestResult
    """
    options = options or BacktestOptions()
    allocations = tuple(allocations)
    validate_backtest_request(
        BacktestRequest(initial_amount_usd, start, end, allocations, options)
    )
    if len(curves) != len(allocations):
        raise ValueError(
            f"Expected {len(allocations)} yield curves, got {len(curves)}"
        )

    days = build_day_list(start, end)
    duration_days = len(days) - 1
    last_index = len(days) - 1
    fee_model = RebalanceFeeModel(options.xcm_fee_usd)
    sources = [a.protocol for a in allocations]

    # --- Initialize state ---
    states = [
        AllocationState(
            spec=alloc,
            value_usd=initial_amount_usd * (alloc.percentage / 100),
            has_data=curve.has_data,
        )
        for alloc, curve in zip(allocations, curves)
    ]
    yield_table = [curve.align(days) for curve in curves]

    # --- Result accumulators ---
    points: list[TimeSeriesPoint] = []
    tracker = DrawdownTracker()
    fees_paid_usd = 0.0
    rebalance_count = 0
    prev_total = initial_amount_usd

    for i, day in enumerate(days):
        # ── 1. Accrue yield ──
        for state, yields in zip(states, yield_table):
            yield_percent = float(yields[i])
            state.yield_samples.append(yield_percent)
            if i > 0:
                state.accrue(yield_percent / 100 / config.DAYS_PER_YEAR)
                if _should_compound(i, options.compound_frequency_days, last_index):
                    state.credit()

        # ── 2. Rebalance to target weights ──
        if _should_rebalance(i, options.rebalance_interval_days):
            for state in states:
                state.credit()
            total_before = sum(s.value_usd for s in states)
            fee = fee_model.rebalance_fee(sources)
            remaining = total_before - fee
            for state in states:
                state.value_usd = remaining * (state.spec.percentage / 100)
            fees_paid_usd += fee
            rebalance_count += 1
            logger.debug(
                "Rebalance on %s: total=%.2f, fees=%.2f", day.date(), total_before, fee
            )

        # ── 3. Log daily state ──
        total = sum(s.value_usd for s in states)
        if i == 0 or prev_total <= 0:
            daily_return_percent = 0.0
        else:
            daily_return_percent = (total - prev_total) / prev_total * 100
        points.append(
            TimeSeriesPoint(
                date=day.date(),
                total_value_usd=round(total, DECIMALS),
                daily_return_percent=round(daily_return_percent, DECIMALS),
            )
        )
        tracker.update(total)
        prev_total = total

    # --- Impermanent loss (applied once, at the end) ---
    if options.include_impermanent_loss:
        for state in states:
            if not is_liquidity_pool(state.spec.pool_type):
                continue
            price_ratio = estimate_price_ratio(state.yield_samples)
            il_loss = state.value_usd * abs(calculate_il(price_ratio))
            state.il_loss_usd = il_loss
            state.value_usd -= il_loss
            logger.debug(
                "[%s] IL: price_ratio=%.3f, loss=$%.2f",
                state.spec.asset_symbol, price_ratio, il_loss,
            )

    # --- Summary ---
    final_total = sum(s.value_usd for s in states)
    total_return_usd = final_total - initial_amount_usd
    daily_returns = pd.Series(
        [p.daily_return_percent / 100 for p in points[1:]], dtype=float
    )

    summary = BacktestSummary(
        initial_amount_usd=initial_amount_usd,
        final_amount_usd=round(final_total, DECIMALS),
        total_return_usd=round(total_return_usd, DECIMALS),
        total_return_percent=round(total_return_usd / initial_amount_usd * 100, DECIMALS),
        annualized_return_percent=round(
            annualized_return(final_total, initial_amount_usd, duration_days) * 100, DECIMALS
        ),
        max_drawdown_percent=round(-tracker.max_drawdown_percent, DECIMALS) + 0.0,
        sharpe_ratio=round(sharpe_ratio(daily_returns, options.risk_free_rate), DECIMALS),
        rebalance_count=rebalance_count,
        fees_paid_usd=round(fees_paid_usd, DECIMALS),
        duration_days=duration_days,
        start=start,
        end=end,
        il_included=options.include_impermanent_loss,
    )

    result = BacktestResult(
        summary=summary,
        breakdown=tuple(_breakdown(state, initial_amount_usd) for state in states),
        time_series=tuple(downsample(points, options.max_points)),
    )

    logger.info(
        "Backtest complete: %d days | Total return: %.2f%% | Max DD: %.2f%% | Sharpe: %.3f",
        duration_days,
        summary.total_return_percent,
        summary.max_drawdown_percent,
        summary.sharpe_ratio,
    )

    return result


def run_backtest_request(
    request: BacktestRequest, curves: Sequence[YieldCurve]
) -> BacktestResult:
    """``run_backtest`` for a prepared request."""
    return run_backtest(
        request.initial_amount_usd,
        request.start,
        request.end,
        request.allocations,
        curves,
        request.options,
    )


def _breakdown(state: AllocationState, initial_amount_usd: float) -> AllocationBreakdown:
    spec = state.spec
    allocated_usd = initial_amount_usd * (spec.percentage / 100)
    return_usd = state.value_usd - allocated_usd
    return_percent = return_usd / allocated_usd * 100 if allocated_usd > 0 else 0.0

    if not state.has_data:
        return UnresolvedAllocation(
            protocol=spec.protocol,
            asset_symbol=spec.asset_symbol,
            pool_type=spec.pool_type or "unknown",
            allocation_percent=spec.percentage,
            allocated_usd=round(allocated_usd, DECIMALS),
            final_usd=round(state.value_usd, DECIMALS),
            return_usd=round(return_usd, DECIMALS),
            return_percent=round(return_percent, DECIMALS),
            reason=f"No historical yield data found for {spec.protocol}/{spec.asset_symbol}",
        )

    samples = np.asarray(state.yield_samples, dtype=float)
    return ResolvedAllocation(
        protocol=spec.protocol,
        asset_symbol=spec.asset_symbol,
        pool_type=spec.pool_type or "unknown",
        allocation_percent=spec.percentage,
        allocated_usd=round(allocated_usd, DECIMALS),
        avg_yield_percent=round(float(samples.mean()), DECIMALS),
        min_yield_percent=round(float(samples.min()), DECIMALS),
        max_yield_percent=round(float(samples.max()), DECIMALS),
        il_loss_usd=round(state.il_loss_usd, DECIMALS),
        final_usd=round(state.value_usd, DECIMALS),
        return_usd=round(return_usd, DECIMALS),
        return_percent=round(return_percent, DECIMALS),
        data_points_used=len(samples),
    )
