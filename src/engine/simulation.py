"""
Static-yield quick simulation.

A cheap preview of a strategy: every allocation compounds daily at the
most recent annualized yield of its pool for the whole period, with no
day-by-day history lookup, rebalancing, or fees.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

import config
from src.data.models import PoolSnapshot
from src.engine.requests import AllocationSpec, SimulationRequest, validate_simulation_request
from src.engine.results import (
    SimplifiedResult,
    SimulatedAllocation,
    SimulationBreakdown,
    SimulationSummary,
    UnresolvedAllocation,
)
from src.risk.metrics import annualized_return

logger = logging.getLogger(__name__)

DECIMALS = config.OUTPUT_DECIMALS
SECONDS_PER_DAY = 86_400


def find_pool(
    pools: Sequence[PoolSnapshot], protocol: str, asset_symbol: str
) -> PoolSnapshot | None:
    """First pool matching (protocol, asset) case-insensitively."""
    protocol, asset_symbol = protocol.lower(), asset_symbol.lower()
    for pool in pools:
        if pool.protocol.lower() == protocol and pool.asset_symbol.lower() == asset_symbol:
            return pool
    return None


def simulation_duration_days(start: datetime, end: datetime) -> float:
    """Fractional days between ``start`` and ``end``, at least 1."""
    return max(1.0, (end - start).total_seconds() / SECONDS_PER_DAY)


def run_quick_simulation(
    initial_amount_usd: float,
    start: datetime,
    end: datetime,
    allocations: Sequence[AllocationSpec],
    pools: Sequence[PoolSnapshot],
) -> SimplifiedResult:
    """
    Compound each allocation at its pool's latest yield for the period.

    Allocations with no matching pool keep their allocated value and are
    reported as ``UnresolvedAllocation``.
    """
    allocations = tuple(allocations)
    validate_simulation_request(
        SimulationRequest(initial_amount_usd, start, end, allocations)
    )
    duration_days = simulation_duration_days(start, end)

    breakdown: list[SimulationBreakdown] = []
    total_final_usd = 0.0
    weighted_yield = 0.0

    for alloc in allocations:
        allocated_usd = initial_amount_usd * (alloc.percentage / 100)
        pool = find_pool(pools, alloc.protocol, alloc.asset_symbol)

        if pool is None:
            logger.warning(
                "Pool %s/%s not found for quick simulation", alloc.protocol, alloc.asset_symbol
            )
            breakdown.append(
                UnresolvedAllocation(
                    protocol=alloc.protocol,
                    asset_symbol=alloc.asset_symbol,
                    pool_type=alloc.pool_type or "unknown",
                    allocation_percent=alloc.percentage,
                    allocated_usd=round(allocated_usd, DECIMALS),
                    final_usd=round(allocated_usd, DECIMALS),
                    return_usd=0.0,
                    return_percent=0.0,
                    reason=(
                        "Pool not found in data server for period "
                        f"{start.isoformat()} → {end.isoformat()}"
                    ),
                )
            )
            total_final_usd += allocated_usd
            continue

        daily_rate = pool.total_apy / 100 / config.DAYS_PER_YEAR
        final_usd = allocated_usd * (1.0 + daily_rate) ** duration_days
        return_usd = final_usd - allocated_usd
        return_percent = return_usd / allocated_usd * 100 if allocated_usd > 0 else 0.0

        breakdown.append(
            SimulatedAllocation(
                protocol=pool.protocol,
                asset_symbol=pool.asset_symbol,
                network=pool.network,
                pool_type=pool.pool_type,
                allocation_percent=alloc.percentage,
                allocated_usd=round(allocated_usd, DECIMALS),
                yield_used_percent=pool.total_apy,
                tvl_usd=pool.tvl_usd,
                final_usd=round(final_usd, DECIMALS),
                return_usd=round(return_usd, DECIMALS),
                return_percent=round(return_percent, DECIMALS),
                annualized_yield_percent=round(
                    annualized_return(final_usd, allocated_usd, duration_days) * 100, DECIMALS
                ),
            )
        )
        total_final_usd += final_usd
        weighted_yield += pool.total_apy * (alloc.percentage / 100)

    total_return_usd = total_final_usd - initial_amount_usd
    summary = SimulationSummary(
        initial_amount_usd=initial_amount_usd,
        final_amount_usd=round(total_final_usd, DECIMALS),
        total_return_usd=round(total_return_usd, DECIMALS),
        total_return_percent=round(total_return_usd / initial_amount_usd * 100, DECIMALS),
        annualized_yield_percent=round(
            annualized_return(total_final_usd, initial_amount_usd, duration_days) * 100, DECIMALS
        ),
        weighted_avg_yield_percent=round(weighted_yield, DECIMALS),
        duration_days=round(duration_days, 1),
        start=start,
        end=end,
    )

    logger.info(
        "Quick simulation complete: %.1f days | Total return: %.2f%% | Weighted yield: %.2f%%",
        duration_days,
        summary.total_return_percent,
        summary.weighted_avg_yield_percent,
    )
    return SimplifiedResult(summary=summary, breakdown=tuple(breakdown))


def run_simulation_request(
    request: SimulationRequest, pools: Sequence[PoolSnapshot]
) -> SimplifiedResult:
    """``run_quick_simulation`` for a prepared request."""
    return run_quick_simulation(
        request.initial_amount_usd, request.start, request.end, request.allocations, pools
    )
