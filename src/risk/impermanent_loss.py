"""
Impermanent-loss approximation for liquidity-pool allocations.

No per-pool price history is available to the backtester, so the ending
price ratio is estimated from the dispersion of the pool's observed daily
yields: a pool whose yield swings widely is assumed to sit on more
volatile assets. The estimate is capped so that a 100-point yield
standard deviation implies the maximum drift.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

import config


def calculate_il(price_ratio: float) -> float:
    """
    Constant-product (x*y=k) impermanent loss for a two-asset pool.

        IL = 2 * sqrt(r) / (1 + r) - 1,   r = price_end / price_start

    Returns a value <= 0; 0 for a non-positive ratio.
    """
    if price_ratio <= 0:
        return 0.0
    return float(2.0 * np.sqrt(price_ratio) / (1.0 + price_ratio) - 1.0)


def estimate_price_ratio(
    yield_samples: Sequence[float],
    max_drift: float = config.IL_MAX_PRICE_DRIFT,
) -> float:
    """
    Implied ending/starting price ratio from daily yield dispersion.

    Uses the population standard deviation of the samples (in percent);
    fewer than two samples imply no drift (ratio 1.0).
    """
    if len(yield_samples) < 2:
        return 1.0
    std = float(np.std(np.asarray(yield_samples, dtype=float)))
    drift = min(max_drift, (std / 100) * max_drift)
    return 1.0 + drift


def is_liquidity_pool(pool_type: str | None) -> bool:
    return (pool_type or "").lower() in config.IL_POOL_TYPES
