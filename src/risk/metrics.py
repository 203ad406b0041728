"""
Risk and performance metrics.

Sharpe ratio, maximum drawdown, annualized return and volatility for a
daily portfolio trajectory. Yield markets trade every calendar day, so
annualization uses 365 days, not 252 trading days.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

import config

DAYS_PER_YEAR = config.DAYS_PER_YEAR

# Standard deviations below this are numerical noise, not volatility.
MIN_VOLATILITY = 1e-12


# ---------------------------------------------------------------------------
# Individual metric functions
# ---------------------------------------------------------------------------

def annualized_return(
    final_value: float,
    initial_value: float,
    duration_days: float,
) -> float:
    """
    Compound annualized return over a holding period.

    (final / initial) ** (365 / duration_days) - 1, or 0 for a zero-length
    period or non-positive values.
    """
    if duration_days <= 0 or initial_value <= 0 or final_value <= 0:
        return 0.0
    return float((final_value / initial_value) ** (DAYS_PER_YEAR / duration_days) - 1.0)


def annualized_volatility(daily_returns: pd.Series) -> float:
    """Annualized sample standard deviation of daily returns."""
    if len(daily_returns) < 2:
        return 0.0
    return float(daily_returns.std() * np.sqrt(DAYS_PER_YEAR))


def sharpe_ratio(
    daily_returns: pd.Series,
    risk_free_rate: float = config.RISK_FREE_RATE,
) -> float:
    """
    Annualized Sharpe ratio.

    (mean_daily_excess_return / sample_std_daily_return) * sqrt(365)

    Returns 0 with fewer than two samples or zero volatility.
    """
    if len(daily_returns) < 2:
        return 0.0
    excess = daily_returns - risk_free_rate / DAYS_PER_YEAR
    vol = excess.std(ddof=1)
    if not np.isfinite(vol) or vol < MIN_VOLATILITY:
        return 0.0
    return float(excess.mean() / vol * np.sqrt(DAYS_PER_YEAR))


# ---------------------------------------------------------------------------
# Drawdown
# ---------------------------------------------------------------------------

@dataclass
class DrawdownTracker:
    """
    Running peak and maximum drawdown of a value trajectory.

    ``max_drawdown_percent`` is a non-negative magnitude that never
    decreases once recorded.
    """

    peak: float = 0.0
    max_drawdown_percent: float = 0.0

    def update(self, value: float) -> float:
        """Feed the next value; return the maximum drawdown so far (percent)."""
        if value > self.peak:
            self.peak = value
        if self.peak > 0:
            drawdown = (self.peak - value) / self.peak * 100
            if drawdown > self.max_drawdown_percent:
                self.max_drawdown_percent = drawdown
        return self.max_drawdown_percent


def drawdown_curve(equity: pd.Series) -> pd.Series:
    """Maximum drawdown to date (percent, non-negative) at every point of ``equity``."""
    if len(equity) == 0:
        return pd.Series(dtype=float)
    peak = equity.cummax()
    drawdown = (peak - equity) / peak * 100
    return drawdown.cummax()


def max_drawdown(equity: pd.Series) -> float:
    """Maximum peak-to-trough decline of ``equity`` in percent (non-negative)."""
    curve = drawdown_curve(equity)
    if len(curve) == 0:
        return 0.0
    return float(curve.iloc[-1])
