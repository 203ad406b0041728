"""Tests for src/risk/metrics.py."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from src.risk.metrics import (
    DrawdownTracker,
    annualized_return,
    annualized_volatility,
    drawdown_curve,
    max_drawdown,
    sharpe_ratio,
)


def _random_returns(n: int = 500, seed: int = 42) -> pd.Series:
    np.random.seed(seed)
    return pd.Series(np.random.normal(0.0005, 0.01, n))


class TestAnnualizedReturn:
    def test_one_year(self):
        assert annualized_return(1100.0, 1000.0, 365) == pytest.approx(0.10)

    def test_half_year_compounds(self):
        assert annualized_return(1050.0, 1000.0, 182.5) == pytest.approx(1.05 ** 2 - 1)

    def test_zero_duration(self):
        assert annualized_return(1100.0, 1000.0, 0) == 0.0

    def test_non_positive_values(self):
        assert annualized_return(0.0, 1000.0, 30) == 0.0
        assert annualized_return(100.0, 0.0, 30) == 0.0


class TestAnnualizedVolatility:
    def test_365_day_basis(self):
        ret = _random_returns()
        assert annualized_volatility(ret) == pytest.approx(ret.std() * np.sqrt(365))

    def test_single_sample(self):
        assert annualized_volatility(pd.Series([0.01])) == 0.0


class TestSharpeRatio:
    def test_empty(self):
        assert sharpe_ratio(pd.Series([], dtype=float)) == 0.0

    def test_single_sample(self):
        assert sharpe_ratio(pd.Series([0.01])) == 0.0

    def test_zero_std(self):
        assert sharpe_ratio(pd.Series([0.0005] * 100)) == 0.0

    def test_known_value(self):
        ret = _random_returns()
        excess = ret - 0.05 / 365
        expected = excess.mean() / excess.std(ddof=1) * np.sqrt(365)
        assert sharpe_ratio(ret, 0.05) == pytest.approx(expected)

    def test_risk_free_lowers_sharpe(self):
        ret = _random_returns()
        assert sharpe_ratio(ret, 0.10) < sharpe_ratio(ret, 0.0)


class TestDrawdown:
    def test_tracker_monotone_non_negative(self):
        tracker = DrawdownTracker()
        seen = []
        for value in [100, 110, 99, 105, 120, 90, 130, 125]:
            seen.append(tracker.update(value))
        assert all(v >= 0 for v in seen)
        assert all(b >= a for a, b in zip(seen, seen[1:]))
        assert tracker.max_drawdown_percent == pytest.approx(25.0)

    def test_rising_series_has_no_drawdown(self):
        tracker = DrawdownTracker()
        for value in range(1, 50):
            tracker.update(float(value))
        assert tracker.max_drawdown_percent == 0.0

    def test_curve_matches_tracker(self):
        values = [100, 110, 99, 105, 120, 90, 130, 125]
        tracker = DrawdownTracker()
        expected = [tracker.update(v) for v in values]
        curve = drawdown_curve(pd.Series(values, dtype=float))
        np.testing.assert_allclose(curve.to_numpy(), expected)
        assert max_drawdown(pd.Series(values, dtype=float)) == pytest.approx(25.0)

    def test_empty_series(self):
        assert max_drawdown(pd.Series([], dtype=float)) == 0.0
