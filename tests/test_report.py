"""Tests for src/visualization/report.py and src/visualization/charts.py."""

from __future__ import annotations

from datetime import date
from unittest.mock import patch

import pandas as pd
import pytest

from src.engine.backtest import run_backtest
from src.engine.requests import AllocationSpec, BacktestOptions
from src.engine.yield_curve import YieldCurve
from src.visualization import charts, report


@pytest.fixture
def result():
    return run_backtest(
        10_000.0, date(2025, 1, 1), date(2025, 3, 1),
        [AllocationSpec("bifrost", "vDOT", 70), AllocationSpec("acala", "LDOT", 30)],
        [YieldCurve(pd.Series([12.0], index=[pd.Timestamp("2025-01-01")])), YieldCurve.empty()],
        BacktestOptions(xcm_fee_usd=0.0),
    )


class TestTopDrawdownPeriods:

    def test_finds_and_orders_periods(self):
        equity = pd.Series(
            [100, 90, 100, 110, 80, 95, 120, 115],
            index=pd.date_range("2025-01-01", periods=8, freq="D"),
            dtype=float,
        )
        periods = report.top_drawdown_periods(equity, n=3)
        assert len(periods) == 3
        deepest = periods[0]
        assert deepest["depth"] == pytest.approx(80 / 110 - 1)
        assert deepest["trough"] == pd.Timestamp("2025-01-05")
        assert deepest["end"] == pd.Timestamp("2025-01-07")
        # last period never recovers
        assert periods[-1]["end"] == pd.Timestamp("2025-01-08")

    def test_no_drawdown(self):
        equity = pd.Series([1.0, 2.0, 3.0], index=pd.date_range("2025-01-01", periods=3))
        assert report.top_drawdown_periods(equity) == []


class TestFormatReport:

    def test_contains_summary_and_breakdown(self, result):
        text = report.format_report(result, write_file=False)
        assert "YIELD PORTFOLIO BACKTEST" in text
        assert "bifrost/vDOT" in text
        assert "No historical yield data found for acala/LDOT" in text
        assert "No drawdowns." in text

    def test_writes_file(self, result, tmp_path):
        path = tmp_path / "report.txt"
        with patch.object(report, "REPORT_PATH", path):
            text = report.format_report(result, write_file=True)
        assert path.read_text() == text


class TestCharts:

    def test_charts_saved(self, result, tmp_path):
        equity_path = charts.plot_equity_curve(result, chart_dir=tmp_path)
        drawdown_path = charts.plot_drawdown(result, chart_dir=tmp_path)
        assert equity_path.exists()
        assert drawdown_path.exists()
