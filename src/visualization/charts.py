"""
Visualization module.

Equity curve and running max-drawdown charts for a backtest result.
All charts are saved as PNGs to output/charts/.
"""

from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")  # non-interactive backend
import matplotlib.pyplot as plt
import matplotlib.ticker as mtick

import config
from src.engine.results import BacktestResult
from src.risk.metrics import drawdown_curve

CHART_DIR = Path(config.CHART_DIR)
DPI = config.CHART_DPI

COLORS = {
    "equity": "#2196F3",  # blue
    "drawdown": "#F44336",  # red
    "initial": "#9E9E9E",
    "grid": "#E0E0E0",
}


def _save(fig: plt.Figure, name: str, chart_dir: Path = CHART_DIR) -> Path:
    chart_dir.mkdir(parents=True, exist_ok=True)
    path = chart_dir / name
    fig.savefig(path, dpi=DPI, bbox_inches="tight")
    plt.close(fig)
    return path


def plot_equity_curve(
    result: BacktestResult,
    filename: str = "equity_curve.png",
    chart_dir: Path = CHART_DIR,
) -> Path:
    """Portfolio value in USD over the (possibly downsampled) trajectory."""
    equity = result.equity_curve
    fig, ax = plt.subplots(figsize=(12, 6))

    ax.plot(equity.index, equity, color=COLORS["equity"], linewidth=1.6, label="Portfolio")
    ax.axhline(
        result.summary.initial_amount_usd,
        color=COLORS["initial"], linewidth=0.8, linestyle="--", label="Initial",
    )
    ax.set_title(
        f"Portfolio Value ({result.summary.start} → {result.summary.end})",
        fontsize=14, fontweight="bold",
    )
    ax.set_ylabel("Value (USD)")
    ax.set_xlabel("Date")
    ax.legend(framealpha=0.9)
    ax.yaxis.set_major_formatter(mtick.FuncFormatter(lambda x, _: f"${x:,.0f}"))
    ax.grid(color=COLORS["grid"], linewidth=0.5)
    fig.tight_layout()
    return _save(fig, filename, chart_dir)


def plot_drawdown(
    result: BacktestResult,
    filename: str = "drawdown.png",
    chart_dir: Path = CHART_DIR,
) -> Path:
    """Running maximum drawdown, drawn below zero."""
    dd = -drawdown_curve(result.equity_curve)
    fig, ax = plt.subplots(figsize=(12, 5))

    ax.fill_between(dd.index, dd, 0, alpha=0.25, color=COLORS["drawdown"])
    ax.plot(dd.index, dd, color=COLORS["drawdown"], linewidth=1.2)

    ax.set_title("Maximum Drawdown to Date", fontsize=14, fontweight="bold")
    ax.set_xlabel("Date")
    ax.set_ylabel("Drawdown (%)")
    ax.yaxis.set_major_formatter(mtick.FuncFormatter(lambda x, _: f"{x:.2f}%"))
    ax.grid(color=COLORS["grid"], linewidth=0.5)
    fig.tight_layout()
    return _save(fig, filename, chart_dir)
