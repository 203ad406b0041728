"""
Summary report generator.

Prints and saves a text report of one backtest: headline metrics, the
per-allocation breakdown, and the top-3 drawdown periods.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd

import config
from src.engine.results import BacktestResult

REPORT_PATH = Path(config.REPORT_PATH)
SEP = "=" * 66


def top_drawdown_periods(equity: pd.Series, n: int = 3) -> list[dict]:
    """
    Find the top-N distinct drawdown periods by peak-to-trough depth.

    Returns a list of dicts with keys: start, trough, end, depth, duration_days.
    ``end`` is the recovery day, or the last day if never recovered.
    """
    if equity.empty:
        return []
    peak = equity.cummax()
    dd = (equity - peak) / peak

    results = []
    dd_start = None

    for day, val in dd.items():
        if val < 0 and dd_start is None:
            dd_start = day
        elif val == 0 and dd_start is not None:
            results.append(_period(dd[dd_start:day], dd_start, day))
            dd_start = None

    if dd_start is not None:
        results.append(_period(dd[dd_start:], dd_start, equity.index[-1]))

    results.sort(key=lambda x: x["depth"])
    return results[:n]


def _period(segment: pd.Series, start, end) -> dict:
    return {
        "start": start,
        "trough": segment.idxmin(),
        "end": end,
        "depth": float(segment.min()),
        "duration_days": (end - start).days,
    }


def format_report(result: BacktestResult, write_file: bool = True) -> str:
    """
    Generate a text report for ``result``.

    Parameters
    ----------
    result : BacktestResult
    write_file : bool
        If True, save to config.REPORT_PATH.

    Returns
    -------
    str
        Full report text.
    """
    s = result.summary
    lines: list[str] = []

    def add(text: str = "") -> None:
        lines.append(text)

    add(SEP)
    add("  YIELD PORTFOLIO BACKTEST — REPORT")
    add(SEP)
    add(f"  Date range: {s.start} → {s.end}  ({s.duration_days} days)")
    add(f"  Initial capital: ${s.initial_amount_usd:,.2f}")
    add()

    add(SEP)
    add("  SUMMARY")
    add(SEP)
    add(f"  Final Value:          ${s.final_amount_usd:>12,.2f}")
    add(f"  Total Return:         ${s.total_return_usd:>12,.2f}  ({s.total_return_percent:.2f}%)")
    add(f"  Annualised Return:     {s.annualized_return_percent:>11.2f}%")
    add(f"  Max Drawdown:          {s.max_drawdown_percent:>11.2f}%")
    add(f"  Sharpe Ratio:          {s.sharpe_ratio:>11.3f}")
    add(f"  Rebalances:            {s.rebalance_count:>11d}")
    add(f"  Fees Paid:            ${s.fees_paid_usd:>12,.2f}")
    add(f"  Impermanent Loss:      {'included' if s.il_included else 'excluded':>11}")
    add()

    add(SEP)
    add("  ALLOCATION BREAKDOWN")
    add(SEP)
    add()
    add(f"  {'Source/Asset':<24}  {'Weight':>7}  {'Avg APY':>8}  {'Final $':>12}  {'Return':>8}")
    add(f"  {'─'*24}  {'─'*7}  {'─'*8}  {'─'*12}  {'─'*8}")
    for entry in result.breakdown:
        name = f"{entry.protocol}/{entry.asset_symbol}"
        avg = f"{entry.avg_yield_percent:>7.2f}%" if entry.has_historical_data else f"{'n/a':>8}"
        add(
            f"  {name:<24}  {entry.allocation_percent:>6.1f}%  {avg}"
            f"  {entry.final_usd:>12,.2f}  {entry.return_percent:>7.2f}%"
        )
        if not entry.has_historical_data:
            add(f"    ! {entry.reason}")
        elif entry.il_loss_usd:
            add(f"    IL loss: ${entry.il_loss_usd:,.2f}")

    add()
    add(SEP)
    add("  TOP 3 DRAWDOWN PERIODS")
    add(SEP)
    add()

    periods = top_drawdown_periods(result.equity_curve, n=3)
    if not periods:
        add("  No drawdowns.")
        add()
    for i, p in enumerate(periods, 1):
        add(
            f"  #{i}  Peak→Trough: {p['start'].date()} → {p['trough'].date()}"
            f"  (Recovery: {p['end'].date()})"
        )
        add(f"       Depth: {p['depth'] * 100:.4f}%   Duration: {p['duration_days']} days")
        add()

    add(SEP)

    text = "\n".join(lines)
    print(text)

    if write_file:
        REPORT_PATH.parent.mkdir(parents=True, exist_ok=True)
        REPORT_PATH.write_text(text)
        print(f"\n  Report saved → {REPORT_PATH}")

    return text
