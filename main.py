"""
Yield Portfolio Backtesting Engine
==================================
Single entry point. Runs the full pipeline end-to-end:

    1. Validate the strategy request
    2. Fetch pool yield history and run the day-by-day backtest
    3. Run the static-yield quick simulation for comparison
    4. Generate charts
    5. Generate and save text report

Flags
-----
REQUEST : dict
    camelCase strategy payload (same shape the pools data server clients send).
QUICK_SIMULATION : bool
    Also run the static-yield preview over the same period.

Usage:
    POOLS_API_URL=http://localhost:3000 python main.py
"""

import asyncio
import logging
from pathlib import Path

import config
from src.engine.requests import backtest_request_from_dict, simulation_request_from_dict
from src.services.backtest_service import BacktestService
from src.visualization.charts import plot_drawdown, plot_equity_curve
from src.visualization.report import format_report

# ── Pipeline flags ────────────────────────────────────────────────────────
REQUEST = {
    "initialAmountUsd": 10_000,
    "from": "2025-01-01",
    "to": "2025-06-30",
    "allocations": [
        {"protocol": "bifrost", "assetSymbol": "vDOT", "percentage": 60, "poolType": "liquid_staking"},
        {"protocol": "hydration", "assetSymbol": "DOT", "percentage": 40, "poolType": "dex"},
    ],
    "rebalanceIntervalDays": 30,
    "includeIL": True,
    "xcmFeeUsd": config.DEFAULT_XCM_FEE_USD,
}
QUICK_SIMULATION = True

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def run_pipeline() -> None:
    logger.info("=" * 62)
    logger.info("  Yield Backtest Engine — Full Pipeline")
    logger.info("=" * 62)

    service = BacktestService()

    # ── 1. Request ───────────────────────────────────────────────
    logger.info("[1/5] Validating request...")
    request = backtest_request_from_dict(REQUEST)
    logger.info("      %d allocations | %s → %s",
                len(request.allocations), request.start, request.end)

    # ── 2. Backtest ──────────────────────────────────────────────
    logger.info("[2/5] Running backtest against %s...", config.POOLS_API_URL)
    result = await service.run_backtest(request)
    missing = [b for b in result.breakdown if not b.has_historical_data]
    if missing:
        logger.warning("      %d allocation(s) without history earned 0%%", len(missing))

    # ── 3. Quick simulation ──────────────────────────────────────
    if QUICK_SIMULATION:
        logger.info("[3/5] Running quick simulation...")
        preview = await service.run_quick_simulation(simulation_request_from_dict(REQUEST))
        logger.info("      Static-yield return %.2f%% vs backtest %.2f%%",
                    preview.summary.total_return_percent,
                    result.summary.total_return_percent)
    else:
        logger.info("[3/5] Quick simulation skipped.")

    # ── 4. Charts ────────────────────────────────────────────────
    logger.info("[4/5] Generating charts → %s", config.CHART_DIR)
    Path(config.CHART_DIR).mkdir(parents=True, exist_ok=True)
    for p in (plot_equity_curve(result), plot_drawdown(result)):
        logger.info("      + %s", p.name)

    # ── 5. Report ────────────────────────────────────────────────
    logger.info("[5/5] Generating report → %s", config.REPORT_PATH)
    format_report(result)

    logger.info("Pipeline complete.")


def main() -> None:
    asyncio.run(run_pipeline())


if __name__ == "__main__":
    main()
