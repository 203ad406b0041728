"""
Central configuration for the yield backtesting engine.
All tunable parameters live here; library code holds no magic numbers.
"""

import os

# ──────────────────────────────────────────────
# Asset Universe (Bifrost liquid-staking vTokens)
# ──────────────────────────────────────────────
CHAIN = "bifrost-polkadot"

VTOKENS = {
    "vDOT":  {"base_token": "DOT",  "decimals": 10, "coingecko_id": "polkadot"},
    "vKSM":  {"base_token": "KSM",  "decimals": 12, "coingecko_id": "kusama"},
    "vGLMR": {"base_token": "GLMR", "decimals": 18, "coingecko_id": "moonbeam"},
    "vASTR": {"base_token": "ASTR", "decimals": 18, "coingecko_id": "astar"},
    "vBNC":  {"base_token": "BNC",  "decimals": 12, "coingecko_id": "bifrost-native-coin"},
}

# ──────────────────────────────────────────────
# Yield Derivation
# ──────────────────────────────────────────────
DAYS_PER_YEAR = 365
YIELD_WINDOWS_DAYS = (7, 30)     # short window wins when positive
SNAPSHOT_GRANULARITY = "hourly"
RATE_BUCKET_SECONDS = 3600       # one stored rate observation per asset per hour
OUTPUT_DECIMALS = 4

# ──────────────────────────────────────────────
# Backtest Engine
# ──────────────────────────────────────────────
RISK_FREE_RATE = 0.05            # Annualized
ALLOCATION_TOLERANCE = 0.01      # percentage points
MAX_TIMESERIES_POINTS = 500
DEFAULT_XCM_FEE_USD = 0.5        # flat fee per cross-source hop per rebalance
DEFAULT_REBALANCE_INTERVAL_DAYS = 0   # 0 = never
DEFAULT_COMPOUND_FREQUENCY_DAYS = 1

# ──────────────────────────────────────────────
# Impermanent Loss
# ──────────────────────────────────────────────
IL_POOL_TYPES = ("dex", "farming")
IL_MAX_PRICE_DRIFT = 0.30        # cap on implied price drift

# ──────────────────────────────────────────────
# Data Sources
# ──────────────────────────────────────────────
POOLS_API_URL = os.environ.get("POOLS_API_URL", "http://localhost:3000")
POOLS_TIMEOUT = 10               # seconds
POOLS_HISTORY_TIMEOUT = 15
POOLS_SNAPSHOT_LIMIT = 200

DEFILLAMA_BASE_URL = "https://coins.llama.fi"
COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
PRICE_TIMEOUT = 5
PRICE_HISTORY_TIMEOUT = 30
PRICE_CACHE_TTL_SECONDS = 5 * 60

# ──────────────────────────────────────────────
# Output
# ──────────────────────────────────────────────
CHART_DIR = "output/charts"
REPORT_PATH = "output/report.txt"
CHART_DPI = 300
