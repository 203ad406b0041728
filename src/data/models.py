"""
Data models shared by the yield engine and the backtester.

All records are frozen dataclasses; timestamps are timezone-aware UTC.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone

import config


def to_utc(ts: datetime) -> datetime:
    """Normalise a datetime to timezone-aware UTC (naive values are taken as UTC)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into UTC."""
    if isinstance(value, datetime):
        return to_utc(value)
    return to_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


class NoDataType:
    """Sentinel returned when an asset has no rate observations yet."""

    _instance: NoDataType | None = None

    def __new__(cls) -> NoDataType:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NO_DATA"

    def __bool__(self) -> bool:
        return False


NO_DATA = NoDataType()


@dataclass(frozen=True)
class RateObservation:
    """One exchange-rate reading: base-asset units backing one derivative token."""

    asset: str
    timestamp: datetime
    rate: float
    total_staked: int | None = None
    total_issuance: int | None = None
    block_number: int | None = None

    @classmethod
    def from_raw(
        cls,
        asset: str,
        timestamp: datetime,
        raw_rate: int,
        decimals: int,
        total_staked: int | None = None,
        total_issuance: int | None = None,
        block_number: int | None = None,
    ) -> RateObservation:
        """Decode an on-chain fixed-point rate (``raw / 10**decimals``)."""
        return cls(
            asset=asset,
            timestamp=to_utc(timestamp),
            rate=int(raw_rate) / 10 ** decimals,
            total_staked=None if total_staked is None else int(total_staked),
            total_issuance=None if total_issuance is None else int(total_issuance),
            block_number=block_number,
        )


@dataclass(frozen=True)
class YieldSnapshot:
    """Composite annualized yield for one asset at one observation time."""

    asset: str
    timestamp: datetime
    yield_7d: float
    yield_30d: float
    staking_yield_percent: float
    auxiliary_yield_percent: float
    total_yield_percent: float
    rate_at_snapshot: float
    base_price_usd: float = 0.0
    granularity: str = config.SNAPSHOT_GRANULARITY
    block_number: int | None = None

    @property
    def key(self) -> tuple[str, datetime, str]:
        return (self.asset, self.timestamp, self.granularity)


@dataclass(frozen=True)
class YieldRecord:
    """Pre-aggregated daily yield figure."""

    date: date
    annualized_yield_percent: float


@dataclass(frozen=True)
class PoolHistoryRecord:
    """One historical yield reading for a pool, as served by ``/pools/history``."""

    protocol: str
    asset_symbol: str
    data_timestamp: datetime
    supply_apy: float = 0.0
    reward_apy: float | None = None
    total_apy: float | None = None
    network: str = ""
    pool_type: str = ""

    @property
    def effective_yield(self) -> float:
        """``total_apy`` when reported, else ``supply_apy + reward_apy``."""
        if self.total_apy is not None:
            return self.total_apy
        return (self.supply_apy or 0.0) + (self.reward_apy or 0.0)

    @classmethod
    def from_dict(cls, data: dict) -> PoolHistoryRecord:
        return cls(
            protocol=data["protocol"],
            asset_symbol=data["assetSymbol"],
            data_timestamp=parse_timestamp(data["dataTimestamp"]),
            supply_apy=float(data.get("supplyApy") or 0.0),
            reward_apy=_optional_float(data.get("rewardApy")),
            total_apy=_optional_float(data.get("totalApy")),
            network=data.get("network", ""),
            pool_type=data.get("poolType", ""),
        )


@dataclass(frozen=True)
class PoolSnapshot:
    """Latest known state of a pool, as served by ``/pools``."""

    protocol: str
    asset_symbol: str
    total_apy: float
    network: str = ""
    pool_type: str = ""
    tvl_usd: float = 0.0
    metadata: dict = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: dict) -> PoolSnapshot:
        return cls(
            protocol=data["protocol"],
            asset_symbol=data["assetSymbol"],
            total_apy=float(data.get("totalApy") or 0.0),
            network=data.get("network", ""),
            pool_type=data.get("poolType", ""),
            tvl_usd=float(data.get("tvlUsd") or 0.0),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True)
class PricePoint:
    """USD price of a coin at a point in time."""

    coin_id: str
    timestamp: datetime
    price_usd: float
    source: str = ""


def _optional_float(value) -> float | None:
    return None if value is None else float(value)
