"""
Simulation inputs and their validation.

Every check here runs before any history is fetched or any day is
simulated; a failing request raises ``ValidationError`` and is never
silently corrected.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

import config
from src.data.models import parse_timestamp


class ValidationError(ValueError):
    """Client-side input error with a human-readable reason."""


@dataclass(frozen=True)
class AllocationSpec:
    """Share of capital placed in one asset at one protocol/source."""

    protocol: str
    asset_symbol: str
    percentage: float
    pool_type: str | None = None


@dataclass(frozen=True)
class BacktestOptions:
    rebalance_interval_days: int = config.DEFAULT_REBALANCE_INTERVAL_DAYS
    include_impermanent_loss: bool = False
    xcm_fee_usd: float = config.DEFAULT_XCM_FEE_USD
    compound_frequency_days: int = config.DEFAULT_COMPOUND_FREQUENCY_DAYS
    risk_free_rate: float = config.RISK_FREE_RATE
    max_points: int = config.MAX_TIMESERIES_POINTS


@dataclass(frozen=True)
class BacktestRequest:
    initial_amount_usd: float
    start: date
    end: date
    allocations: tuple[AllocationSpec, ...]
    options: BacktestOptions = field(default_factory=BacktestOptions)


@dataclass(frozen=True)
class SimulationRequest:
    initial_amount_usd: float
    start: datetime
    end: datetime
    allocations: tuple[AllocationSpec, ...]


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------

def as_date(value: str | date | datetime) -> date:
    """UTC calendar day of a date, datetime or ISO string."""
    if isinstance(value, datetime):
        return parse_timestamp(value).date()
    if isinstance(value, date):
        return value
    return parse_timestamp(value).date() if "T" in value else date.fromisoformat(value)


def as_datetime(value: str | date | datetime) -> datetime:
    """UTC datetime of a date (midnight), datetime or ISO string."""
    if isinstance(value, datetime):
        return parse_timestamp(value)
    if isinstance(value, date):
        return parse_timestamp(datetime(value.year, value.month, value.day))
    return parse_timestamp(value)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_allocations(
    allocations: Sequence[AllocationSpec],
    tolerance: float = config.ALLOCATION_TOLERANCE,
) -> None:
    """Percentages must be non-negative and sum to 100 within ``tolerance``."""
    for alloc in allocations:
        if alloc.percentage < 0:
            raise ValidationError(
                f"Allocation {alloc.protocol}/{alloc.asset_symbol} has a negative percentage"
            )
    total = sum(alloc.percentage for alloc in allocations)
    if abs(total - 100) > tolerance:
        raise ValidationError(f"Allocations must sum to 100%. Got {total:.2f}%")


def validate_period(
    initial_amount_usd: float,
    start: date | datetime,
    end: date | datetime,
) -> None:
    if start >= end:
        raise ValidationError('"from" must be before "to"')
    if initial_amount_usd <= 0:
        raise ValidationError("initial amount must be positive")


def validate_options(options: BacktestOptions) -> None:
    if options.rebalance_interval_days < 0:
        raise ValidationError("rebalance interval must be >= 0 days")
    if options.compound_frequency_days < 1:
        raise ValidationError("compound frequency must be >= 1 day")
    if options.xcm_fee_usd < 0:
        raise ValidationError("rebalance fee must be non-negative")
    if options.max_points < 2:
        raise ValidationError("time series cap must allow at least 2 points")


def validate_backtest_request(request: BacktestRequest) -> None:
    validate_allocations(request.allocations)
    validate_period(request.initial_amount_usd, request.start, request.end)
    validate_options(request.options)


def validate_simulation_request(request: SimulationRequest) -> None:
    validate_allocations(request.allocations)
    validate_period(request.initial_amount_usd, request.start, request.end)


# ---------------------------------------------------------------------------
# Construction from plain payloads
# ---------------------------------------------------------------------------

def allocation_from_dict(data: dict) -> AllocationSpec:
    return AllocationSpec(
        protocol=data["protocol"],
        asset_symbol=data["assetSymbol"],
        percentage=float(data["percentage"]),
        pool_type=data.get("poolType"),
    )


def backtest_request_from_dict(data: dict) -> BacktestRequest:
    """Build a ``BacktestRequest`` from a camelCase payload."""
    options = BacktestOptions(
        rebalance_interval_days=int(data.get("rebalanceIntervalDays", config.DEFAULT_REBALANCE_INTERVAL_DAYS)),
        include_impermanent_loss=bool(data.get("includeIL", False)),
        xcm_fee_usd=float(data.get("xcmFeeUsd", config.DEFAULT_XCM_FEE_USD)),
        compound_frequency_days=int(data.get("compoundFrequencyDays", config.DEFAULT_COMPOUND_FREQUENCY_DAYS)),
    )
    return BacktestRequest(
        initial_amount_usd=float(data["initialAmountUsd"]),
        start=as_date(data["from"]),
        end=as_date(data["to"]),
        allocations=tuple(allocation_from_dict(a) for a in data["allocations"]),
        options=options,
    )


def simulation_request_from_dict(data: dict) -> SimulationRequest:
    """Build a ``SimulationRequest`` from a camelCase payload."""
    return SimulationRequest(
        initial_amount_usd=float(data["initialAmountUsd"]),
        start=as_datetime(data["from"]),
        end=as_datetime(data["to"]),
        allocations=tuple(allocation_from_dict(a) for a in data["allocations"]),
    )
