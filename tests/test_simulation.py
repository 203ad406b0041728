"""Tests for src/engine/simulation.py."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.data.models import PoolSnapshot
from src.engine.requests import AllocationSpec, ValidationError
from src.engine.results import SimulatedAllocation, UnresolvedAllocation
from src.engine.simulation import find_pool, run_quick_simulation, simulation_duration_days

START = datetime(2025, 1, 1, tzinfo=timezone.utc)

POOLS = [
    PoolSnapshot("Bifrost", "vDOT", 19.07, "polkadot", "liquid_staking", 2.5e7),
    PoolSnapshot("hydration", "DOT", 12.5, "polkadot", "dex", 1.1e7),
]


class TestFindPool:

    def test_case_insensitive(self):
        assert find_pool(POOLS, "bifrost", "VDOT") is POOLS[0]

    def test_requires_both_fields(self):
        assert find_pool(POOLS, "bifrost", "DOT") is None


class TestDuration:

    def test_fractional_days(self):
        assert simulation_duration_days(START, START + timedelta(days=2, hours=12)) == 2.5

    def test_minimum_one_day(self):
        assert simulation_duration_days(START, START + timedelta(hours=1)) == 1.0


class TestRunQuickSimulation:

    def test_single_pool_31_days(self):
        result = run_quick_simulation(
            10_000.0, START, START + timedelta(days=31),
            [AllocationSpec("bifrost", "vDOT", 100)],
            [PoolSnapshot("bifrost", "vDOT", 30.11)],
        )
        expected = 10_000 * (1 + 0.3011 / 365) ** 31
        assert result.breakdown[0].final_usd == pytest.approx(expected, abs=1e-4)
        assert result.summary.duration_days == 31.0

    def test_multi_pool_split(self):
        result = run_quick_simulation(
            50_000.0, START, START + timedelta(days=181),
            [AllocationSpec("bifrost", "vDOT", 60), AllocationSpec("hydration", "DOT", 40)],
            POOLS,
        )
        first, second = result.breakdown
        assert first.allocated_usd == 30_000.0
        assert second.allocated_usd == 20_000.0
        assert result.summary.weighted_avg_yield_percent == pytest.approx(
            19.07 * 0.6 + 12.5 * 0.4
        )
        assert isinstance(first, SimulatedAllocation)
        assert first.tvl_usd == 2.5e7

    def test_pool_not_found(self):
        result = run_quick_simulation(
            10_000.0, START, START + timedelta(days=30),
            [AllocationSpec("bifrost", "vDOT", 50), AllocationSpec("acala", "LDOT", 50)],
            POOLS,
        )
        found, missing = result.breakdown
        assert isinstance(missing, UnresolvedAllocation)
        assert missing.final_usd == missing.allocated_usd == 5000.0
        assert missing.return_usd == 0.0
        assert missing.reason.startswith("Pool not found in data server for period")
        assert not missing.has_historical_data
        assert found.return_usd > 0
        # only the resolved pool contributes to the weighted yield
        assert result.summary.weighted_avg_yield_percent == pytest.approx(19.07 * 0.5)

    def test_validation_before_lookup(self):
        with pytest.raises(ValidationError):
            run_quick_simulation(
                10_000.0, START, START - timedelta(days=1),
                [AllocationSpec("bifrost", "vDOT", 100)], POOLS,
            )

    def test_to_dict(self):
        result = run_quick_simulation(
            1000.0, START, START + timedelta(days=10),
            [AllocationSpec("acala", "LDOT", 100)], [],
        )
        data = result.to_dict()
        assert data["breakdown"][0]["kind"] == "unresolved"
        assert data["summary"]["final_amount_usd"] == 1000.0
