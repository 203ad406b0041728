"""Tests for src/yields/derivation.py."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.data.models import NO_DATA, RateObservation
from src.data.store import InMemoryRateStore
from src.yields.derivation import (
    YieldDerivationEngine,
    annualize_rate_change,
    compose_total_yield,
    select_staking_yield,
)

START = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _store_with_growth(days: int = 60, apy: float = 0.10, per_day: int = 2) -> InMemoryRateStore:
    """Observations every 24/per_day hours on a rate compounding at ``apy``."""
    store = InMemoryRateStore()
    step = timedelta(hours=24 // per_day)
    ts = START
    while ts < START + timedelta(days=days):
        elapsed_days = (ts - START).total_seconds() / 86_400
        store.upsert_rate(RateObservation("vDOT", ts, 1.0 * (1 + apy) ** (elapsed_days / 365)))
        ts += step
    return store


class TestPureArithmetic:

    def test_annualize_known_value(self):
        # 1% over 7 days
        expected = 1.01 ** (365 / 7) - 1
        assert annualize_rate_change(1.01, 1.0, 7) == pytest.approx(expected)

    def test_depreciation_is_zero(self):
        assert annualize_rate_change(0.99, 1.0, 7) == 0.0

    def test_flat_rate_is_zero(self):
        assert annualize_rate_change(1.0, 1.0, 7) == 0.0

    def test_non_positive_reference_is_zero(self):
        assert annualize_rate_change(1.0, 0.0, 7) == 0.0
        assert annualize_rate_change(1.0, -1.0, 7) == 0.0

    def test_non_positive_interval_is_zero(self):
        assert annualize_rate_change(1.1, 1.0, 0) == 0.0

    def test_short_window_wins_when_positive(self):
        assert select_staking_yield(0.12, 0.08) == 0.12
        assert select_staking_yield(0.0, 0.08) == 0.08
        assert select_staking_yield(-0.01, 0.08) == 0.08
        assert select_staking_yield(0.0, 0.0) == 0.0

    def test_total_yield_compounds(self):
        assert compose_total_yield(10.0, 0.0) == pytest.approx(10.0)
        assert compose_total_yield(10.0, 5.0) == pytest.approx(15.5)


class TestDeriveYield:

    def test_no_observations_returns_no_data(self):
        engine = YieldDerivationEngine(InMemoryRateStore())
        assert engine.derive_yield("vDOT") is NO_DATA

    def test_constant_growth_recovers_apy(self):
        store = _store_with_growth()
        snap = YieldDerivationEngine(store).derive_yield("vDOT")
        assert snap.yield_7d == pytest.approx(10.0, abs=1e-3)
        assert snap.yield_30d == pytest.approx(10.0, abs=1e-3)
        assert snap.staking_yield_percent == pytest.approx(10.0, abs=1e-3)
        assert snap.total_yield_percent == snap.staking_yield_percent
        assert snap.auxiliary_yield_percent == 0.0

    def test_insufficient_history_is_zero(self):
        store = _store_with_growth(days=3)
        snap = YieldDerivationEngine(store).derive_yield("vDOT")
        assert snap.yield_7d == 0.0
        assert snap.yield_30d == 0.0
        assert snap.staking_yield_percent == 0.0

    def test_falls_back_to_long_window(self):
        store = _store_with_growth(days=40)
        latest = store.latest_rate("vDOT")
        # rate dips below its 7-day-ago value
        store.upsert_rate(
            RateObservation("vDOT", latest.timestamp + timedelta(hours=12), latest.rate * 0.997)
        )
        snap = YieldDerivationEngine(store).derive_yield("vDOT")
        assert snap.yield_7d == 0.0
        assert snap.staking_yield_percent == snap.yield_30d
        assert snap.yield_30d > 0

    def test_as_of_uses_earlier_observation(self):
        store = _store_with_growth()
        as_of = START + timedelta(days=20, hours=3)
        snap = YieldDerivationEngine(store).derive_yield("vDOT", as_of=as_of)
        assert snap.timestamp == START + timedelta(days=20)

    def test_idempotent(self):
        store = _store_with_growth()
        engine = YieldDerivationEngine(store)
        as_of = START + timedelta(days=45)
        first = engine.derive_yield("vDOT", as_of=as_of, base_price_usd=5.0)
        count = store.count_yield_snapshots("vDOT")
        second = engine.derive_yield("vDOT", as_of=as_of, base_price_usd=5.0)
        assert first == second
        assert store.count_yield_snapshots("vDOT") == count == 1

    def test_rounding_to_four_decimals(self):
        snap = YieldDerivationEngine(_store_with_growth()).derive_yield("vDOT")
        for value in (snap.yield_7d, snap.yield_30d, snap.staking_yield_percent):
            assert round(value, 4) == value


class TestBackfill:

    def test_one_snapshot_per_day_with_positive_yield(self):
        store = _store_with_growth(days=30)
        written = YieldDerivationEngine(store).backfill_yield_history("vDOT")
        # days 0..6 have no 7-day reference and no 30-day reference
        assert written == 23
        assert store.count_yield_snapshots("vDOT") == 23

    def test_keeps_last_observation_of_each_day(self):
        store = _store_with_growth(days=30)
        YieldDerivationEngine(store).backfill_yield_history("vDOT")
        for snap in store.query_yield_snapshots("vDOT"):
            assert snap.timestamp.hour == 12

    def test_matches_single_point_derivation(self):
        store = _store_with_growth(days=45)
        engine = YieldDerivationEngine(store)
        engine.backfill_yield_history("vDOT", base_price_usd=4.2)
        backfilled = store.query_yield_snapshots("vDOT")

        for snap in backfilled:
            assert engine.derive_yield("vDOT", as_of=snap.timestamp, base_price_usd=4.2) == snap
        assert store.count_yield_snapshots("vDOT") == len(backfilled)

    def test_empty_history(self):
        assert YieldDerivationEngine(InMemoryRateStore()).backfill_yield_history("vKSM") == 0


class TestYieldHistory:

    def test_daily_keeps_last_per_day(self):
        store = _store_with_growth(days=40)
        engine = YieldDerivationEngine(store)
        for day in range(10, 20):
            for hour in (0, 12):
                engine.derive_yield("vDOT", as_of=START + timedelta(days=day, hours=hour))

        daily = engine.yield_history("vDOT", START, START + timedelta(days=40))
        hourly = engine.yield_history("vDOT", START, START + timedelta(days=40), "hourly")
        assert len(daily) == 10
        assert len(hourly) == 20
        assert all(s.timestamp.hour == 12 for s in daily)

    def test_unknown_granularity(self):
        engine = YieldDerivationEngine(InMemoryRateStore())
        with pytest.raises(ValueError, match="granularity"):
            engine.yield_history("vDOT", START, START, "weekly")
