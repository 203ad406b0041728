"""Tests for src/risk/impermanent_loss.py."""

from __future__ import annotations

import pytest

from src.risk.impermanent_loss import calculate_il, estimate_price_ratio, is_liquidity_pool


class TestCalculateIL:

    def test_no_price_change(self):
        assert calculate_il(1.0) == 0.0

    def test_price_doubles(self):
        assert calculate_il(2.0) == pytest.approx(2 * 2 ** 0.5 / 3 - 1)

    def test_always_non_positive(self):
        for ratio in (0.1, 0.5, 0.9, 1.1, 3.0, 10.0):
            assert calculate_il(ratio) <= 0

    def test_invalid_ratio(self):
        assert calculate_il(0.0) == 0.0


class TestEstimatePriceRatio:

    def test_constant_yield_no_drift(self):
        assert estimate_price_ratio([10.0] * 30) == 1.0

    def test_population_std(self):
        # std of [0, 20] is 10 → drift 0.1 * 0.3
        assert estimate_price_ratio([0.0, 20.0]) == pytest.approx(1.03)

    def test_drift_capped(self):
        assert estimate_price_ratio([0.0, 1000.0]) == pytest.approx(1.30)

    def test_too_few_samples(self):
        assert estimate_price_ratio([42.0]) == 1.0


class TestIsLiquidityPool:

    def test_pool_types(self):
        assert is_liquidity_pool("dex")
        assert is_liquidity_pool("FARMING")
        assert not is_liquidity_pool("liquid_staking")
        assert not is_liquidity_pool(None)
