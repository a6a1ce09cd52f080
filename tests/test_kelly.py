"""Tests for Kelly position sizing."""

from __future__ import annotations

import pytest

from edge_engine.config import Settings
from edge_engine.markets.models import Action
from edge_engine.sizing.kelly import compute_kelly, liquidity_multiplier, size_for_signal

from conftest import make_signal


@pytest.fixture
def uncapped():
    return Settings(_env_file=None, max_position_size=1.0)


class TestComputeKelly:
    def test_positive_edge(self, settings):
        k = compute_kelly(0.70, 0.50, liquidity=50_000, settings=settings)
        assert 0 < k <= settings.max_position_size

    def test_capped_at_max_position(self, settings):
        assert compute_kelly(0.95, 0.20, liquidity=500_000, settings=settings) == settings.max_position_size

    def test_formula_and_liquidity_tiers(self, uncapped):
        """Full Kelly 0.04 at even odds, times 2x multiplier, times tier."""
        assert compute_kelly(0.52, 0.50, liquidity=2_000, settings=uncapped) == pytest.approx(0.072)
        assert compute_kelly(0.52, 0.50, liquidity=10_000, settings=uncapped) == pytest.approx(0.08)
        assert compute_kelly(0.52, 0.50, liquidity=25_000, settings=uncapped) == pytest.approx(0.088)
        assert compute_kelly(0.52, 0.50, liquidity=200_000, settings=uncapped) == pytest.approx(0.096)

    def test_zero_below_min_liquidity(self, settings):
        assert compute_kelly(0.90, 0.50, liquidity=999, settings=settings) == 0.0

    @pytest.mark.parametrize("price", [0.0, 1.0, -0.1, 1.5])
    def test_zero_for_price_outside_unit_interval(self, price, settings):
        assert compute_kelly(0.90, price, liquidity=50_000, settings=settings) == 0.0

    @pytest.mark.parametrize("model_prob", [0.50, 0.40, 0.505])
    def test_zero_without_edge_over_buffer(self, model_prob, settings):
        assert compute_kelly(model_prob, 0.50, liquidity=50_000, settings=settings) == 0.0

    @pytest.mark.parametrize("bad", [float("nan"), float("inf")])
    def test_zero_for_non_finite(self, bad, settings):
        assert compute_kelly(bad, 0.5, settings=settings) == 0.0
        assert compute_kelly(0.7, bad, settings=settings) == 0.0

    def test_never_negative(self, settings):
        for p in (0.1, 0.3, 0.5, 0.7, 0.9):
            for price in (0.1, 0.3, 0.5, 0.7, 0.9):
                assert compute_kelly(p, price, settings=settings) >= 0


class TestLiquidityMultiplier:
    def test_tiers(self, settings):
        assert liquidity_multiplier(500, settings) == 0.0
        assert liquidity_multiplier(1_000, settings) == 0.9
        assert liquidity_multiplier(5_000, settings) == 1.0
        assert liquidity_multiplier(20_000, settings) == 1.1
        assert liquidity_multiplier(100_000, settings) == 1.2

    def test_tiers_from_settings(self):
        settings = Settings(
            _env_file=None,
            liquidity_tiers=((10_000.0, 1.5), (50_000.0, 2.0)),
            thin_market_multiplier=0.5,
        )
        assert liquidity_multiplier(2_000, settings) == 0.5
        assert liquidity_multiplier(10_000, settings) == 1.5
        assert liquidity_multiplier(60_000, settings) == 2.0

    def test_tiers_from_env(self, monkeypatch):
        monkeypatch.setenv("EDGE_LIQUIDITY_TIERS", "[[1000, 3.0]]")
        assert Settings(_env_file=None).liquidity_tiers == ((1000.0, 3.0),)


class TestSizeForSignal:
    def test_buy_yes(self, settings):
        assert size_for_signal(make_signal(model_prob=0.7, market_prob=0.5), settings) > 0

    def test_buy_no_sizes_complement(self, settings):
        signal = make_signal(model_prob=0.3, market_prob=0.5, action=Action.BUY_NO)
        assert size_for_signal(signal, settings) > 0

    def test_hold_is_zero(self, settings):
        assert size_for_signal(make_signal(action=Action.HOLD), settings) == 0.0
