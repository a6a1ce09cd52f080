"""Tests for arbitrage opportunity detection."""

from __future__ import annotations

import logging

import pytest

from edge_engine.arbitrage.opportunities import (
    OpportunityType,
    calculate_arbitrage,
    group_related_markets,
    scan_for_arbitrage,
)
from edge_engine.arbitrage.relationships import MarketRelationship, RelationshipType
from edge_engine.config import Settings
from edge_engine.markets.models import Market


def _rel(rel_type: RelationshipType) -> MarketRelationship:
    return MarketRelationship("a", "b", rel_type, "test", "test")


class TestCalculateArbitrage:
    def test_inverse_overpriced_sell_both(self, settings):
        opp = calculate_arbitrage(_rel(RelationshipType.INVERSE), 0.60, 0.60, settings)
        assert opp is not None
        assert opp.type is OpportunityType.SELL_BOTH
        assert opp.expected_profit == pytest.approx(20.0)
        assert opp.confidence == pytest.approx(90.0)
        assert {t.action for t in opp.trades} == {"SELL_YES"}

    def test_inverse_fair_no_opportunity(self, settings):
        assert calculate_arbitrage(_rel(RelationshipType.INVERSE), 0.51, 0.49, settings) is None

    def test_inverse_underpriced_buy_both(self, settings):
        opp = calculate_arbitrage(_rel(RelationshipType.INVERSE), 0.40, 0.45, settings)
        assert opp.type is OpportunityType.BUY_BOTH
        assert opp.expected_profit == pytest.approx(15.0)

    def test_inverse_threshold_inclusive(self, settings):
        opp = calculate_arbitrage(_rel(RelationshipType.INVERSE), 0.55, 0.50, settings)
        assert opp is not None

    def test_confidence_capped(self, settings):
        opp = calculate_arbitrage(_rel(RelationshipType.INVERSE), 0.90, 0.90, settings)
        assert opp.confidence == 95.0

    def test_subset_overpriced(self, settings):
        opp = calculate_arbitrage(_rel(RelationshipType.SUBSET), 0.50, 0.40, settings)
        assert opp.type is OpportunityType.SUBSET_MISPRICING
        assert opp.expected_profit == pytest.approx(10.0)
        sell, buy = opp.trades
        assert (sell.market_id, sell.action) == ("a", "SELL_YES")
        assert (buy.market_id, buy.action) == ("b", "BUY_YES")

    def test_subset_consistent_no_opportunity(self, settings):
        assert calculate_arbitrage(_rel(RelationshipType.SUBSET), 0.30, 0.60, settings) is None

    def test_superset_underpriced(self, settings):
        opp = calculate_arbitrage(_rel(RelationshipType.SUPERSET), 0.40, 0.50, settings)
        assert opp.type is OpportunityType.SUPERSET_MISPRICING
        assert opp.trades[0].action == "BUY_YES"

    def test_mutually_exclusive_overpriced(self, settings):
        opp = calculate_arbitrage(_rel(RelationshipType.MUTUALLY_EXCLUSIVE), 0.60, 0.50, settings)
        assert opp.type is OpportunityType.MUTUALLY_EXCLUSIVE_OVERPRICED
        assert opp.expected_profit == pytest.approx(10.0)

    def test_mutually_exclusive_under_one_is_fine(self, settings):
        assert calculate_arbitrage(_rel(RelationshipType.MUTUALLY_EXCLUSIVE), 0.30, 0.50, settings) is None

    def test_correlated_has_no_arbitrage(self, settings):
        assert calculate_arbitrage(_rel(RelationshipType.CORRELATED), 0.90, 0.90, settings) is None

    def test_non_finite_price(self, settings):
        assert calculate_arbitrage(_rel(RelationshipType.INVERSE), float("nan"), 0.5, settings) is None


class TestScanForArbitrage:
    def test_finds_and_sorts(self, settings):
        markets = [
            Market("a", "Will Team X win the final?", yes_price=0.60),
            Market("b", "Will Team X lose the final?", yes_price=0.55),
            Market("c", "Will Alice win the chess tournament?", yes_price=0.70),
            Market("d", "Will Bob win the chess tournament?", yes_price=0.60),
        ]
        opps = scan_for_arbitrage(markets, settings=settings)
        assert [o.type for o in opps] == [
            OpportunityType.MUTUALLY_EXCLUSIVE_OVERPRICED,
            OpportunityType.SELL_BOTH,
        ]
        assert opps[0].market_a_question == "Will Alice win the chess tournament?"

    def test_skips_invalid_prices(self, settings):
        markets = [
            Market("a", "Will Team X win the final?", yes_price=None),
            Market("b", "Will Team X lose the final?", yes_price=0.90),
        ]
        assert scan_for_arbitrage(markets, settings=settings) == []

    def test_duplicate_ids_scanned_once(self, settings):
        a = Market("a", "Will Team X win the final?", yes_price=0.60)
        b = Market("b", "Will Team X lose the final?", yes_price=0.60)
        assert len(scan_for_arbitrage([a, b, b], settings=settings)) == 1

    def test_truncates_large_input(self, caplog):
        settings = Settings(_env_file=None, max_scan_markets=2)
        markets = [Market(str(i), f"Question {i}", yes_price=0.5) for i in range(5)]
        with caplog.at_level(logging.WARNING):
            scan_for_arbitrage(markets, settings=settings)
        assert "truncated" in caplog.text


class TestGroupRelatedMarkets:
    def test_groups(self):
        markets = [
            Market("a", "Will Bitcoin hit $150k?"),
            Market("b", "Will a Bitcoin ETF see inflows?"),
            Market("c", "Will it rain in Oslo?"),
        ]
        groups = group_related_markets(markets)
        assert len(groups) == 1
        assert groups[0].anchor.market_id == "a"
        assert [m.market_id for m in groups[0].related] == ["b"]
