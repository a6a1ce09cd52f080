"""Tests for JSON input loading."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from edge_engine.exits.models import Side
from edge_engine.markets.loader import (
    load_market_states,
    load_markets,
    load_positions,
    load_signals,
    market_from_dict,
    signal_from_dict,
)
from edge_engine.markets.models import Action, Category


def _write(tmp_path, name, data):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestMarkets:
    def test_camel_case_keys(self):
        market = market_from_dict({
            "marketId": "abc",
            "question": "Will Bitcoin hit $150k?",
            "yesPrice": "0.42",
            "liquidity": 12000,
            "endDate": "2026-12-31T00:00:00Z",
        })
        assert market.market_id == "abc"
        assert market.yes_price == pytest.approx(0.42)
        assert market.category is Category.CRYPTO
        assert market.end_date == datetime(2026, 12, 31, tzinfo=timezone.utc)

    def test_explicit_category_wins(self):
        market = market_from_dict({"id": "x", "question": "Will Bitcoin hit $150k?", "category": "macro"})
        assert market.category is Category.MACRO

    def test_bad_entries_skipped(self, tmp_path):
        path = _write(tmp_path, "markets.json", [
            {"id": "ok", "question": "Q", "yes_price": 0.5},
            {"question": "missing id"},
            {"id": "bad", "yes_price": "not a number"},
        ])
        assert [m.market_id for m in load_markets(path)] == ["ok"]

    def test_wrapper_dict(self, tmp_path):
        path = _write(tmp_path, "markets.json", {"markets": [{"id": "a"}, {"id": "b"}]})
        assert len(load_markets(path)) == 2

    def test_not_a_list(self, tmp_path):
        path = _write(tmp_path, "markets.json", "just a string")
        with pytest.raises(ValueError):
            load_markets(path)


class TestSignals:
    def test_action_from_edge(self):
        signal = signal_from_dict({"id": "s", "question": "Q", "modelProb": 0.3, "marketProb": 0.5})
        assert signal.action is Action.BUY_NO
        assert signal.confidence == 50.0

    def test_explicit_action(self, tmp_path):
        path = _write(tmp_path, "signals.json", [
            {"market_id": "s", "model_prob": 0.6, "market_prob": 0.5, "action": "HOLD", "confidence": 80},
        ])
        (signal,) = load_signals(path)
        assert signal.action is Action.HOLD
        assert signal.confidence == 80.0


class TestPositions:
    def test_position_fields(self, tmp_path):
        path = _write(tmp_path, "positions.json", [{
            "marketId": "m1",
            "side": "BUY_NO",
            "entryPrice": 0.6,
            "currentPrice": 0.5,
            "size": 250,
            "entryDate": "2026-02-01T00:00:00+00:00",
            "originalConfidence": 75,
        }])
        (position,) = load_positions(path)
        assert position.position_id == "m1"
        assert position.side is Side.NO
        assert position.size == 250.0
        assert position.original_confidence == 75.0
        assert position.original_edge is None

    def test_unknown_side_skipped(self, tmp_path):
        path = _write(tmp_path, "positions.json", [
            {"market_id": "m1", "side": "YSE", "entry_price": 0.5, "current_price": 0.5},
            {"market_id": "m2", "side": "no", "entry_price": 0.5, "current_price": 0.5},
        ])
        assert [p.market_id for p in load_positions(path)] == ["m2"]

    def test_missing_price_skipped(self, tmp_path):
        path = _write(tmp_path, "positions.json", [{"market_id": "m1", "entry_price": 0.5}])
        assert load_positions(path) == []


def test_market_states(tmp_path):
    path = _write(tmp_path, "states.json", [
        {"market_id": "m1", "liquidity": 5000, "edge": -0.05, "confidence": 40},
        {"market_id": "m2", "liquidity": 80000},
        {"liquidity": 1},
    ])
    states, analyses = load_market_states(path)
    assert set(states) == {"m1", "m2"}
    assert states["m1"].liquidity == 5000.0
    assert analyses["m1"].edge == pytest.approx(-0.05)
    assert analyses["m1"].confidence == 40.0
    assert "m2" not in analyses
