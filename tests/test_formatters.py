"""Tests for output formatters."""

from __future__ import annotations

import io
import json

import pytest
from rich.console import Console

from edge_engine.arbitrage.opportunities import scan_for_arbitrage
from edge_engine.calibration.adaptive import CalibrationResult, learning_stats
from edge_engine.common.types import ResultStatus
from edge_engine.exits.engine import evaluate_position
from edge_engine.exits.models import MarketState
from edge_engine.markets.models import Action
from edge_engine.pipeline import Decision, SizedRecommendation
from edge_engine.risk.metrics import risk_report
from edge_engine.signals.formatters import (
    format_arbitrage_json,
    format_arbitrage_table,
    format_exits_json,
    format_exits_table,
    format_recommendations_json,
    format_recommendations_table,
    format_risk_json,
    format_risk_table,
    format_stats_table,
)

from conftest import make_position, make_records, make_signal


def _console() -> Console:
    return Console(file=io.StringIO(), width=200)


@pytest.fixture
def recommendations():
    calibration = CalibrationResult(
        adjusted_edge=0.18,
        adjusted_confidence=66.0,
        learning_factor=0.5,
        sample_size=40,
        status=ResultStatus.OK,
        message="Calibrated",
    )
    return [
        SizedRecommendation(make_signal(), Decision.ACCEPT, 0.04, calibration, kelly_size=0.04),
        SizedRecommendation(
            make_signal(market_id="m2", action=Action.HOLD), Decision.REJECT_ACTION, 0.0, calibration,
            reason="Action HOLD is not sized",
        ),
    ]


@pytest.fixture
def exit_recommendation(settings, now):
    return evaluate_position(
        make_position(0.50, 0.35), MarketState(liquidity=50_000), now=now, settings=settings,
    )


class TestRecommendations:
    def test_json_fields(self, recommendations):
        data = json.loads(format_recommendations_json(recommendations))
        assert len(data) == 2
        first = data[0]
        assert first["market_id"] == "m1"
        assert first["decision"] == "ACCEPT"
        assert first["calibrated_edge"] == pytest.approx(0.18)
        assert first["raw_edge"] == pytest.approx(0.2)
        assert first["timing"] is None
        assert data[1]["reason"] == "Action HOLD is not sized"

    def test_json_empty(self):
        assert json.loads(format_recommendations_json([])) == []

    def test_table(self, recommendations):
        console = _console()
        format_recommendations_table(recommendations, console)
        output = console.file.getvalue()
        assert "Sized Recommendations" in output
        assert "1 of 2 candidate(s) accepted" in output

    def test_table_empty(self):
        console = _console()
        format_recommendations_table([], console)
        assert "No candidate signals" in console.file.getvalue()


class TestExits:
    def test_json(self, exit_recommendation):
        data = json.loads(format_exits_json([exit_recommendation]))
        assert data[0]["recommendation"] == "STOP_LOSS"
        assert data[0]["priority"] == "critical"
        assert data[0]["urgency"] == "IMMEDIATE"
        assert data[0]["signals"][0]["reason"] == "STOP_LOSS"

    def test_table(self, exit_recommendation):
        console = _console()
        format_exits_table([exit_recommendation], console)
        output = console.file.getvalue()
        assert "Exit Signals" in output
        assert "STOP_LOSS" in output

    def test_table_empty(self):
        console = _console()
        format_exits_table([], console)
        assert "hold all positions" in console.file.getvalue()


class TestArbitrage:
    def test_json(self, inverse_markets):
        data = json.loads(format_arbitrage_json(scan_for_arbitrage(inverse_markets)))
        assert data[0]["type"] == "SELL_BOTH"
        assert data[0]["relationship"] == "INVERSE"
        assert {t["market_id"] for t in data[0]["trades"]} == {"a", "b"}

    def test_table(self, inverse_markets):
        console = _console()
        format_arbitrage_table(scan_for_arbitrage(inverse_markets), console)
        assert "Arbitrage Opportunities" in console.file.getvalue()


class TestRisk:
    def test_json(self):
        data = json.loads(format_risk_json(risk_report([0.01, -0.02, 0.03])))
        assert data["observations"] == 3
        assert data["var"]["method"] == "insufficient_data"
        assert "max_drawdown" in data["drawdown"]

    def test_table(self):
        console = _console()
        format_risk_table(risk_report([0.01, -0.02, 0.03] * 5), console)
        output = console.file.getvalue()
        assert "Sharpe ratio" in output
        assert "VaR (95%)" in output


class TestStats:
    def test_table(self, now):
        console = _console()
        format_stats_table("POLITICS", learning_stats(make_records(10, 7, now)), console=console)
        output = console.file.getvalue()
        assert "Learning Stats: POLITICS" in output
        assert "70.0%" in output

    def test_empty(self):
        console = _console()
        format_stats_table("CRYPTO", [], console=console)
        assert "No resolved signals for CRYPTO" in console.file.getvalue()
