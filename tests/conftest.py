"""Shared test fixtures."""

from __future__ import annotations

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

import pytest

from edge_engine.config import Settings
from edge_engine.exits.models import Position, Side
from edge_engine.markets.models import Action, Category, Market, MarketSignal
from edge_engine.signals.models import Outcome, OutcomeRecord
from edge_engine.signals.tracker import OutcomeTracker


@pytest.fixture
def now():
    return datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings():
    """Default settings, isolated from any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def tmp_db():
    """Create a temporary database file for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test_outcomes.db"


@pytest.fixture
def tracker(tmp_db):
    """Outcome tracker backed by a temporary database."""
    with patch("edge_engine.signals.tracker.get_settings") as mock_settings:
        s = mock_settings.return_value
        s.db_path = tmp_db
        s.calibration_max_records = 100
        yield OutcomeTracker()


def make_signal(
    market_id: str = "m1",
    question: str = "Will the Fed cut rates in March?",
    model_prob: float = 0.70,
    market_prob: float = 0.50,
    confidence: float = 70.0,
    action: Action = Action.BUY_YES,
    category: Category = Category.MACRO,
    liquidity: float = 50_000.0,
    end_date: datetime | None = None,
) -> MarketSignal:
    return MarketSignal(
        market_id=market_id,
        question=question,
        category=category,
        model_prob=model_prob,
        market_prob=market_prob,
        confidence=confidence,
        action=action,
        liquidity=liquidity,
        end_date=end_date,
    )


def make_records(
    n: int,
    correct: int,
    now: datetime,
    category: Category = Category.POLITICS,
    action: Action = Action.BUY_YES,
    confidence: float = 70.0,
) -> list[OutcomeRecord]:
    """*n* resolved records, the first *correct* of which the action got right."""
    right = Outcome.YES if action.predicts_yes else Outcome.NO
    wrong = Outcome.NO if right is Outcome.YES else Outcome.YES
    return [
        OutcomeRecord(
            signal_id=f"s{i}",
            category=category,
            action=action,
            edge=0.1,
            confidence=confidence,
            timestamp=now - timedelta(hours=i + 1),
            outcome=right if i < correct else wrong,
        )
        for i in range(n)
    ]


def make_position(
    entry_price: float = 0.50,
    current_price: float = 0.50,
    side: Side = Side.YES,
    size: float = 100.0,
    position_id: str = "p1",
    market_id: str = "m1",
    entry_date: datetime | None = None,
    end_date: datetime | None = None,
    original_edge: float | None = 0.10,
    original_confidence: float | None = 70.0,
) -> Position:
    return Position(
        position_id=position_id,
        market_id=market_id,
        side=side,
        entry_price=entry_price,
        current_price=current_price,
        size=size,
        entry_date=entry_date,
        end_date=end_date,
        original_edge=original_edge,
        original_confidence=original_confidence,
        question="Will it happen?",
    )


@pytest.fixture
def inverse_markets():
    return [
        Market("a", "Will Team X win the final?", yes_price=0.60, liquidity=50_000),
        Market("b", "Will Team X lose the final?", yes_price=0.55, liquidity=50_000),
    ]
