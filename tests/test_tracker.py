"""Tests for the SQLite outcome tracker."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from edge_engine.markets.models import Action, Category
from edge_engine.signals.models import Outcome, OutcomeRecord
from edge_engine.signals.tracker import InMemoryOutcomeHistory, OutcomeTracker


def _record(signal_id="sig-1", category=Category.POLITICS, action=Action.BUY_YES, hours_ago=1, outcome=None):
    return OutcomeRecord(
        signal_id=signal_id,
        category=category,
        action=action,
        edge=0.12,
        confidence=65.0,
        timestamp=datetime.now(timezone.utc) - timedelta(hours=hours_ago),
        outcome=outcome,
    )


@pytest.mark.asyncio
async def test_log_signal(tracker):
    assert await tracker.log_signal(_record()) is True
    assert await tracker.get_unresolved_ids() == ["sig-1"]


@pytest.mark.asyncio
async def test_log_signal_duplicate_ignored(tracker):
    await tracker.log_signal(_record())
    assert await tracker.log_signal(_record()) is False


@pytest.mark.asyncio
async def test_record_outcome_resolves(tracker):
    await tracker.log_signal(_record())
    ok = await tracker.record_outcome("sig-1", Outcome.YES, Category.POLITICS, Action.BUY_YES, 0.12, 65.0)
    assert ok is True
    assert await tracker.get_unresolved_ids() == []

    since = datetime.now(timezone.utc) - timedelta(days=1)
    records = await tracker.fetch_outcomes(Category.POLITICS, Action.BUY_YES, since)
    assert len(records) == 1
    assert records[0].outcome is Outcome.YES
    assert records[0].correct is True


@pytest.mark.asyncio
async def test_record_outcome_idempotent(tracker):
    """Same id and outcome twice: success, single resolution."""
    await tracker.log_signal(_record())
    args = ("sig-1", Outcome.NO, Category.POLITICS, Action.BUY_YES, 0.12, 65.0)
    assert await tracker.record_outcome(*args) is True
    assert await tracker.record_outcome(*args) is True

    records = await tracker.get_category_records(Category.POLITICS)
    assert len(records) == 1
    assert records[0].outcome is Outcome.NO


@pytest.mark.asyncio
async def test_record_outcome_refuses_conflict(tracker):
    await tracker.log_signal(_record())
    await tracker.record_outcome("sig-1", Outcome.YES, Category.POLITICS, Action.BUY_YES, 0.12, 65.0)
    ok = await tracker.record_outcome("sig-1", Outcome.NO, Category.POLITICS, Action.BUY_YES, 0.12, 65.0)
    assert ok is False

    records = await tracker.get_category_records(Category.POLITICS)
    assert records[0].outcome is Outcome.YES


@pytest.mark.asyncio
async def test_record_outcome_unknown_id_inserts(tracker):
    ok = await tracker.record_outcome("new", Outcome.YES, Category.CRYPTO, Action.BUY_NO, -0.1, 55.0)
    assert ok is True
    assert await tracker.get_categories() == [Category.CRYPTO]


@pytest.mark.asyncio
async def test_fetch_outcomes_filters(tracker):
    await tracker.log_signal(_record("a", outcome=Outcome.YES))
    await tracker.log_signal(_record("b", action=Action.BUY_NO, outcome=Outcome.NO))
    await tracker.log_signal(_record("c", category=Category.CRYPTO, outcome=Outcome.YES))
    await tracker.log_signal(_record("d", hours_ago=24 * 40, outcome=Outcome.YES))
    await tracker.log_signal(_record("e"))  # unresolved

    since = datetime.now(timezone.utc) - timedelta(days=30)
    records = await tracker.fetch_outcomes(Category.POLITICS, Action.BUY_YES, since)
    assert [r.signal_id for r in records] == ["a"]


@pytest.mark.asyncio
async def test_fetch_outcomes_newest_first_and_capped(tmp_db):
    tracker = OutcomeTracker(db_path=tmp_db, max_records=3)
    for i in range(5):
        await tracker.log_signal(_record(f"s{i}", hours_ago=i + 1, outcome=Outcome.YES))

    since = datetime.now(timezone.utc) - timedelta(days=1)
    records = await tracker.fetch_outcomes(Category.POLITICS, Action.BUY_YES, since)
    assert [r.signal_id for r in records] == ["s0", "s1", "s2"]


@pytest.mark.asyncio
async def test_learning_stats(tracker):
    await tracker.log_signal(_record("a", outcome=Outcome.YES))
    await tracker.log_signal(_record("b", outcome=Outcome.NO))
    stats = await tracker.get_learning_stats(Category.POLITICS)
    assert len(stats) == 1
    assert stats[0].total == 2
    assert stats[0].accuracy == pytest.approx(0.5)


class TestInMemoryHistory:
    @pytest.mark.asyncio
    async def test_resolve_once(self):
        history = InMemoryOutcomeHistory()
        args = (Category.EVENT, Action.BUY_YES, 0.1, 60.0)
        assert await history.record_outcome("x", Outcome.YES, *args) is True
        assert await history.record_outcome("x", Outcome.YES, *args) is True
        assert await history.record_outcome("x", Outcome.NO, *args) is False

        since = datetime.now(timezone.utc) - timedelta(days=1)
        records = await history.fetch_outcomes(Category.EVENT, Action.BUY_YES, since)
        assert len(records) == 1
        assert records[0].outcome is Outcome.YES
