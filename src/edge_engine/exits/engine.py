"""Exit-signal classification for open positions.

Every scan re-evaluates each position from scratch: there are no state
transitions, only a set of independent checks over the current position,
market and re-analysis. The only state carried between scans is the
per-position peak P&L, kept in a bounded store.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, Mapping, Sequence

from edge_engine.common.store import BoundedStore
from edge_engine.common.types import days_between, is_finite
from edge_engine.config import Settings, get_settings
from edge_engine.exits.models import (
    ExitReason,
    ExitRecommendation,
    ExitSignal,
    MarketState,
    Position,
    Priority,
    Reanalysis,
    Side,
    Urgency,
)

logger = logging.getLogger(__name__)

_URGENCY_RANK = {Urgency.IMMEDIATE: 0, Urgency.TODAY: 1, Urgency.WHEN_CONVENIENT: 2}


def position_pnl(position: Position) -> float:
    """Unrealized P&L in percent, rounded to 2 decimals.

    YES side: (current - entry) / entry.
    NO side:  (entry - current) / (1 - entry), prices being YES prices.

    A current price of 0 or 1 is a resolved market and a valid -100% or
    +100% outcome. Returns 0 only when the ratio is undefined.
    """
    entry, current = position.entry_price, position.current_price
    if not is_finite(entry, current) or not 0.0 <= current <= 1.0:
        return 0.0

    if position.side is Side.YES:
        if entry <= 0.0:
            return 0.0
        pnl = (current - entry) / entry * 100.0
    else:
        if entry >= 1.0:
            return 0.0
        pnl = (entry - current) / (1.0 - entry) * 100.0
    return round(pnl, 2)


class PeakPnLTracker:
    """Highest P&L seen per open position, used to arm trailing stops.

    Values only ever increase. Call ``clear`` when a position closes.
    """

    def __init__(self, store: BoundedStore[str, float] | None = None, settings: Settings | None = None) -> None:
        if store is None:
            if settings is None:
                settings = get_settings()
            store = BoundedStore(
                max_size=settings.peak_tracker_max_size,
                ttl_seconds=settings.peak_tracker_ttl_seconds,
            )
        self._store = store

    def update(self, position_id: str, current_pnl: float) -> float:
        """Record *current_pnl* and return the (possibly new) peak."""
        def _max(peak: float | None) -> float:
            base = 0.0 if peak is None else peak
            return current_pnl if current_pnl > base else base

        return self._store.update(position_id, _max)

    def get(self, position_id: str) -> float:
        peak = self._store.get(position_id)
        return 0.0 if peak is None else peak

    def clear(self, position_id: str) -> bool:
        return self._store.delete(position_id)

    def prune(self, open_position_ids: Iterable[str]) -> int:
        """Drop peaks for positions not in *open_position_ids*; returns how many."""
        keep = set(open_position_ids)
        closed = [pid for pid in self._store.keys() if pid not in keep]
        for pid in closed:
            self._store.delete(pid)
        return len(closed)

    def __len__(self) -> int:
        return len(self._store)


# -- individual checks ---------------------------------------------------------


def check_stop_loss(pnl: float, settings: Settings) -> ExitSignal | None:
    if pnl <= -settings.stop_loss_percent:
        return ExitSignal(
            ExitReason.STOP_LOSS,
            Priority.CRITICAL,
            f"Stop loss triggered: {pnl:.1f}% <= -{settings.stop_loss_percent:g}%",
            pnl,
        )
    return None


def check_profit_target(pnl: float, settings: Settings) -> ExitSignal | None:
    if pnl >= settings.profit_target_percent:
        return ExitSignal(
            ExitReason.PROFIT_TARGET,
            Priority.MEDIUM,
            f"Profit target reached: {pnl:.1f}% >= {settings.profit_target_percent:g}%",
            pnl,
        )
    return None


def check_trailing_stop(pnl: float, peak_pnl: float | None, settings: Settings) -> ExitSignal | None:
    """Armed only once the peak has exceeded ``trailing_stop_arm_percent``."""
    if peak_pnl is None or peak_pnl <= settings.trailing_stop_arm_percent:
        return None
    drop = peak_pnl - pnl
    if drop >= settings.trailing_stop_percent:
        return ExitSignal(
            ExitReason.TRAILING_STOP,
            Priority.HIGH,
            f"Trailing stop triggered: dropped {drop:.1f}% from peak of {peak_pnl:.1f}%",
            pnl,
        )
    return None


def check_time_decay(pnl: float, days_to_resolution: float | None, settings: Settings) -> ExitSignal | None:
    """Losing close to resolution, or a modest profit worth locking in."""
    if days_to_resolution is None:
        return None

    if days_to_resolution <= settings.time_decay_days and pnl < 0:
        return ExitSignal(
            ExitReason.TIME_DECAY_LOSS,
            Priority.HIGH,
            f"Resolution in {days_to_resolution:.1f} days with {pnl:.1f}% loss, limited recovery time",
            pnl,
        )

    if (
        days_to_resolution <= settings.lock_profit_days
        and settings.lock_profit_min_percent < pnl < settings.profit_target_percent
    ):
        return ExitSignal(
            ExitReason.LOCK_PROFIT_PRE_RESOLUTION,
            Priority.MEDIUM,
            f"Resolution in {days_to_resolution:.1f} days, lock in {pnl:.1f}% profit",
            pnl,
        )
    return None


def check_edge_reversal(position: Position, analysis: Reanalysis | None, pnl: float, settings: Settings) -> ExitSignal | None:
    """The re-analysis edge now points against the side we hold."""
    if analysis is None or not is_finite(analysis.edge):
        return None

    threshold = settings.edge_reversal_threshold
    edge = analysis.edge
    if position.side is Side.YES:
        reversed_ = edge < -threshold
    else:
        reversed_ = edge > threshold

    if reversed_ and abs(edge) > threshold:
        original = position.original_edge or 0.0
        return ExitSignal(
            ExitReason.EDGE_REVERSAL,
            Priority.HIGH,
            f"Edge reversed: was {original * 100:.1f}%, now {edge * 100:.1f}%",
            pnl,
        )
    return None


def check_confidence_drop(position: Position, analysis: Reanalysis | None, pnl: float, settings: Settings) -> ExitSignal | None:
    if analysis is None or not is_finite(analysis.confidence, position.original_confidence):
        return None
    drop = position.original_confidence - analysis.confidence
    if drop >= settings.confidence_drop_threshold:
        return ExitSignal(
            ExitReason.CONFIDENCE_DROP,
            Priority.MEDIUM,
            f"Confidence dropped: was {position.original_confidence:g}%, now {analysis.confidence:g}%",
            pnl,
        )
    return None


def check_liquidity(position: Position, market: MarketState | None, pnl: float, settings: Settings) -> ExitSignal | None:
    """Book too thin to exit later, or our size too big a share of it."""
    if market is None or not is_finite(market.liquidity) or market.liquidity <= 0:
        return None

    liquidity = market.liquidity
    if liquidity < settings.liquidity_dry_threshold:
        return ExitSignal(
            ExitReason.LIQUIDITY_DRY,
            Priority.HIGH,
            f"Market liquidity dropped to ${liquidity:,.0f}, exit before trapped",
            pnl,
        )

    if position.size and position.size / liquidity > settings.max_position_liquidity_ratio:
        return ExitSignal(
            ExitReason.POSITION_TOO_LARGE,
            Priority.MEDIUM,
            f"Position is {position.size / liquidity * 100:.1f}% of market liquidity",
            pnl,
        )
    return None


def check_stale(pnl: float, days_held: float | None, settings: Settings) -> ExitSignal | None:
    if days_held is None:
        return None
    if days_held >= settings.stale_position_days and pnl <= settings.stale_max_pnl_percent:
        return ExitSignal(
            ExitReason.STALE_POSITION,
            Priority.LOW,
            f"Position held {days_held:.0f} days with only {pnl:.1f}% gain, capital inefficiency",
            pnl,
        )
    return None


# -- evaluation ----------------------------------------------------------------


def _round_days(days: float | None) -> float | None:
    return round(days, 1) if days is not None else None


def evaluate_position(
    position: Position,
    market: MarketState | None = None,
    analysis: Reanalysis | None = None,
    peak_pnl: float | None = None,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> ExitRecommendation:
    """Run every exit check and return the highest-priority recommendation.

    Args:
        position: The open position
        market: Current liquidity for the position's market
        analysis: Fresh edge/confidence for the market, if re-analyzed
        peak_pnl: Highest P&L seen so far, arms the trailing stop
        now: Evaluation time (defaults to current UTC time)
        settings: Exit thresholds

    Returns:
        ExitRecommendation; ``recommendation`` is "HOLD" if nothing triggers
    """
    if settings is None:
        settings = get_settings()
    if now is None:
        now = datetime.now(timezone.utc)

    pnl = position_pnl(position)
    # thresholds compare unrounded days; rounding is for display only
    days_to_resolution = days_between(now, position.end_date) if position.end_date is not None else None
    days_held = days_between(position.entry_date, now) if position.entry_date is not None else None

    candidates = (
        check_profit_target(pnl, settings),
        check_trailing_stop(pnl, peak_pnl, settings),
        check_stop_loss(pnl, settings),
        check_time_decay(pnl, days_to_resolution, settings),
        check_edge_reversal(position, analysis, pnl, settings),
        check_confidence_drop(position, analysis, pnl, settings),
        check_liquidity(position, market, pnl, settings),
        check_stale(pnl, days_held, settings),
    )
    # sorted() is stable, so equal priorities keep check order
    signals = tuple(sorted((s for s in candidates if s is not None), key=lambda s: s.priority.rank))

    if not signals:
        return ExitRecommendation(
            position_id=position.position_id,
            market_id=position.market_id,
            should_exit=False,
            recommendation="HOLD",
            current_pnl=pnl,
            days_to_resolution=_round_days(days_to_resolution),
            days_held=_round_days(days_held),
            question=position.question,
        )

    primary = signals[0]
    return ExitRecommendation(
        position_id=position.position_id,
        market_id=position.market_id,
        should_exit=True,
        recommendation=primary.reason.value,
        current_pnl=pnl,
        signals=signals,
        priority=primary.priority,
        urgency=Urgency.from_priority(primary.priority),
        message=primary.message,
        suggested_action="TAKE_PROFIT" if pnl >= 0 else "CUT_LOSS",
        days_to_resolution=_round_days(days_to_resolution),
        days_held=_round_days(days_held),
        question=position.question,
    )


def scan_positions(
    positions: Sequence[Position],
    markets: Mapping[str, MarketState] | None = None,
    analyses: Mapping[str, Reanalysis] | None = None,
    tracker: PeakPnLTracker | None = None,
    now: datetime | None = None,
    settings: Settings | None = None,
    prune_closed: bool = False,
) -> list[ExitRecommendation]:
    """Evaluate every position and return only those that should exit.

    The peak tracker is updated with each position's current P&L before
    it is evaluated. With *prune_closed*, *positions* is taken as the full
    open set and peaks for any other position are dropped. Results are
    ordered by urgency, then by P&L with the largest losses first.
    """
    if settings is None:
        settings = get_settings()
    if tracker is None:
        tracker = PeakPnLTracker(settings=settings)
    markets = markets or {}
    analyses = analyses or {}

    if prune_closed:
        pruned = tracker.prune(p.position_id for p in positions)
        if pruned:
            logger.debug("Pruned %d closed position peak(s)", pruned)

    exits: list[ExitRecommendation] = []
    for position in positions:
        peak = tracker.update(position.position_id, position_pnl(position))
        rec = evaluate_position(
            position,
            market=markets.get(position.market_id),
            analysis=analyses.get(position.market_id),
            peak_pnl=peak,
            now=now,
            settings=settings,
        )
        if rec.should_exit:
            exits.append(rec)

    exits.sort(key=lambda r: (_URGENCY_RANK[r.urgency], r.current_pnl))
    logger.info("Exit scan: %d positions, %d exits", len(positions), len(exits))
    return exits
