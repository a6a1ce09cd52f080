"""Time-to-resolution weighting.

A market closing in two days and one closing in two months carry very
different risk for the same edge. As resolution nears, expected
volatility rises (shrinking size and raising the minimum edge) and the
usable edge decays (the market converges on the outcome).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Sequence

from edge_engine.common.types import ResultStatus, days_between, is_finite
from edge_engine.config import Settings, get_settings
from edge_engine.markets.models import Category, Market

logger = logging.getLogger(__name__)

# (max_days_inclusive, value) steps, checked in order; last value applies beyond
Steps = tuple[tuple[float, float], ...]


@dataclass(frozen=True)
class TimeProfile:
    """Volatility and edge-decay step functions for one market archetype."""

    name: str
    volatility_steps: Steps
    decay_steps: Steps

    @staticmethod
    def _lookup(steps: Steps, days_remaining: float) -> float:
        for max_days, value in steps:
            if days_remaining <= max_days:
                return value
        return 1.0

    def volatility_multiplier(self, days_remaining: float) -> float:
        """>= 1.0, increasing as resolution approaches."""
        return self._lookup(self.volatility_steps, days_remaining)

    def edge_decay(self, days_remaining: float) -> float:
        """In (0, 1], decreasing as resolution approaches."""
        return self._lookup(self.decay_steps, days_remaining)


# Binary events (elections, announcements): sharp moves near resolution
BINARY_EVENT = TimeProfile(
    name="BINARY_EVENT",
    volatility_steps=((1, 3.0), (3, 2.0), (7, 1.5), (14, 1.2)),
    decay_steps=((1, 0.5), (3, 0.7), (7, 0.85)),
)

# Continuous metrics (price targets, statistics): gradual convergence
CONTINUOUS = TimeProfile(
    name="CONTINUOUS",
    volatility_steps=((1, 2.0), (7, 1.3), (30, 1.1)),
    decay_steps=((1, 0.6), (7, 0.8)),
)

# Sports: known end time, game-day information asymmetry
SPORTS = TimeProfile(
    name="SPORTS",
    volatility_steps=((0.5, 4.0), (1, 2.5), (3, 1.5)),
    decay_steps=((0.5, 0.3), (1, 0.6)),
)

# Long-term (annual outcomes): slow decay
LONG_TERM = TimeProfile(
    name="LONG_TERM",
    volatility_steps=((7, 1.8), (30, 1.3), (90, 1.1)),
    decay_steps=((7, 0.7), (30, 0.85)),
)

CATEGORY_TO_PROFILE: dict[Category, TimeProfile] = {
    Category.POLITICS: BINARY_EVENT,
    Category.MACRO: CONTINUOUS,
    Category.CRYPTO: CONTINUOUS,
    Category.TECH: CONTINUOUS,
    Category.TECH_ADOPTION: LONG_TERM,
    Category.ETF_APPROVAL: BINARY_EVENT,
    Category.ENTERTAINMENT: BINARY_EVENT,
    Category.CELEBRITY: CONTINUOUS,
    Category.SPORTS_FUTURES: SPORTS,
    Category.WAR_OUTCOMES: BINARY_EVENT,
    Category.EVENT: BINARY_EVENT,
}


class Timing(Enum):
    ENTER_NOW = "ENTER_NOW"
    ENTER_SMALL = "ENTER_SMALL"
    WAIT = "WAIT"
    SKIP = "SKIP"
    DO_NOT_ENTER = "DO_NOT_ENTER"


class TimeDecision(Enum):
    ACCEPT = "ACCEPT"
    REJECT_TIME = "REJECT_TIME"
    REJECT_EDGE = "REJECT_EDGE"
    REJECT_TIMING = "REJECT_TIMING"


def get_time_profile(category: Category) -> TimeProfile:
    return CATEGORY_TO_PROFILE.get(category, BINARY_EVENT)


def days_remaining(end_date: datetime | None, now: datetime | None = None) -> float | None:
    """Fractional days until resolution, floored at 0. None if no date."""
    if end_date is None:
        return None
    if now is None:
        now = datetime.now(timezone.utc)
    return max(0.0, days_between(now, end_date))


def time_adjusted_edge(raw_edge: float, days: float | None, category: Category) -> tuple[float, float]:
    """Return (adjusted_edge, decay_multiplier)."""
    if days is None:
        return raw_edge, 1.0
    decay = get_time_profile(category).edge_decay(days)
    return raw_edge * decay, decay


def time_adjusted_size(base_size: float, days: float | None, category: Category) -> tuple[float, float]:
    """Return (adjusted_size, volatility_multiplier)."""
    if days is None:
        return base_size, 1.0
    vol = get_time_profile(category).volatility_multiplier(days)
    return base_size / vol, vol


@dataclass(frozen=True)
class MinimumEdge:
    min_edge: float
    volatility_multiplier: float
    should_trade: bool
    reason: str


def minimum_edge_required(
    days: float | None,
    category: Category,
    settings: Settings | None = None,
) -> MinimumEdge:
    """Minimum edge to trade given time left; capped at ``max_min_edge``."""
    if settings is None:
        settings = get_settings()

    if days is None:
        return MinimumEdge(
            min_edge=settings.base_min_edge,
            volatility_multiplier=1.0,
            should_trade=True,
            reason="No resolution date - using base minimum",
        )

    vol = get_time_profile(category).volatility_multiplier(days)
    min_edge = min(settings.max_min_edge, settings.base_min_edge * vol)
    should_trade = days > settings.no_trade_days
    reason = (
        f"Minimum edge: {min_edge:.1%} required"
        if should_trade
        else "Too close to resolution - do not trade"
    )
    return MinimumEdge(
        min_edge=round(min_edge, 4),
        volatility_multiplier=vol,
        should_trade=should_trade,
        reason=reason,
    )


@dataclass(frozen=True)
class TimingAdvice:
    recommendation: Timing
    reason: str
    edge_efficiency: float | None = None
    size_multiplier: float = 1.0
    strong: bool = False


def optimal_timing(
    days: float | None,
    category: Category,
    current_edge: float,
    settings: Settings | None = None,
) -> TimingAdvice:
    """Entry timing from edge efficiency (|edge| / minimum edge)."""
    if settings is None:
        settings = get_settings()

    if days is None:
        return TimingAdvice(Timing.ENTER_NOW, "No resolution date")

    required = minimum_edge_required(days, category, settings)
    if not required.should_trade:
        return TimingAdvice(Timing.DO_NOT_ENTER, "Too close to resolution")

    edge = abs(current_edge)
    efficiency = edge / required.min_edge if required.min_edge > 0 else float("inf")

    if efficiency >= 2.0:
        return TimingAdvice(
            Timing.ENTER_NOW,
            f"Strong edge ({edge:.1%}) exceeds minimum ({required.min_edge:.1%}) by 2x+",
            edge_efficiency=efficiency,
            strong=True,
        )
    if efficiency >= 1.2:
        return TimingAdvice(
            Timing.ENTER_NOW,
            f"Good edge ({edge:.1%}) exceeds minimum ({required.min_edge:.1%})",
            edge_efficiency=efficiency,
        )
    if efficiency >= 1.0:
        return TimingAdvice(
            Timing.ENTER_SMALL,
            "Marginal edge - enter with reduced size",
            edge_efficiency=efficiency,
            size_multiplier=settings.enter_small_multiplier,
        )
    if days > settings.wait_horizon_days:
        return TimingAdvice(
            Timing.WAIT,
            f"Edge {edge:.1%} below minimum {required.min_edge:.1%} - wait for better opportunity",
            edge_efficiency=efficiency,
        )
    return TimingAdvice(
        Timing.SKIP,
        "Insufficient edge and limited time - skip this market",
        edge_efficiency=efficiency,
    )


@dataclass(frozen=True)
class TimeAnalysis:
    """Full time-weighting result for one candidate."""

    days_remaining: float | None
    category: Category
    profile: str
    raw_edge: float
    adjusted_edge: float
    edge_multiplier: float
    base_size: float
    adjusted_size: float
    volatility_multiplier: float
    min_edge_required: float
    should_trade: bool
    timing: TimingAdvice
    decision: TimeDecision
    status: ResultStatus = ResultStatus.OK

    @property
    def accepted(self) -> bool:
        return self.decision is TimeDecision.ACCEPT

    @property
    def passes_min_edge(self) -> bool:
        return abs(self.raw_edge) >= self.min_edge_required


def analyze_time(
    raw_edge: float,
    base_size: float,
    category: Category,
    end_date: datetime | None,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> TimeAnalysis:
    """Apply time weighting and decide ACCEPT / REJECT_*.

    Check order: time to resolution, then edge vs minimum, then timing
    tier. The first failing check decides.
    """
    if settings is None:
        settings = get_settings()

    profile = get_time_profile(category)

    if not is_finite(raw_edge, base_size):
        return TimeAnalysis(
            days_remaining=None, category=category, profile=profile.name,
            raw_edge=raw_edge, adjusted_edge=0.0, edge_multiplier=1.0,
            base_size=base_size, adjusted_size=0.0, volatility_multiplier=1.0,
            min_edge_required=settings.base_min_edge, should_trade=False,
            timing=TimingAdvice(Timing.DO_NOT_ENTER, "Non-finite input"),
            decision=TimeDecision.REJECT_EDGE, status=ResultStatus.INVALID_INPUT,
        )

    days = days_remaining(end_date, now)
    adjusted_edge, edge_mult = time_adjusted_edge(raw_edge, days, category)
    adjusted_size, vol = time_adjusted_size(base_size, days, category)
    required = minimum_edge_required(days, category, settings)
    timing = optimal_timing(days, category, raw_edge, settings)

    if days is None:
        decision = TimeDecision.ACCEPT
    elif not required.should_trade:
        decision = TimeDecision.REJECT_TIME
    elif abs(raw_edge) < required.min_edge:
        decision = TimeDecision.REJECT_EDGE
    elif timing.recommendation is Timing.SKIP:
        decision = TimeDecision.REJECT_TIMING
    else:
        decision = TimeDecision.ACCEPT

    return TimeAnalysis(
        days_remaining=round(days, 2) if days is not None else None,
        category=category,
        profile=profile.name,
        raw_edge=raw_edge,
        adjusted_edge=round(adjusted_edge, 4),
        edge_multiplier=edge_mult,
        base_size=base_size,
        adjusted_size=adjusted_size,
        volatility_multiplier=vol,
        min_edge_required=required.min_edge,
        should_trade=required.should_trade,
        timing=timing,
        decision=decision,
    )


@dataclass(frozen=True)
class ScoredMarket:
    market: Market
    days_remaining: float | None
    in_preferred_range: bool
    time_score: float = field(default=1.0)


def filter_markets_by_time(
    markets: Sequence[Market],
    now: datetime | None = None,
    min_days: float = 0.25,
    max_days: float = 365.0,
    preferred_min: float = 3.0,
    preferred_max: float = 90.0,
) -> list[ScoredMarket]:
    """Drop markets outside [min_days, max_days] and score the rest.

    Markets without a resolution date are kept and treated as preferred.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    scored: list[ScoredMarket] = []
    for market in markets:
        days = days_remaining(market.end_date, now)
        if days is not None and not (min_days <= days <= max_days):
            continue
        preferred = days is None or preferred_min <= days <= preferred_max
        scored.append(
            ScoredMarket(
                market=market,
                days_remaining=days,
                in_preferred_range=preferred,
                time_score=1.0 if preferred else 0.7,
            )
        )

    logger.debug("Time filter kept %d of %d markets", len(scored), len(markets))
    return scored
