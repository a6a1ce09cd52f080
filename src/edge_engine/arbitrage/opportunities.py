"""Arbitrage opportunities from price-sum deviations between related markets."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Sequence

from edge_engine.arbitrage.relationships import (
    MarketRelationship,
    RelationshipDetector,
    RelationshipType,
)
from edge_engine.common.types import is_finite, pair_key
from edge_engine.config import Settings, get_settings
from edge_engine.markets.models import Market

logger = logging.getLogger(__name__)

# Float slack for threshold comparisons (0.60 - 0.55 is not exactly 0.05)
_EPS = 1e-9


class OpportunityType(Enum):
    SELL_BOTH = "SELL_BOTH"
    BUY_BOTH = "BUY_BOTH"
    SUBSET_MISPRICING = "SUBSET_MISPRICING"
    SUPERSET_MISPRICING = "SUPERSET_MISPRICING"
    MUTUALLY_EXCLUSIVE_OVERPRICED = "MUTUALLY_EXCLUSIVE_OVERPRICED"


@dataclass(frozen=True)
class ArbitrageTrade:
    market_id: str
    action: str  # BUY_YES or SELL_YES
    price: float
    reason: str = ""


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """A mispriced pair.

    ``expected_profit`` and ``deviation`` are in percentage points
    (a 0.20 price-sum deviation is 20.0). ``confidence`` is 0-100.
    """

    type: OpportunityType
    description: str
    expected_profit: float
    deviation: float
    confidence: float
    trades: tuple[ArbitrageTrade, ...]
    relationship: MarketRelationship
    price_a: float
    price_b: float
    market_a_question: str = ""
    market_b_question: str = ""


def _confidence(deviation: float, cap: float) -> float:
    return min(cap, 50.0 + deviation * 200.0)


def check_inverse_arbitrage(
    price_a: float, price_b: float, relationship: MarketRelationship, min_deviation: float = 0.05,
) -> ArbitrageOpportunity | None:
    """Inverse markets should sum to ~1."""
    total = price_a + price_b
    deviation = abs(total - 1.0)
    if deviation + _EPS < min_deviation:
        return None

    if total > 1.0:
        kind = OpportunityType.SELL_BOTH
        description = f"Both markets overpriced (sum {total:.0%} > 100%)"
        action = "SELL_YES"
    else:
        kind = OpportunityType.BUY_BOTH
        description = f"Both markets underpriced (sum {total:.0%} < 100%)"
        action = "BUY_YES"

    return ArbitrageOpportunity(
        type=kind,
        description=description,
        expected_profit=deviation * 100.0,
        deviation=deviation * 100.0,
        confidence=_confidence(deviation, 95.0),
        trades=(
            ArbitrageTrade(relationship.market_a, action, price_a),
            ArbitrageTrade(relationship.market_b, action, price_b),
        ),
        relationship=relationship,
        price_a=price_a,
        price_b=price_b,
    )


def check_subset_arbitrage(
    price_a: float, price_b: float, relationship: MarketRelationship, min_gap: float = 0.05,
) -> ArbitrageOpportunity | None:
    """A is a subset of B, so P(A) should not exceed P(B)."""
    gap = price_a - price_b
    if gap + _EPS < min_gap:
        return None
    return ArbitrageOpportunity(
        type=OpportunityType.SUBSET_MISPRICING,
        description=f"Subset ({price_a:.0%}) priced higher than superset ({price_b:.0%})",
        expected_profit=gap * 100.0,
        deviation=gap * 100.0,
        confidence=_confidence(gap, 90.0),
        trades=(
            ArbitrageTrade(relationship.market_a, "SELL_YES", price_a, "Overpriced subset"),
            ArbitrageTrade(relationship.market_b, "BUY_YES", price_b, "Underpriced superset"),
        ),
        relationship=relationship,
        price_a=price_a,
        price_b=price_b,
    )


def check_superset_arbitrage(
    price_a: float, price_b: float, relationship: MarketRelationship, min_gap: float = 0.05,
) -> ArbitrageOpportunity | None:
    """A is a superset of B, so P(A) should not fall below P(B)."""
    gap = price_b - price_a
    if gap + _EPS < min_gap:
        return None
    return ArbitrageOpportunity(
        type=OpportunityType.SUPERSET_MISPRICING,
        description=f"Superset ({price_a:.0%}) priced lower than subset ({price_b:.0%})",
        expected_profit=gap * 100.0,
        deviation=gap * 100.0,
        confidence=_confidence(gap, 90.0),
        trades=(
            ArbitrageTrade(relationship.market_a, "BUY_YES", price_a, "Underpriced superset"),
            ArbitrageTrade(relationship.market_b, "SELL_YES", price_b, "Overpriced subset"),
        ),
        relationship=relationship,
        price_a=price_a,
        price_b=price_b,
    )


def check_mutually_exclusive_arbitrage(
    price_a: float, price_b: float, relationship: MarketRelationship, min_deviation: float = 0.05,
) -> ArbitrageOpportunity | None:
    """At most one can happen, so P(A) + P(B) <= 1."""
    excess = price_a + price_b - 1.0
    if excess + _EPS < min_deviation:
        return None
    return ArbitrageOpportunity(
        type=OpportunityType.MUTUALLY_EXCLUSIVE_OVERPRICED,
        description=f"Mutually exclusive markets sum to {price_a + price_b:.0%} (should be <= 100%)",
        expected_profit=excess * 100.0,
        deviation=excess * 100.0,
        confidence=_confidence(excess, 95.0),
        trades=(
            ArbitrageTrade(relationship.market_a, "SELL_YES", price_a),
            ArbitrageTrade(relationship.market_b, "SELL_YES", price_b),
        ),
        relationship=relationship,
        price_a=price_a,
        price_b=price_b,
    )


def calculate_arbitrage(
    relationship: MarketRelationship,
    price_a: float,
    price_b: float,
    settings: Settings | None = None,
) -> ArbitrageOpportunity | None:
    """Opportunity implied by two YES prices under *relationship*, if any."""
    if settings is None:
        settings = get_settings()
    if not is_finite(price_a, price_b):
        return None

    rel = relationship.type
    if rel is RelationshipType.INVERSE:
        return check_inverse_arbitrage(price_a, price_b, relationship, settings.arbitrage_min_deviation)
    if rel is RelationshipType.SUBSET:
        return check_subset_arbitrage(price_a, price_b, relationship, settings.subset_min_gap)
    if rel is RelationshipType.SUPERSET:
        return check_superset_arbitrage(price_a, price_b, relationship, settings.subset_min_gap)
    if rel is RelationshipType.MUTUALLY_EXCLUSIVE:
        return check_mutually_exclusive_arbitrage(
            price_a, price_b, relationship, settings.arbitrage_min_deviation,
        )
    return None


def _valid_price(price: float | None) -> bool:
    return price is not None and is_finite(price) and 0.0 < price < 1.0


def scan_for_arbitrage(
    markets: Sequence[Market],
    detector: RelationshipDetector | None = None,
    settings: Settings | None = None,
) -> list[ArbitrageOpportunity]:
    """Pairwise scan of *markets*, best expected profit first.

    O(n^2): the input is truncated to ``max_scan_markets``.
    """
    if settings is None:
        settings = get_settings()
    if detector is None:
        detector = RelationshipDetector()

    if len(markets) > settings.max_scan_markets:
        logger.warning(
            "Arbitrage scan truncated from %d to %d markets",
            len(markets), settings.max_scan_markets,
        )
        markets = markets[: settings.max_scan_markets]

    opportunities: list[ArbitrageOpportunity] = []
    checked: set[str] = set()

    for i, market_a in enumerate(markets):
        for market_b in markets[i + 1:]:
            key = pair_key(market_a.market_id, market_b.market_id)
            if key in checked:
                continue
            checked.add(key)

            if not (_valid_price(market_a.yes_price) and _valid_price(market_b.yes_price)):
                continue

            relationship = detector.detect(market_a, market_b)
            if relationship is None:
                continue

            opp = calculate_arbitrage(relationship, market_a.yes_price, market_b.yes_price, settings)
            if opp is None:
                continue

            opportunities.append(
                replace(
                    opp,
                    market_a_question=market_a.question,
                    market_b_question=market_b.question,
                )
            )

    opportunities.sort(key=lambda o: o.expected_profit, reverse=True)
    logger.info(
        "Arbitrage scan: %d markets, %d pairs, %d opportunities",
        len(markets), len(checked), len(opportunities),
    )
    return opportunities


@dataclass
class MarketGroup:
    anchor: Market
    related: list[Market] = field(default_factory=list)
    relationships: list[MarketRelationship] = field(default_factory=list)


def group_related_markets(
    markets: Sequence[Market], detector: RelationshipDetector | None = None,
) -> list[MarketGroup]:
    """Greedy grouping: each market joins the first anchor it relates to."""
    if detector is None:
        detector = RelationshipDetector()

    groups: list[MarketGroup] = []
    assigned: set[str] = set()

    for market in markets:
        if market.market_id in assigned:
            continue
        group = MarketGroup(anchor=market)
        for other in markets:
            if other.market_id == market.market_id or other.market_id in assigned:
                continue
            relationship = detector.detect(market, other)
            if relationship is not None:
                group.related.append(other)
                group.relationships.append(relationship)
                assigned.add(other.market_id)
        if group.related:
            assigned.add(market.market_id)
            groups.append(group)

    return groups
