"""Kelly criterion position sizing, gated and scaled by liquidity."""

from __future__ import annotations

import logging

from edge_engine.common.types import is_finite
from edge_engine.config import Settings, get_settings
from edge_engine.markets.models import Action, MarketSignal

logger = logging.getLogger(__name__)


def liquidity_multiplier(liquidity: float, settings: Settings | None = None) -> float:
    """Scale Kelly up with depth, down for thin books; 0 below the floor."""
    if settings is None:
        settings = get_settings()
    if liquidity < settings.min_liquidity:
        return 0.0
    for floor, multiplier in sorted(settings.liquidity_tiers, reverse=True):
        if liquidity >= floor:
            return multiplier
    return settings.thin_market_multiplier


def compute_kelly(
    model_prob: float,
    price: float,
    edge_buffer: float | None = None,
    liquidity: float = 10_000.0,
    settings: Settings | None = None,
) -> float:
    """Compute a bounded Kelly bet size for buying YES at *price*.

    Kelly = (p * b - q) / b
    where b = (1 - price) / price are the net odds and q = 1 - p.

    Args:
        model_prob: Our estimated probability of YES
        price: YES price paid (market-implied probability)
        edge_buffer: Edge that must be exceeded before betting
        liquidity: Market liquidity in dollars
        settings: Kelly multiplier, position cap and liquidity floor

    Returns:
        Fraction of bankroll in [0, max_position_size]; 0 if no valid edge
    """
    if settings is None:
        settings = get_settings()
    if edge_buffer is None:
        edge_buffer = settings.edge_buffer

    if not is_finite(model_prob, price, edge_buffer, liquidity):
        return 0.0
    if price <= 0.0 or price >= 1.0:
        return 0.0
    if liquidity < settings.min_liquidity:
        return 0.0
    if model_prob - price <= edge_buffer:
        return 0.0

    b = (1.0 - price) / price
    q = 1.0 - model_prob
    full_kelly = (model_prob * b - q) / b

    scaled = full_kelly * settings.kelly_multiplier * liquidity_multiplier(liquidity, settings)
    return max(0.0, min(scaled, settings.max_position_size))


def size_for_signal(signal: MarketSignal, settings: Settings | None = None) -> float:
    """Kelly size for a signal on whichever side its action buys.

    BUY_NO is sized as a YES bet on the complementary market.
    """
    if signal.action is Action.BUY_YES:
        return compute_kelly(
            signal.model_prob, signal.market_prob, liquidity=signal.liquidity, settings=settings,
        )
    if signal.action is Action.BUY_NO:
        return compute_kelly(
            1.0 - signal.model_prob, 1.0 - signal.market_prob,
            liquidity=signal.liquidity, settings=settings,
        )
    return 0.0
