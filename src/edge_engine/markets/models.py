"""Market data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Category(Enum):
    """Market category, drives the time-to-resolution profile."""

    POLITICS = "POLITICS"
    MACRO = "MACRO"
    CRYPTO = "CRYPTO"
    TECH = "TECH"
    TECH_ADOPTION = "TECH_ADOPTION"
    ETF_APPROVAL = "ETF_APPROVAL"
    ENTERTAINMENT = "ENTERTAINMENT"
    CELEBRITY = "CELEBRITY"
    SPORTS_FUTURES = "SPORTS_FUTURES"
    WAR_OUTCOMES = "WAR_OUTCOMES"
    EVENT = "EVENT"

    @classmethod
    def parse(cls, value: str | None) -> Category:
        """Lenient lookup; unknown or empty values map to EVENT."""
        if not value:
            return cls.EVENT
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.EVENT


class Action(Enum):
    """Trade action attached to a signal."""

    BUY_YES = "BUY_YES"
    BUY_NO = "BUY_NO"
    SELL_YES = "SELL_YES"
    SELL_NO = "SELL_NO"
    HOLD = "HOLD"

    @property
    def predicts_yes(self) -> bool:
        """Whether this action is a bet on the YES outcome.

        This is the only direction convention used for scoring outcomes;
        edge sign is never consulted.
        """
        return self in (Action.BUY_YES, Action.SELL_NO)

    @classmethod
    def parse(cls, value: str) -> Action:
        """Accept both ``BUY_YES`` and ``BUY YES`` spellings."""
        return cls(value.strip().upper().replace(" ", "_"))

    @classmethod
    def from_edge(cls, edge: float, hold_band: float = 0.0) -> Action:
        if edge > hold_band:
            return cls.BUY_YES
        if edge < -hold_band:
            return cls.BUY_NO
        return cls.HOLD


@dataclass(frozen=True)
class Market:
    """Current snapshot of a market as supplied by the market-data collaborator."""

    market_id: str
    question: str
    yes_price: float | None = None
    liquidity: float = 0.0
    category: Category = Category.EVENT
    end_date: datetime | None = None


@dataclass(frozen=True)
class MarketSignal:
    """A candidate trade produced by one analysis cycle.

    Attributes:
        market_id: Market identifier
        question: Market question text
        category: Market category
        model_prob: Model's probability estimate for YES
        market_prob: Market-implied probability (YES price)
        confidence: Model confidence, 0-100
        action: BUY_YES, BUY_NO or HOLD
        liquidity: Market liquidity in dollars
        end_date: Resolution timestamp, if known
    """

    market_id: str
    question: str
    category: Category
    model_prob: float
    market_prob: float
    confidence: float
    action: Action
    liquidity: float
    end_date: datetime | None = None

    @property
    def edge(self) -> float:
        """model_prob - market_prob (positive = underpriced YES)."""
        return self.model_prob - self.market_prob

    def to_market(self) -> Market:
        return Market(
            market_id=self.market_id,
            question=self.question,
            yes_price=self.market_prob,
            liquidity=self.liquidity,
            category=self.category,
            end_date=self.end_date,
        )
