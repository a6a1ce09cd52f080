"""Position and exit-signal data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Side(Enum):
    YES = "YES"
    NO = "NO"

    @classmethod
    def parse(cls, value: str) -> Side:
        """Accept YES/NO as well as BUY_YES/BUY_NO; anything else is a ValueError."""
        v = value.strip().upper().replace(" ", "_")
        if v in ("YES", "BUY_YES"):
            return cls.YES
        if v in ("NO", "BUY_NO"):
            return cls.NO
        raise ValueError(f"Unknown position side: {value!r}")


class ExitReason(Enum):
    STOP_LOSS = "STOP_LOSS"
    TRAILING_STOP = "TRAILING_STOP"
    TIME_DECAY_LOSS = "TIME_DECAY_LOSS"
    EDGE_REVERSAL = "EDGE_REVERSAL"
    LIQUIDITY_DRY = "LIQUIDITY_DRY"
    POSITION_TOO_LARGE = "POSITION_TOO_LARGE"
    PROFIT_TARGET = "PROFIT_TARGET"
    CONFIDENCE_DROP = "CONFIDENCE_DROP"
    LOCK_PROFIT_PRE_RESOLUTION = "LOCK_PROFIT_PRE_RESOLUTION"
    STALE_POSITION = "STALE_POSITION"


class Priority(Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """0 is most urgent."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.MEDIUM: 2,
    Priority.LOW: 3,
}


class Urgency(Enum):
    IMMEDIATE = "IMMEDIATE"
    TODAY = "TODAY"
    WHEN_CONVENIENT = "WHEN_CONVENIENT"

    @classmethod
    def from_priority(cls, priority: Priority) -> Urgency:
        if priority is Priority.CRITICAL:
            return cls.IMMEDIATE
        if priority is Priority.HIGH:
            return cls.TODAY
        return cls.WHEN_CONVENIENT


@dataclass(frozen=True)
class Position:
    """An open position supplied by the position store.

    Attributes:
        position_id: Unique position identifier (keys the peak P&L tracker)
        market_id: Market the position is in
        side: YES or NO
        entry_price: YES price at entry
        current_price: Current YES price
        size: Position size in dollars
        entry_date: When the position was opened
        end_date: Market resolution date, if known
        original_edge: Edge at entry
        original_confidence: Confidence at entry (0-100)
    """

    position_id: str
    market_id: str
    side: Side
    entry_price: float
    current_price: float
    size: float = 0.0
    entry_date: datetime | None = None
    end_date: datetime | None = None
    original_edge: float | None = None
    original_confidence: float | None = None
    question: str = ""


@dataclass(frozen=True)
class MarketState:
    """Current market conditions relevant to an exit decision."""

    liquidity: float | None = None


@dataclass(frozen=True)
class Reanalysis:
    """Fresh model view of a held market."""

    edge: float
    confidence: float | None = None


@dataclass(frozen=True)
class ExitSignal:
    reason: ExitReason
    priority: Priority
    message: str
    pnl_percent: float


@dataclass(frozen=True)
class ExitRecommendation:
    """Single prioritized recommendation for one position."""

    position_id: str
    market_id: str
    should_exit: bool
    recommendation: str  # an ExitReason value, or "HOLD"
    current_pnl: float
    signals: tuple[ExitSignal, ...] = field(default_factory=tuple)
    priority: Priority | None = None
    urgency: Urgency | None = None
    message: str = ""
    suggested_action: str | None = None  # TAKE_PROFIT or CUT_LOSS
    days_to_resolution: float | None = None
    days_held: float | None = None
    question: str = ""
