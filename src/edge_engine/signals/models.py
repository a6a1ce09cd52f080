"""Outcome-history data models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from edge_engine.markets.models import Action, Category


class Outcome(Enum):
    """Resolved market outcome."""

    YES = "YES"
    NO = "NO"


@dataclass(frozen=True)
class OutcomeRecord:
    """A logged signal and, once the market resolves, its outcome.

    Attributes:
        signal_id: Unique signal identifier
        category: Market category at emission time
        action: Action that was recommended
        edge: Edge at emission time
        confidence: Confidence at emission time (0-100)
        timestamp: When the signal was emitted
        outcome: Resolved outcome, None until the market resolves
    """

    signal_id: str
    category: Category
    action: Action
    edge: float
    confidence: float
    timestamp: datetime
    outcome: Outcome | None = None

    @property
    def resolved(self) -> bool:
        return self.outcome is not None

    @property
    def correct(self) -> bool | None:
        """Whether the action's predicted direction matched the outcome."""
        if self.outcome is None:
            return None
        return self.action.predicts_yes == (self.outcome is Outcome.YES)
