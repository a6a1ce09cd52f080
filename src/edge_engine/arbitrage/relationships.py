"""Structural relationships between pairs of markets.

Heuristic text matching, not NLP: false negatives are acceptable, false
positives should be rare. Every rule either needs an explicit phrase
pair, a similarity gate, or an identical remainder of the question.
The pattern table is data (``RelationshipPatterns``) so rules can be
swapped without touching the numeric code.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from edge_engine.markets.models import Market

logger = logging.getLogger(__name__)


class RelationshipType(Enum):
    INVERSE = "INVERSE"  # A happening = B not happening
    SUBSET = "SUBSET"  # A implies B
    SUPERSET = "SUPERSET"  # B implies A
    CORRELATED = "CORRELATED"  # tend to move together
    MUTUALLY_EXCLUSIVE = "MUTUALLY_EXCLUSIVE"  # at most one can happen
    EXHAUSTIVE_SET = "EXHAUSTIVE_SET"  # outcomes sum to 1


@dataclass(frozen=True)
class MarketRelationship:
    """A detected relationship; derived each scan, never persisted."""

    market_a: str
    market_b: str
    type: RelationshipType
    description: str
    expected_relation: str


def _rx(body: str) -> re.Pattern[str]:
    return re.compile(body, re.IGNORECASE)


@dataclass(frozen=True)
class RelationshipPatterns:
    """Injectable rule table for the detector."""

    inverse_pairs: tuple[tuple[re.Pattern[str], re.Pattern[str]], ...]
    top_n: re.Pattern[str]
    exclusive: re.Pattern[str]
    entities: tuple[str, ...]
    similarity_threshold: float = 0.7


DEFAULT_PATTERNS = RelationshipPatterns(
    inverse_pairs=(
        (_rx(r"will (.+?) win\b(.*)$"), _rx(r"will (.+?) lose\b(.*)$")),
        (_rx(r"will (.+?) be above\b(.*)$"), _rx(r"will (.+?) be below\b(.*)$")),
        (_rx(r"will (.+?) pass\b(.*)$"), _rx(r"will (.+?) fail\b(.*)$")),
        (_rx(r"will (.+?) happen\b(.*)$"), _rx(r"will (.+?) not happen\b(.*)$")),
    ),
    top_n=_rx(r"top (\d+)"),
    # "Will X win <same event>?" with different X
    exclusive=_rx(r"^will (.+?) win (.+?)\??$"),
    entities=(
        "trump", "biden", "harris", "obama", "putin", "zelenskyy",
        "bitcoin", "ethereum", "solana",
        "fed", "federal reserve", "ecb",
        "openai", "anthropic", "google", "meta", "microsoft", "apple", "nvidia",
        "super bowl", "world cup", "olympics",
        "ukraine", "russia", "china", "israel", "gaza",
    ),
)


def string_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the two strings' word sets."""
    words_a = set(a.lower().split())
    words_b = set(b.lower().split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def _groups(match: re.Match[str]) -> tuple[str, ...]:
    return tuple(g.strip(" ?") for g in match.groups(default=""))


def extract_entities(question: str, entities: tuple[str, ...]) -> list[str]:
    """Known entities mentioned in *question*, matched on word boundaries."""
    q = question.lower()
    return [e for e in entities if re.search(rf"\b{re.escape(e)}\b", q)]


class RelationshipDetector:
    """Classifies market pairs. Immutable, safe to share across threads."""

    def __init__(self, patterns: RelationshipPatterns = DEFAULT_PATTERNS) -> None:
        self.patterns = patterns

    def is_inverse(self, q_a: str, q_b: str) -> bool:
        """Same subject and same remainder, opposite verb phrase.

        Group 1 of each pattern is the subject; every further group (the
        rest of the question) must match too, ignoring trailing "?".
        """
        for pattern_a, pattern_b in self.patterns.inverse_pairs:
            for left, right in ((pattern_a, pattern_b), (pattern_b, pattern_a)):
                match_a = left.search(q_a)
                match_b = right.search(q_b)
                if match_a and match_b and _groups(match_a) == _groups(match_b):
                    return True
        return False

    def subset_relation(self, q_a: str, q_b: str) -> tuple[RelationshipType, str, str] | None:
        """Detect "top N" rankings of the same subject (Top 4 vs Top 10)."""
        match_a = self.patterns.top_n.search(q_a)
        match_b = self.patterns.top_n.search(q_b)
        if not (match_a and match_b):
            return None

        subject_a = self.patterns.top_n.sub("", q_a).strip()
        subject_b = self.patterns.top_n.sub("", q_b).strip()
        if string_similarity(subject_a, subject_b) < self.patterns.similarity_threshold:
            return None

        n_a, n_b = int(match_a.group(1)), int(match_b.group(1))
        if n_a < n_b:
            return (
                RelationshipType.SUBSET,
                f"Top {n_a} is subset of Top {n_b}",
                f"P(Top {n_a}) <= P(Top {n_b})",
            )
        if n_a > n_b:
            return (
                RelationshipType.SUPERSET,
                f"Top {n_a} is superset of Top {n_b}",
                f"P(Top {n_a}) >= P(Top {n_b})",
            )
        return None

    def is_mutually_exclusive(self, q_a: str, q_b: str) -> bool:
        match_a = self.patterns.exclusive.search(q_a)
        match_b = self.patterns.exclusive.search(q_b)
        if not (match_a and match_b):
            return False
        same_event = match_a.group(2).rstrip("?") == match_b.group(2).rstrip("?")
        return same_event and match_a.group(1) != match_b.group(1)

    def shared_entities(self, q_a: str, q_b: str) -> list[str]:
        entities_b = set(extract_entities(q_b, self.patterns.entities))
        return [e for e in extract_entities(q_a, self.patterns.entities) if e in entities_b]

    def detect(self, market_a: Market, market_b: Market) -> MarketRelationship | None:
        """Classify a pair of markets, or None if no relationship is found.

        Rules are tried from most to least structural: inverse, top-N
        subset/superset, mutually exclusive winners, shared entities.
        """
        if market_a.market_id == market_b.market_id:
            return None

        q_a = market_a.question.lower().strip()
        q_b = market_b.question.lower().strip()
        ids = (market_a.market_id, market_b.market_id)

        if self.is_inverse(q_a, q_b):
            return MarketRelationship(
                *ids, RelationshipType.INVERSE,
                "Markets are direct inverses", "P(A) + P(B) ~= 1",
            )

        subset = self.subset_relation(q_a, q_b)
        if subset is not None:
            rel_type, description, expected = subset
            return MarketRelationship(*ids, rel_type, description, expected)

        if self.is_mutually_exclusive(q_a, q_b):
            return MarketRelationship(
                *ids, RelationshipType.MUTUALLY_EXCLUSIVE,
                "Different winners of the same event", "P(A) + P(B) <= 1",
            )

        common = self.shared_entities(q_a, q_b)
        if common:
            return MarketRelationship(
                *ids, RelationshipType.CORRELATED,
                f"Both markets about: {', '.join(common)}",
                "Prices should move together",
            )

        return None


_default = RelationshipDetector()


def detect_relationship(market_a: Market, market_b: Market) -> MarketRelationship | None:
    """Classify a pair with the default rule table."""
    return _default.detect(market_a, market_b)
