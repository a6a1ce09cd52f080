"""Regex market-category classifier.

The pattern table is plain data: callers can pass their own ordered
``(Category, pattern)`` table to ``CategoryClassifier``. The first
matching pattern wins, so more specific categories come first.
"""

from __future__ import annotations

import logging
import re
from typing import Sequence

from edge_engine.markets.models import Category

logger = logging.getLogger(__name__)

PatternTable = Sequence[tuple[Category, "re.Pattern[str]"]]


def _rx(body: str) -> re.Pattern[str]:
    return re.compile(body, re.IGNORECASE)


# Crypto is checked first: coin names collide with words in other categories
DEFAULT_PATTERNS: tuple[tuple[Category, re.Pattern[str]], ...] = (
    (Category.CRYPTO, _rx(
        r"^(bitcoin|ethereum|btc|eth|solana|bnb|ada|doge|avax|matic|link|uni|aave|comp|crv|snx)\b"
    )),
    (Category.CRYPTO, _rx(
        r"\b(crypto|cryptocurrency|defi|dex|cex|nft|web3|blockchain|token|altcoin|stablecoin"
        r"|yield farming|liquidity mining)\b"
    )),
    (Category.CRYPTO, _rx(
        r"\b(bitcoin|ethereum|solana|cardano|polkadot|polygon|chainlink|uniswap|aave|compound|curve)\b"
        r"(?!.*\bcolorado avalanche\b)"
    )),
    (Category.POLITICS, _rx(
        r"\b(election|president|trump|biden|harris|senate|congress|parliament|vote|primary|ballot"
        r"|campaign|democrat|republican)\b"
    )),
    (Category.POLITICS, _rx(
        r"\b(prime minister|chancellor|pm|mp|senator|governor|mayor)\b"
    )),
    (Category.MACRO, _rx(
        r"\b(recession|inflation|fed|federal reserve|interest rate|cpi|ppi|gdp|unemployment"
        r"|jobs report|nfp|payroll)\b"
    )),
    (Category.MACRO, _rx(
        r"\b(economy|economic growth|monetary policy|fiscal policy|stimulus|quantitative easing"
        r"|rate hike|rate cut)\b"
    )),
    (Category.TECH, _rx(
        r"\b(ai model|gpt|claude|gemini|llm|artificial intelligence|machine learning|neural network)\b"
    )),
    (Category.TECH, _rx(
        r"\b(semiconductor|chip|nvidia|amd|intel|tsmc|qualcomm|broadcom|arm)\b"
    )),
    (Category.TECH, _rx(
        r"\b(openai|anthropic|xai|google deepmind|meta ai|microsoft ai|amazon ai"
        r"|tesla|spacex|space x|elon musk)\b"
    )),
    (Category.TECH_ADOPTION, _rx(
        r"\b(tech adoption|app downloads|user growth|install base|upgrade cycle|daus|maus|active users)\b"
    )),
    (Category.ETF_APPROVAL, _rx(
        r"\b(etf|exchange-traded fund|spot etf|futures etf|sec approval|etf approval)\b"
    )),
    (Category.ENTERTAINMENT, _rx(
        r"\b(movie|film|oscar|academy award|emmy|grammy|hollywood|box office|album|tour|concert"
        r"|netflix|disney|hbo|hulu|prime video)\b"
    )),
    (Category.CELEBRITY, _rx(
        r"\b(celebrity|royal family|kardashian|taylor swift|beyonc[eé]|kanye|drake"
        r"|singer|rapper|actor|actress|influencer|streamer|youtuber|tiktok|instagram)\b"
    )),
    (Category.SPORTS_FUTURES, _rx(
        r"\b(super bowl|world series|nba finals|nfl|mlb|nhl|premier league|champions league"
        r"|la liga|bundesliga|serie a|world cup|fifa|olympics|wimbledon|us open|french open"
        r"|australian open|tour de france)\b"
    )),
    (Category.SPORTS_FUTURES, _rx(
        r"\b(championship|title|winner|mvp|cy young|heisman|gold medal"
        r"|lions|steelers|chiefs|eagles|cowboys|patriots|packers|49ers|bears|broncos)\b"
    )),
    (Category.WAR_OUTCOMES, _rx(
        r"\b(war|ceasefire|conflict|invasion|occupation|military strike|missile|troops|deployment"
        r"|ukraine|gaza|israel|palestine|russia|putin|zelenskyy|hamas|hezbollah|iran)\b"
    )),
)


class CategoryClassifier:
    """First-match classifier over an ordered pattern table."""

    def __init__(self, patterns: PatternTable = DEFAULT_PATTERNS) -> None:
        self.patterns = tuple(patterns)

    def classify(self, question: str | None) -> Category:
        """Classify a market question; unknown or empty text is EVENT."""
        if not question or not question.strip():
            return Category.EVENT

        text = question.strip()
        for category, pattern in self.patterns:
            if pattern.search(text):
                return category

        logger.debug("No category pattern matched: %s", text[:80])
        return Category.EVENT


_default = CategoryClassifier()


def classify_market(question: str | None) -> Category:
    """Classify with the default pattern table."""
    return _default.classify(question)
