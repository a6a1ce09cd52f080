"""Tests for the regex market-category classifier."""

from __future__ import annotations

import re

import pytest

from edge_engine.markets.classifier import CategoryClassifier, classify_market
from edge_engine.markets.models import Category


class TestClassifyMarket:
    @pytest.mark.parametrize(
        "question,expected",
        [
            ("Will Bitcoin reach $100k by June?", Category.CRYPTO),
            ("Will Trump win the election?", Category.POLITICS),
            ("Will the Fed cut interest rates in March?", Category.MACRO),
            ("Will OpenAI release GPT-5 this year?", Category.TECH),
            ("Will the SEC approve a spot ETF for XRP?", Category.ETF_APPROVAL),
            ("Will Oppenheimer win the Oscar for best picture?", Category.ENTERTAINMENT),
            ("Will the Chiefs win the Super Bowl?", Category.SPORTS_FUTURES),
            ("Will there be a ceasefire in the war by July?", Category.WAR_OUTCOMES),
        ],
    )
    def test_known_categories(self, question, expected):
        assert classify_market(question) is expected

    def test_empty_is_event(self):
        assert classify_market("") is Category.EVENT
        assert classify_market(None) is Category.EVENT
        assert classify_market("   ") is Category.EVENT

    def test_unmatched_is_event(self):
        assert classify_market("Will it snow in Paris on Christmas?") is Category.EVENT

    def test_case_insensitive(self):
        assert classify_market("WILL BITCOIN HIT 200K?") is Category.CRYPTO


class TestInjectedPatterns:
    def test_custom_table(self):
        classifier = CategoryClassifier([(Category.CELEBRITY, re.compile(r"weather", re.I))])
        assert classifier.classify("Will the weather be nice?") is Category.CELEBRITY
        assert classifier.classify("Will Trump win?") is Category.EVENT

    def test_first_match_wins(self):
        classifier = CategoryClassifier([
            (Category.TECH, re.compile(r"apple")),
            (Category.ENTERTAINMENT, re.compile(r"apple")),
        ])
        assert classifier.classify("apple event") is Category.TECH
