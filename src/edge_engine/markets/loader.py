"""Load markets, signals and positions from JSON files.

Each file holds a list of objects. Keys may be snake_case or camelCase
(``end_date`` / ``endDate``). Entries that cannot be converted are logged
and skipped rather than failing the whole file.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, TypeVar

from edge_engine.exits.models import MarketState, Position, Reanalysis, Side
from edge_engine.markets.classifier import classify_market
from edge_engine.markets.models import Action, Category, Market, MarketSignal

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _get(raw: dict, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in raw and raw[key] is not None:
            return raw[key]
    return default


def _require(raw: dict, *keys: str) -> Any:
    value = _get(raw, *keys)
    if value is None:
        raise KeyError(keys[0])
    return value


def _float(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)


def _date(value: Any) -> datetime | None:
    """Parse ISO 8601, accepting a trailing Z."""
    if value in (None, ""):
        return None
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def _category(raw: dict, question: str) -> Category:
    value = _get(raw, "category")
    if value:
        return Category.parse(value)
    return classify_market(question)


def _read_list(path: Path) -> list[dict]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        # {"markets": [...]} style wrappers
        lists = [v for v in data.values() if isinstance(v, list)]
        data = lists[0] if len(lists) == 1 else [data]
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a JSON list of objects")
    return [item for item in data if isinstance(item, dict)]


def _load(path: Path, convert: Callable[[dict], T], kind: str) -> list[T]:
    items: list[T] = []
    for i, raw in enumerate(_read_list(path)):
        try:
            items.append(convert(raw))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping %s #%d in %s: %s", kind, i, path, exc)
    logger.debug("Loaded %d %s(s) from %s", len(items), kind, path)
    return items


def market_from_dict(raw: dict) -> Market:
    question = str(_get(raw, "question", "title", default=""))
    return Market(
        market_id=str(_require(raw, "market_id", "marketId", "id")),
        question=question,
        yes_price=_float(_get(raw, "yes_price", "yesPrice", "price")),
        liquidity=_float(_get(raw, "liquidity", default=0.0)),
        category=_category(raw, question),
        end_date=_date(_get(raw, "end_date", "endDate")),
    )


def signal_from_dict(raw: dict) -> MarketSignal:
    question = str(_get(raw, "question", "title", default=""))
    model_prob = float(_require(raw, "model_prob", "modelProb", "probability"))
    market_prob = float(_require(raw, "market_prob", "marketProb", "price"))
    action_raw = _get(raw, "action")
    action = Action.parse(action_raw) if action_raw else Action.from_edge(model_prob - market_prob)
    return MarketSignal(
        market_id=str(_require(raw, "market_id", "marketId", "id")),
        question=question,
        category=_category(raw, question),
        model_prob=model_prob,
        market_prob=market_prob,
        confidence=float(_get(raw, "confidence", default=50.0)),
        action=action,
        liquidity=float(_get(raw, "liquidity", default=0.0)),
        end_date=_date(_get(raw, "end_date", "endDate")),
    )


def position_from_dict(raw: dict) -> Position:
    market_id = str(_require(raw, "market_id", "marketId"))
    return Position(
        position_id=str(_get(raw, "position_id", "positionId", "id", default=market_id)),
        market_id=market_id,
        side=Side.parse(str(_get(raw, "side", default="YES"))),
        entry_price=float(_require(raw, "entry_price", "entryPrice")),
        current_price=float(_require(raw, "current_price", "currentPrice")),
        size=float(_get(raw, "size", default=0.0)),
        entry_date=_date(_get(raw, "entry_date", "entryDate")),
        end_date=_date(_get(raw, "end_date", "endDate")),
        original_edge=_float(_get(raw, "original_edge", "originalEdge")),
        original_confidence=_float(_get(raw, "original_confidence", "originalConfidence")),
        question=str(_get(raw, "question", "title", default="")),
    )


def load_markets(path: Path) -> list[Market]:
    return _load(path, market_from_dict, "market")


def load_signals(path: Path) -> list[MarketSignal]:
    return _load(path, signal_from_dict, "signal")


def load_positions(path: Path) -> list[Position]:
    return _load(path, position_from_dict, "position")


def load_market_states(path: Path) -> tuple[dict[str, MarketState], dict[str, Reanalysis]]:
    """Liquidity per market, plus a re-analysis where the entry carries an edge.

    Returns:
        (market states, re-analyses), both keyed by market id
    """
    states: dict[str, MarketState] = {}
    analyses: dict[str, Reanalysis] = {}
    for raw in _read_list(path):
        market_id = _get(raw, "market_id", "marketId", "id")
        if market_id is None:
            logger.warning("Skipping market state without id in %s", path)
            continue
        market_id = str(market_id)
        try:
            states[market_id] = MarketState(liquidity=_float(_get(raw, "liquidity")))
            edge = _float(_get(raw, "edge", "current_edge", "currentEdge"))
            if edge is not None:
                analyses[market_id] = Reanalysis(
                    edge=edge,
                    confidence=_float(_get(raw, "confidence", "current_confidence", "currentConfidence")),
                )
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping market state %s in %s: %s", market_id, path, exc)
    return states, analyses
