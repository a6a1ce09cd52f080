"""Adaptive calibration of edge and confidence from resolved outcomes.

Compares the accuracy the model claimed (confidence) with the accuracy
it actually achieved over a trailing window of resolved signals for the
same category and action, and nudges edge/confidence toward reality.
Trust in the adjustment grows with sample size and never exceeds the
configured learning rate.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Protocol, Sequence

from edge_engine.common.types import ResultStatus, days_between, is_finite
from edge_engine.config import Settings, get_settings
from edge_engine.markets.models import Action, Category
from edge_engine.signals.models import Outcome, OutcomeRecord

logger = logging.getLogger(__name__)


class OutcomeHistory(Protocol):
    """History collaborator consumed by the calibrator."""

    async def fetch_outcomes(
        self, category: Category, action: Action, since: datetime,
    ) -> list[OutcomeRecord]:
        ...

    async def record_outcome(
        self,
        signal_id: str,
        outcome: Outcome,
        category: Category,
        action: Action,
        edge: float,
        confidence: float,
    ) -> bool:
        ...


@dataclass(frozen=True)
class CalibrationResult:
    """Calibrated edge/confidence plus diagnostics."""

    adjusted_edge: float
    adjusted_confidence: float
    learning_factor: float
    sample_size: int
    status: ResultStatus
    message: str
    actual_accuracy: float | None = None
    accuracy_error: float | None = None

    @property
    def applied(self) -> bool:
        return self.learning_factor > 0


def _unchanged(
    edge: float, confidence: float, sample_size: int, status: ResultStatus, message: str,
) -> CalibrationResult:
    return CalibrationResult(
        adjusted_edge=edge,
        adjusted_confidence=confidence,
        learning_factor=0.0,
        sample_size=sample_size,
        status=status,
        message=message,
    )


def apply_calibration(
    records: Sequence[OutcomeRecord],
    edge: float,
    confidence: float,
    settings: Settings | None = None,
) -> CalibrationResult:
    """Adjust a raw edge/confidence pair using resolved outcome records.

    Args:
        records: Resolved records for the same category and action;
            unresolved entries are ignored.
        edge: Raw edge (model - market)
        confidence: Raw confidence, 0-100
        settings: Thresholds and coefficients (defaults from environment)

    Returns:
        CalibrationResult. Inputs pass through unchanged with
        ``learning_factor == 0`` when there is too little history.
    """
    if settings is None:
        settings = get_settings()

    if not is_finite(edge, confidence):
        return _unchanged(edge, confidence, 0, ResultStatus.INVALID_INPUT, "Non-finite edge or confidence")

    resolved = [r for r in records if r.outcome is not None]
    n = len(resolved)
    if n < settings.calibration_min_signals:
        return _unchanged(
            edge, confidence, n, ResultStatus.INSUFFICIENT_DATA,
            "Insufficient data for adaptive learning",
        )

    correct = sum(1 for r in resolved if r.correct)
    actual_accuracy = correct / n
    accuracy_error = actual_accuracy - confidence / 100.0

    confidence_adj = 0.0
    edge_adj = 0.0
    if accuracy_error < settings.overconfidence_threshold:
        confidence_adj = accuracy_error * settings.overconfidence_confidence_adjustment
        edge_adj = -edge * settings.overconfidence_edge_adjustment
    elif accuracy_error > settings.underconfidence_threshold:
        confidence_adj = accuracy_error * settings.underconfidence_confidence_adjustment
        edge_adj = edge * settings.underconfidence_edge_adjustment

    learning_factor = min(1.0, n / settings.calibration_min_signals) * settings.learning_rate

    adjusted_confidence = max(0.0, min(100.0, confidence + confidence_adj * 100.0 * learning_factor))
    adjusted_edge = edge + edge_adj * learning_factor

    # Shrinking toward zero must never carry the edge across it
    if edge != 0 and adjusted_edge * edge < 0:
        logger.warning(
            "Calibration flipped edge sign (%.4f -> %.4f); clamping to 0", edge, adjusted_edge,
        )
        adjusted_edge = 0.0

    return CalibrationResult(
        adjusted_edge=round(adjusted_edge, 4),
        adjusted_confidence=round(adjusted_confidence, 2),
        learning_factor=round(learning_factor, 3),
        sample_size=n,
        status=ResultStatus.OK,
        message=f"Applied adaptive learning based on {n} signals",
        actual_accuracy=round(actual_accuracy, 4),
        accuracy_error=round(accuracy_error, 4),
    )


class AdaptiveCalibrator:
    """Fetches a history snapshot and applies calibration, failing open."""

    def __init__(self, history: OutcomeHistory, settings: Settings | None = None) -> None:
        self.history = history
        self.settings = settings or get_settings()

    async def calibrate(
        self,
        category: Category,
        action: Action,
        edge: float,
        confidence: float,
        now: datetime | None = None,
    ) -> CalibrationResult:
        """Calibrate one candidate. Never raises on collaborator failure."""
        if now is None:
            now = datetime.now(timezone.utc)
        since = now - timedelta(days=self.settings.calibration_window_days)

        try:
            records = await self.history.fetch_outcomes(category, action, since)
        except Exception as exc:  # collaborator failures must not block signals
            logger.warning(
                "Outcome history unavailable for %s/%s: %s", category.value, action.value, exc,
            )
            return _unchanged(
                edge, confidence, 0, ResultStatus.COLLABORATOR_FAILURE,
                "Adaptive learning failed, using base values",
            )

        window = sorted(
            (r for r in records if r.outcome is not None),
            key=lambda r: r.timestamp,
            reverse=True,
        )[: self.settings.calibration_max_records]

        result = apply_calibration(window, edge, confidence, self.settings)
        logger.debug(
            "Calibration %s/%s: n=%d lf=%.3f edge %.4f->%.4f conf %.1f->%.1f",
            category.value, action.value, result.sample_size, result.learning_factor,
            edge, result.adjusted_edge, confidence, result.adjusted_confidence,
        )
        return result


@dataclass(frozen=True)
class ActionStats:
    """Resolved-signal performance for one action within a category."""

    action: Action
    total: int
    correct: int
    avg_confidence: float
    avg_edge: float

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total > 0 else 0.0


def learning_stats(records: Iterable[OutcomeRecord]) -> list[ActionStats]:
    """Per-action accuracy over resolved records, ordered by action name."""
    grouped: dict[Action, list[OutcomeRecord]] = defaultdict(list)
    for r in records:
        if r.outcome is not None:
            grouped[r.action].append(r)

    stats = []
    for action in sorted(grouped, key=lambda a: a.value):
        rows = grouped[action]
        stats.append(
            ActionStats(
                action=action,
                total=len(rows),
                correct=sum(1 for r in rows if r.correct),
                avg_confidence=sum(r.confidence for r in rows) / len(rows),
                avg_edge=sum(r.edge for r in rows) / len(rows),
            )
        )
    return stats


@dataclass(frozen=True)
class CategoryInsight:
    category: Category
    stats: list[ActionStats]
    recent_win_rate: float
    recent_volume: int
    recommendation: str


def category_insights(
    records_by_category: dict[Category, list[OutcomeRecord]],
    now: datetime | None = None,
    recent_days: float = 7.0,
) -> dict[Category, CategoryInsight]:
    """Summarize how each category has performed recently.

    Win rate counts a signal as a win when its action's direction matched
    the outcome. STRONG above 60%, MODERATE above 50%, else WEAK.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    insights: dict[Category, CategoryInsight] = {}
    for category, records in records_by_category.items():
        recent = [
            r for r in records
            if r.outcome is not None and days_between(r.timestamp, now) <= recent_days
        ]
        wins = sum(1 for r in recent if r.correct)
        win_rate = wins / len(recent) if recent else 0.0
        if win_rate > 0.6:
            label = "STRONG"
        elif win_rate > 0.5:
            label = "MODERATE"
        else:
            label = "WEAK"
        insights[category] = CategoryInsight(
            category=category,
            stats=learning_stats(records),
            recent_win_rate=win_rate,
            recent_volume=len(recent),
            recommendation=label,
        )
    return insights
