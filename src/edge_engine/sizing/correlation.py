"""Shrink a proposed position when related exposure is already held."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from edge_engine.arbitrage.relationships import RelationshipDetector, RelationshipType
from edge_engine.common.types import ResultStatus, is_finite
from edge_engine.config import Settings, get_settings
from edge_engine.markets.models import Market

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelatedPosition:
    """An open position, as seen by the correlation sizer."""

    market: Market
    size: float


@dataclass(frozen=True)
class CorrelationAdjustment:
    adjusted_size: float
    correlation_factor: float
    related_exposure: float
    max_total_exposure: float
    reason: str
    status: ResultStatus = ResultStatus.OK


def relationship_weight(rel_type: RelationshipType, settings: Settings) -> float:
    if rel_type is RelationshipType.INVERSE:
        return settings.weight_inverse
    if rel_type is RelationshipType.SUBSET:
        return settings.weight_subset
    if rel_type is RelationshipType.CORRELATED:
        return settings.weight_correlated
    return settings.weight_other


def correlation_adjusted_size(
    target: Market,
    related_positions: Sequence[RelatedPosition],
    base_size: float,
    detector: RelationshipDetector | None = None,
    settings: Settings | None = None,
) -> CorrelationAdjustment:
    """Reduce *base_size* by weighted exposure to markets related to *target*.

    related_exposure = sum(size * weight) over related positions, and the
    total effective exposure is capped at ``max_exposure_multiple * base``.
    The result never exceeds *base_size* and is never negative.
    """
    if settings is None:
        settings = get_settings()
    if detector is None:
        detector = RelationshipDetector()

    max_total = base_size * settings.max_exposure_multiple

    if not is_finite(base_size) or base_size <= 0:
        return CorrelationAdjustment(
            adjusted_size=0.0,
            correlation_factor=0.0,
            related_exposure=0.0,
            max_total_exposure=0.0,
            reason="No base size to adjust",
            status=ResultStatus.INVALID_INPUT if not is_finite(base_size) else ResultStatus.OK,
        )

    related_exposure = 0.0
    for position in related_positions:
        relationship = detector.detect(target, position.market)
        if relationship is None:
            continue
        size = position.size if is_finite(position.size) else 0.0
        related_exposure += abs(size) * relationship_weight(relationship.type, settings)

    available = max(0.0, max_total - related_exposure)
    factor = min(1.0, available / base_size)

    if factor < 1.0:
        reason = f"Reduced due to {related_exposure:.2f} exposure in related markets"
        logger.info(
            "Correlation adjustment for %s: factor %.2f (exposure %.2f)",
            target.market_id, factor, related_exposure,
        )
    else:
        reason = "No correlation adjustment needed"

    return CorrelationAdjustment(
        adjusted_size=max(0.0, base_size * factor),
        correlation_factor=factor,
        related_exposure=related_exposure,
        max_total_exposure=max_total,
        reason=reason,
    )
