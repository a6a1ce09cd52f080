"""Top-level pipeline orchestrator.

Wires together: calibration → time weighting → Kelly sizing → correlation
adjustment for candidate signals, and the exit scan for open positions.
Each stage is a pure calculation; only calibration touches the outcome
history, and it fails open.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Mapping, Sequence

from rich.console import Console

from edge_engine.arbitrage.relationships import RelationshipDetector
from edge_engine.calibration.adaptive import AdaptiveCalibrator, CalibrationResult
from edge_engine.common.types import ResultStatus, is_finite
from edge_engine.config import Settings, get_settings
from edge_engine.exits.engine import PeakPnLTracker, scan_positions
from edge_engine.exits.models import ExitRecommendation, MarketState, Position, Reanalysis
from edge_engine.markets.models import Action, MarketSignal
from edge_engine.signals.models import OutcomeRecord
from edge_engine.signals.tracker import OutcomeTracker
from edge_engine.sizing.correlation import (
    CorrelationAdjustment,
    RelatedPosition,
    correlation_adjusted_size,
)
from edge_engine.sizing.kelly import size_for_signal
from edge_engine.sizing.timing import TimeAnalysis, TimeDecision, analyze_time

logger = logging.getLogger(__name__)
console = Console()


class Decision(Enum):
    ACCEPT = "ACCEPT"
    REJECT_ACTION = "REJECT_ACTION"  # HOLD or a sell action, nothing to size
    REJECT_TIME = "REJECT_TIME"
    REJECT_EDGE = "REJECT_EDGE"
    REJECT_TIMING = "REJECT_TIMING"
    REJECT_SIZE = "REJECT_SIZE"  # Kelly or correlation sized it to zero

    @classmethod
    def from_time(cls, decision: TimeDecision) -> Decision:
        return cls(decision.value)


@dataclass(frozen=True)
class SizedRecommendation:
    """Final output for one candidate signal.

    ``position_size`` is a fraction of bankroll after every stage; it is 0
    for any rejected candidate.
    """

    signal: MarketSignal
    decision: Decision
    position_size: float
    calibration: CalibrationResult
    time: TimeAnalysis | None = None
    kelly_size: float = 0.0
    correlation: CorrelationAdjustment | None = None
    status: ResultStatus = ResultStatus.OK
    reason: str = ""

    @property
    def accepted(self) -> bool:
        return self.decision is Decision.ACCEPT

    @property
    def calibrated_edge(self) -> float:
        return self.calibration.adjusted_edge


def _reject(
    signal: MarketSignal,
    decision: Decision,
    calibration: CalibrationResult,
    reason: str,
    time: TimeAnalysis | None = None,
    kelly_size: float = 0.0,
    correlation: CorrelationAdjustment | None = None,
    status: ResultStatus | None = None,
) -> SizedRecommendation:
    logger.info("Rejected %s (%s): %s", signal.market_id, decision.value, reason)
    return SizedRecommendation(
        signal=signal,
        decision=decision,
        position_size=0.0,
        calibration=calibration,
        time=time,
        kelly_size=kelly_size,
        correlation=correlation,
        status=status if status is not None else calibration.status,
        reason=reason,
    )


async def evaluate_candidate(
    signal: MarketSignal,
    calibrator: AdaptiveCalibrator,
    related_positions: Sequence[RelatedPosition] = (),
    now: datetime | None = None,
    settings: Settings | None = None,
    detector: RelationshipDetector | None = None,
) -> SizedRecommendation:
    """Run one candidate through calibration, timing, Kelly and correlation.

    Args:
        signal: The candidate from the current analysis cycle
        calibrator: Adaptive calibrator bound to the outcome history
        related_positions: Open positions, checked for related exposure
        now: Evaluation time (defaults to current UTC time)
        settings: Thresholds for every stage
        detector: Relationship detector for the correlation stage

    Returns:
        SizedRecommendation with the decision and final position size
    """
    if settings is None:
        settings = get_settings()
    if now is None:
        now = datetime.now(timezone.utc)

    # Step 1: Adaptive calibration (never blocks)
    calibration = await calibrator.calibrate(
        signal.category, signal.action, signal.edge, signal.confidence, now=now,
    )

    if not is_finite(signal.model_prob, signal.market_prob, signal.liquidity):
        return _reject(
            signal, Decision.REJECT_EDGE, calibration, "Non-finite signal input",
            status=ResultStatus.INVALID_INPUT,
        )
    if signal.action not in (Action.BUY_YES, Action.BUY_NO):
        return _reject(signal, Decision.REJECT_ACTION, calibration, f"Action {signal.action.value} is not sized")

    # Step 2: Time-to-resolution weighting on the calibrated edge.
    # base_size=1.0 so adjusted_size is the volatility shrink factor.
    time = analyze_time(
        calibration.adjusted_edge, 1.0, signal.category, signal.end_date, now=now, settings=settings,
    )
    if not time.accepted:
        return _reject(
            signal, Decision.from_time(time.decision), calibration,
            time.timing.reason if time.decision is TimeDecision.REJECT_TIMING
            else f"Edge {abs(time.raw_edge):.1%} vs minimum {time.min_edge_required:.1%}",
            time=time, status=time.status,
        )

    # Step 3: Kelly on the time-decayed edge, shrunk for volatility and timing tier
    decayed_prob = min(1.0, max(0.0, signal.market_prob + time.adjusted_edge))
    kelly_fraction = size_for_signal(replace(signal, model_prob=decayed_prob), settings)
    kelly_size = kelly_fraction * time.adjusted_size * time.timing.size_multiplier
    if kelly_size <= 0:
        return _reject(
            signal, Decision.REJECT_SIZE, calibration, "Kelly size is zero", time=time,
        )

    # Step 4: Correlation adjustment against open positions
    correlation = correlation_adjusted_size(
        signal.to_market(), related_positions, kelly_size, detector=detector, settings=settings,
    )
    if correlation.adjusted_size <= 0:
        return _reject(
            signal, Decision.REJECT_SIZE, calibration, correlation.reason,
            time=time, kelly_size=kelly_size, correlation=correlation,
        )

    return SizedRecommendation(
        signal=signal,
        decision=Decision.ACCEPT,
        position_size=correlation.adjusted_size,
        calibration=calibration,
        time=time,
        kelly_size=kelly_size,
        correlation=correlation,
        status=calibration.status,
        reason=time.timing.reason,
    )


def _signal_id(signal: MarketSignal, now: datetime) -> str:
    return f"{signal.market_id}-{now:%Y%m%d%H%M%S}"


async def evaluate_candidates(
    signals: Sequence[MarketSignal],
    calibrator: AdaptiveCalibrator,
    related_positions: Sequence[RelatedPosition] = (),
    tracker: OutcomeTracker | None = None,
    now: datetime | None = None,
    settings: Settings | None = None,
) -> list[SizedRecommendation]:
    """Evaluate a batch of candidates; log accepted ones to *tracker*.

    Returns recommendations with accepted candidates first, largest size first.
    """
    if settings is None:
        settings = get_settings()
    if now is None:
        now = datetime.now(timezone.utc)
    detector = RelationshipDetector()

    console.print(f"[bold]Evaluating {len(signals)} candidate signal(s)...[/bold]")
    results = [
        await evaluate_candidate(signal, calibrator, related_positions, now, settings, detector)
        for signal in signals
    ]
    results.sort(key=lambda r: (not r.accepted, -r.position_size))

    accepted = [r for r in results if r.accepted]
    console.print(
        f"  [green]{len(accepted)}[/green] accepted, {len(results) - len(accepted)} rejected"
    )

    if accepted and tracker is not None:
        logged = 0
        for rec in accepted:
            record = OutcomeRecord(
                signal_id=_signal_id(rec.signal, now),
                category=rec.signal.category,
                action=rec.signal.action,
                edge=rec.calibrated_edge,
                confidence=rec.calibration.adjusted_confidence,
                timestamp=now,
            )
            if await tracker.log_signal(record):
                logged += 1
        console.print(f"[dim]Logged {logged} signal(s) to database[/dim]")

    return results


def run_exit_scan(
    positions: Sequence[Position],
    markets: Mapping[str, MarketState] | None = None,
    analyses: Mapping[str, Reanalysis] | None = None,
    tracker: PeakPnLTracker | None = None,
    now: datetime | None = None,
    settings: Settings | None = None,
    prune_closed: bool = False,
) -> list[ExitRecommendation]:
    """Scan open positions for exits and report a summary."""
    console.print(f"[bold]Scanning {len(positions)} open position(s) for exits...[/bold]")
    exits = scan_positions(positions, markets, analyses, tracker, now, settings, prune_closed)
    if exits:
        console.print(f"  [yellow]{len(exits)}[/yellow] position(s) should exit")
    else:
        console.print("  [green]All positions: HOLD[/green]")
    return exits
