"""Output formatters: Rich tables and JSON for recommendations, exits, arbitrage and risk."""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Sequence

from rich.console import Console
from rich.table import Table

from edge_engine.arbitrage.opportunities import ArbitrageOpportunity
from edge_engine.calibration.adaptive import ActionStats, CategoryInsight
from edge_engine.exits.models import ExitRecommendation, Priority
from edge_engine.pipeline import SizedRecommendation
from edge_engine.risk.metrics import RiskReport


def _caption() -> str:
    return f"Generated at {datetime.now(timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}"


# -- candidate recommendations -------------------------------------------------


def format_recommendations_table(
    recommendations: Sequence[SizedRecommendation], console: Console | None = None,
) -> None:
    """Print sized recommendations, accepted first."""
    if console is None:
        console = Console()

    if not recommendations:
        console.print("[yellow]No candidate signals to evaluate.[/yellow]")
        return

    table = Table(title="Sized Recommendations", caption=_caption(), show_lines=True)
    table.add_column("Decision", style="bold", width=14)
    table.add_column("Action", width=7)
    table.add_column("Edge", justify="right", width=7)
    table.add_column("Cal. Edge", justify="right", width=9)
    table.add_column("Conf", justify="right", width=5)
    table.add_column("Days", justify="right", width=6)
    table.add_column("Timing", width=11)
    table.add_column("Size %", justify="right", width=7)
    table.add_column("Question", width=40, no_wrap=False)

    for r in recommendations:
        color = "green" if r.accepted else "red"
        days = r.time.days_remaining if r.time is not None else None
        timing = r.time.timing.recommendation.value if r.time is not None else "-"
        table.add_row(
            f"[{color}]{r.decision.value}[/{color}]",
            r.signal.action.value,
            f"{r.signal.edge:+.1%}",
            f"{r.calibrated_edge:+.1%}",
            f"{r.calibration.adjusted_confidence:.0f}",
            f"{days:.1f}" if days is not None else "-",
            timing,
            f"{r.position_size:.2%}",
            r.signal.question[:80],
        )

    console.print(table)
    accepted = sum(1 for r in recommendations if r.accepted)
    console.print(f"\n[dim]{accepted} of {len(recommendations)} candidate(s) accepted[/dim]")


def format_recommendations_json(recommendations: Sequence[SizedRecommendation]) -> str:
    return json.dumps(
        [
            {
                "market_id": r.signal.market_id,
                "question": r.signal.question,
                "category": r.signal.category.value,
                "action": r.signal.action.value,
                "decision": r.decision.value,
                "status": r.status.value,
                "reason": r.reason,
                "raw_edge": r.signal.edge,
                "calibrated_edge": r.calibrated_edge,
                "calibrated_confidence": r.calibration.adjusted_confidence,
                "learning_factor": r.calibration.learning_factor,
                "days_remaining": r.time.days_remaining if r.time is not None else None,
                "time_adjusted_edge": r.time.adjusted_edge if r.time is not None else None,
                "timing": r.time.timing.recommendation.value if r.time is not None else None,
                "kelly_size": r.kelly_size,
                "correlation_factor": r.correlation.correlation_factor if r.correlation else None,
                "position_size": r.position_size,
            }
            for r in recommendations
        ],
        indent=2,
    )


# -- exits ---------------------------------------------------------------------

_PRIORITY_COLOR = {
    Priority.CRITICAL: "bold red",
    Priority.HIGH: "red",
    Priority.MEDIUM: "yellow",
    Priority.LOW: "dim",
}


def format_exits_table(exits: Sequence[ExitRecommendation], console: Console | None = None) -> None:
    if console is None:
        console = Console()

    if not exits:
        console.print("[green]No exit signals: hold all positions.[/green]")
        return

    table = Table(title="Exit Signals", caption=_caption(), show_lines=True)
    table.add_column("Urgency", style="bold", width=15)
    table.add_column("Reason", width=26)
    table.add_column("P&L", justify="right", width=8)
    table.add_column("Action", width=11)
    table.add_column("Message", width=40, no_wrap=False)
    table.add_column("Market", width=30, no_wrap=False)

    for e in exits:
        color = _PRIORITY_COLOR.get(e.priority, "white")
        pnl_color = "green" if e.current_pnl >= 0 else "red"
        table.add_row(
            f"[{color}]{e.urgency.value if e.urgency else '-'}[/{color}]",
            e.recommendation,
            f"[{pnl_color}]{e.current_pnl:+.1f}%[/{pnl_color}]",
            e.suggested_action or "-",
            e.message,
            (e.question or e.market_id)[:60],
        )

    console.print(table)


def format_exits_json(exits: Sequence[ExitRecommendation]) -> str:
    return json.dumps(
        [
            {
                "position_id": e.position_id,
                "market_id": e.market_id,
                "recommendation": e.recommendation,
                "priority": e.priority.value if e.priority else None,
                "urgency": e.urgency.value if e.urgency else None,
                "current_pnl": e.current_pnl,
                "suggested_action": e.suggested_action,
                "message": e.message,
                "signals": [
                    {"reason": s.reason.value, "priority": s.priority.value, "message": s.message}
                    for s in e.signals
                ],
                "days_to_resolution": e.days_to_resolution,
                "days_held": e.days_held,
            }
            for e in exits
        ],
        indent=2,
    )


# -- arbitrage -----------------------------------------------------------------


def format_arbitrage_table(
    opportunities: Sequence[ArbitrageOpportunity], console: Console | None = None,
) -> None:
    if console is None:
        console = Console()

    if not opportunities:
        console.print("[yellow]No arbitrage opportunities found.[/yellow]")
        return

    table = Table(title="Arbitrage Opportunities", caption=_caption(), show_lines=True)
    table.add_column("Type", style="bold", width=18)
    table.add_column("Profit", justify="right", width=7)
    table.add_column("Conf", justify="right", width=5)
    table.add_column("Trades", width=24)
    table.add_column("Market A", width=30, no_wrap=False)
    table.add_column("Market B", width=30, no_wrap=False)

    for o in opportunities:
        trades = "\n".join(f"{t.action} {t.market_id} @ {t.price:.2f}" for t in o.trades)
        table.add_row(
            o.type.value,
            f"{o.expected_profit:.1f}%",
            f"{o.confidence:.0f}",
            trades,
            o.market_a_question[:60],
            o.market_b_question[:60],
        )

    console.print(table)


def format_arbitrage_json(opportunities: Sequence[ArbitrageOpportunity]) -> str:
    return json.dumps(
        [
            {
                "type": o.type.value,
                "description": o.description,
                "expected_profit": o.expected_profit,
                "deviation": o.deviation,
                "confidence": o.confidence,
                "relationship": o.relationship.type.value,
                "market_a": o.relationship.market_a,
                "market_b": o.relationship.market_b,
                "price_a": o.price_a,
                "price_b": o.price_b,
                "trades": [asdict(t) for t in o.trades],
            }
            for o in opportunities
        ],
        indent=2,
    )


# -- risk ----------------------------------------------------------------------


def format_risk_table(report: RiskReport, console: Console | None = None) -> None:
    if console is None:
        console = Console()

    table = Table(title=f"Risk Metrics ({report.observations} periods)")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    dd = report.drawdown
    table.add_row("Sharpe ratio", f"{report.sharpe:.3f}")
    table.add_row("Sortino ratio", f"{report.sortino:.3f}")
    table.add_row("Calmar ratio", f"{report.calmar:.3f}")
    table.add_row("Max drawdown", f"{dd.max_drawdown:.2f}% (peak {dd.peak_index}, trough {dd.trough_index})")
    table.add_row("Recovery", f"{dd.recovery_duration} period(s)" if dd.recovery_duration else "not recovered")
    if report.var.method == "historical":
        table.add_row(f"VaR ({report.var.confidence_level:.0%})", f"{report.var.percentage:.2f}%")
        table.add_row(f"CVaR ({report.cvar.confidence_level:.0%})", f"{report.cvar.percentage:.2f}%")
    else:
        table.add_row("VaR / CVaR", "[dim]insufficient data[/dim]")

    console.print(table)


def format_risk_json(report: RiskReport) -> str:
    return json.dumps(asdict(report), indent=2)


# -- calibration stats ---------------------------------------------------------


def format_stats_table(
    category: str,
    stats: Sequence[ActionStats],
    insight: CategoryInsight | None = None,
    console: Console | None = None,
) -> None:
    if console is None:
        console = Console()

    if not stats:
        console.print(f"[yellow]No resolved signals for {category}.[/yellow]")
        return

    table = Table(title=f"Learning Stats: {category}")
    table.add_column("Action", style="bold")
    table.add_column("Resolved", justify="right")
    table.add_column("Correct", justify="right")
    table.add_column("Accuracy", justify="right")
    table.add_column("Avg Conf", justify="right")
    table.add_column("Avg Edge", justify="right")

    for s in stats:
        table.add_row(
            s.action.value,
            str(s.total),
            str(s.correct),
            f"{s.accuracy:.1%}",
            f"{s.avg_confidence:.0f}",
            f"{s.avg_edge:+.1%}",
        )

    console.print(table)
    if insight is not None:
        console.print(
            f"  Recent win rate: {insight.recent_win_rate:.1%} "
            f"over {insight.recent_volume} signal(s) ([bold]{insight.recommendation}[/bold])"
        )
