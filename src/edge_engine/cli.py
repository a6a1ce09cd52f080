"""Typer CLI: edge-engine size, exits, arbitrage, risk, stats, record."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

app = typer.Typer(
    name="edge-engine",
    help="Risk-adjusted sizing, exit signals and arbitrage for prediction markets",
    no_args_is_help=True,
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_or_exit(loader, path: Path):
    try:
        return loader(path)
    except (OSError, ValueError) as exc:
        console.print(f"[red]Could not read {path}: {exc}[/red]")
        raise typer.Exit(code=1)


@app.command()
def size(
    signals_file: Path = typer.Argument(help="JSON list of candidate signals"),
    positions_file: Optional[Path] = typer.Option(
        None, "--positions", "-p",
        help="Open positions (JSON) for correlation adjustment",
    ),
    output: str = typer.Option("table", "--output", "-o", help="Output format: table, json"),
    db: Optional[Path] = typer.Option(None, "--db", help="Outcome history database"),
    log_signals: bool = typer.Option(
        False, "--log", help="Log accepted signals to the outcome history",
    ),
) -> None:
    """Calibrate, time-weight and size candidate signals."""
    from edge_engine.markets.loader import load_positions, load_signals
    from edge_engine.markets.models import Market
    from edge_engine.signals.formatters import format_recommendations_json, format_recommendations_table
    from edge_engine.sizing.correlation import RelatedPosition

    signals = _load_or_exit(load_signals, signals_file)
    related: list[RelatedPosition] = []
    if positions_file is not None:
        for p in _load_or_exit(load_positions, positions_file):
            related.append(RelatedPosition(Market(p.market_id, p.question, p.current_price), p.size))

    async def _run() -> None:
        from edge_engine.calibration.adaptive import AdaptiveCalibrator
        from edge_engine.pipeline import evaluate_candidates
        from edge_engine.signals.tracker import OutcomeTracker

        tracker = OutcomeTracker(db_path=db)
        calibrator = AdaptiveCalibrator(tracker)
        recommendations = await evaluate_candidates(
            signals, calibrator, related, tracker=tracker if log_signals else None,
        )

        if output == "json":
            console.print(format_recommendations_json(recommendations))
        else:
            format_recommendations_table(recommendations, console)

    asyncio.run(_run())


@app.command()
def exits(
    positions_file: Path = typer.Argument(help="JSON list of open positions"),
    markets_file: Optional[Path] = typer.Option(
        None, "--markets", "-m",
        help="Current liquidity and re-analysis edge/confidence per market (JSON)",
    ),
    output: str = typer.Option("table", "--output", "-o", help="Output format: table, json"),
) -> None:
    """Check open positions for exit conditions."""
    from edge_engine.markets.loader import load_market_states, load_positions
    from edge_engine.pipeline import run_exit_scan
    from edge_engine.signals.formatters import format_exits_json, format_exits_table

    positions = _load_or_exit(load_positions, positions_file)
    markets, analyses = ({}, {})
    if markets_file is not None:
        markets, analyses = _load_or_exit(load_market_states, markets_file)

    results = run_exit_scan(positions, markets, analyses, prune_closed=True)

    if output == "json":
        console.print(format_exits_json(results))
    else:
        format_exits_table(results, console)


@app.command()
def arbitrage(
    markets_file: Path = typer.Argument(help="JSON list of markets with YES prices"),
    output: str = typer.Option("table", "--output", "-o", help="Output format: table, json"),
) -> None:
    """Scan related markets for price-sum arbitrage."""
    from edge_engine.arbitrage.opportunities import scan_for_arbitrage
    from edge_engine.markets.loader import load_markets
    from edge_engine.signals.formatters import format_arbitrage_json, format_arbitrage_table

    markets = _load_or_exit(load_markets, markets_file)
    console.print(f"[bold]Scanning {len(markets)} market(s) for arbitrage...[/bold]")
    opportunities = scan_for_arbitrage(markets)

    if output == "json":
        console.print(format_arbitrage_json(opportunities))
    else:
        format_arbitrage_table(opportunities, console)


def _read_returns(path: Path) -> tuple[list[float], list[float] | None]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, list):
        return [float(r) for r in data], None
    if isinstance(data, dict) and "returns" in data:
        values = data.get("values") or data.get("equity")
        return (
            [float(r) for r in data["returns"]],
            [float(v) for v in values] if values else None,
        )
    raise ValueError("expected a list of returns or {\"returns\": [...], \"values\": [...]}")


@app.command()
def risk(
    returns_file: Path = typer.Argument(help="JSON list of periodic returns, or {returns, values}"),
    output: str = typer.Option("table", "--output", "-o", help="Output format: table, json"),
) -> None:
    """Compute Sharpe, Sortino, drawdown, VaR and CVaR for a return series."""
    from edge_engine.config import get_settings
    from edge_engine.risk.metrics import risk_report
    from edge_engine.signals.formatters import format_risk_json, format_risk_table

    returns, values = _load_or_exit(_read_returns, returns_file)
    settings = get_settings()
    report = risk_report(
        returns,
        values,
        risk_free_rate=settings.risk_free_rate,
        periods_per_year=settings.periods_per_year,
        var_confidence=settings.var_confidence,
        min_var_samples=settings.min_var_samples,
    )

    if output == "json":
        console.print(format_risk_json(report))
    else:
        format_risk_table(report, console)


@app.command()
def stats(
    category: str = typer.Argument(help="Market category, e.g. POLITICS"),
    db: Optional[Path] = typer.Option(None, "--db", help="Outcome history database"),
) -> None:
    """Show adaptive-learning statistics for a category."""
    from edge_engine.calibration.adaptive import category_insights
    from edge_engine.markets.models import Category
    from edge_engine.signals.formatters import format_stats_table

    cat = Category.parse(category)

    async def _run() -> None:
        from edge_engine.signals.tracker import OutcomeTracker

        tracker = OutcomeTracker(db_path=db)
        records = await tracker.get_category_records(cat)
        action_stats = await tracker.get_learning_stats(cat)
        insight = category_insights({cat: records}).get(cat)
        format_stats_table(cat.value, action_stats, insight, console)

    asyncio.run(_run())


@app.command()
def record(
    signal_id: str = typer.Argument(help="Signal identifier"),
    outcome: str = typer.Argument(help="Resolved outcome: YES or NO"),
    category: str = typer.Option("EVENT", "--category", "-c", help="Market category"),
    action: str = typer.Option("BUY_YES", "--action", "-a", help="Action that was signaled"),
    edge: float = typer.Option(0.0, "--edge", help="Edge at emission"),
    confidence: float = typer.Option(50.0, "--confidence", help="Confidence at emission (0-100)"),
    db: Optional[Path] = typer.Option(None, "--db", help="Outcome history database"),
) -> None:
    """Record the resolved outcome of a signal (resolves once)."""
    from edge_engine.markets.models import Action, Category
    from edge_engine.signals.models import Outcome

    try:
        resolved = Outcome(outcome.strip().upper())
        parsed_action = Action.parse(action)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    async def _run() -> bool:
        from edge_engine.signals.tracker import OutcomeTracker

        tracker = OutcomeTracker(db_path=db)
        return await tracker.record_outcome(
            signal_id, resolved, Category.parse(category), parsed_action, edge, confidence,
        )

    if asyncio.run(_run()):
        console.print(f"[green]Recorded {signal_id}: {resolved.value}[/green]")
    else:
        console.print(f"[red]Could not record {signal_id} (already resolved differently?)[/red]")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
