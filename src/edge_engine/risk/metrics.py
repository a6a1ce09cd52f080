"""Portfolio risk metrics over periodic returns and equity curves.

All functions are pure and return a neutral 0 (never NaN or inf) on
degenerate input: too few samples, zero variance, non-finite values or
mismatched series lengths. Standard deviations are population (ddof=0).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Mapping, Sequence

import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger(__name__)


def _as_array(values: Sequence[float] | NDArray[np.float64], min_len: int = 2) -> NDArray[np.float64] | None:
    """Float array, or None if too short or not all finite."""
    try:
        arr = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError):
        return None
    if arr.ndim != 1 or arr.size < min_len or not np.all(np.isfinite(arr)):
        return None
    return arr


def _finite_or_zero(x: float) -> float:
    return float(x) if math.isfinite(x) else 0.0


def sharpe_ratio(
    returns: Sequence[float],
    risk_free_rate: float = 0.02,
    periods_per_year: int = 252,
) -> float:
    """Annualized excess return over annualized volatility."""
    arr = _as_array(returns)
    if arr is None:
        return 0.0
    std = float(np.std(arr))
    if std == 0.0:
        return 0.0
    annual_return = float(np.mean(arr)) * periods_per_year
    annual_std = std * math.sqrt(periods_per_year)
    return _finite_or_zero((annual_return - risk_free_rate) / annual_std)


def sortino_ratio(
    returns: Sequence[float],
    risk_free_rate: float = 0.02,
    periods_per_year: int = 252,
) -> float:
    """Like Sharpe, but penalizes only returns below the per-period risk-free rate."""
    arr = _as_array(returns)
    if arr is None:
        return 0.0
    mar = risk_free_rate / periods_per_year
    downside = arr[arr < mar]
    if downside.size == 0:
        return 0.0
    downside_dev = math.sqrt(float(np.mean((downside - mar) ** 2)))
    if downside_dev == 0.0:
        return 0.0
    annual_return = float(np.mean(arr)) * periods_per_year
    return _finite_or_zero((annual_return - risk_free_rate) / (downside_dev * math.sqrt(periods_per_year)))


@dataclass(frozen=True)
class DrawdownResult:
    """Deepest peak-to-trough decline of an equity curve.

    Attributes:
        max_drawdown: Decline in percent of the peak value
        peak_index: Index of the peak preceding the trough
        trough_index: Index of the trough
        drawdown_duration: Periods from peak to trough
        recovery_duration: Periods from trough until the curve regained the
            peak, 0 if it never did
    """

    max_drawdown: float = 0.0
    peak_index: int = 0
    trough_index: int = 0
    drawdown_duration: int = 0
    recovery_duration: int = 0


def max_drawdown(values: Sequence[float]) -> DrawdownResult:
    arr = _as_array(values)
    # the running peak never drops below the first value
    if arr is None or arr[0] <= 0:
        return DrawdownResult()

    running_peak_idx = 0
    best = DrawdownResult()
    for i in range(1, arr.size):
        if arr[i] > arr[running_peak_idx]:
            running_peak_idx = i
            continue
        dd = (arr[running_peak_idx] - arr[i]) / arr[running_peak_idx]
        if dd > best.max_drawdown / 100.0:
            best = DrawdownResult(
                max_drawdown=float(dd) * 100.0,
                peak_index=running_peak_idx,
                trough_index=i,
                drawdown_duration=i - running_peak_idx,
            )

    if best.max_drawdown == 0.0:
        return best

    peak_value = arr[best.peak_index]
    recovered = np.nonzero(arr[best.trough_index + 1:] >= peak_value)[0]
    if recovered.size:
        best = DrawdownResult(
            max_drawdown=best.max_drawdown,
            peak_index=best.peak_index,
            trough_index=best.trough_index,
            drawdown_duration=best.drawdown_duration,
            recovery_duration=int(recovered[0]) + 1,
        )
    return best


@dataclass(frozen=True)
class TailRiskResult:
    """Historical VaR or CVaR.

    ``percentage`` is the loss magnitude in percent, ``amount`` the same
    loss scaled by the portfolio value.
    """

    amount: float
    percentage: float
    method: str  # "historical" or "insufficient_data"
    confidence_level: float
    observations: int = 0


def _tail_index(n: int, confidence: float) -> int:
    return min(n - 1, int(math.floor((1.0 - confidence) * n)))


def value_at_risk(
    returns: Sequence[float],
    confidence: float = 0.95,
    portfolio_value: float = 1.0,
    min_samples: int = 10,
) -> TailRiskResult:
    """Historical VaR: the return at the (1 - confidence) percentile."""
    arr = _as_array(returns, min_len=min_samples)
    if arr is None or not 0.0 < confidence < 1.0:
        return TailRiskResult(0.0, 0.0, "insufficient_data", confidence)

    ordered = np.sort(arr)
    loss = abs(float(ordered[_tail_index(ordered.size, confidence)]))
    return TailRiskResult(
        amount=portfolio_value * loss,
        percentage=loss * 100.0,
        method="historical",
        confidence_level=confidence,
        observations=int(arr.size),
    )


def conditional_value_at_risk(
    returns: Sequence[float],
    confidence: float = 0.95,
    portfolio_value: float = 1.0,
    min_samples: int = 10,
) -> TailRiskResult:
    """Expected shortfall: mean of the returns at or below the VaR index."""
    arr = _as_array(returns, min_len=min_samples)
    if arr is None or not 0.0 < confidence < 1.0:
        return TailRiskResult(0.0, 0.0, "insufficient_data", confidence)

    ordered = np.sort(arr)
    tail = ordered[: _tail_index(ordered.size, confidence) + 1]
    loss = abs(float(np.mean(tail)))
    return TailRiskResult(
        amount=portfolio_value * loss,
        percentage=loss * 100.0,
        method="historical",
        confidence_level=confidence,
        observations=int(tail.size),
    )


def _paired(a: Sequence[float], b: Sequence[float]) -> tuple[NDArray[np.float64], NDArray[np.float64]] | None:
    arr_a, arr_b = _as_array(a), _as_array(b)
    if arr_a is None or arr_b is None or arr_a.size != arr_b.size:
        return None
    return arr_a, arr_b


def beta(asset_returns: Sequence[float], benchmark_returns: Sequence[float]) -> float:
    """cov(asset, benchmark) / var(benchmark)."""
    pair = _paired(asset_returns, benchmark_returns)
    if pair is None:
        return 0.0
    asset, bench = pair
    var = float(np.var(bench))
    if var == 0.0:
        return 0.0
    cov = float(np.mean((asset - asset.mean()) * (bench - bench.mean())))
    return _finite_or_zero(cov / var)


def information_ratio(
    asset_returns: Sequence[float],
    benchmark_returns: Sequence[float],
    periods_per_year: int = 252,
) -> float:
    """Annualized active return over annualized tracking error."""
    pair = _paired(asset_returns, benchmark_returns)
    if pair is None:
        return 0.0
    active = pair[0] - pair[1]
    tracking_error = float(np.std(active))
    if tracking_error == 0.0:
        return 0.0
    return _finite_or_zero(
        float(np.mean(active)) * periods_per_year / (tracking_error * math.sqrt(periods_per_year))
    )


def calmar_ratio(
    returns: Sequence[float],
    values: Sequence[float],
    periods_per_year: int = 252,
) -> float:
    """Annualized total return of *values* over its max drawdown.

    Both sides are fractions, so a 20% return with a 10% drawdown is 2.0.
    """
    ret = _as_array(returns)
    vals = _as_array(values)
    if ret is None or vals is None or vals[0] <= 0:
        return 0.0
    dd = max_drawdown(vals).max_drawdown / 100.0
    if dd == 0.0:
        return 0.0
    total_return = (vals[-1] - vals[0]) / vals[0]
    annual_return = total_return * (periods_per_year / ret.size)
    return _finite_or_zero(annual_return / dd)


def correlation_matrix(series: Mapping[str, Sequence[float]]) -> dict[str, dict[str, float]]:
    """Pairwise Pearson correlation, clamped to [-1, 1].

    Series must share a length of at least 2; a zero-variance series
    correlates 0 with everything (including itself).
    """
    names = list(series)
    arrays = [_as_array(series[name]) for name in names]
    if len(names) < 1 or any(a is None for a in arrays) or len({a.size for a in arrays}) != 1:
        return {}

    stacked = np.vstack(arrays)
    centered = stacked - stacked.mean(axis=1, keepdims=True)
    std = stacked.std(axis=1)
    cov = centered @ centered.T / stacked.shape[1]

    matrix: dict[str, dict[str, float]] = {}
    for i, a in enumerate(names):
        matrix[a] = {}
        for j, b in enumerate(names):
            denom = std[i] * std[j]
            corr = cov[i, j] / denom if denom > 0 else 0.0
            matrix[a][b] = float(np.clip(corr, -1.0, 1.0))
    return matrix


@dataclass(frozen=True)
class RiskReport:
    """All metrics for one return series (and optional equity curve)."""

    sharpe: float
    sortino: float
    var: TailRiskResult
    cvar: TailRiskResult
    drawdown: DrawdownResult
    calmar: float
    observations: int


def equity_curve(returns: Sequence[float], start: float = 1.0) -> list[float]:
    """Compound periodic returns into an equity curve starting at *start*."""
    arr = _as_array(returns, min_len=1)
    if arr is None:
        return [start]
    return [start] + [float(v) for v in start * np.cumprod(1.0 + arr)]


def risk_report(
    returns: Sequence[float],
    values: Sequence[float] | None = None,
    risk_free_rate: float = 0.02,
    periods_per_year: int = 252,
    var_confidence: float = 0.95,
    min_var_samples: int = 10,
) -> RiskReport:
    """Compute every metric; *values* defaults to the compounded returns."""
    if values is None:
        values = equity_curve(returns)
    logger.debug("Risk report over %d returns", len(returns))
    return RiskReport(
        sharpe=sharpe_ratio(returns, risk_free_rate, periods_per_year),
        sortino=sortino_ratio(returns, risk_free_rate, periods_per_year),
        var=value_at_risk(returns, var_confidence, min_samples=min_var_samples),
        cvar=conditional_value_at_risk(returns, var_confidence, min_samples=min_var_samples),
        drawdown=max_drawdown(values),
        calmar=calmar_ratio(returns, values, periods_per_year),
        observations=len(returns),
    )
