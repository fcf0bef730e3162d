"""Pure risk metrics over price series, fundamentals and news.

Scores produced here follow one convention: a value in [0, 1] where 1 means
higher risk, unless the function says otherwise.
"""
import math
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import numpy as np

TRADING_DAYS = 252

NEGATIVE_WORDS = (
    "lawsuit", "recall", "miss", "drop", "cut", "layoff", "bankrupt",
    "fraud", "investigation", "downgrade", "sell",
)
POSITIVE_WORDS = (
    "beat", "top", "upgrade", "buyback", "raise", "acquire", "acquisition",
    "partnership", "buy",
)


def normalize(value: float | None, low: float = 0.0, high: float = 1.0) -> float:
    """Linearly map value onto [0, 1] between low and high; missing -> 0.5."""
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return 0.5
    if value <= low:
        return 0.0
    if value >= high:
        return 1.0
    return (value - low) / (high - low)


def simple_returns(closes: Sequence[float]) -> np.ndarray:
    """Period-over-period returns; empty for fewer than two closes."""
    prices = np.asarray(closes, dtype=float)
    if prices.size < 2:
        return np.empty(0)
    return np.diff(prices) / prices[:-1]


def annualized_volatility(returns: np.ndarray) -> float:
    """Sample standard deviation of daily returns scaled by sqrt(252)."""
    if returns.size < 2:
        return 0.0
    return float(np.std(returns, ddof=1) * math.sqrt(TRADING_DAYS))


def window_volatilities(closes: Sequence[float], windows: Mapping[str, int]) -> dict[str, float]:
    """Annualized volatility over the trailing ``n`` returns for each named window."""
    return {
        name: annualized_volatility(simple_returns(list(closes)[-(days + 1):]))
        for name, days in windows.items()
    }


def max_drawdown(closes: Sequence[float]) -> float:
    """Largest peak-to-trough decline as a fraction of the peak."""
    prices = np.asarray(closes, dtype=float)
    if prices.size == 0:
        return 0.0
    peaks = np.maximum.accumulate(prices)
    drawdowns = np.where(peaks > 0, (peaks - prices) / peaks, 0.0)
    return float(drawdowns.max())


def _aligned(a: np.ndarray, b: np.ndarray, limit: int | None = None) -> tuple[np.ndarray, np.ndarray]:
    n = min(a.size, b.size)
    if limit is not None:
        n = min(n, limit)
    return a[a.size - n:], b[b.size - n:]


def regression_beta(
    returns: np.ndarray, benchmark_returns: np.ndarray, min_points: int = 20
) -> float:
    """Slope of the instrument's returns regressed on the benchmark's; 1.0 when undetermined."""
    y, x = _aligned(returns, benchmark_returns)
    if x.size < min_points or float(np.var(x)) == 0.0:
        return 1.0
    slope, _intercept = np.polyfit(x, y, 1)
    return float(slope)


def relative_strength(
    returns: np.ndarray, benchmark_returns: np.ndarray, window: int = 90
) -> float:
    """Outperformance vs. the benchmark over the window, mapped to [0, 1] (higher = stronger)."""
    own, bench = _aligned(returns, benchmark_returns, window)
    if own.size < 5:
        return 0.5
    own_cum = float(np.prod(1 + own)) - 1
    bench_cum = float(np.prod(1 + bench)) - 1
    if 1 + bench_cum == 0:
        return 0.5
    ratio = (1 + own_cum) / (1 + bench_cum) - 1
    return normalize(ratio, -0.5, 0.5)


def earnings_surprise(reports: Sequence[Mapping[str, Any]]) -> float:
    """Relative surprise of the latest report: (actual - estimate) / |estimate|."""
    if not reports:
        return 0.0
    latest = reports[0]
    actual, estimate = latest.get("actual"), latest.get("estimate")
    if not isinstance(actual, (int, float)) or not isinstance(estimate, (int, float)):
        return 0.0
    return (actual - estimate) / (abs(estimate) or 1.0)


def keyword_sentiment(news: Iterable[Mapping[str, Any]]) -> float:
    """Headline keyword polarity in [0, 1] (higher = more positive); 0.5 when no news."""
    items = list(news)
    if not items:
        return 0.5
    score = 0
    for item in items:
        text = (item.get("headline") or item.get("summary") or "").lower()
        score -= sum(1 for word in NEGATIVE_WORDS if word in text)
        score += sum(1 for word in POSITIVE_WORDS if word in text)
    value = (score + len(items)) / (2 * len(items))
    return max(0.0, min(1.0, value))


def provider_sentiment(payload: Mapping[str, Any] | None) -> float | None:
    """Bullish share from a provider sentiment payload, or None when absent."""
    if not payload:
        return None
    sentiment = payload.get("sentiment")
    if not isinstance(sentiment, Mapping):
        return None
    positive = sentiment.get("bullishPercent", sentiment.get("positive"))
    negative = sentiment.get("bearishPercent", sentiment.get("negative"))
    if not isinstance(positive, (int, float)) or not isinstance(negative, (int, float)):
        return None
    return (positive + 1e-6) / (positive + negative + 1e-6)


def first_metric(metrics: Mapping[str, Any], keys: Sequence[str]) -> float | None:
    """First numeric value found under any of the keys."""
    for key in keys:
        value = metrics.get(key)
        if isinstance(value, (int, float)) and not math.isnan(value):
            return float(value)
    return None
