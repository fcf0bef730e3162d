"""Composite risk scoring: market, fundamental and sentiment signals -> 1..10."""
import asyncio
import logging
import math
from collections.abc import Mapping
from typing import Any

from riskwise.schemas import RiskFactors, RiskResult
from riskwise.services.risk import metrics
from riskwise.services.risk.protocols import HistorySource, ResearchSource

logger = logging.getLogger(__name__)

VOLATILITY_WINDOWS = {"short": 7, "medium": 30, "long": 90}
VOLATILITY_BLEND = {"short": 0.5, "medium": 0.3, "long": 0.2}
DEFAULT_VIX = 20.0
MIN_HISTORY_POINTS = 10

# Each weight applies to a [0, 1] sub-score where 1 is riskier.
DEFAULT_WEIGHTS: dict[str, float] = {
    "volatility": 0.18,
    "beta": 0.14,
    "drawdown": 0.12,
    "leverage": 0.08,
    "coverage": 0.07,
    "earnings_surprise": 0.10,
    "sentiment": 0.10,
    "event_risk": 0.08,
    "relative_strength": 0.06,
    "market_volatility": 0.07,
}

DEBT_TO_EQUITY_KEYS = (
    "totalDebt/totalEquityQuarterly",
    "totalDebt/totalEquityAnnual",
    "debtToEquity",
)
INTEREST_COVERAGE_KEYS = (
    "netInterestCoverageTTM",
    "netInterestCoverageAnnual",
    "interestCoverage",
)


def score_from_composite(composite: float) -> int:
    """Map a composite in [0, 1] to an integer score in [1, 10], rounding half up."""
    raw = math.floor(composite * 9 + 1 + 0.5)
    return max(1, min(10, int(raw)))


class RiskScoringEngine:
    """Score an instrument's risk from its history, fundamentals and news.

    Price history is the only required input: if it cannot be loaded the
    result is the neutral score 5 with the failure in ``explanation["error"]``.
    Every other input degrades to a neutral value and is listed under
    ``explanation["degraded"]``. The engine keeps no state between calls.
    """

    def __init__(
        self,
        history: HistorySource,
        research: ResearchSource,
        *,
        benchmark_symbol: str = "SPY",
        volatility_index_symbol: str = "^VIX",
        weights: Mapping[str, float] | None = None,
        history_days: int = 365,
        news_lookback_days: int = 14,
    ) -> None:
        self._history = history
        self._research = research
        self._benchmark = benchmark_symbol
        self._vix = volatility_index_symbol
        self._weights = dict(weights or DEFAULT_WEIGHTS)
        total = sum(self._weights.values())
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"Risk weights must sum to 1, got {total:.4f}")
        self._history_days = history_days
        self._news_days = news_lookback_days

    @property
    def weights(self) -> dict[str, float]:
        return dict(self._weights)

    async def score(self, symbol: str, current_price: float | None = None) -> RiskResult:
        """Compute the risk result for a symbol; never raises."""
        sym = symbol.strip().upper()
        try:
            return await self._score(sym, current_price)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Risk scoring failed for %s, using neutral score: %s", sym, exc)
            return RiskResult.neutral(sym, str(exc) or type(exc).__name__, current_price)

    async def _score(self, symbol: str, current_price: float | None) -> RiskResult:
        closes = await self._history.get_daily_closes(symbol, self._history_days)
        if len(closes) < MIN_HISTORY_POINTS:
            raise ValueError(f"insufficient price history for {symbol} ({len(closes)} points)")

        names = ("benchmark", "fundamentals", "earnings", "news", "sentiment", "vix")
        results = await asyncio.gather(
            self._history.get_daily_closes(self._benchmark, self._history_days),
            self._research.get_fundamentals(symbol),
            self._research.get_earnings(symbol),
            self._research.get_company_news(symbol, self._news_days),
            self._research.get_news_sentiment(symbol),
            self._history.get_daily_closes(self._vix, 30),
            return_exceptions=True,
        )
        inputs: dict[str, Any] = {}
        degraded: dict[str, str] = {}
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                degraded[name] = str(result) or type(result).__name__
                logger.debug("Risk input %s unavailable for %s: %s", name, symbol, result)
                inputs[name] = None
            else:
                inputs[name] = result

        factors = self._factors(closes, inputs)
        composite = sum(self._weights[name] * factors.scores[name] for name in self._weights)
        composite = max(0.0, min(1.0, composite))
        factors.composite = composite
        score = score_from_composite(composite)

        explanation: dict[str, Any] = {
            "composite": round(composite, 4),
            "contributions": {
                name: round(self._weights[name] * factors.scores[name], 4) for name in self._weights
            },
            "history_points": len(closes),
        }
        if degraded:
            explanation["degraded"] = degraded
        price = current_price if current_price is not None else float(closes[-1])
        return RiskResult(
            symbol=symbol,
            overall_risk_score=score,
            current_price=price,
            factors=factors,
            explanation=explanation,
        )

    def _factors(self, closes: list[float], inputs: Mapping[str, Any]) -> RiskFactors:
        returns = metrics.simple_returns(closes)
        vols = metrics.window_volatilities(closes, VOLATILITY_WINDOWS)
        vol_composite = sum(VOLATILITY_BLEND[name] * vols[name] for name in VOLATILITY_BLEND)

        bench_closes = inputs.get("benchmark") or []
        bench_returns = metrics.simple_returns(bench_closes)
        beta = metrics.regression_beta(returns, bench_returns)
        strength = metrics.relative_strength(returns, bench_returns)
        drawdown = metrics.max_drawdown(closes[-(VOLATILITY_WINDOWS["long"] + 1):])

        fundamentals = inputs.get("fundamentals") or {}
        debt_to_equity = metrics.first_metric(fundamentals, DEBT_TO_EQUITY_KEYS)
        coverage = metrics.first_metric(fundamentals, INTEREST_COVERAGE_KEYS)

        surprise = metrics.earnings_surprise(inputs.get("earnings") or [])
        sentiment = metrics.provider_sentiment(inputs.get("sentiment"))
        if sentiment is None:
            sentiment = metrics.keyword_sentiment(inputs.get("news") or [])

        vix_closes = inputs.get("vix") or []
        vix = float(vix_closes[-1]) if vix_closes else DEFAULT_VIX

        surprise_risk = metrics.normalize(-surprise, 0.0, 1.0) if surprise < 0 else 0.0
        scores = {
            "volatility": metrics.normalize(vol_composite, 0.0, 1.0),
            "beta": metrics.normalize(beta, 0.0, 2.5),
            "drawdown": metrics.normalize(drawdown, 0.0, 0.8),
            "leverage": metrics.normalize(debt_to_equity, 0.0, 2.0),
            "coverage": 1.0 - metrics.normalize(coverage, 0.0, 20.0),
            "earnings_surprise": metrics.normalize(abs(surprise), 0.0, 1.0),
            "sentiment": 1.0 - sentiment,
            "event_risk": max(1.0 - sentiment, surprise_risk),
            "relative_strength": 1.0 - strength,
            "market_volatility": metrics.normalize(vix, 10.0, 40.0),
        }
        return RiskFactors(
            volatility_short=vols["short"],
            volatility_medium=vols["medium"],
            volatility_long=vols["long"],
            volatility_composite=vol_composite,
            beta=beta,
            max_drawdown=drawdown,
            debt_to_equity=debt_to_equity,
            interest_coverage=coverage,
            earnings_surprise=surprise,
            sentiment=sentiment,
            relative_strength=strength,
            market_volatility=vix,
            scores={name: round(value, 4) for name, value in scores.items()},
        )
