"""Small in-process fakes shared by the test modules."""
import asyncio
from typing import Any

from riskwise.providers.core import PriceSourceABC
from riskwise.schemas import BrokerCredentials, PriceQuote, RiskResult


class ManualClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePriceSource(PriceSourceABC):
    def __init__(
        self,
        name: str,
        prices: dict[str, float] | None = None,
        *,
        requires_credentials: bool = False,
        error: Exception | None = None,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.requires_credentials = requires_credentials
        self.prices = dict(prices or {})
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def get_price(
        self, symbol: str, credentials: BrokerCredentials | None = None
    ) -> PriceQuote:
        self.calls.append(symbol)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if symbol not in self.prices:
            raise ValueError(f"Stock '{symbol}' not found")
        return PriceQuote(symbol=symbol, price=self.prices[symbol], source=self.name)


class FakeHistory:
    def __init__(self, closes: dict[str, list[float]] | None = None, error: Exception | None = None) -> None:
        self.closes = dict(closes or {})
        self.error = error
        self.calls: list[str] = []

    async def get_daily_closes(self, symbol: str, days: int = 365) -> list[float]:
        self.calls.append(symbol)
        if self.error is not None:
            raise self.error
        if symbol not in self.closes:
            raise ValueError(f"no history for {symbol}")
        return list(self.closes[symbol])


class FakeResearch:
    def __init__(
        self,
        *,
        fundamentals: dict[str, Any] | None = None,
        earnings: list[dict[str, Any]] | None = None,
        news: dict[str, list[dict[str, Any]]] | None = None,
        sentiment: dict[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.fundamentals = fundamentals or {}
        self.earnings = earnings or []
        self.news = news or {}
        self.sentiment = sentiment
        self.error = error
        self.news_calls: list[str] = []

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    async def get_fundamentals(self, symbol: str) -> dict[str, Any]:
        self._check()
        return dict(self.fundamentals)

    async def get_earnings(self, symbol: str) -> list[dict[str, Any]]:
        self._check()
        return list(self.earnings)

    async def get_company_news(self, symbol: str, days: int = 7) -> list[dict[str, Any]]:
        self.news_calls.append(symbol)
        self._check()
        return list(self.news.get(symbol, []))

    async def get_news_sentiment(self, symbol: str) -> dict[str, Any] | None:
        self._check()
        return self.sentiment


class FakeEngine:
    """Risk engine stand-in returning fixed scores and counting calls."""

    def __init__(self, scores: dict[str, int] | None = None, default: int = 6) -> None:
        self.scores = dict(scores or {})
        self.default = default
        self.calls: list[str] = []

    async def score(self, symbol: str, current_price: float | None = None) -> RiskResult:
        self.calls.append(symbol)
        return RiskResult(
            symbol=symbol,
            overall_risk_score=self.scores.get(symbol, self.default),
            current_price=current_price,
        )


class RecordingDispatcher:
    def __init__(self) -> None:
        self.sent: list[tuple[str, Any, str | None]] = []

    def dispatch(self, user_id: str, notification, email: str | None = None) -> None:
        self.sent.append((user_id, notification, email))

    def of_type(self, kind) -> list:
        return [n for _, n, _ in self.sent if n.type == kind]


def trending_closes(start: float, daily_pct: float, days: int, wobble: float = 0.0) -> list[float]:
    """Deterministic price path: compounding drift with an alternating wobble."""
    prices = [start]
    for i in range(1, days):
        step = daily_pct + (wobble if i % 2 else -wobble)
        prices.append(prices[-1] * (1 + step))
    return prices
