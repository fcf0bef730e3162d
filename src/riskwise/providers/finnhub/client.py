"""Finnhub REST client for quotes, fundamentals, earnings and news."""
from datetime import date, timedelta
from typing import Any

import httpx

from riskwise.providers.core import ProviderError, normalize_stock_symbol
from riskwise.providers.core.utils import raise_for_status


class FinnhubClient:
    """Thin async wrapper over the Finnhub REST API.

    Every method raises on upstream failure; callers decide how to degrade.
    """

    name = "finnhub"
    DEFAULT_BASE_URL = "https://finnhub.io/api/v1"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def _get(self, path: str, params: dict[str, Any], symbol: str | None = None) -> Any:
        if not self._api_key:
            raise ProviderError("Finnhub API key not configured", provider=self.name, symbol=symbol)
        response = await self._client.get(path, params=params | {"token": self._api_key})
        raise_for_status(response, self.name, symbol)
        return response.json()

    async def quote(self, symbol: str) -> dict[str, Any]:
        """Raw /quote payload (``c`` is the current price)."""
        sym = normalize_stock_symbol(symbol)
        return await self._get("/quote", {"symbol": sym}, sym) or {}

    async def get_fundamentals(self, symbol: str) -> dict[str, Any]:
        """Basic financial metrics (``metric`` block of /stock/metric)."""
        sym = normalize_stock_symbol(symbol)
        data = await self._get("/stock/metric", {"symbol": sym, "metric": "all"}, sym) or {}
        return data.get("metric") or {}

    async def get_earnings(self, symbol: str) -> list[dict[str, Any]]:
        """Reported earnings, newest first (actual, estimate, period)."""
        sym = normalize_stock_symbol(symbol)
        data = await self._get("/stock/earnings", {"symbol": sym}, sym)
        return data if isinstance(data, list) else []

    async def get_company_news(self, symbol: str, days: int = 7) -> list[dict[str, Any]]:
        """Company news items from the last ``days`` days."""
        sym = normalize_stock_symbol(symbol)
        today = date.today()
        params = {
            "symbol": sym,
            "from": (today - timedelta(days=days)).isoformat(),
            "to": today.isoformat(),
        }
        data = await self._get("/company-news", params, sym)
        return data if isinstance(data, list) else []

    async def get_news_sentiment(self, symbol: str) -> dict[str, Any] | None:
        """Provider news sentiment (``sentiment.bullishPercent`` etc.), or None."""
        sym = normalize_stock_symbol(symbol)
        data = await self._get("/news-sentiment", {"symbol": sym}, sym)
        if not isinstance(data, dict) or not isinstance(data.get("sentiment"), dict):
            return None
        return data

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
