"""Protocols for the upstream data the risk engine and event watcher consume."""
from typing import Any, Protocol


class HistorySource(Protocol):
    """Daily closing prices (e.g. YFinanceProvider)."""

    async def get_daily_closes(self, symbol: str, days: int = 365) -> list[float]:
        """Closes over the last ``days`` calendar days, oldest first."""
        ...


class ResearchSource(Protocol):
    """Fundamentals, earnings and news for an instrument (e.g. FinnhubClient)."""

    async def get_fundamentals(self, symbol: str) -> dict[str, Any]: ...

    async def get_earnings(self, symbol: str) -> list[dict[str, Any]]: ...

    async def get_company_news(self, symbol: str, days: int = 7) -> list[dict[str, Any]]: ...

    async def get_news_sentiment(self, symbol: str) -> dict[str, Any] | None: ...
