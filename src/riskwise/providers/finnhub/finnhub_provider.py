"""Finnhub generic quote source."""
from datetime import datetime, timezone

from riskwise.providers.core import (PriceSourceABC, normalize_stock_symbol,
                                     round2)
from riskwise.providers.finnhub.client import FinnhubClient
from riskwise.schemas import BrokerCredentials, PriceQuote


class FinnhubPriceProvider(PriceSourceABC):
    """Current price from Finnhub /quote; no per-user credentials."""

    name = "finnhub"

    def __init__(self, client: FinnhubClient) -> None:
        self._client = client

    async def get_price(
        self, symbol: str, credentials: BrokerCredentials | None = None
    ) -> PriceQuote:
        """Fetch the current price for a stock symbol."""
        sym = normalize_stock_symbol(symbol)
        data = await self._client.quote(sym)
        price = data.get("c")
        if not isinstance(price, (int, float)) or price <= 0:
            raise ValueError(f"Stock '{sym}' not found or has no price data")
        ts = data.get("t")
        timestamp = (
            datetime.fromtimestamp(ts, tz=timezone.utc) if ts else datetime.now(timezone.utc)
        )
        return PriceQuote(symbol=sym, price=round2(price), source=self.name, timestamp=timestamp)
