"""Alpaca latest-quote price source (requires the user's brokerage credentials)."""
from datetime import datetime, timezone

import httpx

from riskwise.providers.core import (PriceSourceABC, ProviderError,
                                     normalize_stock_symbol, round2)
from riskwise.providers.core.utils import raise_for_status
from riskwise.schemas import BrokerCredentials, PriceQuote


class AlpacaPriceProvider(PriceSourceABC):
    """Latest quote from the Alpaca data API, authenticated per user.

    The ask price is used; when the book has no ask (0) the bid is used.
    """

    name = "alpaca"
    requires_credentials = True
    DEFAULT_BASE_URL = "https://data.alpaca.markets/v2"

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = 10.0) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def get_price(
        self, symbol: str, credentials: BrokerCredentials | None = None
    ) -> PriceQuote:
        """Fetch the latest quote for a symbol with the given credentials."""
        if credentials is None or not credentials.is_complete:
            raise ProviderError("Alpaca credentials required", provider=self.name, symbol=symbol)
        sym = normalize_stock_symbol(symbol)
        response = await self._client.get(
            f"/stocks/{sym}/quotes/latest",
            headers={
                "APCA-API-KEY-ID": credentials.key,
                "APCA-API-SECRET-KEY": credentials.secret.get_secret_value(),
            },
        )
        raise_for_status(response, self.name, sym)
        quote = (response.json() or {}).get("quote") or {}
        price = quote.get("ap") or quote.get("bp")
        if not price:
            raise ValueError(f"Stock '{sym}' has no Alpaca quote")
        return PriceQuote(
            symbol=sym,
            price=round2(float(price)),
            source=self.name,
            timestamp=datetime.now(timezone.utc),
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
