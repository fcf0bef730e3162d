"""Price sources and upstream research clients.

- AlpacaPriceProvider: brokerage-linked latest quote (per-user credentials)
- FinnhubPriceProvider: generic quote source
- YFinanceProvider: last-resort quote source and daily-close history
- FinnhubClient: fundamentals, earnings, news and news sentiment
- FinnhubTradeStream: real-time trade prices over WebSocket

All price sources implement PriceSourceABC and return PriceQuote objects.

Example:
    async with YFinanceProvider() as provider:
        quote = await provider.get_price("AAPL")
        print(f"{quote.symbol}: ${quote.price}")
"""
from riskwise.providers.alpaca import AlpacaPriceProvider
from riskwise.providers.core import (PriceSourceABC, PriceUnavailableError,
                                     ProviderError, ProviderErrorMapper,
                                     RateLimitedError)
from riskwise.providers.finnhub import (FinnhubClient, FinnhubPriceProvider,
                                        FinnhubTradeStream)
from riskwise.providers.yfinance import YFinanceProvider

__all__ = [
    "AlpacaPriceProvider",
    "FinnhubClient",
    "FinnhubPriceProvider",
    "FinnhubTradeStream",
    "PriceSourceABC",
    "PriceUnavailableError",
    "ProviderError",
    "ProviderErrorMapper",
    "RateLimitedError",
    "YFinanceProvider",
]
