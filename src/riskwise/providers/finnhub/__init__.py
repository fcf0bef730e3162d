"""Finnhub: generic quote source, research client and trade stream."""
from riskwise.providers.finnhub.client import FinnhubClient
from riskwise.providers.finnhub.finnhub_provider import FinnhubPriceProvider
from riskwise.providers.finnhub.stream import FinnhubTradeStream

__all__ = ["FinnhubClient", "FinnhubPriceProvider", "FinnhubTradeStream"]
