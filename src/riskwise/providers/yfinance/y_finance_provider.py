"""Yahoo Finance price source and daily-close history source."""
import asyncio
from datetime import datetime, timedelta, timezone

import yfinance as yf

from riskwise.providers.core import (PriceSourceABC, normalize_stock_symbol,
                                     round2)
from riskwise.schemas import BrokerCredentials, PriceQuote


class YFinanceProvider(PriceSourceABC):
    """Stock prices and daily history via the yfinance library.

    No API key required. Calls are blocking, so they run in a worker thread.
    """

    name = "yfinance"

    def _extract_price(self, ticker: yf.Ticker, symbol: str) -> float:
        """Extract the last price from a ticker; raises if unavailable."""
        info = getattr(ticker, "fast_info", None)
        if info and (price := info.get("lastPrice") or info.get("regularMarketPrice")):
            return float(price)
        full = ticker.info
        price = full.get("currentPrice") or full.get("regularMarketPrice")
        if price is None:
            raise ValueError(f"Stock '{symbol}' not found or has no price data")
        return float(price)

    def _fetch_price_sync(self, symbol: str) -> PriceQuote:
        """Fetch a single price synchronously (run in thread)."""
        ticker = yf.Ticker(symbol)
        try:
            price = self._extract_price(ticker, symbol)
        except ValueError:
            raise
        except Exception as e:
            raise ValueError(f"Failed to fetch price for '{symbol}': {e}") from e
        return PriceQuote(
            symbol=symbol,
            price=round2(price),
            source=self.name,
            timestamp=datetime.now(timezone.utc),
        )

    async def get_price(
        self, symbol: str, credentials: BrokerCredentials | None = None
    ) -> PriceQuote:
        """Fetch the current price for a stock symbol."""
        sym = normalize_stock_symbol(symbol)
        return await asyncio.to_thread(self._fetch_price_sync, sym)

    def _fetch_closes_sync(self, symbol: str, days: int) -> list[float]:
        end = datetime.now(timezone.utc)
        start = end - timedelta(days=days)
        df = yf.Ticker(symbol).history(start=start, end=end, interval="1d")
        if df.empty:
            return []
        return [float(value) for value in df["Close"].dropna().tolist()]

    async def get_daily_closes(self, symbol: str, days: int = 365) -> list[float]:
        """Daily closing prices over the last ``days`` calendar days, oldest first."""
        sym = symbol.strip().upper()
        try:
            return await asyncio.to_thread(self._fetch_closes_sync, sym, days)
        except Exception as e:
            raise ValueError(f"Failed to fetch history for '{sym}': {e}") from e
