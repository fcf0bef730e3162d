"""Price layer: source fallback chain and a short-TTL, fetch-deduplicating cache."""
import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from riskwise.providers.core import (PriceSourceABC, PriceUnavailableError,
                                     RateLimitedError, normalize_stock_symbol)
from riskwise.schemas import BrokerCredentials, PriceQuote

logger = logging.getLogger(__name__)


class PriceSourceAdapter:
    """Try price sources in order until one answers.

    Credentialed sources come first when the caller has credentials and are
    skipped otherwise. Any source failure, rate limits included, falls through
    to the next source; when all fail ``PriceUnavailableError`` is raised.
    """

    def __init__(self, sources: Sequence[PriceSourceABC]) -> None:
        self._sources = list(sources)

    def _ordered(self, credentials: BrokerCredentials | None) -> list[PriceSourceABC]:
        if credentials is not None and credentials.is_complete:
            preferred = [s for s in self._sources if s.requires_credentials]
            generic = [s for s in self._sources if not s.requires_credentials]
            return preferred + generic
        return [s for s in self._sources if not s.requires_credentials]

    async def get_price(
        self, symbol: str, credentials: BrokerCredentials | None = None
    ) -> PriceQuote:
        sym = normalize_stock_symbol(symbol)
        reasons: dict[str, str] = {}
        for source in self._ordered(credentials):
            try:
                return await source.get_price(sym, credentials)
            except RateLimitedError:
                reasons[source.name] = "rate limited"
                logger.warning("%s rate limited for %s; falling back", source.name, sym)
            except Exception as exc:  # pylint: disable=broad-except
                reasons[source.name] = str(exc) or type(exc).__name__
                logger.warning("%s failed for %s: %s", source.name, sym, exc)
        raise PriceUnavailableError(sym, reasons)

    async def close(self) -> None:
        for source in self._sources:
            try:
                await source.close()
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Error closing price source %s: %s", source.name, exc)


@dataclass(frozen=True)
class PriceCacheEntry:
    price: float
    source: str
    fetched_at: float
    timestamp: datetime

    def to_quote(self, symbol: str) -> PriceQuote:
        return PriceQuote(symbol=symbol, price=self.price, source=self.source, timestamp=self.timestamp)


class PriceCache:
    """Memoize the adapter per symbol for ``ttl_seconds``.

    Prices are market-global, so entries are keyed by symbol only. Concurrent
    requests for a symbol with no fresh entry share one upstream call.
    """

    def __init__(
        self,
        adapter: PriceSourceAdapter,
        ttl_seconds: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._adapter = adapter
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[str, PriceCacheEntry] = {}
        self._inflight: dict[str, asyncio.Future] = {}

    def peek(self, symbol: str) -> PriceCacheEntry | None:
        """Fresh entry for a symbol without fetching, or None."""
        entry = self._entries.get(normalize_stock_symbol(symbol))
        if entry is not None and self._clock() - entry.fetched_at < self._ttl:
            return entry
        return None

    def put(self, symbol: str, price: float, source: str) -> PriceCacheEntry:
        """Record a price observed elsewhere (e.g. a streamed trade)."""
        entry = PriceCacheEntry(
            price=price,
            source=source,
            fetched_at=self._clock(),
            timestamp=datetime.now(timezone.utc),
        )
        self._entries[normalize_stock_symbol(symbol)] = entry
        return entry

    async def get(
        self, symbol: str, credentials: BrokerCredentials | None = None
    ) -> PriceQuote:
        """Cached price for a symbol; fetches through the adapter when stale."""
        sym = normalize_stock_symbol(symbol)
        entry = self.peek(sym)
        if entry is not None:
            return entry.to_quote(sym)
        pending = self._inflight.get(sym)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch(sym, credentials))
            self._inflight[sym] = pending
            pending.add_done_callback(lambda _f, key=sym: self._inflight.pop(key, None))
        return await asyncio.shield(pending)

    async def _fetch(self, symbol: str, credentials: BrokerCredentials | None) -> PriceQuote:
        quote = await self._adapter.get_price(symbol, credentials)
        self._entries[symbol] = PriceCacheEntry(
            price=quote.price,
            source=quote.source,
            fetched_at=self._clock(),
            timestamp=quote.timestamp,
        )
        return quote

    def clear(self) -> None:
        self._entries.clear()
