"""External news / earnings polling with rolling-window de-duplication."""
import hashlib
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timezone
from typing import Any

from riskwise.schemas import EventKind, MarketEvent
from riskwise.services.risk.protocols import ResearchSource

logger = logging.getLogger(__name__)

EventHandler = Callable[[str, list[MarketEvent]], Awaitable[None]]
SymbolsProvider = Callable[[], Awaitable[Iterable[str]]]


class SeenEventStore:
    """Remember (symbol, identity) pairs for ``window_seconds``."""

    def __init__(
        self,
        window_seconds: float = 86400.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = window_seconds
        self._clock = clock
        self._seen: dict[tuple[str, str], float] = {}

    def mark(self, symbol: str, identity: str) -> bool:
        """Record an identity; False when it was already seen inside the window."""
        now = self._clock()
        key = (symbol, identity)
        first_seen = self._seen.get(key)
        if first_seen is not None and now - first_seen < self._window:
            return False
        self._seen[key] = now
        return True

    def evict_expired(self) -> int:
        now = self._clock()
        expired = [k for k, seen in self._seen.items() if now - seen >= self._window]
        for key in expired:
            del self._seen[key]
        return len(expired)

    def reset(self, symbol: str) -> None:
        """Forget every identity seen for a symbol."""
        for key in [k for k in self._seen if k[0] == symbol]:
            del self._seen[key]

    def __len__(self) -> int:
        return len(self._seen)


def news_identity(symbol: str, item: dict[str, Any]) -> str:
    native = item.get("id")
    if native not in (None, ""):
        return f"{symbol}:news:{native}"
    composite = "|".join(
        str(item.get(field) or "") for field in ("headline", "category", "datetime")
    )
    digest = hashlib.sha1(f"{symbol}|{composite}".encode()).hexdigest()
    return f"{symbol}:news:{digest}"


def news_event(symbol: str, item: dict[str, Any]) -> MarketEvent:
    ts = item.get("datetime")
    occurred = datetime.fromtimestamp(ts, tz=timezone.utc) if isinstance(ts, (int, float)) else None
    return MarketEvent(
        symbol=symbol,
        kind=EventKind.NEWS,
        identity=news_identity(symbol, item),
        headline=item.get("headline") or "News update",
        occurred_at=occurred,
        payload={k: item.get(k) for k in ("id", "category", "source", "url", "summary")},
    )


def earnings_event(symbol: str, report: dict[str, Any]) -> MarketEvent | None:
    period = report.get("period")
    if not period:
        return None
    actual, estimate = report.get("actual"), report.get("estimate")
    headline = f"{symbol} reported earnings for {period}"
    if isinstance(actual, (int, float)) and isinstance(estimate, (int, float)):
        verdict = "beat" if actual > estimate else "missed" if actual < estimate else "met"
        headline = f"{symbol} {verdict} estimates for {period} ({actual} vs {estimate})"
    return MarketEvent(
        symbol=symbol,
        kind=EventKind.EARNINGS,
        identity=f"{symbol}:earnings:{period}",
        headline=headline,
        payload={"period": period, "actual": actual, "estimate": estimate},
    )


class EventWatcher:
    """Poll the research feed for every watched symbol and forward novel events.

    With ``prime_on_start`` the first poll only records identities, so
    restarting the service does not replay the last day of news.
    """

    def __init__(
        self,
        research: ResearchSource,
        seen: SeenEventStore,
        symbols: SymbolsProvider,
        on_events: EventHandler,
        *,
        news_lookback_days: int = 1,
        prime_on_start: bool = True,
    ) -> None:
        self._research = research
        self._seen = seen
        self._symbols = symbols
        self._on_events = on_events
        self._lookback = news_lookback_days
        self._priming = prime_on_start

    async def _fetch(self, symbol: str) -> list[MarketEvent]:
        events = [news_event(symbol, item) for item in await self._research.get_company_news(symbol, self._lookback)]
        reports = await self._research.get_earnings(symbol)
        if reports:
            earnings = earnings_event(symbol, reports[0])
            if earnings is not None:
                events.append(earnings)
        return events

    async def poll(self) -> dict[str, list[MarketEvent]]:
        """Run one polling cycle; returns the novel events forwarded per symbol."""
        self._seen.evict_expired()
        symbols = sorted({s.strip().upper() for s in await self._symbols() if s.strip()})
        priming = self._priming
        forwarded: dict[str, list[MarketEvent]] = {}
        for symbol in symbols:
            try:
                events = await self._fetch(symbol)
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Event feed failed for %s, skipping this cycle: %s", symbol, exc)
                continue
            novel = [e for e in events if self._seen.mark(symbol, e.identity)]
            if not novel or priming:
                continue
            logger.info("%d new event(s) for %s", len(novel), symbol)
            forwarded[symbol] = novel
            try:
                await self._on_events(symbol, novel)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Event handler failed for %s", symbol)
        if priming:
            logger.info("Event watcher primed with %d known event(s)", len(self._seen))
            self._priming = False
        return forwarded
