"""Finnhub trade stream: real-time prices over WebSocket with reconnects."""
import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Iterable

import websockets

from riskwise.providers.core import normalize_stock_symbol

logger = logging.getLogger(__name__)

TickHandler = Callable[[str, float], Awaitable[None]]


def backoff_delay(attempt: int, base_seconds: float, max_seconds: float) -> float:
    """Exponential reconnect delay: base * 2**attempt, capped at max_seconds."""
    return min(max_seconds, base_seconds * (2 ** max(attempt, 0)))


class FinnhubTradeStream:
    """Subscribe to trade prints for tracked symbols and forward the latest price.

    Only the first ``subscription_cap`` tracked symbols (sorted) are subscribed.
    On any connection error the stream reconnects with exponential backoff and
    resubscribes every tracked symbol.
    """

    DEFAULT_URL = "wss://ws.finnhub.io"

    def __init__(
        self,
        api_key: str | None,
        url: str = DEFAULT_URL,
        *,
        subscription_cap: int = 50,
        reconnect_base_seconds: float = 1.0,
        reconnect_max_seconds: float = 60.0,
        connect: Callable = websockets.connect,
    ) -> None:
        self._api_key = api_key
        self._url = url
        self._cap = subscription_cap
        self._base = reconnect_base_seconds
        self._max = reconnect_max_seconds
        self._connect = connect
        self._tracked: set[str] = set()
        self._subscribed: set[str] = set()
        self._ws = None
        self._stop = asyncio.Event()
        self.reconnects = 0

    @property
    def tracked(self) -> set[str]:
        return set(self._tracked)

    @property
    def subscribed(self) -> set[str]:
        return set(self._subscribed)

    def _desired(self) -> set[str]:
        ordered = sorted(self._tracked)
        if len(ordered) > self._cap:
            logger.warning(
                "Tracking %d symbols; streaming only the first %d", len(ordered), self._cap
            )
        return set(ordered[: self._cap])

    async def track(self, symbols: Iterable[str]) -> None:
        """Replace the tracked symbol set; syncs subscriptions when connected."""
        self._tracked = {normalize_stock_symbol(s) for s in symbols if s.strip()}
        if self._ws is not None:
            await self._sync_subscriptions(self._ws)

    async def _sync_subscriptions(self, ws) -> None:  # noqa: ANN001
        desired = self._desired()
        for symbol in sorted(desired - self._subscribed):
            await ws.send(json.dumps({"type": "subscribe", "symbol": symbol}))
            self._subscribed.add(symbol)
        for symbol in sorted(self._subscribed - desired):
            await ws.send(json.dumps({"type": "unsubscribe", "symbol": symbol}))
            self._subscribed.discard(symbol)

    async def run(self, on_tick: TickHandler) -> None:
        """Receive loop; returns only after ``stop()``."""
        if not self._api_key:
            logger.warning("Finnhub API key not configured; price stream disabled")
            return
        attempt = 0
        while not self._stop.is_set():
            try:
                async with self._connect(f"{self._url}?token={self._api_key}") as ws:
                    self._ws = ws
                    self._subscribed = set()
                    attempt = 0
                    await self._sync_subscriptions(ws)
                    logger.info("Price stream connected (%d symbols)", len(self._subscribed))
                    async for raw in ws:
                        await self._handle_message(raw, on_tick)
                        if self._stop.is_set():
                            break
            except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as exc:
                logger.warning("Price stream connection error: %s", exc)
            finally:
                self._ws = None
                self._subscribed = set()
            if self._stop.is_set():
                break
            delay = backoff_delay(attempt, self._base, self._max)
            attempt += 1
            self.reconnects += 1
            logger.info("Reconnecting price stream in %.1fs", delay)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

    async def _handle_message(self, raw: str | bytes, on_tick: TickHandler) -> None:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.debug("Ignoring malformed stream message")
            return
        if data.get("type") != "trade":
            return
        latest: dict[str, float] = {}
        for trade in data.get("data") or []:
            symbol, price = trade.get("s"), trade.get("p")
            if symbol and isinstance(price, (int, float)) and price > 0:
                latest[symbol] = float(price)
        for symbol, price in latest.items():
            try:
                await on_tick(symbol, price)
            except Exception:  # pylint: disable=broad-except
                logger.exception("Tick handler failed for %s", symbol)

    async def stop(self) -> None:
        """Stop the receive loop and close the connection."""
        self._stop.set()
        if self._ws is not None:
            await self._ws.close()
