import asyncio
import contextlib
import json

from riskwise.providers.finnhub.stream import FinnhubTradeStream, backoff_delay


class FakeSocket:
    def __init__(self, messages, fail_with=None):
        self.messages = list(messages)
        self.fail_with = fail_with
        self.sent = []
        self.closed = False

    async def send(self, data):
        self.sent.append(json.loads(data))

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.messages:
            yield message
        if self.fail_with is not None:
            raise self.fail_with

    async def close(self):
        self.closed = True


def _trade(*trades):
    return json.dumps({"type": "trade", "data": [{"s": s, "p": p} for s, p in trades]})


def test_backoff_is_exponential_and_bounded():
    assert backoff_delay(0, 1.0, 60.0) == 1.0
    assert backoff_delay(3, 1.0, 60.0) == 8.0
    assert backoff_delay(10, 1.0, 60.0) == 60.0


def test_reconnects_and_resubscribes_tracked_symbols():
    sockets = [
        FakeSocket([_trade(("AAPL", 190.0), ("AAPL", 191.0))], fail_with=OSError("reset")),
        FakeSocket([json.dumps({"type": "ping"}), _trade(("MSFT", 411.0))]),
    ]
    urls = []

    @contextlib.asynccontextmanager
    async def connect(url):
        urls.append(url)
        yield sockets[len(urls) - 1]

    stream = FinnhubTradeStream(
        "key", "wss://example", reconnect_base_seconds=0, reconnect_max_seconds=0, connect=connect
    )
    ticks = []

    async def on_tick(symbol, price):
        ticks.append((symbol, price))
        if len(ticks) == 2:
            await stream.stop()

    async def scenario():
        await stream.track(["msft", "AAPL"])
        await asyncio.wait_for(stream.run(on_tick), timeout=5)

    asyncio.run(scenario())

    assert ticks == [("AAPL", 191.0), ("MSFT", 411.0)]
    assert stream.reconnects == 1
    assert urls == ["wss://example?token=key"] * 2
    for socket in sockets:
        assert socket.sent == [
            {"type": "subscribe", "symbol": "AAPL"},
            {"type": "subscribe", "symbol": "MSFT"},
        ]


def test_subscriptions_capped():
    socket = FakeSocket([])

    stream = FinnhubTradeStream("key", subscription_cap=2)

    async def scenario():
        await stream.track(["TSLA", "AAPL", "MSFT"])
        await stream._sync_subscriptions(socket)

    asyncio.run(scenario())

    assert stream.subscribed == {"AAPL", "MSFT"}
    assert len(socket.sent) == 2


def test_handler_error_does_not_break_stream():
    stream = FinnhubTradeStream("key")
    seen = []

    async def on_tick(symbol, price):
        seen.append(symbol)
        if symbol == "AAPL":
            raise RuntimeError("bad tick")

    asyncio.run(stream._handle_message(_trade(("AAPL", 1.0), ("MSFT", 2.0)), on_tick))
    asyncio.run(stream._handle_message("not json", on_tick))

    assert seen == ["AAPL", "MSFT"]


def test_missing_api_key_disables_stream():
    stream = FinnhubTradeStream(None)

    async def on_tick(symbol, price):
        raise AssertionError("no ticks expected")

    asyncio.run(asyncio.wait_for(stream.run(on_tick), timeout=1))

    assert stream.reconnects == 0
