import asyncio

import pytest
from fakes import FakePriceSource, ManualClock

from riskwise.providers.core import PriceUnavailableError, RateLimitedError
from riskwise.schemas import BrokerCredentials
from riskwise.services.prices import PriceCache, PriceSourceAdapter

CREDS = BrokerCredentials(key="k", secret="s")


def test_credentialed_source_is_preferred_when_credentials_given():
    broker = FakePriceSource("broker", {"AAPL": 190.5}, requires_credentials=True)
    generic = FakePriceSource("generic", {"AAPL": 190.0})
    adapter = PriceSourceAdapter([generic, broker])

    quote = asyncio.run(adapter.get_price("aapl", CREDS))

    assert quote.source == "broker"
    assert quote.price == 190.5
    assert generic.calls == []


def test_credentialed_source_skipped_without_credentials():
    broker = FakePriceSource("broker", {"AAPL": 190.5}, requires_credentials=True)
    generic = FakePriceSource("generic", {"AAPL": 190.0})
    adapter = PriceSourceAdapter([broker, generic])

    quote = asyncio.run(adapter.get_price("AAPL"))

    assert quote.source == "generic"
    assert broker.calls == []


def test_rate_limited_source_falls_back():
    broker = FakePriceSource(
        "broker", requires_credentials=True, error=RateLimitedError("429", provider="broker")
    )
    generic = FakePriceSource("generic", {"MSFT": 410.0})
    adapter = PriceSourceAdapter([broker, generic])

    quote = asyncio.run(adapter.get_price("MSFT", CREDS))

    assert quote.source == "generic"
    assert broker.calls == ["MSFT"]


def test_all_sources_failing_raises_price_unavailable():
    first = FakePriceSource("first", error=RuntimeError("boom"))
    second = FakePriceSource("second")
    adapter = PriceSourceAdapter([first, second])

    with pytest.raises(PriceUnavailableError) as info:
        asyncio.run(adapter.get_price("ZZZ"))

    assert set(info.value.reasons) == {"first", "second"}
    assert "boom" in info.value.reasons["first"]


def test_concurrent_requests_share_one_upstream_call():
    source = FakePriceSource("generic", {"AAPL": 100.0}, delay=0.01)
    cache = PriceCache(PriceSourceAdapter([source]), ttl_seconds=2.0)

    async def scenario():
        return await asyncio.gather(cache.get("AAPL"), cache.get("aapl"))

    first, second = asyncio.run(scenario())

    assert first.price == second.price == 100.0
    assert source.calls == ["AAPL"]


def test_cache_refetches_after_ttl():
    clock = ManualClock()
    source = FakePriceSource("generic", {"AAPL": 100.0})
    cache = PriceCache(PriceSourceAdapter([source]), ttl_seconds=2.0, clock=clock)

    async def scenario():
        await cache.get("AAPL")
        clock.advance(1.5)
        await cache.get("AAPL")
        clock.advance(1.0)
        source.prices["AAPL"] = 101.0
        return await cache.get("AAPL")

    quote = asyncio.run(scenario())

    assert quote.price == 101.0
    assert len(source.calls) == 2


def test_failed_fetch_is_not_cached():
    source = FakePriceSource("generic", error=RuntimeError("down"))
    cache = PriceCache(PriceSourceAdapter([source]), ttl_seconds=2.0)

    async def scenario():
        with pytest.raises(PriceUnavailableError):
            await cache.get("AAPL")
        source.error = None
        source.prices["AAPL"] = 50.0
        return await cache.get("AAPL")

    assert asyncio.run(scenario()).price == 50.0
    assert cache.peek("AAPL") is not None


def test_put_records_streamed_price():
    source = FakePriceSource("generic", {"NVDA": 1.0})
    cache = PriceCache(PriceSourceAdapter([source]), ttl_seconds=5.0)
    cache.put("nvda", 900.0, "stream")

    quote = asyncio.run(cache.get("NVDA"))

    assert quote.price == 900.0
    assert quote.source == "stream"
    assert source.calls == []
