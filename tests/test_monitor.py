import asyncio
from types import SimpleNamespace

from fakes import (FakeEngine, FakePriceSource, ManualClock,
                   RecordingDispatcher)

from riskwise.logging_config import LogThrottle
from riskwise.repositories import InMemoryPortfolioRepository
from riskwise.schemas import EventKind, MarketEvent, NotificationType
from riskwise.schemas.requests import PortfolioUpdateRequest
from riskwise.services.cooldown import (CooldownController, IntervalGate,
                                        TriggerKind)
from riskwise.services.drop_detector import DropDetector
from riskwise.services.events import SeenEventStore
from riskwise.services.monitor import MonitoringLoop
from riskwise.services.prices import PriceCache, PriceSourceAdapter
from riskwise.services.risk import RiskResultCache

WINDOWS = {
    TriggerKind.PERIODIC: 900.0,
    TriggerKind.DROP: 900.0,
    TriggerKind.EVENT: 300.0,
    TriggerKind.WEBHOOK: 60.0,
    TriggerKind.STOP_LOSS: 120.0,
}


def build(prices: dict[str, float], engine=None, tick_gate_seconds: float | None = None):
    clock = ManualClock()
    source = FakePriceSource("generic", prices)
    seen = SeenEventStore(clock=clock)
    parts = SimpleNamespace(
        clock=clock,
        source=source,
        repository=InMemoryPortfolioRepository(),
        engine=engine or FakeEngine({"AAPL": 7, "MSFT": 3}),
        dispatcher=RecordingDispatcher(),
        seen=seen,
        risk_cache=RiskResultCache(),
    )
    parts.monitor = MonitoringLoop(
        parts.repository,
        PriceCache(PriceSourceAdapter([source]), ttl_seconds=0, clock=clock),
        parts.engine,
        parts.risk_cache,
        CooldownController(WINDOWS, clock=clock),
        DropDetector(threshold_pct=5.0, window_seconds=900, clock=clock),
        parts.dispatcher,
        seen_events=seen,
        status_throttle=LogThrottle(60, clock=clock),
        stream_tick_gate=(
            IntervalGate(tick_gate_seconds, clock=clock) if tick_gate_seconds is not None else None
        ),
    )
    return parts


def _request(stocks: dict, **extra) -> PortfolioUpdateRequest:
    body = {"userId": "u1", "stocks": stocks, "maxLossPercent": 10, "userEmail": "u1@example.com"}
    body.update(extra)
    return PortfolioUpdateRequest.model_validate(body)


TWO_STOCKS = {
    "aapl": {"shares": 100, "entryPrice": 100},
    "MSFT": {"shares": 50, "entryPrice": 200},
}


def _setup(parts, stocks=TWO_STOCKS):
    async def scenario():
        await parts.monitor.upsert_portfolio(_request(stocks))
        await parts.monitor.initialize_portfolio("u1")
        return await parts.repository.get("u1")

    return asyncio.run(scenario())


def test_initial_pass_scores_and_allocates_stops():
    parts = build({"AAPL": 100.0, "MSFT": 200.0})

    portfolio = _setup(parts)

    assert sorted(parts.engine.calls) == ["AAPL", "MSFT"]
    assert portfolio.positions["AAPL"].risk_score == 7
    # $20k portfolio, 10% budget, 70/30 split
    assert portfolio.positions["AAPL"].stop_price == 86.0
    assert portfolio.positions["MSFT"].stop_price == 188.0
    stop_alerts = parts.dispatcher.of_type(NotificationType.STOP_LOSS_UPDATE)
    assert len(stop_alerts) == 2
    assert len(portfolio.notifications) == 2
    assert all(email == "u1@example.com" for _, _, email in parts.dispatcher.sent)


def test_sharp_drop_recomputes_once_even_with_coincident_tick():
    parts = build({"AAPL": 100.0, "MSFT": 200.0})
    _setup(parts)
    parts.engine.calls.clear()
    parts.clock.advance(300)
    parts.source.prices["AAPL"] = 94.0

    async def scenario():
        await asyncio.gather(
            parts.monitor.tick(),
            parts.monitor.handle_price_tick("AAPL", 94.0),
        )

    asyncio.run(scenario())

    assert parts.engine.calls == ["AAPL"]
    assert len(parts.dispatcher.of_type(NotificationType.DROP_ALERT)) == 1


def test_price_move_inside_cooldown_is_suppressed():
    parts = build({"AAPL": 100.0, "MSFT": 200.0})
    _setup(parts)
    parts.engine.calls.clear()
    parts.clock.advance(100)
    parts.source.prices["AAPL"] = 106.0

    outcomes = asyncio.run(parts.monitor.tick())

    aapl = next(o for o in outcomes if o.symbol == "AAPL")
    assert aapl.trigger == TriggerKind.PERIODIC
    assert not aapl.recomputed
    assert parts.engine.calls == []

    parts.clock.advance(900)
    outcomes = asyncio.run(parts.monitor.tick())

    assert next(o for o in outcomes if o.symbol == "AAPL").recomputed
    assert parts.engine.calls == ["AAPL"]


def test_quiet_tick_does_not_recompute():
    parts = build({"AAPL": 100.0, "MSFT": 200.0})
    _setup(parts)
    parts.engine.calls.clear()
    parts.clock.advance(5000)

    asyncio.run(parts.monitor.tick())

    assert parts.engine.calls == []


def test_event_forces_recompute_during_cooldown():
    parts = build({"AAPL": 100.0, "MSFT": 200.0})
    portfolio = _setup(parts)
    parts.engine.calls.clear()
    event = MarketEvent(symbol="AAPL", kind=EventKind.NEWS, identity="AAPL:news:1", headline="Apple recall")

    outcomes = asyncio.run(parts.monitor.handle_events("AAPL", [event]))

    assert outcomes[0].recomputed
    assert parts.engine.calls == ["AAPL"]
    alerts = parts.dispatcher.of_type(NotificationType.EVENT_ALERT)
    assert len(alerts) == 1
    assert "Apple recall" in alerts[0].message
    assert portfolio.notifications[-1].type == NotificationType.EVENT_ALERT


def test_webhook_resets_dedup_and_reaches_every_holder():
    parts = build({"AAPL": 100.0, "MSFT": 200.0})
    _setup(parts)
    parts.seen.mark("AAPL", "AAPL:news:1")

    async def scenario():
        other = _request({"AAPL": {"shares": 1, "entryPrice": 90}}, userId="u2")
        await parts.monitor.upsert_portfolio(other)
        return await parts.monitor.handle_webhook("aapl", "Guidance cut")

    assert asyncio.run(scenario()) == 2
    assert parts.seen.mark("AAPL", "AAPL:news:1")
    assert len(parts.dispatcher.of_type(NotificationType.EVENT_ALERT)) == 2


def test_unavailable_price_skips_only_that_symbol():
    parts = build({"AAPL": 100.0})

    async def scenario():
        await parts.monitor.upsert_portfolio(_request(TWO_STOCKS))
        return await parts.monitor.tick()

    outcomes = {o.symbol: o for o in asyncio.run(scenario())}

    assert outcomes["MSFT"].skipped == "price unavailable"
    assert outcomes["AAPL"].recomputed


def test_one_failing_pair_does_not_stop_the_batch():
    class ExplodingEngine(FakeEngine):
        async def score(self, symbol, current_price=None):
            if symbol == "MSFT":
                raise RuntimeError("boom")
            return await super().score(symbol, current_price)

    parts = build({"AAPL": 100.0, "MSFT": 200.0}, engine=ExplodingEngine({"AAPL": 7}))

    portfolio = _setup(parts)

    assert portfolio.positions["AAPL"].risk_score == 7
    assert portfolio.positions["MSFT"].risk_score is None


def test_stop_hit_alerts_once_per_stop_level():
    parts = build({"AAPL": 100.0})
    portfolio = _setup(parts, {"AAPL": {"shares": 10, "entryPrice": 100}})
    assert portfolio.positions["AAPL"].stop_price == 90.0

    parts.clock.advance(1000)
    parts.source.prices["AAPL"] = 89.0
    asyncio.run(parts.monitor.tick())
    parts.clock.advance(10)
    parts.source.prices["AAPL"] = 88.0
    asyncio.run(parts.monitor.tick())

    assert len(parts.dispatcher.of_type(NotificationType.STOP_TRIGGERED)) == 1
    assert portfolio.positions["AAPL"].stop_triggered


def test_portfolio_update_keeps_state_of_kept_symbols():
    parts = build({"AAPL": 100.0, "MSFT": 200.0})
    _setup(parts)

    async def scenario():
        await parts.monitor.upsert_portfolio(_request({"AAPL": {"shares": 120, "entryPrice": 100}}))
        return await parts.repository.get("u1"), await parts.monitor.watched_symbols()

    portfolio, watched = asyncio.run(scenario())

    assert list(portfolio.positions) == ["AAPL"]
    assert portfolio.positions["AAPL"].shares == 120
    assert portfolio.positions["AAPL"].risk_score == 7
    assert portfolio.positions["AAPL"].stop_price == 86.0
    assert watched == ["AAPL"]


def test_entry_price_derived_from_amount_invested():
    parts = build({"NVDA": 500.0})

    async def scenario():
        request = _request({"nvda": {"shares": 4, "amountInvested": 1600}})
        return await parts.monitor.upsert_portfolio(request)

    portfolio = asyncio.run(scenario())

    assert portfolio.positions["NVDA"].entry_price == 400.0


def _event(n: int) -> MarketEvent:
    return MarketEvent(symbol="AAPL", kind=EventKind.NEWS, identity=f"AAPL:news:{n}", headline=f"Headline {n}")


def test_reinitialized_portfolio_reuses_cached_risk_within_threshold():
    parts = build({"AAPL": 100.0, "MSFT": 200.0})
    _setup(parts)
    parts.engine.calls.clear()
    parts.clock.advance(1000)
    parts.source.prices["AAPL"] = 101.0

    asyncio.run(parts.monitor.initialize_portfolio("u1"))

    assert parts.engine.calls == []
    updates = parts.dispatcher.of_type(NotificationType.RISK_UPDATE)[-2:]
    assert all(n.data["cached"] for n in updates)

    asyncio.run(parts.monitor.recompute_all())

    assert sorted(parts.engine.calls) == ["AAPL", "MSFT"]


def test_news_burst_rescores_each_time_but_alerts_once_per_window():
    parts = build({"AAPL": 100.0, "MSFT": 200.0})
    _setup(parts)
    parts.engine.calls.clear()

    for n in range(3):
        asyncio.run(parts.monitor.handle_events("AAPL", [_event(n)]))
        parts.clock.advance(30)

    assert parts.engine.calls == ["AAPL"] * 3
    assert len(parts.dispatcher.of_type(NotificationType.EVENT_ALERT)) == 1

    parts.clock.advance(300)
    asyncio.run(parts.monitor.handle_events("AAPL", [_event(9)]))

    alerts = parts.dispatcher.of_type(NotificationType.EVENT_ALERT)
    assert [a.message for a in alerts] == ["AAPL: Headline 0", "AAPL: Headline 9"]


def test_streamed_ticks_are_rate_limited_per_symbol():
    parts = build({"AAPL": 100.0, "MSFT": 200.0}, tick_gate_seconds=5)
    _setup(parts)

    async def scenario():
        first = await parts.monitor.handle_price_tick("AAPL", 100.5)
        second = await parts.monitor.handle_price_tick("AAPL", 100.7)
        return first, second

    first, second = asyncio.run(scenario())

    assert [o.symbol for o in first] == ["AAPL"]
    assert second == []


def test_removing_portfolio_drops_its_cached_risk():
    parts = build({"AAPL": 100.0, "MSFT": 200.0})
    _setup(parts)
    assert len(parts.risk_cache) == 2

    assert asyncio.run(parts.monitor.remove_portfolio("u1"))

    assert len(parts.risk_cache) == 0
    assert asyncio.run(parts.repository.get("u1")) is None
