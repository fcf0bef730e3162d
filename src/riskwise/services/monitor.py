"""Monitoring loop: the single evaluation path for every (user, symbol) pair.

Periodic ticks, streamed prices, feed events, webhooks and portfolio updates
all funnel into ``evaluate``. Work for one pair is serialized by a per-pair
lock; portfolio-wide stop-loss reallocation additionally takes a per-user
lock (always acquired after the pair lock).
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from riskwise.logging_config import LogThrottle
from riskwise.providers.core import PriceUnavailableError
from riskwise.repositories import PortfolioRepository
from riskwise.schemas import (EventKind, MarketEvent, Notification,
                              NotificationType, Portfolio, Position,
                              RiskResult)
from riskwise.schemas.market import utcnow
from riskwise.schemas.requests import PortfolioUpdateRequest
from riskwise.services.cooldown import (ALERT_SCOPE, PORTFOLIO_KEY,
                                        CooldownController, IntervalGate,
                                        TriggerKind)
from riskwise.services.drop_detector import DropDetector
from riskwise.services.events import SeenEventStore
from riskwise.services.locks import KeyedLocks
from riskwise.services.notifications import NotificationDispatcher
from riskwise.services.prices import PriceCache
from riskwise.services.risk import RiskResultCache, RiskScoringEngine
from riskwise.services.stop_loss import (StopChange, allocate_stop_losses,
                                         apply_stop_allocations)

logger = logging.getLogger(__name__)

STREAM_SOURCE = "finnhub-stream"

SymbolsListener = Callable[[list[str]], Awaitable[None]]


@dataclass
class Trigger:
    """Why a pair is evaluated.

    ``force`` bypasses the recompute cooldown; ``fresh`` also bypasses the risk
    result cache because the trigger carries information the cached score lacks.
    """

    kind: TriggerKind
    force: bool = False
    fresh: bool = False
    reason: str = ""
    events: list[MarketEvent] = field(default_factory=list)


@dataclass
class EvaluationOutcome:
    """What one evaluation of a pair did (returned for callers and tests)."""

    user_id: str
    symbol: str
    price: float | None = None
    trigger: TriggerKind | None = None
    recomputed: bool = False
    risk_score: int | None = None
    skipped: str | None = None
    stop_changes: list[StopChange] = field(default_factory=list)


class MonitoringLoop:
    """Reconcile every trigger source into one rate-limited decision per pair."""

    def __init__(
        self,
        repository: PortfolioRepository,
        prices: PriceCache,
        engine: RiskScoringEngine,
        risk_cache: RiskResultCache,
        cooldowns: CooldownController,
        drop_detector: DropDetector,
        dispatcher: NotificationDispatcher,
        *,
        seen_events: SeenEventStore | None = None,
        price_change_threshold_pct: float = 5.0,
        stop_loss_epsilon: float = 0.01,
        default_max_loss_pct: float = 10.0,
        status_throttle: LogThrottle | None = None,
        stream_tick_gate: IntervalGate | None = None,
        on_symbols_changed: SymbolsListener | None = None,
    ) -> None:
        self._repository = repository
        self._prices = prices
        self._engine = engine
        self._risk_cache = risk_cache
        self._cooldowns = cooldowns
        self._drops = drop_detector
        self._dispatcher = dispatcher
        self._seen_events = seen_events
        self._move_threshold = price_change_threshold_pct
        self._epsilon = stop_loss_epsilon
        self._default_max_loss = default_max_loss_pct
        self._status_throttle = status_throttle or LogThrottle(60.0)
        self._tick_gate = stream_tick_gate
        self._on_symbols_changed = on_symbols_changed
        self._pair_locks = KeyedLocks()
        self._user_locks = KeyedLocks()

    # -- entry points ---------------------------------------------------------

    async def watched_symbols(self) -> list[str]:
        """De-duplicated union of symbols held by any portfolio."""
        symbols: set[str] = set()
        for portfolio in await self._repository.list_all():
            symbols.update(portfolio.positions)
        return sorted(symbols)

    async def tick(self) -> list[EvaluationOutcome]:
        """Periodic pass over every portfolio."""
        portfolios = await self._repository.list_all()
        batches = await asyncio.gather(*(self._run_portfolio(p.user_id) for p in portfolios))
        return [outcome for batch in batches for outcome in batch]

    async def recompute_all(self) -> list[EvaluationOutcome]:
        """Forced risk and stop-loss pass for every pair (weekly job)."""
        trigger = Trigger(
            TriggerKind.PERIODIC, force=True, fresh=True, reason="scheduled recompute"
        )
        portfolios = await self._repository.list_all()
        batches = await asyncio.gather(
            *(self._run_portfolio(p.user_id, trigger) for p in portfolios)
        )
        return [outcome for batch in batches for outcome in batch]

    async def initialize_portfolio(self, user_id: str) -> list[EvaluationOutcome]:
        """Forced first pass after a portfolio update."""
        trigger = Trigger(TriggerKind.PERIODIC, force=True, reason="portfolio update")
        return await self._run_portfolio(user_id, trigger)

    async def handle_price_tick(self, symbol: str, price: float) -> list[EvaluationOutcome]:
        """Streamed trade price: refresh the shared cache and evaluate holders."""
        sym = symbol.strip().upper()
        self._prices.put(sym, price, STREAM_SOURCE)
        if self._tick_gate is not None and not self._tick_gate.admit(sym):
            return []
        return await self._evaluate_holders(sym, None, price=price)

    async def handle_events(self, symbol: str, events: list[MarketEvent]) -> list[EvaluationOutcome]:
        """Novel feed events for a symbol: forced event-kind evaluation for every holder."""
        headline = events[0].headline if events else ""
        trigger = Trigger(
            TriggerKind.EVENT, force=True, fresh=True, reason=headline, events=list(events)
        )
        return await self._evaluate_holders(symbol, trigger)

    async def handle_webhook(
        self, symbol: str, reason: str | None = None, event_id: str | None = None
    ) -> int:
        """Reset de-duplication for a symbol and force a pass for its holders."""
        sym = symbol.strip().upper()
        if self._seen_events is not None:
            self._seen_events.reset(sym)
        self._risk_cache.invalidate_symbol(sym)
        event = MarketEvent(
            symbol=sym,
            kind=EventKind.WEBHOOK,
            identity=f"{sym}:webhook:{event_id or utcnow().isoformat()}",
            headline=reason or f"External event for {sym}",
        )
        trigger = Trigger(
            TriggerKind.WEBHOOK, force=True, fresh=True, reason=event.headline, events=[event]
        )
        outcomes = await self._evaluate_holders(sym, trigger)
        return len(outcomes)

    async def upsert_portfolio(self, request: PortfolioUpdateRequest) -> Portfolio:
        """Create or merge a user's portfolio, keeping derived state of kept symbols."""
        async with self._user_locks.get(request.user_id):
            existing = await self._repository.get(request.user_id)
            positions: dict[str, Position] = {}
            for symbol, stock in request.stocks.items():
                position = Position(
                    symbol=symbol,
                    shares=stock.shares,
                    entry_price=stock.resolved_entry_price(),
                    sector=stock.sector,
                    amount_invested=stock.amount_invested,
                )
                if existing is not None and symbol in existing.positions:
                    position.carry_state_from(existing.positions[symbol])
                positions[symbol] = position

            if existing is None:
                portfolio = Portfolio(user_id=request.user_id)
            else:
                portfolio = existing
                for removed in set(existing.positions) - set(positions):
                    self._forget_pair(request.user_id, removed)
            portfolio.positions = positions
            if request.credentials is not None:
                portfolio.credentials = request.credentials
            if request.user_email is not None:
                portfolio.email = request.user_email
            if request.max_loss_pct is not None:
                portfolio.max_loss_pct = request.max_loss_pct
            if request.total_investment is not None:
                portfolio.total_investment = request.total_investment
            await self._repository.save(portfolio)

        logger.info("Portfolio for %s updated: %s", request.user_id, ", ".join(positions))
        await self._notify_symbols_changed()
        return portfolio

    async def remove_portfolio(self, user_id: str) -> bool:
        portfolio = await self._repository.get(user_id)
        if portfolio is not None:
            for symbol in portfolio.positions:
                self._forget_pair(user_id, symbol)
        self._cooldowns.reset(user_id)
        self._risk_cache.drop_user(user_id)
        removed = await self._repository.delete(user_id)
        await self._notify_symbols_changed()
        return removed

    async def score_symbol(self, symbol: str) -> RiskResult:
        """Ad-hoc risk score; touches no stored portfolio."""
        sym = symbol.strip().upper()
        price = None
        try:
            price = (await self._prices.get(sym)).price
        except PriceUnavailableError as exc:
            logger.warning("Scoring %s without a current price: %s", sym, exc)
        return await self._engine.score(sym, price)

    # -- evaluation -----------------------------------------------------------

    async def evaluate(
        self,
        user_id: str,
        symbol: str,
        trigger: Trigger | None = None,
        *,
        price: float | None = None,
        allocate: bool = True,
    ) -> EvaluationOutcome:
        """Evaluate one pair: price, drop check, cooldown, score, stops, alerts."""
        outcome = EvaluationOutcome(user_id=user_id, symbol=symbol)
        async with self._pair_locks.get((user_id, symbol)):
            portfolio = await self._repository.get(user_id)
            position = portfolio.positions.get(symbol) if portfolio else None
            if portfolio is None or position is None:
                outcome.skipped = "not held"
                return outcome

            if price is None:
                try:
                    price = (await self._prices.get(symbol, portfolio.credentials)).price
                except PriceUnavailableError as exc:
                    logger.warning("Skipping %s/%s this cycle: %s", user_id, symbol, exc)
                    outcome.skipped = "price unavailable"
                    return outcome
            outcome.price = price

            previous = position.last_price
            position.last_price = price
            if previous != price:
                self._notify(
                    portfolio,
                    NotificationType.PRICE_UPDATE,
                    f"{symbol} at {price:.2f}",
                    symbol,
                    {"price": price, "previous": previous},
                )

            drop = self._drops.observe(user_id, symbol, price)
            chosen = self._choose_trigger(position, price, trigger, drop)
            if chosen is not None:
                outcome.trigger = chosen.kind
                if self._cooldowns.try_acquire(user_id, symbol, chosen.kind, force=chosen.force):
                    await self._recompute(portfolio, position, price, chosen, drop)
                    outcome.recomputed = True
            outcome.risk_score = position.risk_score

            if allocate:
                force = outcome.recomputed and chosen is not None and chosen.force
                outcome.stop_changes = await self._reallocate(portfolio, force=force)
                self._check_stop_hit(portfolio, position)
            self._log_status(user_id, position)
            await self._repository.save(portfolio)
        return outcome

    def _choose_trigger(
        self,
        position: Position,
        price: float,
        trigger: Trigger | None,
        drop: float | None,
    ) -> Trigger | None:
        if drop is not None:
            return Trigger(
                TriggerKind.DROP,
                force=True,
                fresh=True,
                reason=f"dropped {abs(drop) * 100:.1f}% within the drop window",
                events=trigger.events if trigger else [],
            )
        if trigger is not None:
            return trigger
        if position.risk_score is None:
            return Trigger(TriggerKind.PERIODIC, reason="initial score")
        reference = position.risk_reference_price
        if reference:
            move_pct = abs(price - reference) / reference * 100
            if move_pct >= self._move_threshold:
                return Trigger(TriggerKind.PERIODIC, reason=f"price moved {move_pct:.1f}%")
        return None

    async def _recompute(
        self,
        portfolio: Portfolio,
        position: Position,
        price: float,
        trigger: Trigger,
        drop: float | None,
    ) -> None:
        user_id, symbol = portfolio.user_id, position.symbol
        result = None if trigger.fresh else self._risk_cache.get(user_id, symbol, price)
        cached = result is not None
        if result is None:
            result = await self._engine.score(symbol, price)
            self._risk_cache.put(user_id, symbol, price, result)
        previous = position.risk_score
        position.risk_score = result.overall_risk_score
        position.risk_reference_price = price
        position.last_risk_at = utcnow()
        logger.info(
            "Risk for %s/%s: %s -> %s (%s: %s)",
            user_id, symbol, previous, result.overall_risk_score, trigger.kind.value, trigger.reason,
        )
        self._notify(
            portfolio,
            NotificationType.RISK_UPDATE,
            f"{symbol} risk score {result.overall_risk_score}/10",
            symbol,
            {
                "risk_score": result.overall_risk_score,
                "previous": previous,
                "trigger": trigger.kind.value,
                "fallback": result.is_fallback,
                "cached": cached,
            },
        )
        if drop is not None and self._admit_alert(user_id, symbol, TriggerKind.DROP):
            self._notify(
                portfolio,
                NotificationType.DROP_ALERT,
                f"{symbol} fell {abs(drop) * 100:.1f}% in the last 15 minutes (now {price:.2f})",
                symbol,
                {"price": price, "change_pct": round(drop * 100, 2), "risk_score": result.overall_risk_score},
            )
        alert_kind = trigger.kind if trigger.kind == TriggerKind.WEBHOOK else TriggerKind.EVENT
        if trigger.events and self._admit_alert(user_id, symbol, alert_kind):
            headlines = [event.headline for event in trigger.events]
            self._notify(
                portfolio,
                NotificationType.EVENT_ALERT,
                f"{symbol}: {headlines[0]}"
                + (f" (+{len(headlines) - 1} more)" if len(headlines) > 1 else ""),
                symbol,
                {
                    "events": [event.identity for event in trigger.events],
                    "headlines": headlines,
                    "risk_score": result.overall_risk_score,
                },
            )

    def _admit_alert(self, user_id: str, symbol: str, kind: TriggerKind) -> bool:
        if self._cooldowns.try_acquire(user_id, symbol, kind, scope=ALERT_SCOPE):
            return True
        logger.info("%s alert for %s/%s held back by cooldown", kind.value, user_id, symbol)
        return False

    async def _reallocate(self, portfolio: Portfolio, *, force: bool) -> list[StopChange]:
        async with self._user_locks.get(portfolio.user_id):
            if not self._cooldowns.try_acquire(
                portfolio.user_id, PORTFOLIO_KEY, TriggerKind.STOP_LOSS, force=force
            ):
                return []
            max_loss = portfolio.max_loss_pct or self._default_max_loss
            allocations = allocate_stop_losses(portfolio.positions.values(), max_loss)
            changes = apply_stop_allocations(portfolio.positions, allocations, self._epsilon)
            for change in changes:
                logger.info(
                    "Stop for %s/%s: %s -> %.2f (weight %.3f)",
                    portfolio.user_id, change.symbol, change.old_stop, change.new_stop, change.weight,
                )
                self._notify(
                    portfolio,
                    NotificationType.STOP_LOSS_UPDATE,
                    f"{change.symbol} stop-loss set to {change.new_stop:.2f}",
                    change.symbol,
                    {
                        "stop_price": change.new_stop,
                        "previous": change.old_stop,
                        "allocated_loss": round(change.allocated_loss, 2),
                        "weight": round(change.weight, 4),
                    },
                )
            return changes

    def _check_stop_hit(self, portfolio: Portfolio, position: Position) -> None:
        price, stop = position.last_price, position.stop_price
        if price is None or not stop or position.stop_triggered or price > stop:
            return
        position.stop_triggered = True
        logger.warning("Stop hit for %s/%s: %.2f <= %.2f", portfolio.user_id, position.symbol, price, stop)
        self._notify(
            portfolio,
            NotificationType.STOP_TRIGGERED,
            f"{position.symbol} hit its stop-loss ({price:.2f} <= {stop:.2f})",
            position.symbol,
            {"price": price, "stop_price": stop},
        )

    async def _run_portfolio(
        self, user_id: str, trigger: Trigger | None = None
    ) -> list[EvaluationOutcome]:
        portfolio = await self._repository.get(user_id)
        if portfolio is None:
            return []
        outcomes = await asyncio.gather(
            *(self._safe_evaluate(user_id, s, trigger, allocate=False) for s in portfolio.symbols)
        )
        try:
            force = trigger is not None and trigger.force
            changes = await self._reallocate(portfolio, force=force)
            for position in portfolio.positions.values():
                self._check_stop_hit(portfolio, position)
            await self._repository.save(portfolio)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Stop-loss pass failed for %s", user_id)
            changes = []
        by_symbol: dict[str, list[StopChange]] = {}
        for change in changes:
            by_symbol.setdefault(change.symbol, []).append(change)
        results = [o for o in outcomes if o is not None]
        for outcome in results:
            outcome.stop_changes = by_symbol.get(outcome.symbol, [])
        return results

    async def _evaluate_holders(
        self, symbol: str, trigger: Trigger | None, price: float | None = None
    ) -> list[EvaluationOutcome]:
        sym = symbol.strip().upper()
        holders = await self._repository.holders_of(sym)
        outcomes = await asyncio.gather(
            *(self._safe_evaluate(p.user_id, sym, trigger, price=price) for p in holders)
        )
        return [o for o in outcomes if o is not None]

    async def _safe_evaluate(
        self,
        user_id: str,
        symbol: str,
        trigger: Trigger | None,
        *,
        price: float | None = None,
        allocate: bool = True,
    ) -> EvaluationOutcome | None:
        try:
            return await self.evaluate(user_id, symbol, trigger, price=price, allocate=allocate)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Evaluation failed for %s/%s", user_id, symbol)
            return None

    # -- helpers --------------------------------------------------------------

    def _notify(
        self,
        portfolio: Portfolio,
        kind: NotificationType,
        message: str,
        symbol: str | None,
        data: dict,
    ) -> Notification:
        notification = Notification(type=kind, message=message, symbol=symbol, data=data)
        if notification.is_alert:
            portfolio.record_notification(notification)
        self._dispatcher.dispatch(portfolio.user_id, notification, email=portfolio.email)
        return notification

    def _log_status(self, user_id: str, position: Position) -> None:
        if not self._status_throttle.should_log((user_id, position.symbol)):
            return
        position.last_logged_at = utcnow()
        logger.info(
            "%s/%s price=%s stop=%s risk=%s",
            user_id, position.symbol, position.last_price, position.stop_price, position.risk_score,
        )

    def _forget_pair(self, user_id: str, symbol: str) -> None:
        self._risk_cache.invalidate(user_id, symbol)
        self._cooldowns.reset(user_id, symbol)
        self._drops.forget(user_id, symbol)
        self._status_throttle.forget((user_id, symbol))
        self._pair_locks.discard((user_id, symbol))

    async def _notify_symbols_changed(self) -> None:
        if self._on_symbols_changed is None:
            return
        try:
            await self._on_symbols_changed(await self.watched_symbols())
        except Exception:  # pylint: disable=broad-except
            logger.exception("Symbol subscription update failed")
