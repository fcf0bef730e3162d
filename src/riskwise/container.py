"""DI container (composition root). Routes resolve services through request.app.state.container."""
from typing import Annotated

from dependency_injector import containers, providers
from fastapi import Depends, Request

from riskwise.config import Settings, get_settings
from riskwise.logging_config import LogThrottle
from riskwise.providers import (AlpacaPriceProvider, FinnhubClient,
                                FinnhubPriceProvider, FinnhubTradeStream,
                                YFinanceProvider)
from riskwise.repositories import (PortfolioRepository,
                                   create_portfolio_repository)
from riskwise.services import (CooldownController, DropDetector, EventWatcher,
                               IntervalGate,
                               MonitoringLoop, MonitorScheduler, PriceCache,
                               PriceSourceAdapter, SeenEventStore, TriggerKind)
from riskwise.services.notifications import (EmailSink, LiveStreamHub,
                                             NotificationDispatcher,
                                             PushSubscriptionStore,
                                             WebPushSink)
from riskwise.services.risk import RiskResultCache, RiskScoringEngine


def cooldown_windows(settings: Settings) -> dict[TriggerKind, float]:
    return {
        TriggerKind.PERIODIC: settings.risk_cooldown_seconds,
        TriggerKind.DROP: settings.drop_cooldown_seconds,
        TriggerKind.EVENT: settings.event_cooldown_seconds,
        TriggerKind.WEBHOOK: settings.webhook_cooldown_seconds,
        TriggerKind.STOP_LOSS: settings.stop_loss_cooldown_seconds,
    }


class Container(containers.DeclarativeContainer):
    settings = providers.Singleton(get_settings)

    # Upstream providers
    finnhub_client = providers.Singleton(
        FinnhubClient,
        api_key=settings.provided.finnhub_api_key,
        base_url=settings.provided.finnhub_base_url,
    )
    alpaca_provider = providers.Singleton(
        AlpacaPriceProvider, base_url=settings.provided.alpaca_data_url
    )
    finnhub_price_provider = providers.Singleton(FinnhubPriceProvider, client=finnhub_client)
    yfinance_provider = providers.Singleton(YFinanceProvider)
    trade_stream = providers.Singleton(
        FinnhubTradeStream,
        api_key=settings.provided.finnhub_api_key,
        url=settings.provided.finnhub_stream_url,
        subscription_cap=settings.provided.stream_subscription_cap,
        reconnect_base_seconds=settings.provided.stream_reconnect_base_seconds,
        reconnect_max_seconds=settings.provided.stream_reconnect_max_seconds,
    )

    # Price layer
    price_sources = providers.List(alpaca_provider, finnhub_price_provider, yfinance_provider)
    price_adapter = providers.Singleton(PriceSourceAdapter, price_sources)
    price_cache = providers.Singleton(
        PriceCache, price_adapter, ttl_seconds=settings.provided.price_cache_ttl_seconds
    )

    # Risk
    risk_engine = providers.Singleton(
        RiskScoringEngine,
        history=yfinance_provider,
        research=finnhub_client,
        benchmark_symbol=settings.provided.benchmark_symbol,
        volatility_index_symbol=settings.provided.volatility_index_symbol,
    )
    risk_cache = providers.Singleton(
        RiskResultCache, threshold_pct=settings.provided.risk_cache_invalidation_pct
    )
    cooldowns = providers.Singleton(
        CooldownController, windows=providers.Callable(cooldown_windows, settings)
    )
    drop_detector = providers.Singleton(
        DropDetector,
        threshold_pct=settings.provided.drop_threshold_pct,
        window_seconds=settings.provided.drop_window_seconds,
    )
    seen_events = providers.Singleton(
        SeenEventStore, window_seconds=settings.provided.event_dedup_window_seconds
    )

    # Storage
    repository = providers.Singleton(create_portfolio_repository, settings.provided.database_url)

    # Notifications
    stream_hub = providers.Singleton(LiveStreamHub)
    push_subscriptions = providers.Singleton(PushSubscriptionStore)
    email_sink = providers.Singleton(
        EmailSink,
        host=settings.provided.smtp_host,
        port=settings.provided.smtp_port,
        from_address=settings.provided.smtp_from,
        username=settings.provided.smtp_username,
        password=settings.provided.smtp_password,
        use_tls=settings.provided.smtp_use_tls,
    )
    push_sink = providers.Singleton(
        WebPushSink,
        store=push_subscriptions,
        vapid_private_key=settings.provided.vapid_private_key,
        vapid_subject=settings.provided.vapid_subject,
        ttl_seconds=settings.provided.push_ttl_seconds,
    )
    dispatcher = providers.Singleton(
        NotificationDispatcher, hub=stream_hub, email_sink=email_sink, push_sink=push_sink
    )

    # Monitoring
    monitor = providers.Singleton(
        MonitoringLoop,
        repository=repository,
        prices=price_cache,
        engine=risk_engine,
        risk_cache=risk_cache,
        cooldowns=cooldowns,
        drop_detector=drop_detector,
        dispatcher=dispatcher,
        seen_events=seen_events,
        price_change_threshold_pct=settings.provided.price_change_threshold_pct,
        stop_loss_epsilon=settings.provided.stop_loss_epsilon,
        default_max_loss_pct=settings.provided.default_max_loss_pct,
        status_throttle=providers.Singleton(LogThrottle, settings.provided.log_throttle_seconds),
        stream_tick_gate=providers.Singleton(
            IntervalGate, settings.provided.stream_tick_min_interval_seconds
        ),
        on_symbols_changed=trade_stream.provided.track,
    )
    event_watcher = providers.Singleton(
        EventWatcher,
        research=finnhub_client,
        seen=seen_events,
        symbols=monitor.provided.watched_symbols,
        on_events=monitor.provided.handle_events,
        news_lookback_days=settings.provided.event_news_lookback_days,
        prime_on_start=settings.provided.event_prime_on_start,
    )
    scheduler = providers.Singleton(MonitorScheduler)


def init_container() -> Container:
    """Create the application container."""
    return Container()


def _container(request: Request) -> Container:
    return request.app.state.container


def get_monitor(request: Request) -> MonitoringLoop:
    return _container(request).monitor()


def get_repository(request: Request) -> PortfolioRepository:
    return _container(request).repository()


def get_stream_hub(request: Request) -> LiveStreamHub:
    return _container(request).stream_hub()


def get_push_subscriptions(request: Request) -> PushSubscriptionStore:
    return _container(request).push_subscriptions()


def get_price_cache(request: Request) -> PriceCache:
    return _container(request).price_cache()


def get_app_settings(request: Request) -> Settings:
    return _container(request).settings()


# Type aliases for route injection
MonitorDep = Annotated[MonitoringLoop, Depends(get_monitor)]
RepositoryDep = Annotated[PortfolioRepository, Depends(get_repository)]
StreamHubDep = Annotated[LiveStreamHub, Depends(get_stream_hub)]
PushSubscriptionsDep = Annotated[PushSubscriptionStore, Depends(get_push_subscriptions)]
PriceCacheDep = Annotated[PriceCache, Depends(get_price_cache)]
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
