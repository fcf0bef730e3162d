"""Application settings loaded from the environment (prefix ``RISKWISE_``)."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the monitoring service.

    Every interval is in seconds and every threshold is a percentage
    (``5.0`` means 5%).
    """

    model_config = SettingsConfigDict(
        env_prefix="RISKWISE_",
        env_file=".env",
        extra="ignore",
    )

    # Monitoring loop
    monitor_interval_seconds: float = 300.0
    scheduler_enabled: bool = True
    weekly_recompute_cron: str = "fri 14:00"

    # Cooldown windows per trigger kind
    risk_cooldown_seconds: float = 900.0
    drop_cooldown_seconds: float = 900.0
    event_cooldown_seconds: float = 300.0
    webhook_cooldown_seconds: float = 60.0
    stop_loss_cooldown_seconds: float = 120.0

    # Thresholds
    price_change_threshold_pct: float = 5.0
    risk_cache_invalidation_pct: float = 5.0
    drop_threshold_pct: float = 5.0
    drop_window_seconds: float = 900.0
    stop_loss_epsilon: float = 0.01
    default_max_loss_pct: float = 10.0

    # Price layer
    price_cache_ttl_seconds: float = 2.0
    log_throttle_seconds: float = 60.0

    # External event feed
    event_poll_interval_seconds: float = 600.0
    event_dedup_window_seconds: float = 86400.0
    event_news_lookback_days: int = 1
    event_prime_on_start: bool = True

    # Streaming price feed
    stream_enabled: bool = False
    stream_subscription_cap: int = 50
    stream_reconnect_base_seconds: float = 1.0
    stream_reconnect_max_seconds: float = 60.0
    stream_tick_min_interval_seconds: float = 5.0
    keepalive_interval_seconds: float = 25.0

    # Upstream APIs
    finnhub_api_key: str | None = None
    finnhub_base_url: str = "https://finnhub.io/api/v1"
    finnhub_stream_url: str = "wss://ws.finnhub.io"
    alpaca_data_url: str = "https://data.alpaca.markets/v2"
    benchmark_symbol: str = "SPY"
    volatility_index_symbol: str = "^VIX"

    # Email sink (disabled when smtp_host is unset)
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_from: str = "RiskWise <alerts@riskwise.local>"
    smtp_use_tls: bool = True

    # Browser push (disabled when vapid_private_key is unset)
    vapid_private_key: str | None = None
    vapid_subject: str = "mailto:alerts@riskwise.local"
    push_ttl_seconds: int = 60

    # Storage
    database_url: str | None = None

    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
