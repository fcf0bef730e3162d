import asyncio

import pytest
from fakes import ManualClock

from riskwise.config import Settings
from riskwise.container import Container, cooldown_windows
from riskwise.logging_config import LogThrottle
from riskwise.main import schedule_jobs
from riskwise.services.cooldown import TriggerKind
from riskwise.services.scheduler import parse_weekly_cron, safe_job_runner


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("RISKWISE_MONITOR_INTERVAL_SECONDS", "30")
    monkeypatch.setenv("RISKWISE_STREAM_ENABLED", "true")

    settings = Settings(_env_file=None)

    assert settings.monitor_interval_seconds == 30
    assert settings.stream_enabled is True
    assert settings.price_cache_ttl_seconds == 2.0


def test_cooldown_windows_cover_every_trigger_kind():
    windows = cooldown_windows(Settings(_env_file=None))

    assert set(windows) == set(TriggerKind)
    assert windows[TriggerKind.PERIODIC] > windows[TriggerKind.EVENT]


def test_weekly_cron_parsing():
    trigger = parse_weekly_cron("fri 14:00")

    fields = {f.name: str(f) for f in trigger.fields}
    assert fields["day_of_week"] == "fri"
    assert fields["hour"] == "14"

    with pytest.raises(ValueError):
        parse_weekly_cron("someday 25:00")


def test_log_throttle_limits_per_key():
    clock = ManualClock()
    throttle = LogThrottle(60, clock=clock)

    assert throttle.should_log("a")
    assert not throttle.should_log("a")
    assert throttle.should_log("b")
    clock.advance(60)
    assert throttle.should_log("a")


def test_failing_job_is_contained():
    async def broken():
        raise RuntimeError("job failed")

    asyncio.run(safe_job_runner(broken, "broken"))


def test_background_jobs_registered():
    from dependency_injector import providers

    container = Container()
    container.settings.override(providers.Object(Settings(_env_file=None)))

    schedule_jobs(container)

    assert container.scheduler().job_ids() == [
        "event_poll",
        "monitor_tick",
        "stream_keepalive",
        "weekly_recompute",
    ]
