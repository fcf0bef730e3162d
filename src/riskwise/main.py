"""Main module for the portfolio risk monitoring service."""
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from riskwise.container import Container, init_container
from riskwise.logging_config import configure_logging
from riskwise.routers import (events_router, portfolio_router, prices_router,
                              risk_router, webhook_router)

logger = logging.getLogger(__name__)


def schedule_jobs(container: Container) -> None:
    """Register the recurring background jobs on the container's scheduler."""
    settings = container.settings()
    scheduler = container.scheduler()
    monitor = container.monitor()
    hub = container.stream_hub()

    async def keepalive() -> None:
        hub.broadcast_keepalive()

    scheduler.add_interval_job(
        "monitor_tick", monitor.tick, settings.monitor_interval_seconds, "Monitor all portfolios"
    )
    scheduler.add_interval_job(
        "event_poll",
        container.event_watcher().poll,
        settings.event_poll_interval_seconds,
        "Poll news and earnings",
    )
    scheduler.add_interval_job(
        "stream_keepalive", keepalive, settings.keepalive_interval_seconds, "Stream keep-alive"
    )
    scheduler.add_weekly_job(
        "weekly_recompute",
        monitor.recompute_all,
        settings.weekly_recompute_cron,
        "Forced weekly risk and stop-loss recompute",
    )


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Start background jobs and the price stream; close resources on shutdown."""
    container: Container = fastapi_app.state.container
    settings = container.settings()
    configure_logging(settings.log_level)

    scheduler = None
    if settings.scheduler_enabled:
        schedule_jobs(container)
        scheduler = container.scheduler()
        scheduler.start()

    stream_task: asyncio.Task | None = None
    if settings.stream_enabled:
        monitor = container.monitor()
        stream = container.trade_stream()
        await stream.track(await monitor.watched_symbols())
        stream_task = asyncio.create_task(stream.run(monitor.handle_price_tick))

    yield

    if scheduler is not None:
        scheduler.shutdown()
    if stream_task is not None:
        await container.trade_stream().stop()
        stream_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await stream_task

    # Close provider resources (e.g. httpx clients)
    for name in ("dispatcher", "price_adapter", "finnhub_client", "repository"):
        resource = getattr(container, name)()
        try:
            await resource.close()
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Error closing %s: %s", type(resource).__name__, exc)


def create_app(container: Container | None = None) -> FastAPI:
    """Build the FastAPI application around a container (tests pass their own)."""
    app = FastAPI(
        title="RiskWise",
        description="Portfolio risk monitoring with adaptive stop-losses and live alerts",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.container = container or init_container()

    app.include_router(portfolio_router)
    app.include_router(events_router)
    app.include_router(risk_router)
    app.include_router(webhook_router)
    app.include_router(prices_router)

    @app.get("/")
    def health():
        """Return health check status."""
        return {"status": "ok"}

    return app


def run():
    """Run the server (uvicorn). Use for `poetry run start`."""
    uvicorn.run("riskwise.main:create_app", factory=True, host="127.0.0.1", port=8001)
