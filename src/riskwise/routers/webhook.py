"""Inbound webhook for externally detected events."""
import logging

from fastapi import APIRouter

from riskwise.container import MonitorDep
from riskwise.schemas.requests import WebhookEventRequest, WebhookEventResponse

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhook", tags=["webhook"])


@router.post("/event", response_model=WebhookEventResponse)
async def webhook_event(body: WebhookEventRequest, monitor: MonitorDep) -> WebhookEventResponse:
    """Force a recompute and notify pass for every user holding the ticker."""
    ticker = body.ticker.strip().upper()
    logger.info("Webhook event for %s: %s", ticker, body.reason or "-")
    users = await monitor.handle_webhook(ticker, body.reason, body.event_id)
    return WebhookEventResponse(ticker=ticker, users=users)
