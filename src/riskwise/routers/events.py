"""Live event stream (Server-Sent Events) and push registration."""
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from riskwise.container import PushSubscriptionsDep, StreamHubDep
from riskwise.schemas import NotificationType, StreamMessage
from riskwise.schemas.requests import SubscribeRequest
from riskwise.services.notifications import LiveStreamHub

logger = logging.getLogger(__name__)
router = APIRouter(tags=["events"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def event_stream(hub: LiveStreamHub, user_id: str) -> AsyncIterator[str]:
    """Yield SSE frames for one connection until the client goes away.

    The connection is registered on first iteration and removed when the
    generator is closed (client disconnect cancels it).
    """
    queue = hub.subscribe(user_id)
    try:
        yield StreamMessage(
            type=NotificationType.CONNECTED, message=f"Subscribed to updates for {user_id}"
        ).to_sse()
        while True:
            message = await queue.get()
            yield message.to_sse()
    finally:
        hub.unsubscribe(user_id, queue)


@router.get("/events/{user_id}")
async def stream_events(user_id: str, hub: StreamHubDep) -> StreamingResponse:
    """Open a persistent stream of ``data: <json>`` messages for a user."""
    return StreamingResponse(
        event_stream(hub, user_id), media_type="text/event-stream", headers=SSE_HEADERS
    )


@router.post("/subscribe", status_code=201)
async def subscribe_push(body: SubscribeRequest, store: PushSubscriptionsDep) -> dict[str, str]:
    """Register (or replace) the user's push endpoint."""
    store.register(body.user_id, body.subscription)
    logger.info("Push endpoint registered for %s", body.user_id)
    return {"status": "subscribed", "user_id": body.user_id}
