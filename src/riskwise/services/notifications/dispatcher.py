"""Fan a state change out to the live stream, email and push."""
import asyncio
import logging
from collections.abc import Awaitable

from riskwise.schemas import Notification, NotificationResult
from riskwise.services.notifications.email import EmailSink
from riskwise.services.notifications.push import WebPushSink
from riskwise.services.notifications.stream_hub import LiveStreamHub

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Deliver notifications on every channel independently.

    The stream write is immediate. Alerts additionally go to email and push as
    background tasks, each behind its own error boundary, so a slow or failing
    channel never delays the caller or the other channels.
    """

    def __init__(
        self,
        hub: LiveStreamHub,
        email_sink: EmailSink | None = None,
        push_sink: WebPushSink | None = None,
    ) -> None:
        self._hub = hub
        self._email = email_sink
        self._push = push_sink
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, user_id: str, notification: Notification, email: str | None = None) -> None:
        try:
            self._hub.publish(user_id, notification.to_stream_message())
        except Exception:  # pylint: disable=broad-except
            logger.exception("Stream publish failed for %s", user_id)

        if not notification.is_alert:
            return
        if email and self._email is not None and self._email.enabled:
            self._spawn("email", user_id, self._email.send(email, notification))
        if self._push is not None and self._push.has_subscription(user_id):
            self._spawn("push", user_id, self._push.send(user_id, notification))

    def _spawn(
        self, channel: str, user_id: str, delivery: Awaitable[NotificationResult | None]
    ) -> None:
        async def _guarded() -> NotificationResult | None:
            try:
                return await delivery
            except Exception:  # pylint: disable=broad-except
                logger.exception("%s delivery failed for %s", channel, user_id)
                return None

        task = asyncio.ensure_future(_guarded())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown, tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def close(self) -> None:
        await self.drain()
        if self._push is not None:
            await self._push.close()
