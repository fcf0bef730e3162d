"""Per-user live stream subscriptions (one queue per open connection)."""
import asyncio
import logging

from riskwise.schemas import NotificationType, StreamMessage

logger = logging.getLogger(__name__)


class LiveStreamHub:
    """Fan messages out to every open stream connection of a user.

    Each connection owns a bounded queue; when a slow client's queue is full
    its oldest message is dropped so publishing never blocks.
    """

    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[str, set[asyncio.Queue]] = {}

    def subscribe(self, user_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._subscribers.setdefault(user_id, set()).add(queue)
        logger.info("Stream opened for %s (%d open)", user_id, len(self._subscribers[user_id]))
        return queue

    def unsubscribe(self, user_id: str, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(user_id)
        if not queues:
            return
        queues.discard(queue)
        if not queues:
            del self._subscribers[user_id]
        logger.info("Stream closed for %s", user_id)

    def subscriber_count(self, user_id: str | None = None) -> int:
        if user_id is not None:
            return len(self._subscribers.get(user_id, ()))
        return sum(len(q) for q in self._subscribers.values())

    def _offer(self, queue: asyncio.Queue, message: StreamMessage) -> None:
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            queue.get_nowait()
            queue.put_nowait(message)
            logger.warning("Stream queue full; dropped oldest message")

    def publish(self, user_id: str, message: StreamMessage) -> int:
        """Queue a message on every connection of the user; returns the count."""
        queues = list(self._subscribers.get(user_id, ()))
        for queue in queues:
            self._offer(queue, message)
        return len(queues)

    def broadcast_keepalive(self) -> int:
        """Queue a keep-alive on every open connection."""
        count = 0
        for queues in list(self._subscribers.values()):
            for queue in list(queues):
                self._offer(queue, StreamMessage(type=NotificationType.KEEPALIVE))
                count += 1
        return count
