"""Push endpoint registry and Web Push (VAPID) sink."""
import asyncio
import json
import logging
from collections.abc import Callable

from pywebpush import WebPushException, webpush

from riskwise.schemas import Notification, NotificationResult, PushSubscription
from riskwise.services.notifications.retry import execute_with_retries

logger = logging.getLogger(__name__)

# Push services answer these for endpoints that will never accept again.
GONE_STATUSES = frozenset({404, 410})


class PushSubscriptionStore:
    """One push endpoint per user; a new registration replaces the old one."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, PushSubscription] = {}

    def register(self, user_id: str, subscription: PushSubscription) -> None:
        self._subscriptions[user_id] = subscription

    def get(self, user_id: str) -> PushSubscription | None:
        return self._subscriptions.get(user_id)

    def remove(self, user_id: str) -> None:
        self._subscriptions.pop(user_id, None)


def subscription_info(subscription: PushSubscription) -> dict:
    """The ``subscription_info`` mapping pywebpush expects."""
    return {
        "endpoint": subscription.endpoint,
        "keys": subscription.keys.model_dump(exclude_none=True),
    }


def push_payload(notification: Notification) -> str:
    return json.dumps(
        {
            "title": f"RiskWise: {notification.symbol or 'portfolio'}",
            "body": notification.message,
            "type": notification.type.value,
            "data": notification.data,
        },
        default=str,
    )


def _status_of(exc: Exception) -> int | None:
    response = getattr(exc, "response", None)
    return getattr(response, "status_code", None)


class WebPushSink:
    """Encrypt and deliver alerts to the user's browser push endpoint.

    Disabled until a VAPID private key is configured. Endpoints the push
    service reports as gone are unregistered. ``webpush_func`` replaces
    ``pywebpush.webpush`` (tests).
    """

    channel = "push"

    def __init__(
        self,
        store: PushSubscriptionStore,
        *,
        vapid_private_key: str | None = None,
        vapid_subject: str = "mailto:alerts@riskwise.local",
        ttl_seconds: int = 60,
        timeout: float = 10.0,
        max_retries: int = 1,
        backoff_seconds: float = 0.5,
        webpush_func: Callable[..., object] = webpush,
    ) -> None:
        self._store = store
        self._vapid_key = vapid_private_key
        self._subject = vapid_subject
        self._ttl = ttl_seconds
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff = backoff_seconds
        self._webpush = webpush_func

    @property
    def enabled(self) -> bool:
        return bool(self._vapid_key)

    def has_subscription(self, user_id: str) -> bool:
        return self.enabled and self._store.get(user_id) is not None

    async def send(self, user_id: str, notification: Notification) -> NotificationResult | None:
        """Deliver to the user's endpoint; None when the user has none."""
        subscription = self._store.get(user_id)
        if subscription is None:
            return None
        info = subscription_info(subscription)
        data = push_payload(notification)

        async def _push() -> None:
            try:
                await asyncio.to_thread(
                    self._webpush,
                    subscription_info=info,
                    data=data,
                    vapid_private_key=self._vapid_key,
                    # pywebpush fills in aud/exp on the claims it is given
                    vapid_claims={"sub": self._subject},
                    ttl=self._ttl,
                    timeout=self._timeout,
                )
            except WebPushException as exc:
                if _status_of(exc) in GONE_STATUSES and self._store.get(user_id) is subscription:
                    logger.info("Push endpoint for %s is gone; unregistering", user_id)
                    self._store.remove(user_id)
                raise

        result = await execute_with_retries(
            self.channel,
            _push,
            max_retries=self._max_retries,
            backoff_seconds=self._backoff,
            is_retryable=lambda exc: _status_of(exc) not in GONE_STATUSES,
        )
        if not result.success:
            logger.warning("Push to %s failed: %s", user_id, result.error.reason)
        return result

    async def close(self) -> None:
        """Nothing to release; each delivery opens its own connection."""
