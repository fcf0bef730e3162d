"""Retry helper shared by the email and push sinks."""
import asyncio
import logging
from collections.abc import Awaitable, Callable

from riskwise.schemas import NotificationError, NotificationResult
from riskwise.schemas.market import utcnow

logger = logging.getLogger(__name__)


def _always(_: Exception) -> bool:
    return True


async def execute_with_retries(
    channel: str,
    operation: Callable[[], Awaitable[object]],
    *,
    max_retries: int,
    backoff_seconds: float,
    is_retryable: Callable[[Exception], bool] = _always,
) -> NotificationResult:
    """Run ``operation`` up to ``max_retries + 1`` times; never raises.

    An error for which ``is_retryable`` is False ends the attempts at once.
    """
    attempts = 0
    last_error: Exception | None = None
    retryable = True
    while attempts <= max_retries:
        attempts += 1
        try:
            await operation()
            return NotificationResult(
                channel=channel, success=True, attempts=attempts, delivered_at=utcnow()
            )
        except Exception as exc:  # pylint: disable=broad-except
            last_error = exc
            retryable = is_retryable(exc)
            logger.debug("%s notification attempt %s failed: %s", channel, attempts, exc)
            if not retryable or attempts > max_retries:
                break
            await asyncio.sleep(backoff_seconds * attempts)

    error = NotificationError(
        channel=channel,
        reason=str(last_error),
        retryable=retryable,
        details={"attempts": attempts},
    )
    return NotificationResult(channel=channel, success=False, attempts=attempts, error=error)
