"""SMTP email sink for alerts."""
import asyncio
import logging
import smtplib
from collections.abc import Callable
from email.mime.text import MIMEText

from riskwise.schemas import Notification, NotificationResult
from riskwise.services.notifications.retry import execute_with_retries

logger = logging.getLogger(__name__)


def render_email(notification: Notification) -> tuple[str, str]:
    """Subject and plain-text body for an alert."""
    label = notification.type.value.replace("_", " ").title()
    subject = f"[RiskWise] {label}"
    if notification.symbol:
        subject += f": {notification.symbol}"
    lines = [notification.message, ""]
    lines += [f"{key}: {value}" for key, value in notification.data.items()]
    lines += ["", f"Sent at {notification.timestamp.isoformat()}"]
    return subject, "\n".join(lines)


class EmailSink:
    """Send alerts over SMTP; disabled when no host is configured.

    ``send_func`` replaces the SMTP call (tests).
    """

    channel = "email"

    def __init__(
        self,
        host: str | None,
        port: int = 587,
        *,
        from_address: str = "alerts@riskwise.local",
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        timeout: float = 10.0,
        send_func: Callable[[str, str, str], object] | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._from = from_address
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._max_retries = max_retries
        self._backoff = backoff_seconds
        self._timeout = timeout
        self._send_func = send_func

    @property
    def enabled(self) -> bool:
        return bool(self._host) or self._send_func is not None

    async def send(self, to_address: str, notification: Notification) -> NotificationResult:
        subject, body = render_email(notification)

        async def _dispatch() -> None:
            if self._send_func is not None:
                result = self._send_func(to_address, subject, body)
                if asyncio.iscoroutine(result):
                    await result
                return
            await asyncio.to_thread(self._send_sync, to_address, subject, body)

        result = await execute_with_retries(
            self.channel,
            _dispatch,
            max_retries=self._max_retries,
            backoff_seconds=self._backoff,
        )
        if not result.success:
            logger.warning("Email to %s failed: %s", to_address, result.error.reason)
        return result

    def _send_sync(self, to_address: str, subject: str, body: str) -> None:
        message = MIMEText(body)
        message["Subject"] = subject
        message["From"] = self._from
        message["To"] = to_address

        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
            if self._use_tls:
                smtp.starttls()
            if self._username and self._password:
                smtp.login(self._username, self._password)
            smtp.sendmail(self._from, [to_address], message.as_string())
