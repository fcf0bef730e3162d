"""Notification, stream and delivery-result schemas."""
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field

from riskwise.schemas.market import utcnow


class NotificationType(str, Enum):
    """Kinds of state change fanned out to subscribers."""

    PRICE_UPDATE = "price_update"
    RISK_UPDATE = "risk_update"
    STOP_LOSS_UPDATE = "stop_loss_update"
    DROP_ALERT = "drop_alert"
    EVENT_ALERT = "event_alert"
    STOP_TRIGGERED = "stop_triggered"
    KEEPALIVE = "keepalive"
    CONNECTED = "connected"


# Types delivered to email / push and kept in the portfolio history.
ALERT_TYPES = frozenset(
    {
        NotificationType.STOP_LOSS_UPDATE,
        NotificationType.DROP_ALERT,
        NotificationType.EVENT_ALERT,
        NotificationType.STOP_TRIGGERED,
    }
)


class Notification(BaseModel):
    """A single state change for one user."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    type: NotificationType
    message: str
    symbol: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)
    read: bool = False

    @property
    def is_alert(self) -> bool:
        return self.type in ALERT_TYPES

    def to_stream_message(self) -> "StreamMessage":
        return StreamMessage(
            type=self.type,
            symbol=self.symbol,
            message=self.message,
            data=self.data,
            timestamp=self.timestamp,
        )


class StreamMessage(BaseModel):
    """Payload written to live stream connections as ``data: <json>``."""

    type: NotificationType
    symbol: str | None = None
    message: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utcnow)

    def to_sse(self) -> str:
        return f"data: {self.model_dump_json()}\n\n"


class PushKeys(BaseModel):
    p256dh: str | None = None
    auth: str | None = None


class PushSubscription(BaseModel):
    """Browser push endpoint registration (one per user, latest wins)."""

    endpoint: str
    keys: PushKeys = Field(default_factory=PushKeys)
    expiration_time: float | None = Field(default=None, alias="expirationTime")

    model_config = {"populate_by_name": True}


@dataclass
class NotificationError:
    channel: str
    reason: str
    retryable: bool
    details: Optional[Mapping[str, Any]] = None


@dataclass
class NotificationResult:
    channel: str
    success: bool
    attempts: int
    error: Optional[NotificationError] = None
    delivered_at: Optional[datetime] = None
