"""Portfolio and position schemas (the user-owned monitoring state)."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, SecretStr

from riskwise.schemas.market import utcnow
from riskwise.schemas.notifications import Notification

MAX_NOTIFICATION_HISTORY = 100


class BrokerCredentials(BaseModel):
    """Brokerage API credentials used for the preferred price source."""

    key: str
    secret: SecretStr

    @property
    def is_complete(self) -> bool:
        return bool(self.key and self.secret.get_secret_value())


class Position(BaseModel):
    """One holding and the monitoring state derived for it."""

    symbol: str
    shares: float
    entry_price: float | None = None
    sector: str | None = None
    amount_invested: float | None = None

    last_price: float | None = None
    risk_score: int | None = None
    risk_reference_price: float | None = None
    stop_price: float | None = None
    stop_triggered: bool = False
    last_risk_at: datetime | None = None
    last_logged_at: datetime | None = None

    @property
    def anchor_price(self) -> float | None:
        """Price the stop is measured from: entry price, else the last observed price."""
        return self.entry_price if self.entry_price else self.last_price

    def carry_state_from(self, other: "Position") -> None:
        """Copy derived monitoring state from a previous version of this position."""
        self.last_price = other.last_price
        self.risk_score = other.risk_score
        self.risk_reference_price = other.risk_reference_price
        self.stop_price = other.stop_price
        self.stop_triggered = other.stop_triggered
        self.last_risk_at = other.last_risk_at
        self.last_logged_at = other.last_logged_at


class Portfolio(BaseModel):
    """A user's monitored holdings, preferences and notification history."""

    user_id: str
    positions: dict[str, Position] = Field(default_factory=dict)
    credentials: BrokerCredentials | None = None
    max_loss_pct: float | None = None
    email: str | None = None
    total_investment: float | None = None
    notifications: list[Notification] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def symbols(self) -> list[str]:
        return list(self.positions)

    def record_notification(self, notification: Notification) -> None:
        """Append to the bounded history, dropping the oldest entries."""
        self.notifications.append(notification)
        overflow = len(self.notifications) - MAX_NOTIFICATION_HISTORY
        if overflow > 0:
            del self.notifications[:overflow]

    def to_storage_dict(self) -> dict[str, Any]:
        """JSON-compatible dump that keeps the credential secret (for durable storage)."""
        data = self.model_dump(mode="json")
        if self.credentials is not None:
            data["credentials"]["secret"] = self.credentials.secret.get_secret_value()
        return data
