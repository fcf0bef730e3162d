"""External news / earnings event schemas."""
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventKind(str, Enum):
    NEWS = "news"
    EARNINGS = "earnings"
    WEBHOOK = "webhook"


class MarketEvent(BaseModel):
    """A news item or earnings report with a stable identity."""

    symbol: str
    kind: EventKind
    identity: str
    headline: str
    occurred_at: datetime | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
