"""Market price schemas."""
from datetime import datetime, timezone

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PriceQuote(BaseModel):
    """Latest price for an instrument and the source that produced it."""

    symbol: str
    price: float
    source: str
    timestamp: datetime = Field(default_factory=utcnow)
