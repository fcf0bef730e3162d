"""Database models for the monitoring service.

Only user portfolios are persisted. Prices, risk results, cooldowns and seen
events live in process memory.
"""
from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class PortfolioRecord(SQLModel, table=True):
    """One user's portfolio, stored as a JSON document."""

    user_id: str = Field(primary_key=True)
    payload: str
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
