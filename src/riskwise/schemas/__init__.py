"""Pydantic schemas for API and runtime use."""
from riskwise.schemas.events import EventKind, MarketEvent
from riskwise.schemas.market import PriceQuote
from riskwise.schemas.notifications import (ALERT_TYPES, Notification,
                                            NotificationError,
                                            NotificationResult,
                                            NotificationType, PushKeys,
                                            PushSubscription, StreamMessage)
from riskwise.schemas.portfolio import BrokerCredentials, Portfolio, Position
from riskwise.schemas.risk import NEUTRAL_RISK_SCORE, RiskFactors, RiskResult

__all__ = [
    "ALERT_TYPES",
    "BrokerCredentials",
    "EventKind",
    "MarketEvent",
    "NEUTRAL_RISK_SCORE",
    "Notification",
    "NotificationError",
    "NotificationResult",
    "NotificationType",
    "Portfolio",
    "Position",
    "PriceQuote",
    "PushKeys",
    "PushSubscription",
    "RiskFactors",
    "RiskResult",
    "StreamMessage",
]
