"""Notification fan-out: live stream hub, email and push sinks, dispatcher."""
from riskwise.services.notifications.dispatcher import NotificationDispatcher
from riskwise.services.notifications.email import EmailSink
from riskwise.services.notifications.push import (PushSubscriptionStore,
                                                  WebPushSink)
from riskwise.services.notifications.stream_hub import LiveStreamHub

__all__ = [
    "EmailSink",
    "LiveStreamHub",
    "NotificationDispatcher",
    "PushSubscriptionStore",
    "WebPushSink",
]
