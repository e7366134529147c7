"""Notification layer — sink protocol, dispatch policy and built-in sinks."""

from runner.notifications.log_sink import LogSink
from runner.notifications.notifier import NotificationPolicy, Notifier
from runner.notifications.sinks import NotificationSink
from runner.notifications.webhook_sink import WebhookSink

__all__ = [
    "LogSink",
    "NotificationPolicy",
    "NotificationSink",
    "Notifier",
    "WebhookSink",
]
