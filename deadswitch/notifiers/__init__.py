"""
Notifiers

Backends that deliver missed-heartbeat alerts.
"""

from deadswitch.notifiers.base import (
    HttpNotifier,
    Notifier,
    NotifierKind,
    NotifyError,
    missed_message,
)
from deadswitch.notifiers.noop import NoOpNotifier
from deadswitch.notifiers.slack import SlackNotifier
from deadswitch.notifiers.webhook import WebhookNotifier

__all__ = [
    # Base
    "HttpNotifier",
    "Notifier",
    "NotifierKind",
    "NotifyError",
    "missed_message",
    # Backends
    "NoOpNotifier",
    "SlackNotifier",
    "WebhookNotifier",
]
