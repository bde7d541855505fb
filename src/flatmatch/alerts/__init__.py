"""Alert polling and notification."""

from .notifier import ConsoleNotifier, TelegramNotifier, render_alert_message
from .poller import AlertPoller, CycleReport
from .sources import (
    CollaboratorError,
    DedupStore,
    DeliveryError,
    FetchError,
    ListingSource,
    NotificationChannel,
    UserStore,
)

__all__ = [
    "AlertPoller",
    "CycleReport",
    "ConsoleNotifier",
    "TelegramNotifier",
    "render_alert_message",
    "ListingSource",
    "UserStore",
    "DedupStore",
    "NotificationChannel",
    "CollaboratorError",
    "FetchError",
    "DeliveryError",
]
