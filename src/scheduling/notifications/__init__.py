"""Notification inbox storage and company-wide dispatch."""

from scheduling.notifications.dispatcher import NotificationDispatcher
from scheduling.notifications.store import NotificationStore

__all__ = [
    "NotificationDispatcher",
    "NotificationStore",
]
