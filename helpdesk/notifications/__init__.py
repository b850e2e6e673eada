"""Notification records produced by ticket, user and article events."""

from .dispatcher import NotificationDispatcher
from .models import BROADCAST, Notification, NotificationEvent, NotificationType
from .repository import NotificationRepository

__all__ = [
    "BROADCAST",
    "Notification",
    "NotificationDispatcher",
    "NotificationEvent",
    "NotificationRepository",
    "NotificationType",
]
