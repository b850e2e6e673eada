from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

# Recipient id for notifications addressed to every support and admin user.
BROADCAST = "all"


class NotificationType(str, Enum):
    TICKET_CREATED = "ticket_created"
    TICKET_UPDATED = "ticket_updated"
    USER_REGISTERED = "user_registered"
    ARTICLE_PUBLISHED = "article_published"


@dataclass(slots=True)
class Notification:
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    related_id: str | None
    is_read: bool
    created_at: datetime


@dataclass(frozen=True, slots=True)
class NotificationEvent:
    """A lifecycle event and the recipients it should reach."""

    type: NotificationType
    related_id: str | None
    triggered_by: str
    title: str
    message: str
    recipients: tuple[str, ...] = (BROADCAST,)

    def addressees(self) -> tuple[str, ...]:
        """Recipients without duplicates and without the actor who caused the event."""

        seen: list[str] = []
        for recipient in self.recipients:
            if not recipient or recipient in seen:
                continue
            if recipient != BROADCAST and recipient == self.triggered_by:
                continue
            seen.append(recipient)
        return tuple(seen)
