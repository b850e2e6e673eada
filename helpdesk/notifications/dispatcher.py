"""Turn lifecycle events into notification records and serve them back to readers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

from sqlalchemy.exc import SQLAlchemyError

from helpdesk.errors import NotificationNotFoundError
from helpdesk.metrics import MetricsRegistry, metrics_registry
from helpdesk.metrics.definitions import NOTIFICATIONS_CREATED
from helpdesk.users.models import Principal

from .models import BROADCAST, Notification, NotificationEvent, NotificationType
from .repository import NotificationRepository

if TYPE_CHECKING:
    from helpdesk.knowledge.models import Article
    from helpdesk.tickets.models import Ticket, TicketComment
    from helpdesk.users.models import User

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, repository: NotificationRepository, *, registry: MetricsRegistry | None = None) -> None:
        self.repository = repository
        self._created = (registry or metrics_registry).counter(NOTIFICATIONS_CREATED)

    async def dispatch(self, event: NotificationEvent) -> list[Notification]:
        """Persist one record per addressee.

        Called after the triggering write has committed, so a storage failure here is
        logged and swallowed instead of failing an operation that already happened.
        """

        try:
            created = await self.repository.create_for_event(event)
        except SQLAlchemyError:
            logger.exception("Failed to store %s notification for %s", event.type.value, event.related_id)
            return []
        if created:
            self._created.inc(len(created), labels={"type": event.type.value})
            logger.debug("Dispatched %s to %s", event.type.value, [item.user_id for item in created])
        return created

    async def ticket_created(self, ticket: "Ticket", *, actor_id: str) -> list[Notification]:
        return await self.dispatch(
            NotificationEvent(
                type=NotificationType.TICKET_CREATED,
                related_id=ticket.id,
                triggered_by=actor_id,
                title="New ticket",
                message=f"Ticket {ticket.id} \"{ticket.title}\" was created with {ticket.priority.value} priority",
            )
        )

    async def ticket_updated(
        self,
        ticket: "Ticket",
        *,
        actor_id: str,
        changes: Sequence[str],
        new_assignee_id: str | None = None,
    ) -> list[Notification]:
        """Tell the ticket's client, and a newly set assignee, about a staff change."""

        described = []
        if "status" in changes:
            described.append(f"status is now {ticket.status.value}")
        if "assignee_id" in changes:
            described.append("assigned to a specialist" if ticket.assignee_id else "unassigned")
        if not described:
            return []
        recipients = (ticket.client_id,) + ((new_assignee_id,) if new_assignee_id else ())
        return await self.dispatch(
            NotificationEvent(
                type=NotificationType.TICKET_UPDATED,
                related_id=ticket.id,
                triggered_by=actor_id,
                title=f"Ticket {ticket.id} updated",
                message=f"\"{ticket.title}\": " + ", ".join(described),
                recipients=recipients,
            )
        )

    async def comment_added(
        self, ticket: "Ticket", comment: "TicketComment", *, actor: Principal
    ) -> list[Notification]:
        if comment.is_internal:
            return []
        if actor.is_staff:
            recipients: tuple[str, ...] = (ticket.client_id,)
        elif ticket.assignee_id:
            recipients = (ticket.assignee_id,)
        else:
            return []
        return await self.dispatch(
            NotificationEvent(
                type=NotificationType.TICKET_UPDATED,
                related_id=ticket.id,
                triggered_by=actor.id,
                title=f"New comment on {ticket.id}",
                message=f"{actor.display_name or 'Someone'} commented on \"{ticket.title}\"",
                recipients=recipients,
            )
        )

    async def user_registered(self, user: "User", *, actor_id: str) -> list[Notification]:
        return await self.dispatch(
            NotificationEvent(
                type=NotificationType.USER_REGISTERED,
                related_id=user.id,
                triggered_by=actor_id,
                title="New user",
                message=f"{user.full_name} ({user.email}) joined as {user.role.value}",
            )
        )

    async def article_published(self, article: "Article", *, actor_id: str) -> list[Notification]:
        return await self.dispatch(
            NotificationEvent(
                type=NotificationType.ARTICLE_PUBLISHED,
                related_id=article.id,
                triggered_by=actor_id,
                title="New knowledge base article",
                message=f"\"{article.title}\" was published in {article.category}",
            )
        )

    @staticmethod
    def visible_recipients(principal: Principal) -> tuple[str, ...]:
        """Recipient ids whose notifications ``principal`` may read.

        Broadcasts are for staff only and share a single read flag between them.
        """

        if principal.is_staff:
            return (principal.id, BROADCAST)
        return (principal.id,)

    async def list_for(
        self, principal: Principal, *, unread_only: bool = False, limit: int | None = None
    ) -> list[Notification]:
        return await self.repository.list_for(
            self.visible_recipients(principal), unread_only=unread_only, limit=limit
        )

    async def unread_count(self, principal: Principal) -> int:
        return await self.repository.count_unread(self.visible_recipients(principal))

    async def mark_read(self, principal: Principal, notification_id: str) -> Notification:
        notification = await self.repository.get(notification_id)
        if notification is None or notification.user_id not in self.visible_recipients(principal):
            raise NotificationNotFoundError()
        if not notification.is_read:
            await self.repository.mark_read(notification_id)
            notification.is_read = True
        return notification

    async def mark_all_read(self, principal: Principal) -> int:
        count = await self.repository.mark_all_read(self.visible_recipients(principal))
        logger.debug("Marked %d notifications read for %s", count, principal.id)
        return count
