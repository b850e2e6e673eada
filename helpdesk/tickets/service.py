from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from helpdesk.errors import (
    ForbiddenError,
    TicketConflictError,
    TicketNotFoundError,
    ValidationError,
    require_fields,
)
from helpdesk.metrics import MetricsRegistry, metrics_registry
from helpdesk.metrics.definitions import (
    COMMENTS_CREATED,
    TICKET_CLAIMS,
    TICKET_STATUS_CHANGES,
    TICKETS_CREATED,
)
from helpdesk.notifications.dispatcher import NotificationDispatcher
from helpdesk.users.models import STAFF_ROLES, Principal
from helpdesk.users.repository import UserRepository

from .models import DEFAULT_CATEGORY, UNASSIGNED, Ticket, TicketComment, TicketFilter
from .repository import TicketRepository
from .state import TicketPriority, TicketStateMachine, TicketStatus, TransitionKind

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "description", "category", "status", "priority", "assignee_id")


def _coerce_status(value: Any) -> TicketStatus:
    try:
        return TicketStatus(value)
    except ValueError as exc:
        raise ValidationError("Unknown ticket status", fields={"status": [f"Unknown status: {value}"]}) from exc


def _coerce_priority(value: Any) -> TicketPriority:
    try:
        return TicketPriority(value)
    except ValueError as exc:
        raise ValidationError("Unknown ticket priority", fields={"priority": [f"Unknown priority: {value}"]}) from exc


@dataclass(slots=True)
class TicketService:
    """Ticket lifecycle: permissions, transitions, assignment and notifications."""

    repository: TicketRepository
    users: UserRepository
    dispatcher: NotificationDispatcher | None = None
    registry: MetricsRegistry = field(default_factory=lambda: metrics_registry)

    async def create_ticket(
        self,
        actor: Principal,
        *,
        title: str | None,
        description: str | None,
        priority: Any,
        category: str | None = None,
        client_id: str | None = None,
    ) -> Ticket:
        require_fields(
            {"title": title, "description": description, "priority": priority},
            ("title", "description", "priority"),
        )
        resolved_priority = _coerce_priority(priority)

        owner_id = actor.id
        if actor.is_staff and client_id and client_id != actor.id:
            if await self.users.get_user(client_id) is None:
                raise ValidationError("Unknown client", fields={"client_id": ["User does not exist"]})
            owner_id = client_id

        ticket = await self.repository.create_ticket(
            title=str(title).strip(),
            description=str(description).strip(),
            priority=resolved_priority,
            category=(category or "").strip() or DEFAULT_CATEGORY,
            client_id=owner_id,
            status=TicketStateMachine.initial_state(),
        )
        self.registry.counter(TICKETS_CREATED).inc(labels={"priority": ticket.priority.value})
        logger.info("Ticket %s created by %s for client %s", ticket.id, actor.id, ticket.client_id)
        if self.dispatcher is not None:
            await self.dispatcher.ticket_created(ticket, actor_id=actor.id)
        return ticket

    async def get_ticket(self, actor: Principal, ticket_id: str) -> Ticket:
        ticket = await self.repository.get_ticket(ticket_id, include_internal=actor.is_staff)
        # clients get the same answer for missing tickets and tickets they do not own
        if ticket is None or (not actor.is_staff and ticket.client_id != actor.id):
            raise TicketNotFoundError()
        return ticket

    async def list_tickets(
        self,
        actor: Principal,
        *,
        status: Any = None,
        priority: Any = None,
        assignee: str | None = None,
        search: str | None = None,
    ) -> list[Ticket]:
        filters = TicketFilter(
            client_id=None if actor.is_staff else actor.id,
            status=_coerce_status(status) if status else None,
            priority=_coerce_priority(priority) if priority else None,
            assignee=assignee or None,
            search=search.strip() if search and search.strip() else None,
        )
        return await self.repository.list_tickets(filters)

    async def update_ticket(self, actor: Principal, ticket_id: str, changes: Mapping[str, Any]) -> Ticket:
        """Apply a partial staff edit.

        ``changes`` holds only the keys the caller sent; ``assignee_id: None`` unassigns.
        Setting an assignee on a ``new`` ticket advances it to ``in_progress`` unless the
        same payload sets a status explicitly.
        """

        if not actor.is_staff:
            raise ForbiddenError("Only support staff can change tickets")
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(
                "Unknown ticket fields", fields={name: ["Field cannot be updated"] for name in sorted(unknown)}
            )
        if not changes:
            raise ValidationError("No fields provided for update")

        updates: dict[str, Any] = {}
        for name in ("title", "description"):
            if name in changes:
                value = changes[name]
                if value is None or not str(value).strip():
                    raise ValidationError(
                        f"{name.capitalize()} cannot be empty", fields={name: ["This field is required"]}
                    )
                updates[name] = str(value).strip()
        if "category" in changes:
            updates["category"] = (changes["category"] or "").strip() or DEFAULT_CATEGORY
        if changes.get("priority") is not None:
            updates["priority"] = _coerce_priority(changes["priority"])
        explicit_status = _coerce_status(changes["status"]) if changes.get("status") is not None else None
        if "assignee_id" in changes:
            updates["assignee_id"] = await self._validate_assignee(changes["assignee_id"])
        if not updates and explicit_status is None:
            raise ValidationError("No fields provided for update")

        current = await self.repository.get_ticket(ticket_id)
        if current is None:
            raise TicketNotFoundError()

        target_status = explicit_status
        if (
            target_status is None
            and updates.get("assignee_id")
            and updates["assignee_id"] != current.assignee_id
            and current.status is TicketStatus.NEW
        ):
            target_status = TicketStatus.IN_PROGRESS

        transition = TransitionKind.UNCHANGED
        if target_status is not None:
            transition = TicketStateMachine.classify(current.status, target_status)
            updates["status"] = target_status
            updates.update(
                TicketStateMachine.timestamp_effects(
                    target_status,
                    resolved_at=current.resolved_at,
                    closed_at=current.closed_at,
                    now=datetime.now(timezone.utc),
                )
            )

        ticket = await self.repository.update_ticket(ticket_id, updates)
        if ticket is None:
            raise TicketNotFoundError()

        changed = [
            name for name in ("status", "assignee_id") if getattr(ticket, name) != getattr(current, name)
        ]
        if "status" in changed:
            self._record_transition(ticket, current.status, transition, actor)
        if "assignee_id" in changed:
            logger.info("Ticket %s assigned to %s by %s", ticket.id, ticket.assignee_id, actor.id)
        if changed and self.dispatcher is not None:
            await self.dispatcher.ticket_updated(
                ticket,
                actor_id=actor.id,
                changes=changed,
                new_assignee_id=ticket.assignee_id if "assignee_id" in changed else None,
            )
        return ticket

    async def take_ticket(self, actor: Principal, ticket_id: str) -> Ticket:
        if not actor.is_staff:
            raise ForbiddenError("Only support staff can take tickets")

        claims = self.registry.counter(TICKET_CLAIMS)
        if not await self.repository.claim_ticket(ticket_id, actor.id):
            current = await self.repository.get_ticket(ticket_id)
            if current is None:
                raise TicketNotFoundError()
            claims.inc(labels={"outcome": "conflict"})
            logger.warning(
                "Take of ticket %s by %s rejected (status=%s, assignee=%s)",
                ticket_id,
                actor.id,
                current.status.value,
                current.assignee_id,
            )
            if current.assignee_id is not None:
                raise TicketConflictError("Ticket is already assigned")
            raise TicketConflictError("Only new tickets can be taken")

        claims.inc(labels={"outcome": "claimed"})
        ticket = await self.repository.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError()
        self._record_transition(ticket, TicketStateMachine.claimable_status(), TransitionKind.FORWARD, actor)
        logger.info("Ticket %s taken by %s", ticket.id, actor.id)
        if self.dispatcher is not None:
            await self.dispatcher.ticket_updated(ticket, actor_id=actor.id, changes=("status", "assignee_id"))
        return ticket

    async def delete_ticket(self, actor: Principal, ticket_id: str) -> None:
        if not actor.is_admin:
            raise ForbiddenError("Only administrators can delete tickets")
        if not await self.repository.delete_ticket(ticket_id):
            raise TicketNotFoundError()
        logger.info("Ticket %s deleted by %s", ticket_id, actor.id)

    async def add_comment(
        self,
        actor: Principal,
        ticket_id: str,
        *,
        content: str | None,
        is_internal: bool = False,
    ) -> TicketComment:
        if content is None or not content.strip():
            raise ValidationError("Comment cannot be empty", fields={"content": ["This field is required"]})
        ticket = await self.get_ticket(actor, ticket_id)
        internal = bool(is_internal) and actor.is_staff

        comment = await self.repository.add_comment(
            ticket_id=ticket.id,
            author_id=actor.id,
            content=content.strip(),
            is_internal=internal,
        )
        if comment is None:
            raise TicketNotFoundError()
        self.registry.counter(COMMENTS_CREATED).inc(labels={"visibility": "internal" if internal else "public"})
        if self.dispatcher is not None:
            await self.dispatcher.comment_added(ticket, comment, actor=actor)
        return comment

    async def _validate_assignee(self, assignee_id: str | None) -> str | None:
        if assignee_id is None or assignee_id == UNASSIGNED:
            return None
        user = await self.users.get_user(assignee_id)
        if user is None or not user.is_active or user.role not in STAFF_ROLES:
            raise ValidationError(
                "Assignee must be an active support or admin user",
                fields={"assignee_id": ["Not an active support or admin user"]},
            )
        return user.id

    def _record_transition(
        self, ticket: Ticket, previous: TicketStatus, transition: TransitionKind, actor: Principal
    ) -> None:
        if transition is TransitionKind.UNCHANGED:
            return
        self.registry.counter(TICKET_STATUS_CHANGES).inc(labels={"transition": transition.value})
        if transition is TransitionKind.OVERRIDE:
            logger.warning(
                "Ticket %s moved %s -> %s by %s outside the forward lifecycle",
                ticket.id,
                previous.value,
                ticket.status.value,
                actor.id,
            )
        else:
            logger.info("Ticket %s moved %s -> %s by %s", ticket.id, previous.value, ticket.status.value, actor.id)
