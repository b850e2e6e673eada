from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .state import TicketPriority, TicketStatus

DEFAULT_CATEGORY = "other"
UNASSIGNED = "unassigned"


@dataclass(slots=True)
class TicketComment:
    """A message on a ticket; internal comments are visible to staff only."""

    id: str
    ticket_id: str
    author_id: str
    content: str
    is_internal: bool
    created_at: datetime


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a support ticket entry."""

    id: str
    title: str
    description: str
    status: TicketStatus
    priority: TicketPriority
    category: str
    client_id: str
    assignee_id: str | None
    created_at: datetime
    updated_at: datetime
    resolved_at: datetime | None = None
    closed_at: datetime | None = None
    comments: list[TicketComment] = field(default_factory=list)


@dataclass(slots=True)
class TicketFilter:
    """Listing filters; ``assignee`` takes a user id or ``"unassigned"``."""

    client_id: str | None = None
    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    assignee: str | None = None
    search: str | None = None
