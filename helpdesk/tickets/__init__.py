"""Ticket store and lifecycle engine."""

from .models import Ticket, TicketComment, TicketFilter
from .repository import TicketRepository
from .service import TicketService
from .state import TicketPriority, TicketStateMachine, TicketStatus, TransitionKind

__all__ = [
    "Ticket",
    "TicketComment",
    "TicketFilter",
    "TicketPriority",
    "TicketRepository",
    "TicketService",
    "TicketStateMachine",
    "TicketStatus",
    "TransitionKind",
]
