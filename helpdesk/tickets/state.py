from __future__ import annotations

from datetime import datetime
from enum import Enum


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    NEW = "new"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TransitionKind(str, Enum):
    """How a status change relates to the forward lifecycle."""

    UNCHANGED = "unchanged"
    FORWARD = "forward"
    OVERRIDE = "override"


class TicketStateMachine:
    """Classify ticket lifecycle transitions and derive their timestamp effects.

    Only the forward edges below happen automatically. Staff may still set any status by
    hand; such moves are classified as overrides rather than rejected.
    """

    _FORWARD: dict[TicketStatus, set[TicketStatus]] = {
        TicketStatus.NEW: {TicketStatus.IN_PROGRESS},
        TicketStatus.IN_PROGRESS: {TicketStatus.RESOLVED},
        TicketStatus.RESOLVED: {TicketStatus.CLOSED},
        TicketStatus.CLOSED: set(),
    }

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.NEW

    @classmethod
    def is_forward(cls, current: TicketStatus, new: TicketStatus) -> bool:
        return new in cls._FORWARD.get(current, set())

    @classmethod
    def classify(cls, current: TicketStatus, new: TicketStatus) -> TransitionKind:
        if current == new:
            return TransitionKind.UNCHANGED
        if cls.is_forward(current, new):
            return TransitionKind.FORWARD
        return TransitionKind.OVERRIDE

    @classmethod
    def claimable_status(cls) -> TicketStatus:
        """Only unassigned tickets in this status can be taken."""
        return cls.initial_state()

    @classmethod
    def claimed_status(cls) -> TicketStatus:
        (target,) = cls._FORWARD[cls.claimable_status()]
        return target

    @classmethod
    def timestamp_effects(
        cls,
        new: TicketStatus,
        *,
        resolved_at: datetime | None,
        closed_at: datetime | None,
        now: datetime,
    ) -> dict[str, datetime]:
        """Return the lifecycle timestamps to set when entering ``new``.

        Both timestamps are written on the first entry into their state only.
        """

        effects: dict[str, datetime] = {}
        if new is TicketStatus.RESOLVED and resolved_at is None:
            effects["resolved_at"] = now
        if new is TicketStatus.CLOSED and closed_at is None:
            effects["closed_at"] = now
        return effects
