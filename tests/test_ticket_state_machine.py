from datetime import datetime, timedelta, timezone

import pytest

from helpdesk.tickets.state import TicketStateMachine, TicketStatus, TransitionKind


def test_initial_state_is_new():
    assert TicketStateMachine.initial_state() is TicketStatus.NEW


@pytest.mark.parametrize(
    ("current", "new"),
    [
        (TicketStatus.NEW, TicketStatus.IN_PROGRESS),
        (TicketStatus.IN_PROGRESS, TicketStatus.RESOLVED),
        (TicketStatus.RESOLVED, TicketStatus.CLOSED),
    ],
)
def test_forward_edges(current, new):
    assert TicketStateMachine.is_forward(current, new)
    assert TicketStateMachine.classify(current, new) is TransitionKind.FORWARD


@pytest.mark.parametrize(
    ("current", "new"),
    [
        (TicketStatus.NEW, TicketStatus.RESOLVED),
        (TicketStatus.CLOSED, TicketStatus.IN_PROGRESS),
        (TicketStatus.RESOLVED, TicketStatus.NEW),
        (TicketStatus.IN_PROGRESS, TicketStatus.CLOSED),
    ],
)
def test_other_moves_are_overrides(current, new):
    assert not TicketStateMachine.is_forward(current, new)
    assert TicketStateMachine.classify(current, new) is TransitionKind.OVERRIDE


def test_same_status_is_unchanged():
    assert TicketStateMachine.classify(TicketStatus.RESOLVED, TicketStatus.RESOLVED) is TransitionKind.UNCHANGED


def test_taking_moves_new_tickets_forward():
    source = TicketStateMachine.claimable_status()
    target = TicketStateMachine.claimed_status()

    assert (source, target) == (TicketStatus.NEW, TicketStatus.IN_PROGRESS)
    assert TicketStateMachine.classify(source, target) is TransitionKind.FORWARD


def test_resolved_at_is_only_set_on_first_entry():
    now = datetime.now(timezone.utc)
    earlier = now - timedelta(days=1)

    first = TicketStateMachine.timestamp_effects(TicketStatus.RESOLVED, resolved_at=None, closed_at=None, now=now)
    again = TicketStateMachine.timestamp_effects(
        TicketStatus.RESOLVED, resolved_at=earlier, closed_at=None, now=now
    )

    assert first == {"resolved_at": now}
    assert again == {}


def test_closing_sets_closed_at_without_touching_resolved_at():
    now = datetime.now(timezone.utc)
    effects = TicketStateMachine.timestamp_effects(
        TicketStatus.CLOSED, resolved_at=now - timedelta(hours=2), closed_at=None, now=now
    )
    assert effects == {"closed_at": now}


def test_statuses_without_timestamps_have_no_effects():
    now = datetime.now(timezone.utc)
    effects = TicketStateMachine.timestamp_effects(TicketStatus.IN_PROGRESS, resolved_at=None, closed_at=None, now=now)
    assert effects == {}
