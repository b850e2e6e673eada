"""Metric definitions used across the helpdesk services."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

TICKETS_CREATED = "helpdesk_tickets_created_total"
TICKET_CLAIMS = "helpdesk_ticket_claims_total"
TICKET_STATUS_CHANGES = "helpdesk_ticket_status_changes_total"
COMMENTS_CREATED = "helpdesk_comments_created_total"
NOTIFICATIONS_CREATED = "helpdesk_notifications_created_total"
ARTICLE_VOTES = "helpdesk_article_votes_total"
REQUEST_DURATION = "helpdesk_request_duration_seconds"


@dataclass(frozen=True)
class MetricDefinition:
    """Describe a metric that should exist in the registry."""

    name: str
    metric_type: str
    description: str
    label_names: Tuple[str, ...] = ()


DEFAULT_METRIC_DEFINITIONS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name=TICKETS_CREATED,
        metric_type="counter",
        description="Tickets created, by priority.",
        label_names=("priority",),
    ),
    MetricDefinition(
        name=TICKET_CLAIMS,
        metric_type="counter",
        description="Take-ticket attempts, by outcome (claimed or conflict).",
        label_names=("outcome",),
    ),
    MetricDefinition(
        name=TICKET_STATUS_CHANGES,
        metric_type="counter",
        description="Ticket status changes, split into forward moves and manual overrides.",
        label_names=("transition",),
    ),
    MetricDefinition(
        name=COMMENTS_CREATED,
        metric_type="counter",
        description="Ticket comments created, by visibility.",
        label_names=("visibility",),
    ),
    MetricDefinition(
        name=NOTIFICATIONS_CREATED,
        metric_type="counter",
        description="Notifications created by the dispatcher, by type.",
        label_names=("type",),
    ),
    MetricDefinition(
        name=ARTICLE_VOTES,
        metric_type="counter",
        description="Knowledge base votes, by outcome (accepted or rejected).",
        label_names=("outcome",),
    ),
    MetricDefinition(
        name=REQUEST_DURATION,
        metric_type="distribution",
        description="HTTP request handling time in seconds.",
        label_names=("route",),
    ),
)
