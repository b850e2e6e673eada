from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request

from helpdesk.analytics.service import AnalyticsService
from helpdesk.knowledge.service import KnowledgeBaseService
from helpdesk.notifications.dispatcher import NotificationDispatcher
from helpdesk.tickets.service import TicketService
from helpdesk.users.service import UserService


def _from_state(request: Request, attribute: str, label: str) -> Any:
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"{label} is not configured")
    return service


async def get_user_service(request: Request) -> UserService:
    return _from_state(request, "user_service", "User service")


async def get_ticket_service(request: Request) -> TicketService:
    return _from_state(request, "ticket_service", "Ticket service")


async def get_knowledge_service(request: Request) -> KnowledgeBaseService:
    return _from_state(request, "knowledge_service", "Knowledge base service")


async def get_notification_dispatcher(request: Request) -> NotificationDispatcher:
    return _from_state(request, "notification_dispatcher", "Notification service")


async def get_analytics_service(request: Request) -> AnalyticsService:
    return _from_state(request, "analytics_service", "Analytics service")
