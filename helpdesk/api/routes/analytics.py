from __future__ import annotations

from datetime import date, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict

from helpdesk.analytics.service import AnalyticsService, ReportRange
from helpdesk.api.schemas import Envelope, wrap
from helpdesk.dependencies.auth import AdminUser
from helpdesk.dependencies.services import get_analytics_service
from helpdesk.tickets.state import TicketStatus
from helpdesk.users.models import Role

router = APIRouter(prefix="/analytics", tags=["analytics"])


class _FromAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class TicketStatsResponse(_FromAttributes):
    total: int
    by_status: dict[str, int]
    by_priority: dict[str, int]


class UserStatsResponse(_FromAttributes):
    total: int
    active: int
    pending: int
    by_role: dict[str, int]


class CategoryStatResponse(_FromAttributes):
    category: str
    ticket_count: int
    percentage: float


class SupportMemberResponse(_FromAttributes):
    user_id: str
    full_name: str
    role: Role
    assigned: int
    resolved: int
    efficiency: float


class KnowledgeStatsResponse(_FromAttributes):
    published_articles: int
    total_views: int
    helpful_votes: int
    not_helpful_votes: int


class DailyActivityResponse(_FromAttributes):
    day: date
    created: int
    resolved: int


class RecentActivityResponse(_FromAttributes):
    ticket_id: str
    title: str
    status: TicketStatus
    updated_at: datetime


class AnalyticsResponse(_FromAttributes):
    range: ReportRange
    since: datetime
    generated_at: datetime
    tickets: TicketStatsResponse
    users: UserStatsResponse
    knowledge_base: KnowledgeStatsResponse
    top_categories: list[CategoryStatResponse]
    support_team: list[SupportMemberResponse]
    daily: list[DailyActivityResponse]
    recent_activity: list[RecentActivityResponse]


AnalyticsServiceDep = Annotated[AnalyticsService, Depends(get_analytics_service)]


@router.get("", response_model=Envelope[AnalyticsResponse])
async def get_analytics(
    _: AdminUser,
    service: AnalyticsServiceDep,
    time_range: str | None = Query(default=None, alias="range", description="7d, 30d, 90d or 1y"),
) -> dict:
    report = await service.build_report(time_range)
    return wrap(AnalyticsResponse.model_validate(report))
