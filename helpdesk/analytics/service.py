"""Admin reporting over tickets, users and the knowledge base."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum

from helpdesk.tickets.state import TicketPriority, TicketStatus
from helpdesk.users.models import STAFF_ROLES, Role
from helpdesk.users.repository import UserRepository

from .repository import AnalyticsRepository

logger = logging.getLogger(__name__)

TOP_CATEGORY_LIMIT = 5
RECENT_ACTIVITY_LIMIT = 10
DAILY_WINDOW_DAYS = 7


class ReportRange(str, Enum):
    LAST_WEEK = "7d"
    LAST_MONTH = "30d"
    LAST_QUARTER = "90d"
    LAST_YEAR = "1y"

    @classmethod
    def parse(cls, value: str | None, default: "ReportRange | None" = None) -> "ReportRange":
        try:
            return cls(value)
        except ValueError:
            return default or cls.LAST_MONTH

    def since(self, now: datetime) -> datetime:
        days = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}[self.value]
        return now - timedelta(days=days)


@dataclass(slots=True)
class TicketStats:
    total: int
    by_status: dict[str, int]
    by_priority: dict[str, int]


@dataclass(slots=True)
class UserStats:
    total: int
    active: int
    pending: int
    by_role: dict[str, int]


@dataclass(slots=True)
class CategoryStat:
    category: str
    ticket_count: int
    percentage: float


@dataclass(slots=True)
class SupportMemberStat:
    user_id: str
    full_name: str
    role: Role
    assigned: int
    resolved: int
    efficiency: float


@dataclass(slots=True)
class KnowledgeStats:
    published_articles: int
    total_views: int
    helpful_votes: int
    not_helpful_votes: int


@dataclass(slots=True)
class DailyActivity:
    day: date
    created: int
    resolved: int


@dataclass(slots=True)
class RecentActivity:
    ticket_id: str
    title: str
    status: TicketStatus
    updated_at: datetime


@dataclass(slots=True)
class AnalyticsReport:
    range: ReportRange
    since: datetime
    generated_at: datetime
    tickets: TicketStats
    users: UserStats
    knowledge_base: KnowledgeStats
    top_categories: list[CategoryStat] = field(default_factory=list)
    support_team: list[SupportMemberStat] = field(default_factory=list)
    daily: list[DailyActivity] = field(default_factory=list)
    recent_activity: list[RecentActivity] = field(default_factory=list)


def _percentage(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 1)


class AnalyticsService:
    def __init__(
        self,
        repository: AnalyticsRepository,
        users: UserRepository,
        *,
        default_range: ReportRange = ReportRange.LAST_MONTH,
    ) -> None:
        self.repository = repository
        self.users = users
        self.default_range = default_range

    async def build_report(self, time_range: str | None = None, *, now: datetime | None = None) -> AnalyticsReport:
        report_range = ReportRange.parse(time_range, self.default_range)
        now = now or datetime.now(timezone.utc)
        since = report_range.since(now)

        by_status = await self.repository.ticket_counts_by("status", since=since)
        by_priority = await self.repository.ticket_counts_by("priority", since=since)
        total = sum(by_status.values())
        tickets = TicketStats(
            total=total,
            by_status={status.value: by_status.get(status.value, 0) for status in TicketStatus},
            by_priority={priority.value: by_priority.get(priority.value, 0) for priority in TicketPriority},
        )

        user_total, active, by_role = await self.repository.user_counts()
        users = UserStats(
            total=user_total,
            active=active,
            pending=await self.repository.pending_count(),
            by_role={role.value: by_role.get(role.value, 0) for role in Role},
        )

        top_categories = [
            CategoryStat(category=category, ticket_count=count, percentage=_percentage(count, total))
            for category, count in await self.repository.top_categories(since=since, limit=TOP_CATEGORY_LIMIT)
        ]

        articles, views, helpful, not_helpful = await self.repository.knowledge_totals()
        recent = await self.repository.recently_updated(RECENT_ACTIVITY_LIMIT)
        report = AnalyticsReport(
            range=report_range,
            since=since,
            generated_at=now,
            tickets=tickets,
            users=users,
            knowledge_base=KnowledgeStats(
                published_articles=articles,
                total_views=views,
                helpful_votes=helpful,
                not_helpful_votes=not_helpful,
            ),
            top_categories=top_categories,
            support_team=await self._support_team(since),
            daily=await self._daily_activity(now),
            recent_activity=[
                RecentActivity(ticket_id=ticket_id, title=title, status=TicketStatus(status), updated_at=updated_at)
                for ticket_id, title, status, updated_at in recent
            ],
        )
        logger.debug("Analytics report built for %s: %d tickets", report_range.value, total)
        return report

    async def _support_team(self, since: datetime) -> list[SupportMemberStat]:
        counts = await self.repository.assignment_counts(since=since)
        team = []
        for member in await self.users.list_by_roles(sorted(STAFF_ROLES, key=lambda role: role.value)):
            assigned, resolved = counts.get(member.id, (0, 0))
            team.append(
                SupportMemberStat(
                    user_id=member.id,
                    full_name=member.full_name,
                    role=member.role,
                    assigned=assigned,
                    resolved=resolved,
                    efficiency=_percentage(resolved, assigned),
                )
            )
        team.sort(key=lambda item: (-item.resolved, item.full_name))
        return team

    async def _daily_activity(self, now: datetime) -> list[DailyActivity]:
        today = now.date()
        days = [today - timedelta(days=offset) for offset in range(DAILY_WINDOW_DAYS - 1, -1, -1)]
        start = datetime.combine(days[0], datetime.min.time(), tzinfo=timezone.utc)
        created: dict[date, int] = {day: 0 for day in days}
        resolved: dict[date, int] = {day: 0 for day in days}
        for stamp in await self.repository.created_since(start):
            day = stamp.astimezone(timezone.utc).date()
            if day in created:
                created[day] += 1
        for stamp in await self.repository.resolved_since(start):
            day = stamp.astimezone(timezone.utc).date()
            if day in resolved:
                resolved[day] += 1
        return [DailyActivity(day=day, created=created[day], resolved=resolved[day]) for day in days]
