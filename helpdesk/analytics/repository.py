from __future__ import annotations

from datetime import datetime

from sqlalchemy import case, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import col, select

from helpdesk.core.database import ensure_datetime
from helpdesk.tickets.state import TicketStatus
from packages.db.models import KnowledgeArticleTable, PendingUserTable, TicketTable, UserTable

_DONE_STATUSES = (TicketStatus.RESOLVED.value, TicketStatus.CLOSED.value)


class AnalyticsRepository:
    """Read-only aggregate queries behind the admin report."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def ticket_counts_by(self, field: str, *, since: datetime) -> dict[str, int]:
        column = getattr(TicketTable, field)
        async with self._session_factory() as session:
            result = await session.execute(
                select(column, func.count())
                .where(col(TicketTable.created_at) >= since)
                .group_by(column)
            )
            return {str(key): int(count) for key, count in result.all()}

    async def top_categories(self, *, since: datetime, limit: int) -> list[tuple[str, int]]:
        count = func.count().label("ticket_count")
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketTable.category, count)
                .where(col(TicketTable.created_at) >= since)
                .group_by(TicketTable.category)
                .order_by(count.desc(), col(TicketTable.category).asc())
                .limit(limit)
            )
            return [(str(category), int(total)) for category, total in result.all()]

    async def assignment_counts(self, *, since: datetime) -> dict[str, tuple[int, int]]:
        """Per assignee: tickets assigned and tickets resolved or closed, created since ``since``."""

        resolved = func.sum(case((col(TicketTable.status).in_(_DONE_STATUSES), 1), else_=0))
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketTable.assignee_id, func.count(), resolved)
                .where(col(TicketTable.created_at) >= since, col(TicketTable.assignee_id).is_not(None))
                .group_by(TicketTable.assignee_id)
            )
            return {str(assignee): (int(total), int(done or 0)) for assignee, total, done in result.all()}

    async def user_counts(self) -> tuple[int, int, dict[str, int]]:
        """Return total users, active users and users per role."""

        async with self._session_factory() as session:
            per_role = await session.execute(select(UserTable.role, func.count()).group_by(UserTable.role))
            active = await session.execute(
                select(func.count()).select_from(UserTable).where(UserTable.is_active == True)  # noqa: E712
            )
            by_role = {str(role): int(count) for role, count in per_role.all()}
            return sum(by_role.values()), int(active.scalar_one()), by_role

    async def pending_count(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count()).select_from(PendingUserTable))
            return int(result.scalar_one())

    async def knowledge_totals(self) -> tuple[int, int, int, int]:
        """Published articles, their views, helpful votes and not-helpful votes."""

        async with self._session_factory() as session:
            result = await session.execute(
                select(
                    func.count(),
                    func.coalesce(func.sum(KnowledgeArticleTable.views), 0),
                    func.coalesce(func.sum(KnowledgeArticleTable.helpful_count), 0),
                    func.coalesce(func.sum(KnowledgeArticleTable.not_helpful_count), 0),
                ).where(KnowledgeArticleTable.is_published == True)  # noqa: E712
            )
            articles, views, helpful, not_helpful = result.one()
            return int(articles), int(views), int(helpful), int(not_helpful)

    async def created_since(self, since: datetime) -> list[datetime]:
        async with self._session_factory() as session:
            result = await session.execute(select(TicketTable.created_at).where(col(TicketTable.created_at) >= since))
            return [ensure_datetime(value) for value in result.scalars().all()]

    async def resolved_since(self, since: datetime) -> list[datetime]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketTable.resolved_at).where(col(TicketTable.resolved_at) >= since)
            )
            return [ensure_datetime(value) for value in result.scalars().all()]

    async def recently_updated(self, limit: int) -> list[tuple[str, str, str, datetime]]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketTable.id, TicketTable.title, TicketTable.status, TicketTable.updated_at)
                .order_by(col(TicketTable.updated_at).desc())
                .limit(limit)
            )
            return [(row.id, row.title, row.status, ensure_datetime(row.updated_at)) for row in result.all()]
