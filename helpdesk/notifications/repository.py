from __future__ import annotations

from typing import Sequence

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import col, select

from helpdesk.core.database import ensure_datetime
from packages.db.models import NotificationTable

from .models import Notification, NotificationEvent, NotificationType


class NotificationRepository:
    """Storage for notification records and their read flags."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_for_event(self, event: NotificationEvent) -> list[Notification]:
        rows = [
            NotificationTable(
                user_id=recipient,
                type=event.type.value,
                title=event.title,
                message=event.message,
                related_id=event.related_id,
            )
            for recipient in event.addressees()
        ]
        if not rows:
            return []
        async with self._session_factory() as session:
            async with session.begin():
                session.add_all(rows)
            return [self._table_to_notification(row) for row in rows]

    async def get(self, notification_id: str) -> Notification | None:
        async with self._session_factory() as session:
            row = await session.get(NotificationTable, notification_id)
            return self._table_to_notification(row) if row is not None else None

    async def list_for(
        self,
        recipients: Sequence[str],
        *,
        unread_only: bool = False,
        limit: int | None = None,
    ) -> list[Notification]:
        query = select(NotificationTable).where(col(NotificationTable.user_id).in_(list(recipients)))
        if unread_only:
            query = query.where(NotificationTable.is_read == False)  # noqa: E712
        query = query.order_by(col(NotificationTable.created_at).desc())
        if limit is not None:
            query = query.limit(limit)
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [self._table_to_notification(row) for row in result.scalars().all()]

    async def count_unread(self, recipients: Sequence[str]) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(NotificationTable)
                .where(
                    col(NotificationTable.user_id).in_(list(recipients)),
                    NotificationTable.is_read == False,  # noqa: E712
                )
            )
            return int(result.scalar_one())

    async def mark_read(self, notification_id: str) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    update(NotificationTable)
                    .where(col(NotificationTable.id) == notification_id)
                    .values(is_read=True)
                )

    async def mark_all_read(self, recipients: Sequence[str]) -> int:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(NotificationTable)
                    .where(
                        col(NotificationTable.user_id).in_(list(recipients)),
                        col(NotificationTable.is_read) == False,  # noqa: E712
                    )
                    .values(is_read=True)
                )
                return int(result.rowcount or 0)

    @staticmethod
    def _table_to_notification(row: NotificationTable) -> Notification:
        return Notification(
            id=row.id,
            user_id=row.user_id,
            type=NotificationType(row.type),
            title=row.title,
            message=row.message,
            related_id=row.related_id,
            is_read=bool(row.is_read),
            created_at=ensure_datetime(row.created_at),
        )
