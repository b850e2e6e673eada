from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy import delete, func, literal, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import col, select

from helpdesk.core.database import ensure_datetime
from helpdesk.errors import InternalError
from packages.db.models import TicketCommentTable, TicketTable

from .models import DEFAULT_CATEGORY, UNASSIGNED, Ticket, TicketComment, TicketFilter
from .state import TicketPriority, TicketStateMachine, TicketStatus

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset(
    {"title", "description", "category", "status", "priority", "assignee_id", "resolved_at", "closed_at"}
)
_SET_ONCE_FIELDS = frozenset({"resolved_at", "closed_at"})


class TicketRepository:
    """Data access layer for tickets and their comments."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, max_id_attempts: int = 5) -> None:
        self._session_factory = session_factory
        self.max_id_attempts = max_id_attempts

    async def create_ticket(
        self,
        *,
        title: str,
        description: str,
        priority: TicketPriority,
        client_id: str,
        category: str = DEFAULT_CATEGORY,
        status: TicketStatus = TicketStatus.NEW,
    ) -> Ticket:
        created_at = datetime.now(timezone.utc)
        prefix = f"TK-{created_at.year}-"
        for attempt in range(1, self.max_id_attempts + 1):
            async with self._session_factory() as session:
                ticket_id = await self._next_ticket_id(session, prefix)
                row = TicketTable(
                    id=ticket_id,
                    title=title,
                    description=description,
                    status=status.value,
                    priority=priority.value,
                    category=category,
                    client_id=client_id,
                    assignee_id=None,
                    created_at=created_at,
                    updated_at=created_at,
                )
                session.add(row)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    logger.debug("Ticket id %s already taken (attempt %d)", ticket_id, attempt)
                    continue
                return self._table_to_ticket(row)
        raise InternalError(f"Could not allocate a ticket id after {self.max_id_attempts} attempts")

    async def get_ticket(self, ticket_id: str, *, include_internal: bool = True) -> Ticket | None:
        async with self._session_factory() as session:
            row = await session.get(TicketTable, ticket_id)
            if row is None:
                return None
            comments = await self._load_comments(session, ticket_id, include_internal=include_internal)
            return self._table_to_ticket(row, comments)

    async def list_tickets(self, filters: TicketFilter | None = None) -> list[Ticket]:
        filters = filters or TicketFilter()
        query = select(TicketTable)
        if filters.client_id is not None:
            query = query.where(TicketTable.client_id == filters.client_id)
        if filters.status is not None:
            query = query.where(TicketTable.status == filters.status.value)
        if filters.priority is not None:
            query = query.where(TicketTable.priority == filters.priority.value)
        if filters.assignee == UNASSIGNED:
            query = query.where(col(TicketTable.assignee_id).is_(None))
        elif filters.assignee:
            query = query.where(TicketTable.assignee_id == filters.assignee)
        if filters.search:
            needle = filters.search.strip()
            query = query.where(
                or_(
                    col(TicketTable.title).icontains(needle, autoescape=True),
                    col(TicketTable.id).icontains(needle, autoescape=True),
                    col(TicketTable.description).icontains(needle, autoescape=True),
                )
            )
        async with self._session_factory() as session:
            result = await session.execute(query.order_by(col(TicketTable.created_at).desc()))
            return [self._table_to_ticket(row) for row in result.scalars().all()]

    async def update_ticket(self, ticket_id: str, changes: Mapping[str, Any]) -> Ticket | None:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported ticket fields: {sorted(unknown)}")
        values: dict[str, Any] = {
            name: value.value if isinstance(value, (TicketStatus, TicketPriority)) else value
            for name, value in changes.items()
        }
        # lifecycle timestamps keep whichever value reached the row first
        for name in _SET_ONCE_FIELDS.intersection(values):
            column = TicketTable.__table__.c[name]
            values[name] = func.coalesce(column, literal(values[name], column.type))
        values["updated_at"] = datetime.now(timezone.utc)
        statement = (
            update(TicketTable)
            .where(col(TicketTable.id) == ticket_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            result = await session.execute(statement)
            await session.commit()
            if result.rowcount != 1:
                return None
            row = await session.get(TicketTable, ticket_id)
            if row is None:
                return None
            comments = await self._load_comments(session, ticket_id)
            return self._table_to_ticket(row, comments)

    async def claim_ticket(self, ticket_id: str, assignee_id: str) -> bool:
        """Assign an unassigned ``new`` ticket and move it to ``in_progress``.

        The row only changes while it is still unclaimed, so of two concurrent callers
        exactly one sees ``True``.
        """

        statement = (
            update(TicketTable)
            .where(
                col(TicketTable.id) == ticket_id,
                col(TicketTable.assignee_id).is_(None),
                col(TicketTable.status) == TicketStateMachine.claimable_status().value,
            )
            .values(
                assignee_id=assignee_id,
                status=TicketStateMachine.claimed_status().value,
                updated_at=datetime.now(timezone.utc),
            )
        )
        async with self._session_factory() as session:
            result = await session.execute(statement)
            await session.commit()
            return result.rowcount == 1

    async def delete_ticket(self, ticket_id: str) -> bool:
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(delete(TicketCommentTable).where(TicketCommentTable.ticket_id == ticket_id))
                result = await session.execute(delete(TicketTable).where(TicketTable.id == ticket_id))
                return result.rowcount == 1

    async def add_comment(
        self,
        *,
        ticket_id: str,
        author_id: str,
        content: str,
        is_internal: bool,
    ) -> TicketComment | None:
        now = datetime.now(timezone.utc)
        async with self._session_factory() as session:
            async with session.begin():
                touched = await session.execute(
                    update(TicketTable).where(col(TicketTable.id) == ticket_id).values(updated_at=now)
                )
                if touched.rowcount != 1:
                    return None
                row = TicketCommentTable(
                    ticket_id=ticket_id,
                    author_id=author_id,
                    content=content,
                    is_internal=is_internal,
                    created_at=now,
                )
                session.add(row)
            return self._table_to_comment(row)

    async def _load_comments(
        self, session: AsyncSession, ticket_id: str, *, include_internal: bool = True
    ) -> list[TicketComment]:
        query = select(TicketCommentTable).where(TicketCommentTable.ticket_id == ticket_id)
        if not include_internal:
            query = query.where(TicketCommentTable.is_internal == False)  # noqa: E712
        result = await session.execute(query.order_by(col(TicketCommentTable.created_at).asc()))
        return [self._table_to_comment(row) for row in result.scalars().all()]

    @staticmethod
    async def _next_ticket_id(session: AsyncSession, prefix: str) -> str:
        result = await session.execute(
            select(TicketTable.id)
            .where(col(TicketTable.id).startswith(prefix))
            .order_by(func.length(TicketTable.id).desc(), col(TicketTable.id).desc())
            .limit(1)
        )
        last = result.scalars().first()
        sequence = int(last.rsplit("-", 1)[1]) + 1 if last else 1
        return f"{prefix}{sequence:04d}"

    @staticmethod
    def _table_to_ticket(row: TicketTable, comments: list[TicketComment] | None = None) -> Ticket:
        return Ticket(
            id=row.id,
            title=row.title,
            description=row.description,
            status=TicketStatus(row.status),
            priority=TicketPriority(row.priority),
            category=row.category,
            client_id=row.client_id,
            assignee_id=row.assignee_id,
            created_at=ensure_datetime(row.created_at),
            updated_at=ensure_datetime(row.updated_at),
            resolved_at=ensure_datetime(row.resolved_at) if row.resolved_at else None,
            closed_at=ensure_datetime(row.closed_at) if row.closed_at else None,
            comments=list(comments or []),
        )

    @staticmethod
    def _table_to_comment(row: TicketCommentTable) -> TicketComment:
        return TicketComment(
            id=row.id,
            ticket_id=row.ticket_id,
            author_id=row.author_id,
            content=row.content,
            is_internal=bool(row.is_internal),
            created_at=ensure_datetime(row.created_at),
        )
