from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy import delete, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import col, select

from helpdesk.core.database import ensure_datetime
from packages.db.models import ArticleVoteTable, KnowledgeArticleTable

from .models import Article, VoteChoice

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset({"title", "content", "category", "tags", "is_published", "published_at"})


class ArticleRepository:
    """Articles plus the one-vote-per-user ledger."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_article(
        self,
        *,
        title: str,
        content: str,
        category: str,
        author_id: str,
        tags: list[str] | None = None,
        is_published: bool = False,
    ) -> Article:
        now = datetime.now(timezone.utc)
        row = KnowledgeArticleTable(
            title=title,
            content=content,
            category=category,
            tags=list(tags or []),
            author_id=author_id,
            is_published=is_published,
            published_at=now if is_published else None,
            created_at=now,
            updated_at=now,
        )
        async with self._session_factory() as session:
            async with session.begin():
                session.add(row)
            return self._table_to_article(row)

    async def get_article(self, article_id: str) -> Article | None:
        async with self._session_factory() as session:
            row = await session.get(KnowledgeArticleTable, article_id)
            return self._table_to_article(row) if row is not None else None

    async def list_articles(
        self,
        *,
        search: str | None = None,
        category: str | None = None,
        published_only: bool = True,
    ) -> list[Article]:
        query = select(KnowledgeArticleTable)
        if published_only:
            query = query.where(KnowledgeArticleTable.is_published == True)  # noqa: E712
        if category:
            query = query.where(KnowledgeArticleTable.category == category)
        if search:
            needle = search.strip()
            query = query.where(
                or_(
                    col(KnowledgeArticleTable.title).icontains(needle, autoescape=True),
                    col(KnowledgeArticleTable.content).icontains(needle, autoescape=True),
                    col(KnowledgeArticleTable.category).icontains(needle, autoescape=True),
                )
            )
        async with self._session_factory() as session:
            result = await session.execute(query.order_by(col(KnowledgeArticleTable.updated_at).desc()))
            return [self._table_to_article(row) for row in result.scalars().all()]

    async def update_article(self, article_id: str, changes: Mapping[str, Any]) -> Article | None:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unsupported article fields: {sorted(unknown)}")
        async with self._session_factory() as session:
            row = await session.get(KnowledgeArticleTable, article_id)
            if row is None:
                return None
            for name, value in changes.items():
                setattr(row, name, list(value) if name == "tags" else value)
            row.updated_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(row)
            return self._table_to_article(row)

    async def delete_article(self, article_id: str) -> bool:
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(delete(ArticleVoteTable).where(ArticleVoteTable.article_id == article_id))
                result = await session.execute(
                    delete(KnowledgeArticleTable).where(KnowledgeArticleTable.id == article_id)
                )
                return result.rowcount == 1

    async def increment_views(self, article_id: str) -> Article | None:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(KnowledgeArticleTable)
                    .where(col(KnowledgeArticleTable.id) == article_id)
                    .values(views=col(KnowledgeArticleTable.views) + 1)
                )
                if result.rowcount != 1:
                    return None
            row = await session.get(KnowledgeArticleTable, article_id, populate_existing=True)
            return self._table_to_article(row) if row is not None else None

    async def get_vote(self, article_id: str, user_id: str) -> VoteChoice | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ArticleVoteTable.vote).where(
                    ArticleVoteTable.article_id == article_id,
                    ArticleVoteTable.user_id == user_id,
                )
            )
            value = result.scalars().first()
            return VoteChoice(value) if value is not None else None

    async def record_vote(self, article_id: str, user_id: str, choice: VoteChoice) -> bool:
        """Write the vote and bump its counter in one transaction.

        Returns False when the user already has a vote on the article; the unique
        ``(article_id, user_id)`` constraint settles concurrent attempts.
        """

        counter = "helpful_count" if choice is VoteChoice.HELPFUL else "not_helpful_count"
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(ArticleVoteTable(article_id=article_id, user_id=user_id, vote=choice.value))
                    await session.flush()
                    await session.execute(
                        update(KnowledgeArticleTable)
                        .where(col(KnowledgeArticleTable.id) == article_id)
                        .values({counter: getattr(KnowledgeArticleTable, counter) + 1})
                    )
        except IntegrityError:
            logger.debug("Vote by %s on %s already recorded", user_id, article_id)
            return False
        return True

    async def categories(self) -> list[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(KnowledgeArticleTable.category)
                .where(KnowledgeArticleTable.is_published == True)  # noqa: E712
                .distinct()
                .order_by(col(KnowledgeArticleTable.category).asc())
            )
            return [value for value in result.scalars().all()]

    @staticmethod
    def _table_to_article(row: KnowledgeArticleTable) -> Article:
        return Article(
            id=row.id,
            title=row.title,
            content=row.content,
            category=row.category,
            author_id=row.author_id,
            is_published=bool(row.is_published),
            views=int(row.views or 0),
            helpful_count=int(row.helpful_count or 0),
            not_helpful_count=int(row.not_helpful_count or 0),
            created_at=ensure_datetime(row.created_at),
            updated_at=ensure_datetime(row.updated_at),
            tags=list(row.tags or []),
            published_at=ensure_datetime(row.published_at) if row.published_at else None,
        )
