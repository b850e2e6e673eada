from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from helpdesk.errors import ArticleNotFoundError, ForbiddenError, ValidationError, require_fields
from helpdesk.metrics import MetricsRegistry, metrics_registry
from helpdesk.metrics.definitions import ARTICLE_VOTES
from helpdesk.notifications.dispatcher import NotificationDispatcher
from helpdesk.users.models import Principal

from .models import Article, VoteChoice, VoteResult
from .repository import ArticleRepository

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("title", "content", "category", "tags", "is_published")


def _clean_tags(tags: Any) -> list[str]:
    if not tags:
        return []
    return [str(tag).strip() for tag in tags if str(tag).strip()]


@dataclass(slots=True)
class KnowledgeBaseService:
    repository: ArticleRepository
    dispatcher: NotificationDispatcher | None = None
    registry: MetricsRegistry = field(default_factory=lambda: metrics_registry)

    async def list_articles(
        self,
        actor: Principal,
        *,
        search: str | None = None,
        category: str | None = None,
        include_drafts: bool = False,
    ) -> list[Article]:
        return await self.repository.list_articles(
            search=search.strip() if search and search.strip() else None,
            category=category or None,
            published_only=not (include_drafts and actor.is_staff),
        )

    async def get_article(self, actor: Principal, article_id: str) -> Article:
        """Return an article for its detail page, counting the view."""

        article = await self.repository.get_article(article_id)
        if article is None or (not article.is_published and not actor.is_staff):
            raise ArticleNotFoundError()
        viewed = await self.repository.increment_views(article_id)
        if viewed is None:
            raise ArticleNotFoundError()
        return viewed

    async def create_article(
        self,
        actor: Principal,
        *,
        title: str | None,
        content: str | None,
        category: str | None,
        tags: Any = None,
        is_published: bool = False,
    ) -> Article:
        if not actor.is_staff:
            raise ForbiddenError("Only support staff can write articles")
        require_fields(
            {"title": title, "content": content, "category": category}, ("title", "content", "category")
        )
        article = await self.repository.create_article(
            title=str(title).strip(),
            content=str(content),
            category=str(category).strip(),
            author_id=actor.id,
            tags=_clean_tags(tags),
            is_published=bool(is_published),
        )
        logger.info("Article %s created by %s (published=%s)", article.id, actor.id, article.is_published)
        if article.is_published and self.dispatcher is not None:
            await self.dispatcher.article_published(article, actor_id=actor.id)
        return article

    async def update_article(self, actor: Principal, article_id: str, changes: Mapping[str, Any]) -> Article:
        current = await self._editable(actor, article_id)
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(
                "Unknown article fields", fields={name: ["Field cannot be updated"] for name in sorted(unknown)}
            )

        updates: dict[str, Any] = {}
        for name in ("title", "content", "category"):
            if name in changes:
                value = changes[name]
                if value is None or not str(value).strip():
                    raise ValidationError(
                        f"{name.capitalize()} cannot be empty", fields={name: ["This field is required"]}
                    )
                updates[name] = str(value) if name == "content" else str(value).strip()
        if "tags" in changes:
            updates["tags"] = _clean_tags(changes["tags"])
        if changes.get("is_published") is not None:
            updates["is_published"] = bool(changes["is_published"])
            if updates["is_published"] and current.published_at is None:
                updates["published_at"] = datetime.now(timezone.utc)
        if not updates:
            raise ValidationError("No fields provided for update")

        article = await self.repository.update_article(article_id, updates)
        if article is None:
            raise ArticleNotFoundError()
        if "published_at" in updates and self.dispatcher is not None:
            await self.dispatcher.article_published(article, actor_id=actor.id)
        return article

    async def delete_article(self, actor: Principal, article_id: str) -> None:
        await self._editable(actor, article_id)
        if not await self.repository.delete_article(article_id):
            raise ArticleNotFoundError()
        logger.info("Article %s deleted by %s", article_id, actor.id)

    async def vote(self, actor: Principal, article_id: str, *, is_helpful: bool) -> VoteResult:
        """Record a one-time helpfulness vote.

        A repeated vote is not an error here: it comes back with ``accepted=False`` and
        the article's counters untouched.
        """

        article = await self.repository.get_article(article_id)
        if article is None or not article.is_published:
            raise ArticleNotFoundError()

        choice = VoteChoice.from_flag(is_helpful)
        votes = self.registry.counter(ARTICLE_VOTES)
        stored = await self.repository.get_vote(article_id, actor.id)
        accepted = stored is None and await self.repository.record_vote(article_id, actor.id, choice)
        if not accepted:
            votes.inc(labels={"outcome": "rejected"})
            logger.warning("Repeated vote by %s on article %s rejected", actor.id, article_id)
            if stored is None:
                # lost a concurrent race; report the vote that won
                stored = await self.repository.get_vote(article_id, actor.id)
        else:
            votes.inc(labels={"outcome": "accepted"})

        refreshed = await self.repository.get_article(article_id)
        if refreshed is None:
            raise ArticleNotFoundError()
        return VoteResult(accepted=accepted, article=refreshed, vote=choice if accepted else stored or choice)

    async def categories(self) -> list[str]:
        return await self.repository.categories()

    async def _editable(self, actor: Principal, article_id: str) -> Article:
        if not actor.is_staff:
            raise ForbiddenError("Only support staff can change articles")
        article = await self.repository.get_article(article_id)
        if article is None:
            raise ArticleNotFoundError()
        if article.author_id != actor.id and not actor.is_admin:
            raise ForbiddenError("Only the author or an administrator can change this article")
        return article
