from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class VoteChoice(str, Enum):
    HELPFUL = "helpful"
    NOT_HELPFUL = "not_helpful"

    @classmethod
    def from_flag(cls, is_helpful: bool) -> "VoteChoice":
        return cls.HELPFUL if is_helpful else cls.NOT_HELPFUL


@dataclass(slots=True)
class Article:
    """A knowledge base article with its view and vote counters."""

    id: str
    title: str
    content: str
    category: str
    author_id: str
    is_published: bool
    views: int
    helpful_count: int
    not_helpful_count: int
    created_at: datetime
    updated_at: datetime
    tags: list[str] = field(default_factory=list)
    published_at: datetime | None = None


@dataclass(slots=True)
class VoteResult:
    """Outcome of a vote; ``accepted`` is False when the user had already voted."""

    accepted: bool
    article: Article
    vote: VoteChoice
