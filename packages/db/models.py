"""SQLModel table definitions for the helpdesk data layer."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


def _uuid_str() -> str:
    """Generate a random UUID string."""

    return str(uuid.uuid4())


class UserTable(SQLModel, table=True):
    """Application user accounts with their helpdesk role."""

    __tablename__ = "users"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    email: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    first_name: str = Field(sa_column=Column(String(150), nullable=False))
    last_name: str = Field(sa_column=Column(String(150), nullable=False))
    middle_name: str | None = Field(default=None, sa_column=Column(String(150), nullable=True))
    phone: str | None = Field(default=None, sa_column=Column(String(50), nullable=True))
    role: str = Field(sa_column=Column(String(20), nullable=False))
    department: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    position: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    hashed_password: str = Field(sa_column=Column(String(255), nullable=False))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    last_login: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))


class PendingUserTable(SQLModel, table=True):
    """Self-service registrations waiting for an administrator decision."""

    __tablename__ = "pending_users"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    email: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    first_name: str = Field(sa_column=Column(String(150), nullable=False))
    last_name: str = Field(sa_column=Column(String(150), nullable=False))
    middle_name: str | None = Field(default=None, sa_column=Column(String(150), nullable=True))
    phone: str | None = Field(default=None, sa_column=Column(String(50), nullable=True))
    department: str = Field(sa_column=Column(String(255), nullable=False))
    position: str = Field(sa_column=Column(String(255), nullable=False))
    additional_info: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    hashed_password: str = Field(sa_column=Column(String(255), nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class UserSessionTable(SQLModel, table=True):
    """Opaque bearer tokens issued at login."""

    __tablename__ = "user_sessions"

    token: str = Field(primary_key=True)
    user_id: str = Field(
        sa_column=Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    expires_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class TicketTable(SQLModel, table=True):
    """Support tickets raised by clients."""

    __tablename__ = "tickets"

    id: str = Field(primary_key=True, index=True)
    title: str = Field(sa_column=Column(String(255), nullable=False))
    description: str = Field(sa_column=Column(Text, nullable=False))
    status: str = Field(sa_column=Column(String(20), nullable=False, index=True))
    priority: str = Field(sa_column=Column(String(20), nullable=False))
    category: str = Field(sa_column=Column(String(100), nullable=False))
    client_id: str = Field(sa_column=Column(String(36), nullable=False, index=True))
    assignee_id: str | None = Field(default=None, sa_column=Column(String(36), nullable=True, index=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    resolved_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    closed_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))


class TicketCommentTable(SQLModel, table=True):
    """Comments belonging to a ticket, in chronological order."""

    __tablename__ = "ticket_comments"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    )
    author_id: str = Field(sa_column=Column(String(36), nullable=False))
    content: str = Field(sa_column=Column(Text, nullable=False))
    is_internal: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class NotificationTable(SQLModel, table=True):
    """Notifications produced by lifecycle events."""

    __tablename__ = "notifications"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    user_id: str = Field(sa_column=Column(String(36), nullable=False, index=True))
    type: str = Field(sa_column=Column(String(50), nullable=False))
    title: str = Field(sa_column=Column(String(255), nullable=False))
    message: str = Field(sa_column=Column(Text, nullable=False))
    related_id: str | None = Field(default=None, sa_column=Column(String(36), nullable=True))
    is_read: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class KnowledgeArticleTable(SQLModel, table=True):
    """Knowledge base articles with their view and vote counters."""

    __tablename__ = "knowledge_articles"

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    title: str = Field(sa_column=Column(String(255), nullable=False))
    content: str = Field(sa_column=Column(Text, nullable=False))
    category: str = Field(sa_column=Column(String(100), nullable=False))
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    author_id: str = Field(sa_column=Column(String(36), nullable=False))
    is_published: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    views: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    helpful_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    not_helpful_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    published_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class ArticleVoteTable(SQLModel, table=True):
    """One helpfulness vote per user and article."""

    __tablename__ = "article_votes"
    __table_args__ = (UniqueConstraint("article_id", "user_id", name="uq_article_votes_article_user"),)

    id: str = Field(default_factory=_uuid_str, primary_key=True, index=True)
    article_id: str = Field(
        sa_column=Column(String(36), ForeignKey("knowledge_articles.id", ondelete="CASCADE"), nullable=False)
    )
    user_id: str = Field(sa_column=Column(String(36), nullable=False))
    vote: str = Field(sa_column=Column(String(20), nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
