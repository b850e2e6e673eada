"""Database models and utilities."""

from .models import (
    ArticleVoteTable,
    KnowledgeArticleTable,
    NotificationTable,
    PendingUserTable,
    TicketCommentTable,
    TicketTable,
    UserSessionTable,
    UserTable,
)

__all__ = [
    "ArticleVoteTable",
    "KnowledgeArticleTable",
    "NotificationTable",
    "PendingUserTable",
    "TicketCommentTable",
    "TicketTable",
    "UserSessionTable",
    "UserTable",
]
