"""Knowledge base articles and the helpfulness vote ledger."""

from .models import Article, VoteChoice, VoteResult
from .repository import ArticleRepository
from .service import KnowledgeBaseService

__all__ = ["Article", "ArticleRepository", "KnowledgeBaseService", "VoteChoice", "VoteResult"]
