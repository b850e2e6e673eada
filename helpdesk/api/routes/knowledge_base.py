from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from helpdesk.api.schemas import Envelope, StatusPayload, wrap
from helpdesk.dependencies.auth import CurrentUser, StaffUser
from helpdesk.dependencies.services import get_knowledge_service
from helpdesk.errors import ConflictError
from helpdesk.knowledge.models import Article, VoteChoice
from helpdesk.knowledge.service import KnowledgeBaseService

router = APIRouter(prefix="/knowledge-base", tags=["knowledge-base"])


class ArticleCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1, max_length=100)
    tags: list[str] = Field(default_factory=list)
    is_published: bool = False


class ArticleUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, max_length=255)
    content: str | None = None
    category: str | None = Field(default=None, max_length=100)
    tags: list[str] | None = None
    is_published: bool | None = None


class VoteRequest(BaseModel):
    is_helpful: bool


class ArticleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    content: str
    category: str
    tags: list[str]
    author_id: str
    is_published: bool
    views: int
    helpful_count: int
    not_helpful_count: int
    created_at: datetime
    updated_at: datetime
    published_at: datetime | None


class VoteResponse(BaseModel):
    vote: VoteChoice
    article: ArticleResponse


KnowledgeServiceDep = Annotated[KnowledgeBaseService, Depends(get_knowledge_service)]


def _to_response(article: Article) -> ArticleResponse:
    return ArticleResponse.model_validate(article)


@router.get("", response_model=Envelope[list[ArticleResponse]])
async def list_articles(
    user: CurrentUser,
    service: KnowledgeServiceDep,
    search: str | None = Query(default=None, max_length=200),
    category: str | None = Query(default=None),
    include_drafts: bool = Query(default=False),
) -> dict:
    articles = await service.list_articles(user, search=search, category=category, include_drafts=include_drafts)
    return wrap([_to_response(article) for article in articles])


@router.get("/categories", response_model=Envelope[list[str]])
async def list_categories(_: CurrentUser, service: KnowledgeServiceDep) -> dict:
    return wrap(await service.categories())


@router.post("", response_model=Envelope[ArticleResponse], status_code=status.HTTP_201_CREATED)
async def create_article(payload: ArticleCreateRequest, user: StaffUser, service: KnowledgeServiceDep) -> dict:
    article = await service.create_article(
        user,
        title=payload.title,
        content=payload.content,
        category=payload.category,
        tags=payload.tags,
        is_published=payload.is_published,
    )
    return wrap(_to_response(article))


@router.get("/{article_id}", response_model=Envelope[ArticleResponse])
async def get_article(article_id: str, user: CurrentUser, service: KnowledgeServiceDep) -> dict:
    return wrap(_to_response(await service.get_article(user, article_id)))


@router.put("/{article_id}", response_model=Envelope[ArticleResponse])
async def update_article(
    article_id: str,
    payload: ArticleUpdateRequest,
    user: StaffUser,
    service: KnowledgeServiceDep,
) -> dict:
    article = await service.update_article(user, article_id, payload.model_dump(exclude_unset=True))
    return wrap(_to_response(article))


@router.delete("/{article_id}", response_model=Envelope[StatusPayload])
async def delete_article(article_id: str, user: StaffUser, service: KnowledgeServiceDep) -> dict:
    await service.delete_article(user, article_id)
    return wrap(StatusPayload(status="deleted"))


@router.post("/{article_id}/vote", response_model=Envelope[VoteResponse])
async def vote(article_id: str, payload: VoteRequest, user: CurrentUser, service: KnowledgeServiceDep) -> dict:
    result = await service.vote(user, article_id, is_helpful=payload.is_helpful)
    if not result.accepted:
        raise ConflictError("You have already voted for this article")
    return wrap(VoteResponse(vote=result.vote, article=_to_response(result.article)))
