from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field

from helpdesk.api.schemas import Envelope, StatusPayload, wrap
from helpdesk.dependencies.auth import AdminUser, CurrentUser, StaffUser
from helpdesk.dependencies.services import get_ticket_service
from helpdesk.tickets.models import Ticket, TicketComment
from helpdesk.tickets.service import TicketService
from helpdesk.tickets.state import TicketPriority, TicketStatus

router = APIRouter(prefix="/tickets", tags=["tickets"])


class TicketCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    priority: TicketPriority
    category: str | None = Field(default=None, max_length=100)
    client_id: str | None = None


class TicketUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, max_length=255)
    description: str | None = None
    category: str | None = Field(default=None, max_length=100)
    status: TicketStatus | None = None
    priority: TicketPriority | None = None
    assignee_id: str | None = None


class CommentCreateRequest(BaseModel):
    content: str
    is_internal: bool = False


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    author_id: str
    content: str
    is_internal: bool
    created_at: datetime


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: str
    status: TicketStatus
    priority: TicketPriority
    category: str
    client_id: str
    assignee_id: str | None
    created_at: datetime
    updated_at: datetime
    resolved_at: datetime | None
    closed_at: datetime | None
    comments: list[CommentResponse] = Field(default_factory=list)


TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


def _to_comment_response(comment: TicketComment) -> CommentResponse:
    return CommentResponse.model_validate(comment)


@router.get("", response_model=Envelope[list[TicketResponse]])
async def list_tickets(
    user: CurrentUser,
    service: TicketServiceDep,
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    priority: TicketPriority | None = Query(default=None),
    assignee: str | None = Query(default=None, description="User id or 'unassigned'"),
    search: str | None = Query(default=None, max_length=200),
) -> dict:
    tickets = await service.list_tickets(
        user, status=status_filter, priority=priority, assignee=assignee, search=search
    )
    return wrap([_to_response(ticket) for ticket in tickets])


@router.post("", response_model=Envelope[TicketResponse], status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketCreateRequest, user: CurrentUser, service: TicketServiceDep) -> dict:
    ticket = await service.create_ticket(
        user,
        title=payload.title,
        description=payload.description,
        priority=payload.priority,
        category=payload.category,
        client_id=payload.client_id,
    )
    return wrap(_to_response(ticket))


@router.get("/{ticket_id}", response_model=Envelope[TicketResponse])
async def get_ticket(ticket_id: str, user: CurrentUser, service: TicketServiceDep) -> dict:
    return wrap(_to_response(await service.get_ticket(user, ticket_id)))


@router.put("/{ticket_id}", response_model=Envelope[TicketResponse])
async def update_ticket(
    ticket_id: str,
    payload: TicketUpdateRequest,
    user: StaffUser,
    service: TicketServiceDep,
) -> dict:
    ticket = await service.update_ticket(user, ticket_id, payload.model_dump(exclude_unset=True))
    return wrap(_to_response(ticket))


@router.post("/{ticket_id}/take", response_model=Envelope[TicketResponse])
async def take_ticket(ticket_id: str, user: StaffUser, service: TicketServiceDep) -> dict:
    return wrap(_to_response(await service.take_ticket(user, ticket_id)))


@router.delete("/{ticket_id}", response_model=Envelope[StatusPayload])
async def delete_ticket(ticket_id: str, user: AdminUser, service: TicketServiceDep) -> dict:
    await service.delete_ticket(user, ticket_id)
    return wrap(StatusPayload(status="deleted"))


@router.post(
    "/{ticket_id}/comments",
    response_model=Envelope[CommentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    ticket_id: str,
    payload: CommentCreateRequest,
    user: CurrentUser,
    service: TicketServiceDep,
) -> dict:
    comment = await service.add_comment(user, ticket_id, content=payload.content, is_internal=payload.is_internal)
    return wrap(_to_comment_response(comment))
