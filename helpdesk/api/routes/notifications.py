from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict

from helpdesk.api.schemas import CountPayload, Envelope, wrap
from helpdesk.dependencies.auth import CurrentUser
from helpdesk.dependencies.services import get_notification_dispatcher
from helpdesk.notifications.dispatcher import NotificationDispatcher
from helpdesk.notifications.models import NotificationType

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    related_id: str | None
    is_read: bool
    created_at: datetime


DispatcherDep = Annotated[NotificationDispatcher, Depends(get_notification_dispatcher)]


@router.get("", response_model=Envelope[list[NotificationResponse]])
async def list_notifications(
    user: CurrentUser,
    dispatcher: DispatcherDep,
    unread_only: bool = Query(default=False),
    limit: int | None = Query(default=None, ge=1, le=500),
) -> dict:
    notifications = await dispatcher.list_for(user, unread_only=unread_only, limit=limit)
    return wrap([NotificationResponse.model_validate(item) for item in notifications])


@router.get("/unread-count", response_model=Envelope[CountPayload])
async def unread_count(user: CurrentUser, dispatcher: DispatcherDep) -> dict:
    return wrap(CountPayload(count=await dispatcher.unread_count(user)))


@router.post("/read-all", response_model=Envelope[CountPayload])
async def mark_all_read(user: CurrentUser, dispatcher: DispatcherDep) -> dict:
    return wrap(CountPayload(count=await dispatcher.mark_all_read(user)))


@router.post("/{notification_id}/read", response_model=Envelope[NotificationResponse])
async def mark_read(notification_id: str, user: CurrentUser, dispatcher: DispatcherDep) -> dict:
    return wrap(NotificationResponse.model_validate(await dispatcher.mark_read(user, notification_id)))
