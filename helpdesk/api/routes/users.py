from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from helpdesk.api.routes.auth import PendingUserResponse, UserResponse, UserServiceDep
from helpdesk.api.schemas import Envelope, StatusPayload, wrap
from helpdesk.dependencies.auth import AdminUser, role_required
from helpdesk.users.models import Role

router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(role_required(Role.ADMIN))],
)


class UserCreateRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1, max_length=150)
    last_name: str = Field(..., min_length=1, max_length=150)
    middle_name: str | None = Field(default=None, max_length=150)
    phone: str | None = Field(default=None, max_length=50)
    role: Role = Role.CLIENT
    department: str | None = Field(default=None, max_length=255)
    position: str | None = Field(default=None, max_length=255)
    is_active: bool = True


class UserUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr | None = None
    password: str | None = Field(default=None, min_length=1)
    first_name: str | None = Field(default=None, min_length=1, max_length=150)
    last_name: str | None = Field(default=None, min_length=1, max_length=150)
    middle_name: str | None = Field(default=None, max_length=150)
    phone: str | None = Field(default=None, max_length=50)
    role: Role | None = None
    department: str | None = Field(default=None, max_length=255)
    position: str | None = Field(default=None, max_length=255)
    is_active: bool | None = None


@router.get("", response_model=Envelope[list[UserResponse]])
async def list_users(
    service: UserServiceDep,
    search: str | None = Query(default=None, max_length=200),
    role: Role | None = Query(default=None),
    is_active: bool | None = Query(default=None),
) -> dict:
    users = await service.list_users(search=search, role=role, is_active=is_active)
    return wrap([UserResponse.model_validate(user) for user in users])


@router.post("", response_model=Envelope[UserResponse], status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreateRequest, service: UserServiceDep) -> dict:
    return wrap(UserResponse.model_validate(await service.create_user(**payload.model_dump())))


@router.get("/pending", response_model=Envelope[list[PendingUserResponse]])
async def list_pending(service: UserServiceDep) -> dict:
    return wrap([PendingUserResponse.model_validate(item) for item in await service.list_pending()])


@router.post("/pending/{pending_id}/approve", response_model=Envelope[UserResponse])
async def approve_pending(pending_id: str, admin: AdminUser, service: UserServiceDep) -> dict:
    return wrap(UserResponse.model_validate(await service.approve_pending(admin, pending_id)))


@router.post("/pending/{pending_id}/reject", response_model=Envelope[StatusPayload])
async def reject_pending(pending_id: str, admin: AdminUser, service: UserServiceDep) -> dict:
    await service.reject_pending(admin, pending_id)
    return wrap(StatusPayload(status="rejected"))


@router.put("/{user_id}", response_model=Envelope[UserResponse])
async def update_user(user_id: str, payload: UserUpdateRequest, service: UserServiceDep) -> dict:
    user = await service.update_user(user_id, payload.model_dump(exclude_unset=True))
    return wrap(UserResponse.model_validate(user))


@router.delete("/{user_id}", response_model=Envelope[StatusPayload])
async def delete_user(user_id: str, admin: AdminUser, service: UserServiceDep) -> dict:
    await service.delete_user(admin, user_id)
    return wrap(StatusPayload(status="deleted"))
