from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from helpdesk.api.schemas import Envelope, StatusPayload, wrap
from helpdesk.dependencies.auth import CurrentUser, SessionToken
from helpdesk.dependencies.services import get_user_service
from helpdesk.users.models import Role
from helpdesk.users.service import UserService

router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1, max_length=150)
    last_name: str = Field(..., min_length=1, max_length=150)
    middle_name: str | None = Field(default=None, max_length=150)
    phone: str | None = Field(default=None, max_length=50)
    department: str = Field(..., min_length=1, max_length=255)
    position: str = Field(..., min_length=1, max_length=255)
    additional_info: str | None = None


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    first_name: str
    last_name: str
    middle_name: str | None
    phone: str | None
    role: Role
    department: str | None
    position: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    last_login: datetime | None


class PendingUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    first_name: str
    last_name: str
    middle_name: str | None
    phone: str | None
    department: str
    position: str
    additional_info: str | None
    created_at: datetime


class LoginResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse


UserServiceDep = Annotated[UserService, Depends(get_user_service)]


@router.post("/login", response_model=Envelope[LoginResponse])
async def login(payload: LoginRequest, service: UserServiceDep) -> dict:
    result = await service.login(payload.email, payload.password)
    return wrap(
        LoginResponse(
            token=result.token,
            expires_at=result.expires_at,
            user=UserResponse.model_validate(result.user),
        )
    )


@router.post("/register", response_model=Envelope[PendingUserResponse], status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, service: UserServiceDep) -> dict:
    pending = await service.register(**payload.model_dump())
    return wrap(PendingUserResponse.model_validate(pending))


@router.post("/logout", response_model=Envelope[StatusPayload])
async def logout(token: SessionToken, _: CurrentUser, service: UserServiceDep) -> dict:
    await service.logout(token)
    return wrap(StatusPayload(status="logged_out"))


@router.get("/me", response_model=Envelope[UserResponse])
async def me(user: CurrentUser, service: UserServiceDep) -> dict:
    return wrap(UserResponse.model_validate(await service.get_user(user.id)))
