from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Mapping

from helpdesk.errors import (
    DuplicateEmailError,
    InvalidCredentialsError,
    UserNotFoundError,
    ValidationError,
    require_fields,
)

from .models import PendingUser, Principal, Role, User
from .passwords import hash_password, verify_password
from .repository import UserRepository

if TYPE_CHECKING:
    from helpdesk.notifications.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

_PROFILE_FIELDS = ("first_name", "last_name", "middle_name", "phone", "department", "position")
_REGISTRATION_REQUIRED = ("first_name", "last_name", "email", "password", "department", "position")


@dataclass(slots=True)
class LoginResult:
    token: str
    user: User
    expires_at: datetime


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserService:
    """Accounts, login sessions and the registration approval workflow."""

    def __init__(
        self,
        repository: UserRepository,
        *,
        dispatcher: "NotificationDispatcher | None" = None,
        session_ttl: timedelta = timedelta(hours=24),
        password_min_length: int = 8,
    ) -> None:
        self.repository = repository
        self.dispatcher = dispatcher
        self.session_ttl = session_ttl
        self.password_min_length = password_min_length

    async def login(self, email: str, password: str) -> LoginResult:
        found = await self.repository.get_credentials(normalize_email(email))
        if found is None:
            raise InvalidCredentialsError()
        user, hashed = found
        if not user.is_active or not verify_password(password, hashed):
            raise InvalidCredentialsError()

        now = datetime.now(timezone.utc)
        token = secrets.token_urlsafe(32)
        expires_at = now + self.session_ttl
        await self.repository.create_session(token=token, user_id=user.id, expires_at=expires_at)
        user = await self.repository.update_user(user.id, {"last_login": now}) or user
        logger.info("User %s logged in", user.id)
        return LoginResult(token=token, user=user, expires_at=expires_at)

    async def logout(self, token: str) -> None:
        await self.repository.delete_session(token)

    async def resolve(self, token: str | None) -> Principal | None:
        """Map a session token to the acting principal, or None when it is unusable."""

        if not token:
            return None
        found = await self.repository.get_session_user(token)
        if found is None:
            return None
        user, expires_at = found
        if expires_at <= datetime.now(timezone.utc):
            await self.repository.delete_session(token)
            logger.debug("Session for user %s expired", user.id)
            return None
        return Principal.from_user(user)

    async def get_user(self, user_id: str) -> User:
        user = await self.repository.get_user(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    async def register(self, **fields: Any) -> PendingUser:
        require_fields(fields, _REGISTRATION_REQUIRED)
        self._check_password(fields["password"])
        email = normalize_email(fields["email"])
        if await self.repository.email_taken(email):
            raise DuplicateEmailError()

        pending = await self.repository.create_pending(
            hashed_password=hash_password(fields["password"]),
            email=email,
            first_name=fields["first_name"].strip(),
            last_name=fields["last_name"].strip(),
            middle_name=fields.get("middle_name"),
            phone=fields.get("phone"),
            department=fields["department"].strip(),
            position=fields["position"].strip(),
            additional_info=fields.get("additional_info"),
        )
        logger.info("Registration %s submitted for %s", pending.id, pending.email)
        return pending

    async def list_users(
        self,
        *,
        search: str | None = None,
        role: Role | None = None,
        is_active: bool | None = None,
    ) -> list[User]:
        return await self.repository.list_users(search=search, role=role, is_active=is_active)

    async def create_user(self, **fields: Any) -> User:
        require_fields(fields, ("first_name", "last_name", "email", "password"))
        self._check_password(fields["password"])
        email = normalize_email(fields["email"])
        if await self.repository.email_taken(email):
            raise DuplicateEmailError()

        values = {name: fields.get(name) for name in _PROFILE_FIELDS}
        user = await self.repository.create_user(
            hashed_password=hash_password(fields["password"]),
            email=email,
            role=Role(fields.get("role") or Role.CLIENT),
            is_active=fields.get("is_active", True),
            **values,
        )
        logger.info("User %s created with role %s", user.id, user.role.value)
        return user

    async def update_user(self, user_id: str, changes: Mapping[str, Any]) -> User:
        updates = {key: value for key, value in changes.items() if value is not None}
        if not updates:
            raise ValidationError("No fields provided for update")

        password = updates.pop("password", None)
        if password is not None:
            self._check_password(password)
            updates["hashed_password"] = hash_password(password)
        if "email" in updates:
            updates["email"] = normalize_email(updates["email"])
            if await self.repository.email_taken(updates["email"], exclude_user_id=user_id):
                raise DuplicateEmailError()
        if "role" in updates:
            updates["role"] = Role(updates["role"])

        user = await self.repository.update_user(user_id, updates)
        if user is None:
            raise UserNotFoundError()
        return user

    async def delete_user(self, actor: Principal, user_id: str) -> None:
        if actor.id == user_id:
            raise ValidationError("You cannot delete your own account")
        if not await self.repository.delete_user(user_id):
            raise UserNotFoundError()
        logger.info("User %s deleted by %s", user_id, actor.id)

    async def list_pending(self) -> list[PendingUser]:
        return await self.repository.list_pending()

    async def approve_pending(self, actor: Principal, pending_id: str) -> User:
        user = await self.repository.approve_pending(pending_id)
        if user is None:
            raise UserNotFoundError("Registration not found")
        logger.info("Registration %s approved by %s as user %s", pending_id, actor.id, user.id)
        if self.dispatcher is not None:
            await self.dispatcher.user_registered(user, actor_id=actor.id)
        return user

    async def reject_pending(self, actor: Principal, pending_id: str) -> None:
        if not await self.repository.delete_pending(pending_id):
            raise UserNotFoundError("Registration not found")
        logger.info("Registration %s rejected by %s", pending_id, actor.id)

    async def ensure_bootstrap_admin(self, email: str | None, password: str | None) -> User | None:
        """Create the first administrator when the users table is still empty."""

        if not email or not password:
            return None
        if await self.repository.count_users() > 0:
            return None
        user = await self.create_user(
            email=email,
            password=password,
            first_name="System",
            last_name="Administrator",
            role=Role.ADMIN,
        )
        logger.warning("Bootstrap administrator %s created", user.email)
        return user

    def _check_password(self, password: str) -> None:
        if len(password) < self.password_min_length:
            raise ValidationError(
                "Password is too short",
                fields={"password": [f"Must be at least {self.password_min_length} characters"]},
            )
