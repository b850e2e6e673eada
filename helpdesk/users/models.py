from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Helpdesk roles, from least to most privileged."""

    CLIENT = "client"
    SUPPORT = "support"
    ADMIN = "admin"


STAFF_ROLES: frozenset[Role] = frozenset({Role.SUPPORT, Role.ADMIN})


@dataclass(slots=True)
class User:
    """A registered account."""

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
    last_login: datetime | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(slots=True)
class PendingUser:
    """A self-service registration awaiting approval."""

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


@dataclass(frozen=True, slots=True)
class Principal:
    """The acting identity resolved from a session token."""

    id: str
    role: Role
    is_active: bool = True
    email: str = ""
    display_name: str = ""

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(
            id=user.id,
            role=user.role,
            is_active=user.is_active,
            email=user.email,
            display_name=user.full_name,
        )
