"""Accounts, roles and login sessions."""

from .models import STAFF_ROLES, PendingUser, Principal, Role, User
from .repository import UserRepository
from .service import LoginResult, UserService

__all__ = [
    "LoginResult",
    "PendingUser",
    "Principal",
    "Role",
    "STAFF_ROLES",
    "User",
    "UserRepository",
    "UserService",
]
