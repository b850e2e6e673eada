from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from helpdesk.core.logging import bind_user_id
from helpdesk.dependencies.services import get_user_service
from helpdesk.errors import ForbiddenError, UnauthorizedError
from helpdesk.users.models import Principal, Role
from helpdesk.users.service import UserService

bearer_scheme = HTTPBearer(auto_error=False)


async def get_session_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
) -> str:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()
    return credentials.credentials


async def get_current_user(
    request: Request,
    token: Annotated[str, Depends(get_session_token)],
    users: Annotated[UserService, Depends(get_user_service)],
) -> Principal:
    """Resolve the bearer token to an active principal."""

    principal = await users.resolve(token)
    if principal is None:
        raise UnauthorizedError("Invalid or expired session")
    if not principal.is_active:
        raise UnauthorizedError("Account is disabled")
    request.state.principal = principal
    bind_user_id(principal.id)
    return principal


def role_required(*roles: Role) -> Callable[..., Principal]:
    """Dependency factory ensuring the current user holds one of ``roles``."""

    allowed = frozenset(roles)

    async def dependency(user: Annotated[Principal, Depends(get_current_user)]) -> Principal:
        if user.role not in allowed:
            raise ForbiddenError()
        return user

    return dependency


CurrentUser = Annotated[Principal, Depends(get_current_user)]
StaffUser = Annotated[Principal, Depends(role_required(Role.SUPPORT, Role.ADMIN))]
AdminUser = Annotated[Principal, Depends(role_required(Role.ADMIN))]
SessionToken = Annotated[str, Depends(get_session_token)]
