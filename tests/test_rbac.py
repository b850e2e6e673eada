from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.security import HTTPAuthorizationCredentials

from helpdesk.dependencies.auth import get_current_user, get_session_token, role_required
from helpdesk.errors import ForbiddenError, UnauthorizedError
from helpdesk.users.models import Principal, Role


@pytest.mark.asyncio
async def test_role_required_allows_authorized_user():
    dependency = role_required(Role.ADMIN)
    user = Principal(id="alice", role=Role.ADMIN)
    result = await dependency(user)  # type: ignore[arg-type]
    assert result.id == "alice"


@pytest.mark.asyncio
async def test_role_required_rejects_unauthorized_user():
    dependency = role_required(Role.SUPPORT, Role.ADMIN)
    user = Principal(id="bob", role=Role.CLIENT)
    with pytest.raises(ForbiddenError) as exc:
        await dependency(user)  # type: ignore[arg-type]

    assert exc.value.status_code == 403
    assert exc.value.message == "Insufficient permissions"


@pytest.mark.asyncio
async def test_missing_bearer_token_is_unauthorized():
    with pytest.raises(UnauthorizedError):
        await get_session_token(None)


@pytest.mark.asyncio
async def test_bearer_token_is_passed_through():
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="abc")
    assert await get_session_token(credentials) == "abc"


@pytest.mark.asyncio
async def test_unknown_session_is_unauthorized():
    users = AsyncMock()
    users.resolve = AsyncMock(return_value=None)

    with pytest.raises(UnauthorizedError) as exc:
        await get_current_user(MagicMock(), "stale", users)

    assert exc.value.message == "Invalid or expired session"


@pytest.mark.asyncio
async def test_disabled_account_is_unauthorized():
    users = AsyncMock()
    users.resolve = AsyncMock(return_value=Principal(id="carol", role=Role.CLIENT, is_active=False))

    with pytest.raises(UnauthorizedError):
        await get_current_user(MagicMock(), "token", users)


@pytest.mark.asyncio
async def test_resolved_principal_is_stored_on_request():
    principal = Principal(id="dave", role=Role.SUPPORT)
    users = AsyncMock()
    users.resolve = AsyncMock(return_value=principal)
    request = MagicMock()

    assert await get_current_user(request, "token", users) is principal
    assert request.state.principal is principal
    users.resolve.assert_awaited_once_with("token")
