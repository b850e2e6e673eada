from __future__ import annotations

import logging
from datetime import timedelta

import pytest

from helpdesk.errors import (
    DuplicateEmailError,
    InvalidCredentialsError,
    UserNotFoundError,
    ValidationError,
)
from helpdesk.users import Role, UserService

PASSWORD = "correct-horse-battery"

REGISTRATION = {
    "first_name": "Ivan",
    "last_name": "Sidorov",
    "email": "Ivan@Example.com",
    "password": "long-enough-pass",
    "department": "Logistics",
    "position": "Dispatcher",
}


@pytest.mark.asyncio
async def test_login_returns_token_and_stamps_last_login(services, people):
    result = await services.users.login("CLIENT@example.com ", PASSWORD)

    assert result.token
    assert result.user.id == people.client.id
    assert result.user.last_login is not None
    assert result.expires_at > result.user.last_login


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("email", "password"),
    [("client@example.com", "wrong-password"), ("nobody@example.com", PASSWORD)],
)
async def test_login_failures_look_alike(services, people, email, password):
    with pytest.raises(InvalidCredentialsError) as exc:
        await services.users.login(email, password)

    assert exc.value.message == "Invalid email or password"


@pytest.mark.asyncio
async def test_inactive_users_cannot_log_in(services, people):
    await services.users.update_user(people.client.id, {"is_active": False})

    with pytest.raises(InvalidCredentialsError):
        await services.users.login("client@example.com", PASSWORD)


@pytest.mark.asyncio
async def test_token_resolves_until_logout(services, people):
    result = await services.users.login("support@example.com", PASSWORD)

    principal = await services.users.resolve(result.token)
    assert principal is not None
    assert principal.id == people.support.id
    assert principal.role is Role.SUPPORT

    await services.users.logout(result.token)
    assert await services.users.resolve(result.token) is None


@pytest.mark.asyncio
async def test_unknown_or_missing_token_resolves_to_none(services):
    assert await services.users.resolve(None) is None
    assert await services.users.resolve("not-a-token") is None


@pytest.mark.asyncio
async def test_expired_session_is_dropped(services, people):
    short_lived = UserService(services.user_repository, session_ttl=timedelta(seconds=-1))
    result = await short_lived.login("client@example.com", PASSWORD)

    assert await short_lived.resolve(result.token) is None
    assert await services.user_repository.get_session_user(result.token) is None


@pytest.mark.asyncio
async def test_register_creates_pending_with_normalised_email(services):
    pending = await services.users.register(**REGISTRATION)

    assert pending.email == "ivan@example.com"
    assert [item.id for item in await services.users.list_pending()] == [pending.id]
    assert await services.user_repository.get_credentials("ivan@example.com") is None


@pytest.mark.asyncio
async def test_register_requires_profile_fields(services):
    with pytest.raises(ValidationError) as exc:
        await services.users.register(**{**REGISTRATION, "department": "", "position": None})

    assert set(exc.value.fields) == {"department", "position"}


@pytest.mark.asyncio
async def test_register_rejects_short_password(services):
    with pytest.raises(ValidationError) as exc:
        await services.users.register(**{**REGISTRATION, "password": "short"})

    assert "password" in exc.value.fields


@pytest.mark.asyncio
async def test_register_rejects_taken_email(services, people):
    with pytest.raises(DuplicateEmailError):
        await services.users.register(**{**REGISTRATION, "email": "client@example.com"})

    await services.users.register(**REGISTRATION)
    with pytest.raises(DuplicateEmailError):
        await services.users.register(**REGISTRATION)


@pytest.mark.asyncio
async def test_approved_registration_can_log_in(services, people):
    pending = await services.users.register(**REGISTRATION)

    user = await services.users.approve_pending(people.admin, pending.id)
    result = await services.users.login("ivan@example.com", REGISTRATION["password"])

    assert user.role is Role.CLIENT
    assert user.department == "Logistics"
    assert result.user.id == user.id
    assert await services.users.list_pending() == []


@pytest.mark.asyncio
async def test_rejected_registration_is_removed(services, people):
    pending = await services.users.register(**REGISTRATION)

    await services.users.reject_pending(people.admin, pending.id)

    assert await services.users.list_pending() == []
    with pytest.raises(UserNotFoundError):
        await services.users.approve_pending(people.admin, pending.id)
    with pytest.raises(UserNotFoundError):
        await services.users.reject_pending(people.admin, pending.id)


@pytest.mark.asyncio
async def test_list_users_filters(services, people):
    staff = await services.users.list_users(role=Role.SUPPORT)
    searched = await services.users.list_users(search="ADMIN@")

    assert {user.id for user in staff} == {people.support.id, people.other_support.id}
    assert [user.id for user in searched] == [people.admin.id]
    assert await services.users.list_users(search="_") == []
    assert await services.users.list_users(search="%") == []


@pytest.mark.asyncio
async def test_create_user_defaults_to_client(services):
    user = await services.users.create_user(
        email="new@example.com", password=PASSWORD, first_name="New", last_name="Person"
    )

    assert user.role is Role.CLIENT
    assert user.is_active is True


@pytest.mark.asyncio
async def test_update_user_changes_password_and_role(services, people):
    updated = await services.users.update_user(
        people.client.id, {"role": "support", "password": "another-long-pass", "phone": None}
    )

    assert updated.role is Role.SUPPORT
    assert (await services.users.login("client@example.com", "another-long-pass")).user.id == people.client.id


@pytest.mark.asyncio
async def test_update_user_rejects_taken_email_and_empty_changes(services, people):
    with pytest.raises(DuplicateEmailError):
        await services.users.update_user(people.client.id, {"email": "support@example.com"})
    with pytest.raises(ValidationError):
        await services.users.update_user(people.client.id, {"phone": None})
    with pytest.raises(UserNotFoundError):
        await services.users.update_user("missing", {"first_name": "Ghost"})


@pytest.mark.asyncio
async def test_admin_cannot_delete_self(services, people):
    with pytest.raises(ValidationError):
        await services.users.delete_user(people.admin, people.admin.id)


@pytest.mark.asyncio
async def test_delete_user_ends_sessions(services, people):
    result = await services.users.login("other@example.com", PASSWORD)

    await services.users.delete_user(people.admin, people.other_client.id)

    assert await services.users.resolve(result.token) is None
    with pytest.raises(UserNotFoundError):
        await services.users.get_user(people.other_client.id)


@pytest.mark.asyncio
async def test_bootstrap_admin_only_on_empty_table(services, caplog):
    with caplog.at_level(logging.WARNING, logger="helpdesk.users.service"):
        admin = await services.users.ensure_bootstrap_admin("root@example.com", PASSWORD)

    assert admin is not None and admin.role is Role.ADMIN
    assert any("Bootstrap administrator" in record.getMessage() for record in caplog.records)
    assert await services.users.ensure_bootstrap_admin("second@example.com", PASSWORD) is None
    assert await services.users.ensure_bootstrap_admin(None, None) is None
