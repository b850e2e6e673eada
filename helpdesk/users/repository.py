from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from sqlalchemy import delete, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import col, select

from helpdesk.core.database import ensure_datetime
from helpdesk.errors import DuplicateEmailError
from packages.db.models import PendingUserTable, UserSessionTable, UserTable

from .models import PendingUser, Role, User

_UPDATABLE_USER_FIELDS = frozenset(
    {
        "email",
        "first_name",
        "last_name",
        "middle_name",
        "phone",
        "role",
        "department",
        "position",
        "is_active",
        "hashed_password",
        "last_login",
    }
)


class UserRepository:
    """Persistence for users, pending registrations and login sessions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_user(self, *, hashed_password: str, **fields: Any) -> User:
        row = UserTable(hashed_password=hashed_password, **_user_values(fields))
        async with self._session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateEmailError() from exc
            return self._table_to_user(row)

    async def get_user(self, user_id: str) -> User | None:
        async with self._session_factory() as session:
            row = await session.get(UserTable, user_id)
            return self._table_to_user(row) if row is not None else None

    async def get_credentials(self, email: str) -> tuple[User, str] | None:
        async with self._session_factory() as session:
            result = await session.execute(select(UserTable).where(UserTable.email == email))
            row = result.scalars().first()
            if row is None:
                return None
            return self._table_to_user(row), row.hashed_password

    async def email_taken(self, email: str, *, exclude_user_id: str | None = None) -> bool:
        async with self._session_factory() as session:
            user_query = select(UserTable.id).where(UserTable.email == email)
            if exclude_user_id is not None:
                user_query = user_query.where(UserTable.id != exclude_user_id)
            if (await session.execute(user_query)).first() is not None:
                return True
            pending = await session.execute(select(PendingUserTable.id).where(PendingUserTable.email == email))
            return pending.first() is not None

    async def list_users(
        self,
        *,
        search: str | None = None,
        role: Role | None = None,
        is_active: bool | None = None,
    ) -> list[User]:
        query = select(UserTable)
        if search:
            needle = search.strip()
            query = query.where(
                or_(
                    col(UserTable.first_name).icontains(needle, autoescape=True),
                    col(UserTable.last_name).icontains(needle, autoescape=True),
                    col(UserTable.email).icontains(needle, autoescape=True),
                    col(UserTable.department).icontains(needle, autoescape=True),
                )
            )
        if role is not None:
            query = query.where(UserTable.role == role.value)
        if is_active is not None:
            query = query.where(UserTable.is_active == is_active)
        async with self._session_factory() as session:
            result = await session.execute(query.order_by(col(UserTable.created_at).desc()))
            return [self._table_to_user(row) for row in result.scalars().all()]

    async def list_by_roles(self, roles: Sequence[Role], *, active_only: bool = True) -> list[User]:
        query = select(UserTable).where(col(UserTable.role).in_([role.value for role in roles]))
        if active_only:
            query = query.where(UserTable.is_active == True)  # noqa: E712
        async with self._session_factory() as session:
            result = await session.execute(query.order_by(col(UserTable.created_at).asc()))
            return [self._table_to_user(row) for row in result.scalars().all()]

    async def count_users(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count()).select_from(UserTable))
            return int(result.scalar_one())

    async def update_user(self, user_id: str, changes: Mapping[str, Any]) -> User | None:
        unknown = set(changes) - _UPDATABLE_USER_FIELDS
        if unknown:
            raise ValueError(f"Unsupported user fields: {sorted(unknown)}")
        async with self._session_factory() as session:
            row = await session.get(UserTable, user_id)
            if row is None:
                return None
            for name, value in _user_values(changes).items():
                setattr(row, name, value)
            row.updated_at = datetime.now(timezone.utc)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateEmailError() from exc
            await session.refresh(row)
            return self._table_to_user(row)

    async def delete_user(self, user_id: str) -> bool:
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(UserTable, user_id)
                if row is None:
                    return False
                await session.execute(delete(UserSessionTable).where(UserSessionTable.user_id == user_id))
                await session.delete(row)
            return True

    async def create_pending(self, *, hashed_password: str, **fields: Any) -> PendingUser:
        row = PendingUserTable(hashed_password=hashed_password, **fields)
        async with self._session_factory() as session:
            session.add(row)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateEmailError() from exc
            return self._table_to_pending(row)

    async def list_pending(self) -> list[PendingUser]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PendingUserTable).order_by(col(PendingUserTable.created_at).asc())
            )
            return [self._table_to_pending(row) for row in result.scalars().all()]

    async def count_pending(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(select(func.count()).select_from(PendingUserTable))
            return int(result.scalar_one())

    async def approve_pending(self, pending_id: str) -> User | None:
        """Turn a registration into an active client account in one transaction."""

        async with self._session_factory() as session:
            async with session.begin():
                pending = await session.get(PendingUserTable, pending_id)
                if pending is None:
                    return None
                user = UserTable(
                    email=pending.email,
                    first_name=pending.first_name,
                    last_name=pending.last_name,
                    middle_name=pending.middle_name,
                    phone=pending.phone,
                    role=Role.CLIENT.value,
                    department=pending.department,
                    position=pending.position,
                    hashed_password=pending.hashed_password,
                    is_active=True,
                )
                await session.delete(pending)
                # the pending row must be gone before the user row claims the same email
                await session.flush()
                session.add(user)
            return self._table_to_user(user)

    async def delete_pending(self, pending_id: str) -> bool:
        async with self._session_factory() as session:
            async with session.begin():
                pending = await session.get(PendingUserTable, pending_id)
                if pending is None:
                    return False
                await session.delete(pending)
            return True

    async def create_session(self, *, token: str, user_id: str, expires_at: datetime) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                session.add(UserSessionTable(token=token, user_id=user_id, expires_at=expires_at))

    async def get_session_user(self, token: str) -> tuple[User, datetime] | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserTable, UserSessionTable.expires_at)
                .join(UserSessionTable, col(UserSessionTable.user_id) == col(UserTable.id))
                .where(UserSessionTable.token == token)
            )
            found = result.first()
            if found is None:
                return None
            row, expires_at = found
            return self._table_to_user(row), ensure_datetime(expires_at)

    async def delete_session(self, token: str) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(delete(UserSessionTable).where(UserSessionTable.token == token))

    @staticmethod
    def _table_to_user(row: UserTable) -> User:
        return User(
            id=row.id,
            email=row.email,
            first_name=row.first_name,
            last_name=row.last_name,
            middle_name=row.middle_name,
            phone=row.phone,
            role=Role(row.role),
            department=row.department,
            position=row.position,
            is_active=bool(row.is_active),
            created_at=ensure_datetime(row.created_at),
            updated_at=ensure_datetime(row.updated_at),
            last_login=ensure_datetime(row.last_login) if row.last_login else None,
        )

    @staticmethod
    def _table_to_pending(row: PendingUserTable) -> PendingUser:
        return PendingUser(
            id=row.id,
            email=row.email,
            first_name=row.first_name,
            last_name=row.last_name,
            middle_name=row.middle_name,
            phone=row.phone,
            department=row.department,
            position=row.position,
            additional_info=row.additional_info,
            created_at=ensure_datetime(row.created_at),
        )


def _user_values(fields: Mapping[str, Any]) -> dict[str, Any]:
    values = dict(fields)
    if isinstance(values.get("role"), Role):
        values["role"] = values["role"].value
    return values
