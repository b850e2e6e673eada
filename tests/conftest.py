from __future__ import annotations

from dataclasses import dataclass

import pytest
import pytest_asyncio

from helpdesk.analytics import AnalyticsRepository, AnalyticsService
from helpdesk.core.database import Database
from helpdesk.knowledge import ArticleRepository, KnowledgeBaseService
from helpdesk.metrics import MetricsRegistry, register_default_metrics
from helpdesk.notifications import NotificationDispatcher, NotificationRepository
from helpdesk.tickets import TicketRepository, TicketService
from helpdesk.users import Principal, Role, UserRepository, UserService

PASSWORD = "correct-horse-battery"


@dataclass
class Services:
    users: UserService
    tickets: TicketService
    knowledge: KnowledgeBaseService
    notifications: NotificationDispatcher
    analytics: AnalyticsService
    user_repository: UserRepository
    ticket_repository: TicketRepository
    article_repository: ArticleRepository


@dataclass
class People:
    client: Principal
    other_client: Principal
    support: Principal
    other_support: Principal
    admin: Principal


@pytest_asyncio.fixture
async def database(tmp_path):
    # a file database gives every session its own connection, which the race tests rely on
    db = Database.from_dsn(f"sqlite:///{tmp_path / 'helpdesk.db'}")
    await db.ensure_schema()
    try:
        yield db
    finally:
        await db.dispose()


@pytest.fixture
def registry() -> MetricsRegistry:
    return register_default_metrics(MetricsRegistry())


@pytest.fixture
def services(database: Database, registry: MetricsRegistry) -> Services:
    factory = database.session_factory
    user_repository = UserRepository(factory)
    ticket_repository = TicketRepository(factory)
    article_repository = ArticleRepository(factory)
    dispatcher = NotificationDispatcher(NotificationRepository(factory), registry=registry)
    return Services(
        users=UserService(user_repository, dispatcher=dispatcher),
        tickets=TicketService(ticket_repository, user_repository, dispatcher=dispatcher, registry=registry),
        knowledge=KnowledgeBaseService(article_repository, dispatcher=dispatcher, registry=registry),
        notifications=dispatcher,
        analytics=AnalyticsService(AnalyticsRepository(factory), user_repository),
        user_repository=user_repository,
        ticket_repository=ticket_repository,
        article_repository=article_repository,
    )


async def make_user(services: Services, email: str, role: Role, **extra) -> Principal:
    user = await services.users.create_user(
        email=email,
        password=PASSWORD,
        first_name=extra.pop("first_name", email.split("@")[0].capitalize()),
        last_name=extra.pop("last_name", "Tester"),
        role=role,
        **extra,
    )
    return Principal.from_user(user)


@pytest_asyncio.fixture
async def people(services: Services) -> People:
    return People(
        client=await make_user(services, "client@example.com", Role.CLIENT),
        other_client=await make_user(services, "other@example.com", Role.CLIENT),
        support=await make_user(services, "support@example.com", Role.SUPPORT),
        other_support=await make_user(services, "support2@example.com", Role.SUPPORT),
        admin=await make_user(services, "admin@example.com", Role.ADMIN),
    )


@pytest.fixture
def user_factory(services: Services):
    async def factory(email: str, role: Role = Role.CLIENT, **extra) -> Principal:
        return await make_user(services, email, role, **extra)

    return factory
