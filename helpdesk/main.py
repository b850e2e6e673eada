from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI

from helpdesk.analytics import AnalyticsRepository, AnalyticsService, ReportRange
from helpdesk.api.errors import register_exception_handlers
from helpdesk.api.middleware import RequestMetricsMiddleware
from helpdesk.api.routes import analytics, auth, knowledge_base, metrics, notifications, ping, tickets, users
from helpdesk.core.config import Settings, get_settings
from helpdesk.core.database import Database
from helpdesk.core.logging import configure_logging, init_tracer, shutdown_tracer
from helpdesk.knowledge import ArticleRepository, KnowledgeBaseService
from helpdesk.notifications import NotificationDispatcher, NotificationRepository
from helpdesk.tickets import TicketRepository, TicketService
from helpdesk.users import UserRepository, UserService

_SERVICE_ATTRIBUTES = (
    "user_service",
    "ticket_service",
    "knowledge_service",
    "notification_dispatcher",
    "analytics_service",
)


def build_services(app: FastAPI, database: Database, settings: Settings) -> None:
    """Wire repositories and services onto ``app.state``."""

    factory = database.session_factory
    user_repository = UserRepository(factory)
    dispatcher = NotificationDispatcher(NotificationRepository(factory))

    app.state.notification_dispatcher = dispatcher
    app.state.user_service = UserService(
        user_repository,
        dispatcher=dispatcher,
        session_ttl=timedelta(hours=settings.session_ttl_hours),
        password_min_length=settings.password_min_length,
    )
    app.state.ticket_service = TicketService(TicketRepository(factory), user_repository, dispatcher=dispatcher)
    app.state.knowledge_service = KnowledgeBaseService(ArticleRepository(factory), dispatcher=dispatcher)
    app.state.analytics_service = AnalyticsService(
        AnalyticsRepository(factory),
        user_repository,
        default_range=ReportRange.parse(settings.analytics_default_range),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    for attribute in _SERVICE_ATTRIBUTES:
        setattr(app.state, attribute, None)

    database = Database.from_dsn(settings.database_dsn, echo=settings.database_echo)
    app.state.database = database
    try:
        await database.ensure_schema()
        build_services(app, database, settings)
        await app.state.user_service.ensure_bootstrap_admin(
            settings.bootstrap_admin_email, settings.bootstrap_admin_password
        )
    except Exception:
        # services stay unset, so every dependent route answers 503
        logger.exception("Service initialisation failed")
        for attribute in _SERVICE_ATTRIBUTES:
            setattr(app.state, attribute, None)
    try:
        yield
    finally:
        await database.dispose()
        shutdown_tracer(tracer_provider)
        logger.info("Shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.settings = settings
    register_exception_handlers(app)
    app.add_middleware(RequestMetricsMiddleware)
    app.include_router(ping.router)
    app.include_router(auth.router)
    app.include_router(tickets.router)
    app.include_router(knowledge_base.router)
    app.include_router(notifications.router)
    app.include_router(users.router)
    app.include_router(analytics.router)
    app.include_router(metrics.router)
    return app


app = create_app()
