import logging
from datetime import datetime, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from helpdesk.api.errors import register_exception_handlers
from helpdesk.api.middleware import REQUEST_ID_HEADER, RequestMetricsMiddleware
from helpdesk.core import logging as logging_utils
from helpdesk.core.config import Settings
from helpdesk.core.database import ensure_datetime, to_async_dsn
from helpdesk.errors import HelpdeskError, InternalError, ValidationError, require_fields


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_DSN", "sqlite:///tmp.db")
    monkeypatch.setenv("SESSION_TTL_HOURS", "8")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings()

    assert settings.database_dsn == "sqlite:///tmp.db"
    assert settings.session_ttl_hours == 8
    assert settings.log_level == "debug"
    assert settings.otel_enabled is False


@pytest.mark.parametrize(
    ("dsn", "expected"),
    [
        ("postgresql://u:p@db/helpdesk", "postgresql+asyncpg://u:p@db/helpdesk"),
        ("postgres://u:p@db/helpdesk", "postgresql+asyncpg://u:p@db/helpdesk"),
        ("sqlite:///helpdesk.db", "sqlite+aiosqlite:///helpdesk.db"),
        ("sqlite+aiosqlite:///helpdesk.db", "sqlite+aiosqlite:///helpdesk.db"),
    ],
)
def test_to_async_dsn(dsn, expected):
    assert to_async_dsn(dsn) == expected


def test_ensure_datetime_attaches_utc():
    assert ensure_datetime(datetime(2024, 1, 1)).tzinfo is timezone.utc
    with pytest.raises(TypeError):
        ensure_datetime(None)


def test_parse_headers():
    assert logging_utils._parse_headers("a=1, b = two,broken,=x") == {"a": "1", "b": "two"}
    assert logging_utils._parse_headers(None) == {}


def test_configure_logging_sets_levels():
    logger = logging_utils.configure_logging(Settings(log_level="debug"))

    assert logger.name == "helpdesk"
    assert logger.level == logging.DEBUG
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_tracer_disabled_by_default():
    assert logging_utils.init_tracer(Settings(otel_enabled=False)) is None
    logging_utils.shutdown_tracer(None)


def test_require_fields_collects_every_blank_field():
    with pytest.raises(ValidationError) as exc:
        require_fields({"title": " ", "description": "ok", "priority": None}, ("title", "description", "priority"))

    assert exc.value.fields == {"title": ["This field is required"], "priority": ["This field is required"]}


def _app_raising(exc: Exception) -> TestClient:
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/boom")
    async def boom():
        raise exc

    return TestClient(app, raise_server_exceptions=False)


def test_internal_errors_hide_their_message():
    response = _app_raising(InternalError("connection string leaked")).get("/boom")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "status": 500}


def test_unexpected_errors_become_500():
    response = _app_raising(KeyError("secret")).get("/boom")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error", "status": 500}


def test_helpdesk_error_keeps_status_and_message():
    class TeapotError(HelpdeskError):
        status_code = 418

    response = _app_raising(TeapotError("short and stout")).get("/boom")

    assert response.status_code == 418
    assert response.json() == {"error": "short and stout", "status": 418}


def test_request_context_filter_stamps_records():
    record = logging.LogRecord("helpdesk.tickets", logging.INFO, __file__, 1, "moved", None, None)
    token = logging_utils.bind_request_id("req-42")
    try:
        assert logging_utils.RequestContextFilter().filter(record) is True
    finally:
        logging_utils.reset_request_id(token)

    assert record.request_id == "req-42"
    assert logging_utils.request_id_var.get() == "-"


def test_request_id_is_echoed_or_generated():
    app = FastAPI()
    app.add_middleware(RequestMetricsMiddleware)

    @app.get("/echo")
    async def echo():
        return {"request_id": logging_utils.request_id_var.get()}

    client = TestClient(app)
    supplied = client.get("/echo", headers={REQUEST_ID_HEADER: "abc-123"})
    generated = client.get("/echo")

    assert supplied.headers[REQUEST_ID_HEADER] == "abc-123"
    assert supplied.json() == {"request_id": "abc-123"}
    assert len(generated.headers[REQUEST_ID_HEADER]) == 16
    assert generated.json()["request_id"] == generated.headers[REQUEST_ID_HEADER]
