"""Logging and tracing setup for the helpdesk API.

Every log record carries ``request_id`` and ``user_id`` attributes taken from context
variables, so lines written deep inside a service can be tied back to the HTTP request
and the acting user without threading either through call signatures.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar, Token
from logging.config import dictConfig

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from helpdesk.core.config import Settings

_TRACER_INITIALISED = False

# Third-party loggers that are too chatty at INFO for a request/response service.
_QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "passlib")

_NO_CONTEXT = "-"
request_id_var: ContextVar[str] = ContextVar("helpdesk_request_id", default=_NO_CONTEXT)
user_id_var: ContextVar[str] = ContextVar("helpdesk_user_id", default=_NO_CONTEXT)


class RequestContextFilter(logging.Filter):
    """Stamp records with the current request id and acting user."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()
        if not hasattr(record, "user_id"):
            record.user_id = user_id_var.get()
        return True


def bind_request_id(request_id: str) -> Token[str]:
    return request_id_var.set(request_id)


def reset_request_id(token: Token[str]) -> None:
    request_id_var.reset(token)


def bind_user_id(user_id: str) -> None:
    user_id_var.set(user_id)


def _parse_headers(header_string: str | None) -> dict[str, str]:
    if not header_string:
        return {}
    headers: dict[str, str] = {}
    for item in header_string.split(","):
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            continue
        headers[key.strip()] = value.strip()
    return headers


def configure_logging(settings: Settings) -> logging.Logger:
    """Install the root handler, quiet noisy libraries and return the ``helpdesk`` logger."""

    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    quiet_level = logging.INFO if settings.database_echo else logging.WARNING
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_context": {"()": RequestContextFilter}},
            "formatters": {"helpdesk": {"format": settings.log_format}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "helpdesk",
                    "filters": ["request_context"],
                    "level": level,
                }
            },
            "loggers": {name: {"level": quiet_level} for name in _QUIET_LOGGERS},
            "root": {"handlers": ["console"], "level": level},
        }
    )

    logger = logging.getLogger("helpdesk")
    logger.setLevel(level)
    logger.info("Logging configured for %s (%s)", settings.app_name, settings.environment)
    return logger


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Install an OTLP-exporting tracer provider when tracing is enabled."""

    global _TRACER_INITIALISED

    if _TRACER_INITIALISED or not settings.otel_enabled:
        return None

    exporter_options: dict[str, object] = {}
    if settings.otel_exporter_otlp_endpoint:
        exporter_options["endpoint"] = settings.otel_exporter_otlp_endpoint
    headers = _parse_headers(settings.otel_exporter_otlp_headers)
    if headers:
        exporter_options["headers"] = headers

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.otel_service_name,
                "deployment.environment": settings.environment,
            }
        )
    )
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**exporter_options)))
    trace.set_tracer_provider(provider)
    _TRACER_INITIALISED = True
    logging.getLogger("helpdesk").info("Tracing exported as %s", settings.otel_service_name)
    return provider


def get_tracer(name: str) -> trace.Tracer:
    """Return a tracer; spans are no-ops until ``init_tracer`` installs a provider."""

    return trace.get_tracer(name)


def shutdown_tracer(provider: TracerProvider | None) -> None:
    """Flush pending spans and allow a later ``init_tracer`` call to install a new provider."""

    global _TRACER_INITIALISED

    if provider is None:
        return
    provider.shutdown()
    _TRACER_INITIALISED = False
