"""Per-request bookkeeping: request ids, the duration metric and a tracing span."""

from __future__ import annotations

import secrets
from time import perf_counter
from typing import Awaitable, Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from helpdesk.core.logging import bind_request_id, get_tracer, reset_request_id
from helpdesk.metrics import metrics_registry
from helpdesk.metrics.definitions import REQUEST_DURATION

REQUEST_ID_HEADER = "X-Request-ID"
_MAX_REQUEST_ID_LENGTH = 64

_tracer = get_tracer(__name__)


def _route_label(request: Request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return f"{request.method} {path}" if path else "unmatched"


def _request_id(request: Request) -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if supplied and len(supplied) <= _MAX_REQUEST_ID_LENGTH and supplied.isprintable():
        return supplied
    return secrets.token_hex(8)


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """Observe request duration per route template, e.g. ``GET /tickets/{ticket_id}``.

    The request id is taken from ``X-Request-ID`` when the caller sends a usable one,
    bound for log records, and echoed on the response.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = _request_id(request)
        token = bind_request_id(request_id)
        start = perf_counter()
        try:
            with _tracer.start_as_current_span(f"{request.method} {request.url.path}") as span:
                span.set_attribute("helpdesk.request_id", request_id)
                try:
                    response = await call_next(request)
                finally:
                    label = _route_label(request)
                    metrics_registry.distribution(REQUEST_DURATION).observe(
                        perf_counter() - start, labels={"route": label}
                    )
                    span.set_attribute("http.route", label)
                span.set_attribute("http.status_code", response.status_code)
        finally:
            reset_request_id(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
