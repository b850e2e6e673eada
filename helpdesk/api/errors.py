"""Exception handlers producing the ``{"error", "status"}`` envelope."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from helpdesk.errors import HelpdeskError, InternalError

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"


def error_response(
    status_code: int, message: str, *, fields: Mapping[str, Sequence[str]] | None = None
) -> JSONResponse:
    content: dict[str, Any] = {"error": message, "status": status_code}
    if fields:
        content["fields"] = {key: list(value) for key, value in fields.items()}
    return JSONResponse(status_code=status_code, content=content)


async def handle_helpdesk_error(request: Request, exc: HelpdeskError) -> JSONResponse:
    if isinstance(exc, InternalError) or exc.status_code >= 500:
        logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message)
        return error_response(exc.status_code, GENERIC_ERROR_MESSAGE)
    return error_response(exc.status_code, exc.message, fields=getattr(exc, "fields", None))


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields: dict[str, list[str]] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        fields.setdefault(".".join(location) or "request", []).append(error.get("msg", "Invalid value"))
    return error_response(400, "Invalid input", fields=fields)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(500, GENERIC_ERROR_MESSAGE)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HelpdeskError, handle_helpdesk_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected)
