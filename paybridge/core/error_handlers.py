"""Translate exceptions into the uniform JSON error envelope."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from paybridge.core.exceptions import AppError, ErrorKind, InternalError, NotFoundError

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_development(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings and settings.is_development)


def error_body(
    request: Request,
    message: str,
    details: Any = None,
    *,
    include_details: bool = False,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "error": message,
        "timestamp": _timestamp(),
        "path": request.url.path,
        "method": request.method,
    }
    if include_details or details is not None:
        body["details"] = details
    request_id = request.headers.get(REQUEST_ID_HEADER)
    if request_id:
        body["requestId"] = request_id
    return body


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.kind in (ErrorKind.INTERNAL, ErrorKind.UPSTREAM_PAYMENT, ErrorKind.ENTITLEMENT_SYNC):
        logger.error("%s: %s", type(exc).__name__, exc.message)
    else:
        logger.warning("%s on %s %s: %s", exc.kind.value, request.method, request.url.path, exc.message)

    message = exc.message
    details = exc.details
    if exc.kind is ErrorKind.INTERNAL and not _is_development(request):
        message, details = "Internal server error", None

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(
            request,
            message,
            details,
            include_details=_is_development(request),
        ),
    )


def _field_name(loc: tuple) -> str:
    return ".".join(str(part) for part in loc if part != "body") or "body"


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [f"{_field_name(tuple(err.get('loc', ())))}: {err.get('msg')}" for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content=error_body(request, "Validation failed", errors),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return await app_error_handler(request, NotFoundError("Route not found"))
    message = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, message),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return await app_error_handler(
        request,
        InternalError(str(exc) or type(exc).__name__, details={"type": type(exc).__name__}),
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
