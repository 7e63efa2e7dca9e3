"""Per-client-address request limiting."""
from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from paybridge.core.error_handlers import error_body

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."


def build_limiter(default_limit: str) -> Limiter:
    return Limiter(key_func=get_remote_address, default_limits=[default_limit])


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    retry_after = getattr(exc, "retry_after", None) or 60
    return JSONResponse(
        error_body(request, RATE_LIMIT_MESSAGE),
        status_code=429,
        headers={"Retry-After": str(retry_after)},
    )
