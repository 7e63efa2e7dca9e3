"""Error taxonomy shared by the HTTP surface and the webhook handlers."""
from __future__ import annotations

from enum import Enum
from typing import Any

import stripe


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UPSTREAM_PAYMENT = "upstream_payment"
    ENTITLEMENT_SYNC = "entitlement_sync"
    WEBHOOK_AUTH = "webhook_auth"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


DEFAULT_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.UPSTREAM_PAYMENT: 500,
    ErrorKind.ENTITLEMENT_SYNC: 502,
    ErrorKind.WEBHOOK_AUTH: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INTERNAL: 500,
}


class AppError(Exception):
    """Base app exception. Subclasses only pin the kind."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code or DEFAULT_STATUS[self.kind]
        self.details = details


class ValidationError(AppError):
    """Client-supplied data is malformed. `details` lists every violated rule."""

    kind = ErrorKind.VALIDATION

    def __init__(self, errors: list[str], message: str = "Validation failed") -> None:
        super().__init__(message, details=list(errors))
        self.errors = list(errors)


class UpstreamPaymentError(AppError):
    """Stripe call failure."""

    kind = ErrorKind.UPSTREAM_PAYMENT

    @classmethod
    def from_stripe(cls, exc: stripe.StripeError) -> "UpstreamPaymentError":
        error = getattr(exc, "error", None)
        return cls(
            exc.user_message or str(exc) or "Stripe request failed",
            status_code=exc.http_status or None,
            details={
                "type": getattr(error, "type", None) or type(exc).__name__,
                "code": exc.code,
                "param": getattr(exc, "param", None) or getattr(error, "param", None),
            },
        )


class EntitlementSyncError(AppError):
    """RevenueCat call did not report success."""

    kind = ErrorKind.ENTITLEMENT_SYNC

    def __init__(self, message: str, *, upstream_status: int | None = None, body: str = "") -> None:
        super().__init__(
            message,
            details={"upstreamStatus": upstream_status, "body": body},
        )
        self.upstream_status = upstream_status
        self.body = body


class WebhookAuthError(AppError):
    """Webhook signature could not be verified."""

    kind = ErrorKind.WEBHOOK_AUTH


class NotFoundError(AppError):
    kind = ErrorKind.NOT_FOUND


class InternalError(AppError):
    kind = ErrorKind.INTERNAL
